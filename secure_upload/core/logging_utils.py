import re
from typing import Any, Dict, Optional
from fastapi import Request

from secure_upload.config import settings

MASK = "***MASKED***"

SECRET_KEY_TERMS = ("token", "jwt", "authorization", "bearer", "password", "secret", "private_key", "api_key")
EMAIL_KEYS = ("email", "client_email", "user_email")
SENSITIVE_HEADERS = ("authorization", "x-api-key", "x-auth-token", "cookie", "set-cookie")

_OPAQUE_SECRET = re.compile(r'^[A-Za-z0-9_]{33,}$')


def _mask_email(value: str, mask_string: str) -> str:
    local, sep, domain = value.partition("@")
    if not sep or len(local) <= 3:
        return mask_string
    return local[:3] + "***@" + domain


def mask_sensitive_data(data: Any, mask_string: str = MASK) -> Any:
    """
    Recursively mask sensitive data in dictionaries, lists, and strings.

    Tokens and secrets are replaced entirely, e-mail addresses keep their
    first three characters and domain. Request ids are never masked.

    Args:
        data: Data structure to mask (dict, list, str, or other)
        mask_string: String to use for masking

    Returns:
        Masked data structure
    """
    if isinstance(data, dict):
        masked = {}
        for key, value in data.items():
            key_lower = str(key).lower()
            if key_lower in ("requestid", "request_id"):
                masked[key] = value
            elif any(term in key_lower for term in SECRET_KEY_TERMS):
                masked[key] = mask_string
            elif key_lower in EMAIL_KEYS:
                masked[key] = _mask_email(value, mask_string) if isinstance(value, str) else mask_string
            else:
                masked[key] = mask_sensitive_data(value, mask_string)
        return masked

    if isinstance(data, list):
        return [mask_sensitive_data(item, mask_string) for item in data]

    if isinstance(data, str):
        # JWTs
        if data.startswith("eyJ") and len(data) > 50:
            return mask_string
        # Long opaque keys; UUIDs keep their hyphens and pass through
        if _OPAQUE_SECRET.match(data):
            return mask_string
        return data

    return data


def mask_headers(headers: Dict[str, str]) -> Dict[str, str]:
    """Mask sensitive HTTP headers."""
    return {
        key: MASK if any(s in key.lower() for s in SENSITIVE_HEADERS) else value
        for key, value in headers.items()
    }


def get_request_id(request: Optional[Request]) -> Optional[str]:
    """
    Extract request ID from request state.

    Args:
        request: FastAPI Request object (can be None)

    Returns:
        Request ID (UUID string) or None if not available
    """
    if request is not None and hasattr(request.state, "request_id"):
        return request.state.request_id
    return None


def sanitize_log_message(message: str, **kwargs: Any) -> str:
    """
    Build a log line of the form ``message | Key: value | ...``.

    Context values are masked. A ``RequestID`` keyword is moved to the end
    of the line so ``RequestIDFormatter`` can lift it into its own column.
    """
    request_id = kwargs.pop('RequestID', None) or kwargs.pop('request_id', None)

    parts = [message]
    context = mask_sensitive_data(kwargs) if settings.LOG_MASK_SENSITIVE else kwargs
    for key, value in context.items():
        if isinstance(value, (dict, list)):
            value = str(value)[:200]
        parts.append(f"{key}: {value}")

    if request_id:
        parts.append(f"RequestID: {request_id}")

    return " | ".join(parts)

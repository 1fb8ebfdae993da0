import logging
import time
import uuid
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from secure_upload.config import settings
from secure_upload.core.logging_utils import mask_headers, sanitize_log_message

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _valid_request_id(value: str) -> bool:
    try:
        uuid.UUID(value)
    except (TypeError, ValueError):
        return False
    return True


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Log every request/response pair with a request id.

    The id is taken from an incoming ``X-Request-ID`` header when it is a
    UUID, generated otherwise, stored on ``request.state`` and echoed back.
    """

    SKIP_EXACT = {"/", "/health"}
    SKIP_PREFIXES = ("/docs", "/redoc", f"{settings.API_V1_STR}/docs", f"{settings.API_V1_STR}/redoc",
                     f"{settings.API_V1_STR}/openapi.json")

    def _skip(self, path: str) -> bool:
        return path in self.SKIP_EXACT or path.startswith(self.SKIP_PREFIXES)

    async def dispatch(self, request: Request, call_next):
        incoming = request.headers.get(REQUEST_ID_HEADER)
        request.state.request_id = incoming if incoming and _valid_request_id(incoming) else str(uuid.uuid4())
        request_id = request.state.request_id

        if self._skip(request.url.path):
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response

        start_time = time.time()
        method = request.method
        path = request.url.path
        client_ip = request.client.host if request.client else None

        logger.debug(
            sanitize_log_message(
                f"Request: {method} {path}",
                RequestID=request_id,
                IP=client_ip,
                UserAgent=request.headers.get("user-agent"),
                QueryParams=dict(request.query_params),
                Headers=mask_headers(dict(request.headers)),
            )
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                sanitize_log_message(
                    f"Exception in request: {method} {path}",
                    RequestID=request_id,
                    ProcessTime=f"{time.time() - start_time:.3f}s",
                    IP=client_ip,
                    Error=str(e),
                )
            )
            raise

        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            sanitize_log_message(
                f"Response: {method} {path}",
                RequestID=request_id,
                Status=response.status_code,
                ProcessTime=f"{time.time() - start_time:.3f}s",
                IP=client_ip,
            )
        )
        return response

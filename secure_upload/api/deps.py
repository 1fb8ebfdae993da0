from typing import Optional, Any, Callable, Iterable
from fastapi import Depends, HTTPException, status, Request, BackgroundTasks
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from secure_upload.core.access import require_role
from secure_upload.core.logging_utils import get_request_id
from secure_upload.core.security import decode_access_token, user_id_from_claims
from secure_upload.models.access_log import AccessAction
from secure_upload.repositories.base import Store
from secure_upload.schemas.auth import CurrentUser
from secure_upload.services.audit_service import AuditService
from secure_upload.services.file_storage import FileStorageService
from secure_upload.services.intake_service import IntakeService
from secure_upload.services.link_service import LinkService
from secure_upload.services.session_service import SessionService
from secure_upload.services.template_service import TemplateService


# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"}
    )


def get_store(request: Request) -> Store:
    """The store built at startup; tests override this dependency."""
    return request.app.state.store


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CurrentUser:
    """
    Decode the caller identity from the bearer token.

    Raises:
        HTTPException: 401 if the token is missing, invalid or has no id/role
    """
    if credentials is None:
        raise _unauthorized("Authentication required")

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise _unauthorized("Invalid or expired token")

    user_id = user_id_from_claims(payload)
    role = payload.get("role")
    if not user_id or not role:
        raise _unauthorized("Invalid token payload")

    return CurrentUser(id=user_id, email=payload.get("email"), role=str(role).lower())


def require_roles(allowed_roles: Iterable[str]) -> Callable:
    """Dependency factory restricting an endpoint to some roles."""
    allowed = frozenset(allowed_roles)

    async def dependency(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        require_role(current_user, allowed)
        return current_user

    return dependency


# Service Dependencies for Dependency Injection
def get_file_storage() -> FileStorageService:
    return FileStorageService()


def get_template_service(store: Store = Depends(get_store)) -> TemplateService:
    return TemplateService(store.templates)


def get_link_service(store: Store = Depends(get_store)) -> LinkService:
    return LinkService(store.links, store.templates, store.sessions)


def get_session_service(store: Store = Depends(get_store)) -> SessionService:
    return SessionService(store.sessions)


def get_audit_service(store: Store = Depends(get_store)) -> AuditService:
    return AuditService(store.access_log)


def get_intake_service(
    templates: TemplateService = Depends(get_template_service),
    links: LinkService = Depends(get_link_service),
    sessions: SessionService = Depends(get_session_service),
    storage: FileStorageService = Depends(get_file_storage),
) -> IntakeService:
    return IntakeService(links=links, templates=templates, sessions=sessions, storage=storage)


class AuditContext:
    """Request-scoped file access logging with caller, client and request ID."""

    def __init__(
        self,
        request: Request,
        background_tasks: BackgroundTasks,
        audit_service: AuditService,
        user_id: Optional[str] = None
    ):
        self.request_id = get_request_id(request)
        self.background_tasks = background_tasks
        self.audit_service = audit_service
        self.user_id = user_id
        self.ip_address = request.client.host if request.client else None
        self.user_agent = request.headers.get("user-agent")

    def log_file_access(self, file_id: str, action: AccessAction, **details: Any) -> None:
        """Record a file access after the response is sent."""
        self.audit_service.log_file_access_background(
            self.background_tasks,
            file_id=file_id,
            action=action,
            user_id=self.user_id,
            ip_address=self.ip_address,
            user_agent=self.user_agent,
            details=details or None,
            request_id=self.request_id,
        )

    async def log_file_access_now(self, file_id: str, action: AccessAction, **details: Any) -> None:
        """
        Record a file access before returning.

        Used on error paths: background tasks are dropped when the
        endpoint raises.
        """
        await self.audit_service.log_file_access(
            file_id=file_id,
            action=action,
            user_id=self.user_id,
            ip_address=self.ip_address,
            user_agent=self.user_agent,
            details=details or None,
            request_id=self.request_id,
        )


async def get_audit_context(
    request: Request,
    background_tasks: BackgroundTasks,
    audit_service: AuditService = Depends(get_audit_service),
    current_user: CurrentUser = Depends(get_current_user),
) -> AuditContext:
    """
    Get request-scoped audit context for an authenticated caller.

    Usage:
        @router.get("/endpoint")
        async def endpoint(audit: AuditContext = Depends(get_audit_context)):
            audit.log_file_access(file_id, AccessAction.VIEW)
    """
    return AuditContext(
        request=request,
        background_tasks=background_tasks,
        audit_service=audit_service,
        user_id=current_user.id,
    )

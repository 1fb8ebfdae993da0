import logging
from typing import Any, Dict, List, Optional

from fastapi import BackgroundTasks

from secure_upload.core.logging_utils import sanitize_log_message
from secure_upload.models.access_log import AccessAction
from secure_upload.repositories.base import AccessLogRepository
from secure_upload.schemas.access_log import FileAccessLog, FileAccessLogEntry

logger = logging.getLogger(__name__)


class AuditService:
    """Write-only recording of access to stored files."""

    def __init__(self, access_log: AccessLogRepository):
        self.access_log = access_log

    async def log_file_access(
        self,
        file_id: str,
        action: AccessAction,
        user_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None
    ) -> FileAccessLog:
        """
        Record one access event.

        Args:
            file_id: Id of the file; the file itself may no longer exist
            action: view, download, delete, share or access_denied
            user_id: Caller id when authenticated
            ip_address: Client address of the request
            user_agent: User agent string
            details: Extra JSON context
            request_id: Request ID (UUID) for request tracing

        Returns:
            The recorded entry
        """
        entry = FileAccessLogEntry(
            file_id=file_id,
            action=action,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
            details=details,
        )
        try:
            recorded = await self.access_log.add(entry)
        except Exception as e:
            logger.exception(
                sanitize_log_message(
                    "Failed to write file access log",
                    RequestID=request_id,
                    FileID=file_id,
                    Action=action.value,
                    Error=str(e),
                )
            )
            raise

        log = logger.warning if action == AccessAction.ACCESS_DENIED else logger.debug
        log(sanitize_log_message("File access recorded", RequestID=request_id, FileID=file_id, Action=action.value, UserID=user_id))
        return recorded

    def log_file_access_background(self, background_tasks: BackgroundTasks, **kwargs: Any) -> None:
        """Schedule ``log_file_access`` to run after the response is sent."""
        background_tasks.add_task(self.log_file_access, **kwargs)

    async def history(self, file_id: str) -> List[FileAccessLog]:
        return await self.access_log.list_for_file(file_id)

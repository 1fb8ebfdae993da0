import logging
import uuid
from typing import Any, Dict, List, Optional

from secure_upload.core.clock import utcnow
from secure_upload.core.exceptions import NotFoundException, ValidationException
from secure_upload.core.logging_utils import sanitize_log_message
from secure_upload.models.session import SessionStatus
from secure_upload.repositories.base import SessionRepository
from secure_upload.schemas.session import NewUploadedFile, UploadedFile, UploadSession

logger = logging.getLogger(__name__)

TERMINAL_STATES = frozenset({SessionStatus.COMPLETED, SessionStatus.FAILED})


class SessionService:
    """
    Upload sessions and the files they own.

    ``in_progress`` moves to ``completed`` on submission or to ``failed``
    when marked explicitly; both are terminal. Link validity is checked by
    the caller before a session is created, and intake limits are enforced
    by the intake workflow, not here.
    """

    def __init__(self, sessions: SessionRepository):
        self.sessions = sessions

    async def _require(self, session_id: str) -> UploadSession:
        session = await self.sessions.get(session_id)
        if session is None:
            raise NotFoundException(detail="Session not found")
        return session

    async def _require_open(self, session_id: str) -> UploadSession:
        session = await self._require(session_id)
        if session.status in TERMINAL_STATES:
            raise ValidationException(detail=f"Session is already {session.status.value}")
        return session

    async def create_session(
        self,
        upload_link_id: str,
        client_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        request_id: Optional[str] = None
    ) -> UploadSession:
        session = await self.sessions.add(
            UploadSession(
                id=str(uuid.uuid4()),
                upload_link_id=upload_link_id,
                form_data={},
                uploaded_files=[],
                status=SessionStatus.IN_PROGRESS,
                client_ip=client_ip,
                user_agent=user_agent,
                created_at=utcnow(),
            )
        )
        logger.info(
            sanitize_log_message(
                "Upload session created",
                RequestID=request_id,
                SessionID=session.id,
                LinkID=upload_link_id,
            )
        )
        return session

    async def get_session(self, session_id: str) -> UploadSession:
        return await self._require(session_id)

    async def list_sessions_for_link(self, link_id: str) -> List[UploadSession]:
        return await self.sessions.list_for_link(link_id)

    async def list_all_sessions(self) -> List[UploadSession]:
        return await self.sessions.list_all()

    async def add_file_to_session(self, session_id: str, file: NewUploadedFile) -> UploadedFile:
        """
        Record one stored file against a session.

        Each call is a single append; concurrent calls for the same session
        each add exactly one record.
        """
        record = UploadedFile(
            id=str(uuid.uuid4()),
            session_id=session_id,
            uploaded_at=utcnow(),
            **file.model_dump(),
        )
        added = await self.sessions.add_file(session_id, record)
        if added is None:
            raise NotFoundException(detail="Session not found")
        return added

    async def remove_files(self, session_id: str, file_ids: List[str]) -> int:
        """Drop file records from a session; used to undo a partial submission."""
        return await self.sessions.remove_files(session_id, file_ids)

    async def update_session_data(self, session_id: str, form_data: Dict[str, Any]) -> UploadSession:
        """Shallow-merge form data into the session; later keys overwrite earlier ones."""
        await self._require_open(session_id)
        session = await self.sessions.merge_form_data(session_id, form_data)
        if session is None:
            raise NotFoundException(detail="Session not found")
        return session

    async def complete_session(self, session_id: str, request_id: Optional[str] = None) -> UploadSession:
        await self._require_open(session_id)
        session = await self.sessions.update(
            session_id,
            {"status": SessionStatus.COMPLETED, "submitted_at": utcnow()},
        )
        if session is None:
            raise NotFoundException(detail="Session not found")
        logger.info(
            sanitize_log_message(
                "Upload session completed",
                RequestID=request_id,
                SessionID=session_id,
                FileCount=len(session.uploaded_files),
            )
        )
        return session

    async def fail_session(
        self,
        session_id: str,
        reason: Optional[str] = None,
        request_id: Optional[str] = None
    ) -> UploadSession:
        """Mark a session failed. Only in-progress sessions can fail."""
        await self._require_open(session_id)
        session = await self.sessions.update(session_id, {"status": SessionStatus.FAILED})
        if session is None:
            raise NotFoundException(detail="Session not found")
        logger.warning(
            sanitize_log_message("Upload session failed", RequestID=request_id, SessionID=session_id, Reason=reason)
        )
        return session

    async def get_file(self, file_id: str) -> UploadedFile:
        file = await self.sessions.get_file(file_id)
        if file is None:
            raise NotFoundException(detail="File not found")
        return file

    async def delete_session(self, session_id: str, request_id: Optional[str] = None) -> List[UploadedFile]:
        """
        Delete a session and every file record it owns.

        Returns:
            The removed file records, so stored bytes can be cleaned up
        """
        removed = await self.sessions.delete(session_id)
        if removed is None:
            raise NotFoundException(detail="Session not found")
        logger.info(
            sanitize_log_message(
                "Upload session deleted",
                RequestID=request_id,
                SessionID=session_id,
                RemovedFiles=len(removed),
            )
        )
        return removed

"""
Repository interfaces for the four stores.

Two implementations exist: ``memory`` (map-backed, used for tests and
local development) and ``sql`` (transactional SQLAlchemy). Services only
depend on these interfaces. Every method is one atomic operation against
the backing store.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from secure_upload.database import close_db
from secure_upload.schemas.access_log import FileAccessLog, FileAccessLogEntry
from secure_upload.schemas.link import UploadLink
from secure_upload.schemas.session import UploadedFile, UploadSession
from secure_upload.schemas.template import FormField, FormTemplate


class TemplateRepository(ABC):

    @abstractmethod
    async def add(self, template: FormTemplate) -> FormTemplate:
        """Persist a template together with its fields, all or nothing."""

    @abstractmethod
    async def get(self, template_id: str) -> Optional[FormTemplate]:
        """Template with fields sorted by display_order, or None."""

    @abstractmethod
    async def list(self, created_by: Optional[str] = None, include_inactive: bool = False) -> List[FormTemplate]:
        """Templates newest first, optionally restricted to one creator."""

    @abstractmethod
    async def update(self, template_id: str, changes: Dict[str, Any]) -> Optional[FormTemplate]:
        """Apply column changes; None when the template is unknown."""

    @abstractmethod
    async def add_field(self, field: FormField) -> FormField:
        pass

    @abstractmethod
    async def get_field(self, field_id: str) -> Optional[FormField]:
        pass

    @abstractmethod
    async def update_field(self, field_id: str, changes: Dict[str, Any]) -> Optional[FormField]:
        pass

    @abstractmethod
    async def delete_field(self, field_id: str) -> bool:
        pass


class LinkRepository(ABC):

    @abstractmethod
    async def add(self, link: UploadLink) -> UploadLink:
        """
        Persist a new link.

        Raises:
            ConflictException: job number already taken
        """

    @abstractmethod
    async def get(self, link_id: str) -> Optional[UploadLink]:
        pass

    @abstractmethod
    async def get_by_job_number(self, job_number: str) -> Optional[UploadLink]:
        """Exact, case-sensitive match."""

    @abstractmethod
    async def list(self, created_by: Optional[str] = None) -> List[UploadLink]:
        """Links newest first, optionally restricted to one creator."""

    @abstractmethod
    async def update(self, link_id: str, changes: Dict[str, Any]) -> Optional[UploadLink]:
        pass

    @abstractmethod
    async def delete(self, link_id: str) -> bool:
        pass

    @abstractmethod
    async def count_active(self, created_by: Optional[str] = None) -> int:
        pass

    @abstractmethod
    async def list_expiring(self, threshold: datetime, created_by: Optional[str] = None) -> List[UploadLink]:
        """Active links with ``expires_at <= threshold``, soonest first."""


class SessionRepository(ABC):

    @abstractmethod
    async def add(self, session: UploadSession) -> UploadSession:
        pass

    @abstractmethod
    async def get(self, session_id: str) -> Optional[UploadSession]:
        pass

    @abstractmethod
    async def list_for_link(self, link_id: str) -> List[UploadSession]:
        """Sessions of one link, newest first."""

    @abstractmethod
    async def list_all(self) -> List[UploadSession]:
        """Every session, newest first."""

    @abstractmethod
    async def update(self, session_id: str, changes: Dict[str, Any]) -> Optional[UploadSession]:
        pass

    @abstractmethod
    async def merge_form_data(self, session_id: str, data: Dict[str, Any]) -> Optional[UploadSession]:
        """Shallow-merge ``data`` into the stored form data; later keys win."""

    @abstractmethod
    async def add_file(self, session_id: str, file: UploadedFile) -> Optional[UploadedFile]:
        """Append one file record to a session and the global file index."""

    @abstractmethod
    async def remove_files(self, session_id: str, file_ids: List[str]) -> int:
        """Drop file records from a session and the global file index; returns the count removed."""

    @abstractmethod
    async def get_file(self, file_id: str) -> Optional[UploadedFile]:
        pass

    @abstractmethod
    async def delete(self, session_id: str) -> Optional[List[UploadedFile]]:
        """Delete a session and its files; returns the removed files, None if unknown."""


class AccessLogRepository(ABC):

    @abstractmethod
    async def add(self, entry: FileAccessLogEntry) -> FileAccessLog:
        pass

    @abstractmethod
    async def list_for_file(self, file_id: str) -> List[FileAccessLog]:
        pass


class Store:
    """The set of repositories a process works against, built once at startup."""

    def __init__(
        self,
        templates: TemplateRepository,
        links: LinkRepository,
        sessions: SessionRepository,
        access_log: AccessLogRepository,
        backend: str,
        engine=None,
    ):
        self.templates = templates
        self.links = links
        self.sessions = sessions
        self.access_log = access_log
        self.backend = backend
        self.engine = engine

    async def close(self) -> None:
        if self.engine is not None:
            await close_db(self.engine)

"""
Map-backed repositories.

Entities are copied on the way in and on the way out so callers can never
mutate stored state. No method awaits between reading and writing, which
makes each one atomic on the event loop.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from secure_upload.core.clock import utcnow
from secure_upload.core.exceptions import ConflictException
from secure_upload.models.link import LinkStatus
from secure_upload.repositories.base import (
    AccessLogRepository,
    LinkRepository,
    SessionRepository,
    Store,
    TemplateRepository,
)
from secure_upload.schemas.access_log import FileAccessLog, FileAccessLogEntry
from secure_upload.schemas.link import UploadLink
from secure_upload.schemas.session import UploadedFile, UploadSession
from secure_upload.schemas.template import FormField, FormTemplate


def _newest_first(items, key):
    # Ties keep the most recently inserted first
    return sorted(reversed(list(items)), key=key, reverse=True)


class InMemoryTemplateRepository(TemplateRepository):

    def __init__(self):
        self._templates: Dict[str, FormTemplate] = {}

    def _out(self, template: FormTemplate) -> FormTemplate:
        copy = template.model_copy(deep=True)
        copy.fields.sort(key=lambda f: f.display_order)
        return copy

    def _owner_of_field(self, field_id: str) -> Optional[FormTemplate]:
        for template in self._templates.values():
            if any(f.id == field_id for f in template.fields):
                return template
        return None

    async def add(self, template: FormTemplate) -> FormTemplate:
        self._templates[template.id] = template.model_copy(deep=True)
        return self._out(template)

    async def get(self, template_id: str) -> Optional[FormTemplate]:
        template = self._templates.get(template_id)
        return self._out(template) if template else None

    async def list(self, created_by: Optional[str] = None, include_inactive: bool = False) -> List[FormTemplate]:
        templates = [
            t for t in self._templates.values()
            if (created_by is None or t.created_by == created_by) and (include_inactive or t.is_active)
        ]
        return [self._out(t) for t in _newest_first(templates, key=lambda t: t.created_at)]

    async def update(self, template_id: str, changes: Dict[str, Any]) -> Optional[FormTemplate]:
        template = self._templates.get(template_id)
        if template is None:
            return None
        updated = template.model_copy(update=changes, deep=True)
        self._templates[template_id] = updated
        return self._out(updated)

    async def add_field(self, field: FormField) -> FormField:
        template = self._templates[field.template_id]
        template.fields.append(field.model_copy(deep=True))
        return field.model_copy(deep=True)

    async def get_field(self, field_id: str) -> Optional[FormField]:
        template = self._owner_of_field(field_id)
        if template is None:
            return None
        return next(f.model_copy(deep=True) for f in template.fields if f.id == field_id)

    async def update_field(self, field_id: str, changes: Dict[str, Any]) -> Optional[FormField]:
        template = self._owner_of_field(field_id)
        if template is None:
            return None
        for index, field in enumerate(template.fields):
            if field.id == field_id:
                template.fields[index] = field.model_copy(update=changes, deep=True)
                return template.fields[index].model_copy(deep=True)
        return None

    async def delete_field(self, field_id: str) -> bool:
        template = self._owner_of_field(field_id)
        if template is None:
            return False
        template.fields = [f for f in template.fields if f.id != field_id]
        return True


class InMemoryLinkRepository(LinkRepository):

    def __init__(self):
        self._links: Dict[str, UploadLink] = {}

    async def add(self, link: UploadLink) -> UploadLink:
        if any(existing.job_number == link.job_number for existing in self._links.values()):
            raise ConflictException(detail="A link for this job number already exists")
        self._links[link.id] = link.model_copy(deep=True)
        return link.model_copy(deep=True)

    async def get(self, link_id: str) -> Optional[UploadLink]:
        link = self._links.get(link_id)
        return link.model_copy(deep=True) if link else None

    async def get_by_job_number(self, job_number: str) -> Optional[UploadLink]:
        for link in self._links.values():
            if link.job_number == job_number:
                return link.model_copy(deep=True)
        return None

    def _visible(self, created_by: Optional[str]) -> List[UploadLink]:
        return [l for l in self._links.values() if created_by is None or l.created_by == created_by]

    async def list(self, created_by: Optional[str] = None) -> List[UploadLink]:
        return [l.model_copy(deep=True) for l in _newest_first(self._visible(created_by), key=lambda l: l.created_at)]

    async def update(self, link_id: str, changes: Dict[str, Any]) -> Optional[UploadLink]:
        link = self._links.get(link_id)
        if link is None:
            return None
        self._links[link_id] = link.model_copy(update=changes, deep=True)
        return self._links[link_id].model_copy(deep=True)

    async def delete(self, link_id: str) -> bool:
        return self._links.pop(link_id, None) is not None

    async def count_active(self, created_by: Optional[str] = None) -> int:
        return sum(1 for l in self._visible(created_by) if l.status == LinkStatus.ACTIVE)

    async def list_expiring(self, threshold: datetime, created_by: Optional[str] = None) -> List[UploadLink]:
        expiring = [
            l for l in self._visible(created_by)
            if l.status == LinkStatus.ACTIVE and l.expires_at <= threshold
        ]
        return [l.model_copy(deep=True) for l in sorted(expiring, key=lambda l: l.expires_at)]


class InMemorySessionRepository(SessionRepository):

    def __init__(self):
        self._sessions: Dict[str, UploadSession] = {}
        # Global file index keyed by file id
        self._files: Dict[str, UploadedFile] = {}

    async def add(self, session: UploadSession) -> UploadSession:
        self._sessions[session.id] = session.model_copy(deep=True)
        return session.model_copy(deep=True)

    async def get(self, session_id: str) -> Optional[UploadSession]:
        session = self._sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    async def list_for_link(self, link_id: str) -> List[UploadSession]:
        sessions = [s for s in self._sessions.values() if s.upload_link_id == link_id]
        return [s.model_copy(deep=True) for s in _newest_first(sessions, key=lambda s: s.created_at)]

    async def list_all(self) -> List[UploadSession]:
        return [s.model_copy(deep=True) for s in _newest_first(self._sessions.values(), key=lambda s: s.created_at)]

    async def update(self, session_id: str, changes: Dict[str, Any]) -> Optional[UploadSession]:
        session = self._sessions.get(session_id)
        if session is None:
            return None
        self._sessions[session_id] = session.model_copy(update=changes, deep=True)
        return self._sessions[session_id].model_copy(deep=True)

    async def merge_form_data(self, session_id: str, data: Dict[str, Any]) -> Optional[UploadSession]:
        session = self._sessions.get(session_id)
        if session is None:
            return None
        session.form_data = {**session.form_data, **data}
        return session.model_copy(deep=True)

    async def add_file(self, session_id: str, file: UploadedFile) -> Optional[UploadedFile]:
        session = self._sessions.get(session_id)
        if session is None:
            return None
        stored = file.model_copy(deep=True)
        session.uploaded_files.append(stored)
        self._files[stored.id] = stored
        return stored.model_copy(deep=True)

    async def remove_files(self, session_id: str, file_ids: List[str]) -> int:
        session = self._sessions.get(session_id)
        if session is None:
            return 0
        doomed = set(file_ids)
        kept = [f for f in session.uploaded_files if f.id not in doomed]
        removed = len(session.uploaded_files) - len(kept)
        session.uploaded_files = kept
        for file_id in doomed:
            self._files.pop(file_id, None)
        return removed

    async def get_file(self, file_id: str) -> Optional[UploadedFile]:
        file = self._files.get(file_id)
        return file.model_copy(deep=True) if file else None

    async def delete(self, session_id: str) -> Optional[List[UploadedFile]]:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return None
        for file in session.uploaded_files:
            self._files.pop(file.id, None)
        return session.uploaded_files


class InMemoryAccessLogRepository(AccessLogRepository):

    def __init__(self):
        self._entries: List[FileAccessLog] = []

    async def add(self, entry: FileAccessLogEntry) -> FileAccessLog:
        record = FileAccessLog(id=len(self._entries) + 1, accessed_at=utcnow(), **entry.model_dump())
        self._entries.append(record)
        return record.model_copy(deep=True)

    async def list_for_file(self, file_id: str) -> List[FileAccessLog]:
        return [e.model_copy(deep=True) for e in self._entries if e.file_id == file_id]


def build_memory_store() -> Store:
    """A fresh, isolated in-memory store."""
    return Store(
        templates=InMemoryTemplateRepository(),
        links=InMemoryLinkRepository(),
        sessions=InMemorySessionRepository(),
        access_log=InMemoryAccessLogRepository(),
        backend="memory",
    )

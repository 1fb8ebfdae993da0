"""
SQLAlchemy-backed repositories.

Every method opens its own session and runs inside a single transaction.
Rows are mapped to the canonical schemas before the session closes, so
nothing lazy-loads after the fact.
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from secure_upload.core.exceptions import ConflictException, StorageException
from secure_upload.core.logging_utils import sanitize_log_message
from secure_upload.models.access_log import FileAccessLogRecord
from secure_upload.models.link import LinkStatus, UploadLinkRecord
from secure_upload.models.session import UploadedFileRecord, UploadSessionRecord
from secure_upload.models.template import FormFieldRecord, FormTemplateRecord
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

logger = logging.getLogger(__name__)


def _template_to_entity(record: FormTemplateRecord) -> FormTemplate:
    template = FormTemplate.model_validate(record)
    template.fields.sort(key=lambda f: f.display_order)
    return template


def _session_to_entity(record: UploadSessionRecord) -> UploadSession:
    return UploadSession(
        id=record.id,
        upload_link_id=record.upload_link_id,
        form_data=dict(record.form_data or {}),
        uploaded_files=[UploadedFile.model_validate(f) for f in record.files],
        status=record.status,
        client_ip=record.client_ip,
        user_agent=record.user_agent,
        created_at=record.created_at,
        submitted_at=record.submitted_at,
    )


def _field_record(field: FormField) -> FormFieldRecord:
    return FormFieldRecord(**field.model_dump())


def _file_record(session_id: str, file: UploadedFile) -> UploadedFileRecord:
    return UploadedFileRecord(**file.model_dump(exclude={"session_id"}), session_id=session_id)


class SqlRepository:
    """Shared transaction handling for the SQL repositories."""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self, operation: str, conflict_detail: Optional[str] = None):
        """
        Yield a session inside ``begin()``; commit on exit, roll back on error.

        Raises:
            ConflictException: unique constraint hit and ``conflict_detail`` given
            StorageException: any other database failure
        """
        try:
            async with self._session_factory() as db:
                async with db.begin():
                    yield db
        except IntegrityError as e:
            if conflict_detail:
                logger.info(sanitize_log_message("Unique constraint violated", Operation=operation))
                raise ConflictException(detail=conflict_detail) from e
            logger.error(sanitize_log_message("Integrity error", Operation=operation, Error=str(e.orig)))
            raise StorageException() from e
        except SQLAlchemyError as e:
            logger.error(sanitize_log_message("Database error", Operation=operation, Error=str(e)), exc_info=True)
            raise StorageException() from e


class SqlTemplateRepository(SqlRepository, TemplateRepository):

    async def _load(self, db: AsyncSession, template_id: str) -> Optional[FormTemplateRecord]:
        result = await db.execute(
            select(FormTemplateRecord)
            .where(FormTemplateRecord.id == template_id)
            .options(selectinload(FormTemplateRecord.fields))
        )
        return result.scalar_one_or_none()

    async def add(self, template: FormTemplate) -> FormTemplate:
        async with self._transaction("template.add") as db:
            record = FormTemplateRecord(**template.model_dump(exclude={"fields"}))
            record.fields = [_field_record(f) for f in template.fields]
            db.add(record)
            await db.flush()
            return _template_to_entity(record)

    async def get(self, template_id: str) -> Optional[FormTemplate]:
        async with self._transaction("template.get") as db:
            record = await self._load(db, template_id)
            return _template_to_entity(record) if record else None

    async def list(self, created_by: Optional[str] = None, include_inactive: bool = False) -> List[FormTemplate]:
        query = select(FormTemplateRecord).options(selectinload(FormTemplateRecord.fields))
        if created_by is not None:
            query = query.where(FormTemplateRecord.created_by == created_by)
        if not include_inactive:
            query = query.where(FormTemplateRecord.is_active.is_(True))
        query = query.order_by(FormTemplateRecord.created_at.desc())

        async with self._transaction("template.list") as db:
            result = await db.execute(query)
            return [_template_to_entity(r) for r in result.scalars().all()]

    async def update(self, template_id: str, changes: Dict[str, Any]) -> Optional[FormTemplate]:
        async with self._transaction("template.update") as db:
            record = await self._load(db, template_id)
            if record is None:
                return None
            for key, value in changes.items():
                setattr(record, key, value)
            await db.flush()
            return _template_to_entity(record)

    async def add_field(self, field: FormField) -> FormField:
        async with self._transaction("template.add_field") as db:
            record = _field_record(field)
            db.add(record)
            await db.flush()
            return FormField.model_validate(record)

    async def get_field(self, field_id: str) -> Optional[FormField]:
        async with self._transaction("template.get_field") as db:
            record = await db.get(FormFieldRecord, field_id)
            return FormField.model_validate(record) if record else None

    async def update_field(self, field_id: str, changes: Dict[str, Any]) -> Optional[FormField]:
        async with self._transaction("template.update_field") as db:
            record = await db.get(FormFieldRecord, field_id)
            if record is None:
                return None
            for key, value in changes.items():
                setattr(record, key, value)
            await db.flush()
            return FormField.model_validate(record)

    async def delete_field(self, field_id: str) -> bool:
        async with self._transaction("template.delete_field") as db:
            record = await db.get(FormFieldRecord, field_id)
            if record is None:
                return False
            await db.delete(record)
            return True


class SqlLinkRepository(SqlRepository, LinkRepository):

    def _scoped(self, query, created_by: Optional[str]):
        if created_by is not None:
            query = query.where(UploadLinkRecord.created_by == created_by)
        return query

    async def add(self, link: UploadLink) -> UploadLink:
        async with self._transaction("link.add", conflict_detail="A link for this job number already exists") as db:
            record = UploadLinkRecord(**link.model_dump())
            db.add(record)
            await db.flush()
            return UploadLink.model_validate(record)

    async def get(self, link_id: str) -> Optional[UploadLink]:
        async with self._transaction("link.get") as db:
            record = await db.get(UploadLinkRecord, link_id)
            return UploadLink.model_validate(record) if record else None

    async def get_by_job_number(self, job_number: str) -> Optional[UploadLink]:
        async with self._transaction("link.get_by_job_number") as db:
            result = await db.execute(select(UploadLinkRecord).where(UploadLinkRecord.job_number == job_number))
            record = result.scalar_one_or_none()
            return UploadLink.model_validate(record) if record else None

    async def list(self, created_by: Optional[str] = None) -> List[UploadLink]:
        query = self._scoped(select(UploadLinkRecord), created_by).order_by(UploadLinkRecord.created_at.desc())
        async with self._transaction("link.list") as db:
            result = await db.execute(query)
            return [UploadLink.model_validate(r) for r in result.scalars().all()]

    async def update(self, link_id: str, changes: Dict[str, Any]) -> Optional[UploadLink]:
        async with self._transaction("link.update") as db:
            record = await db.get(UploadLinkRecord, link_id)
            if record is None:
                return None
            for key, value in changes.items():
                setattr(record, key, value)
            await db.flush()
            return UploadLink.model_validate(record)

    async def delete(self, link_id: str) -> bool:
        async with self._transaction("link.delete") as db:
            record = await db.get(UploadLinkRecord, link_id)
            if record is None:
                return False
            await db.delete(record)
            return True

    async def count_active(self, created_by: Optional[str] = None) -> int:
        query = self._scoped(
            select(func.count()).select_from(UploadLinkRecord).where(UploadLinkRecord.status == LinkStatus.ACTIVE),
            created_by,
        )
        async with self._transaction("link.count_active") as db:
            return (await db.execute(query)).scalar_one()

    async def list_expiring(self, threshold: datetime, created_by: Optional[str] = None) -> List[UploadLink]:
        query = self._scoped(
            select(UploadLinkRecord).where(
                UploadLinkRecord.status == LinkStatus.ACTIVE,
                UploadLinkRecord.expires_at <= threshold,
            ),
            created_by,
        ).order_by(UploadLinkRecord.expires_at.asc())
        async with self._transaction("link.list_expiring") as db:
            result = await db.execute(query)
            return [UploadLink.model_validate(r) for r in result.scalars().all()]


class SqlSessionRepository(SqlRepository, SessionRepository):

    async def _load(self, db: AsyncSession, session_id: str) -> Optional[UploadSessionRecord]:
        result = await db.execute(
            select(UploadSessionRecord)
            .where(UploadSessionRecord.id == session_id)
            .options(selectinload(UploadSessionRecord.files))
        )
        return result.scalar_one_or_none()

    async def _list(self, operation: str, query) -> List[UploadSession]:
        query = query.options(selectinload(UploadSessionRecord.files)).order_by(UploadSessionRecord.created_at.desc())
        async with self._transaction(operation) as db:
            result = await db.execute(query)
            return [_session_to_entity(r) for r in result.scalars().all()]

    async def add(self, session: UploadSession) -> UploadSession:
        async with self._transaction("session.add") as db:
            record = UploadSessionRecord(**session.model_dump(exclude={"uploaded_files"}))
            record.files = [_file_record(session.id, f) for f in session.uploaded_files]
            db.add(record)
            await db.flush()
            return _session_to_entity(record)

    async def get(self, session_id: str) -> Optional[UploadSession]:
        async with self._transaction("session.get") as db:
            record = await self._load(db, session_id)
            return _session_to_entity(record) if record else None

    async def list_for_link(self, link_id: str) -> List[UploadSession]:
        return await self._list(
            "session.list_for_link",
            select(UploadSessionRecord).where(UploadSessionRecord.upload_link_id == link_id),
        )

    async def list_all(self) -> List[UploadSession]:
        return await self._list("session.list_all", select(UploadSessionRecord))

    async def update(self, session_id: str, changes: Dict[str, Any]) -> Optional[UploadSession]:
        async with self._transaction("session.update") as db:
            record = await self._load(db, session_id)
            if record is None:
                return None
            for key, value in changes.items():
                setattr(record, key, value)
            await db.flush()
            return _session_to_entity(record)

    async def merge_form_data(self, session_id: str, data: Dict[str, Any]) -> Optional[UploadSession]:
        async with self._transaction("session.merge_form_data") as db:
            record = await self._load(db, session_id)
            if record is None:
                return None
            # Reassign so the JSON column is flagged dirty
            record.form_data = {**(record.form_data or {}), **data}
            await db.flush()
            return _session_to_entity(record)

    async def add_file(self, session_id: str, file: UploadedFile) -> Optional[UploadedFile]:
        async with self._transaction("session.add_file") as db:
            if await db.get(UploadSessionRecord, session_id) is None:
                return None
            record = _file_record(session_id, file)
            db.add(record)
            await db.flush()
            return UploadedFile.model_validate(record)

    async def remove_files(self, session_id: str, file_ids: List[str]) -> int:
        if not file_ids:
            return 0
        async with self._transaction("session.remove_files") as db:
            result = await db.execute(
                delete(UploadedFileRecord).where(
                    UploadedFileRecord.session_id == session_id,
                    UploadedFileRecord.id.in_(file_ids),
                )
            )
            return result.rowcount

    async def get_file(self, file_id: str) -> Optional[UploadedFile]:
        async with self._transaction("session.get_file") as db:
            record = await db.get(UploadedFileRecord, file_id)
            return UploadedFile.model_validate(record) if record else None

    async def delete(self, session_id: str) -> Optional[List[UploadedFile]]:
        async with self._transaction("session.delete") as db:
            record = await self._load(db, session_id)
            if record is None:
                return None
            removed = [UploadedFile.model_validate(f) for f in record.files]
            await db.delete(record)
            return removed


class SqlAccessLogRepository(SqlRepository, AccessLogRepository):

    async def add(self, entry: FileAccessLogEntry) -> FileAccessLog:
        async with self._transaction("access_log.add") as db:
            record = FileAccessLogRecord(**entry.model_dump())
            db.add(record)
            await db.flush()
            return FileAccessLog.model_validate(record)

    async def list_for_file(self, file_id: str) -> List[FileAccessLog]:
        async with self._transaction("access_log.list_for_file") as db:
            result = await db.execute(
                select(FileAccessLogRecord)
                .where(FileAccessLogRecord.file_id == file_id)
                .order_by(FileAccessLogRecord.accessed_at.asc(), FileAccessLogRecord.id.asc())
            )
            return [FileAccessLog.model_validate(r) for r in result.scalars().all()]


def build_sql_store(engine: AsyncEngine, session_factory: async_sessionmaker) -> Store:
    """SQL store over an engine; ``Store.close`` disposes the engine."""
    return Store(
        templates=SqlTemplateRepository(session_factory),
        links=SqlLinkRepository(session_factory),
        sessions=SqlSessionRepository(session_factory),
        access_log=SqlAccessLogRepository(session_factory),
        backend="sql",
        engine=engine,
    )

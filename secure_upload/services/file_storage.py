import os
import re
import asyncio
import hashlib
import logging
import uuid
from pathlib import Path
from typing import Iterable, Optional, Tuple

import aiofiles

from secure_upload.config import settings
from secure_upload.core.exceptions import StorageException
from secure_upload.core.logging_utils import sanitize_log_message
from secure_upload.schemas.session import NewUploadedFile, UploadedFile

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {'.pdf', '.jpg', '.jpeg', '.png', '.doc', '.docx'}

_UNSAFE_DISPLAY_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_UNSAFE_SEGMENT_CHARS = re.compile(r'[^A-Za-z0-9_.-]')


class FileStorageService:
    """Writes uploaded bytes under UPLOAD_DIR and removes them again."""

    def __init__(self, upload_dir: Optional[str] = None, write_timeout: Optional[int] = None):
        self.upload_dir = Path(upload_dir or settings.UPLOAD_DIR)
        self.write_timeout = write_timeout or settings.FILE_WRITE_TIMEOUT

    @staticmethod
    def _sanitize_filename(original_filename: Optional[str]) -> Tuple[str, str]:
        """
        Sanitize filename for secure storage.

        Generates a UUID-based filename for storage while preserving
        the original filename for display purposes.

        Args:
            original_filename: Original filename from upload

        Returns:
            Tuple of (safe_storage_name, sanitized_display_name)
        """
        if original_filename:
            # Strip any path components to prevent traversal
            clean_name = re.sub(r'[\\/]', '', os.path.basename(original_filename.replace('\\', '/')))
            ext = Path(clean_name).suffix.lower()
            if ext not in ALLOWED_EXTENSIONS:
                ext = ''
        else:
            clean_name = ''
            ext = ''

        storage_name = f"{uuid.uuid4().hex}{ext}"
        display_name = _UNSAFE_DISPLAY_CHARS.sub('_', clean_name)[:255] or 'unnamed'
        return storage_name, display_name

    @staticmethod
    def _segment(value: str) -> str:
        """Directory-safe version of a field name."""
        return _UNSAFE_SEGMENT_CHARS.sub('_', value).strip('.') or 'field'

    def _file_path(self, session_id: str, field_name: str, storage_name: str) -> Path:
        """Structure: {UPLOAD_DIR}/{session_id}/{field_name}/{storage_name}"""
        return self.upload_dir / self._segment(session_id) / self._segment(field_name) / storage_name

    async def save(
        self,
        session_id: str,
        field_name: str,
        original_filename: Optional[str],
        content: bytes,
        mime_type: str,
        document_type: Optional[str] = None,
        request_id: Optional[str] = None
    ) -> NewUploadedFile:
        """
        Write one file to disk.

        Returns:
            Metadata ready to be recorded against the session

        Raises:
            StorageException: the write failed or timed out
        """
        storage_name, display_name = self._sanitize_filename(original_filename)
        file_path = self._file_path(session_id, field_name, storage_name)

        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(file_path, 'wb') as f:
                await asyncio.wait_for(f.write(content), timeout=self.write_timeout)
        except (OSError, asyncio.TimeoutError) as e:
            if file_path.exists():
                os.remove(file_path)
            logger.error(
                sanitize_log_message(
                    "File write failed",
                    RequestID=request_id,
                    SessionID=session_id,
                    FieldName=field_name,
                    Error=repr(e),
                )
            )
            raise StorageException(detail=f"Failed to store file for field {field_name}") from e

        logger.info(
            sanitize_log_message(
                "File stored",
                RequestID=request_id,
                SessionID=session_id,
                FieldName=field_name,
                StorageName=storage_name,
                FileSize=len(content),
            )
        )

        return NewUploadedFile(
            field_name=field_name,
            original_name=display_name,
            stored_name=storage_name,
            file_path=str(file_path),
            mime_type=mime_type,
            file_size=len(content),
            document_type=document_type,
            checksum=hashlib.sha256(content).hexdigest(),
        )

    def resolve(self, file: UploadedFile) -> Optional[Path]:
        """Path of a stored file, or None when it is missing or outside UPLOAD_DIR."""
        path = Path(file.file_path).resolve()
        if not path.is_relative_to(self.upload_dir.resolve()) or not path.is_file():
            return None
        return path

    def remove(self, paths: Iterable[str], request_id: Optional[str] = None) -> int:
        """
        Delete stored files, then any directories left empty.

        Returns:
            Number of files removed
        """
        removed = 0
        root = self.upload_dir.resolve()
        for raw_path in paths:
            path = Path(raw_path)
            if not path.exists():
                continue
            try:
                os.remove(path)
            except OSError as e:
                logger.warning(
                    sanitize_log_message("Could not remove stored file", RequestID=request_id, Error=repr(e))
                )
                continue
            removed += 1
            parent = path.parent.resolve()
            while parent != root and parent.is_relative_to(root) and not any(parent.iterdir()):
                parent.rmdir()
                parent = parent.parent
        return removed

import logging
import re
import sys
from pathlib import Path
from logging.handlers import TimedRotatingFileHandler
from datetime import datetime, timedelta
from typing import Optional

from secure_upload.config import settings

LOG_FILE_NAME = "secure_upload.log"
LOG_LINE_FORMAT = '%(asctime)s - %(levelname)s - %(request_id)s - [%(filename)s:%(lineno)d] - %(funcName)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

_REQUEST_ID_PATTERN = re.compile(r'\s*\|\s*RequestID:\s*([a-f0-9-]{36})', re.IGNORECASE)

NOISY_LOGGERS = ("uvicorn.access", "uvicorn.error", "httpx", "httpcore", "asyncio", "aiosqlite", "multipart")


class RequestIDFormatter(logging.Formatter):
    """
    Formatter that renders the request id as its own column.

    The id comes from ``extra={"request_id": ...}`` or from the
    ``| RequestID: <uuid>`` suffix appended by ``sanitize_log_message``;
    lines emitted outside a request are tagged ``[SYSTEM]``.
    """

    def __init__(self, datefmt: Optional[str] = DATE_FORMAT):
        super().__init__(LOG_LINE_FORMAT, datefmt=datefmt)

    def format(self, record: logging.LogRecord) -> str:
        request_id = getattr(record, 'RequestID', None) or getattr(record, 'request_id', None)

        if not request_id and isinstance(record.msg, str):
            match = _REQUEST_ID_PATTERN.search(record.msg)
            if match:
                request_id = match.group(1)
                record.msg = _REQUEST_ID_PATTERN.sub('', record.msg)

        record.request_id = f"[{request_id.strip('[]')}]" if request_id else '[SYSTEM]'
        return super().format(record)


def setup_logging(log_dir: Optional[str] = None) -> None:
    """
    Configure application-wide logging with daily file rotation.

    Args:
        log_dir: Overrides ``settings.LOG_DIR`` (used by tests)
    """
    log_path = Path(log_dir or settings.LOG_DIR)
    log_path.mkdir(parents=True, exist_ok=True)

    log_level = settings.get_log_level()
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    formatter = RequestIDFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Rotated files are named secure_upload.log.YYYY-MM-DD
    file_handler = TimedRotatingFileHandler(
        filename=str(log_path / LOG_FILE_NAME),
        when='midnight',
        interval=1,
        backupCount=settings.LOG_RETENTION_DAYS,
        encoding='utf-8'
    )
    file_handler.setLevel(numeric_level)
    file_handler.setFormatter(formatter)
    file_handler.suffix = "%Y-%m-%d"
    root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured - Level: {log_level}, Directory: {log_path.absolute()}")


def cleanup_old_logs(log_dir: Optional[str] = None) -> int:
    """
    Delete rotated log files older than the retention period.

    Returns:
        Number of files removed
    """
    log_path = Path(log_dir or settings.LOG_DIR)
    if not log_path.exists():
        return 0

    logger = logging.getLogger(__name__)
    cutoff_date = datetime.now() - timedelta(days=settings.LOG_RETENTION_DAYS)
    deleted_count = 0

    for log_file in log_path.glob(f"{LOG_FILE_NAME}.*"):
        try:
            file_date = datetime.strptime(log_file.suffix.lstrip('.'), "%Y-%m-%d")
        except ValueError:
            logger.warning(f"Skipping log file with unexpected name: {log_file.name}")
            continue

        if file_date < cutoff_date:
            try:
                log_file.unlink()
            except OSError as e:
                logger.warning(f"Could not delete log file {log_file.name}: {str(e)}")
                continue
            deleted_count += 1
            logger.debug(f"Deleted old log file: {log_file.name}")

    if deleted_count:
        logger.info(
            f"Cleaned up {deleted_count} old log file(s) (older than {settings.LOG_RETENTION_DAYS} days)"
        )
    return deleted_count

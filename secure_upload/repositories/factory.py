import logging
from pathlib import Path

from sqlalchemy.engine import make_url

from secure_upload.config import Settings
from secure_upload.database import create_engine, create_session_factory, init_db
from secure_upload.repositories.base import Store
from secure_upload.repositories.memory import build_memory_store
from secure_upload.repositories.sql import build_sql_store

logger = logging.getLogger(__name__)


def _ensure_sqlite_dir(database_url: str) -> None:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)


async def build_store(settings: Settings) -> Store:
    """
    Build the process-wide store selected by ``STORAGE_BACKEND``.

    For the SQL backing, missing tables are created when ``DB_AUTO_CREATE``
    is set; production deployments run ``alembic upgrade head`` instead.
    """
    if settings.STORAGE_BACKEND == "memory":
        logger.warning("Using in-memory storage - data is lost on restart")
        return build_memory_store()

    _ensure_sqlite_dir(settings.DATABASE_URL)
    engine = create_engine(settings.DATABASE_URL)
    if settings.DB_AUTO_CREATE:
        await init_db(engine)
    logger.info(f"Using SQL storage - Backend: {make_url(settings.DATABASE_URL).get_backend_name()}")
    return build_sql_store(engine, create_session_factory(engine))

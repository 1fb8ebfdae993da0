import os
import tempfile

# Settings are read at import time, so the environment is prepared first
_TMP_ROOT = tempfile.mkdtemp(prefix="secure_upload_tests_")
os.environ["SECRET_KEY"] = "test-secret-key-that-is-at-least-32-characters"
os.environ["ENVIRONMENT"] = "test"
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_ROOT}/app.db"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP_ROOT, "uploads")
os.environ["LOG_DIR"] = os.path.join(_TMP_ROOT, "logs")
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
import pytest_asyncio
from typing import AsyncGenerator, Dict, Generator

from secure_upload.core.security import create_access_token
from secure_upload.database import create_engine, create_session_factory, init_db
from secure_upload.repositories.base import Store
from secure_upload.repositories.memory import build_memory_store
from secure_upload.repositories.sql import build_sql_store
from secure_upload.schemas.auth import CurrentUser
from secure_upload.services.audit_service import AuditService
from secure_upload.services.file_storage import FileStorageService
from secure_upload.services.intake_service import IntakeService
from secure_upload.services.link_service import LinkService
from secure_upload.services.session_service import SessionService
from secure_upload.services.template_service import TemplateService


def token_headers(user: CurrentUser) -> Dict[str, str]:
    """Authorization header carrying a token for the given caller."""
    claims = {"id": user.id, "role": user.role}
    if user.email:
        claims["email"] = user.email
    return {"Authorization": f"Bearer {create_access_token(claims)}"}


# Callers
@pytest.fixture
def admin() -> CurrentUser:
    return CurrentUser(id="admin-1", email="admin@example.com", role="admin")


@pytest.fixture
def compliance() -> CurrentUser:
    return CurrentUser(id="compliance-1", email="compliance@example.com", role="compliance")


@pytest.fixture
def manager() -> CurrentUser:
    return CurrentUser(id="manager-1", email="manager@example.com", role="manager")


@pytest.fixture
def recruiter() -> CurrentUser:
    return CurrentUser(id="recruiter-1", email="recruiter@example.com", role="recruiter")


@pytest.fixture
def other_recruiter() -> CurrentUser:
    return CurrentUser(id="recruiter-2", email="recruiter2@example.com", role="recruiter")


# Stores
@pytest.fixture
def memory_store() -> Store:
    return build_memory_store()


@pytest_asyncio.fixture
async def sql_store(tmp_path) -> AsyncGenerator[Store, None]:
    """SQL store on a throwaway SQLite file."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db")
    await init_db(engine)
    store = build_sql_store(engine, create_session_factory(engine))
    yield store
    await store.close()


@pytest_asyncio.fixture(params=["memory", "sql"])
async def store(request, tmp_path) -> AsyncGenerator[Store, None]:
    """Each test using this runs once per backing."""
    if request.param == "memory":
        yield build_memory_store()
        return

    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db")
    await init_db(engine)
    sql = build_sql_store(engine, create_session_factory(engine))
    yield sql
    await sql.close()


# Services
@pytest.fixture
def file_storage(tmp_path) -> FileStorageService:
    return FileStorageService(upload_dir=str(tmp_path / "uploads"))


@pytest.fixture
def template_service(store) -> TemplateService:
    return TemplateService(store.templates)


@pytest.fixture
def link_service(store) -> LinkService:
    return LinkService(store.links, store.templates, store.sessions)


@pytest.fixture
def session_service(store) -> SessionService:
    return SessionService(store.sessions)


@pytest.fixture
def audit_service(store) -> AuditService:
    return AuditService(store.access_log)


@pytest.fixture
def intake_service(template_service, link_service, session_service, file_storage) -> IntakeService:
    return IntakeService(
        links=link_service,
        templates=template_service,
        sessions=session_service,
        storage=file_storage,
    )


@pytest.fixture
def api_store() -> Store:
    """In-memory store shared by the HTTP client and the test body."""
    return build_memory_store()


@pytest.fixture
def client(api_store, file_storage) -> Generator:
    """Test client with the store and file storage overridden."""
    from fastapi.testclient import TestClient
    from secure_upload.api.deps import get_file_storage, get_store
    from secure_upload.main import app

    app.dependency_overrides[get_store] = lambda: api_store
    app.dependency_overrides[get_file_storage] = lambda: file_storage

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Callable building an Authorization header for a caller."""
    return token_headers

import pathlib
import sys
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi.testclient import TestClient

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from georisk.locations import DEFAULT_LOCATIONS, LocationCatalog
from georisk.main import create_app
from georisk.models import Role
from georisk.record_store import InMemoryRecordStore
from georisk.security import Identity
from georisk.service import ReportService

_ENV_KEYS = (
    "JWT_ISSUER",
    "JWT_AUDIENCE",
    "JWT_SHARED_SECRET",
    "JWT_REQUIRED_CLAIMS",
    "JWT_ROLE_CLAIM",
    "GEORISK_STORE_BACKEND",
    "GEORISK_STORE_DIR",
    "GEORISK_STORE_SQLITE_PATH",
    "GEORISK_LOCATIONS_PATH",
    "GEORISK_REPORTS_KEY",
    "GEORISK_USERS_KEY",
    "POSTGRES_DSN",
)


def _issue_token(*, secret: str, subject: str, role: str, ttl_minutes: int = 30, **extra) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "role": role,
        "exp": int((now + timedelta(minutes=ttl_minutes)).timestamp()),
        "iat": int(now.timestamp()),
        "iss": "test-issuer",
        "aud": "test-audience",
        **extra,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    yield


@pytest.fixture
def record_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def service(record_store: InMemoryRecordStore) -> ReportService:
    return ReportService(record_store=record_store, catalog=LocationCatalog(DEFAULT_LOCATIONS))


@pytest.fixture
def reporter() -> Identity:
    return Identity(id="p1", role=Role.REPORTER)


@pytest.fixture
def reviewer() -> Identity:
    return Identity(id="d1", role=Role.REVIEWER)


@pytest.fixture
def admin() -> Identity:
    return Identity(id="a1", role=Role.ADMIN)


@pytest.fixture
def client(service: ReportService) -> TestClient:
    return TestClient(create_app(service))


@pytest.fixture
def issue_token():
    return _issue_token

import uuid
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from compliance.config import settings
from compliance.database import get_db, init_db
from compliance.main import app
from compliance.services import identity_service
from compliance.utils.security import create_access_token

TEST_PASSWORD = "correct-horse-battery"


def _set_sqlite_pragmas(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture
def tmp_data(tmp_path):
    data_path = tmp_path / "ComplianceData"
    (data_path / "files").mkdir(parents=True)
    return data_path


@pytest.fixture
def test_db(tmp_data):
    db_path = tmp_data / "db.sqlite"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", _set_sqlite_pragmas)
    TestSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    init_db(db_path)

    def override_get_db():
        db = TestSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestSession
    app.dependency_overrides.clear()
    engine.dispose()


@pytest.fixture
def db(test_db):
    session = test_db()
    yield session
    session.close()


@pytest.fixture
def test_settings(tmp_data):
    overrides = {
        "data_path": tmp_data,
        "signup_rate_limit": 1000,
        "login_ip_rate_limit": 1000,
        "login_rate_limit": 1000,
        "verify_rut_check_digit": False,
        "allow_admin_signup": False,
    }
    original = {k: getattr(settings, k) for k in overrides}
    for k, v in overrides.items():
        setattr(settings, k, v)
    yield settings
    for k, v in original.items():
        setattr(settings, k, v)


@pytest.fixture
def client(test_db, test_settings):
    return TestClient(app)


@pytest.fixture
def make_user(test_db):
    """Create a user straight in the database and hand back auth headers."""

    def _make(role: str = "user", email: str | None = None):
        email = email or f"{role}-{uuid.uuid4().hex[:8]}@example.com"
        session = test_db()
        try:
            user = identity_service.create_user(session, email, TEST_PASSWORD, role)
            token = create_access_token(user.id, user.email, user.role)
            return SimpleNamespace(
                id=user.id,
                email=user.email,
                role=user.role,
                password=TEST_PASSWORD,
                token=token,
                headers={"Authorization": f"Bearer {token}"},
            )
        finally:
            session.close()

    return _make


@pytest.fixture
def owner(make_user):
    return make_user("user")


@pytest.fixture
def admin(make_user):
    return make_user("admin")


@pytest.fixture
def professional(make_user):
    return make_user("professional")


COMPANY = {
    "name": "Constructora Andes",
    "rut": "76.123.456-7",
    "city": "Santiago",
    "region": "Metropolitana",
}


@pytest.fixture
def company(client, owner):
    r = client.post("/api/companies", json=COMPANY, headers=owner.headers)
    assert r.status_code == 201, r.text
    return r.json()


@pytest.fixture
def worker(client, owner, company):
    r = client.post("/api/workers", json={
        "company_id": company["id"],
        "first_name": "Ana",
        "last_name": "Rojas",
        "rut": "12.345.678-5",
    }, headers=owner.headers)
    assert r.status_code == 201, r.text
    return r.json()

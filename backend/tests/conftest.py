"""Pytest fixtures — SQLite database per test, API client wired to it."""
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from trainbuddy.database import Base, get_db
from trainbuddy.main import app
from trainbuddy.sample_trains import SAMPLE_TRAINS
from trainbuddy.services.train_service import seed_trains
from trainbuddy.store.document_store import DocumentStore

# Import all models so they register with Base.metadata
from trainbuddy.models.document import Document                  # noqa: F401
from trainbuddy.models.credential import Credential, AuthToken   # noqa: F401

SQLITE_URL = "sqlite:///./test.db"

# Collection, equality fields, order field
MESSAGES_INDEX = ("messages", frozenset({"group_id"}), "timestamp")


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})

    # Enable WAL mode for better concurrency
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(db_engine):
    """Yield a database session, closed after the test."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def store(db):
    """Document store with the messages index declared."""
    return DocumentStore(db, indexes={MESSAGES_INDEX})


@pytest.fixture(scope="function")
def catalog(store):
    """Store preloaded with the sample trains."""
    seed_trains(store, SAMPLE_TRAINS)
    return store


@pytest.fixture(scope="function")
def client(db_engine):
    """FastAPI TestClient with the database dependency overridden to use SQLite."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

    def _override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def seeded_client(client, catalog):
    """API client whose database already holds the sample trains."""
    return client


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def sign_up(client: TestClient, email: str = "rider@commuters.in", name: str = "Test Rider",
            password: str = "secret123") -> dict:
    """Helper — POST /api/auth/signup and return response JSON (token + user)."""
    resp = client.post("/api/auth/signup", json={
        "email": email,
        "password": password,
        "display_name": name,
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


def auth(account: dict) -> dict:
    """Authorization header for an account returned by ``sign_up``."""
    return {"Authorization": f"Bearer {account['token']}"}


def create_test_group(client: TestClient, account: dict, name: str = "Morning Commute",
                      train_number: str = "12951", **extra) -> dict:
    """Helper — POST /api/groups and return response JSON."""
    resp = client.post("/api/groups/", headers=auth(account), json={
        "group_name": name,
        "train_number": train_number,
        "journey_date": "2030-01-15",
        **extra,
    })
    assert resp.status_code == 201, resp.text
    return resp.json()

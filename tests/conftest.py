import os
import tempfile
from typing import Generator

# Keep the app's startup hook away from ./app.db during tests
os.environ.setdefault("DATABASE_URL", "sqlite:///" + os.path.join(tempfile.mkdtemp(), "test.db"))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront import crud, schemas
from storefront.db import Base, enable_sqlite_foreign_keys
from storefront.main import app, get_db


@pytest.fixture(scope="function")
def engine():
    # Use in-memory SQLite with a single connection
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator:
    db = session_factory()
    crud.ensure_defaults(db)
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def client(db_session):
    # Override dependency to use the same session
    def override_get_db():
        try:
            yield db_session
        finally:
            pass
    app.dependency_overrides[get_db] = override_get_db
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session):
    def _make(username, role, password="secret", name=None):
        return crud.create_user(
            db_session,
            schemas.UserCreate(username=username, password=password, role=role, name=name or username),
        )
    return _make


@pytest.fixture
def login(client, make_user):
    """Create an account and return Authorization headers for it."""
    def _login(username, role, password="secret"):
        make_user(username, role, password)
        r = client.post("/auth/login", json={"username": username, "password": password, "role": role})
        assert r.status_code == 200, r.text
        return {"Authorization": f"Bearer {r.json()['access_token']}"}
    return _login

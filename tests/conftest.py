from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storyforest.catalog import googlebooks_service, openlibrary_service
from storyforest.config import get_settings
from storyforest.database import get_db
from storyforest.main import app
from storyforest.tables import Base


@pytest.fixture(autouse=True)
def settings():
    get_settings.cache_clear()
    settings = get_settings()
    # Never download the embedding model during tests
    settings.ranking_enabled = False
    yield settings
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def http_responses(monkeypatch):
    """Replace outbound HTTP with canned JSON keyed by URL fragment.

    Tests add ``responses[fragment] = payload``; any URL that matches no
    fragment behaves like an unreachable server.
    """
    fake = SimpleNamespace(responses={}, calls=[])

    def _get(url, timeout=None):
        fake.calls.append(url)
        for fragment, payload in fake.responses.items():
            if fragment in url:
                return payload
        return None

    monkeypatch.setattr(openlibrary_service, "http_get_json", _get)
    monkeypatch.setattr(googlebooks_service, "http_get_json", _get)
    return fake


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield lambda: TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def client(make_client):
    return make_client()


@pytest.fixture
def register():
    def _register(client, username, is_public=True, name=None, password="secret-pass"):
        resp = client.post(
            "/api/register",
            json={
                "username": username,
                "password": password,
                "email": f"{username}@example.com",
                "name": name or username.title(),
                "is_public": is_public,
            },
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _register


@pytest.fixture
def parent(make_client, register):
    """A logged-in client for a public account named ``alice``."""
    c = make_client()
    c.user = register(c, "alice")
    return c


@pytest.fixture
def other_parent(make_client, register):
    """A second logged-in client, account ``bob`` (public)."""
    c = make_client()
    c.user = register(c, "bob")
    return c


@pytest.fixture
def add_child():
    def _add_child(client, name="Hazel", birth_month=5, birth_year=2019):
        resp = client.post(
            "/api/children",
            json={"name": name, "birth_month": birth_month, "birth_year": birth_year},
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _add_child

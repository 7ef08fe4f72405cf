import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from mapala.config import Settings
from mapala.database import create_db_and_tables, get_session, make_engine
from mapala.main import create_app


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def settings(engine, tmp_path):
    return Settings(
        database_url=str(engine.url),
        secret_key="test-secret",
        public_dir=str(tmp_path / "public"),
    )


@pytest.fixture
def app(engine, settings):
    app = create_app(settings)

    # Dependency override for testing
    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def logged_in_client(client):
    client.post("/register", json={"username": "ranger", "password": "summit"})
    response = client.post("/login", json={"username": "ranger", "password": "summit"})
    assert response.status_code == 200
    return client

# tests/conftest.py

import httpx
import pytest
from fastapi.testclient import TestClient

from api import create_app
from Database import DatabaseManager
from Database.DatabaseConfig import AppConfig, DatabaseConfig, NVDConfig, SecurityConfig
from Services.NVDFeedAdapter import NVDFeedAdapter
from tests.samples import NVD_URL, FeedRecorder

TOKENS = {"token-u1": "U1", "token-u2": "U2"}


@pytest.fixture
def config():
    return AppConfig(
        database=DatabaseConfig(url="sqlite://"),
        nvd=NVDConfig(base_url=NVD_URL, timeout=5),
        security=SecurityConfig(api_tokens=dict(TOKENS)),
        environment="test",
    )


@pytest.fixture
def db_manager():
    manager = DatabaseManager("sqlite://")
    manager.create_all()
    yield manager
    manager.dispose()


@pytest.fixture
def db(db_manager):
    session = db_manager.session()
    yield session
    session.close()


@pytest.fixture
def feed_recorder():
    return FeedRecorder()


@pytest.fixture
def feed(config, feed_recorder):
    client = httpx.Client(transport=httpx.MockTransport(feed_recorder))
    adapter = NVDFeedAdapter(config.nvd, client=client)
    yield adapter
    client.close()


@pytest.fixture
def client(config, db_manager, feed):
    app = create_app(config=config, db=db_manager, feed=feed)
    with TestClient(app) as test_client:
        yield test_client


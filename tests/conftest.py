import os

os.environ.setdefault("JWT_PRIVATE_KEY", "test-private-key")

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from auth import AUTH_HEADER, issue_token
from config import Settings, get_settings
from database import ensure_indexes, get_db
from main import app


def auth_header(token):
    return {AUTH_HEADER: token}


@pytest.fixture
def settings():
    return Settings(jwt_private_key="test-private-key")


@pytest.fixture
def db():
    database = mongomock.MongoClient()["vidly_tests"]
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db, settings):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_token(settings):
    def _make(is_admin=False, user_id=None):
        return issue_token(user_id or str(ObjectId()), is_admin, settings)

    return _make


@pytest.fixture
def token(make_token):
    return make_token()


@pytest.fixture
def admin_token(make_token):
    return make_token(is_admin=True)

import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app

BASIC_USER = "admin"
BASIC_PASS = "s3cret"


@pytest.fixture
def db():
    mongo = mongomock.MongoClient()
    yield mongo["ecommerce"]
    mongo.drop_database("ecommerce")


@pytest.fixture
def client(db):
    return TestClient(create_app(Settings(), db=db))


@pytest.fixture
def auth_client(db):
    settings = Settings(basic_user=BASIC_USER, basic_pass=BASIC_PASS)
    return TestClient(create_app(settings, db=db))


@pytest.fixture
def offline_client():
    # no connection string configured, so the app runs without a database
    return TestClient(create_app(Settings()))

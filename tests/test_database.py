import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from config import Settings
from database import check_connection, connect, ensure_indexes, get_collection, serialize_doc
from main import create_app
from schemas import SearchLog


class UnreachableDatabase:
    name = "ecommerce"

    def command(self, *args, **kwargs):
        raise ConnectionError("server selection timeout")


def test_connect_without_url_returns_none():
    assert connect(Settings()) is None


@pytest.mark.parametrize("url", [
    "mongodb+srv://cluster0.does-not-exist.invalid/",
    "mongodb://user:p@ss:word@host:badport",
])
def test_bad_connection_string_does_not_stop_the_app(url, caplog):
    app = create_app(Settings(database_url=url))
    assert app.state.db is None
    assert "Connection failed" in caplog.text

    client = TestClient(app)
    assert client.get("/").status_code == 200
    r = client.get("/api/products")
    assert r.status_code == 500
    assert r.json() == {"error": "Error fetching products"}


def test_client_returns_aware_datetimes():
    db = connect(Settings(database_url="mongodb://localhost:27017"))
    try:
        assert db.codec_options.tz_aware
    finally:
        db.client.close()


def test_get_collection_requires_database():
    with pytest.raises(RuntimeError):
        get_collection(None, "products")


def test_failed_ping_is_logged_not_raised(caplog):
    assert check_connection(UnreachableDatabase()) is False
    assert "Connection failed" in caplog.text


def test_usernames_are_unique(db):
    ensure_indexes(db)
    db["users"].insert_one({"username": "alice", "password": "x"})
    with pytest.raises(mongomock.DuplicateKeyError):
        db["users"].insert_one({"username": "alice", "password": "y"})


def test_serialize_doc_exposes_string_id():
    oid, ref = ObjectId(), ObjectId()
    doc = serialize_doc({"_id": oid, "name": "Widget", "owner": ref})
    assert doc == {"_id": str(oid), "id": str(oid), "name": "Widget", "owner": str(ref)}


def test_search_logs_indexed_by_client(db):
    ensure_indexes(db)
    db["searchlogs"].insert_one(SearchLog(client="web", query="desk lamp").to_document())

    indexed = [list(index["key"]) for index in db["searchlogs"].index_information().values()]
    assert [("client", 1)] in indexed
    assert db["searchlogs"].find_one({"client": "web"})["createdAt"] is not None

"""
MongoDB access

One MongoClient per process, created at startup. Route handlers receive the
database through the get_db dependency.
"""

import logging
from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi import Request
from pymongo import DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

from config import Settings

logger = logging.getLogger("catalog.db")

PRODUCTS = "products"
USERS = "users"
SEARCH_LOGS = "searchlogs"


def connect(settings: Settings) -> Optional[Database]:
    if not settings.database_url:
        logger.error("No MongoDB connection string configured (MONGODB_URI)")
        return None
    try:
        client = MongoClient(settings.database_url, tz_aware=True)
    except (PyMongoError, ValueError) as e:
        logger.error("Connection failed: %s", e)
        return None
    return client[settings.database_name]


def check_connection(db: Database) -> bool:
    try:
        db.command("ping")
    except Exception as e:
        logger.error("Connection failed: %s", e)
        return False
    logger.info("Connected to database %s", db.name)
    return True


def ensure_indexes(db: Database) -> None:
    try:
        db[USERS].create_index("username", unique=True)
        db[SEARCH_LOGS].create_index("client")
        db[PRODUCTS].create_index([("createdAt", DESCENDING)])
    except Exception as e:
        logger.error("Index creation failed: %s", e)


def get_db(request: Request) -> Optional[Database]:
    return request.app.state.db


def get_collection(db: Optional[Database], name: str) -> Collection:
    if db is None:
        raise RuntimeError("Database not configured")
    return db[name]


def serialize_doc(doc: Dict[str, Any]) -> Dict[str, Any]:
    if not doc:
        return doc
    doc = dict(doc)
    if doc.get("_id") is not None:
        doc["_id"] = str(doc["_id"])
        doc["id"] = doc["_id"]
    for k, v in list(doc.items()):
        if isinstance(v, ObjectId):
            doc[k] = str(v)
    return doc

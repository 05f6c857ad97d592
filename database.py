"""
MongoDB access for plantNet.

`db` is None when no connection is configured; routes receive it through
`get_db`, which answers 500 in that case.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import HTTPException
from pymongo import MongoClient

from config import DATABASE_NAME, DATABASE_URL

logger = logging.getLogger(__name__)

db = None

if DATABASE_URL and DATABASE_NAME:
    _client = MongoClient(DATABASE_URL)
    db = _client[DATABASE_NAME]
    logger.info("Connected to MongoDB database %s", DATABASE_NAME)
else:
    logger.warning("DATABASE_URL/DATABASE_NAME not set, running without a database")


def get_db():
    """FastAPI dependency returning the database handle or answering 500."""
    if db is None:
        raise HTTPException(status_code=500, detail="Database not available")
    return db


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def create_document(collection_name: str, data: Dict[str, Any], database=None) -> str:
    """Insert a document stamped with created_at/updated_at and return its id as a string."""
    target = database if database is not None else db
    if target is None:
        raise RuntimeError("Database not available")
    doc = dict(data)
    doc.setdefault("created_at", now_utc())
    doc["updated_at"] = now_utc()
    result = target[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
                  database=None) -> List[Dict[str, Any]]:
    target = database if database is not None else db
    if target is None:
        raise RuntimeError("Database not available")
    return list(target[collection_name].find(filter_dict or {}))


def ensure_indexes(database):
    """One order per paid transaction; orders without a transactionId are exempt."""
    database["orders"].create_index(
        "transactionId",
        unique=True,
        partialFilterExpression={"transactionId": {"$type": "string"}},
    )


def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Stringify ObjectId values so a document can be returned as JSON."""
    if doc is None:
        return None
    return {k: str(v) if isinstance(v, ObjectId) else v for k, v in doc.items()}


def insert_ack(result) -> Dict[str, Any]:
    return {"acknowledged": result.acknowledged, "insertedId": str(result.inserted_id)}


def update_ack(result) -> Dict[str, Any]:
    return {
        "acknowledged": result.acknowledged,
        "matchedCount": result.matched_count,
        "modifiedCount": result.modified_count,
    }


def delete_ack(result) -> Dict[str, Any]:
    return {"acknowledged": result.acknowledged, "deletedCount": result.deleted_count}

"""
MongoDB access for the storefront.

`db` is the module-level database handle (None when DATABASE_URL is unset).
Routers never touch it directly; they take it through the `get_db`
dependency so tests can swap in another database.
"""

from datetime import datetime
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException
from pymongo import MongoClient

from config import DATABASE_URL, DATABASE_NAME

_client = MongoClient(DATABASE_URL) if DATABASE_URL else None
db = _client[DATABASE_NAME] if _client is not None else None


def get_db():
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db


def ensure_indexes(database) -> None:
    # one account per email
    database["user"].create_index("email", unique=True)


def to_object_id(id_str) -> ObjectId:
    if isinstance(id_str, ObjectId):
        return id_str
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail="Invalid id format")


def is_valid_object_id(id_str) -> bool:
    return ObjectId.is_valid(id_str)


def doc_to_json(doc: Optional[dict]) -> Optional[dict]:
    """Make a stored document JSON friendly: `_id` becomes `id`, ObjectIds and
    datetimes become strings, nested documents are converted recursively."""
    if not doc:
        return doc
    out = {}
    for k, v in doc.items():
        key = "id" if k == "_id" else k
        out[key] = _to_json_value(v)
    return out


def _to_json_value(v):
    if isinstance(v, ObjectId):
        return str(v)
    if isinstance(v, datetime):
        return v.isoformat()
    if isinstance(v, dict):
        return doc_to_json(v)
    if isinstance(v, list):
        return [_to_json_value(x) for x in v]
    return v


def create_document(database, collection_name: str, data: dict) -> dict:
    """Insert `data` and return it with its assigned `_id`."""
    doc = dict(data)
    doc["_id"] = database[collection_name].insert_one(doc).inserted_id
    return doc


def get_documents(database, collection_name: str, filter_dict: Optional[dict] = None,
                  limit: int = 0, sort=None) -> list:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)

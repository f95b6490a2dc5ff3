"""
MongoDB helpers

Thin wrappers over pymongo used by the API. Every record is an independent
document; references between documents are stored as ObjectIds and resolved
by the callers.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import MongoClient

import config
from errors import DatabaseUnavailable

logger = logging.getLogger(__name__)

_client = None
db = None

if config.DATABASE_URL and config.DATABASE_NAME:
    _client = MongoClient(config.DATABASE_URL, tz_aware=True)
    db = _client[config.DATABASE_NAME]
else:
    logger.warning("DATABASE_URL / DATABASE_NAME not set, database not available")


def _collection(collection_name: str):
    if db is None:
        raise DatabaseUnavailable("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")
    return db[collection_name]


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Coerce a string id to ObjectId, returning None when it is not a valid id."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def create_document(collection_name: str, data: Union[BaseModel, dict]) -> ObjectId:
    """Insert a document, stamping created_at/updated_at. Returns the new id."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = data.copy()

    now = datetime.now(timezone.utc)
    data_dict["created_at"] = now
    data_dict["updated_at"] = now

    result = _collection(collection_name).insert_one(data_dict)
    return result.inserted_id


def get_document(collection_name: str, doc_id: Any, projection: Optional[dict] = None) -> Optional[dict]:
    oid = to_object_id(doc_id)
    if oid is None:
        return None
    return _collection(collection_name).find_one({"_id": oid}, projection)


def get_documents(
    collection_name: str,
    filter_dict: Optional[dict] = None,
    limit: Optional[int] = None,
    sort: Optional[List[tuple]] = None,
    projection: Optional[dict] = None,
) -> List[Dict[str, Any]]:
    cursor = _collection(collection_name).find(filter_dict or {}, projection)
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def get_documents_by_ids(collection_name: str, ids: Iterable[Any], sort: Optional[List[tuple]] = None,
                         projection: Optional[dict] = None) -> List[Dict[str, Any]]:
    oids = [oid for oid in (to_object_id(i) for i in ids) if oid is not None]
    if not oids:
        return []
    return get_documents(collection_name, {"_id": {"$in": oids}}, sort=sort, projection=projection)


def update_document(collection_name: str, filter_dict: dict, changes: dict) -> Optional[dict]:
    """Apply $set changes to the first match and return the updated document."""
    changes = dict(changes, updated_at=datetime.now(timezone.utc))
    coll = _collection(collection_name)
    result = coll.update_one(filter_dict, {"$set": changes})
    if result.matched_count == 0:
        return None
    return coll.find_one(filter_dict)


def add_to_array(collection_name: str, doc_id: Any, field: str, value: Any) -> bool:
    """Append value to an array field unless already present. Returns whether the target exists."""
    oid = to_object_id(doc_id)
    if oid is None:
        return False
    result = _collection(collection_name).update_one({"_id": oid}, {"$addToSet": {field: value}})
    return result.matched_count > 0


def list_collections() -> List[str]:
    if db is None:
        raise DatabaseUnavailable("Database not available.")
    return db.list_collection_names()

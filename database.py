"""
Database access

MongoDB connection and the generic collection helpers used by the routes.
Each collection holds one entity, named after the lowercase schema class:
- Customer -> "customer"
- Genre -> "genre"
- Movie -> "movie"
- User -> "user"
- Rental -> "rental"
"""

import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple, Union

from bson import ObjectId
from fastapi import Depends, HTTPException
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.database import Database

from config import Settings, get_settings

logger = logging.getLogger(__name__)


@lru_cache
def _connect(database_url: str, database_name: str) -> Database:
    logger.info("Connecting to MongoDB database %s", database_name)
    client = MongoClient(database_url)
    return client[database_name]


def get_db(settings: Settings = Depends(get_settings)) -> Database:
    if not settings.database_url or not settings.database_name:
        raise HTTPException(status_code=500, detail="Database not configured")
    return _connect(settings.database_url, settings.database_name)


def ensure_indexes(db: Database):
    db["user"].create_index([("email", ASCENDING)], unique=True)
    db["rental"].create_index([("customer._id", ASCENDING), ("movie._id", ASCENDING)])


def to_object_id(id_str: Any) -> Optional[ObjectId]:
    """Parse an id; anything that is not a valid ObjectId gives None."""
    if isinstance(id_str, ObjectId):
        return id_str
    if not isinstance(id_str, str) or not ObjectId.is_valid(id_str):
        return None
    return ObjectId(id_str)


def create_document(db: Database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True)
    result = db[collection_name].insert_one(dict(data))
    return str(result.inserted_id)


def find_document(db: Database, collection_name: str, id_str: Any) -> Optional[dict]:
    oid = to_object_id(id_str)
    if oid is None:
        return None
    return db[collection_name].find_one({"_id": oid})


def get_documents(
    db: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Optional[List[Tuple[str, int]]] = None,
) -> List[dict]:
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    return list(cursor)


def update_document(db: Database, collection_name: str, id_str: Any, fields: dict) -> Optional[dict]:
    oid = to_object_id(id_str)
    if oid is None:
        return None
    return db[collection_name].find_one_and_update(
        {"_id": oid},
        {"$set": fields},
        return_document=ReturnDocument.AFTER,
    )


def delete_document(db: Database, collection_name: str, id_str: Any) -> Optional[dict]:
    oid = to_object_id(id_str)
    if oid is None:
        return None
    return db[collection_name].find_one_and_delete({"_id": oid})

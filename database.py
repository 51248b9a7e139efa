"""
Database access

MongoDB connection and small helpers shared by the repositories.
Connection settings come from the environment (or a .env file):
- DATABASE_URL   e.g. mongodb://localhost:27017
- DATABASE_NAME  e.g. sipena
"""
import os
import logging
from typing import Optional, Union
from bson import ObjectId
from bson.errors import InvalidId
from dotenv import load_dotenv
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "sipena")

db: Optional[Database] = None

if DATABASE_URL:
    try:
        client = MongoClient(DATABASE_URL)
        db = client[DATABASE_NAME]
    except Exception as e:
        logger.error("Could not initialize MongoDB client: %s", e)
        db = None


def to_object_id(value: str) -> Optional[ObjectId]:
    """ObjectId for a string id, or None when it is not one."""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def serialize(doc: Optional[dict]) -> Optional[dict]:
    """Mongo document -> plain dict with a string `id` instead of `_id`."""
    if not doc:
        return doc
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d


def create_document(database: Database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document and return the generated id."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)
    data_dict.pop("id", None)
    data_dict.pop("_id", None)
    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(database: Database, collection_name: str, filter_dict: Optional[dict] = None) -> list:
    return [serialize(d) for d in database[collection_name].find(filter_dict or {})]


def update_document(database: Database, collection_name: str, doc_id: str, fields: dict) -> bool:
    """$set the given fields on one document. False when nothing matched."""
    oid = to_object_id(doc_id)
    if oid is None:
        return False
    res = database[collection_name].update_one({"_id": oid}, {"$set": fields})
    return res.matched_count > 0


def delete_document(database: Database, collection_name: str, doc_id: str) -> bool:
    oid = to_object_id(doc_id)
    if oid is None:
        return False
    res = database[collection_name].delete_one({"_id": oid})
    return res.deleted_count > 0

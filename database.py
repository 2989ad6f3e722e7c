"""
MongoDB access for the POS backend.

A Store wraps one pymongo Database. It is constructed explicitly (Store.connect
in production, Store(db) in tests) and handed to request handlers through a
FastAPI dependency rather than living in a module global.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient, ReturnDocument

logger = logging.getLogger(__name__)


def as_object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def serialize_document(value: Any) -> Any:
    """Render ObjectIds as strings so documents can be returned as JSON."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: serialize_document(v) for k, v in value.items()}
    if isinstance(value, list):
        return [serialize_document(v) for v in value]
    return value


class Store:
    def __init__(self, db, client: Optional[MongoClient] = None):
        self.db = db
        self._client = client

    @classmethod
    def connect(cls, url: str, name: str) -> "Store":
        client = MongoClient(url)
        logger.info("MongoDB client created for database %s", name)
        return cls(client[name], client=client)

    def close(self):
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info("MongoDB client closed")

    @property
    def name(self) -> str:
        return self.db.name

    def ensure_indexes(self):
        self.db["user"].create_index([("email", ASCENDING)], unique=True)

    def collection_names(self) -> List[str]:
        return self.db.list_collection_names()

    def create_document(self, collection_name: str, data: Union[BaseModel, dict]) -> str:
        if isinstance(data, BaseModel):
            data_dict = data.model_dump()
        else:
            data_dict = dict(data)
        now = datetime.now(timezone.utc)
        data_dict["created_at"] = now
        data_dict["updated_at"] = now
        result = self.db[collection_name].insert_one(data_dict)
        return str(result.inserted_id)

    def get_documents(self, collection_name: str, filter_dict: Optional[dict] = None,
                      limit: Optional[int] = None, sort: Optional[list] = None) -> List[dict]:
        cursor = self.db[collection_name].find(filter_dict or {})
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    def get_documents_by_ids(self, collection_name: str, ids: Iterable[Any]) -> Dict[str, dict]:
        object_ids = {oid for oid in (as_object_id(i) for i in ids) if oid is not None}
        if not object_ids:
            return {}
        docs = self.db[collection_name].find({"_id": {"$in": list(object_ids)}})
        return {str(d["_id"]): d for d in docs}

    def update_document(self, collection_name: str, doc_id: str, fields: dict) -> Optional[dict]:
        """Apply `$set` to one document; returns the document as it was before, or None."""
        oid = as_object_id(doc_id)
        if oid is None:
            return None
        update = dict(fields)
        update["updated_at"] = datetime.now(timezone.utc)
        return self.db[collection_name].find_one_and_update(
            {"_id": oid}, {"$set": update}, return_document=ReturnDocument.BEFORE
        )

    def delete_document(self, collection_name: str, doc_id: str) -> Optional[dict]:
        oid = as_object_id(doc_id)
        if oid is None:
            return None
        return self.db[collection_name].find_one_and_delete({"_id": oid})

"""
Common plumbing for the MongoDB repositories.
"""

import logging
from contextlib import contextmanager
from typing import Dict, Iterable, List, Optional, Tuple, Type

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from flatmates.db import USERS
from flatmates.exceptions import NotFoundError, StoreError, ValidationError
from flatmates.models.base import MongoModel, to_object_id, utcnow

logger = logging.getLogger("uvicorn.error")


def projection_without(fields: Iterable[str]) -> Optional[Dict[str, int]]:
    fields = list(fields)
    return {f: 0 for f in fields} if fields else None


def projection_of(fields: Iterable[str]) -> Dict[str, int]:
    return {f: 1 for f in fields}


def user_summaries(db: Database, ids: Iterable[ObjectId], fields=("name", "avatar")) -> Dict[ObjectId, dict]:
    """Look up the listed fields of several users in one query, keyed by id."""
    ids = list({i for i in ids if i is not None})
    if not ids:
        return {}
    cursor = db[USERS].find({"_id": {"$in": ids}}, projection_of(fields))
    return {doc["_id"]: doc for doc in cursor}


class MongoRepository:
    """CRUD over one collection whose documents follow ``model``."""

    collection_name: str = ""
    model: Type[MongoModel] = MongoModel
    not_found_msg = "Not found"
    duplicate_msg = "Document already exists"

    def __init__(self, db: Database):
        self.db = db
        self.collection = db[self.collection_name]

    @contextmanager
    def errors(self, duplicate_msg=None):
        try:
            yield
        except DuplicateKeyError:
            raise ValidationError(duplicate_msg or self.duplicate_msg)
        except PyMongoError as exc:
            logger.error("%s store failure: %s", self.collection_name, exc, exc_info=True)
            raise StoreError(str(exc)) from exc

    def oid(self, value) -> ObjectId:
        return to_object_id(value, self.not_found_msg)

    def create(self, data: dict) -> dict:
        document = self.model.validate_document(data).to_document()
        with self.errors():
            result = self.collection.insert_one(document)
        document["_id"] = result.inserted_id
        return document

    def get(self, id, projection=None) -> dict:
        with self.errors():
            doc = self.collection.find_one({"_id": self.oid(id)}, projection)
        if doc is None:
            raise NotFoundError(self.not_found_msg)
        return doc

    def find_one(self, filter: dict, projection=None) -> Optional[dict]:
        with self.errors():
            return self.collection.find_one(filter, projection)

    def update(self, id, fields: dict, projection=None, duplicate_msg=None) -> dict:
        """Apply a partial update after checking the merged document still validates."""
        current = self.get(id)
        merged = {**current, **fields}
        validated = self.model.validate_document(merged).to_document()

        # Store the normalised values; keys outside the model are dropped
        changes = {k: validated[k] for k in fields if k in validated}
        changes["updatedAt"] = utcnow()
        with self.errors(duplicate_msg):
            doc = self.collection.find_one_and_update(
                {"_id": current["_id"]},
                {"$set": changes},
                projection=projection,
                return_document=ReturnDocument.AFTER,
            )
        if doc is None:
            raise NotFoundError(self.not_found_msg)
        return doc

    def delete(self, id):
        with self.errors():
            result = self.collection.delete_one({"_id": self.oid(id)})
        if result.deleted_count == 0:
            raise NotFoundError(self.not_found_msg)

    def paginate(self, filter: dict, page: int, limit: int, projection=None,
                 sort=(("createdAt", DESCENDING),)) -> Tuple[List[dict], int]:
        skip = (page - 1) * limit
        with self.errors():
            docs = list(
                self.collection.find(filter, projection)
                .sort(list(sort))
                .skip(skip)
                .limit(limit)
            )
            total = self.collection.count_documents(filter)
        return docs, total

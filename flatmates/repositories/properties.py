from typing import Iterable, List, Tuple

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument

from flatmates.db import PROPERTIES
from flatmates.exceptions import NotFoundError
from flatmates.models.property import Property
from flatmates.repositories.base import MongoRepository, user_summaries


class PropertyRepository(MongoRepository):
    collection_name = PROPERTIES
    model = Property
    not_found_msg = "Property not found"

    def get_and_count_view(self, id) -> dict:
        with self.errors():
            doc = self.collection.find_one_and_update(
                {"_id": self.oid(id)},
                {"$inc": {"views": 1}},
                return_document=ReturnDocument.AFTER,
            )
        if doc is None:
            raise NotFoundError(self.not_found_msg)
        return doc

    def adjust_saves(self, id: ObjectId, delta: int):
        with self.errors():
            self.collection.update_one({"_id": id}, {"$inc": {"saves": delta}})

    def search(self, filter: dict, page: int = 1, limit: int = 10) -> Tuple[List[dict], int]:
        return self.paginate(filter, page, limit)

    def list_by_owner(self, owner_id: ObjectId) -> List[dict]:
        with self.errors():
            return list(self.collection.find({"owner": owner_id}).sort("createdAt", DESCENDING))

    def list_by_ids(self, ids: Iterable[ObjectId]) -> List[dict]:
        with self.errors():
            return list(self.collection.find({"_id": {"$in": list(ids)}}))

    def with_owners(self, docs: List[dict], fields=("name", "avatar")) -> List[dict]:
        """Replace each ``owner`` id with a summary of the owning user."""
        owners = user_summaries(self.db, (d.get("owner") for d in docs), fields)
        for doc in docs:
            doc["owner"] = owners.get(doc.get("owner"), doc.get("owner"))
        return docs

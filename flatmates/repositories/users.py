import re
from typing import List, Optional, Tuple

from bson import ObjectId
from pymongo import ReturnDocument

from flatmates.db import USERS
from flatmates.exceptions import NotFoundError
from flatmates.models.base import to_object_id, utcnow
from flatmates.models.user import (
    Notification,
    PRIVATE_FIELDS,
    PUBLIC_HIDDEN_FIELDS,
    User,
)
from flatmates.repositories.base import MongoRepository, projection_without


def contains(text: str) -> dict:
    """Case-insensitive substring match, with the user's text taken literally."""
    return {"$regex": re.escape(text), "$options": "i"}


class UserRepository(MongoRepository):
    collection_name = USERS
    model = User
    not_found_msg = "User not found"
    duplicate_msg = "User already exists"

    def create(self, data: dict) -> dict:
        data = dict(data)
        data["email"] = data.get("email", "").strip().lower()
        return super().create(data)

    def get_private(self, id) -> dict:
        """The user as its owner sees it (no password)."""
        return self.get(id, projection_without(PRIVATE_FIELDS))

    def get_public(self, id) -> dict:
        return self.get(id, projection_without(PUBLIC_HIDDEN_FIELDS))

    def find_by_email(self, email: str, **extra) -> Optional[dict]:
        return self.find_one({"email": email.strip().lower(), **extra})

    def find_by_social(self, provider: str, social_id: str) -> Optional[dict]:
        return self.find_one({"socialProvider": provider, "socialId": social_id})

    def update_profile(self, id, fields: dict) -> dict:
        if "email" in fields:
            fields = {**fields, "email": fields["email"].strip().lower()}
        return self.update(id, fields, projection_without(PRIVATE_FIELDS), "Email is already in use")

    def set_password(self, id, password_hash: str):
        with self.errors():
            result = self.collection.update_one(
                {"_id": self.oid(id)},
                {"$set": {"password": password_hash, "updatedAt": utcnow()}},
            )
        if result.matched_count == 0:
            raise NotFoundError(self.not_found_msg)

    def search(self, user_type: Optional[str] = None, city: Optional[str] = None,
               search: Optional[str] = None, page: int = 1, limit: int = 10) -> Tuple[List[dict], int]:
        filter = {}
        if user_type:
            filter["userType"] = user_type
        if city:
            filter["preferences.location"] = contains(city)
        if search:
            filter["$or"] = [{"name": contains(search)}, {"bio": contains(search)}]
        return self.paginate(filter, page, limit, projection_without(PUBLIC_HIDDEN_FIELDS))

    # -------- notifications --------

    def list_notifications(self, id) -> List[dict]:
        doc = self.get(id, {"notifications": 1})
        return doc.get("notifications", [])

    def push_notification(self, id, type: str, content: str, related_to: Optional[ObjectId] = None):
        notification = Notification.validate_document(
            {"type": type, "content": content, "relatedTo": related_to}
        ).to_document()
        with self.errors():
            self.collection.update_one(
                {"_id": self.oid(id)},
                {"$push": {"notifications": notification}, "$set": {"updatedAt": utcnow()}},
            )
        return notification

    def mark_notification_read(self, id, notification_id):
        user_id = self.oid(id)
        notification_oid = to_object_id(notification_id, "Notification not found")
        with self.errors():
            result = self.collection.update_one(
                {"_id": user_id, "notifications._id": notification_oid},
                {"$set": {"notifications.$.read": True, "updatedAt": utcnow()}},
            )
        if result.matched_count == 0:
            # Tell a vanished user apart from a missing notification
            self.get(user_id, {"_id": 1})
            raise NotFoundError("Notification not found")

    # -------- saved properties --------

    def toggle_saved_property(self, id, property_id: ObjectId) -> Tuple[bool, List[ObjectId]]:
        """Save the property if it is not saved yet, otherwise unsave it."""
        user = self.get(id, {"savedProperties": 1})
        saved = property_id in user.get("savedProperties", [])
        op = "$pull" if saved else "$addToSet"
        with self.errors():
            doc = self.collection.find_one_and_update(
                {"_id": user["_id"]},
                {op: {"savedProperties": property_id}, "$set": {"updatedAt": utcnow()}},
                projection={"savedProperties": 1},
                return_document=ReturnDocument.AFTER,
            )
        return not saved, doc.get("savedProperties", [])

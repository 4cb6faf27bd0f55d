from typing import Iterable, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING

from flatmates.db import CONVERSATIONS, MESSAGES, PROPERTIES
from flatmates.models.base import utcnow
from flatmates.models.conversation import Conversation, Message
from flatmates.repositories.base import MongoRepository, projection_of, user_summaries


class ConversationRepository(MongoRepository):
    collection_name = CONVERSATIONS
    model = Conversation
    not_found_msg = "Conversation not found"

    def find_between(self, user_id: ObjectId, other_id: ObjectId,
                     property_id: Optional[ObjectId] = None) -> Optional[dict]:
        filter = {"participants": {"$all": [user_id, other_id]}}
        filter["property"] = property_id if property_id else {"$exists": False}
        return self.find_one(filter)

    def list_for_user(self, user_id: ObjectId) -> List[dict]:
        with self.errors():
            return list(
                self.collection.find({"participants": user_id, "isActive": True})
                .sort("updatedAt", DESCENDING)
            )

    def set_fields(self, id: ObjectId, fields: dict):
        with self.errors():
            self.collection.update_one({"_id": id}, {"$set": {**fields, "updatedAt": utcnow()}})

    def record_message(self, id: ObjectId, message_id: ObjectId, recipients: Iterable[ObjectId]):
        """Point lastMessage at the new message and bump every recipient's unread count."""
        inc = {f"unreadCount.{r}": 1 for r in recipients}
        update = {"$set": {"lastMessage": message_id, "updatedAt": utcnow()}}
        if inc:
            update["$inc"] = inc
        with self.errors():
            self.collection.update_one({"_id": id}, update)

    def reset_unread(self, id: ObjectId, user_id: ObjectId):
        with self.errors():
            self.collection.update_one({"_id": id}, {"$set": {f"unreadCount.{user_id}": 0}})

    def populate(self, conversations: List[dict]) -> List[dict]:
        """Embed participant, property and last message summaries."""
        users = user_summaries(self.db, (p for c in conversations for p in c.get("participants", [])))

        property_ids = [c["property"] for c in conversations if c.get("property")]
        properties = {}
        if property_ids:
            cursor = self.db[PROPERTIES].find({"_id": {"$in": property_ids}}, projection_of(("title", "images")))
            properties = {p["_id"]: p for p in cursor}

        message_ids = [c["lastMessage"] for c in conversations if c.get("lastMessage")]
        messages = {}
        if message_ids:
            found = list(self.db[MESSAGES].find({"_id": {"$in": message_ids}}))
            senders = user_summaries(self.db, (m["sender"] for m in found))
            for m in found:
                m["sender"] = senders.get(m["sender"], m["sender"])
                messages[m["_id"]] = m

        for conv in conversations:
            conv["participants"] = [users.get(p, p) for p in conv.get("participants", [])]
            if conv.get("property"):
                conv["property"] = properties.get(conv["property"], conv["property"])
            if conv.get("lastMessage"):
                conv["lastMessage"] = messages.get(conv["lastMessage"], conv["lastMessage"])
        return conversations


class MessageRepository(MongoRepository):
    collection_name = MESSAGES
    model = Message
    not_found_msg = "Message not found"

    def list_for_conversation(self, conversation_id: ObjectId) -> List[dict]:
        with self.errors():
            messages = list(
                self.collection.find({"conversation": conversation_id}).sort("createdAt", ASCENDING)
            )
        return self.with_senders(messages)

    def mark_read_for(self, conversation_id: ObjectId, reader_id: ObjectId) -> int:
        """Mark everyone else's unread messages in the conversation as read."""
        with self.errors():
            result = self.collection.update_many(
                {"conversation": conversation_id, "sender": {"$ne": reader_id}, "read": False},
                {"$set": {"read": True, "readAt": utcnow()}},
            )
        return result.modified_count

    def with_senders(self, messages: List[dict]) -> List[dict]:
        senders = user_summaries(self.db, (m.get("sender") for m in messages))
        for m in messages:
            m["sender"] = senders.get(m.get("sender"), m.get("sender"))
        return messages

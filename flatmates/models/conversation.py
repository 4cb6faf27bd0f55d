from datetime import datetime
from typing import Dict, List, Optional

from bson import ObjectId
from pydantic import Field

from flatmates.models.base import Embedded, MongoModel, utcnow


class Conversation(MongoModel):
    participants: List[ObjectId] = Field(min_length=2)
    property: Optional[ObjectId] = None
    lastMessage: Optional[ObjectId] = None
    # participant id (hex) -> messages that participant has not read yet
    unreadCount: Dict[str, int] = {}
    isActive: bool = True
    createdAt: datetime = Field(default_factory=utcnow)
    updatedAt: datetime = Field(default_factory=utcnow)


class Attachment(Embedded):
    type: Optional[str] = None
    url: str
    fileType: Optional[str] = None


class Message(MongoModel):
    conversation: ObjectId
    sender: ObjectId
    content: str = Field(min_length=1)
    attachments: List[Attachment] = []
    read: bool = False
    readAt: Optional[datetime] = None
    createdAt: datetime = Field(default_factory=utcnow)

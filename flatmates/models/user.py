from datetime import datetime
from typing import Dict, List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, Field

from flatmates.models.base import Embedded, MongoModel, utcnow

UserType = Literal["room_seeker", "roommate_seeker", "room_provider", "property_owner"]
SocialProvider = Literal["local", "google", "facebook", "instagram"]
NotificationType = Literal["message", "property_update", "system"]

USER_TYPES = ("room_seeker", "roommate_seeker", "room_provider", "property_owner")

# Never leave the server / only for the owner
PRIVATE_FIELDS = ("password",)
PUBLIC_HIDDEN_FIELDS = ("password", "notifications")


class Range(Embedded):
    min: Optional[float] = None
    max: Optional[float] = None


class UserPreferences(Embedded):
    location: List[str] = []
    budget: Optional[Range] = None
    moveInDate: Optional[datetime] = None
    duration: Optional[str] = None
    roomType: Optional[str] = None
    amenities: List[str] = []
    gender: Optional[str] = None
    ageRange: Optional[Range] = None
    lifestyle: List[str] = []


class Notification(MongoModel):
    id: ObjectId = Field(default_factory=ObjectId, alias="_id")
    type: NotificationType
    content: str
    relatedTo: Optional[ObjectId] = None
    read: bool = False
    createdAt: datetime = Field(default_factory=utcnow)


class User(MongoModel):
    name: str = Field(min_length=1)
    email: str
    password: Optional[str] = None
    avatar: Optional[str] = None
    userType: UserType
    socialProvider: Optional[SocialProvider] = None
    socialId: Optional[str] = None
    phone: Optional[str] = None
    bio: Optional[str] = None
    preferences: Optional[UserPreferences] = None
    savedProperties: List[ObjectId] = []
    notifications: List[Notification] = []
    createdAt: datetime = Field(default_factory=utcnow)
    updatedAt: datetime = Field(default_factory=utcnow)


class AuthenticatedUser(BaseModel):
    """Identity attached to a request once its bearer token checks out."""

    id: str
    name: str
    email: str
    userType: UserType
    avatar: Optional[str] = None
    socialProvider: Optional[SocialProvider] = None

    @property
    def object_id(self) -> ObjectId:
        return ObjectId(self.id)

    @classmethod
    def from_document(cls, doc: Dict) -> "AuthenticatedUser":
        return cls(
            id=str(doc["_id"]),
            name=doc["name"],
            email=doc["email"],
            userType=doc["userType"],
            avatar=doc.get("avatar"),
            socialProvider=doc.get("socialProvider"),
        )


class GoogleUser(BaseModel):
    email: str
    name: str
    sub: str
    picture: Optional[str] = None

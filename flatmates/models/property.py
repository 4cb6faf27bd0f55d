from datetime import datetime
from typing import List, Literal, Optional

from bson import ObjectId
from pydantic import Field

from flatmates.models.base import Embedded, MongoModel, utcnow
from flatmates.models.user import Range

PropertyType = Literal["room", "flat", "house", "studio"]
ListingType = Literal["room_in_flat", "roommates_for_flat", "occupied_flat", "entire_property"]
Furnishing = Literal["furnished", "unfurnished", "semi-furnished"]
PropertyStatus = Literal["active", "inactive", "rented"]

PROPERTY_TYPES = ("room", "flat", "house", "studio")
LISTING_TYPES = ("room_in_flat", "roommates_for_flat", "occupied_flat", "entire_property")

# Which kind of user may publish which kind of listing
LISTING_USER_TYPES = {
    "room_in_flat": "room_provider",
    "occupied_flat": "room_provider",
    "roommates_for_flat": "roommate_seeker",
    "entire_property": "property_owner",
}


class Coordinates(Embedded):
    lat: float
    lng: float


class Address(Embedded):
    street: Optional[str] = None
    city: str = Field(min_length=1)
    state: Optional[str] = None
    country: str = Field(min_length=1)
    zipCode: Optional[str] = None
    coordinates: Optional[Coordinates] = None


class Price(Embedded):
    amount: float
    brokerage: float = 0


class Availability(Embedded):
    availableFrom: datetime
    availableUntil: Optional[datetime] = None
    minimumStay: Optional[int] = None
    maximumStay: Optional[int] = None


class Features(Embedded):
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    area: Optional[float] = None
    furnishing: Optional[Furnishing] = None
    amenities: List[str] = []
    utilities: List[str] = []


class PropertyImage(Embedded):
    url: str
    caption: str = ""


class Occupant(Embedded):
    gender: Literal["male", "female", "other"]
    age: Optional[int] = None
    occupation: Optional[str] = None


class CurrentOccupants(Embedded):
    total: int = 0
    details: List[Occupant] = []


class SeekerPreferences(Embedded):
    gender: Optional[Literal["male", "female", "any"]] = None
    ageRange: Optional[Range] = None
    occupation: List[str] = []
    smoking: Optional[bool] = None
    pets: Optional[bool] = None


class Property(MongoModel):
    owner: ObjectId
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    propertyType: PropertyType
    listingType: ListingType
    address: Address
    price: Price
    availability: Availability
    features: Features = Features()
    images: List[PropertyImage] = []
    currentOccupants: CurrentOccupants = CurrentOccupants()
    preferences: SeekerPreferences = SeekerPreferences()
    status: PropertyStatus = "active"
    views: int = 0
    saves: int = 0
    createdAt: datetime = Field(default_factory=utcnow)
    updatedAt: datetime = Field(default_factory=utcnow)

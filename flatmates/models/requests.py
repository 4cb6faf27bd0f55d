"""
Request bodies for the profile, listing and messaging endpoints.

Multipart forms reach these models after ``flatmates.utils.form_data`` has
decoded their JSON fields, so the same model checks JSON and form input.
Listing models keep unknown keys; the stored document model decides what
survives.
"""

from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from flatmates.models.conversation import Attachment
from flatmates.models.property import ListingType, PropertyType
from flatmates.utils.validation import Email, Phone, optional, required


class RequestModel(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)


class OpenRequestModel(RequestModel):
    model_config = ConfigDict(allow_inf_nan=False, extra="allow")


# -------- users --------

class ProfileUpdate(RequestModel):
    name: Annotated[Optional[str], optional("Name is required")] = None
    email: Optional[Email] = None
    phone: Optional[Phone] = None
    bio: Optional[str] = None
    preferences: Annotated[Optional[dict], optional("Preferences must be an object")] = None


# -------- properties --------

class ListingAddress(OpenRequestModel):
    city: Annotated[Optional[str], required("City is required")] = Field(None, validate_default=True)
    country: Annotated[Optional[str], required("Country is required")] = Field(None, validate_default=True)


class ListingPrice(OpenRequestModel):
    amount: Annotated[Optional[float], required("Price amount is required")] = Field(None, validate_default=True)
    brokerage: Annotated[Optional[float], optional("Brokerage must be a number")] = None


class ListingAvailability(OpenRequestModel):
    availableFrom: Annotated[Optional[datetime], required("Availability date is required")] = Field(
        None, validate_default=True
    )


class ListingCreate(OpenRequestModel):
    title: Annotated[Optional[str], required("Title is required")] = Field(None, validate_default=True)
    description: Annotated[Optional[str], required("Description is required")] = Field(None, validate_default=True)
    propertyType: Annotated[Optional[PropertyType], required("Property type is required")] = Field(
        None, validate_default=True
    )
    listingType: Annotated[Optional[ListingType], required("Listing type is required")] = Field(
        None, validate_default=True
    )
    # Absent objects validate as {} so each missing member is reported by name
    address: ListingAddress = Field(default_factory=dict, validate_default=True)
    price: ListingPrice = Field(default_factory=dict, validate_default=True)
    availability: ListingAvailability = Field(default_factory=dict, validate_default=True)


class ListingPriceUpdate(OpenRequestModel):
    amount: Annotated[Optional[float], optional("Price amount is required")] = None
    brokerage: Annotated[Optional[float], optional("Brokerage must be a number")] = None


class ListingUpdate(OpenRequestModel):
    title: Annotated[Optional[str], optional("Title is required")] = None
    description: Annotated[Optional[str], optional("Description is required")] = None
    propertyType: Annotated[Optional[PropertyType], optional("Property type is required")] = None
    listingType: Annotated[Optional[ListingType], optional("Listing type is required")] = None
    price: Optional[ListingPriceUpdate] = None
    removeImages: Optional[str] = None


# -------- messages --------

class StartConversation(RequestModel):
    recipient: Annotated[Optional[str], required("Recipient is required")] = Field(None, validate_default=True)
    property: Optional[str] = None
    initialMessage: Optional[str] = None


class SendMessage(RequestModel):
    content: Annotated[Optional[str], required("Message content is required")] = Field(None, validate_default=True)
    attachments: List[Attachment] = []


class SocketMessage(SendMessage):
    conversationId: Annotated[Optional[str], required("Conversation is required")] = Field(
        None, validate_default=True
    )

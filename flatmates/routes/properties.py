import logging
import math
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pymongo.database import Database

from flatmates.db import get_db
from flatmates.exceptions import AuthError, ValidationError
from flatmates.middleware.auth_middleware import get_current_user
from flatmates.models.base import serialize_doc
from flatmates.models.property import LISTING_USER_TYPES
from flatmates.models.requests import ListingCreate, ListingUpdate
from flatmates.models.user import AuthenticatedUser
from flatmates.repositories.properties import PropertyRepository
from flatmates.repositories.users import UserRepository, contains
from flatmates.utils.form_data import RequestBody, parse_request_body, request_body, unflatten
from flatmates.utils.uploads import save_listing_image
from flatmates.utils.validation import validate_body

logger = logging.getLogger("uvicorn.error")

router = APIRouter()

# Nested values a multipart listing form sends JSON-encoded
LISTING_JSON_FIELDS = ["address", "price", "availability", "features", "currentOccupants", "preferences"]
# Never taken from the request on update
PROTECTED_FIELDS = {"_id", "owner", "images", "views", "saves", "createdAt", "updatedAt", "removeImages"}
MAX_IMAGES = 10


def _listing_body(payload: RequestBody) -> dict:
    return unflatten(parse_request_body(payload.fields, LISTING_JSON_FIELDS))


def _owned_property(properties: PropertyRepository, property_id: str, user: AuthenticatedUser) -> dict:
    prop = properties.get(property_id)
    if str(prop["owner"]) != user.id:
        raise AuthError("Not authorized")
    return prop


def _new_images(payload: RequestBody) -> list:
    files = payload.file_list("images")
    if len(files) > MAX_IMAGES:
        raise ValidationError([{"msg": f"At most {MAX_IMAGES} images are allowed", "param": "images", "location": "file"}])
    return [{"url": save_listing_image(f), "caption": ""} for f in files]


@router.post("/")
def create_property(
    current_user: AuthenticatedUser = Depends(get_current_user),
    payload: RequestBody = Depends(request_body),
    db: Database = Depends(get_db),
):
    listing = validate_body(ListingCreate, _listing_body(payload))

    if LISTING_USER_TYPES[listing.listingType] != current_user.userType:
        raise ValidationError("User type does not match the listing type")

    if current_user.userType == "room_provider" and listing.price.brokerage is None:
        raise ValidationError("Brokerage is required for room provider listings")

    data = {k: v for k, v in listing.model_dump(exclude_none=True).items() if k not in PROTECTED_FIELDS}
    data["owner"] = current_user.object_id
    data["images"] = _new_images(payload)

    prop = PropertyRepository(db).create(data)
    logger.info("User %s listed property %s", current_user.id, prop["_id"])
    return serialize_doc(prop)


@router.get("/")
def list_properties(
    listingType: Optional[str] = Query(None),
    propertyType: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    country: Optional[str] = Query(None),
    minPrice: Optional[float] = Query(None, allow_inf_nan=False),
    maxPrice: Optional[float] = Query(None, allow_inf_nan=False),
    availableFrom: Optional[datetime] = Query(None),
    bedrooms: Optional[int] = Query(None),
    bathrooms: Optional[int] = Query(None),
    furnishing: Optional[str] = Query(None),
    amenities: Optional[str] = Query(None),
    gender: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Database = Depends(get_db),
):
    filter = {"status": "active"}
    if listingType:
        filter["listingType"] = listingType
    if propertyType:
        filter["propertyType"] = propertyType
    if city:
        filter["address.city"] = contains(city)
    if country:
        filter["address.country"] = contains(country)

    price = {}
    if minPrice is not None:
        price["$gte"] = minPrice
    if maxPrice is not None:
        price["$lte"] = maxPrice
    if price:
        filter["price.amount"] = price

    if availableFrom:
        filter["availability.availableFrom"] = {"$lte": availableFrom}
    if bedrooms is not None:
        filter["features.bedrooms"] = bedrooms
    if bathrooms is not None:
        filter["features.bathrooms"] = bathrooms
    if furnishing:
        filter["features.furnishing"] = furnishing
    if amenities:
        wanted = [a.strip() for a in amenities.split(",") if a.strip()]
        if wanted:
            filter["features.amenities"] = {"$all": wanted}
    if gender:
        filter["preferences.gender"] = gender

    properties = PropertyRepository(db)
    docs, total = properties.search(filter, page, limit)
    return {
        "properties": serialize_doc(properties.with_owners(docs)),
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "pages": math.ceil(total / limit),
        },
    }


@router.get("/user/saved")
def get_saved_properties(
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    user = UserRepository(db).get(current_user.id, {"savedProperties": 1})
    properties = PropertyRepository(db)
    docs = properties.list_by_ids(user.get("savedProperties", []))
    return serialize_doc(properties.with_owners(docs))


@router.get("/user/listings")
def get_my_listings(
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return serialize_doc(PropertyRepository(db).list_by_owner(current_user.object_id))


@router.get("/{property_id}")
def get_property(property_id: str, db: Database = Depends(get_db)):
    properties = PropertyRepository(db)
    prop = properties.get_and_count_view(property_id)
    return serialize_doc(properties.with_owners([prop], ("name", "avatar", "email", "phone"))[0])


@router.put("/{property_id}")
def update_property(
    property_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    payload: RequestBody = Depends(request_body),
    db: Database = Depends(get_db),
):
    update = validate_body(ListingUpdate, _listing_body(payload))
    body = update.model_dump(exclude_none=True)

    properties = PropertyRepository(db)
    prop = _owned_property(properties, property_id, current_user)

    images = prop.get("images", []) + _new_images(payload)
    if update.removeImages:
        removed = set(update.removeImages.split(","))
        images = [img for img in images if img.get("url") not in removed]

    fields = {}
    for key, value in body.items():
        if key in PROTECTED_FIELDS:
            continue
        # Partial nested updates keep the sibling keys already stored
        if isinstance(value, dict) and isinstance(prop.get(key), dict):
            value = {**prop[key], **value}
        fields[key] = value
    fields["images"] = images

    return serialize_doc(properties.update(prop["_id"], fields))


@router.delete("/{property_id}")
def delete_property(
    property_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    properties = PropertyRepository(db)
    prop = _owned_property(properties, property_id, current_user)
    properties.delete(prop["_id"])
    return {"msg": "Property removed"}


@router.post("/{property_id}/save")
def toggle_save_property(
    property_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    properties = PropertyRepository(db)
    prop = properties.get(property_id, {"_id": 1})

    saved, saved_ids = UserRepository(db).toggle_saved_property(current_user.id, prop["_id"])
    properties.adjust_saves(prop["_id"], 1 if saved else -1)
    return {"saved": saved, "savedProperties": serialize_doc(saved_ids)}

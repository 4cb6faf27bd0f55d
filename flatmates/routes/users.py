import logging
import math
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pymongo.database import Database

from flatmates.db import get_db
from flatmates.middleware.auth_middleware import get_current_user
from flatmates.models.base import serialize_doc
from flatmates.models.requests import ProfileUpdate
from flatmates.models.user import AuthenticatedUser
from flatmates.repositories.users import UserRepository
from flatmates.utils.form_data import RequestBody, parse_request_body, request_body
from flatmates.utils.uploads import save_avatar
from flatmates.utils.validation import validate_body

logger = logging.getLogger("uvicorn.error")

router = APIRouter()

PROFILE_FIELDS = ("name", "email", "phone", "bio", "preferences")
PROFILE_JSON_FIELDS = ["preferences"]


@router.get("/me")
def get_me(
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return serialize_doc(UserRepository(db).get_private(current_user.id))


@router.put("/me")
def update_me(
    current_user: AuthenticatedUser = Depends(get_current_user),
    payload: RequestBody = Depends(request_body),
    db: Database = Depends(get_db),
):
    submitted = {k: payload.fields.get(k) for k in PROFILE_FIELDS}
    update = validate_body(ProfileUpdate, parse_request_body(submitted, PROFILE_JSON_FIELDS))

    # Only non-empty values replace what is stored
    fields = {k: v for k, v in update.model_dump().items() if v}

    # File goes to disk before the document points at it
    avatar = payload.file("avatar")
    if avatar is not None:
        fields["avatar"] = save_avatar(avatar)

    users = UserRepository(db)
    if not fields:
        return serialize_doc(users.get_private(current_user.id))
    return serialize_doc(users.update_profile(current_user.id, fields))


@router.get("/me/notifications")
def get_my_notifications(
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return serialize_doc(UserRepository(db).list_notifications(current_user.id))


@router.put("/notifications/{notification_id}")
def mark_notification_read(
    notification_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    UserRepository(db).mark_notification_read(current_user.id, notification_id)
    return {"msg": "Notification marked as read"}


@router.get("/{user_id}")
def get_user(user_id: str, db: Database = Depends(get_db)):
    return serialize_doc(UserRepository(db).get_public(user_id))


@router.get("/")
def list_users(
    userType: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Database = Depends(get_db),
):
    users, total = UserRepository(db).search(userType, city, search, page, limit)
    return {
        "users": serialize_doc(users),
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "pages": math.ceil(total / limit),
        },
    }

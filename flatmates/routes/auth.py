import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends
from pydantic import AfterValidator, BaseModel, field_validator
from pymongo.database import Database

from flatmates.db import get_db
from flatmates.exceptions import DeliveryError, NotFoundError, ValidationError
from flatmates.middleware.auth_middleware import get_current_user
from flatmates.models.base import serialize_doc
from flatmates.models.user import USER_TYPES, AuthenticatedUser
from flatmates.repositories.otps import OtpRepository
from flatmates.repositories.users import UserRepository
from flatmates.utils.email import generate_otp, send_otp_email
from flatmates.utils.oauth import get_google_user_info
from flatmates.utils.security import create_access_token, get_password_hash, verify_password
from flatmates.utils.validation import Email, Phone

logger = logging.getLogger("uvicorn.error")

router = APIRouter()


def _password(value: str) -> str:
    if len(value) < 6:
        raise ValueError("Please enter a password with 6 or more characters")
    return value


def _user_type(value: str) -> str:
    if value not in USER_TYPES:
        raise ValueError("User type is required")
    return value


Password = Annotated[str, AfterValidator(_password)]
UserTypeName = Annotated[str, AfterValidator(_user_type)]


class RegisterRequest(BaseModel):
    name: str
    email: Email
    password: Password
    userType: UserTypeName

    @field_validator("name")
    @classmethod
    def name_required(cls, v):
        if not v.strip():
            raise ValueError("Name is required")
        return v.strip()


class UserLoginRequest(BaseModel):
    email: Email
    password: str

    @field_validator("password")
    @classmethod
    def password_required(cls, v):
        if not v:
            raise ValueError("Password is required")
        return v


class GoogleAuthRequest(BaseModel):
    idToken: str
    userType: Optional[UserTypeName] = None


class CompleteProfileRequest(BaseModel):
    userType: UserTypeName
    phone: Optional[Phone] = None
    bio: Optional[str] = None
    preferences: Optional[dict] = None


class ForgotPasswordRequest(BaseModel):
    email: Email


class OtpVerificationRequest(BaseModel):
    email: Email
    otp: str

    @field_validator("otp")
    @classmethod
    def otp_required(cls, v):
        if not v.strip():
            raise ValueError("OTP is required")
        return v.strip()


class ResetPasswordRequest(OtpVerificationRequest):
    password: Password


@router.post("/register")
def register(request: RegisterRequest, db: Database = Depends(get_db)):
    users = UserRepository(db)
    if users.find_by_email(request.email):
        raise ValidationError("User already exists")

    user = users.create({
        "name": request.name,
        "email": request.email,
        "password": get_password_hash(request.password),
        "userType": request.userType,
        "socialProvider": "local",
    })
    logger.info("Registered user %s as %s", user["_id"], user["userType"])
    return {"token": create_access_token(user)}


@router.post("/login")
def login(credentials: UserLoginRequest, db: Database = Depends(get_db)):
    user = UserRepository(db).find_by_email(credentials.email, socialProvider="local")
    if not user or not verify_password(credentials.password, user.get("password")):
        raise ValidationError("Invalid credentials")
    return {"token": create_access_token(user)}


@router.post("/google")
def google_auth(request: GoogleAuthRequest, db: Database = Depends(get_db)):
    user_info = get_google_user_info(request.idToken)
    if not user_info:
        raise ValidationError("Invalid Google token")

    users = UserRepository(db)
    user = users.find_by_social("google", user_info.sub) or users.find_by_email(user_info.email)
    if user is None:
        user = users.create({
            "name": user_info.name,
            "email": user_info.email,
            "avatar": user_info.picture,
            "socialId": user_info.sub,
            "socialProvider": "google",
            # Refined later through /complete-profile
            "userType": request.userType or "room_seeker",
        })
    return {"token": create_access_token(user)}


@router.get("/user")
def get_auth_user(
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return serialize_doc(UserRepository(db).get_private(current_user.id))


@router.put("/complete-profile")
def complete_profile(
    request: CompleteProfileRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    fields = {"userType": request.userType}
    if request.phone:
        fields["phone"] = request.phone
    if request.bio:
        fields["bio"] = request.bio
    if request.preferences:
        fields["preferences"] = request.preferences
    return serialize_doc(UserRepository(db).update_profile(current_user.id, fields))


@router.post("/forgot-password")
def forgot_password(request: ForgotPasswordRequest, db: Database = Depends(get_db)):
    if not UserRepository(db).find_by_email(request.email):
        raise NotFoundError("User not found")

    otps = OtpRepository(db)
    record = otps.issue(request.email, generate_otp())
    try:
        send_otp_email(request.email, record["otp"])
    except DeliveryError:
        # A code nobody received must not stay redeemable
        otps.delete(record["_id"])
        raise
    return {"msg": "OTP sent to your email"}


@router.post("/verify-otp")
def verify_otp(request: OtpVerificationRequest, db: Database = Depends(get_db)):
    if not OtpRepository(db).find_valid(request.email, request.otp):
        raise ValidationError("Invalid or expired OTP")
    return {"msg": "OTP verified successfully"}


@router.post("/reset-password")
def reset_password(request: ResetPasswordRequest, db: Database = Depends(get_db)):
    otps = OtpRepository(db)
    record = otps.find_valid(request.email, request.otp)
    if not record:
        raise ValidationError("Invalid or expired OTP")

    users = UserRepository(db)
    user = users.find_by_email(request.email)
    if not user:
        raise NotFoundError("User not found")

    users.set_password(user["_id"], get_password_hash(request.password))
    otps.delete(record["_id"])
    logger.info("Password reset for user %s", user["_id"])
    return {"msg": "Password reset successfully"}

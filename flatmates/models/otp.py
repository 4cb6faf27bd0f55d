from datetime import datetime

from pydantic import Field, field_validator

from flatmates.models.base import MongoModel, utcnow


class OTP(MongoModel):
    email: str
    otp: str = Field(pattern=r"^\d{6}$")
    createdAt: datetime = Field(default_factory=utcnow)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

import re
from typing import Annotated, Type, TypeVar

from pydantic import AfterValidator, BaseModel, EmailStr, WrapValidator
from pydantic import ValidationError as PydanticValidationError

from flatmates.models.base import validation_errors

M = TypeVar("M", bound=BaseModel)

PHONE_SEPARATORS = re.compile(r"[\s\-().]")
# International numbers need their country code; national ones at least ten digits
MOBILE_PHONE = re.compile(r"^(\+[1-9]\d{7,14}|0?[1-9]\d{9,10})$")


def is_mobile_phone(value) -> bool:
    if not isinstance(value, str):
        return False
    return bool(MOBILE_PHONE.match(PHONE_SEPARATORS.sub("", value)))


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _checked(msg: str, optional: bool):
    def check(value, handler):
        if value is None and optional:
            return None
        if _blank(value) or isinstance(value, bool):
            raise ValueError(msg)
        try:
            return handler(value)
        except PydanticValidationError:
            raise ValueError(msg)

    return WrapValidator(check)


def required(msg: str) -> WrapValidator:
    """Field must be present and valid; any failure is reported as ``msg``."""
    return _checked(msg, optional=False)


def optional(msg: str) -> WrapValidator:
    """Like ``required`` but an absent value is fine."""
    return _checked(msg, optional=True)


def _email(value, handler):
    try:
        return handler(value).lower()
    except PydanticValidationError:
        raise ValueError("Please include a valid email")


def _phone(value: str) -> str:
    if not is_mobile_phone(value):
        raise ValueError("Please include a valid phone number")
    return value.strip()


Email = Annotated[EmailStr, WrapValidator(_email)]
Phone = Annotated[str, AfterValidator(_phone)]


def validate_body(model: Type[M], data: dict, location: str = "body") -> M:
    """Validate a normalised request body, raising our ValidationError."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise validation_errors(exc, location)

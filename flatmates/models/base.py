from datetime import datetime, timezone
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from flatmates.exceptions import NotFoundError, ValidationError


def utcnow() -> datetime:
    # Naive UTC, which is what pymongo hands back on reads
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_object_id(value, not_found_msg: str = "Not found") -> ObjectId:
    """Parse an id string; a malformed id can never match a document."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise NotFoundError(not_found_msg)


def serialize_doc(value: Any) -> Any:
    """Make a stored document JSON friendly (ObjectId -> str, datetime -> ISO)."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: serialize_doc(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_doc(v) for v in value]
    return value


def validation_errors(exc: PydanticValidationError, location: str = "body") -> ValidationError:
    errors = []
    for err in exc.errors():
        ctx_error = (err.get("ctx") or {}).get("error")
        errors.append({
            "msg": str(ctx_error) if ctx_error else err["msg"],
            "param": ".".join(str(p) for p in err["loc"]),
            "location": location,
        })
    return ValidationError(errors)


class Embedded(BaseModel):
    """Object nested inside a stored document. Numbers must be finite."""

    model_config = ConfigDict(allow_inf_nan=False)


class MongoModel(BaseModel):
    """Shape of a stored document. Unknown keys are dropped on validation."""

    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True, allow_inf_nan=False)

    @classmethod
    def validate_document(cls, data: dict):
        try:
            return cls.model_validate(data)
        except PydanticValidationError as exc:
            raise validation_errors(exc)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)

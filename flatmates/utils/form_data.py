import json
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping

from fastapi import Request
from starlette.datastructures import UploadFile

from flatmates.exceptions import ValidationError

FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


def _reject_constant(name: str):
    # NaN, Infinity and -Infinity are extensions of Python's decoder, not JSON
    raise ValueError(f"{name} is not valid JSON")


def _finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"{text} is out of range")
    return value


def loads(text):
    """Strict JSON decoding; ValueError on anything a JSON parser must reject."""
    return json.loads(text, parse_constant=_reject_constant, parse_float=_finite_float)


def parse_form_data_json(value: Any) -> Any:
    """
    Multipart forms can only carry strings, so nested objects arrive
    JSON-encoded. Decode a string if it is JSON, otherwise hand it back as is.
    """
    if isinstance(value, str):
        try:
            return loads(value)
        except ValueError:
            return value
    return value


def parse_request_body(body: Mapping[str, Any], json_fields: Iterable[str]) -> dict:
    """Copy of ``body`` with only the ``json_fields`` keys JSON-decoded."""
    json_fields = set(json_fields)
    parsed = {}
    for key, value in body.items():
        if key in json_fields:
            parsed[key] = parse_form_data_json(value)
        else:
            parsed[key] = value
    return parsed


def unflatten(body: Mapping[str, Any]) -> dict:
    """Fold ``parent.child`` form keys into nested dicts."""
    nested: Dict[str, Any] = {}
    for key, value in body.items():
        if "." not in key:
            if isinstance(value, dict) and isinstance(nested.get(key), dict):
                nested[key] = {**value, **nested[key]}
            else:
                nested[key] = value
            continue
        parent, child = key.split(".", 1)
        target = nested.setdefault(parent, {})
        if isinstance(target, dict):
            target[child] = value
    return nested


@dataclass
class RequestBody:
    fields: Dict[str, Any] = field(default_factory=dict)
    files: Dict[str, List[UploadFile]] = field(default_factory=dict)

    def file(self, name: str):
        found = [f for f in self.files.get(name, []) if f.filename]
        return found[0] if found else None

    def file_list(self, name: str) -> List[UploadFile]:
        return [f for f in self.files.get(name, []) if f.filename]


async def request_body(request: Request) -> RequestBody:
    """Dependency reading a JSON, urlencoded or multipart body into one shape."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        body = RequestBody()
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                body.files.setdefault(key, []).append(value)
            else:
                body.fields[key] = value
        return body

    raw = await request.body()
    if not raw:
        return RequestBody()
    try:
        data = loads(raw)
    except ValueError:
        raise ValidationError([{"msg": "Request body is not valid JSON", "location": "body"}])
    if not isinstance(data, dict):
        raise ValidationError([{"msg": "Request body must be a JSON object", "location": "body"}])
    return RequestBody(fields=data)

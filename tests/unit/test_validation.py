"""
Unit tests for the request field types and request models.
"""

import pytest

from flatmates.exceptions import ValidationError
from flatmates.models.requests import ListingCreate, ListingUpdate, ProfileUpdate, SendMessage
from flatmates.utils.validation import is_mobile_phone, validate_body


def _errors(model, data) -> dict:
    with pytest.raises(ValidationError) as exc_info:
        validate_body(model, data)
    return {e["param"]: e["msg"] for e in exc_info.value.errors}


class TestPhoneNumbers:

    @pytest.mark.parametrize("value", ["+919876543210", "020 7946 0958", "+1 555-123-4567", "(555) 123-4567"])
    def test_valid_phone_numbers(self, value):
        assert is_mobile_phone(value)

    @pytest.mark.parametrize("value", ["12", "1234567", "123456789", "phone", "+1 (555) abc", "+0123456789", None])
    def test_invalid_phone_numbers(self, value):
        assert not is_mobile_phone(value)


class TestProfileUpdate:
    """Tests for the profile update body."""

    def test_email_is_normalised(self):
        update = validate_body(ProfileUpdate, {"email": "Me@Example.COM"})
        assert update.email == "me@example.com"

    def test_invalid_fields_are_reported_with_messages(self):
        errors = _errors(ProfileUpdate, {"name": " ", "email": "nope", "phone": "1234567", "preferences": "[]"})

        assert errors == {
            "name": "Name is required",
            "email": "Please include a valid email",
            "phone": "Please include a valid phone number",
            "preferences": "Preferences must be an object",
        }

    def test_absent_fields_are_fine(self):
        assert validate_body(ProfileUpdate, {}).model_dump() == {
            "name": None, "email": None, "phone": None, "bio": None, "preferences": None,
        }


class TestListingCreate:
    """Tests for the new listing body."""

    def test_missing_members_are_reported_in_order(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_body(ListingCreate, {"title": "Room", "price": {}})

        errors = exc_info.value.errors
        assert [e["param"] for e in errors] == [
            "description",
            "propertyType",
            "listingType",
            "address.city",
            "address.country",
            "price.amount",
            "availability.availableFrom",
        ]
        assert errors[0] == {"msg": "Description is required", "param": "description", "location": "body"}

    @pytest.mark.parametrize("amount", ["NaN", "Infinity", "-inf", "twelve", True, float("nan")])
    def test_price_must_be_a_finite_number(self, amount):
        errors = _errors(ListingCreate, {"price": {"amount": amount}})
        assert errors["price.amount"] == "Price amount is required"

    def test_form_strings_are_coerced_and_extras_kept(self):
        listing = validate_body(ListingCreate, {
            "title": "Room",
            "description": "Quiet",
            "propertyType": "room",
            "listingType": "room_in_flat",
            "address": {"city": "Pune", "country": "India", "zipCode": "411001"},
            "price": {"amount": "12000", "brokerage": "0"},
            "availability": {"availableFrom": "2026-11-01"},
            "features": {"bedrooms": 2},
        })

        data = listing.model_dump(exclude_none=True)
        assert data["price"] == {"amount": 12000.0, "brokerage": 0.0}
        assert data["address"]["zipCode"] == "411001"
        assert data["features"] == {"bedrooms": 2}
        assert data["availability"]["availableFrom"].year == 2026

    def test_unknown_property_type(self):
        errors = _errors(ListingCreate, {"propertyType": "castle"})
        assert errors["propertyType"] == "Property type is required"


class TestListingUpdate:

    def test_everything_is_optional(self):
        assert validate_body(ListingUpdate, {}).model_dump(exclude_none=True) == {}

    def test_present_values_are_still_checked(self):
        errors = _errors(ListingUpdate, {"title": "", "price": {"amount": "Infinity"}})
        assert errors == {"title": "Title is required", "price.amount": "Price amount is required"}


class TestSendMessage:

    def test_blank_content(self):
        assert _errors(SendMessage, {"content": "   "}) == {"content": "Message content is required"}

    def test_attachments_need_a_url(self):
        errors = _errors(SendMessage, {"content": "hi", "attachments": [{"type": "image"}]})
        assert list(errors) == ["attachments.0.url"]

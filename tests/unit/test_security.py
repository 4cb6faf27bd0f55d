"""
Unit tests for password hashing and bearer tokens.
"""

from datetime import timedelta

import pytest
from bson import ObjectId
from jose import ExpiredSignatureError, JWTError, jwt

from flatmates.utils.security import create_access_token, decode_access_token, get_password_hash, verify_password


class TestPasswordHashing:

    def test_hash_verifies(self):
        hashed = get_password_hash("secret123")

        assert hashed != "secret123"
        assert verify_password("secret123", hashed)
        assert not verify_password("wrong", hashed)

    def test_account_without_password_never_verifies(self):
        """Social accounts have no stored hash."""
        assert not verify_password("anything", None)


class TestAccessToken:

    def test_token_carries_subject_and_user_type(self):
        user = {"_id": ObjectId(), "userType": "property_owner"}

        payload = decode_access_token(create_access_token(user))

        assert payload["sub"] == str(user["_id"])
        assert payload["userType"] == "property_owner"
        assert payload["exp"] - payload["iat"] == int(timedelta(days=7).total_seconds())

    def test_expired_token_is_rejected(self):
        token = create_access_token({"_id": ObjectId(), "userType": "room_seeker"}, timedelta(seconds=-1))

        with pytest.raises(ExpiredSignatureError):
            decode_access_token(token)

    def test_token_signed_with_another_key_is_rejected(self):
        token = jwt.encode({"sub": str(ObjectId())}, "some-other-secret", algorithm="HS256")

        with pytest.raises(JWTError):
            decode_access_token(token)

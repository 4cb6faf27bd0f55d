"""
API tests for property listing endpoints.
"""

import io
import json
from unittest.mock import patch

import cloudinary.exceptions
from bson import ObjectId
from fastapi import status

from flatmates import config


class TestCreateProperty:
    """Tests for POST /api/properties/."""

    def test_create_listing(self, listing, provider):
        assert listing["owner"] == str(provider["_id"])
        assert listing["status"] == "active"
        assert listing["views"] == 0
        assert listing["price"] == {"amount": 18000, "brokerage": 5000}
        assert listing["availability"]["availableFrom"].startswith("2026-11-01")

    def test_create_requires_token(self, client, listing_data):
        response = client.post("/api/properties/", json=listing_data)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_missing_fields_are_reported(self, client, provider, headers_for):
        response = client.post("/api/properties/", json={"title": "Room"}, headers=headers_for(provider))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        params = [e["param"] for e in response.json()["errors"]]
        assert params == [
            "description",
            "propertyType",
            "listingType",
            "address.city",
            "address.country",
            "price.amount",
            "availability.availableFrom",
        ]

    def test_listing_type_must_match_user_type(self, client, make_user, headers_for, listing_data):
        owner = make_user(name="Owner", email="owner@example.com", user_type="property_owner")

        response = client.post("/api/properties/", json=listing_data, headers=headers_for(owner))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["errors"][0]["msg"] == "User type does not match the listing type"

    def test_room_provider_needs_brokerage(self, client, provider, headers_for, listing_data):
        listing_data["price"] = {"amount": 18000}

        response = client.post("/api/properties/", json=listing_data, headers=headers_for(provider))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["errors"][0]["msg"] == "Brokerage is required for room provider listings"

    def test_create_from_multipart_form(self, client, provider, headers_for, listing_data, upload_dir):
        form = {
            key: json.dumps(value) if isinstance(value, (dict, list)) else value
            for key, value in listing_data.items()
        }
        files = [
            ("images", ("front.jpg", io.BytesIO(b"jpeg-bytes"), "image/jpeg")),
            ("images", ("kitchen.png", io.BytesIO(b"png-bytes"), "image/png")),
        ]

        response = client.post("/api/properties/", data=form, files=files, headers=headers_for(provider))

        assert response.status_code == status.HTTP_200_OK, response.text
        data = response.json()
        assert data["address"]["city"] == "Bangalore"
        assert data["features"]["amenities"] == ["wifi", "parking"]
        assert len(data["images"]) == 2
        assert all(img["url"].startswith("/uploads/properties/") for img in data["images"])
        assert len(list((upload_dir / "properties").iterdir())) == 2

    def test_images_go_to_cloudinary_when_configured(self, client, provider, headers_for, listing_data, monkeypatch):
        monkeypatch.setattr(config, "CLOUDINARY_CLOUD_NAME", "flatmates")
        form = {k: json.dumps(v) if isinstance(v, dict) else v for k, v in listing_data.items()}
        secure_url = "https://res.cloudinary.com/flatmates/image/upload/v1/flatmates/properties/front.jpg"

        with patch("flatmates.utils.uploads.cloudinary.uploader.upload",
                   return_value={"secure_url": secure_url}) as upload:
            response = client.post(
                "/api/properties/",
                data=form,
                files=[("images", ("front.jpg", io.BytesIO(b"jpeg-bytes"), "image/jpeg"))],
                headers=headers_for(provider),
            )

        assert response.status_code == status.HTTP_200_OK, response.text
        args, kwargs = upload.call_args
        assert args[0] == b"jpeg-bytes"
        assert kwargs["folder"] == "flatmates/properties"
        assert response.json()["images"] == [{"url": secure_url, "caption": ""}]

    def test_failed_cloudinary_upload_is_a_server_error(self, client, provider, headers_for, listing_data,
                                                         monkeypatch):
        monkeypatch.setattr(config, "CLOUDINARY_CLOUD_NAME", "flatmates")
        form = {k: json.dumps(v) if isinstance(v, dict) else v for k, v in listing_data.items()}

        with patch("flatmates.utils.uploads.cloudinary.uploader.upload",
                   side_effect=cloudinary.exceptions.Error("Invalid API key")):
            response = client.post(
                "/api/properties/",
                data=form,
                files=[("images", ("front.jpg", io.BytesIO(b"jpeg-bytes"), "image/jpeg"))],
                headers=headers_for(provider),
            )

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.text == "Server error"

    def test_non_finite_price_is_rejected(self, client, db, provider, headers_for, listing_data):
        listing_data["price"] = {"amount": "NaN", "brokerage": 5000}

        response = client.post("/api/properties/", json=listing_data, headers=headers_for(provider))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["errors"][0] == {
            "msg": "Price amount is required", "param": "price.amount", "location": "body",
        }
        assert db["properties"].count_documents({}) == 0
        assert client.get("/api/properties/").status_code == status.HTTP_200_OK

    def test_non_finite_json_literal_is_rejected(self, client, db, provider, headers_for):
        body = b'{"title": "Room", "price": {"amount": Infinity}}'

        response = client.post(
            "/api/properties/",
            content=body,
            headers={**headers_for(provider), "Content-Type": "application/json"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["errors"][0]["msg"] == "Request body is not valid JSON"
        assert db["properties"].count_documents({}) == 0

    def test_non_finite_form_feature_is_rejected(self, client, db, provider, headers_for, listing_data):
        form = {k: json.dumps(v) if isinstance(v, dict) else v for k, v in listing_data.items()}
        form["features"] = '{"area": NaN}'

        response = client.post("/api/properties/", data=form, headers=headers_for(provider))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["errors"][0]["param"] == "features"
        assert db["properties"].count_documents({}) == 0


class TestListProperties:
    """Tests for GET /api/properties/."""

    def test_list_with_filters(self, client, listing, provider, headers_for, listing_data):
        cheap = dict(listing_data, title="Budget room", price={"amount": 9000, "brokerage": 0})
        cheap["address"] = {"city": "Pune", "country": "India"}
        client.post("/api/properties/", json=cheap, headers=headers_for(provider))

        response = client.get("/api/properties/", params={"city": "bangal", "minPrice": 10000})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert [p["title"] for p in data["properties"]] == ["Sunny room in Indiranagar"]
        assert data["properties"][0]["owner"]["name"] == "Priya Provider"
        assert data["pagination"] == {"total": 1, "page": 1, "limit": 10, "pages": 1}

    def test_amenities_must_all_match(self, client, listing):
        hit = client.get("/api/properties/", params={"amenities": "wifi,parking"})
        miss = client.get("/api/properties/", params={"amenities": "wifi,pool"})

        assert hit.json()["pagination"]["total"] == 1
        assert miss.json()["pagination"]["total"] == 0

    def test_inactive_listings_are_hidden(self, client, db, listing):
        db["properties"].update_one({"_id": ObjectId(listing["_id"])}, {"$set": {"status": "rented"}})

        response = client.get("/api/properties/")

        assert response.json()["properties"] == []


class TestGetProperty:
    """Tests for GET /api/properties/{id}."""

    def test_view_counter_increments(self, client, listing):
        first = client.get(f"/api/properties/{listing['_id']}")
        second = client.get(f"/api/properties/{listing['_id']}")

        assert first.json()["views"] == 1
        assert second.json()["views"] == 2
        assert second.json()["owner"]["email"] == "provider@example.com"

    def test_unknown_property(self, client):
        response = client.get(f"/api/properties/{ObjectId()}")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {"msg": "Property not found"}


class TestUpdateAndDeleteProperty:
    """Tests for PUT and DELETE /api/properties/{id}."""

    def test_owner_can_update(self, client, listing, provider, headers_for):
        response = client.put(
            f"/api/properties/{listing['_id']}",
            json={"title": "Renovated room", "price": {"amount": 20000}, "owner": str(ObjectId())},
            headers=headers_for(provider),
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["title"] == "Renovated room"
        assert data["price"] == {"amount": 20000, "brokerage": 5000}
        assert data["owner"] == str(provider["_id"])

    def test_other_user_cannot_update(self, client, listing, auth_headers):
        response = client.put(f"/api/properties/{listing['_id']}", json={"title": "Mine now"}, headers=auth_headers)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {"msg": "Not authorized"}

    def test_remove_images(self, client, db, listing, provider, headers_for):
        db["properties"].update_one(
            {"_id": ObjectId(listing["_id"])},
            {"$set": {"images": [{"url": "/uploads/properties/a.jpg", "caption": ""},
                                 {"url": "/uploads/properties/b.jpg", "caption": ""}]}},
        )

        response = client.put(
            f"/api/properties/{listing['_id']}",
            json={"removeImages": "/uploads/properties/a.jpg"},
            headers=headers_for(provider),
        )

        assert [img["url"] for img in response.json()["images"]] == ["/uploads/properties/b.jpg"]

    def test_delete(self, client, db, listing, provider, headers_for, auth_headers):
        forbidden = client.delete(f"/api/properties/{listing['_id']}", headers=auth_headers)
        assert forbidden.status_code == status.HTTP_401_UNAUTHORIZED

        response = client.delete(f"/api/properties/{listing['_id']}", headers=headers_for(provider))

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"msg": "Property removed"}
        assert db["properties"].count_documents({}) == 0


class TestSavedProperties:
    """Tests for saving listings and the per-user listing views."""

    def test_toggle_save(self, client, db, listing, auth_headers):
        saved = client.post(f"/api/properties/{listing['_id']}/save", headers=auth_headers)
        assert saved.json() == {"saved": True, "savedProperties": [listing["_id"]]}
        assert db["properties"].find_one({"_id": ObjectId(listing["_id"])})["saves"] == 1

        mine = client.get("/api/properties/user/saved", headers=auth_headers)
        assert [p["_id"] for p in mine.json()] == [listing["_id"]]

        unsaved = client.post(f"/api/properties/{listing['_id']}/save", headers=auth_headers)
        assert unsaved.json() == {"saved": False, "savedProperties": []}
        assert db["properties"].find_one({"_id": ObjectId(listing["_id"])})["saves"] == 0

    def test_my_listings(self, client, listing, provider, headers_for, auth_headers):
        mine = client.get("/api/properties/user/listings", headers=headers_for(provider))
        theirs = client.get("/api/properties/user/listings", headers=auth_headers)

        assert [p["_id"] for p in mine.json()] == [listing["_id"]]
        assert theirs.json() == []

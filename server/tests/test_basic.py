"""
Simple basic tests for the API
"""
from datetime import datetime, timezone

from bson import ObjectId

from conftest import auth_headers
from helpers.DateTimeSerializer import DateTimeSerializerVisitor
from helpers.SlugGenerator import slugify, generate_event_slug
from helpers.TimeUtils import as_naive_utc, epoch_millis
from helpers.TokenAuthenticator import create_access_token
from models.models import EventCategory


def test_health_check(client):
    """Test the health check endpoint"""
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"

    response = client.get("/health")
    assert response.status_code == 200


def test_protected_endpoint_requires_auth(client):
    """Test that protected endpoints require authentication"""
    response = client.get("/api/users/profile")
    assert response.status_code == 401
    assert response.json()["error"] == "unauthenticated"


def test_invalid_token_rejected(client):
    response = client.get("/api/auth/verify", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_token_signed_with_other_key_rejected(client):
    token = create_access_token("sub-x", "x@example.com", "X", secret_key="another-secret")
    response = client.get("/api/auth/verify", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_login_creates_user_once(client):
    headers = auth_headers("Jane@Example.com", "Jane")

    first = client.post("/api/auth/login", headers=headers)
    assert first.status_code == 201
    user = first.json()["user"]
    assert user["email"] == "jane@example.com"
    assert user["stats"]["impactScore"] == 0

    second = client.post("/api/auth/login", headers=headers)
    assert second.status_code == 200
    assert second.json()["user"]["id"] == user["id"]


def test_verify_requires_existing_user(client):
    response = client.get("/api/auth/verify", headers=auth_headers("ghost@example.com"))
    assert response.status_code == 404


def test_verify_and_logout(client, login):
    headers, user = login()
    response = client.get("/api/auth/verify", headers=headers)
    assert response.status_code == 200
    assert response.json()["user"]["id"] == user["id"]

    response = client.post("/api/auth/logout")
    assert response.status_code == 200


def test_datetime_serialization():
    """Test that datetime objects are properly serialized"""
    visitor = DateTimeSerializerVisitor()

    dt = datetime(2024, 1, 1, 12, 30, 45)
    assert visitor.visit(dt) == "2024-01-01T12:30:45"

    oid = ObjectId()
    result = visitor.visit({"when": dt, "items": [dt, oid], "category": EventCategory.HEALTHCARE, "n": 3})
    assert result == {
        "when": "2024-01-01T12:30:45",
        "items": ["2024-01-01T12:30:45", str(oid)],
        "category": "Healthcare",
        "n": 3,
    }


def test_slugify():
    assert slugify("  Beach Clean-up 2024!! ") == "beach-clean-up-2024"
    assert slugify("Café & Friends") == "caf-friends"


def test_event_slug_has_timestamp_suffix():
    created = datetime(2024, 5, 1, 0, 0, 0)
    assert generate_event_slug("Food Drive", created) == f"food-drive-{epoch_millis(created)}"


def test_as_naive_utc():
    aware = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert as_naive_utc(aware) == datetime(2024, 1, 1, 12, 0)
    assert as_naive_utc(None) is None

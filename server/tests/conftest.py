"""
Pytest configuration: an in-memory MongoDB and JWT bearer tokens
"""
import os
import uuid
from datetime import timedelta

os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("AUTH_MODE", "jwt")
os.environ.setdefault("ADMIN_EMAIL", "admin@example.com")

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from config.config import SECRET_KEY
from database.DB import Database
from helpers.TimeUtils import utcnow
from helpers.TokenAuthenticator import JWTAuthenticator, create_access_token
from main import app


@pytest.fixture
def db():
    return Database(database_name="volunteer_hub_test", client=AsyncMongoMockClient())


@pytest.fixture
def client(db):
    """Create a test client backed by a fresh in-memory database"""
    app.state.db = db
    app.state.authenticator = JWTAuthenticator(SECRET_KEY)
    with TestClient(app) as test_client:
        yield test_client
    app.state.db = None


def auth_headers(email, name=None):
    token = create_access_token(subject=f"sub-{email}", email=email, name=name or email.split("@")[0])
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def login(client):
    """Log a user in (creating it) and return its bearer headers and profile"""
    def _login(email=None, name=None):
        email = email or f"user-{uuid.uuid4().hex[:8]}@example.com"
        headers = auth_headers(email, name)
        response = client.post("/api/auth/login", headers=headers)
        assert response.status_code in (200, 201)
        return headers, response.json()["user"]
    return _login


def event_payload(**overrides):
    start = utcnow() + timedelta(days=7)
    payload = {
        "title": "Beach Cleanup",
        "description": "Help clean up the beach",
        "shortDescription": "Beach cleanup",
        "category": "Environment",
        "tags": ["outdoors", "ocean"],
        "location": {"venue": "North Beach", "address": {"city": "Springfield", "country": "US"}},
        "startDate": start.isoformat(),
        "endDate": (start + timedelta(hours=4)).isoformat(),
        "duration": 4,
        "status": "published",
        "volunteerOpportunities": {
            "isAcceptingVolunteers": True,
            "maxVolunteers": 10,
            "roles": [{"title": "Collector", "count": 5}],
        },
        "partnershipOpportunities": {
            "isAcceptingPartners": True,
            "totalFundingGoal": 1000,
            "types": [{"type": "sponsor", "fundingRequired": True}],
        },
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def organizer(login):
    return login("organizer@example.com", "Olivia Organizer")


@pytest.fixture
def create_event(client, organizer):
    """Create an event as the organizer and return its stored document"""
    def _create(**overrides):
        headers, _ = organizer
        response = client.post("/api/events", json=event_payload(**overrides), headers=headers)
        assert response.status_code == 201, response.text
        return response.json()["event"]
    return _create


def volunteer_body(event_id, **overrides):
    body = {
        "eventId": event_id,
        "type": "volunteer",
        "volunteerDetails": {"preferredRole": "Collector", "skills": ["lifting"]},
        "consent": {"dataProcessing": True},
    }
    body.update(overrides)
    return body


def partner_body(event_id, partnership_type="sponsor", value=500, **overrides):
    body = {
        "eventId": event_id,
        "type": "partner",
        "partnershipDetails": {
            "partnershipType": partnership_type,
            "organizationName": "Acme Corp",
            "contribution": {"description": "Cash sponsorship", "value": value},
        },
        "consent": {"dataProcessing": True},
    }
    body.update(overrides)
    return body

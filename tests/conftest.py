"""
Vivento - test configuration and fixtures
"""
import os

# Set the testing environment before the app reads its configuration
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["COLLEGE_DOMAIN"] = "klu.ac.in"
os.environ["COLLEGE_NAME"] = "KL University"
os.environ["ADMIN_EMAILS"] = "admin@klu.ac.in"
os.environ["OTP_BYPASS_ENABLED"] = "false"
for key in ("SENDGRID_API_KEY", "SENDER_EMAIL", "CLOUDINARY_CLOUD_NAME", "CLOUDINARY_API_KEY", "CLOUDINARY_API_SECRET"):
    os.environ.pop(key, None)

from datetime import timedelta

import mongomock
import pytest
from faker import Faker
from fastapi.testclient import TestClient

from vivento import config
from vivento.db import CLUBS, USERS, ensure_indexes, get_database
from vivento.main import app
from vivento.utils.clock import utcnow
from vivento.utils.security import get_password_hash, token_for_user

fake = Faker()

TEST_PASSWORD = "testpassword123"
LOGO = "https://cdn.example.com/logos/chess.png"

# Hashing once keeps the suite fast; bcrypt is slow on purpose
_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)


@pytest.fixture
def db():
    """Fresh in-memory database for each test"""
    database = mongomock.MongoClient()["vivento_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    """Test client with the database dependency overridden"""
    app.dependency_overrides[get_database] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def no_resend_cooldown(monkeypatch):
    monkeypatch.setattr(config, "OTP_RESEND_COOLDOWN_SECONDS", 0)


@pytest.fixture
def make_user(db):
    def _make_user(user_type="student", email=None, **overrides):
        user = {
            "name": fake.name(),
            "email": email or f"{fake.user_name()}{fake.random_int(1000, 9999)}@klu.ac.in",
            "passwordHash": _PASSWORD_HASH,
            "userType": user_type,
            "year": "3rd Year",
            "department": "Computer Science",
            "section": "A",
            "college": "KL University",
            "isEmailVerified": True,
            "isClubVerified": False,
            "clubName": None,
            "createdAt": utcnow(),
        }
        user.update(overrides)
        user["_id"] = db[USERS].insert_one(user).inserted_id
        return user

    return _make_user


def auth_headers(user):
    return {"Authorization": f"Bearer {token_for_user(user)}"}


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
def organizer(make_user):
    return make_user("organizer", name="Ananya Cherukuri")


@pytest.fixture
def student(make_user):
    return make_user("student")


@pytest.fixture
def club_payload():
    return {
        "clubName": "Chess Club",
        "clubDescription": "Weekly blitz and rapid tournaments for all levels.",
        "clubLogo": LOGO,
        "facultyName": "Dr. Rao",
        "facultyEmail": "f@klu.ac.in",
        "facultyDepartment": "Mathematics",
    }


@pytest.fixture
def pending_club(client, db, organizer, club_payload):
    """Club submitted through the API; tests read its code back from the store"""
    response = client.post("/clubs/create", json=club_payload, headers=auth_headers(organizer))
    assert response.status_code == 201
    club_id = response.json()["clubId"]
    club = db[CLUBS].find_one({"facultyEmail": "f@klu.ac.in"})
    assert str(club["_id"]) == club_id
    return club


@pytest.fixture
def verified_organizer(make_user, db):
    """Organizer whose club has already been approved"""
    user = make_user("organizer", isClubVerified=True, clubName="Robotics Club")
    now = utcnow()
    db[CLUBS].insert_one({
        "clubName": "Robotics Club",
        "clubNameKey": "robotics club",
        "clubDescription": "Build, break and rebuild robots every weekend.",
        "clubLogo": LOGO,
        "organizer": user["_id"],
        "facultyName": "Dr. Iyer",
        "facultyEmail": "iyer@klu.ac.in",
        "facultyDepartment": "Mechanical",
        "college": "KL University",
        "isOrganizerVerified": True,
        "isFacultyVerified": True,
        "isClubApproved": True,
        "memberCount": 0,
        "eventCount": 0,
        "status": "approved",
        "createdAt": now - timedelta(days=10),
        "verifiedAt": now - timedelta(days=9),
    })
    return user

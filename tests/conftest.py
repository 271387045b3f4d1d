import os
import tempfile

# Must be set before recipehub.settings is imported
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("MEDIA_ROOT", tempfile.mkdtemp(prefix="recipehub-media-"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from recipehub.main import app
from recipehub.db import Base, configure_engine, get_db
from recipehub.infra.rate_limit import limiter
from recipehub.models import Recipe, RecipeStatus, Role, User
from recipehub.security import hash_password
from recipehub.services import auth_service
from recipehub.services import email as email_client
from recipehub.services import push as push_client

# --- Test Database Setup ---

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = configure_engine(create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # one shared in-memory DB across sessions/threads
))
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    """Test client with DB override."""
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def db_session():
    """Direct database session for setup."""
    session = TestingSessionLocal()
    yield session
    session.close()


import fakeredis
from recipehub.infra import redis_client


@pytest.fixture(autouse=True)
def mock_redis():
    sync_redis = fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)

    # Force the client into the infra module
    redis_client._redis_sync = sync_redis

    yield sync_redis

    # Cleanup
    redis_client._redis_sync = None


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    yield
    limiter.reset()


# --- Outbound collaborators ---

@pytest.fixture(autouse=True)
def outbox(monkeypatch):
    """Captures emails instead of calling the provider."""
    sent = []

    def fake_send_email(*, to, subject, html_body, timeout_s=10.0):
        sent.append({"to": to, "subject": subject, "html": html_body})
        return True

    monkeypatch.setattr(email_client, "send_email", fake_send_email)
    return sent


@pytest.fixture(autouse=True)
def pushes(monkeypatch):
    """Captures push sends; every token is accepted."""
    calls = []

    def fake_send_push(tokens, *, title, body, data=None, timeout_s=10.0):
        calls.append({"tokens": list(tokens), "title": title, "body": body, "data": data})
        return push_client.PushResult(sent=len(tokens))

    monkeypatch.setattr(push_client, "send_push", fake_send_push)
    return calls


# --- Users / recipes ---

DEFAULT_PASSWORD = "Passw0rd!"


@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make(role=Role.USER, email=None, password=DEFAULT_PASSWORD, **fields):
        counter["n"] += 1
        user = User(
            email=email or f"{role.lower()}{counter['n']}@example.com",
            password_hash=hash_password(password),
            first_name=fields.pop("first_name", role.title()),
            last_name=fields.pop("last_name", f"Tester{counter['n']}"),
            role=role,
            terms_accepted=True,
            is_email_verified=True,
            **fields,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def auth_headers(db_session):
    def _headers(user):
        token = auth_service.open_session(db_session, user)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def user(make_user):
    return make_user(Role.USER)


@pytest.fixture
def chef(make_user):
    return make_user(Role.CHEF)


@pytest.fixture
def admin(make_user):
    return make_user(Role.ADMIN)


@pytest.fixture
def user_headers(user, auth_headers):
    return auth_headers(user)


@pytest.fixture
def chef_headers(chef, auth_headers):
    return auth_headers(chef)


@pytest.fixture
def admin_headers(admin, auth_headers):
    return auth_headers(admin)


def recipe_payload(**overrides):
    data = {
        "title": "Lemon Garlic Chicken",
        "description": "Bright weeknight chicken",
        "main_ingredient": "Chicken",
        "ingredients": [
            {"name": "Chicken thighs", "amount": "4", "unit": "pieces"},
            {"name": "Garlic", "amount": "3", "unit": "cloves"},
        ],
        "instructions": ["Season the chicken", "Roast 25 minutes"],
        "prep_time": 10,
        "cooking_time": 25,
        "servings": 4,
        "difficulty": "EASY",
        "meal_type": ["DINNER"],
        "diet_type": ["HIGH_PROTEIN"],
        "cuisine_type": "MEDITERRANEAN",
        "allergies": [],
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_recipe(db_session):
    def _make(author, status=RecipeStatus.APPROVED, **overrides):
        data = recipe_payload(**overrides)
        recipe = Recipe(author_id=author.id, status=status, **data)
        db_session.add(recipe)
        db_session.commit()
        db_session.refresh(recipe)
        return recipe

    return _make

import asyncio
import os

os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["APP_ENV"] = "test"
for _name in ("BOOTSTRAP_ADMIN_EMAIL", "BOOTSTRAP_ADMIN_PASSWORD", "BOOTSTRAP_ADMIN_NAME"):
    os.environ.pop(_name, None)

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from permitdesk import user_store
from permitdesk.auth import Identity
from permitdesk.db import ensure_indexes
from permitdesk.main import create_app
from permitdesk.user_store import Role

PASSWORD = "secret123"

VALID_PERMIT = {
    "woNumber": "WO-100",
    "wpNumber": "1234",
    "name": "Alex Doe",
    "designation": "Electrician",
    "plant": "North Plant",
    "workNature": "Cable replacement",
    "estimatedDays": 3,
    "location": {"latitude": 51.5074, "longitude": -0.1278},
}


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def db():
    database = AsyncMongoMockClient()["permitdesk_test"]
    run(ensure_indexes(database))
    return database


@pytest.fixture
def client(db):
    app = create_app(database=db)
    with TestClient(app) as test_client:
        yield test_client


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register(client, email: str, name: str = "Test User", password: str = PASSWORD) -> dict:
    response = client.post("/api/auth/register", json={"name": name, "email": email, "password": password})
    assert response.status_code == 201, response.text
    return response.json()


def make_admin(client, db, email: str, name: str = "Admin") -> dict:
    run(user_store.create_user(db, name=name, email=email, password=PASSWORD, role=Role.ADMIN))
    response = client.post("/api/auth/login", json={"email": email, "password": PASSWORD})
    assert response.status_code == 200, response.text
    return response.json()


def permit_payload(**overrides) -> dict:
    payload = dict(VALID_PERMIT)
    payload["location"] = dict(VALID_PERMIT["location"])
    payload.update(overrides)
    return payload


def identity_for(record: dict) -> Identity:
    return Identity(user_id=record["id"], role=user_store.normalize_role(record["role"]), record=record)


@pytest.fixture
def user_identity(db):
    record = run(user_store.create_user(db, name="Worker", email="worker@example.com", password=PASSWORD))
    return identity_for(record)


@pytest.fixture
def admin_identity(db):
    record = run(
        user_store.create_user(db, name="Boss", email="boss@example.com", password=PASSWORD, role=Role.ADMIN)
    )
    return identity_for(record)

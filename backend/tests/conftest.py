import json

import pytest
from fastapi.testclient import TestClient
from passlib.context import CryptContext
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from campus_market import db
from campus_market.auth import auth_handler
from campus_market.config import config
from campus_market.main import app
from campus_market.models.user_db import User

PASSWORD = "secret123"


@pytest.fixture
def engine(monkeypatch, tmp_path):
    """Fresh in-memory database and upload directory for every test."""
    test_engine = db.build_engine("sqlite://", poolclass=StaticPool)
    monkeypatch.setattr(db, "engine", test_engine)
    monkeypatch.setattr(config, "UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setattr(config, "OPENAI_API_KEY", "")
    monkeypatch.setattr(config, "STRIPE_SECRET_KEY", "")
    monkeypatch.setattr(config, "ALLOW_SIMULATED_DEPOSITS", True)
    # Minimum bcrypt cost
    monkeypatch.setattr(auth_handler, "pwd_context", CryptContext(schemes=["bcrypt"], bcrypt__rounds=4))
    db.create_db_and_tables()
    yield test_engine
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture
def client(engine):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_user(client):
    """Register a user; returns (auth headers, user json)."""
    def _make_user(username, password=PASSWORD, **extra):
        payload = {
            "username": username,
            "email": f"{username}@campus.edu",
            "password": password,
            "confirm_password": password,
            "display_name": username.title(),
        }
        payload.update(extra)
        res = client.post("/api/auth/register", json=payload)
        assert res.status_code == 201, res.text
        body = res.json()
        return {"Authorization": f"Bearer {body['access_token']}"}, body["user"]
    return _make_user


@pytest.fixture
def make_admin(make_user):
    def _make_admin(username="admin"):
        headers, user = make_user(username)
        with db.get_session() as session:
            row = session.get(User, user["id"])
            row.is_admin = True
            session.add(row)
            session.commit()
        return headers, user
    return _make_admin


@pytest.fixture
def make_listing(client):
    def _make_listing(headers, files=None, **overrides):
        data = {
            "title": "Desk Lamp",
            "description": "Bright LED desk lamp",
            "price": 15.0,
            "condition": "good",
            "location": "North Dorms",
            "category_id": 1,
            "is_urgent": False,
        }
        data.update(overrides)
        res = client.post("/api/listings", data={"data": json.dumps(data)}, files=files, headers=headers)
        assert res.status_code == 201, res.text
        return res.json()
    return _make_listing


@pytest.fixture
def fund(client):
    def _fund(headers, amount):
        res = client.post("/api/wallet/deposit", json={"amount": amount}, headers=headers)
        assert res.status_code == 200, res.text
        return res.json()
    return _fund

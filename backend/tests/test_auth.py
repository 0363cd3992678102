from datetime import datetime, timezone
from decimal import Decimal

from conftest import PASSWORD

from campus_market import db, storage
from campus_market.auth.auth_handler import create_access_token, decode_token
from campus_market.config import config
from campus_market.models.user_db import User
from campus_market.models.wallet_db import WalletTransaction


def test_register_returns_token_and_user(client):
    res = client.post("/api/auth/register", json={
        "username": "jane",
        "email": "jane@campus.edu",
        "password": PASSWORD,
        "confirm_password": PASSWORD,
        "display_name": "Jane Smith",
        "campus": "Main Campus",
    })
    assert res.status_code == 201
    body = res.json()
    assert body["token_type"] == "bearer"
    assert body["access_token"]
    user = body["user"]
    assert user["username"] == "jane"
    assert user["campus"] == "Main Campus"
    assert user["is_admin"] is False
    assert user["wallet_balance"] == "0.00"
    assert "hashed_password" not in user


def test_register_rejects_duplicate_username_and_email(client, make_user):
    make_user("jane")
    res = client.post("/api/auth/register", json={
        "username": "JANE", "email": "other@campus.edu", "password": PASSWORD,
        "confirm_password": PASSWORD, "display_name": "Other",
    })
    assert res.status_code == 400
    assert res.json()["detail"] == "Username already taken"

    res = client.post("/api/auth/register", json={
        "username": "janet", "email": "jane@campus.edu", "password": PASSWORD,
        "confirm_password": PASSWORD, "display_name": "Janet",
    })
    assert res.status_code == 400
    assert res.json()["detail"] == "Email already registered"


def test_register_validation_errors(client):
    base = {"username": "jane", "email": "jane@campus.edu", "display_name": "Jane"}

    res = client.post("/api/auth/register", json={**base, "password": PASSWORD, "confirm_password": "different"})
    assert res.status_code == 400
    assert res.json()["detail"] == "Validation error"

    res = client.post("/api/auth/register", json={**base, "password": "abc", "confirm_password": "abc"})
    assert res.status_code == 400

    res = client.post("/api/auth/register", json={**base, "email": "not-an-email",
                                                  "password": PASSWORD, "confirm_password": PASSWORD})
    assert res.status_code == 400
    assert any("email" in err["loc"] for err in res.json()["errors"])


def test_login_and_me(client, make_user):
    make_user("jane")
    res = client.post("/api/auth/login", data={"username": "jane", "password": PASSWORD})
    assert res.status_code == 200
    token = res.json()["access_token"]

    res = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 200
    assert res.json()["username"] == "jane"
    assert "hashed_password" not in res.json()


def test_login_rejects_bad_credentials(client, make_user):
    make_user("jane")
    res = client.post("/api/auth/login", data={"username": "jane", "password": "wrong-password"})
    assert res.status_code == 401
    res = client.post("/api/auth/login", data={"username": "nobody", "password": PASSWORD})
    assert res.status_code == 401


def test_me_requires_valid_token(client):
    assert client.get("/api/auth/me").status_code == 401
    res = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert res.status_code == 401


def test_update_profile_and_password(client, make_user):
    headers, _ = make_user("jane")
    res = client.put("/api/auth/update", json={"display_name": "Jane S.", "bio": "CS major",
                                               "password": "newsecret"}, headers=headers)
    assert res.status_code == 200
    assert res.json()["display_name"] == "Jane S."
    assert res.json()["bio"] == "CS major"

    assert client.post("/api/auth/login", data={"username": "jane", "password": PASSWORD}).status_code == 401
    assert client.post("/api/auth/login", data={"username": "jane", "password": "newsecret"}).status_code == 200


def test_update_profile_rejects_taken_email(client, make_user):
    make_user("mike")
    headers, _ = make_user("jane")
    res = client.put("/api/auth/update", json={"email": "mike@campus.edu"}, headers=headers)
    assert res.status_code == 400


def test_logout(client, make_user):
    headers, _ = make_user("jane")
    res = client.post("/api/auth/logout", headers=headers)
    assert res.status_code == 200
    assert res.json()["message"] == "Logged out successfully"


def test_health(client):
    assert client.get("/").json() == {"message": "Campus Market backend is live"}


def test_register_race_on_unique_username(client, make_user, monkeypatch):
    make_user("jane")
    # Both registrations passed the lookup before either inserted
    monkeypatch.setattr(storage, "get_user_by_username", lambda session, username: None)
    monkeypatch.setattr(storage, "get_user_by_email", lambda session, email: None)

    res = client.post("/api/auth/register", json={
        "username": "jane", "email": "jane2@campus.edu", "password": PASSWORD,
        "confirm_password": PASSWORD, "display_name": "Jane Again",
    })
    assert res.status_code == 400
    assert res.json()["detail"] == "Username or email already registered"


def test_token_expiry_is_timezone_aware(monkeypatch):
    monkeypatch.setattr(config, "ACCESS_TOKEN_EXPIRE_MINUTES", 5)
    before = datetime.now(timezone.utc).timestamp()
    claims = decode_token(create_access_token({"sub": "1"}))
    assert claims["sub"] == "1"
    assert before + 290 <= claims["exp"] <= before + 310


def test_new_rows_carry_utc_timestamps(engine, make_user):
    _, user = make_user("jane")
    with db.get_session() as session:
        storage.deposit(session, user["id"], 5, "Simulated deposit")
    for row in (User(username="x", email="x@campus.edu", hashed_password="h", display_name="X"),
                WalletTransaction(user_id=1, amount=Decimal("1.00"), type="deposit")):
        assert row.created_at.tzinfo is not None

from datetime import datetime, timedelta
from unittest.mock import patch

from futuresync.crud import token as crud_token
from futuresync.crud import user as crud_user
from futuresync.models import AuditLog, AuthToken, UserProgress

PASSWORD = "Str0ng!Passw0rd"

REGISTRATION = {
    "email": "New.User@Example.com",
    "password": PASSWORD,
    "name": "New User",
    "acceptTerms": True,
}

def login(client, email, password=PASSWORD):
    return client.post("/auth/login", data={"username": email, "password": password})

def test_register_creates_inactive_user(client, db):
    with patch("futuresync.email_service.send_verification_email", return_value=True) as send:
        response = client.post("/auth/register", json=REGISTRATION)

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    user = crud_user.get_user(db, body["userId"])
    assert user.email == "new.user@example.com"
    assert not user.is_active
    assert user.email_verified_at is None
    assert db.query(UserProgress).filter(UserProgress.user_id == user.id).count() == 1
    assert db.query(AuditLog).filter(AuditLog.user_id == user.id, AuditLog.action == "create").count() == 1
    send.assert_called_once()

def test_register_existing_email_gets_generic_answer(client, user):
    response = client.post("/auth/register", json={**REGISTRATION, "email": user.email})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert "userId" not in body

def test_register_rejects_weak_password(client):
    response = client.post("/auth/register", json={**REGISTRATION, "password": "weak"})
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Validation failed"
    assert all(d["field"] == "password" for d in body["details"])

def test_register_requires_terms(client):
    response = client.post("/auth/register", json={**REGISTRATION, "acceptTerms": False})
    assert response.status_code == 400
    assert {"field": "acceptTerms", "message": "You must accept the terms and conditions"} in response.json()["details"]

def test_register_rejects_invalid_email(client):
    response = client.post("/auth/register", json={**REGISTRATION, "email": "not-an-email"})
    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "email"

def test_verify_then_login(client, db):
    with patch("futuresync.email_service.send_verification_email", return_value=True) as send:
        client.post("/auth/register", json=REGISTRATION)
    token = send.call_args[0][1]

    assert login(client, "new.user@example.com").status_code == 403

    response = client.post("/auth/verify", json={"token": token})
    assert response.status_code == 200

    response = login(client, "new.user@example.com")
    assert response.status_code == 200
    assert response.json()["token_type"] == "bearer"

    # Tokens are single use
    response = client.post("/auth/verify", json={"token": token})
    assert response.status_code == 400
    assert response.json()["code"] == "VERIFICATION_FAILED"

def test_verify_link_redirects_to_frontend(client):
    response = client.get("/auth/verify", params={"token": "abc"}, follow_redirects=False)
    assert response.status_code in (302, 307)
    assert response.headers["location"].endswith("/auth/verify?token=abc")

def test_login_wrong_password(client, user):
    response = login(client, user.email, "Wr0ng!Password")
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid email or password"

def test_login_unknown_email(client):
    assert login(client, "ghost@example.com").status_code == 401

def test_login_locks_after_repeated_failures(client, user):
    for _ in range(5):
        assert login(client, user.email, "Wr0ng!Password").status_code == 401

    response = login(client, user.email)
    assert response.status_code == 429
    assert response.json()["code"] == "RATE_LIMITED"
    assert response.json()["retryAfter"] > 0
    assert response.headers["X-RateLimit-Limit"] == "5"
    assert response.headers["X-RateLimit-Remaining"] == "0"
    assert 0 < int(response.headers["Retry-After"]) <= 15 * 60

def test_login_social_account_without_password(client, db):
    crud_user.create_user(db, "social@example.com", None, name="Social")
    assert login(client, "social@example.com").status_code == 400

def test_login_updates_last_login_and_audits(client, db, user):
    assert user.last_login is None
    assert login(client, user.email).status_code == 200
    db.refresh(user)
    assert user.last_login is not None
    assert db.query(AuditLog).filter(AuditLog.user_id == user.id, AuditLog.action == "login").count() == 1

def test_me_returns_user_plan_and_progress(client, user):
    token = login(client, user.email).json()["access_token"]
    response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["user"]["email"] == user.email
    assert "password_hash" not in data["user"]
    assert data["plan"] == "free"
    assert data["progress"]["currentStreak"] == 0

def test_me_requires_token(client):
    assert client.get("/auth/me").status_code == 401
    response = client.get("/auth/me", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401

def test_password_reset_flow(client, db, user):
    with patch("futuresync.email_service.send_password_reset_email", return_value=True) as send:
        response = client.post("/auth/forgot-password", json={"email": user.email})
    assert response.status_code == 200
    token = send.call_args[0][1]

    response = client.get("/auth/reset-password", params={"token": token})
    assert response.status_code == 200
    assert response.json()["email"] == user.email

    response = client.post("/auth/reset-password", json={"token": token, "password": "N3w!Passw0rd"})
    assert response.status_code == 200

    assert login(client, user.email).status_code == 401
    assert login(client, user.email, "N3w!Passw0rd").status_code == 200

    response = client.post("/auth/reset-password", json={"token": token, "password": "An0ther!Pass"})
    assert response.status_code == 400
    assert response.json()["code"] == "RESET_FAILED"

def test_forgot_password_unknown_email_same_answer(client, user):
    with patch("futuresync.email_service.send_password_reset_email") as send:
        known = client.post("/auth/forgot-password", json={"email": user.email})
        unknown = client.post("/auth/forgot-password", json={"email": "ghost@example.com"})
    assert known.json() == unknown.json()
    assert send.call_count == 1

def test_forgot_password_rate_limited_per_email(client, user):
    with patch("futuresync.email_service.send_password_reset_email", return_value=True):
        for _ in range(3):
            assert client.post("/auth/forgot-password", json={"email": user.email}).status_code == 200
        response = client.post("/auth/forgot-password", json={"email": user.email})
    assert response.status_code == 429
    assert response.json()["code"] == "RATE_LIMITED"
    assert response.json()["retryAfter"] > 0
    assert response.headers["X-RateLimit-Limit"] == "3"
    assert response.headers["X-RateLimit-Remaining"] == "0"
    assert "Retry-After" in response.headers

def test_new_reset_token_invalidates_previous(db, user):
    first = crud_token.create_password_reset_token(db, user.id)
    second = crud_token.create_password_reset_token(db, user.id)
    assert crud_token.validate_password_reset_token(db, first) is None
    assert crud_token.validate_password_reset_token(db, second).id == user.id

def test_reset_password_rejects_weak_password(client, db, user):
    token = crud_token.create_password_reset_token(db, user.id)
    response = client.post("/auth/reset-password", json={"token": token, "password": "weak"})
    assert response.status_code == 400
    assert response.json()["error"] == "Validation failed"

def test_reset_password_get_invalid_token(client):
    response = client.get("/auth/reset-password", params={"token": "nope"})
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_TOKEN"

def test_cleanup_expired_tokens(db, user):
    fresh = crud_token.create_email_verification_token(db, user.id)
    stale = crud_token.create_password_reset_token(db, user.id)
    db.query(AuthToken).filter(AuthToken.token == stale).update(
        {AuthToken.expires_at: datetime.utcnow() - timedelta(days=8)}, synchronize_session=False
    )
    db.commit()

    assert crud_token.cleanup_expired_tokens(db) == 1
    assert db.query(AuthToken).filter(AuthToken.token == fresh).count() == 1

import os

# Keep real providers out of the test run
for _key in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GOOGLE_API_KEY", "STRIPE_SECRET_KEY",
             "STRIPE_WEBHOOK_SECRET", "SENDER_EMAIL", "SENDER_PASSWORD"):
    os.environ[_key] = ""
os.environ["AUTO_VERIFY_EMAIL"] = "false"
os.environ["ENVIRONMENT"] = "test"

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from futuresync import models  # noqa: F401
from futuresync.database import Base, get_db
from futuresync.main import app
from futuresync.ai_service import ai_service
from futuresync.ai_usage import usage_tracker
from futuresync.crud import user as crud_user
from futuresync.rate_limit import rate_limiter, login_attempts
from futuresync.security import create_access_token

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "Str0ng!Passw0rd"

@pytest.fixture(autouse=True)
def reset_in_memory_state():
    usage_tracker.reset_usage()
    rate_limiter.reset()
    login_attempts.reset()
    ai_service.reset()
    yield

@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)

@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()

def headers_for(user):
    token = create_access_token({"sub": user.email}, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}

@pytest.fixture
def make_headers():
    return headers_for

@pytest.fixture
def user(db):
    return crud_user.create_user(db, "alice@example.com", PASSWORD, name="Alice", email_verified=True)

@pytest.fixture
def other_user(db):
    return crud_user.create_user(db, "bob@example.com", PASSWORD, name="Bob", email_verified=True)

@pytest.fixture
def auth_headers(user):
    return headers_for(user)

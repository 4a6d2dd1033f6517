import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["JWT_ALGORITHM"] = "HS256"
os.environ["CRON_SECRET"] = "cron-test"
os.environ["OPENAI_API_KEY"] = ""

from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from app.core.clock import get_now, get_today
from app.core.jwt import create_access_token
from app.core.security import hash_password
from app.database import engine, get_session, init_db
from app.main import app
from app.models.user import User

TODAY = date(2025, 6, 15)
NOW = datetime(2025, 6, 15, 12, 0, 0)


@pytest.fixture
def session():
    init_db(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def client(session):
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_today] = lambda: TODAY
    app.dependency_overrides[get_now] = lambda: NOW
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_user(session, email):
    user = User(email=email, hashed_password=hash_password("secret123"))
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


@pytest.fixture
def user(session):
    return make_user(session, "ana@example.com")


@pytest.fixture
def other_user(session):
    return make_user(session, "bob@example.com")


@pytest.fixture
def headers(user):
    return auth_headers(user)

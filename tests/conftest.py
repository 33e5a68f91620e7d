import os
import tempfile

_tmp = tempfile.mkdtemp(prefix="triplink-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmp, 'test.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(_tmp, "uploads")
os.environ["LOG_PATH"] = os.path.join(_tmp, "logs", "api.log")
os.environ["PUBLIC_BASE_URL"] = "http://testserver"
os.environ["FIREBASE_CREDENTIALS_PATH"] = os.path.join(_tmp, "missing-service-account.json")
os.environ.pop("GOOGLE_APPLICATION_CREDENTIALS", None)

from datetime import date, timedelta
from typing import Optional

import pytest
from fastapi import Depends, Header, Query
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

import main
from database import Base, SessionLocal, engine, get_db
from models.Profile import Profile
from models.Trip import Trip
from services import auth as auth_service
from services.auth import SessionContext, get_session, get_ws_session
from services.exceptions import AuthenticationError


def _test_session(
    x_test_user: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> SessionContext:
    # tests authenticate with a plain user id instead of a Firebase token
    if not x_test_user:
        raise AuthenticationError("Not authenticated")
    profile = auth_service.ensure_profile(db, x_test_user)
    return SessionContext(user_id=x_test_user, profile=profile)


def _test_ws_session(
    token: Optional[str] = Query(None),
    db: Session = Depends(get_db),
) -> SessionContext:
    profile = auth_service.ensure_profile(db, token)
    return SessionContext(user_id=token, profile=profile)


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    auth_service._profile_cache.clear()
    yield
    auth_service._profile_cache.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    main.app.dependency_overrides[get_session] = _test_session
    main.app.dependency_overrides[get_ws_session] = _test_ws_session
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()


def as_user(user_id: str) -> dict:
    return {"X-Test-User": user_id}


@pytest.fixture
def make_profile(db):
    def _make(user_id: str, **fields) -> Profile:
        profile = Profile(id=user_id, **fields)
        db.add(profile)
        db.commit()
        db.refresh(profile)
        return profile
    return _make


@pytest.fixture
def make_trip(db, make_profile):
    def _make(owner_id: str = "owner", **fields) -> Trip:
        if not db.query(Profile).filter(Profile.id == owner_id).first():
            make_profile(owner_id, full_name=owner_id.title())
        start = date.today() + timedelta(days=10)
        values = dict(
            user_id=owner_id,
            title="Backpacking through Patagonia",
            destination="Patagonia, Argentina",
            description="Three weeks of hiking, glaciers and long bus rides.",
            start_date=start,
            end_date=start + timedelta(days=21),
            budget="Mid-range",
            max_travelers=4,
            current_travelers=1,
            interests=["Hiking", "Nature"],
        )
        values.update(fields)
        trip = Trip(**values)
        db.add(trip)
        db.commit()
        db.refresh(trip)
        return trip
    return _make


@pytest.fixture
def trip_payload():
    start = date.today() + timedelta(days=30)
    return {
        "title": "Island hopping in Greece",
        "destination": "Cyclades, Greece",
        "description": "Ferries, beaches and too much feta for two weeks.",
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(days=14)).isoformat(),
        "budget": "Budget",
        "max_travelers": 4,
        "interests": ["Beach", "Cuisine"],
    }

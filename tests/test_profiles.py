from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import false

from conftest import as_user
from database import SessionLocal
from models.Profile import Profile
from services import auth as auth_service
from services.auth import SessionContext, resolve_session, sign_out
from services.exceptions import AuthenticationError

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def test_profile_created_on_first_request(client, db):
    resp = client.get("/profiles/me", headers=as_user("newcomer"))
    assert resp.status_code == 200
    assert resp.json()["id"] == "newcomer"
    assert db.query(Profile).filter(Profile.id == "newcomer").count() == 1


def test_update_profile(client):
    resp = client.patch("/profiles/me", json={"username": "ana_travels", "bio": "Always packing", "age": 29},
                        headers=as_user("ana"))
    assert resp.status_code == 200
    assert resp.json()["username"] == "ana_travels"

    public = client.get("/profiles/ana").json()
    assert public["bio"] == "Always packing"
    assert public["age"] == 29


def test_username_must_be_unique(client, make_profile):
    make_profile("ben", username="wanderer")
    resp = client.patch("/profiles/me", json={"username": "wanderer"}, headers=as_user("ana"))
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Username already taken"


def test_profile_validation(client):
    assert client.patch("/profiles/me", json={"age": 9}, headers=as_user("ana")).status_code == 422


def test_unknown_profile_is_404(client):
    assert client.get("/profiles/nobody").status_code == 404


def test_avatar_upload_overwrites_previous(client):
    first = client.post("/profiles/me/avatar", files={"file": ("me.png", PNG, "image/png")}, headers=as_user("ana"))
    assert first.status_code == 200
    url = first.json()["avatar_url"]
    assert url == "http://testserver/files/avatars/ana/avatar.png"

    newer = PNG + b"\x01"
    second = client.post("/profiles/me/avatar", files={"file": ("me.png", newer, "image/png")}, headers=as_user("ana"))
    assert second.json()["avatar_url"] == url
    assert client.get("/files/avatars/ana/avatar.png").content == newer


def test_push_token(client, db):
    resp = client.put("/profiles/me/push-token", json={"fcm_token": "device-123"}, headers=as_user("ana"))
    assert resp.status_code == 200
    assert db.query(Profile).filter(Profile.id == "ana").one().fcm_token == "device-123"


# ---------- Session ----------

def test_session_endpoint(client, make_profile):
    make_profile("ana", full_name="Ana Lima")
    resp = client.get("/auth/session", headers=as_user("ana"))
    assert resp.status_code == 200
    body = resp.json()
    assert body["user_id"] == "ana"
    assert body["profile"]["full_name"] == "Ana Lima"


def test_session_survives_writes_in_earlier_requests(client, trip_payload):
    client.post("/trips/", json=trip_payload, headers=as_user("ana"))
    resp = client.get("/auth/session", headers=as_user("ana"))
    assert resp.status_code == 200
    assert resp.json()["profile"]["id"] == "ana"


def test_sign_out_evicts_cached_profile(client):
    client.get("/profiles/me", headers=as_user("ana"))
    assert "ana" in auth_service._profile_cache

    assert client.post("/auth/sign-out", headers=as_user("ana")).status_code == 204
    assert "ana" not in auth_service._profile_cache


def test_sign_out_without_firebase_only_clears_local_state(db):
    profile = auth_service.ensure_profile(db, "ana")
    session = SessionContext(user_id="ana", profile=profile)
    sign_out(session)
    assert session.profile is None
    assert "ana" not in auth_service._profile_cache


def test_profile_created_concurrently_is_reused(db, monkeypatch):
    # another request inserts the row between our lookup and our insert
    other = SessionLocal()
    other.add(Profile(id="racer", full_name="First Writer"))
    other.commit()
    other.close()

    real_query = db.query
    lookups = []

    def lookup_before_the_other_insert(*entities):
        query = real_query(*entities)
        if not lookups:
            lookups.append(entities)
            return query.filter(false())
        return query

    monkeypatch.setattr(db, "query", lookup_before_the_other_insert)

    profile = auth_service.ensure_profile(db, "racer", {"name": "Second Writer"})

    assert profile.full_name == "First Writer"
    assert "racer" in auth_service._profile_cache


def test_expired_cache_entries_are_dropped(db):
    profile = auth_service.ensure_profile(db, "ana")
    auth_service._profile_cache["ana"] = (profile, datetime.now(timezone.utc) - timedelta(seconds=1))

    assert auth_service._get_cached_profile("ana") is None
    assert "ana" not in auth_service._profile_cache


def test_missing_token_is_rejected(db):
    with pytest.raises(AuthenticationError):
        resolve_session(db, None)


def test_bearer_header_parsing():
    assert auth_service._bearer("Bearer abc.def") == "abc.def"
    assert auth_service._bearer("Basic abc") is None
    assert auth_service._bearer(None) is None


def test_first_sign_in_creates_profile_from_claims(db, monkeypatch):
    monkeypatch.setattr(auth_service, "verify_token", lambda token: {
        "uid": "firebase-uid-1",
        "email": "ana@example.com",
        "name": "Ana Lima",
        "picture": "https://example.com/ana.png",
    })

    session = resolve_session(db, "any-token")

    assert session.user_id == "firebase-uid-1"
    assert session.email == "ana@example.com"
    stored = db.query(Profile).filter(Profile.id == "firebase-uid-1").one()
    assert stored.full_name == "Ana Lima"
    assert stored.avatar_url == "https://example.com/ana.png"


def test_unconfigured_auth_rejects_tokens(db):
    with pytest.raises(AuthenticationError):
        resolve_session(db, "some-token")


# ---------- Trip discussion ----------

def test_trip_discussion_over_http(client, make_trip):
    trip = make_trip("owner")

    assert client.get(f"/trips/{trip.id}/discussion/").json() == []

    blank = client.post(f"/trips/{trip.id}/discussion/", json={"content": "  "}, headers=as_user("ana"))
    assert blank.status_code == 400

    first = client.post(f"/trips/{trip.id}/discussion/", json={"content": "Is the trip still on?"},
                        headers=as_user("ana"))
    assert first.status_code == 201
    client.post(f"/trips/{trip.id}/discussion/", json={"content": "Yes!"}, headers=as_user("owner"))

    posts = client.get(f"/trips/{trip.id}/discussion/").json()
    assert [(p["user_id"], p["content"]) for p in posts] == [("ana", "Is the trip still on?"), ("owner", "Yes!")]
    assert posts[1]["author"]["full_name"] == "Owner"


def test_discussion_on_missing_trip(client):
    assert client.get("/trips/nope/discussion/").status_code == 404
    resp = client.post("/trips/nope/discussion/", json={"content": "hello"}, headers=as_user("ana"))
    assert resp.status_code == 404

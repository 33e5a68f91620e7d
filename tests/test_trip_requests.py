import logging

import pytest

from conftest import as_user
from models.Trip import Trip
from models.TripRequest import TripRequest, RequestStatus
from services import trip_requests as workflow
from services.auth import SessionContext
from services.exceptions import (
    DuplicateRequestError,
    NotTripOwnerError,
    OwnRequestError,
    RequestNotPendingError,
    TripFullError,
    TripNotFoundError,
)
from utils.logger import API_LOGGER_NAME


def session_for(user_id):
    return SessionContext(user_id=user_id)


@pytest.fixture
def travelers(make_profile):
    for user_id in ("ana", "ben", "cleo"):
        make_profile(user_id, full_name=user_id.title())


def travelers_on(db, trip_id):
    db.expire_all()
    return db.query(Trip).filter(Trip.id == trip_id).one().current_travelers


def test_create_request_starts_pending(db, make_trip, travelers):
    trip = make_trip()
    request = workflow.create_request(db, session_for("ana"), trip.id, "Can I come along?")
    assert request.status == RequestStatus.PENDING
    assert request.trip_id == trip.id
    assert request.user_id == "ana"


def test_second_request_for_same_trip_is_rejected(db, make_trip, travelers):
    trip = make_trip()
    workflow.create_request(db, session_for("ana"), trip.id, "first")
    with pytest.raises(DuplicateRequestError):
        workflow.create_request(db, session_for("ana"), trip.id, "second")
    assert db.query(TripRequest).filter(TripRequest.trip_id == trip.id).count() == 1


def test_owner_cannot_request_own_trip(db, make_trip):
    trip = make_trip("owner")
    with pytest.raises(OwnRequestError):
        workflow.create_request(db, session_for("owner"), trip.id)


def test_request_for_missing_trip(db, travelers):
    with pytest.raises(TripNotFoundError):
        workflow.create_request(db, session_for("ana"), "no-such-trip")


def test_approve_and_reject_scenario(db, make_trip, travelers):
    trip = make_trip("owner", max_travelers=4, current_travelers=1)
    r1 = workflow.create_request(db, session_for("ana"), trip.id)
    r2 = workflow.create_request(db, session_for("ben"), trip.id)

    approved = workflow.approve_request(db, session_for("owner"), r1.id)
    assert approved.status == RequestStatus.APPROVED
    assert travelers_on(db, trip.id) == 2

    rejected = workflow.reject_request(db, session_for("owner"), r2.id)
    assert rejected.status == RequestStatus.REJECTED
    assert travelers_on(db, trip.id) == 2


def test_approving_twice_increments_once(db, make_trip, travelers):
    trip = make_trip("owner")
    request = workflow.create_request(db, session_for("ana"), trip.id)
    workflow.approve_request(db, session_for("owner"), request.id)
    with pytest.raises(RequestNotPendingError):
        workflow.approve_request(db, session_for("owner"), request.id)
    assert travelers_on(db, trip.id) == 2


def test_rejected_request_cannot_be_approved(db, make_trip, travelers):
    trip = make_trip("owner")
    request = workflow.create_request(db, session_for("ana"), trip.id)
    workflow.reject_request(db, session_for("owner"), request.id)
    with pytest.raises(RequestNotPendingError):
        workflow.approve_request(db, session_for("owner"), request.id)
    assert travelers_on(db, trip.id) == 1


def test_full_trip_refuses_approval_and_leaves_request_pending(db, make_trip, travelers):
    trip = make_trip("owner", max_travelers=2, current_travelers=1)
    first = workflow.create_request(db, session_for("ana"), trip.id)
    second = workflow.create_request(db, session_for("ben"), trip.id)
    workflow.approve_request(db, session_for("owner"), first.id)

    with pytest.raises(TripFullError):
        workflow.approve_request(db, session_for("owner"), second.id)

    db.expire_all()
    assert db.query(TripRequest).filter(TripRequest.id == second.id).one().status == RequestStatus.PENDING
    assert travelers_on(db, trip.id) == 2


def test_only_owner_answers_requests(db, make_trip, travelers):
    trip = make_trip("owner")
    request = workflow.create_request(db, session_for("ana"), trip.id)
    with pytest.raises(NotTripOwnerError):
        workflow.approve_request(db, session_for("ben"), request.id)
    with pytest.raises(NotTripOwnerError):
        workflow.reject_request(db, session_for("ana"), request.id)
    assert travelers_on(db, trip.id) == 1


# ---------- HTTP ----------

def test_request_flow_over_http(client, make_trip):
    trip = make_trip("owner")

    resp = client.post(f"/trips/{trip.id}/requests/", json={"message": "Hi!"}, headers=as_user("ana"))
    assert resp.status_code == 201
    request = resp.json()
    assert request["status"] == "pending"

    dup = client.post(f"/trips/{trip.id}/requests/", json={"message": "Again"}, headers=as_user("ana"))
    assert dup.status_code == 409
    assert dup.json()["detail"] == "You've already sent a request to join this trip"

    listed = client.get(f"/trips/{trip.id}/requests/", headers=as_user("owner"))
    assert listed.status_code == 200
    assert [r["id"] for r in listed.json()] == [request["id"]]
    assert listed.json()[0]["requester"]["id"] == "ana"

    assert client.get(f"/trips/{trip.id}/requests/", headers=as_user("ana")).status_code == 403
    assert client.post(f"/requests/{request['id']}/approve", headers=as_user("ana")).status_code == 403

    approved = client.post(f"/requests/{request['id']}/approve", headers=as_user("owner"))
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert client.get(f"/trips/{trip.id}").json()["current_travelers"] == 2

    again = client.post(f"/requests/{request['id']}/approve", headers=as_user("owner"))
    assert again.status_code == 409
    assert client.get(f"/trips/{trip.id}").json()["current_travelers"] == 2


def test_my_requests_include_trip_summary(client, make_trip):
    trip = make_trip("owner", title="Sailing the Dalmatian coast", destination="Split, Croatia")
    client.post(f"/trips/{trip.id}/requests/", json={}, headers=as_user("ana"))

    resp = client.get("/requests/mine", headers=as_user("ana"))
    assert resp.status_code == 200
    [mine] = resp.json()
    assert mine["trip"]["title"] == "Sailing the Dalmatian coast"
    assert mine["trip"]["destination"] == "Split, Croatia"


def test_requests_need_a_session(client, make_trip):
    trip = make_trip("owner")
    resp = client.post(f"/trips/{trip.id}/requests/", json={})
    assert resp.status_code == 401


def test_workflow_logs_reach_the_api_logger(db, make_trip, travelers, caplog):
    trip = make_trip("owner")
    with caplog.at_level(logging.INFO, logger=API_LOGGER_NAME):
        request = workflow.create_request(db, session_for("ana"), trip.id)
        workflow.approve_request(db, session_for("owner"), request.id)

    workflow_records = [r for r in caplog.records if r.name == f"{API_LOGGER_NAME}.services.trip_requests"]
    assert [r.getMessage() for r in workflow_records] == [
        f"User ana requested to join trip {trip.id}",
        f"Request {request.id} approved by owner",
    ]

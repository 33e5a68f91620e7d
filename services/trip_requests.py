"""
Join-request workflow.

A request starts `pending` and is answered once by the trip owner:

    pending -> approved   (trip.current_travelers += 1)
    pending -> rejected

`approved` and `rejected` are terminal. Every store failure rolls the
transaction back so a half-applied answer is never visible.
"""
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from models.Profile import Profile
from models.Trip import Trip
from models.TripRequest import TripRequest, RequestStatus
from services.auth import SessionContext
from services.exceptions import (
    TripNotFoundError,
    RequestNotFoundError,
    NotTripOwnerError,
    OwnRequestError,
    DuplicateRequestError,
    RequestNotPendingError,
    TripFullError,
)
from services.notifications import notify_request_created, notify_request_answered
from utils.logger import get_logger

logger = get_logger(__name__)


def get_owned_trip(db: Session, session: SessionContext, trip_id: str) -> Trip:
    """Fetch a trip the session user owns."""
    trip = db.query(Trip).filter(Trip.id == trip_id).first()
    if not trip:
        raise TripNotFoundError("Trip not found")
    if trip.user_id != session.user_id:
        raise NotTripOwnerError("Only the trip owner can do this")
    return trip


def create_request(db: Session, session: SessionContext, trip_id: str, message: Optional[str] = None) -> TripRequest:
    """
    Ask to join a trip.

    Raises:
        TripNotFoundError: the trip does not exist
        OwnRequestError: the session user owns the trip
        DuplicateRequestError: the user already asked to join this trip
    """
    trip = db.query(Trip).filter(Trip.id == trip_id).first()
    if not trip:
        raise TripNotFoundError("Trip not found")
    if trip.user_id == session.user_id:
        raise OwnRequestError("You cannot request to join your own trip")

    request = TripRequest(
        trip_id=trip_id,
        user_id=session.user_id,
        message=message,
        status=RequestStatus.PENDING,
    )
    db.add(request)
    try:
        db.commit()
    except IntegrityError:
        # uq_trip_request: one request per (trip, user)
        db.rollback()
        raise DuplicateRequestError("You've already sent a request to join this trip")
    db.refresh(request)
    logger.info("User %s requested to join trip %s", session.user_id, trip_id)

    owner = db.query(Profile).filter(Profile.id == trip.user_id).first()
    requester = db.query(Profile).filter(Profile.id == session.user_id).first()
    notify_request_created(owner, requester, trip, request)
    return request


def _load_for_owner(db: Session, session: SessionContext, request_id: str) -> Tuple[TripRequest, Trip]:
    request = db.query(TripRequest).filter(TripRequest.id == request_id).first()
    if not request:
        raise RequestNotFoundError("Request not found")
    trip = get_owned_trip(db, session, request.trip_id)
    return request, trip


def _close_pending(db: Session, request: TripRequest, status: RequestStatus) -> None:
    """Move a pending request to `status` with one conditional UPDATE."""
    updated = (
        db.query(TripRequest)
        .filter(TripRequest.id == request.id, TripRequest.status == RequestStatus.PENDING)
        .update(
            {TripRequest.status: status, TripRequest.updated_at: datetime.now(timezone.utc)},
            synchronize_session=False,
        )
    )
    if updated != 1:
        raise RequestNotPendingError("This request has already been answered")


def _increment_travelers(db: Session, trip: Trip) -> None:
    """current_travelers += 1 in the database, refusing once the trip is full."""
    updated = (
        db.query(Trip)
        .filter(Trip.id == trip.id, Trip.current_travelers < Trip.max_travelers)
        .update({Trip.current_travelers: Trip.current_travelers + 1}, synchronize_session=False)
    )
    if updated != 1:
        raise TripFullError("This trip is already full")


def _answer(db: Session, session: SessionContext, request_id: str, status: RequestStatus) -> TripRequest:
    request, trip = _load_for_owner(db, session, request_id)
    try:
        _close_pending(db, request, status)
        if status == RequestStatus.APPROVED:
            _increment_travelers(db, trip)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(request)
    db.refresh(trip)
    logger.info("Request %s %s by %s", request.id, status.value, session.user_id)

    requester = db.query(Profile).filter(Profile.id == request.user_id).first()
    notify_request_answered(requester, trip, request)
    return request


def approve_request(db: Session, session: SessionContext, request_id: str) -> TripRequest:
    """
    Approve a pending request and count the requester as a traveler.

    Raises:
        RequestNotFoundError, TripNotFoundError
        NotTripOwnerError: the session user does not own the trip
        RequestNotPendingError: the request was already answered
        TripFullError: current_travelers already equals max_travelers
    """
    return _answer(db, session, request_id, RequestStatus.APPROVED)


def reject_request(db: Session, session: SessionContext, request_id: str) -> TripRequest:
    """Reject a pending request. Traveler counts are left alone."""
    return _answer(db, session, request_id, RequestStatus.REJECTED)


def list_requests_for_trip(db: Session, session: SessionContext, trip_id: str) -> List[TripRequest]:
    get_owned_trip(db, session, trip_id)
    return (
        db.query(TripRequest)
        .options(joinedload(TripRequest.requester))
        .filter(TripRequest.trip_id == trip_id)
        .order_by(TripRequest.created_at.asc())
        .all()
    )


def list_requests_by_user(db: Session, session: SessionContext) -> List[TripRequest]:
    return (
        db.query(TripRequest)
        .options(joinedload(TripRequest.trip))
        .filter(TripRequest.user_id == session.user_id)
        .order_by(TripRequest.created_at.desc())
        .all()
    )

from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from schemas import TripRequestWrite, TripRequestRead
from database import get_db
from services.auth import SessionContext, get_session
from services import trip_requests as workflow

router = APIRouter(prefix="/trips/{trip_id}/requests", tags=["Trip Requests"])


@router.post("/", response_model=TripRequestRead, status_code=status.HTTP_201_CREATED)
def create_request(
    trip_id: str,
    payload: TripRequestWrite,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db),
):
    """Ask to join a trip (one request per trip and user)"""
    return workflow.create_request(db, session, trip_id, payload.message)


@router.get("/", response_model=List[TripRequestRead])
def list_requests(
    trip_id: str,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db),
):
    """Requests received by a trip - owner only"""
    return workflow.list_requests_for_trip(db, session, trip_id)


router2 = APIRouter(prefix="/requests", tags=["Trip Requests"])


@router2.get("/mine", response_model=List[TripRequestRead])
def list_my_requests(session: SessionContext = Depends(get_session), db: Session = Depends(get_db)):
    """Requests sent by the session user, with a summary of each trip"""
    return workflow.list_requests_by_user(db, session)


@router2.post("/{request_id}/approve", response_model=TripRequestRead)
def approve_request(
    request_id: str,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db),
):
    return workflow.approve_request(db, session, request_id)


@router2.post("/{request_id}/reject", response_model=TripRequestRead)
def reject_request(
    request_id: str,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db),
):
    return workflow.reject_request(db, session, request_id)

import time
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.orm import Session

from models.Trip import Trip
from models.Profile import Profile
from schemas import TripWrite, TripUpdate, TripRead, TripFilter, TripSort, ProfileRead
from database import get_db
from services.auth import SessionContext, get_session
from services.exceptions import TripNotFoundError, ValidationError
from services.storage import upload_file, file_extension
from services.trip_filters import filter_trips, sort_trips, available_interests, rank_matches, MATCH_LIMIT
from services.trip_requests import get_owned_trip

router = APIRouter(prefix="/trips", tags=["Trips"])


@router.get("/", response_model=List[TripRead])
def list_trips(
    destination: Optional[str] = None,
    period: Optional[str] = None,
    budget: Optional[str] = None,
    interests: List[str] = Query([]),
    sort: TripSort = "newest",
    limit: Optional[int] = Query(None, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Explore trips. Filters combine; an empty search returns every trip. `limit` keeps the first N."""
    trips = db.query(Trip).order_by(Trip.created_at.desc()).all()
    criteria = TripFilter(destination=destination, period=period, budget=budget, interests=interests)
    results = sort_trips(filter_trips(trips, criteria), sort)
    return results[:limit] if limit else results


@router.get("/interests", response_model=List[str])
def list_trip_interests(db: Session = Depends(get_db)):
    return available_interests(db.query(Trip).all())


@router.get("/mine", response_model=List[TripRead])
def list_my_trips(session: SessionContext = Depends(get_session), db: Session = Depends(get_db)):
    return (
        db.query(Trip)
        .filter(Trip.user_id == session.user_id)
        .order_by(Trip.created_at.desc())
        .all()
    )


@router.post("/", response_model=TripRead, status_code=status.HTTP_201_CREATED)
def create_trip(
    payload: TripWrite,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db),
):
    trip = Trip(**payload.model_dump(), user_id=session.user_id, current_travelers=1)
    db.add(trip)
    db.commit()
    db.refresh(trip)
    return trip


@router.get("/{trip_id}", response_model=TripRead)
def get_trip(trip_id: str, db: Session = Depends(get_db)):
    t = db.query(Trip).filter(Trip.id == trip_id).first()
    if not t:
        raise TripNotFoundError("Trip not found")
    return t


@router.get("/{trip_id}/matches", response_model=List[ProfileRead])
def list_trip_matches(
    trip_id: str,
    limit: int = Query(MATCH_LIMIT, ge=1, le=20),
    db: Session = Depends(get_db),
):
    """Other travelers to suggest for a trip, most shared interests first"""
    t = db.query(Trip).filter(Trip.id == trip_id).first()
    if not t:
        raise TripNotFoundError("Trip not found")
    profiles = db.query(Profile).order_by(Profile.created_at.asc(), Profile.id.asc()).all()
    return rank_matches(t, profiles, limit)


@router.patch("/{trip_id}", response_model=TripRead)
def update_trip(
    trip_id: str,
    payload: TripUpdate,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db),
):
    t = get_owned_trip(db, session, trip_id)

    update_data = payload.model_dump(exclude_unset=True)
    max_travelers = update_data.get("max_travelers", t.max_travelers)
    if max_travelers < t.current_travelers:
        raise ValidationError("max_travelers cannot be lower than the current number of travelers")
    start_date = update_data.get("start_date", t.start_date)
    end_date = update_data.get("end_date", t.end_date)
    if end_date < start_date:
        raise ValidationError("end_date must be on or after start_date")

    for k, v in update_data.items():
        setattr(t, k, v)

    db.commit()
    db.refresh(t)
    return t


@router.delete("/{trip_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_trip(
    trip_id: str,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db),
):
    t = get_owned_trip(db, session, trip_id)
    db.delete(t)
    db.commit()


@router.post("/{trip_id}/image", response_model=TripRead)
async def upload_trip_image(
    trip_id: str,
    file: UploadFile = File(...),
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db),
):
    """Upload a cover image and point the trip at it."""
    t = get_owned_trip(db, session, trip_id)

    content = await file.read()
    ext = file_extension(file.filename, file.content_type)
    path = f"{trip_id}/{int(time.time() * 1000)}.{ext}"
    t.image_url = upload_file("trips", path, content, file.content_type)

    db.commit()
    db.refresh(t)
    return t

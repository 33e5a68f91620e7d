"""Public discussion thread attached to each trip."""
from typing import List

from sqlalchemy.orm import Session

from models.Trip import Trip
from models.TripDiscussionMessage import TripDiscussionMessage
from schemas import DiscussionMessageRead
from services.auth import SessionContext
from services.exceptions import TripNotFoundError
from services.messaging import clean_content
from services.realtime import hub, discussion_topic
from utils.logger import get_logger

logger = get_logger(__name__)

DISCUSSION_POSTED = "discussion.posted"


def _require_trip(db: Session, trip_id: str) -> Trip:
    trip = db.query(Trip).filter(Trip.id == trip_id).first()
    if not trip:
        raise TripNotFoundError("Trip not found")
    return trip


def list_discussion(db: Session, trip_id: str) -> List[TripDiscussionMessage]:
    _require_trip(db, trip_id)
    return (
        db.query(TripDiscussionMessage)
        .populate_existing()
        .filter(TripDiscussionMessage.trip_id == trip_id)
        .order_by(TripDiscussionMessage.created_at.asc())
        .all()
    )


def post_discussion(db: Session, session: SessionContext, trip_id: str, content: str) -> TripDiscussionMessage:
    text = clean_content(content)
    _require_trip(db, trip_id)

    post = TripDiscussionMessage(trip_id=trip_id, user_id=session.user_id, content=text)
    db.add(post)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(post)

    hub.publish(discussion_topic(trip_id), {
        "type": DISCUSSION_POSTED,
        "post": DiscussionMessageRead.model_validate(post).model_dump(mode="json"),
    })
    return post

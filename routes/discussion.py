from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from schemas import DiscussionMessageWrite, DiscussionMessageRead
from database import get_db
from services.auth import SessionContext, get_session
from services.discussion import list_discussion, post_discussion

router = APIRouter(prefix="/trips/{trip_id}/discussion", tags=["Trip Discussion"])


@router.get("/", response_model=List[DiscussionMessageRead])
def list_posts(trip_id: str, db: Session = Depends(get_db)):
    return list_discussion(db, trip_id)


@router.post("/", response_model=DiscussionMessageRead, status_code=status.HTTP_201_CREATED)
def create_post(
    trip_id: str,
    payload: DiscussionMessageWrite,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db),
):
    return post_discussion(db, session, trip_id, payload.content)

from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from schemas import MessageWrite, MessageRead, ConversationRead
from database import get_db
from services.auth import SessionContext, get_session
from services.exceptions import ValidationError
from services.messaging import Inbox, SqlMessageStore, clean_content

router = APIRouter(prefix="/messages", tags=["Messages"])


@router.get("/conversations", response_model=List[ConversationRead])
def list_conversations(session: SessionContext = Depends(get_session), db: Session = Depends(get_db)):
    """One entry per counterpart, most recent first, with unread counts"""
    return Inbox(SqlMessageStore(db), session.user_id).refresh_conversations()


@router.get("/with/{partner_id}", response_model=List[MessageRead])
def open_conversation(
    partner_id: str,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db),
):
    """Full history with a user, oldest first. Marks their messages to us as read."""
    return Inbox(SqlMessageStore(db), session.user_id).open_conversation(partner_id)


@router.post("/", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
def send_message(
    payload: MessageWrite,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db),
):
    content = clean_content(payload.content)
    if payload.receiver_id == session.user_id:
        raise ValidationError("You cannot send a message to yourself")
    return SqlMessageStore(db).send_message(session.user_id, payload.receiver_id, content)

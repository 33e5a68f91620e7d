"""
Direct messages between users.

`SqlMessageStore` is the storage side (SQLAlchemy). `Inbox` is the per-user
view kept by an open messages screen: the conversation list, the open
conversation, and how both react to realtime "new message" events.
"""
import uuid
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from models.Message import Message
from models.Profile import Profile
from schemas import MessageRead, ConversationRead
from services.exceptions import MessageValidationError, ProfileNotFoundError
from services.realtime import hub, message_topic
from utils.logger import get_logger

logger = get_logger(__name__)

MESSAGE_CREATED = "message.created"
TEMP_ID_PREFIX = "temp-"


def clean_content(content: Optional[str]) -> str:
    """Trimmed message text; whitespace-only content is rejected."""
    text = (content or "").strip()
    if not text:
        raise MessageValidationError("Message cannot be empty")
    return text


def message_event(message) -> dict:
    return {
        "type": MESSAGE_CREATED,
        "message": MessageRead.model_validate(message).model_dump(mode="json"),
    }


class SqlMessageStore:
    """Message storage backed by a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    def list_messages_for_user(self, user_id: str) -> List[Message]:
        """Every message sent or received by `user_id`, newest first."""
        return (
            self.db.query(Message)
            .populate_existing()
            .filter(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
            .order_by(Message.created_at.desc())
            .all()
        )

    def list_messages_between(self, user_a: str, user_b: str) -> List[Message]:
        """The conversation between two users, oldest first."""
        return (
            self.db.query(Message)
            .populate_existing()
            .filter(
                or_(
                    and_(Message.sender_id == user_a, Message.receiver_id == user_b),
                    and_(Message.sender_id == user_b, Message.receiver_id == user_a),
                )
            )
            .order_by(Message.created_at.asc())
            .all()
        )

    def send_message(self, sender_id: str, receiver_id: str, content: str) -> Message:
        if not self.db.query(Profile).filter(Profile.id == receiver_id).first():
            raise ProfileNotFoundError("Recipient not found")
        message = Message(
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            read=False,
        )
        self.db.add(message)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(message)
        hub.publish(message_topic(receiver_id), message_event(message))
        return message

    def mark_read(self, message_ids: Iterable[str]) -> None:
        ids = list(message_ids)
        if not ids:
            return
        try:
            self.db.query(Message).filter(Message.id.in_(ids)).update(
                {Message.read: True}, synchronize_session=False
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def get_profiles(self, user_ids: Iterable[str]) -> Dict[str, Profile]:
        ids = list(user_ids)
        if not ids:
            return {}
        return {p.id: p for p in self.db.query(Profile).filter(Profile.id.in_(ids)).all()}


def build_conversations(messages: Iterable, user_id: str, profiles: Optional[Dict[str, Profile]] = None) -> List[ConversationRead]:
    """
    Group messages by counterpart.

    Each conversation carries the latest message, its time and the number of
    unread messages addressed to `user_id`. Most recent conversation first.
    """
    profiles = profiles or {}
    grouped: Dict[str, ConversationRead] = {}
    for message in messages:
        partner_id = message.receiver_id if message.sender_id == user_id else message.sender_id
        conversation = grouped.get(partner_id)
        if conversation is None:
            profile = profiles.get(partner_id)
            conversation = ConversationRead(
                partner_id=partner_id,
                full_name=profile.full_name if profile else None,
                avatar_url=profile.avatar_url if profile else None,
            )
            grouped[partner_id] = conversation
        if conversation.last_message_time is None or message.created_at > conversation.last_message_time:
            conversation.last_message = message.content
            conversation.last_message_time = message.created_at
        if message.receiver_id == user_id and not message.read:
            conversation.unread_count += 1

    return sorted(
        grouped.values(),
        key=lambda c: c.last_message_time or datetime.min,
        reverse=True,
    )


class Inbox:
    """Conversation state for one user, kept in step with the store."""

    def __init__(self, store, user_id: str):
        self.store = store
        self.user_id = user_id
        self.conversations: List[ConversationRead] = []
        self.messages: List[MessageRead] = []
        self.partner_id: Optional[str] = None

    def refresh_conversations(self) -> List[ConversationRead]:
        messages = self.store.list_messages_for_user(self.user_id)
        partner_ids = {
            m.receiver_id if m.sender_id == self.user_id else m.sender_id
            for m in messages
        }
        profiles = self.store.get_profiles(partner_ids)
        self.conversations = build_conversations(messages, self.user_id, profiles)
        return self.conversations

    def open_conversation(self, partner_id: str) -> List[MessageRead]:
        """Load the history with `partner_id` and mark what they sent us as read."""
        history = [MessageRead.model_validate(m) for m in self.store.list_messages_between(self.user_id, partner_id)]
        unread_ids = {
            m.id for m in history
            if m.receiver_id == self.user_id and m.sender_id == partner_id and not m.read
        }
        if unread_ids:
            self.store.mark_read(unread_ids)
            history = [m.model_copy(update={"read": True}) if m.id in unread_ids else m for m in history]

        # sends still in flight stay visible
        in_flight = []
        if self.partner_id == partner_id:
            in_flight = [m for m in self.messages if m.pending]
        self.partner_id = partner_id
        self.messages = history + in_flight

        if unread_ids:
            for conversation in self.conversations:
                if conversation.partner_id == partner_id:
                    conversation.unread_count = 0
        return self.messages

    def close_conversation(self) -> None:
        self.partner_id = None
        self.messages = []

    def _is_open_with(self, message: MessageRead) -> bool:
        if self.partner_id is None:
            return False
        return {message.sender_id, message.receiver_id} == {self.user_id, self.partner_id}

    def _merge(self, message: MessageRead) -> None:
        """Put a stored message in the open conversation exactly once."""
        if any(m.id == message.id for m in self.messages):
            return
        for index, existing in enumerate(self.messages):
            if (existing.pending and existing.receiver_id == message.receiver_id
                    and existing.content == message.content):
                self.messages[index] = message
                return
        self.messages.append(message)

    def send(self, receiver_id: str, content: str) -> MessageRead:
        """
        Send a message, showing it straight away under a temporary id.

        The placeholder is replaced by the stored record once the store
        answers, or removed if the store fails (the error is re-raised).
        """
        text = clean_content(content)
        placeholder = MessageRead(
            id=f"{TEMP_ID_PREFIX}{uuid.uuid4()}",
            sender_id=self.user_id,
            receiver_id=receiver_id,
            content=text,
            read=False,
            created_at=datetime.now(timezone.utc),
            pending=True,
        )
        showing = self.partner_id == receiver_id
        if showing:
            self.messages.append(placeholder)

        try:
            stored = MessageRead.model_validate(self.store.send_message(self.user_id, receiver_id, text))
        except Exception:
            if showing:
                self.messages = [m for m in self.messages if m.id != placeholder.id]
            raise

        if showing:
            if any(m.id == stored.id for m in self.messages):
                # a realtime echo got here first
                self.messages = [m for m in self.messages if m.id != placeholder.id]
            else:
                self.messages = [stored if m.id == placeholder.id else m for m in self.messages]
        self.refresh_conversations()
        return stored

    def handle_event(self, event: dict) -> bool:
        """
        Apply a realtime event. Returns whether the view changed.

        A new message for this user refreshes the conversation list, and the
        open conversation too when it comes from the open counterpart.
        """
        if event.get("type") != MESSAGE_CREATED:
            return False
        message = MessageRead.model_validate(event["message"])

        if message.receiver_id == self.user_id:
            self.refresh_conversations()
            if self.partner_id is not None and message.sender_id == self.partner_id:
                self.open_conversation(self.partner_id)
            return True

        if message.sender_id == self.user_id:
            # echo of our own send
            if self._is_open_with(message):
                self._merge(message)
            self.refresh_conversations()
            return True
        return False

    def snapshot(self) -> dict:
        return {
            "conversations": [c.model_dump(mode="json") for c in self.conversations],
            "partner_id": self.partner_id,
            "messages": [m.model_dump(mode="json") for m in self.messages],
        }

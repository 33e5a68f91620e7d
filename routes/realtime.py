"""
WebSocket views. Each one holds a hub subscription for as long as the
socket is open; the subscription is released however the socket ends.
"""
import asyncio
import json
from typing import Awaitable, Callable, Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from database import get_db
from schemas import DiscussionMessageRead
from services.auth import SessionContext, get_ws_session
from services.discussion import list_discussion, post_discussion
from services.exceptions import TripLinkError
from services.messaging import Inbox, SqlMessageStore
from services.realtime import hub, message_topic, discussion_topic, Subscription
from utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/ws", tags=["Realtime"])


async def _relay(
    websocket: WebSocket,
    subscription: Subscription,
    on_event: Callable[[dict], Awaitable[None]],
    on_command: Callable[[dict], Awaitable[None]],
) -> None:
    """Serve hub events and client commands until the client disconnects."""
    incoming = asyncio.ensure_future(websocket.receive_text())
    event = asyncio.ensure_future(subscription.get())
    try:
        while True:
            done, _ = await asyncio.wait({incoming, event}, return_when=asyncio.FIRST_COMPLETED)
            if event in done:
                await on_event(event.result())
                event = asyncio.ensure_future(subscription.get())
            if incoming in done:
                raw = incoming.result()  # raises WebSocketDisconnect once the client is gone
                incoming = asyncio.ensure_future(websocket.receive_text())
                try:
                    command = json.loads(raw)
                except ValueError:
                    await websocket.send_json({"type": "error", "detail": "Invalid JSON"})
                    continue
                try:
                    await on_command(command)
                except TripLinkError as e:
                    await websocket.send_json({"type": "error", "detail": e.detail})
    finally:
        incoming.cancel()
        event.cancel()


@router.websocket("/messages")
async def messages_socket(
    websocket: WebSocket,
    partner_id: Optional[str] = None,
    session: SessionContext = Depends(get_ws_session),
    db: Session = Depends(get_db),
):
    """
    Live inbox for the session user.

    Pushes `{"type": "snapshot", conversations, partner_id, messages}` on
    connect and after every change. Accepts commands:
    `{"action": "open", "partner_id"}`, `{"action": "close"}`,
    `{"action": "send", "receiver_id", "content"}`, `{"action": "refresh"}`.
    """
    await websocket.accept()
    inbox = Inbox(SqlMessageStore(db), session.user_id)

    async def push_snapshot():
        await websocket.send_json({"type": "snapshot", **inbox.snapshot()})

    async def on_event(event: dict):
        if await run_in_threadpool(inbox.handle_event, event):
            await push_snapshot()

    async def on_command(command: dict):
        action = command.get("action")
        if action == "open":
            await run_in_threadpool(inbox.open_conversation, str(command.get("partner_id", "")))
        elif action == "close":
            inbox.close_conversation()
        elif action == "send":
            await run_in_threadpool(inbox.send, str(command.get("receiver_id", "")), command.get("content"))
        elif action == "refresh":
            await run_in_threadpool(inbox.refresh_conversations)
        else:
            await websocket.send_json({"type": "error", "detail": f"Unknown action: {action}"})
            return
        await push_snapshot()

    # subscribe before the first load so nothing sent in between is missed
    async with hub.subscribe(message_topic(session.user_id)) as subscription:
        try:
            await run_in_threadpool(inbox.refresh_conversations)
            if partner_id:
                await run_in_threadpool(inbox.open_conversation, partner_id)
            await push_snapshot()
            await _relay(websocket, subscription, on_event, on_command)
        except WebSocketDisconnect:
            logger.debug("Inbox socket closed for %s", session.user_id)


@router.websocket("/trips/{trip_id}/discussion")
async def discussion_socket(
    websocket: WebSocket,
    trip_id: str,
    session: SessionContext = Depends(get_ws_session),
    db: Session = Depends(get_db),
):
    """
    Live trip discussion. Sends `{"type": "history", posts}` on connect, then
    `{"type": "discussion.posted", post}` for every new post. Accepts
    `{"action": "post", "content"}`.
    """
    await websocket.accept()

    async def on_event(event: dict):
        await websocket.send_json(event)

    async def on_command(command: dict):
        if command.get("action") != "post":
            await websocket.send_json({"type": "error", "detail": f"Unknown action: {command.get('action')}"})
            return
        # the hub echoes the new post back to this socket
        await run_in_threadpool(post_discussion, db, session, trip_id, command.get("content"))

    async with hub.subscribe(discussion_topic(trip_id)) as subscription:
        try:
            try:
                posts = await run_in_threadpool(list_discussion, db, trip_id)
            except TripLinkError as e:
                await websocket.send_json({"type": "error", "detail": e.detail})
                await websocket.close(code=1008)
                return
            await websocket.send_json({
                "type": "history",
                "posts": [DiscussionMessageRead.model_validate(p).model_dump(mode="json") for p in posts],
            })
            await _relay(websocket, subscription, on_event, on_command)
        except WebSocketDisconnect:
            logger.debug("Discussion socket closed for trip %s", trip_id)

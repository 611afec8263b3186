import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app import models
from app.core.permissions import is_admin
from app.database import SessionLocal
from app.services.auth import decode_access_token
from app.services.realtime import ALL_TOPIC, hub

router = APIRouter(tags=["realtime"])

logger = logging.getLogger("vault.realtime")


def _user_for_token(token: Optional[str]) -> Optional[models.User]:
    subject = decode_access_token(token) if token else None
    if not subject:
        return None
    db = SessionLocal()
    try:
        user = db.query(models.User).filter(models.User.email == subject).first()
        if user is not None:
            db.expunge(user)
        return user if user is not None and user.active else None
    finally:
        db.close()


def allowed_topics(raw: Optional[str], user: Optional[models.User]) -> list[str]:
    """Parse `topics=all,user:1,masterpiece:3`; private user topics need the matching token."""

    out: list[str] = []
    for topic in (raw or ALL_TOPIC).split(","):
        topic = topic.strip()
        if not topic:
            continue
        if topic.startswith("user:"):
            if user is None:
                continue
            if not is_admin(user) and topic != f"user:{user.id}":
                continue
        out.append(topic)
    return out or [ALL_TOPIC]


@router.websocket("/ws")
async def realtime_socket(
    websocket: WebSocket, topics: Optional[str] = None, token: Optional[str] = None
):
    user = _user_for_token(token)
    await websocket.accept()
    subscription = hub.subscribe(allowed_topics(topics, user))
    logger.info(
        "ws_connected",
        extra={"topics": sorted(subscription.topics), "user_id": user.id if user else None},
    )

    async def _forward() -> None:
        while True:
            message = await subscription.queue.get()
            await websocket.send_json(message)

    async def _drain() -> None:
        # Client frames are ignored; this only notices the disconnect.
        while True:
            await websocket.receive_text()

    sender = asyncio.create_task(_forward())
    receiver = asyncio.create_task(_drain())
    try:
        done, _pending = await asyncio.wait(
            {sender, receiver}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.warning("ws_closed_with_error", extra={"error": str(exc)})
    finally:
        sender.cancel()
        receiver.cancel()
        hub.unsubscribe(subscription)
        logger.info("ws_disconnected")

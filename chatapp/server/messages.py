"""Chat message routes: insert, one-shot listing and the change feed."""
import asyncio
import json
from typing import AsyncIterator, List

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from . import schemas
from ..shared.dto import as_utc
from ..shared.logging_config import configure_logging
from ..shared.schemas import ChangeBatchRecord, MessageRecord
from .auth import get_current_user_id
from .config import LOG_FILE, WATCH_KEEPALIVE_SECONDS
from .database import SessionLocal, get_db
from .hub import hub
from .models import Message, User

router = APIRouter(prefix="/chat", tags=["chat"])
logger = configure_logging("chatapp.server", LOG_FILE)


def _get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _ensure_party(current_user_id: int, sender_id: int, receiver_id: int) -> None:
    if current_user_id not in (sender_id, receiver_id):
        logger.warning(
            "UNAUTHORIZED_ACCESS reason=not_a_party user_id=%s sender_id=%s receiver_id=%s",
            current_user_id,
            sender_id,
            receiver_id,
        )
        raise HTTPException(status_code=403, detail="Not a party of this conversation")


def _store_message(db: Session, sender_id: int, payload: schemas.MessageCreate) -> MessageRecord:
    if payload.receiver_id == sender_id:
        logger.warning("MESSAGE_REJECTED reason=self_addressed user_id=%s", sender_id)
        raise HTTPException(status_code=400, detail="Cannot send a message to yourself")
    _get_user(db, payload.receiver_id)
    message = Message(
        sender_id=sender_id,
        receiver_id=payload.receiver_id,
        body=payload.body,
        # stored naive, read back as UTC
        sent_at=as_utc(payload.sent_at).replace(tzinfo=None),
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    return MessageRecord.model_validate(message)


def _load_after(sender_id: int, receiver_id: int, after_id: int) -> List[MessageRecord]:
    with SessionLocal() as db:
        rows = (
            db.query(Message)
            .filter(Message.sender_id == sender_id, Message.receiver_id == receiver_id, Message.id > after_id)
            .order_by(Message.id)
            .all()
        )
        return [MessageRecord.model_validate(row) for row in rows]


def _sse(event: str, data: str) -> str:
    return f"event: {event}\ndata: {data}\n\n"


@router.post("", response_model=MessageRecord)
async def insert_message(
    payload: schemas.MessageCreate,
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    record = await run_in_threadpool(_store_message, db, current_user_id, payload)
    woken = hub.publish(record.sender_id, record.receiver_id)
    logger.info(
        "MESSAGE_STORED sender_id=%s receiver_id=%s message_id=%s watchers=%s",
        record.sender_id,
        record.receiver_id,
        record.id,
        woken,
    )
    return record


@router.get("", response_model=List[MessageRecord])
def get_messages(
    sender_id: int,
    receiver_id: int,
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    _ensure_party(current_user_id, sender_id, receiver_id)
    return (
        db.query(Message)
        .filter(Message.sender_id == sender_id, Message.receiver_id == receiver_id)
        .order_by(Message.id)
        .all()
    )


async def _watch_stream(
    request: Request, sender_id: int, receiver_id: int, after: int, follow: bool
) -> AsyncIterator[str]:
    wake = hub.subscribe(sender_id, receiver_id)
    cursor = after
    first = True
    try:
        while True:
            wake.clear()
            try:
                records = await run_in_threadpool(_load_after, sender_id, receiver_id, cursor)
            except SQLAlchemyError as exc:
                logger.error("WATCH_QUERY_FAIL sender_id=%s receiver_id=%s error=%s", sender_id, receiver_id, exc)
                yield _sse("error", json.dumps({"detail": "Change feed query failed"}))
            else:
                # the first delivery is the snapshot and is sent even when empty
                if records or first:
                    if records:
                        cursor = records[-1].id
                    batch = ChangeBatchRecord.added(records)
                    yield _sse("changes", batch.model_dump_json())
                    first = False
            if not follow:
                return
            while True:
                try:
                    await asyncio.wait_for(wake.wait(), timeout=WATCH_KEEPALIVE_SECONDS)
                    break
                except asyncio.TimeoutError:
                    if await request.is_disconnected():
                        return
                    yield ": keepalive\n\n"
    finally:
        hub.unsubscribe(sender_id, receiver_id, wake)
        logger.info("WATCH_CLOSED sender_id=%s receiver_id=%s cursor=%s", sender_id, receiver_id, cursor)


@router.get("/watch")
def watch_messages(
    request: Request,
    sender_id: int,
    receiver_id: int,
    after: int = 0,
    follow: bool = True,
    current_user_id: int = Depends(get_current_user_id),
):
    _ensure_party(current_user_id, sender_id, receiver_id)
    logger.info(
        "WATCH_OPENED user_id=%s sender_id=%s receiver_id=%s after=%s",
        current_user_id,
        sender_id,
        receiver_id,
        after,
    )
    return StreamingResponse(
        _watch_stream(request, sender_id, receiver_id, after, follow),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )

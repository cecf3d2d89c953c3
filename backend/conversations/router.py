# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Conversation inbox endpoints – list/filter, open, update, close, delete and
post messages.

Any signed-in user or an API-key integration (the messaging gateway that
forwards WhatsApp / Telegram traffic) may call these.  There is no push
channel: the UI polls.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from database import get_db
from core.logger import logger
from core.security import require_user_or_api_key
from models.conversation import Conversation, Message
from models.user import User
from conversations.schemas import (
    Channel,
    ConversationCreate,
    ConversationDetail,
    ConversationListResponse,
    ConversationResponse,
    ConversationStatus,
    ConversationUpdate,
    MessageCreate,
    MessageResponse,
    Priority,
)

router = APIRouter(prefix="/api/conversations", tags=["conversations"])

PROTOCOL_PREFIX = "ATD"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _next_protocol(db: Session) -> str:
    """``ATD-<year>-<6-digit sequence>``; the sequence restarts every year."""
    year_prefix = f"{PROTOCOL_PREFIX}-{_utcnow().year}-"
    last = (
        db.query(Conversation.protocol)
        .filter(Conversation.protocol.like(f"{year_prefix}%"))
        .order_by(Conversation.protocol.desc())
        .first()
    )
    seq = int(last[0].rsplit("-", 1)[1]) + 1 if last else 1
    return f"{year_prefix}{seq:06d}"


def _get_or_404(conversation_id: str, db: Session) -> Conversation:
    conversation = db.query(Conversation).filter(Conversation.id == conversation_id).first()
    if not conversation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    return conversation


def _check_user_ref(db: Session, user_id: Optional[str], label: str) -> None:
    if user_id and not db.query(User.id).filter(User.id == user_id).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown {label}")


# ---------------------------------------------------------------------------
# GET /api/conversations
# ---------------------------------------------------------------------------


@router.get("", response_model=ConversationListResponse)
def list_conversations(
    conversation_status: Optional[ConversationStatus] = Query(None, alias="status"),
    channel: Optional[Channel] = Query(None),
    priority: Optional[Priority] = Query(None),
    search: Optional[str] = Query(None, description="Match on client name, protocol or subject"),
    caller: Optional[User] = Depends(require_user_or_api_key),
    db: Session = Depends(get_db),
):
    """Most recently active first."""
    q = db.query(Conversation)
    if conversation_status:
        q = q.filter(Conversation.status == conversation_status)
    if channel:
        q = q.filter(Conversation.channel == channel)
    if priority:
        q = q.filter(Conversation.priority == priority)
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(or_(
            Conversation.client_name.ilike(pattern),
            Conversation.protocol.ilike(pattern),
            Conversation.subject.ilike(pattern),
        ))
    rows = q.order_by(Conversation.last_message_at.desc(), Conversation.protocol.desc()).all()
    return ConversationListResponse(conversations=[ConversationResponse.model_validate(r) for r in rows])


# ---------------------------------------------------------------------------
# POST /api/conversations
# ---------------------------------------------------------------------------


@router.post("", response_model=ConversationResponse, status_code=status.HTTP_201_CREATED)
def create_conversation(
    body: ConversationCreate,
    caller: Optional[User] = Depends(require_user_or_api_key),
    db: Session = Depends(get_db),
):
    _check_user_ref(db, body.client_id, "client")
    _check_user_ref(db, body.attendant_id, "attendant")

    now = _utcnow()
    conversation = Conversation(
        protocol=_next_protocol(db),
        status="open",
        last_message_at=now,
        created_at=now,
        **body.model_dump(),
    )
    db.add(conversation)
    db.commit()
    db.refresh(conversation)
    logger.info("Conversation %s opened on %s", conversation.protocol, conversation.channel)
    return conversation


# ---------------------------------------------------------------------------
# GET /api/conversations/{id}  – with messages
# ---------------------------------------------------------------------------


@router.get("/{conversation_id}", response_model=ConversationDetail)
def get_conversation(
    conversation_id: str,
    caller: Optional[User] = Depends(require_user_or_api_key),
    db: Session = Depends(get_db),
):
    return _get_or_404(conversation_id, db)


# ---------------------------------------------------------------------------
# PUT /api/conversations/{id}
# ---------------------------------------------------------------------------


@router.put("/{conversation_id}", response_model=ConversationResponse)
def update_conversation(
    conversation_id: str,
    body: ConversationUpdate,
    caller: Optional[User] = Depends(require_user_or_api_key),
    db: Session = Depends(get_db),
):
    """
    Closing stamps ``closed_at``; moving a closed conversation back to
    open/pending clears it.
    """
    conversation = _get_or_404(conversation_id, db)
    changes = body.model_dump(exclude_unset=True)

    if "attendant_id" in changes:
        _check_user_ref(db, changes["attendant_id"], "attendant")

    new_status = changes.get("status")
    if new_status and new_status != conversation.status:
        conversation.closed_at = _utcnow() if new_status == "closed" else None

    for field, value in changes.items():
        if field in ("status", "priority") and value is None:
            continue
        setattr(conversation, field, value)

    db.commit()
    db.refresh(conversation)
    return conversation


# ---------------------------------------------------------------------------
# DELETE /api/conversations/{id}
# ---------------------------------------------------------------------------


@router.delete("/{conversation_id}")
def delete_conversation(
    conversation_id: str,
    caller: Optional[User] = Depends(require_user_or_api_key),
    db: Session = Depends(get_db),
):
    conversation = _get_or_404(conversation_id, db)
    db.delete(conversation)  # messages go with it (delete-orphan)
    db.commit()
    return {"success": True}


# ---------------------------------------------------------------------------
# POST /api/conversations/{id}/messages
# ---------------------------------------------------------------------------


@router.post("/{conversation_id}/messages", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def post_message(
    conversation_id: str,
    body: MessageCreate,
    caller: Optional[User] = Depends(require_user_or_api_key),
    db: Session = Depends(get_db),
):
    conversation = _get_or_404(conversation_id, db)
    if conversation.status == "closed":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Conversation is closed")

    if caller is not None:
        sender_type = body.sender_type or "attendant"
        sender_name = body.sender_name or caller.name
        sender_id = caller.id
    else:
        if not body.sender_name:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="sender_name is required")
        sender_type = body.sender_type or "client"
        sender_name = body.sender_name
        sender_id = conversation.client_id if sender_type == "client" else None

    now = _utcnow()
    message = Message(
        conversation_id=conversation.id,
        sender_id=sender_id,
        sender_type=sender_type,
        sender_name=sender_name,
        content=body.content,
        content_type=body.content_type,
        file_url=body.file_url,
        is_read=False,
        created_at=now,
    )
    db.add(message)
    conversation.last_message_at = now
    db.commit()
    db.refresh(message)
    return message


# ---------------------------------------------------------------------------
# PUT /api/conversations/{id}/read  – mark every message as read
# ---------------------------------------------------------------------------


@router.put("/{conversation_id}/read")
def mark_read(
    conversation_id: str,
    caller: Optional[User] = Depends(require_user_or_api_key),
    db: Session = Depends(get_db),
):
    conversation = _get_or_404(conversation_id, db)
    updated = (
        db.query(Message)
        .filter(Message.conversation_id == conversation.id, Message.is_read.is_(False))
        .update({Message.is_read: True}, synchronize_session=False)
    )
    db.commit()
    return {"updated": updated}

"""
Direct Messages API

Endpoints:
- GET /api/messages/partners - Everyone the caller can message, with unread counts
- GET /api/messages/{partner_id} - Conversation with one partner, oldest first
- POST /api/messages/{partner_id} - Send a message
- POST /api/messages/{partner_id}/read - Mark the partner's messages to the caller as read

Message text is trimmed and HTML-escaped before it is stored.
"""

import html
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from starlette.concurrency import run_in_threadpool

from api.auth import AuthUser, require_auth
from api.database import MessageStore, ProfileStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/messages", tags=["Messages"])

MAX_MESSAGE_LENGTH = 2000


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class MessageResponse(_CamelModel):
    id: str
    sender_id: str
    receiver_id: str
    message: str
    is_read: bool
    created_at: str


class ChatPartnerResponse(_CamelModel):
    user_id: str
    name: str
    flat_no: str = ""
    unread_count: int = 0


class SendMessageRequest(BaseModel):
    message: str


def sanitize_message(text: str) -> str:
    """Trim and escape a message for storage."""
    return html.escape(text.strip(), quote=True)


def _require_partner(user: AuthUser, partner_id: str) -> None:
    if partner_id == user.user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot message yourself")
    if ProfileStore.get_profile(partner_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")


@router.get("/partners")
async def list_partners(user: AuthUser = Depends(require_auth)):
    partners = await run_in_threadpool(MessageStore.partners, user.user_id)
    return {
        "partners": [
            ChatPartnerResponse.model_validate(p).model_dump(by_alias=True) for p in partners
        ]
    }


@router.get("/{partner_id}")
async def get_conversation(partner_id: str, user: AuthUser = Depends(require_auth)):
    _require_partner(user, partner_id)
    messages = await run_in_threadpool(MessageStore.conversation, user.user_id, partner_id)
    return {
        "messages": [
            MessageResponse.model_validate(m).model_dump(by_alias=True) for m in messages
        ]
    }


@router.post("/{partner_id}", status_code=status.HTTP_201_CREATED)
async def send_message(
    partner_id: str,
    payload: SendMessageRequest,
    user: AuthUser = Depends(require_auth),
):
    """Send a message. Whitespace-only messages are rejected."""
    text = payload.message.strip()
    if not text:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message cannot be empty")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Message must be at most {MAX_MESSAGE_LENGTH} characters",
        )

    _require_partner(user, partner_id)

    record = await run_in_threadpool(MessageStore.send, user.user_id, partner_id, sanitize_message(text))
    logger.info(f"Message {record.id[:8]} sent to {partner_id[:8]}")
    return MessageResponse.model_validate(record).model_dump(by_alias=True)


@router.post("/{partner_id}/read")
async def mark_read(partner_id: str, user: AuthUser = Depends(require_auth)):
    _require_partner(user, partner_id)
    updated = await run_in_threadpool(MessageStore.mark_read, user.user_id, partner_id)
    return {"updated": updated}

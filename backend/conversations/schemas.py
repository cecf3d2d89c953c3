# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the conversation inbox."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

Channel = Literal["web", "whatsapp", "telegram", "email"]
ConversationStatus = Literal["open", "pending", "closed"]
Priority = Literal["low", "normal", "high", "urgent"]
SenderType = Literal["client", "attendant", "system"]
ContentType = Literal["text", "image", "file", "audio"]


# -- Requests --------------------------------------------------------------


class ConversationCreate(BaseModel):
    client_name: str = Field(min_length=1, max_length=255)
    client_id: Optional[str] = None
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    attendant_id: Optional[str] = None
    channel: Channel = "web"
    priority: Priority = "normal"
    subject: Optional[str] = None
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None


class ConversationUpdate(BaseModel):
    status: Optional[ConversationStatus] = None
    priority: Optional[Priority] = None
    attendant_id: Optional[str] = None
    subject: Optional[str] = None


class MessageCreate(BaseModel):
    content: str = Field(min_length=1)
    sender_type: Optional[SenderType] = None   # defaults to "attendant" for signed-in users
    sender_name: Optional[str] = None
    content_type: ContentType = "text"
    file_url: Optional[str] = None


# -- Responses -------------------------------------------------------------


class MessageResponse(BaseModel):
    id: str
    conversation_id: str
    sender_id: Optional[str] = None
    sender_type: str
    sender_name: str
    content: str
    content_type: str
    file_url: Optional[str] = None
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ConversationResponse(BaseModel):
    id: str
    protocol: str
    client_id: Optional[str] = None
    client_name: str
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    attendant_id: Optional[str] = None
    channel: str
    status: str
    priority: str
    subject: Optional[str] = None
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    last_message_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ConversationDetail(ConversationResponse):
    messages: List[MessageResponse] = []


class ConversationListResponse(BaseModel):
    conversations: List[ConversationResponse]

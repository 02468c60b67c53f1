from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- inbound ---

class FindMatchMessage(BaseModel):
    type: Literal["findMatch"] = "findMatch"
    avatar: str = Field("", max_length=64)
    nickname: str = Field("", max_length=64)


class CancelSearchMessage(BaseModel):
    type: Literal["cancelSearch"] = "cancelSearch"


class JoinRoomMessage(BaseModel):
    type: Literal["joinRoom"] = "joinRoom"
    roomId: str = Field(..., min_length=1, max_length=128)


class SendMessageMessage(BaseModel):
    type: Literal["sendMessage"] = "sendMessage"
    roomId: str = Field(..., min_length=1, max_length=128)
    message: str


class TypingMessage(BaseModel):
    type: Literal["typing"] = "typing"
    roomId: str = Field(..., min_length=1, max_length=128)
    isTyping: bool


class LeaveRoomMessage(BaseModel):
    type: Literal["leaveRoom"] = "leaveRoom"
    roomId: str = Field(..., min_length=1, max_length=128)


class ReportUserMessage(BaseModel):
    type: Literal["reportUser"] = "reportUser"
    roomId: str = Field(..., min_length=1, max_length=128)
    reason: str = Field("", max_length=500)
    reportedUserId: str = Field(..., min_length=1, max_length=128)


class BlockUserMessage(BaseModel):
    type: Literal["blockUser"] = "blockUser"
    roomId: str = Field(..., min_length=1, max_length=128)
    blockedUserId: str = Field(..., min_length=1, max_length=128)


# --- outbound ---

class UserCountEvent(BaseModel):
    type: Literal["userCount"] = "userCount"
    count: int


class MatchFoundEvent(BaseModel):
    type: Literal["matchFound"] = "matchFound"
    roomId: str
    partnerId: str


class PartnerInfoEvent(BaseModel):
    type: Literal["partnerInfo"] = "partnerInfo"
    id: str
    avatar: str
    nickname: str


class NewMessageEvent(BaseModel):
    type: Literal["newMessage"] = "newMessage"
    id: int
    content: str
    sender: Literal["partner"] = "partner"
    timestamp: datetime


class PartnerTypingEvent(BaseModel):
    type: Literal["partnerTyping"] = "partnerTyping"
    isTyping: bool


class PartnerDisconnectedEvent(BaseModel):
    type: Literal["partnerDisconnected"] = "partnerDisconnected"


class ChatEndedEvent(BaseModel):
    type: Literal["chatEnded"] = "chatEnded"
    reason: str


class SearchTimeoutEvent(BaseModel):
    type: Literal["searchTimeout"] = "searchTimeout"


class ErrorMessage(BaseModel):
    type: Literal["error"] = "error"
    code: str
    message: str
    timestamp: datetime = Field(default_factory=utcnow)


# --- http ---

class RoomSummary(BaseModel):
    roomId: str
    members: list[str]
    createdAt: datetime
    ageSeconds: float


class ReportInfo(BaseModel):
    reporterId: str
    reportedUserId: str
    roomId: str
    reason: str
    createdAt: datetime

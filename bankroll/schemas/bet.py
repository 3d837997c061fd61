from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..models.bet import BetStatus


class BetRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    bankroll_id: UUID
    sport: str
    event: str
    tournament: Optional[str]
    country: Optional[str]
    market: str
    bet_type: str
    stake: float
    odds: float
    bonus: float
    event_date: datetime
    tipster: Optional[str]
    status: BetStatus
    bookmaker: str
    obtained_return: Optional[float]
    raw_selections: Optional[str]
    created_at: datetime
    updated_at: datetime


class StatusResyncRequest(BaseModel):
    """Coordinates of the chat message to refresh after a REST edit."""

    model_config = ConfigDict(populate_by_name=True)

    message_id: Optional[int] = Field(default=None, alias="messageId")
    chat_id: Optional[int] = Field(default=None, alias="chatId")


class StatusResyncResponse(BaseModel):
    updated: bool
    message: str
    preview: Optional[str] = None

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from ..models.bet import BetStatus


@dataclass(frozen=True)
class TicketImage:
    """Raw ticket bytes as downloaded from the chat platform."""

    data: bytes
    mime_type: str = "image/jpeg"
    caption: Optional[str] = None
    file_path: Optional[str] = None


class TicketDraft(BaseModel):
    """Normalised fields extracted from one ticket image; never persisted."""

    bookmaker: str = ""
    tipster: str = ""
    sport: str = ""
    event: str = ""
    tournament: str = ""
    country: str = "Mundo"
    market: str = ""
    bet_type: str = "Simples"
    stake: float = Field(default=0, ge=0)
    odds: float = Field(default=0, ge=0)
    event_date: str = Field(default="", description="ISO date or empty when unknown.")
    status: BetStatus = BetStatus.PENDING
    raw_selections: Optional[str] = Field(
        default=None, description="Free-text selections exactly as extracted."
    )

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> BetStatus:
        """Unknown or empty statuses fall back to pending instead of failing."""
        if isinstance(value, BetStatus):
            return value
        try:
            return BetStatus(value)
        except ValueError:
            return BetStatus.PENDING

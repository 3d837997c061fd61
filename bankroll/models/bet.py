from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import DateTime, Enum as SqlEnum, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class BetStatus(str, Enum):
    WON = "Ganha"
    LOST = "Perdida"
    PENDING = "Pendente"
    HALF_WON = "Meio Ganha"
    HALF_LOST = "Meio Perdida"
    REFUNDED = "Reembolsada"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = " ".join(value.strip().split()).casefold()
            for member in cls:
                if member.value.casefold() == normalized:
                    return member
        return None


class Bet(Base):
    """Structured wager record derived from a ticket or created through the API."""

    __tablename__ = "bets"

    bankroll_id: Mapped[UUID] = mapped_column(
        ForeignKey("bankrolls.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sport: Mapped[str] = mapped_column(String(120), nullable=False)
    event: Mapped[str] = mapped_column(String(512), nullable=False)
    tournament: Mapped[str | None] = mapped_column(Text, nullable=True)
    country: Mapped[str | None] = mapped_column(Text, nullable=True)
    market: Mapped[str] = mapped_column(Text, nullable=False)
    bet_type: Mapped[str] = mapped_column(Text, default="Simples", nullable=False)
    stake: Mapped[float] = mapped_column(Float, nullable=False)
    odds: Mapped[float] = mapped_column(Float, nullable=False)
    bonus: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    event_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    tipster: Mapped[str | None] = mapped_column(String(120), nullable=True)
    status: Mapped[BetStatus] = mapped_column(
        SqlEnum(
            BetStatus,
            name="betstatus",
            native_enum=False,
            length=32,
            values_callable=lambda members: [member.value for member in members],
        ),
        default=BetStatus.PENDING,
        nullable=False,
    )
    bookmaker: Mapped[str] = mapped_column(String(120), nullable=False)
    obtained_return: Mapped[float | None] = mapped_column(Float, nullable=True)
    raw_selections: Mapped[str | None] = mapped_column(Text, nullable=True)

    bankroll: Mapped["Bankroll"] = relationship(back_populates="bets")


from .bankroll import Bankroll  # noqa: E402

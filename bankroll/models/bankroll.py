from __future__ import annotations

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class Bankroll(Base):
    """Named pool of funds owned by a user; bets are attributed to one."""

    __tablename__ = "bankrolls"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="Ativa", nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    user: Mapped["User"] = relationship(back_populates="bankrolls")
    bets: Mapped[list["Bet"]] = relationship(back_populates="bankroll", cascade="all, delete-orphan")


from .bet import Bet  # noqa: E402
from .user import User  # noqa: E402

from __future__ import annotations

from sqlalchemy import BigInteger, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class User(Base):
    """Account holder; optionally bound to exactly one Telegram identity."""

    __tablename__ = "users"

    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    telegram_id: Mapped[int | None] = mapped_column(
        BigInteger, unique=True, nullable=True, index=True
    )
    telegram_username: Mapped[str | None] = mapped_column(String(255), nullable=True)

    bankrolls: Mapped[list["Bankroll"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def first_name(self) -> str:
        return (self.full_name or "").split(" ")[0] or self.full_name


from .bankroll import Bankroll  # noqa: E402

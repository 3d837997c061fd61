from __future__ import annotations

from typing import Annotated, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_db
from ..telegram.bot import TicketBot, get_ticket_bot

SessionDep = Annotated[AsyncSession, Depends(get_db)]


def get_bot() -> Optional[TicketBot]:
    """The running ticket bot, or ``None`` when Telegram is not configured."""
    return get_ticket_bot()


TicketBotDep = Annotated[Optional[TicketBot], Depends(get_bot)]

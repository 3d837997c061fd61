from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..errors import BetNotFound
from ..models.bankroll import Bankroll
from ..models.bet import Bet, BetStatus
from ..schemas.ticket import TicketDraft

logger = logging.getLogger(__name__)

_RETURN_AT_ODDS = {BetStatus.WON, BetStatus.HALF_WON}


def compute_return(status: BetStatus | str, stake: float, odds: float) -> Optional[float]:
    """Amount credited back for a settled bet; ``None`` while nothing is returned."""
    status = BetStatus(status)
    if status in _RETURN_AT_ODDS:
        return round(stake * odds, 2)
    if status is BetStatus.REFUNDED:
        return round(stake, 2)
    return None


def settlement_result(
    status: BetStatus | str,
    stake: float,
    odds: float,
    obtained_return: Optional[float] = None,
) -> Optional[float]:
    """Profit (positive) or loss (negative) shown to the user; ``None`` while pending.

    Half outcomes are half of the full outcome, using the same return that
    :func:`compute_return` persists.
    """
    status = BetStatus(status)
    if status is BetStatus.PENDING:
        return None
    if status is BetStatus.LOST:
        return -stake
    if status is BetStatus.HALF_LOST:
        return -stake / 2
    if status is BetStatus.REFUNDED:
        return 0.0
    returned = obtained_return if obtained_return is not None else compute_return(status, stake, odds)
    profit = (returned or 0.0) - stake
    if status is BetStatus.HALF_WON:
        return profit / 2
    return profit


def parse_event_date(value: str | None) -> datetime:
    """Parse a normalised ticket date; empty or unparsable means "now"."""
    if value:
        for candidate in (value, value[:10]):
            try:
                parsed = datetime.fromisoformat(candidate)
            except ValueError:
                continue
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return datetime.now(timezone.utc)


async def get_default_bankroll(session: AsyncSession, user_id: UUID) -> Optional[Bankroll]:
    """The bankroll flagged as default, else the oldest one."""
    result = await session.execute(
        select(Bankroll)
        .where(Bankroll.user_id == user_id)
        .order_by(Bankroll.is_default.desc(), Bankroll.created_at.asc())
    )
    return result.scalars().first()


async def create_bet(session: AsyncSession, draft: TicketDraft, bankroll_id: UUID) -> Bet:
    bet = Bet(
        bankroll_id=bankroll_id,
        sport=draft.sport[:120],
        event=draft.event[:512],
        tournament=draft.tournament or None,
        country=draft.country or None,
        market=draft.market,
        bet_type=draft.bet_type,
        stake=draft.stake,
        odds=draft.odds,
        bonus=0,
        event_date=parse_event_date(draft.event_date),
        tipster=draft.tipster[:120] or None,
        status=draft.status,
        bookmaker=draft.bookmaker[:120],
        obtained_return=compute_return(draft.status, draft.stake, draft.odds),
        raw_selections=draft.raw_selections,
    )
    session.add(bet)
    await session.commit()
    await session.refresh(bet)
    logger.info("Bet created", extra={"bet_id": str(bet.id), "bankroll_id": str(bankroll_id)})
    return bet


async def get_owned_bet(session: AsyncSession, bet_id: UUID | str, user_id: UUID) -> Bet:
    """Load a bet only if its bankroll belongs to ``user_id``.

    Missing and foreign bets raise the same :class:`BetNotFound`.
    """
    try:
        bet_uuid = bet_id if isinstance(bet_id, UUID) else UUID(str(bet_id))
    except (TypeError, ValueError) as exc:
        raise BetNotFound(f"Malformed bet id {bet_id!r}") from exc

    result = await session.execute(
        select(Bet).options(selectinload(Bet.bankroll)).where(Bet.id == bet_uuid)
    )
    bet = result.scalars().first()
    if bet is None or bet.bankroll is None or bet.bankroll.user_id != user_id:
        raise BetNotFound(f"Bet {bet_uuid} not found for user {user_id}")
    return bet


async def update_bet_status(session: AsyncSession, bet: Bet, status: BetStatus | str) -> Bet:
    new_status = BetStatus(status)
    bet.status = new_status
    bet.obtained_return = compute_return(new_status, bet.stake, bet.odds)
    await session.commit()
    logger.info(
        "Bet status updated",
        extra={"bet_id": str(bet.id), "status": new_status.value, "obtained_return": bet.obtained_return},
    )
    return bet


async def delete_bet(session: AsyncSession, bet: Bet) -> None:
    await session.delete(bet)
    await session.commit()
    logger.info("Bet deleted", extra={"bet_id": str(bet.id)})


async def get_bet_with_owner(session: AsyncSession, bet_id: UUID) -> Bet:
    """Load a bet together with its bankroll and owning user."""
    result = await session.execute(
        select(Bet)
        .options(selectinload(Bet.bankroll).selectinload(Bankroll.user))
        .where(Bet.id == bet_id)
    )
    bet = result.scalars().first()
    if bet is None or bet.bankroll is None:
        raise BetNotFound(f"Bet {bet_id} not found")
    return bet

from __future__ import annotations

import hmac
import logging
from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse

from ..config import get_settings
from ..errors import AuthorizationError, BetNotFound
from ..schemas.bet import StatusResyncRequest, StatusResyncResponse
from ..services.bets import get_bet_with_owner
from ..telegram.messages import format_bet_message, truncate_message
from ..telegram.updates import UnknownUpdate
from .dependencies import SessionDep, TicketBotDep

logger = logging.getLogger(__name__)

router = APIRouter()

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


def verify_secret(received: Optional[str]) -> None:
    """Constant-time comparison against the configured webhook secret, if any."""
    expected = get_settings().telegram_webhook_secret
    if not expected:
        return
    if received is None or not hmac.compare_digest(received.encode("utf-8"), expected.encode("utf-8")):
        raise AuthorizationError("Telegram webhook secret mismatch")


@router.post("/webhook")
async def telegram_webhook(
    request: Request,
    ticket_bot: TicketBotDep,
    secret_token: Optional[str] = Header(default=None, alias=SECRET_HEADER),
) -> Any:
    try:
        verify_secret(secret_token)
    except AuthorizationError as exc:
        logger.warning("Telegram webhook rejected", extra={"reason": str(exc)})
        return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"error": "Unauthorized"})

    try:
        payload = await request.json()
    except ValueError:
        payload = None

    if ticket_bot is None:
        logger.debug("Telegram update received while the bot is disabled")
        return {"ok": True}

    update = ticket_bot.decode(payload)
    if ticket_bot.is_duplicate(update):
        logger.info("Duplicate Telegram update dropped", extra={"update_id": update.update_id})
        return {"ok": True, "duplicate": True}
    if isinstance(update, UnknownUpdate):
        return {"ok": True}

    task = ticket_bot.runner.spawn(ticket_bot.handle(update), name=f"telegram-update-{update.update_id}")
    if await request.is_disconnected():
        logger.info("Webhook client disconnected; cancelling update", extra={"update_id": update.update_id})
        task.cancel()
    return {"ok": True}


@router.post("/bets/{bet_id}/message", response_model=StatusResyncResponse)
async def resync_bet_message(
    bet_id: UUID,
    body: StatusResyncRequest,
    session: SessionDep,
    ticket_bot: TicketBotDep,
) -> StatusResyncResponse:
    """Push the current bet state back into its Telegram message after a web edit."""
    try:
        bet = await get_bet_with_owner(session, bet_id)
    except BetNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bet not found") from exc

    owner = bet.bankroll.user
    if owner is None or owner.telegram_id is None:
        return StatusResyncResponse(updated=False, message="Usuário sem Telegram vinculado.")
    if body.chat_id is not None and body.chat_id != owner.telegram_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bet not found")

    preview = truncate_message(format_bet_message(bet, bet.bankroll.name))
    if body.message_id is None or body.chat_id is None:
        return StatusResyncResponse(
            updated=False, message="Mensagem do Telegram não informada.", preview=preview
        )
    if ticket_bot is None:
        return StatusResyncResponse(
            updated=False, message="Bot do Telegram não configurado.", preview=preview
        )

    updated = await ticket_bot.controller.render(body.chat_id, body.message_id, bet, bet.bankroll.name)
    if not updated:
        logger.warning(
            "Bet message resync failed",
            extra={"bet_id": str(bet_id), "chat_id": body.chat_id, "message_id": body.message_id},
        )
        return StatusResyncResponse(
            updated=False, message="Não foi possível atualizar a mensagem.", preview=preview
        )
    return StatusResyncResponse(updated=True, message="Mensagem atualizada.")

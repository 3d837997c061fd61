from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..errors import BetNotFound
from ..services.accounts import resolve_account
from ..services.bets import delete_bet, get_owned_bet, update_bet_status
from ..services.events import BetEvent, BetEventBus
from .api_client import TelegramClient
from .messages import (
    DELETE_PREFIX,
    EDIT_PREFIX,
    LEGACY_DELETE_PREFIX,
    STATUS_CHOICE_PREFIX,
    STATUS_MENU_PREFIX,
    MessageController,
    StatusAction,
)
from .updates import IncomingCallback

logger = logging.getLogger(__name__)

NOT_LINKED_ALERT = "Usuário não encontrado. Vincule sua conta primeiro."
GENERIC_ERROR_ALERT = "Erro ao processar ação. Tente novamente."
DELETED_ANSWER = "Aposta excluída com sucesso!"
EDIT_UNAVAILABLE_ALERT = (
    'Use o botão "Editar" que abre o modal automaticamente. '
    "Se não aparecer, verifique a configuração do FRONTEND_URL."
)


class CallbackKind(str, Enum):
    DELETE = "delete"
    EDIT = "edit"
    STATUS_MENU = "status_menu"
    STATUS_CHOICE = "status_choice"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class CallbackAction:
    kind: CallbackKind
    bet_id: Optional[str] = None
    status_action: Optional[StatusAction] = None


_PREFIXED_KINDS = (
    (DELETE_PREFIX, CallbackKind.DELETE),
    (LEGACY_DELETE_PREFIX, CallbackKind.DELETE),
    (EDIT_PREFIX, CallbackKind.EDIT),
    (STATUS_MENU_PREFIX, CallbackKind.STATUS_MENU),
)


def parse_callback_data(data: str | None) -> CallbackAction:
    if not data:
        return CallbackAction(CallbackKind.UNKNOWN)
    if data.startswith(STATUS_CHOICE_PREFIX):
        parts = data.split(":", 2)
        if len(parts) != 3 or not parts[2]:
            return CallbackAction(CallbackKind.UNKNOWN)
        try:
            action = StatusAction(parts[1])
        except ValueError:
            return CallbackAction(CallbackKind.UNKNOWN)
        return CallbackAction(CallbackKind.STATUS_CHOICE, parts[2], action)
    for prefix, kind in _PREFIXED_KINDS:
        if data.startswith(prefix):
            bet_id = data[len(prefix) :]
            if not bet_id:
                return CallbackAction(CallbackKind.UNKNOWN)
            return CallbackAction(kind, bet_id)
    return CallbackAction(CallbackKind.UNKNOWN)


class CallbackAnswer:
    """Answers a callback query at most once."""

    def __init__(self, client: TelegramClient, callback_id: str) -> None:
        self.client = client
        self.callback_id = callback_id
        self.done = False

    async def __call__(self, text: str | None = None, *, alert: bool = False) -> None:
        if self.done:
            return
        self.done = True
        await self.client.answer_callback_query(self.callback_id, text, show_alert=alert)


Route = Callable[[AsyncSession, IncomingCallback, CallbackAction, Any, Any, CallbackAnswer], Awaitable[None]]


class CallbackDispatcher:
    """Routes inline button presses after re-checking who pressed them."""

    def __init__(
        self,
        client: TelegramClient,
        controller: MessageController,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        events: BetEventBus | None = None,
    ) -> None:
        self.client = client
        self.controller = controller
        self.session_factory = session_factory
        self.events = events
        self._routes: dict[CallbackKind, Route] = {
            CallbackKind.DELETE: self._delete,
            CallbackKind.EDIT: self._edit,
            CallbackKind.STATUS_MENU: self._status_menu,
            CallbackKind.STATUS_CHOICE: self._status_choice,
        }

    async def dispatch(self, callback: IncomingCallback) -> None:
        answer = CallbackAnswer(self.client, callback.callback_id)
        action = parse_callback_data(callback.data)
        try:
            if action.kind is CallbackKind.UNKNOWN:
                logger.info("Unknown callback data", extra={"data": callback.data})
                return
            async with self.session_factory() as session:
                account = await resolve_account(session, callback.user_id)
                if account is None:
                    await answer(NOT_LINKED_ALERT, alert=True)
                    return
                try:
                    bet = await get_owned_bet(session, action.bet_id, account.id)
                except BetNotFound as exc:
                    logger.info(
                        "Callback for unavailable bet",
                        extra={"bet_id": action.bet_id, "user_id": str(account.id), "detail": str(exc)},
                    )
                    await answer(exc.user_message, alert=True)
                    return
                await self._routes[action.kind](session, callback, action, bet, account, answer)
        except Exception:
            logger.exception("Callback handling failed", extra={"data": callback.data, "kind": action.kind.value})
            await answer(GENERIC_ERROR_ALERT, alert=True)
        finally:
            await answer()

    async def _publish(self, event_type: str, account: Any, bet_id: Any) -> None:
        if self.events is not None:
            await self.events.publish(BetEvent(event_type, str(account.id), str(bet_id)))

    async def _delete(self, session, callback, action, bet, account, answer) -> None:
        bet_id = bet.id
        await delete_bet(session, bet)
        await self._publish("deleted", account, bet_id)
        if callback.chat_id is not None and callback.message_id is not None:
            await self.controller.show_deleted(callback.chat_id, callback.message_id, bet_id)
        await answer(DELETED_ANSWER)

    async def _edit(self, session, callback, action, bet, account, answer) -> None:
        if not self.controller.keyboards.deep_links_enabled:
            await answer(EDIT_UNAVAILABLE_ALERT, alert=True)
            return
        chat_id = callback.chat_id if callback.chat_id is not None else callback.user_id
        await self.controller.offer_edit(chat_id, callback.message_id, bet.id)
        await answer()

    async def _status_menu(self, session, callback, action, bet, account, answer) -> None:
        if callback.chat_id is not None and callback.message_id is not None:
            await self.controller.show_status_menu(callback.chat_id, callback.message_id, bet.id)
        await answer()

    async def _status_choice(self, session, callback, action, bet, account, answer) -> None:
        has_message = callback.chat_id is not None and callback.message_id is not None
        if action.status_action is StatusAction.BACK:
            if has_message:
                await self.controller.restore_primary(callback.chat_id, callback.message_id, bet.id)
            await answer()
            return

        status = action.status_action.status
        bankroll_name = bet.bankroll.name if bet.bankroll is not None else None
        await update_bet_status(session, bet, status)
        await self._publish("updated", account, bet.id)
        if has_message:
            await self.controller.apply_status_choice(callback.chat_id, callback.message_id, bet, bankroll_name)
        await answer(f"Status alterado para {status.value}")

"""Bet summary messages and the inline keyboards attached to them.

A bet message shows exactly one keyboard at a time. The allowed swaps are
listed in ``TRANSITIONS``:

    PRIMARY --open_status_menu--> STATUS_MENU
    STATUS_MENU --choose_status--> PRIMARY
    STATUS_MENU --back--> PRIMARY
    PRIMARY --edit--> PRIMARY
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, WebAppInfo

from ..models.bet import BetStatus
from ..services.bets import settlement_result
from .api_client import TelegramClient
from .helpers import build_edit_url, format_brl, format_date_br, format_odds

logger = logging.getLogger(__name__)

MESSAGE_LIMIT = 4096
TRUNCATE_AT = 4000
TRUNCATION_MARKER = "\n\n... (mensagem truncada)"
PLACEHOLDER_TEXT = "⏳ Processando bilhete..."

DELETE_PREFIX = "excluir_"
LEGACY_DELETE_PREFIX = "delete_bet_"
EDIT_PREFIX = "editar_"
STATUS_MENU_PREFIX = "alterar_status_"
STATUS_CHOICE_PREFIX = "status:"


class KeyboardView(str, Enum):
    PRIMARY = "primary"
    STATUS_MENU = "status_menu"


class KeyboardEvent(str, Enum):
    OPEN_STATUS_MENU = "open_status_menu"
    CHOOSE_STATUS = "choose_status"
    BACK = "back"
    EDIT = "edit"


TRANSITIONS: dict[tuple[KeyboardView, KeyboardEvent], KeyboardView] = {
    (KeyboardView.PRIMARY, KeyboardEvent.OPEN_STATUS_MENU): KeyboardView.STATUS_MENU,
    (KeyboardView.STATUS_MENU, KeyboardEvent.CHOOSE_STATUS): KeyboardView.PRIMARY,
    (KeyboardView.STATUS_MENU, KeyboardEvent.BACK): KeyboardView.PRIMARY,
    (KeyboardView.PRIMARY, KeyboardEvent.EDIT): KeyboardView.PRIMARY,
}


def transition(view: KeyboardView, event: KeyboardEvent) -> KeyboardView:
    try:
        return TRANSITIONS[(view, event)]
    except KeyError:
        raise ValueError(f"{event.value} is not allowed from the {view.value} keyboard") from None


class StatusAction(str, Enum):
    GANHA = "GANHA"
    PERDIDA = "PERDIDA"
    PENDENTE = "PENDENTE"
    MEIO_GANHA = "MEIO_GANHA"
    MEIO_PERDIDA = "MEIO_PERDIDA"
    REEMBOLSADA = "REEMBOLSADA"
    BACK = "BACK"

    @property
    def status(self) -> Optional[BetStatus]:
        return _STATUS_BY_ACTION.get(self)


_STATUS_BY_ACTION = {
    StatusAction.GANHA: BetStatus.WON,
    StatusAction.PERDIDA: BetStatus.LOST,
    StatusAction.PENDENTE: BetStatus.PENDING,
    StatusAction.MEIO_GANHA: BetStatus.HALF_WON,
    StatusAction.MEIO_PERDIDA: BetStatus.HALF_LOST,
    StatusAction.REEMBOLSADA: BetStatus.REFUNDED,
}

STATUS_GLYPHS = {
    BetStatus.WON: "✅",
    BetStatus.HALF_WON: "🟢",
    BetStatus.LOST: "❌",
    BetStatus.HALF_LOST: "🟠",
    BetStatus.REFUNDED: "↩️",
    BetStatus.PENDING: "⏳",
}


# Formatting


def _status_of(bet: Any) -> BetStatus:
    try:
        return BetStatus(bet.status or BetStatus.PENDING)
    except ValueError:
        return BetStatus.PENDING


def result_line(bet: Any) -> str:
    result = settlement_result(_status_of(bet), bet.stake or 0, bet.odds or 1, bet.obtained_return)
    if result is None or abs(result) < 0.005:
        return "Sem lucro ou prejuízo."
    if result > 0:
        return f"Lucro: {format_brl(result)}"
    return f"Prejuízo: {format_brl(abs(result))}"


def format_bet_message(bet: Any, bankroll_name: str | None) -> str:
    status = _status_of(bet)
    stake = bet.stake or 0
    odds = bet.odds or 1
    market = bet.market if bet.market and bet.market != "N/D" else None
    bonus = bet.bonus or 0
    lines = [
        "✅ Bilhete processado com sucesso",
        "",
        f"🆔 ID: {bet.id}",
        f"💰 Banca: {bankroll_name or 'N/D'}",
        f"{STATUS_GLYPHS[status]} Status: {status.value}",
        f"💎 {result_line(bet)}",
        f"🏀 Esporte: {bet.sport or 'N/D'}",
        f"🏆 Torneio: {bet.tournament or 'N/D'}",
        f"⚔️ Evento: {bet.event or 'N/D'}",
        f"🎯 Aposta: {market or bet.event or 'N/D'}",
        f"💵 Valor Apostado: {format_brl(stake)}",
        f"📊 Odd: {format_odds(odds)}",
        f"💚 Retorno Potencial: {format_brl(stake * odds)}",
        f"📄 Tipo: {bet.bet_type or 'Simples'}",
        f"📅 Data: {format_date_br(bet.event_date)}",
        f"🎁 Bônus: {format_brl(bonus) if bonus > 0 else 'Não'}",
        f"🏠 Casa: {bet.bookmaker or 'N/D'}",
        f"👤 Tipster: {bet.tipster or 'N/D'}",
    ]
    return "\n".join(lines)


def format_fallback_summary(bet: Any) -> str:
    return f"✅ Aposta registrada com sucesso no sistema.\n\n🆔 ID: {bet.id}"


def format_deleted_message(bet_id: Any) -> str:
    return f"✅ Bilhete excluído com sucesso.\n\n🆔 ID: {bet_id}\n\nEsta aposta foi removida do sistema."


def truncate_message(text: str, limit: int = MESSAGE_LIMIT) -> str:
    if len(text) <= limit:
        return text
    cut = min(TRUNCATE_AT, limit - len(TRUNCATION_MARKER))
    return text[:cut] + TRUNCATION_MARKER


# Keyboards


class EditButtonStrategy(Protocol):
    def build(self, bet_id: str, message_id: int | None, chat_id: int | None) -> Optional[InlineKeyboardButton]:
        ...


class WebAppEditButton:
    """Opens the hosted bet editor inside Telegram."""

    def __init__(self, frontend_url: str) -> None:
        self.frontend_url = frontend_url

    def build(self, bet_id: str, message_id: int | None, chat_id: int | None) -> Optional[InlineKeyboardButton]:
        url = build_edit_url(self.frontend_url, bet_id, message_id, chat_id)
        return InlineKeyboardButton("✏️ Editar", web_app=WebAppInfo(url=url))


class CallbackEditButton:
    def build(self, bet_id: str, message_id: int | None, chat_id: int | None) -> Optional[InlineKeyboardButton]:
        return InlineKeyboardButton("✏️ Editar", callback_data=f"{EDIT_PREFIX}{bet_id}")


STATUS_MENU_LAYOUT: tuple[tuple[StatusAction, ...], ...] = (
    (StatusAction.GANHA, StatusAction.PERDIDA),
    (StatusAction.PENDENTE, StatusAction.REEMBOLSADA),
    (StatusAction.MEIO_GANHA, StatusAction.MEIO_PERDIDA),
    (StatusAction.BACK,),
)


def status_callback_data(action: StatusAction, bet_id: Any) -> str:
    return f"{STATUS_CHOICE_PREFIX}{action.value}:{bet_id}"


def status_button_label(action: StatusAction) -> str:
    if action is StatusAction.BACK:
        return "⬅️ Voltar"
    status = action.status
    return f"{STATUS_GLYPHS[status]} {status.value}"


class KeyboardFactory:
    """Builds the primary and status-menu keyboards for one deployment."""

    def __init__(self, frontend_url: str | None = None) -> None:
        self.frontend_url = frontend_url or None
        strategies: list[EditButtonStrategy] = []
        if self.frontend_url:
            strategies.append(WebAppEditButton(self.frontend_url))
        strategies.append(CallbackEditButton())
        self.edit_strategies: Sequence[EditButtonStrategy] = strategies

    @property
    def deep_links_enabled(self) -> bool:
        return self.frontend_url is not None

    def edit_button(self, bet_id: Any, message_id: int | None = None, chat_id: int | None = None) -> InlineKeyboardButton:
        for strategy in self.edit_strategies:
            button = strategy.build(str(bet_id), message_id, chat_id)
            if button is not None:
                return button
        raise RuntimeError("No edit button strategy produced a button")

    def web_app_edit_button(
        self, bet_id: Any, message_id: int | None = None, chat_id: int | None = None
    ) -> Optional[InlineKeyboardButton]:
        if not self.frontend_url:
            return None
        return WebAppEditButton(self.frontend_url).build(str(bet_id), message_id, chat_id)

    def primary(self, bet_id: Any, message_id: int | None = None, chat_id: int | None = None) -> InlineKeyboardMarkup:
        return InlineKeyboardMarkup(
            [
                [
                    self.edit_button(bet_id, message_id, chat_id),
                    InlineKeyboardButton("🗑️ Excluir", callback_data=f"{DELETE_PREFIX}{bet_id}"),
                ],
                [InlineKeyboardButton("📚 Alterar Status", callback_data=f"{STATUS_MENU_PREFIX}{bet_id}")],
            ]
        )

    def status_menu(self, bet_id: Any) -> InlineKeyboardMarkup:
        return InlineKeyboardMarkup(
            [
                [
                    InlineKeyboardButton(status_button_label(action), callback_data=status_callback_data(action, bet_id))
                    for action in row
                ]
                for row in STATUS_MENU_LAYOUT
            ]
        )

    def for_view(self, view: KeyboardView, bet_id: Any, message_id: int | None = None, chat_id: int | None = None) -> InlineKeyboardMarkup:
        if view is KeyboardView.STATUS_MENU:
            return self.status_menu(bet_id)
        return self.primary(bet_id, message_id, chat_id)


def empty_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([])


# Controller


@dataclass(frozen=True)
class PresentedMessage:
    chat_id: int
    message_id: int
    view: Optional[KeyboardView]


class MessageController:
    """Sends and edits the chat message that represents one bet."""

    def __init__(
        self,
        client: TelegramClient,
        keyboards: KeyboardFactory,
        *,
        retry_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.keyboards = keyboards
        self.retry_delay = retry_delay
        self._sleep = sleep

    async def send_placeholder(self, chat_id: int, reply_to: int | None = None) -> Optional[int]:
        result = await self.client.send_message(chat_id, PLACEHOLDER_TEXT, reply_to_message_id=reply_to)
        if not result.ok or result.result is None:
            logger.warning("Placeholder not sent", extra={"chat_id": chat_id, "description": result.description})
            return None
        return result.result.message_id

    async def present_bet(
        self,
        chat_id: int,
        bet: Any,
        bankroll_name: str | None,
        *,
        placeholder_id: int | None = None,
        reply_to: int | None = None,
    ) -> Optional[PresentedMessage]:
        """Deliver the bet summary, degrading step by step until something reaches the chat.

        Order: with keyboard, once more with keyboard after ``retry_delay``,
        text only, then the placeholder edited into a short summary.
        """
        text = truncate_message(format_bet_message(bet, bankroll_name))
        keyboard = self.keyboards.primary(bet.id)

        result = await self.client.send_message(chat_id, text, reply_markup=keyboard, reply_to_message_id=reply_to)
        if not result.ok:
            logger.warning("Bet message failed, retrying", extra={"bet_id": str(bet.id), "description": result.description})
            await self._sleep(self.retry_delay)
            result = await self.client.send_message(chat_id, text, reply_markup=keyboard, reply_to_message_id=reply_to)
        view: Optional[KeyboardView] = KeyboardView.PRIMARY
        if not result.ok:
            logger.warning("Bet message failed twice, sending without keyboard", extra={"bet_id": str(bet.id)})
            view = None
            result = await self.client.send_message(chat_id, text, reply_to_message_id=reply_to)

        if result.ok and result.result is not None:
            message_id = result.result.message_id
            if view is KeyboardView.PRIMARY and self.keyboards.deep_links_enabled:
                await self.client.edit_message_reply_markup(
                    chat_id, message_id, self.keyboards.primary(bet.id, message_id, chat_id)
                )
            if placeholder_id is not None:
                await self.client.delete_message(chat_id, placeholder_id)
            return PresentedMessage(chat_id, message_id, view)

        if placeholder_id is not None:
            edited = await self.client.edit_message_text(chat_id, placeholder_id, format_fallback_summary(bet))
            if edited.ok:
                return PresentedMessage(chat_id, placeholder_id, None)
        logger.error("Bet message could not be delivered", extra={"bet_id": str(bet.id), "chat_id": chat_id})
        return None

    async def report_failure(self, chat_id: int, text: str, *, placeholder_id: int | None = None) -> None:
        if placeholder_id is not None:
            edited = await self.client.edit_message_text(chat_id, placeholder_id, text)
            if edited.ok:
                return
        await self.client.send_message(chat_id, text)

    async def show_status_menu(self, chat_id: int, message_id: int, bet_id: Any) -> bool:
        view = transition(KeyboardView.PRIMARY, KeyboardEvent.OPEN_STATUS_MENU)
        result = await self.client.edit_message_reply_markup(
            chat_id, message_id, self.keyboards.for_view(view, bet_id)
        )
        return result.ok

    async def restore_primary(self, chat_id: int, message_id: int, bet_id: Any) -> bool:
        view = transition(KeyboardView.STATUS_MENU, KeyboardEvent.BACK)
        result = await self.client.edit_message_reply_markup(
            chat_id, message_id, self.keyboards.for_view(view, bet_id, message_id, chat_id)
        )
        return result.ok

    async def apply_status_choice(self, chat_id: int, message_id: int, bet: Any, bankroll_name: str | None) -> bool:
        view = transition(KeyboardView.STATUS_MENU, KeyboardEvent.CHOOSE_STATUS)
        return await self.render(chat_id, message_id, bet, bankroll_name, view=view)

    async def render(
        self,
        chat_id: int,
        message_id: int,
        bet: Any,
        bankroll_name: str | None,
        *,
        view: KeyboardView = KeyboardView.PRIMARY,
    ) -> bool:
        """Rewrite text and keyboard of an existing bet message."""
        result = await self.client.edit_message_text(
            chat_id,
            message_id,
            truncate_message(format_bet_message(bet, bankroll_name)),
            reply_markup=self.keyboards.for_view(view, bet.id, message_id, chat_id),
        )
        return result.ok

    async def offer_edit(self, chat_id: int, message_id: int | None, bet_id: Any) -> bool:
        """Put the web-app edit button in front of the user.

        With known coordinates the primary keyboard is upgraded in place,
        otherwise a separate message carries the button.
        """
        if message_id is not None:
            view = transition(KeyboardView.PRIMARY, KeyboardEvent.EDIT)
            result = await self.client.edit_message_reply_markup(
                chat_id, message_id, self.keyboards.for_view(view, bet_id, message_id, chat_id)
            )
            return result.ok
        button = self.keyboards.web_app_edit_button(bet_id, None, chat_id)
        if button is None:
            return False
        result = await self.client.send_message(
            chat_id,
            "Toque no botão abaixo para editar a aposta.",
            reply_markup=InlineKeyboardMarkup([[button]]),
        )
        return result.ok

    async def show_deleted(self, chat_id: int, message_id: int, bet_id: Any) -> bool:
        result = await self.client.edit_message_text(
            chat_id, message_id, format_deleted_message(bet_id), reply_markup=empty_keyboard()
        )
        return result.ok

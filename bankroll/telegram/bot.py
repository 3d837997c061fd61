from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from telegram import Bot, BotCommand

from ..config import Settings, get_settings
from ..errors import BankrollError, LinkConflict, NotFound, ValidationError
from ..services.accounts import (
    extract_command_param,
    get_account,
    link_account,
    require_account_id,
    resolve_account,
    unlink_chat,
)
from ..services.bets import create_bet, get_default_bankroll
from ..services.events import BetEvent, BetEventBus, bet_events
from ..services.recognition import TicketPipeline, build_ticket_pipeline
from .acquisition import TicketAcquirer
from .api_client import TelegramClient
from .callbacks import CallbackDispatcher
from .messages import KeyboardFactory, MessageController
from .tasks import BackgroundTaskRunner
from .updates import (
    IncomingCallback,
    IncomingMessage,
    IncomingUpdate,
    RecentUpdates,
    decode_update,
)

logger = logging.getLogger(__name__)

ALLOWED_UPDATES = ["message", "channel_post", "callback_query"]
SUPPORT_PREFIX = "support_"

LINKED_TEMPLATE = (
    "✅ Conta vinculada com sucesso!\n\nBem-vindo, {name}!\n\n"
    "Agora você pode enviar bilhetes de apostas para este bot e eles serão registrados "
    "automaticamente no sistema."
)
UNLINKED_TEMPLATE = (
    "✅ Conta desvinculada com sucesso!\n\nSua conta {name} foi desvinculada deste Telegram.\n\n"
    "Para vincular novamente, use o comando /id <ID_DA_CONTA> ou acesse o perfil no sistema."
)
GREETING_LINKED_TEMPLATE = (
    "Olá, {name}!\n\nSua conta já está vinculada. Você pode enviar bilhetes de apostas para este bot."
)
GREETING_UNLINKED = (
    'Olá! Para vincular sua conta, acesse o perfil no sistema e clique em "Conectar com Telegram".'
)
SUPPORT_TEMPLATE = "Olá, {name}! 👋\n\nBem-vindo ao suporte!\nComo posso ajudar?"
SUPPORT_LINK_HINT = (
    "\n\n⚠️ Para um atendimento mais personalizado, vincule sua conta do Telegram no perfil do sistema."
)
INVALID_ID_MESSAGE = "❌ ID inválido. Copie novamente o ID exibido no perfil e tente outra vez."
ID_USAGE_MESSAGE = "❌ Uso: /id <ID_DA_CONTA>\n\nExemplo: /id 268b85d8-dbe4-47d9-98cd-846cc17ab7dc"
NOT_LINKED_MESSAGE = (
    "Não encontrei um usuário vinculado a este Telegram. Associe seu Telegram no perfil do sistema "
    "ou use o comando /start com seu ID da conta."
)
NO_BANKROLL_MESSAGE = "Nenhuma banca ativa foi encontrada para sua conta."


class TicketBot:
    """Routes decoded updates to account linking, ticket processing and callbacks."""

    def __init__(
        self,
        client: TelegramClient,
        session_factory: async_sessionmaker[AsyncSession],
        pipeline: TicketPipeline,
        *,
        keyboards: KeyboardFactory | None = None,
        runner: BackgroundTaskRunner | None = None,
        recent_updates: RecentUpdates | None = None,
        events: BetEventBus | None = None,
        retry_delay: float = 1.0,
    ) -> None:
        self.client = client
        self.session_factory = session_factory
        self.pipeline = pipeline
        self.events = events if events is not None else bet_events
        self.controller = MessageController(client, keyboards or KeyboardFactory(), retry_delay=retry_delay)
        self.acquirer = TicketAcquirer(client)
        self.dispatcher = CallbackDispatcher(client, self.controller, session_factory, events=self.events)
        self.runner = runner or BackgroundTaskRunner()
        self.recent_updates = recent_updates or RecentUpdates()

    def decode(self, payload: Any) -> IncomingUpdate:
        bot = getattr(self.client, "bot", None)
        return decode_update(payload, bot if isinstance(bot, Bot) else None)

    def is_duplicate(self, update: IncomingUpdate) -> bool:
        return self.recent_updates.check_and_remember(update.update_id)

    async def handle(self, update: IncomingUpdate) -> None:
        if isinstance(update, IncomingCallback):
            await self.dispatcher.dispatch(update)
        elif isinstance(update, IncomingMessage):
            await self.handle_message(update)
        else:
            logger.debug("Ignoring update", extra={"update_id": update.update_id})

    async def reply(self, message: IncomingMessage, text: str) -> None:
        await self.client.send_message(message.chat_id, text)

    async def handle_message(self, message: IncomingMessage) -> None:
        if message.user_id is None:
            return
        command = message.command
        if command == "start":
            await self.handle_start(message)
        elif command == "id":
            try:
                account_id = require_account_id(extract_command_param(message.text))
            except ValidationError:
                await self.reply(message, ID_USAGE_MESSAGE)
                return
            await self.link(message, account_id)
        elif command == "desvincular":
            await self.handle_unlink(message)
        elif message.image is not None:
            await self.process_ticket(message)

    async def handle_start(self, message: IncomingMessage) -> None:
        param = extract_command_param(message.text)
        if param and param.startswith(SUPPORT_PREFIX):
            await self.handle_support(message, param[len(SUPPORT_PREFIX) :])
            return
        if param:
            try:
                account_id = require_account_id(param)
            except ValidationError:
                await self.reply(message, INVALID_ID_MESSAGE)
                return
            await self.link(message, account_id)
            return
        async with self.session_factory() as session:
            user = await resolve_account(session, message.user_id)
        if user is not None:
            await self.reply(message, GREETING_LINKED_TEMPLATE.format(name=user.full_name))
        else:
            await self.reply(message, GREETING_UNLINKED)

    async def handle_support(self, message: IncomingMessage, raw_account_id: str) -> None:
        try:
            account_id = require_account_id(raw_account_id)
        except ValidationError:
            await self.reply(message, INVALID_ID_MESSAGE)
            return
        async with self.session_factory() as session:
            account = await get_account(session, account_id)
        if account is None:
            await self.reply(message, "❌ Conta não encontrada.")
            return
        text = SUPPORT_TEMPLATE.format(name=account.first_name)
        if account.telegram_id != message.user_id:
            text += SUPPORT_LINK_HINT
        await self.reply(message, text)

    async def link(self, message: IncomingMessage, account_id: str) -> None:
        try:
            async with self.session_factory() as session:
                account = await link_account(session, account_id, message.user_id, message.username)
        except (NotFound, LinkConflict) as exc:
            logger.info(
                "Telegram link refused",
                extra={"chat_user_id": message.user_id, "reason": type(exc).__name__},
            )
            await self.reply(message, exc.user_message)
            return
        await self.reply(message, LINKED_TEMPLATE.format(name=account.full_name))

    async def handle_unlink(self, message: IncomingMessage) -> None:
        try:
            async with self.session_factory() as session:
                account = await unlink_chat(session, message.user_id)
        except NotFound as exc:
            await self.reply(message, exc.user_message)
            return
        await self.reply(message, UNLINKED_TEMPLATE.format(name=account.full_name))

    async def process_ticket(self, message: IncomingMessage) -> None:
        """Turn one ticket image into a persisted bet and its interactive message."""
        async with self.session_factory() as session:
            user = await resolve_account(session, message.user_id)
            if user is None:
                await self.reply(message, NOT_LINKED_MESSAGE)
                return
            bankroll = await get_default_bankroll(session, user.id)
        if bankroll is None:
            await self.reply(message, NO_BANKROLL_MESSAGE)
            return

        placeholder_id = await self.controller.send_placeholder(message.chat_id, reply_to=message.message_id)
        context = {"chat_id": message.chat_id, "user_id": str(user.id)}
        try:
            image = await self.acquirer.fetch(
                message.image.file_id, mime_type=message.image.mime_type, caption=message.caption
            )
            draft = await self.pipeline.run(image)
            async with self.session_factory() as session:
                bet = await create_bet(session, draft, bankroll.id)
        except BankrollError as exc:
            logger.warning("Ticket not processed", extra={**context, "reason": str(exc)})
            await self.controller.report_failure(message.chat_id, exc.user_message, placeholder_id=placeholder_id)
            return
        except Exception:
            logger.exception("Unexpected failure while processing ticket", extra=context)
            await self.controller.report_failure(
                message.chat_id, BankrollError.user_message, placeholder_id=placeholder_id
            )
            return

        await self.events.publish(BetEvent("created", str(user.id), str(bet.id)))
        await self.controller.present_bet(
            message.chat_id,
            bet,
            bankroll.name,
            placeholder_id=placeholder_id,
            reply_to=message.message_id,
        )

    async def aclose(self) -> None:
        await self.runner.shutdown()
        await self.pipeline.aclose()
        await self.client.aclose()


_ticket_bot: TicketBot | None = None
_lock = asyncio.Lock()


def get_ticket_bot() -> Optional[TicketBot]:
    return _ticket_bot


def build_ticket_bot(settings: Settings, session_factory: async_sessionmaker[AsyncSession]) -> TicketBot:
    client = TelegramClient.from_token(settings.telegram_bot_token)
    return TicketBot(
        client,
        session_factory,
        build_ticket_pipeline(settings),
        keyboards=KeyboardFactory(settings.frontend_url),
        runner=BackgroundTaskRunner(timeout=settings.ticket_task_timeout_seconds),
        recent_updates=RecentUpdates(settings.update_dedup_capacity),
        retry_delay=settings.telegram_send_retry_delay_seconds,
    )


async def init_bot(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Initialise the Telegram bot and optionally register the webhook."""
    settings = get_settings()
    if not settings.telegram_bot_token:
        logger.info("TELEGRAM_BOT_TOKEN not configured; skipping bot initialisation.")
        return

    async with _lock:
        global _ticket_bot
        if _ticket_bot is not None:
            return

        ticket_bot = build_ticket_bot(settings, session_factory)
        try:
            await ticket_bot.client.initialize()
            bot = ticket_bot.client.bot
            try:
                await bot.set_my_commands(
                    [
                        BotCommand("start", "Vincular conta ou ver boas-vindas"),
                        BotCommand("id", "Vincular conta pelo ID"),
                        BotCommand("desvincular", "Desvincular este Telegram"),
                    ]
                )
            except Exception:
                logger.exception("Failed to set Telegram command list.")
            if settings.telegram_register_webhook_on_start:
                if settings.backend_base_url:
                    webhook_url = str(settings.backend_base_url).rstrip("/") + "/api/telegram/webhook"
                    await bot.set_webhook(
                        url=webhook_url,
                        secret_token=settings.telegram_webhook_secret,
                        allowed_updates=ALLOWED_UPDATES,
                        drop_pending_updates=False,
                    )
                    logger.info("Telegram webhook configured at %s", webhook_url)
                else:
                    logger.warning("BACKEND_BASE_URL is missing; skipping Telegram webhook registration.")
        except Exception:
            logger.exception("Failed to initialise Telegram bot; bot disabled for this run.")
            with contextlib.suppress(Exception):
                await ticket_bot.aclose()
            return

        _ticket_bot = ticket_bot


async def shutdown_bot() -> None:
    async with _lock:
        global _ticket_bot
        if _ticket_bot is None:
            return
        ticket_bot = _ticket_bot
        _ticket_bot = None
    await ticket_bot.aclose()

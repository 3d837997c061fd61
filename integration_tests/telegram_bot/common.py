from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv
from telethon import TelegramClient, events
from telethon.errors import SessionPasswordNeededError
from telethon.tl.custom.message import Message

logger = logging.getLogger(__name__)

load_dotenv()


def _require(name: str) -> str:
    value = os.environ.get(name)
    if not value:
        raise SystemExit(f"Missing required env var: {name}")
    return value


@dataclass
class TestConfig:
    api_id: int
    api_hash: str
    phone_number: str
    bot_username: str
    account_id: str
    ticket_image: Path
    session_path: Path

    @classmethod
    def from_env(cls) -> "TestConfig":
        ticket_image = Path(_require("TELEGRAM_TEST_TICKET_IMAGE"))
        if not ticket_image.exists():
            raise SystemExit(f"Ticket image not found: {ticket_image}")
        return cls(
            api_id=int(_require("TELEGRAM_TEST_API_ID")),
            api_hash=_require("TELEGRAM_TEST_API_HASH"),
            phone_number=_require("TELEGRAM_TEST_PHONE"),
            bot_username=_require("TELEGRAM_MAIN_BOT_USERNAME"),
            account_id=_require("TELEGRAM_TEST_ACCOUNT_ID"),
            ticket_image=ticket_image,
            session_path=Path(os.environ.get("TELEGRAM_TEST_SESSION", "integration_tests/telegram_bot/test_user.session")),
        )


def contains(*fragments: str) -> Callable[[Message], bool]:
    """Match a bot message whose text holds any of ``fragments``, case-insensitively."""
    lowered = [fragment.lower() for fragment in fragments]
    return lambda message: any(fragment in (message.text or "").lower() for fragment in lowered)


class TicketBotInteractor:
    """Talks to the ticket bot from a real user account.

    New messages and edits both count as replies, since the bot turns its
    processing placeholder into the final answer.
    """

    def __init__(self, client: TelegramClient, bot_username: str) -> None:
        self.client = client
        self.bot_username = bot_username
        self._bot = None

    async def initialise(self) -> None:
        self._bot = await self.client.get_entity(self.bot_username)

    async def send_and_expect(self, text: str, expected: list[str] | str, *, timeout: float = 60.0) -> Message:
        fragments = [expected] if isinstance(expected, str) else expected
        return await self._reply_to(lambda: self.client.send_message(self._bot, text), contains(*fragments), timeout)

    async def send_ticket_and_expect(
        self, image: Path, expected: list[str], *, caption: str | None = None, timeout: float = 180.0
    ) -> Message:
        send = lambda: self.client.send_file(self._bot, str(image), caption=caption)  # noqa: E731
        return await self._reply_to(send, contains(*expected), timeout)

    async def wait_for(self, predicate: Callable[[Message], bool], *, timeout: float = 60.0) -> Message:
        return await self._reply_to(None, predicate, timeout)

    async def _reply_to(
        self, action: Callable[[], Awaitable] | None, predicate: Callable[[Message], bool], timeout: float
    ) -> Message:
        reply: asyncio.Future[Message] = asyncio.get_running_loop().create_future()

        async def on_message(event) -> None:
            if not reply.done() and predicate(event.message):
                reply.set_result(event.message)

        for event_type in (events.NewMessage, events.MessageEdited):
            self.client.add_event_handler(on_message, event_type(from_users=self._bot))
        try:
            if action is not None:
                await action()
            return await asyncio.wait_for(reply, timeout)
        finally:
            self.client.remove_event_handler(on_message)

    async def click_button(self, message: Message, label: str) -> None:
        for row in message.buttons or []:
            for button in row:
                if label.lower() in (button.text or "").lower():
                    logger.info("Clicking %s", button.text)
                    await button.click()
                    return
        raise RuntimeError(f"No button labelled {label!r} on message {message.id}")

    async def refresh(self, message: Message) -> Message:
        return await self.client.get_messages(self._bot, ids=message.id)


async def _authorise(client: TelegramClient, config: TestConfig) -> None:
    if await client.is_user_authorized():
        return
    await client.send_code_request(config.phone_number)
    try:
        await client.sign_in(config.phone_number, input("Login code sent by Telegram: "))
    except SessionPasswordNeededError:
        password = os.environ.get("TELEGRAM_TEST_PASSWORD") or input("Telegram 2FA password: ")
        await client.sign_in(password=password)


def run_flow(flow: Callable[[TicketBotInteractor, TestConfig], Awaitable[None]]) -> None:
    """Connect as the test user, run ``flow`` against the bot, then disconnect."""

    async def main() -> None:
        logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
        config = TestConfig.from_env()
        config.session_path.parent.mkdir(parents=True, exist_ok=True)
        client = TelegramClient(str(config.session_path), config.api_id, config.api_hash)
        await client.connect()
        try:
            await _authorise(client, config)
            interactor = TicketBotInteractor(client, config.bot_username)
            await interactor.initialise()
            await flow(interactor, config)
        finally:
            await client.disconnect()

    asyncio.run(main())

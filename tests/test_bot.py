from __future__ import annotations

import asyncio
import itertools
import unittest
from types import SimpleNamespace
from unittest import IsolatedAsyncioTestCase
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

from bankroll.errors import AccountNotFound, ChatAlreadyLinked, NoBindingFound, TicketExtractionError
from bankroll.models.bet import BetStatus
from bankroll.services.events import BetEventBus
from bankroll.services.recognition import TicketExtractionChain, TicketPipeline
from bankroll.telegram import bot as bot_module
from bankroll.telegram.api_client import ApiResult
from bankroll.telegram.bot import TicketBot
from bankroll.telegram.messages import PLACEHOLDER_TEXT
from bankroll.telegram.tasks import BackgroundTaskRunner
from bankroll.telegram.updates import (
    IncomingCallback,
    IncomingMessage,
    RecentUpdates,
    UnknownUpdate,
    decode_update,
)

CHAT_ID = 777
ACCOUNT_ID = "268b85d8-dbe4-47d9-98cd-846cc17ab7dc"


def sender(user_id: int = CHAT_ID) -> dict:
    return {"id": user_id, "is_bot": False, "first_name": "Ana", "username": "ana"}


def message_payload(update_id: int, **fields) -> dict:
    message = {
        "message_id": 10,
        "date": 1735689600,
        "chat": {"id": CHAT_ID, "type": "private"},
        "from": sender(),
    }
    message.update(fields)
    return {"update_id": update_id, "message": message}


def photo_payload(update_id: int, caption: str | None = None) -> dict:
    photos = [
        {"file_id": "small", "file_unique_id": "s", "width": 90, "height": 90},
        {"file_id": "large", "file_unique_id": "l", "width": 1280, "height": 1280},
    ]
    fields = {"photo": photos}
    if caption:
        fields["caption"] = caption
    return message_payload(update_id, **fields)


class FakeSessionFactory:
    def __init__(self) -> None:
        self.session = MagicMock(name="session")

    def __call__(self):
        return self

    async def __aenter__(self):
        return self.session

    async def __aexit__(self, *exc_info) -> bool:
        return False


class StubExtractor:
    name = "stub"

    def __init__(self, result=None, error: Exception | None = None) -> None:
        self.extract = AsyncMock(return_value=result, side_effect=error)


def make_client() -> SimpleNamespace:
    message_ids = itertools.count(100)
    return SimpleNamespace(
        bot=None,
        send_message=AsyncMock(side_effect=lambda *args, **kwargs: ApiResult(True, SimpleNamespace(message_id=next(message_ids)))),
        edit_message_text=AsyncMock(return_value=ApiResult(True)),
        edit_message_reply_markup=AsyncMock(return_value=ApiResult(True)),
        delete_message=AsyncMock(return_value=ApiResult(True)),
        answer_callback_query=AsyncMock(return_value=ApiResult(True)),
        get_file=AsyncMock(return_value=ApiResult(True, SimpleNamespace(file_path="photos/file_1.jpg"))),
        download_file=AsyncMock(return_value=ApiResult(True, b"\xff\xd8ticket")),
        aclose=AsyncMock(),
    )


def bet_from_draft(session, draft, bankroll_id) -> SimpleNamespace:
    return SimpleNamespace(
        id=uuid4(),
        bankroll_id=bankroll_id,
        sport=draft.sport,
        event=draft.event,
        tournament=draft.tournament,
        market=draft.market,
        stake=draft.stake,
        odds=draft.odds,
        bonus=0,
        bet_type=draft.bet_type,
        event_date=None,
        bookmaker=draft.bookmaker,
        tipster=draft.tipster,
        status=draft.status,
        obtained_return=None,
    )


class DecodeUpdateTests(unittest.TestCase):
    def test_photo_uses_largest_size(self) -> None:
        update = decode_update(photo_payload(1, caption="Bet365"))

        self.assertIsInstance(update, IncomingMessage)
        self.assertEqual(update.image.file_id, "large")
        self.assertEqual(update.caption, "Bet365")
        self.assertEqual((update.chat_id, update.user_id, update.username), (CHAT_ID, CHAT_ID, "ana"))

    def test_image_document(self) -> None:
        document = {"file_id": "doc", "file_unique_id": "d", "mime_type": "image/png"}
        update = decode_update(message_payload(2, document=document))

        self.assertEqual(update.image.file_id, "doc")
        self.assertEqual(update.image.mime_type, "image/png")

    def test_non_image_document_is_not_a_ticket(self) -> None:
        document = {"file_id": "doc", "file_unique_id": "d", "mime_type": "application/pdf"}

        self.assertIsNone(decode_update(message_payload(3, document=document)).image)

    def test_callback_query(self) -> None:
        payload = {
            "update_id": 4,
            "callback_query": {
                "id": "cb-9",
                "from": sender(),
                "chat_instance": "ci",
                "data": "excluir_abc",
                "message": {"message_id": 55, "date": 1735689600, "chat": {"id": CHAT_ID, "type": "private"}},
            },
        }

        update = decode_update(payload)

        self.assertIsInstance(update, IncomingCallback)
        self.assertEqual((update.callback_id, update.data, update.chat_id, update.message_id), ("cb-9", "excluir_abc", CHAT_ID, 55))

    def test_unsupported_and_malformed_payloads(self) -> None:
        edited = {"update_id": 5, "edited_message": message_payload(5, text="x")["message"]}

        self.assertEqual(decode_update(edited), UnknownUpdate(5))
        self.assertEqual(decode_update(["not", "a", "dict"]), UnknownUpdate(None))
        self.assertEqual(decode_update({"update_id": 6, "message": "hello"}), UnknownUpdate(6))
        self.assertEqual(decode_update({"update_id": 7, "callback_query": "x"}), UnknownUpdate(7))

    def test_command_word(self) -> None:
        update = decode_update(message_payload(7, text="/START@BancaBot abc"))

        self.assertEqual(update.command, "start")
        self.assertIsNone(decode_update(message_payload(8, text="hello")).command)


class RecentUpdatesTests(unittest.TestCase):
    def test_duplicates_are_detected(self) -> None:
        recent = RecentUpdates(capacity=2)

        self.assertFalse(recent.check_and_remember(1))
        self.assertTrue(recent.check_and_remember(1))
        self.assertFalse(recent.check_and_remember(None))
        self.assertFalse(recent.check_and_remember(None))

    def test_capacity_evicts_oldest(self) -> None:
        recent = RecentUpdates(capacity=2)
        for update_id in (1, 2, 3):
            recent.check_and_remember(update_id)

        self.assertEqual(len(recent), 2)
        self.assertNotIn(1, recent)
        self.assertFalse(recent.check_and_remember(1))

    def test_disabled(self) -> None:
        recent = RecentUpdates(capacity=0)
        recent.check_and_remember(1)

        self.assertFalse(recent.check_and_remember(1))


class BackgroundTaskRunnerTests(IsolatedAsyncioTestCase):
    async def test_join_waits_for_tasks(self) -> None:
        runner = BackgroundTaskRunner()
        done = []

        async def work() -> None:
            await asyncio.sleep(0)
            done.append(True)

        runner.spawn(work(), name="work")
        await runner.join()

        self.assertEqual(done, [True])
        self.assertEqual(runner.pending, 0)

    async def test_failures_and_timeouts_are_contained(self) -> None:
        runner = BackgroundTaskRunner(timeout=0.01)

        async def boom() -> None:
            raise RuntimeError("boom")

        first = runner.spawn(boom(), name="boom")
        second = runner.spawn(asyncio.sleep(5), name="slow")
        await runner.join()

        self.assertIsNone(first.exception())
        self.assertIsNone(second.exception())

    async def test_shutdown_cancels_pending(self) -> None:
        runner = BackgroundTaskRunner(timeout=None)
        task = runner.spawn(asyncio.sleep(5), name="slow")
        await asyncio.sleep(0)

        await runner.shutdown()

        self.assertTrue(task.cancelled())


class TicketBotTests(IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.client = make_client()
        self.sessions = FakeSessionFactory()
        self.extractor = StubExtractor(
            result={"esporte": "soccer", "evento": "A vs B", "odd": 1.8, "valorApostado": 50}
        )
        self.events = BetEventBus()
        self.published = []

        async def collect(event) -> None:
            self.published.append(event)

        self.events.subscribe(collect)
        self.bot = TicketBot(
            self.client,
            self.sessions,
            TicketPipeline(TicketExtractionChain([self.extractor])),
            events=self.events,
            retry_delay=0,
        )
        self.user = SimpleNamespace(id=uuid4(), full_name="Ana Souza", first_name="Ana", telegram_id=CHAT_ID)
        self.bankroll = SimpleNamespace(id=uuid4(), name="Principal")

    def sent_texts(self) -> list[str]:
        return [call.args[1] for call in self.client.send_message.await_args_list]

    async def deliver(self, payload: dict) -> bool:
        update = self.bot.decode(payload)
        if self.bot.is_duplicate(update):
            return False
        await self.bot.handle(update)
        return True

    async def test_ticket_image_becomes_bet_message(self) -> None:
        create_bet = AsyncMock(side_effect=bet_from_draft)
        with patch.object(bot_module, "resolve_account", AsyncMock(return_value=self.user)), patch.object(
            bot_module, "get_default_bankroll", AsyncMock(return_value=self.bankroll)
        ), patch.object(bot_module, "create_bet", create_bet):
            await self.deliver(photo_payload(100))

        draft = create_bet.await_args.args[1]
        self.assertEqual(create_bet.await_args.args[2], self.bankroll.id)
        self.assertEqual(draft.sport, "Futebol ⚽")
        self.assertEqual(draft.odds, 1.8)
        self.assertEqual(draft.stake, 50)
        self.assertIs(draft.status, BetStatus.PENDING)

        self.client.get_file.assert_awaited_once_with("large")
        image = self.extractor.extract.await_args.args[0]
        self.assertEqual(image.mime_type, "image/jpeg")
        self.assertEqual(image.data, b"\xff\xd8ticket")

        calls = self.client.send_message.await_args_list
        self.assertEqual(calls[0].args[1], PLACEHOLDER_TEXT)
        with_keyboard = [call for call in calls if call.kwargs.get("reply_markup") is not None]
        self.assertEqual(len(with_keyboard), 1)
        self.assertIn("Principal", with_keyboard[0].args[1])
        self.client.delete_message.assert_awaited_once_with(CHAT_ID, 100)
        self.assertEqual([event.type for event in self.published], ["created"])

    async def test_redelivered_update_is_processed_once(self) -> None:
        create_bet = AsyncMock(side_effect=bet_from_draft)
        with patch.object(bot_module, "resolve_account", AsyncMock(return_value=self.user)), patch.object(
            bot_module, "get_default_bankroll", AsyncMock(return_value=self.bankroll)
        ), patch.object(bot_module, "create_bet", create_bet):
            first = await self.deliver(photo_payload(200))
            second = await self.deliver(photo_payload(200))

        self.assertTrue(first)
        self.assertFalse(second)
        create_bet.assert_awaited_once()

    async def test_unlinked_sender_is_told_to_link(self) -> None:
        with patch.object(bot_module, "resolve_account", AsyncMock(return_value=None)), patch.object(
            bot_module, "create_bet", AsyncMock()
        ) as create_bet:
            await self.deliver(photo_payload(300))

        self.assertEqual(self.sent_texts(), [bot_module.NOT_LINKED_MESSAGE])
        create_bet.assert_not_awaited()
        self.client.get_file.assert_not_awaited()

    async def test_extraction_failure_replaces_placeholder(self) -> None:
        self.extractor.extract.side_effect = TicketExtractionError("unreadable")
        with patch.object(bot_module, "resolve_account", AsyncMock(return_value=self.user)), patch.object(
            bot_module, "get_default_bankroll", AsyncMock(return_value=self.bankroll)
        ), patch.object(bot_module, "create_bet", AsyncMock()) as create_bet:
            await self.deliver(photo_payload(400))

        create_bet.assert_not_awaited()
        chat_id, message_id, text = self.client.edit_message_text.await_args.args
        self.assertEqual((chat_id, message_id), (CHAT_ID, 100))
        self.assertEqual(text, TicketExtractionError.user_message)
        self.assertEqual(self.published, [])

    async def test_start_with_account_id_links(self) -> None:
        link_account = AsyncMock(return_value=self.user)
        with patch.object(bot_module, "link_account", link_account):
            await self.deliver(message_payload(500, text=f"/start {ACCOUNT_ID.upper()}"))

        link_account.assert_awaited_once_with(self.sessions.session, ACCOUNT_ID, CHAT_ID, "ana")
        self.assertIn("Ana Souza", self.sent_texts()[0])

    async def test_link_conflict_is_reported(self) -> None:
        with patch.object(bot_module, "link_account", AsyncMock(side_effect=ChatAlreadyLinked())):
            await self.deliver(message_payload(501, text=f"/id {ACCOUNT_ID}"))

        self.assertEqual(self.sent_texts(), [ChatAlreadyLinked.user_message])

    async def test_unknown_account_is_reported(self) -> None:
        with patch.object(bot_module, "link_account", AsyncMock(side_effect=AccountNotFound())):
            await self.deliver(message_payload(502, text=f"/start {ACCOUNT_ID}"))

        self.assertEqual(self.sent_texts(), [AccountNotFound.user_message])

    async def test_id_without_parameter_shows_usage(self) -> None:
        with patch.object(bot_module, "link_account", AsyncMock()) as link_account:
            await self.deliver(message_payload(503, text="/id"))

        link_account.assert_not_awaited()
        self.assertEqual(self.sent_texts(), [bot_module.ID_USAGE_MESSAGE])

    async def test_plain_start_greets(self) -> None:
        with patch.object(bot_module, "resolve_account", AsyncMock(return_value=None)):
            await self.deliver(message_payload(504, text="/start"))

        self.assertEqual(self.sent_texts(), [bot_module.GREETING_UNLINKED])

    async def test_support_link(self) -> None:
        account = SimpleNamespace(first_name="Ana", telegram_id=None)
        with patch.object(bot_module, "get_account", AsyncMock(return_value=account)):
            await self.deliver(message_payload(505, text=f"/start support_{ACCOUNT_ID}"))

        text = self.sent_texts()[0]
        self.assertTrue(text.startswith("Olá, Ana!"))
        self.assertTrue(text.endswith(bot_module.SUPPORT_LINK_HINT))

    async def test_unlink(self) -> None:
        with patch.object(bot_module, "unlink_chat", AsyncMock(return_value=self.user)):
            await self.deliver(message_payload(506, text="/desvincular"))

        self.assertIn("desvinculada", self.sent_texts()[0])

    async def test_unlink_without_binding(self) -> None:
        with patch.object(bot_module, "unlink_chat", AsyncMock(side_effect=NoBindingFound())):
            await self.deliver(message_payload(507, text="/desvincular"))

        self.assertEqual(self.sent_texts(), [NoBindingFound.user_message])

    async def test_plain_text_is_ignored(self) -> None:
        await self.deliver(message_payload(508, text="oi"))

        self.client.send_message.assert_not_awaited()


if __name__ == "__main__":
    unittest.main()

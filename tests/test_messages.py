from __future__ import annotations

import unittest
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest import IsolatedAsyncioTestCase
from unittest.mock import AsyncMock
from uuid import UUID

from telegram import InlineKeyboardMarkup

from bankroll.models.bet import BetStatus
from bankroll.telegram import messages
from bankroll.telegram.api_client import ApiResult
from bankroll.telegram.helpers import build_edit_url, format_brl
from bankroll.telegram.messages import (
    KeyboardEvent,
    KeyboardFactory,
    KeyboardView,
    MessageController,
    StatusAction,
)

BET_ID = UUID("0b8f6a3e-8d6a-4f51-9a51-3f2f4c1d2e7a")


def make_bet(**overrides) -> SimpleNamespace:
    values = {
        "id": BET_ID,
        "sport": "Futebol ⚽",
        "event": "A vs B",
        "tournament": None,
        "market": "Resultado Final",
        "stake": 100.0,
        "odds": 2.0,
        "bonus": 0,
        "bet_type": "Simples",
        "event_date": datetime(2025, 3, 1, tzinfo=timezone.utc),
        "bookmaker": "Bet365",
        "tipster": None,
        "status": BetStatus.PENDING,
        "obtained_return": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def all_buttons(markup: InlineKeyboardMarkup) -> list:
    return [button for row in markup.inline_keyboard for button in row]


def make_client() -> SimpleNamespace:
    return SimpleNamespace(
        send_message=AsyncMock(return_value=ApiResult(True, SimpleNamespace(message_id=500))),
        edit_message_text=AsyncMock(return_value=ApiResult(True)),
        edit_message_reply_markup=AsyncMock(return_value=ApiResult(True)),
        delete_message=AsyncMock(return_value=ApiResult(True)),
    )


class FormattingTests(unittest.TestCase):
    def test_currency(self) -> None:
        self.assertEqual(format_brl(1234.56), "R$ 1.234,56")
        self.assertEqual(format_brl(0), "R$ 0,00")
        self.assertEqual(format_brl(-50), "-R$ 50,00")
        self.assertEqual(format_brl("nope"), "R$ 0,00")

    def test_bet_message_shows_status_and_result(self) -> None:
        text = messages.format_bet_message(
            make_bet(status=BetStatus.WON, obtained_return=200.0), "Principal"
        )

        self.assertIn(f"🆔 ID: {BET_ID}", text)
        self.assertIn("💰 Banca: Principal", text)
        self.assertIn("✅ Status: Ganha", text)
        self.assertIn("💎 Lucro: R$ 100,00", text)
        self.assertIn("💚 Retorno Potencial: R$ 200,00", text)
        self.assertIn("📅 Data: 01/03/2025", text)

    def test_loss_and_pending_lines(self) -> None:
        lost = messages.format_bet_message(make_bet(status=BetStatus.LOST), None)
        pending = messages.format_bet_message(make_bet(), None)

        self.assertIn("Prejuízo: R$ 100,00", lost)
        self.assertIn("💰 Banca: N/D", lost)
        self.assertIn("⏳ Status: Pendente", pending)
        self.assertIn("Sem lucro ou prejuízo.", pending)

    def test_truncation_respects_platform_cap(self) -> None:
        text = messages.format_bet_message(make_bet(market="x" * 6000), "Principal")

        truncated = messages.truncate_message(text)

        self.assertLessEqual(len(truncated), messages.MESSAGE_LIMIT)
        self.assertTrue(truncated.endswith(messages.TRUNCATION_MARKER))
        self.assertEqual(messages.truncate_message("curto"), "curto")


class KeyboardTests(unittest.TestCase):
    def test_primary_keyboard_uses_callbacks_without_frontend(self) -> None:
        markup = KeyboardFactory().primary(BET_ID)
        data = [button.callback_data for button in all_buttons(markup)]

        self.assertEqual(data, [f"editar_{BET_ID}", f"excluir_{BET_ID}", f"alterar_status_{BET_ID}"])

    def test_primary_keyboard_deep_links_editor(self) -> None:
        markup = KeyboardFactory("app.example.com").primary(BET_ID, 500, 42)
        edit = all_buttons(markup)[0]

        self.assertIsNone(edit.callback_data)
        self.assertEqual(
            edit.web_app.url,
            f"https://app.example.com/telegram/edit?betId={BET_ID}&messageId=500&chatId=42",
        )

    def test_edit_url_without_coordinates(self) -> None:
        self.assertEqual(
            build_edit_url("https://app.example.com/", "abc"),
            "https://app.example.com/telegram/edit?betId=abc",
        )

    def test_status_menu_lists_every_status_and_back(self) -> None:
        markup = KeyboardFactory().status_menu(BET_ID)
        buttons = all_buttons(markup)

        self.assertEqual(len(buttons), 7)
        self.assertEqual(buttons[-1].callback_data, f"status:BACK:{BET_ID}")
        self.assertTrue(all(len(row) <= 2 for row in markup.inline_keyboard))
        for button in buttons:
            self.assertLessEqual(len(button.callback_data.encode("utf-8")), 64)

    def test_transitions(self) -> None:
        self.assertIs(
            messages.transition(KeyboardView.PRIMARY, KeyboardEvent.OPEN_STATUS_MENU),
            KeyboardView.STATUS_MENU,
        )
        self.assertIs(messages.transition(KeyboardView.STATUS_MENU, KeyboardEvent.BACK), KeyboardView.PRIMARY)
        with self.assertRaises(ValueError):
            messages.transition(KeyboardView.STATUS_MENU, KeyboardEvent.OPEN_STATUS_MENU)

    def test_status_actions_map_to_statuses(self) -> None:
        self.assertIs(StatusAction.MEIO_GANHA.status, BetStatus.HALF_WON)
        self.assertIsNone(StatusAction.BACK.status)


class DeliveryPolicyTests(IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.client = make_client()
        self.sleep = AsyncMock()
        self.controller = MessageController(self.client, KeyboardFactory(), retry_delay=1.0, sleep=self.sleep)

    async def test_placeholder_failure_is_not_fatal(self) -> None:
        self.client.send_message.return_value = ApiResult(False, description="Forbidden")

        self.assertIsNone(await self.controller.send_placeholder(42, reply_to=7))

    async def test_first_send_succeeds_and_placeholder_is_removed(self) -> None:
        presented = await self.controller.present_bet(42, make_bet(), "Principal", placeholder_id=9)

        self.assertEqual(presented.message_id, 500)
        self.assertIs(presented.view, KeyboardView.PRIMARY)
        self.client.send_message.assert_awaited_once()
        self.client.delete_message.assert_awaited_once_with(42, 9)
        self.sleep.assert_not_awaited()

    async def test_retry_once_after_backoff(self) -> None:
        self.client.send_message.side_effect = [
            ApiResult(False, description="Bad Gateway"),
            ApiResult(True, SimpleNamespace(message_id=501)),
        ]

        presented = await self.controller.present_bet(42, make_bet(), "Principal")

        self.assertEqual(presented.message_id, 501)
        self.sleep.assert_awaited_once_with(1.0)
        for call in self.client.send_message.await_args_list:
            self.assertIsNotNone(call.kwargs["reply_markup"])

    async def test_degrades_to_text_only(self) -> None:
        self.client.send_message.side_effect = [
            ApiResult(False),
            ApiResult(False),
            ApiResult(True, SimpleNamespace(message_id=502)),
        ]

        presented = await self.controller.present_bet(42, make_bet(), "Principal", placeholder_id=9)

        self.assertIsNone(presented.view)
        self.assertNotIn("reply_markup", self.client.send_message.await_args_list[2].kwargs)
        self.client.delete_message.assert_awaited_once_with(42, 9)

    async def test_placeholder_becomes_final_message(self) -> None:
        self.client.send_message.return_value = ApiResult(False)

        presented = await self.controller.present_bet(42, make_bet(), "Principal", placeholder_id=9)

        self.assertEqual(presented.message_id, 9)
        self.assertEqual(self.client.send_message.await_count, 3)
        chat_id, message_id, text = self.client.edit_message_text.await_args.args
        self.assertEqual((chat_id, message_id), (42, 9))
        self.assertIn(str(BET_ID), text)
        self.client.delete_message.assert_not_awaited()

    async def test_keyboard_is_upgraded_with_coordinates_when_deep_links_enabled(self) -> None:
        controller = MessageController(self.client, KeyboardFactory("https://app.example.com"), sleep=self.sleep)

        await controller.present_bet(42, make_bet(), "Principal")

        chat_id, message_id, markup = self.client.edit_message_reply_markup.await_args.args
        self.assertEqual((chat_id, message_id), (42, 500))
        self.assertIn("messageId=500", all_buttons(markup)[0].web_app.url)

    async def test_status_menu_swaps_keyboard_only(self) -> None:
        await self.controller.show_status_menu(42, 500, BET_ID)

        self.client.edit_message_text.assert_not_awaited()
        markup = self.client.edit_message_reply_markup.await_args.args[2]
        self.assertEqual(len(all_buttons(markup)), 7)

    async def test_status_choice_rerenders_text_with_primary_keyboard(self) -> None:
        bet = make_bet(status=BetStatus.REFUNDED, obtained_return=100.0)

        await self.controller.apply_status_choice(42, 500, bet, "Principal")

        args = self.client.edit_message_text.await_args
        self.assertIn("Status: Reembolsada", args.args[2])
        self.assertEqual(all_buttons(args.kwargs["reply_markup"])[1].callback_data, f"excluir_{BET_ID}")

    async def test_deleted_notice_clears_keyboard(self) -> None:
        await self.controller.show_deleted(42, 500, BET_ID)

        args = self.client.edit_message_text.await_args
        self.assertIn("Bilhete excluído com sucesso", args.args[2])
        self.assertEqual(args.kwargs["reply_markup"].inline_keyboard, ())


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import unittest
from types import SimpleNamespace
from unittest import IsolatedAsyncioTestCase
from unittest.mock import AsyncMock, patch
from uuid import UUID, uuid4

from bankroll.errors import AccountAlreadyLinked, AccountNotFound, ChatAlreadyLinked, NoBindingFound, ValidationError
from bankroll.services import accounts


class FakeAccountSession:
    """Keeps accounts in memory; lookups by chat id go through ``resolve_account``."""

    def __init__(self, *users: SimpleNamespace) -> None:
        self.users = {user.id: user for user in users}
        self.commit = AsyncMock()

    async def get(self, model, key: UUID):
        return self.users.get(key)

    def by_chat(self, chat_user_id: int):
        for user in self.users.values():
            if user.telegram_id == chat_user_id:
                return user
        return None


def make_user(telegram_id: int | None = None, username: str | None = None) -> SimpleNamespace:
    return SimpleNamespace(
        id=uuid4(), full_name="Maria Souza", telegram_id=telegram_id, telegram_username=username
    )


class AccountParsingTests(unittest.TestCase):
    def test_normalize_account_id(self) -> None:
        self.assertEqual(accounts.normalize_account_id(" ABC-12_z! "), "abc-12_z")
        self.assertIsNone(accounts.normalize_account_id("  $$ "))
        self.assertIsNone(accounts.normalize_account_id(None))

    def test_require_account_id(self) -> None:
        self.assertEqual(accounts.require_account_id("ABC"), "abc")
        with self.assertRaises(ValidationError):
            accounts.require_account_id("!!!")

    def test_extract_command_param_decodes_url_encoding(self) -> None:
        self.assertEqual(accounts.extract_command_param("/start support_abc%2D1"), "support_abc-1")
        self.assertEqual(accounts.extract_command_param("/id   1234  "), "1234")
        self.assertIsNone(accounts.extract_command_param("/id"))
        self.assertIsNone(accounts.extract_command_param(None))


class LinkAccountTests(IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        patcher = patch("bankroll.services.accounts.resolve_account", new_callable=AsyncMock)
        self.resolve_mock = patcher.start()
        self.addCleanup(patcher.stop)

    def _wire(self, session: FakeAccountSession) -> None:
        self.resolve_mock.side_effect = lambda _session, chat_id: session.by_chat(chat_id)

    async def test_linking_same_pair_twice_is_idempotent(self) -> None:
        user = make_user()
        session = FakeAccountSession(user)
        self._wire(session)

        first = await accounts.link_account(session, str(user.id), 777, "maria")
        second = await accounts.link_account(session, str(user.id), 777, "maria")

        self.assertIs(first, user)
        self.assertIs(second, user)
        self.assertEqual(user.telegram_id, 777)
        self.assertEqual(session.commit.await_count, 1)

    async def test_relinking_refreshes_username_only(self) -> None:
        user = make_user(telegram_id=777, username="old")
        session = FakeAccountSession(user)
        self._wire(session)

        await accounts.link_account(session, str(user.id), 777, "new")

        self.assertEqual(user.telegram_id, 777)
        self.assertEqual(user.telegram_username, "new")

    async def test_chat_bound_to_other_account_is_refused_without_mutation(self) -> None:
        account_a = make_user(telegram_id=777, username="maria")
        account_b = make_user()
        session = FakeAccountSession(account_a, account_b)
        self._wire(session)

        with self.assertRaises(ChatAlreadyLinked):
            await accounts.link_account(session, str(account_b.id), 777, "maria")

        self.assertEqual(account_a.telegram_id, 777)
        self.assertIsNone(account_b.telegram_id)
        session.commit.assert_not_awaited()

    async def test_account_bound_to_other_chat_is_refused(self) -> None:
        user = make_user(telegram_id=111)
        session = FakeAccountSession(user)
        self._wire(session)

        with self.assertRaises(AccountAlreadyLinked):
            await accounts.link_account(session, str(user.id), 222, None)
        self.assertEqual(user.telegram_id, 111)

    async def test_unknown_or_malformed_account(self) -> None:
        session = FakeAccountSession()
        self._wire(session)

        with self.assertRaises(AccountNotFound):
            await accounts.link_account(session, str(uuid4()), 1, None)
        with self.assertRaises(AccountNotFound):
            await accounts.link_account(session, "not-a-uuid", 1, None)

    async def test_unlink(self) -> None:
        user = make_user(telegram_id=777, username="maria")
        session = FakeAccountSession(user)
        self._wire(session)

        unlinked = await accounts.unlink_chat(session, 777)

        self.assertIs(unlinked, user)
        self.assertIsNone(user.telegram_id)
        self.assertIsNone(user.telegram_username)
        with self.assertRaises(NoBindingFound):
            await accounts.unlink_chat(session, 777)


if __name__ == "__main__":
    unittest.main()

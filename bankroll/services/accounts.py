from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import unquote
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import AccountAlreadyLinked, AccountNotFound, ChatAlreadyLinked, NoBindingFound, ValidationError
from ..models.user import User

logger = logging.getLogger(__name__)

_ACCOUNT_ID_DISALLOWED = re.compile(r"[^a-zA-Z0-9_-]")


def extract_command_param(text: str | None) -> Optional[str]:
    """Everything after the command word, URL-decoded; ``None`` when absent."""
    if not text:
        return None
    parts = text.strip().split(maxsplit=1)
    if len(parts) < 2:
        return None
    raw = parts[1].strip()
    if not raw:
        return None
    return unquote(raw)


def normalize_account_id(raw: str | None) -> Optional[str]:
    if not raw:
        return None
    cleaned = _ACCOUNT_ID_DISALLOWED.sub("", raw.strip())
    return cleaned.lower() or None


def require_account_id(raw: str | None) -> str:
    account_id = normalize_account_id(raw)
    if not account_id:
        raise ValidationError(f"Unusable account id parameter: {raw!r}")
    return account_id


async def get_account(session: AsyncSession, account_id: str) -> Optional[User]:
    try:
        account_uuid = UUID(account_id)
    except (TypeError, ValueError):
        return None
    return await session.get(User, account_uuid)


async def resolve_account(session: AsyncSession, chat_user_id: int) -> Optional[User]:
    result = await session.execute(select(User).where(User.telegram_id == chat_user_id))
    return result.scalars().first()


async def link_account(
    session: AsyncSession,
    account_id: str,
    chat_user_id: int,
    chat_username: str | None = None,
) -> User:
    """Bind a Telegram identity to an account, keeping the binding one-to-one.

    Re-linking the pair that is already bound only refreshes the cached
    username. Conflicts raise before anything is written.
    """
    account = await get_account(session, account_id)
    if account is None:
        raise AccountNotFound(f"Account {account_id!r} does not exist")

    current = await resolve_account(session, chat_user_id)
    if current is not None and current.id != account.id:
        raise ChatAlreadyLinked(f"Chat {chat_user_id} is bound to account {current.id}")
    if account.telegram_id is not None and account.telegram_id != chat_user_id:
        raise AccountAlreadyLinked(f"Account {account.id} is bound to another chat")

    if account.telegram_id == chat_user_id:
        if chat_username and account.telegram_username != chat_username:
            account.telegram_username = chat_username
            await session.commit()
        return account

    account.telegram_id = chat_user_id
    account.telegram_username = chat_username
    await session.commit()
    logger.info("Telegram linked", extra={"account_id": str(account.id), "chat_user_id": chat_user_id})
    return account


async def unlink_chat(session: AsyncSession, chat_user_id: int) -> User:
    account = await resolve_account(session, chat_user_id)
    if account is None:
        raise NoBindingFound(f"Chat {chat_user_id} has no linked account")
    account.telegram_id = None
    account.telegram_username = None
    await session.commit()
    logger.info("Telegram unlinked", extra={"account_id": str(account.id), "chat_user_id": chat_user_id})
    return account

"""Decode raw webhook payloads into the small set of update shapes the bot handles."""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Optional, Union

from telegram import Bot, Message, Update

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageRef:
    file_id: str
    mime_type: Optional[str] = None


@dataclass(frozen=True)
class IncomingMessage:
    update_id: Optional[int]
    chat_id: int
    message_id: int
    user_id: Optional[int]
    username: Optional[str] = None
    text: Optional[str] = None
    caption: Optional[str] = None
    image: Optional[ImageRef] = None

    @property
    def command(self) -> Optional[str]:
        """Lower-cased command word without the slash or ``@botname`` suffix."""
        if not self.text or not self.text.startswith("/"):
            return None
        word = self.text.split(maxsplit=1)[0][1:]
        return word.split("@", 1)[0].lower() or None


@dataclass(frozen=True)
class IncomingCallback:
    update_id: Optional[int]
    callback_id: str
    user_id: int
    data: str
    chat_id: Optional[int] = None
    message_id: Optional[int] = None


@dataclass(frozen=True)
class UnknownUpdate:
    update_id: Optional[int] = None


IncomingUpdate = Union[IncomingMessage, IncomingCallback, UnknownUpdate]


def _image_ref(message: Message) -> Optional[ImageRef]:
    if message.photo:
        largest = message.photo[-1]
        return ImageRef(file_id=largest.file_id)
    document = message.document
    if document is not None and (document.mime_type or "").startswith("image/"):
        return ImageRef(file_id=document.file_id, mime_type=document.mime_type)
    return None


def decode_update(payload: Any, bot: Bot | None = None) -> IncomingUpdate:
    raw_update_id = payload.get("update_id") if isinstance(payload, dict) else None
    update_id = raw_update_id if isinstance(raw_update_id, int) else None
    if not isinstance(payload, dict):
        return UnknownUpdate(update_id)
    try:
        update = Update.de_json(payload, bot)
    except Exception:
        logger.warning("Undecodable Telegram update", extra={"update_id": update_id}, exc_info=True)
        return UnknownUpdate(update_id)
    if update is None:
        return UnknownUpdate(update_id)

    query = update.callback_query
    if query is not None:
        if query.from_user is None or query.data is None:
            return UnknownUpdate(update_id)
        chat_id = message_id = None
        if query.message is not None:
            chat_id = query.message.chat.id
            message_id = query.message.message_id
        return IncomingCallback(
            update_id=update_id,
            callback_id=query.id,
            user_id=query.from_user.id,
            data=query.data,
            chat_id=chat_id,
            message_id=message_id,
        )

    message = update.message or update.channel_post
    if message is not None:
        sender = message.from_user
        return IncomingMessage(
            update_id=update_id,
            chat_id=message.chat.id,
            message_id=message.message_id,
            user_id=sender.id if sender else None,
            username=sender.username if sender else None,
            text=message.text,
            caption=message.caption,
            image=_image_ref(message),
        )
    return UnknownUpdate(update_id)


class RecentUpdates:
    """Bounded memory of update ids already accepted by this process."""

    def __init__(self, capacity: int = 1024) -> None:
        self.capacity = capacity
        self._seen: OrderedDict[int, None] = OrderedDict()

    def __contains__(self, update_id: object) -> bool:
        return update_id in self._seen

    def __len__(self) -> int:
        return len(self._seen)

    def check_and_remember(self, update_id: Optional[int]) -> bool:
        """Return ``True`` when ``update_id`` was already seen; remember it otherwise."""
        if update_id is None or self.capacity <= 0:
            return False
        if update_id in self._seen:
            self._seen.move_to_end(update_id)
            return True
        self._seen[update_id] = None
        while len(self._seen) > self.capacity:
            self._seen.popitem(last=False)
        return False

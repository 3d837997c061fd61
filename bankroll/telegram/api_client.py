from __future__ import annotations

import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Optional

from telegram import Bot, File, InlineKeyboardMarkup, ReplyParameters
from telegram.error import BadRequest, TelegramError

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

NOT_MODIFIED = "message is not modified"


@dataclass(frozen=True)
class ApiResult:
    """Outcome of one Bot API call; ``result`` holds the decoded object on success."""

    ok: bool
    result: Any = None
    description: Optional[str] = None


class TelegramClient:
    """Bot API calls that report failures through :class:`ApiResult` instead of raising."""

    def __init__(self, bot: Bot) -> None:
        self.bot = bot

    @classmethod
    def from_token(cls, token: str | None) -> "TelegramClient":
        if not token:
            raise ConfigurationError("TELEGRAM_BOT_TOKEN is not set")
        return cls(Bot(token))

    async def initialize(self) -> None:
        await self.bot.initialize()

    async def aclose(self) -> None:
        await self.bot.shutdown()

    async def _call(self, method: str, call: Awaitable[Any], **context: Any) -> ApiResult:
        try:
            result = await call
        except BadRequest as exc:
            if NOT_MODIFIED in exc.message.lower():
                return ApiResult(ok=True, result=None, description=exc.message)
            logger.warning("Telegram %s rejected", method, extra={"description": exc.message, **context})
            return ApiResult(ok=False, description=exc.message)
        except TelegramError as exc:
            logger.warning("Telegram %s failed", method, extra={"description": exc.message, **context})
            return ApiResult(ok=False, description=exc.message)
        return ApiResult(ok=True, result=result)

    async def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        reply_markup: InlineKeyboardMarkup | None = None,
        reply_to_message_id: int | None = None,
    ) -> ApiResult:
        reply_parameters = None
        if reply_to_message_id is not None:
            reply_parameters = ReplyParameters(
                message_id=reply_to_message_id, allow_sending_without_reply=True
            )
        return await self._call(
            "sendMessage",
            self.bot.send_message(
                chat_id=chat_id,
                text=text,
                reply_markup=reply_markup,
                reply_parameters=reply_parameters,
            ),
            chat_id=chat_id,
        )

    async def edit_message_text(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        *,
        reply_markup: InlineKeyboardMarkup | None = None,
    ) -> ApiResult:
        return await self._call(
            "editMessageText",
            self.bot.edit_message_text(
                text=text, chat_id=chat_id, message_id=message_id, reply_markup=reply_markup
            ),
            chat_id=chat_id,
            message_id=message_id,
        )

    async def edit_message_reply_markup(
        self,
        chat_id: int,
        message_id: int,
        reply_markup: InlineKeyboardMarkup | None,
    ) -> ApiResult:
        return await self._call(
            "editMessageReplyMarkup",
            self.bot.edit_message_reply_markup(
                chat_id=chat_id, message_id=message_id, reply_markup=reply_markup
            ),
            chat_id=chat_id,
            message_id=message_id,
        )

    async def delete_message(self, chat_id: int, message_id: int) -> ApiResult:
        return await self._call(
            "deleteMessage",
            self.bot.delete_message(chat_id=chat_id, message_id=message_id),
            chat_id=chat_id,
            message_id=message_id,
        )

    async def answer_callback_query(
        self,
        callback_query_id: str,
        text: str | None = None,
        *,
        show_alert: bool = False,
        url: str | None = None,
    ) -> ApiResult:
        return await self._call(
            "answerCallbackQuery",
            self.bot.answer_callback_query(
                callback_query_id, text=text or None, show_alert=show_alert, url=url
            ),
        )

    async def get_file(self, file_id: str) -> ApiResult:
        return await self._call("getFile", self.bot.get_file(file_id))

    async def download_file(self, file: File) -> ApiResult:
        buffer = BytesIO()
        result = await self._call("downloadFile", file.download_to_memory(out=buffer), file_path=file.file_path)
        if not result.ok:
            return result
        return ApiResult(ok=True, result=buffer.getvalue())

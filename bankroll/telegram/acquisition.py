from __future__ import annotations

import logging
from typing import Optional

from ..errors import DownloadFailed, FileResolutionFailed
from ..schemas.ticket import TicketImage
from .api_client import TelegramClient

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"
_MIME_BY_SUFFIX = {".png": "image/png", ".webp": "image/webp", ".jpg": "image/jpeg", ".jpeg": "image/jpeg"}


def refine_mime_type(declared: Optional[str], file_path: Optional[str]) -> str:
    """Trust the declared type; otherwise guess from the platform file path."""
    if declared:
        return declared
    if file_path:
        lowered = file_path.lower()
        for suffix, mime_type in _MIME_BY_SUFFIX.items():
            if lowered.endswith(suffix):
                return mime_type
    return DEFAULT_MIME_TYPE


class TicketAcquirer:
    """Resolve a Telegram file id and download the ticket bytes. No retries."""

    def __init__(self, client: TelegramClient) -> None:
        self.client = client

    async def fetch(
        self,
        file_id: str,
        *,
        mime_type: Optional[str] = None,
        caption: Optional[str] = None,
    ) -> TicketImage:
        resolved = await self.client.get_file(file_id)
        file = resolved.result if resolved.ok else None
        if file is None or not getattr(file, "file_path", None):
            raise FileResolutionFailed(f"getFile gave no path for {file_id}: {resolved.description}")

        downloaded = await self.client.download_file(file)
        if not downloaded.ok or not downloaded.result:
            raise DownloadFailed(f"Download of {file.file_path} failed: {downloaded.description}")

        logger.debug("Ticket downloaded", extra={"file_path": file.file_path, "size": len(downloaded.result)})
        return TicketImage(
            data=downloaded.result,
            mime_type=refine_mime_type(mime_type, file.file_path),
            caption=caption,
            file_path=file.file_path,
        )

"""Ticket extraction: the recognition microservice plus local AI fallbacks.

Each extraction attempt is a strategy with ``extract(image) -> dict``;
:class:`TicketExtractionChain` walks them in order and stops at the first
usable payload, which :class:`TicketPipeline` then normalises.
"""

from __future__ import annotations

import logging
import mimetypes
from collections.abc import Sequence
from datetime import date
from pathlib import Path
from typing import Any, Protocol
from uuid import uuid4

import anyio
import httpx

from ..config import Settings
from ..errors import (
    NoProviderConfigured,
    NoProviderSucceeded,
    TicketExtractionError,
    UpstreamFailure,
    UpstreamTimeout,
)
from ..schemas.ticket import TicketDraft, TicketImage
from .llm import build_ticket_providers
from .normalization import build_ticket_draft, normalize_sport

logger = logging.getLogger(__name__)

UPLOADS_ROUTE = "/uploads/tickets"
SCAN_TICKET_PATH = "/api/scan-ticket"

FALLBACK_SPORT = "Outros"
FALLBACK_EVENT = "Aposta importada pelo Telegram"
NOT_AVAILABLE = "N/D"

_SUFFIX_BY_MIME = {"image/jpeg": ".jpg", "image/png": ".png", "image/webp": ".webp"}


class TicketExtractor(Protocol):
    name: str

    async def extract(self, image: TicketImage) -> dict[str, Any]:
        ...


class TicketImageStore:
    """Expose a ticket image by URL while the recognition service fetches it."""

    def __init__(self, directory: Path, public_base_url: str) -> None:
        self.directory = directory
        self.public_base_url = public_base_url.rstrip("/")

    @staticmethod
    def suffix_for(mime_type: str) -> str:
        return _SUFFIX_BY_MIME.get(mime_type) or mimetypes.guess_extension(mime_type) or ".jpg"

    def url_for(self, name: str) -> str:
        return f"{self.public_base_url}{UPLOADS_ROUTE}/{name}"

    async def save(self, image: TicketImage) -> str:
        """Write the bytes under a random name and return that name."""
        name = f"ticket-{uuid4().hex}{self.suffix_for(image.mime_type)}"
        directory = anyio.Path(self.directory)
        await directory.mkdir(parents=True, exist_ok=True)
        await (directory / name).write_bytes(image.data)
        return name

    async def remove(self, name: str) -> None:
        await (anyio.Path(self.directory) / name).unlink(missing_ok=True)


class RecognitionServiceExtractor:
    """POST a public image URL to the ticket recognition microservice."""

    name = "bilhete-tracker"

    def __init__(
        self,
        base_url: str,
        image_store: TicketImageStore,
        *,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.image_store = image_store
        self.client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout=timeout, connect=10.0),
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def extract(self, image: TicketImage) -> dict[str, Any]:
        name = await self.image_store.save(image)
        image_url = self.image_store.url_for(name)
        try:
            response = await self.client.post(SCAN_TICKET_PATH, json={"imageUrl": image_url})
        except httpx.TimeoutException as exc:
            raise UpstreamTimeout(f"Recognition service timed out for {image_url}") from exc
        except httpx.HTTPError as exc:
            raise UpstreamFailure(f"Recognition service unreachable: {exc}") from exc
        finally:
            await self.image_store.remove(name)

        if response.is_error:
            raise UpstreamFailure(f"Recognition service answered {response.status_code}")
        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamFailure("Recognition service returned a non-JSON body") from exc
        if not isinstance(body, dict):
            raise UpstreamFailure("Recognition service returned an unexpected body")

        if "success" in body:
            if not body.get("success"):
                raise UpstreamFailure(f"Recognition service reported failure: {body.get('error')!r}")
            ticket = body.get("ticket")
        else:
            ticket = body
        if not isinstance(ticket, dict) or not ticket:
            raise UpstreamFailure("Recognition service returned no ticket object")
        return ticket


class TicketExtractionChain:
    """Try extractors in order; the first payload wins."""

    def __init__(self, extractors: Sequence[TicketExtractor]) -> None:
        self.extractors = list(extractors)

    async def extract(self, image: TicketImage) -> dict[str, Any]:
        if not self.extractors:
            raise NoProviderConfigured("No ticket extractor configured")

        failures: list[BaseException] = []
        for extractor in self.extractors:
            try:
                return await extractor.extract(image)
            except Exception as exc:
                logger.warning(
                    "Ticket extractor failed",
                    extra={"extractor": extractor.name, "error": str(exc)},
                )
                failures.append(exc)

        last = failures[-1]
        if len(failures) == 1 and isinstance(last, TicketExtractionError):
            raise last
        raise NoProviderSucceeded(
            f"All {len(failures)} ticket extractors failed"
        ) from last

    async def aclose(self) -> None:
        for extractor in self.extractors:
            close = getattr(extractor, "aclose", None)
            if close is not None:
                await close()


def apply_caller_defaults(draft: TicketDraft, caption: str | None = None, today: date | None = None) -> TicketDraft:
    """Fill the fields a persisted bet cannot leave empty."""
    updates: dict[str, Any] = {}
    if not draft.sport:
        updates["sport"] = normalize_sport(FALLBACK_SPORT)
    if not draft.event:
        updates["event"] = (caption or "").strip() or FALLBACK_EVENT
    if not draft.market:
        updates["market"] = NOT_AVAILABLE
    if not draft.event_date:
        updates["event_date"] = (today or date.today()).isoformat()
    if not draft.odds:
        updates["odds"] = 1.0
    if not draft.bookmaker:
        updates["bookmaker"] = NOT_AVAILABLE
    return draft.model_copy(update=updates) if updates else draft


class TicketPipeline:
    """Extraction, normalisation and caller fallbacks for one ticket image."""

    def __init__(self, chain: TicketExtractionChain) -> None:
        self.chain = chain

    async def run(self, image: TicketImage) -> TicketDraft:
        raw = await self.chain.extract(image)
        draft = build_ticket_draft(raw, image.caption)
        return apply_caller_defaults(draft, image.caption)

    async def aclose(self) -> None:
        await self.chain.aclose()


def build_ticket_pipeline(settings: Settings) -> TicketPipeline:
    extractors: list[TicketExtractor] = []
    if settings.bilhete_tracker_url and settings.backend_base_url:
        store = TicketImageStore(settings.ticket_upload_dir, str(settings.backend_base_url))
        extractors.append(
            RecognitionServiceExtractor(
                settings.bilhete_tracker_url,
                store,
                timeout=settings.bilhete_tracker_timeout_seconds,
            )
        )
    elif settings.bilhete_tracker_url:
        logger.warning("BILHETE_TRACKER_URL is set but BACKEND_BASE_URL is missing; recognition service disabled.")
    extractors.extend(build_ticket_providers(settings))
    return TicketPipeline(TicketExtractionChain(extractors))

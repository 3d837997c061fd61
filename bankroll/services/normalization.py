"""Heuristics that turn noisy recognition output into a :class:`TicketDraft`.

Every helper here degrades to a neutral value instead of raising; the only hard
failure of the pipeline is an extractor that returns nothing usable, and that
is decided upstream.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from ..schemas.ticket import TicketDraft
from .sports import find_sport, strip_emoji

DEFAULT_COUNTRY = "Mundo"
DEFAULT_BET_TYPE = "Simples"

_MATCHUP_SPLIT = re.compile(r"\s+(?:vs\.?|versus|x)\s+|\s*@\s*|\s+[-–]\s+", re.IGNORECASE)
_MARKET_WORDS = re.compile(
    r"\b(?:assist\w*|assistenc\w*|corner\w*|escanteio\w*|over|under|mais\s+de|menos\s+de|"
    r"acima\s+de|abaixo\s+de|handicap|total|pontos|points?|rebot\w*|rebounds?|"
    r"cart[aã]o|cart[oõ]es|cards?|chutes?|shots?|finaliza\w*|gols?|goals?|"
    r"ambas\s+marcam|btts|dupla\s+chance|empate\s+anula)\b",
    re.IGNORECASE,
)
_THRESHOLD_TOKEN = re.compile(r"(?:^|\s)[+-]?\d+(?:[.,]\d+)?\+(?=\s|$)|\b\d+[.,]5\b")
_NUMERIC_ONLY = re.compile(r"^[\s\d.,+\-]*$")

_SELECTION_SEPARATORS = ("→", ":", " - ", " – ")
_ID_TOKENS = re.compile(r"#\s*\w+|\b(?:id|c[oó]d(?:igo)?)\s*\.?\s*\w*\d\w*|\b\d{5,}\b", re.IGNORECASE)
_ODDS_TOKENS = re.compile(
    r"@\s*\d+(?:[.,]\d+)?|\(\s*\d+[.,]\d+\s*\)|\bodds?\s*\d+(?:[.,]\d+)?", re.IGNORECASE
)
_AMOUNT_TOKENS = re.compile(r"R\$\s*\d[\d.,]*|\$\s*\d[\d.,]*|\b\d[\d.,]*\s*(?:reais|brl)\b", re.IGNORECASE)
_THRESHOLD_SEGMENT = re.compile(r"^\d{1,3}(?:[.,]\d+)?\+$")
_SPACES = re.compile(r"\s+")
_NEGATIVE_AMOUNT = re.compile(r"^\s*(?:R\$\s*)?-\s*(?:R\$\s*)?\d")
_THOUSANDS_ONLY = re.compile(r"^\d{1,3}\.\d{3}$")

_ISO_PREFIX = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_BR_DATE = re.compile(
    r"^(\d{1,2})/(\d{1,2})/(\d{4})(?:[ T,]+(\d{1,2}):(\d{2})(?::(\d{2}))?)?$"
)


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return _SPACES.sub(" ", str(value)).strip()


def _lines(text: str | None) -> list[str]:
    if not text:
        return []
    return [line.strip() for line in str(text).splitlines() if line.strip()]


def normalize_sport(value: str | None) -> str:
    """Canonical ``"<name> <emoji>"`` for known sports, emoji-free raw text otherwise."""
    if not value:
        return ""
    sport = find_sport(value)
    if sport is not None:
        return sport.display
    return strip_emoji(str(value))


def is_matchup(text: str | None) -> bool:
    """True when ``text`` reads as ``A vs B`` with no market vocabulary in any side."""
    candidate = _clean(text)
    if not candidate:
        return False
    parts = [part.strip() for part in _MATCHUP_SPLIT.split(candidate)]
    if len(parts) < 2 or any(not part for part in parts):
        return False
    for part in parts:
        if _MARKET_WORDS.search(part) or _THRESHOLD_TOKEN.search(part):
            return False
        if _NUMERIC_ONLY.match(part):
            return False
    return True


def _event_candidates(text: str | None) -> Iterable[str]:
    for line in _lines(text):
        for separator in ("→", "|"):
            if separator in line:
                head = line.split(separator, 1)[0].strip()
                if head:
                    yield head
        yield line


def derive_event(
    event: str | None,
    caption: str | None = None,
    selections: str | None = None,
    market: str | None = None,
) -> str:
    """Pick the first matchup among the event field, caption, selections and market."""
    raw_event = _clean(event)
    if is_matchup(raw_event):
        return raw_event
    for source in (caption, selections, market):
        for candidate in _event_candidates(source):
            if is_matchup(candidate):
                return _clean(candidate)
    if raw_event:
        return raw_event
    for source in (caption, selections, market):
        lines = _lines(source)
        if lines:
            return _clean(lines[0])
    return ""


def _selection_segment(line: str) -> str:
    tail = line
    cut = -1
    cut_len = 0
    for separator in _SELECTION_SEPARATORS:
        index = line.rfind(separator)
        if index > cut:
            cut, cut_len = index, len(separator)
    if cut >= 0:
        tail = line[cut + cut_len :]
    tail = _ID_TOKENS.sub(" ", tail)
    tail = _ODDS_TOKENS.sub(" ", tail)
    tail = _AMOUNT_TOKENS.sub(" ", tail)
    tail = tail.replace("%", " ")
    return _clean(tail).strip(" -–|,;")


def derive_market(market: str | None, selections: str | None) -> str:
    """Structured market wins; otherwise infer one segment per selections line.

    Bare numeric thresholds such as ``20+`` belong to the segment before them,
    so ``"Jogador X pontos\\n20+"`` yields ``"Jogador X pontos 20+"``.
    """
    structured = _clean(market)
    if structured:
        return structured

    segments: list[str] = []
    for line in _lines(selections):
        segment = _selection_segment(line)
        if not segment:
            continue
        if _THRESHOLD_SEGMENT.match(segment):
            if segments:
                segments[-1] = f"{segments[-1]} {segment}"
            else:
                segments.append(segment)
            continue
        if _NUMERIC_ONLY.match(segment):
            continue
        segments.append(segment)

    distinct: list[str] = []
    seen: set[str] = set()
    for segment in segments:
        key = segment.casefold()
        if key not in seen:
            seen.add(key)
            distinct.append(segment)
    if distinct:
        return " / ".join(distinct)

    lines = _lines(selections)
    return _clean(lines[0]) if lines else ""


def normalize_event_date(value: Any) -> str:
    """ISO strings pass through, ``DD/MM/YYYY[ HH:MM[:SS]]`` becomes ISO, else ``""``."""
    text = _clean(value)
    if not text:
        return ""
    iso = _ISO_PREFIX.match(text)
    if iso:
        try:
            datetime(int(iso.group(1)), int(iso.group(2)), int(iso.group(3)))
        except ValueError:
            return ""
        return text
    br = _BR_DATE.match(text)
    if br:
        day, month, year, hour, minute, second = br.groups()
        try:
            parsed = datetime(
                int(year),
                int(month),
                int(day),
                int(hour or 0),
                int(minute or 0),
                int(second or 0),
            )
        except ValueError:
            return ""
        if hour is None:
            return parsed.date().isoformat()
        return parsed.isoformat()
    return ""


def parse_number(value: Any) -> float:
    """Accept numbers and pt-BR strings such as ``"R$ 1.234,50"``.

    Negative amounts and anything unparseable become 0, whether given as a
    number or as text.
    """
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if value >= 0 else 0.0
    raw = str(value or "")
    if _NEGATIVE_AMOUNT.match(raw):
        return 0.0
    text = re.sub(r"[^\d.,]", "", raw)
    if not text:
        return 0.0
    if "," in text:
        text = text.replace(".", "").replace(",", ".")
    elif text.count(".") > 1 or _THOUSANDS_ONLY.match(text):
        text = text.replace(".", "")
    try:
        return float(text)
    except ValueError:
        return 0.0


def caption_overrides(caption: str | None) -> tuple[str, str]:
    """First caption line names the bookmaker, the second the tipster."""
    lines = _lines(caption)
    bookmaker = lines[0] if lines else ""
    tipster = lines[1] if len(lines) >= 2 else ""
    return bookmaker, tipster


def _selections_text(raw: Mapping[str, Any]) -> str | None:
    for key in ("aposta", "descricaoApostaDetalhada", "selecoes", "selections"):
        value = raw.get(key)
        if value is None or value == "":
            continue
        if isinstance(value, str):
            return value
        if isinstance(value, (list, tuple)):
            parts = []
            for item in value:
                if isinstance(item, Mapping):
                    parts.append(" → ".join(_clean(v) for v in item.values() if _clean(v)))
                else:
                    parts.append(_clean(item))
            return "\n".join(part for part in parts if part)
        return str(value)
    return None


def build_ticket_draft(raw: Mapping[str, Any], caption: str | None = None) -> TicketDraft:
    """Normalise one extractor payload; missing fields take neutral defaults."""
    selections = _selections_text(raw)
    caption_bookmaker, caption_tipster = caption_overrides(caption)
    raw_market = _clean(raw.get("mercado"))
    market = derive_market(raw_market, selections)
    event = derive_event(raw.get("evento") or raw.get("jogo"), caption, selections, market)
    return TicketDraft(
        bookmaker=caption_bookmaker or _clean(raw.get("casaDeAposta")),
        tipster=caption_tipster or _clean(raw.get("tipster")),
        sport=normalize_sport(_clean(raw.get("esporte"))),
        event=event,
        tournament=_clean(raw.get("torneio")),
        country=_clean(raw.get("pais")) or DEFAULT_COUNTRY,
        market=market,
        bet_type=_clean(raw.get("tipoAposta")) or DEFAULT_BET_TYPE,
        stake=parse_number(raw.get("valorApostado")),
        odds=parse_number(raw.get("odd")),
        event_date=normalize_event_date(raw.get("dataJogo")),
        status=raw.get("status") or "Pendente",
        raw_selections=selections,
    )

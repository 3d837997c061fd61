from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any
from urllib.parse import urlencode

_BR_SEPARATORS = str.maketrans({",": ".", ".": ","})


def format_brl(amount: Any) -> str:
    """Render an amount the way pt-BR users expect it: ``R$ 1.234,56``."""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        return "R$ 0,00"
    if not value.is_finite():
        return "R$ 0,00"
    quantized = value.quantize(Decimal("0.01"))
    body = f"{abs(quantized):,.2f}".translate(_BR_SEPARATORS)
    sign = "-" if quantized < 0 else ""
    return f"{sign}R$ {body}"


def format_odds(odds: Any) -> str:
    try:
        value = float(odds)
    except (TypeError, ValueError):
        return "1"
    return f"{value:g}"


def format_date_br(value: date | datetime | None) -> str:
    if value is None:
        return "N/D"
    return value.strftime("%d/%m/%Y")


def ensure_scheme(url: str) -> str:
    url = url.strip().rstrip("/")
    if "://" not in url:
        return f"https://{url}"
    return url


def build_edit_url(
    frontend_url: str,
    bet_id: str,
    message_id: int | None = None,
    chat_id: int | None = None,
) -> str:
    params: dict[str, Any] = {"betId": bet_id}
    if message_id is not None:
        params["messageId"] = message_id
    if chat_id is not None:
        params["chatId"] = chat_id
    return f"{ensure_scheme(frontend_url)}/telegram/edit?{urlencode(params)}"

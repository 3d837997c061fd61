"""Sport catalog used to canonicalise the free-form sport names tickets carry.

Keys are compared after :func:`sport_key`, which folds case, diacritics and
emoji, so ``"⚽ FUTEBOL"``, ``"futebol"`` and ``"Futebol ⚽"`` all meet on
``"futebol"``.
"""

from __future__ import annotations

import re
import unicodedata
from typing import NamedTuple

_EMOJI_JOINERS = {0x200D, 0x20E3, 0xFE0E, 0xFE0F}
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_SPACES = re.compile(r"\s+")


class Sport(NamedTuple):
    name: str
    emoji: str | None = None

    @property
    def display(self) -> str:
        return f"{self.name} {self.emoji}" if self.emoji else self.name


CATALOG: tuple[Sport, ...] = (
    Sport("Airsoft", "🔫"),
    Sport("Arco e Flecha", "🏹"),
    Sport("Atletismo", "🏃"),
    Sport("Automobilismo", "🏎️"),
    Sport("Badminton", "🏸"),
    Sport("Basquete", "🏀"),
    Sport("Basquete 3x3", "🏀"),
    Sport("Beisebol", "⚾"),
    Sport("Biato"),
    Sport("Biliar", "🎱"),
    Sport("Bobsled"),
    Sport("Bocha"),
    Sport("Bodyboard", "🏄"),
    Sport("Boxe", "🥊"),
    Sport("Cheerleading"),
    Sport("Ciclismo", "🚴"),
    Sport("Corrida de Aventura", "🥾"),
    Sport("Corrida de Cavalos", "🏇"),
    Sport("Corrida de Galgos"),
    Sport("Corrida de Montanha", "⛰️"),
    Sport("Corrida de Obstáculos", "🚧"),
    Sport("Corrida de Rua", "🏃"),
    Sport("Corrida de Velocidade"),
    Sport("Corrida em Trilhas", "🥾"),
    Sport("Corrida Hípica"),
    Sport("Criquete", "🏏"),
    Sport("Curling", "🥌"),
    Sport("Damas"),
    Sport("Dança Esportiva"),
    Sport("Dardos", "🎯"),
    Sport("Dodgeball"),
    Sport("E-Sports", "🎮"),
    Sport("Escalada", "🧗"),
    Sport("Escalada Indoor", "🧗"),
    Sport("Esgrima", "🤺"),
    Sport("Futebol Americano", "🏈"),
    Sport("Futebol Australiano", "🏉"),
    Sport("Futebol Canadense", "🏈"),
    Sport("Futebol de Areia", "⚽"),
    Sport("Futebol de Salão", "⚽"),
    Sport("Futebol Society", "⚽"),
    Sport("Futebol", "⚽"),
    Sport("Handebol", "🤾"),
    Sport("Hóquei no Gelo", "🏒"),
    Sport("Hóquei Subaquático"),
    Sport("Judo", "🥋"),
    Sport("Kabbadi", "🤼"),
    Sport("Karate", "🥋"),
    Sport("Kart", "🏎️"),
    Sport("Kickball"),
    Sport("MMA", "🥊"),
    Sport("Outros", "✨"),
    Sport("Outros Esportes", "✨"),
    Sport("Paintball", "🎯"),
    Sport("Parapente", "🪂"),
    Sport("Parkour", "🤸"),
    Sport("Patinação Artística", "⛸️"),
    Sport("Patinação de Velocidade", "⛸️"),
    Sport("Queimada", "🏐"),
    Sport("Rali", "🚗"),
    Sport("Remo", "🚣"),
    Sport("Rodeio", "🤠"),
    Sport("Rugby", "🏉"),
    Sport("Rugby de Praia", "🏉"),
    Sport("Sepaktakraw", "🏐"),
    Sport("Sinuca", "🎱"),
    Sport("Tênis", "🎾"),
    Sport("Tênis de Mesa", "🏓"),
    Sport("Triatlo", "🏊"),
    Sport("Ultramaratona"),
    Sport("Vela", "⛵"),
    Sport("Vôlei", "🏐"),
    Sport("Vôlei de Praia", "🏐"),
)

ALIASES: dict[str, str] = {
    "soccer": "Futebol",
    "football": "Futebol Americano",
    "american football": "Futebol Americano",
    "nfl": "Futebol Americano",
    "futsal": "Futebol de Salão",
    "beach soccer": "Futebol de Areia",
    "basketball": "Basquete",
    "basket": "Basquete",
    "nba": "Basquete",
    "horse racing": "Corrida de Cavalos",
    "turfe": "Corrida de Cavalos",
    "esports": "E-Sports",
    "esport": "E-Sports",
    "e sport": "E-Sports",
    "hockey": "Hóquei no Gelo",
    "ice hockey": "Hóquei no Gelo",
    "nhl": "Hóquei no Gelo",
    "baseball": "Beisebol",
    "mlb": "Beisebol",
    "tennis": "Tênis",
    "table tennis": "Tênis de Mesa",
    "ping pong": "Tênis de Mesa",
    "volleyball": "Vôlei",
    "volei": "Vôlei",
    "voleibol": "Vôlei",
    "beach volleyball": "Vôlei de Praia",
    "handball": "Handebol",
    "boxing": "Boxe",
    "ufc": "MMA",
    "cycling": "Ciclismo",
    "darts": "Dardos",
    "cricket": "Criquete",
    "rugby union": "Rugby",
    "rugby league": "Rugby",
    "snooker": "Sinuca",
    "formula 1": "Automobilismo",
    "f1": "Automobilismo",
    "motorsport": "Automobilismo",
    "other": "Outros",
    "others": "Outros",
}


def is_emoji_char(char: str) -> bool:
    code = ord(char)
    if code in _EMOJI_JOINERS or 0x1F3FB <= code <= 0x1F3FF:
        return True
    return unicodedata.category(char) == "So"


def strip_emoji(value: str) -> str:
    """Remove pictographs and their joiners, collapsing leftover whitespace."""
    cleaned = "".join(char for char in value if not is_emoji_char(char))
    return _SPACES.sub(" ", cleaned).strip()


def sport_key(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", strip_emoji(value).casefold())
    without_marks = "".join(char for char in decomposed if not unicodedata.combining(char))
    return _SPACES.sub(" ", _NON_ALNUM.sub(" ", without_marks)).strip()


_BY_KEY: dict[str, Sport] = {sport_key(sport.name): sport for sport in CATALOG}
_ALIAS_BY_KEY: dict[str, Sport] = {
    sport_key(alias): _BY_KEY[sport_key(target)] for alias, target in ALIASES.items()
}
# Longest first so "futebol americano" beats "futebol" on containment.
_CONTAINMENT_KEYS: list[tuple[str, Sport]] = sorted(
    [*_BY_KEY.items(), *_ALIAS_BY_KEY.items()],
    key=lambda item: len(item[0]),
    reverse=True,
)
_MIN_PARTIAL_LENGTH = 4


def _contains_words(haystack: str, needle: str) -> bool:
    return f" {needle} " in f" {haystack} "


def find_sport(value: str | None) -> Sport | None:
    """Match by alias, then exact name, then whole-word containment either way."""
    if not value:
        return None
    key = sport_key(value)
    if not key:
        return None
    if key in _ALIAS_BY_KEY:
        return _ALIAS_BY_KEY[key]
    if key in _BY_KEY:
        return _BY_KEY[key]
    for candidate_key, sport in _CONTAINMENT_KEYS:
        if _contains_words(key, candidate_key):
            return sport
    if len(key) >= _MIN_PARTIAL_LENGTH:
        for candidate_key, sport in _CONTAINMENT_KEYS:
            if _contains_words(candidate_key, key):
                return sport
    return None

from .bankroll import Bankroll
from .base import Base
from .bet import Bet, BetStatus
from .user import User

__all__ = [
    "Base",
    "Bankroll",
    "Bet",
    "BetStatus",
    "User",
]

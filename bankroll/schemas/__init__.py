from .bet import BetRead, StatusResyncRequest, StatusResyncResponse
from .ticket import TicketDraft, TicketImage

__all__ = [
    "BetRead",
    "StatusResyncRequest",
    "StatusResyncResponse",
    "TicketDraft",
    "TicketImage",
]

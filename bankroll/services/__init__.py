from .accounts import (
    extract_command_param,
    link_account,
    normalize_account_id,
    require_account_id,
    resolve_account,
    unlink_chat,
)
from .bets import (
    compute_return,
    create_bet,
    delete_bet,
    get_bet_with_owner,
    get_default_bankroll,
    get_owned_bet,
    settlement_result,
    update_bet_status,
)
from .events import BetEvent, BetEventBus, bet_events
from .recognition import TicketExtractionChain, TicketPipeline, build_ticket_pipeline

__all__ = [
    "extract_command_param",
    "link_account",
    "normalize_account_id",
    "require_account_id",
    "resolve_account",
    "unlink_chat",
    "compute_return",
    "create_bet",
    "delete_bet",
    "get_bet_with_owner",
    "get_default_bankroll",
    "get_owned_bet",
    "settlement_result",
    "update_bet_status",
    "BetEvent",
    "BetEventBus",
    "bet_events",
    "TicketExtractionChain",
    "TicketPipeline",
    "build_ticket_pipeline",
]

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal

logger = logging.getLogger(__name__)

BetEventType = Literal["created", "updated", "deleted"]


@dataclass(frozen=True)
class BetEvent:
    type: BetEventType
    user_id: str
    bet_id: str
    source: str = "telegram"


Subscriber = Callable[[BetEvent], Awaitable[None]]


class BetEventBus:
    """Fan bet mutations out to listeners such as live dashboards."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    async def publish(self, event: BetEvent) -> None:
        for subscriber in list(self._subscribers):
            try:
                await subscriber(event)
            except Exception:
                logger.exception(
                    "Bet event subscriber failed",
                    extra={"event_type": event.type, "bet_id": event.bet_id},
                )


bet_events = BetEventBus()

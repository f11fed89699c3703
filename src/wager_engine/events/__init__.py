"""Provider event models and the lookup cache."""

from wager_engine.events.cache import InMemoryTTLCache, TTLCache
from wager_engine.events.models import (
    BookmakerQuote,
    Event,
    EventStatus,
    Odd,
    Player,
    Team,
    TeamSide,
)

__all__ = [
    "BookmakerQuote",
    "Event",
    "EventStatus",
    "InMemoryTTLCache",
    "Odd",
    "Player",
    "TTLCache",
    "Team",
    "TeamSide",
]

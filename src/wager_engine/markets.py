"""Quoted price and line extraction from provider odds.

Canonical book values are preferred, then fair values, then the first bookmaker
entry that parses as a number. Player-prop markets are disambiguated by stat id,
period, and composite-market filters before scoring by line distance.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from wager_engine.events.models import BookmakerQuote, Event, Odd
from wager_engine.names import normalize

PropBetType = Literal["ou", "yn"]
LineKind = Literal["spread", "total"]
Direction = Literal["Over", "Under"]

GAME_PERIOD = "game"
INEXACT_STAT_PENALTY = 1000.0

YES_NO_PROP_STATS = frozenset(
    {
        "anytime td scorer",
        "anytime touchdown scorer",
        "first touchdown scorer",
        "last touchdown scorer",
        "double double",
        "triple double",
    }
)

STAT_ALIAS_MAP = {
    "passing yards": "passing_yards",
    "passing tds": "passing_touchdowns",
    "passing touchdowns": "passing_touchdowns",
    "interceptions thrown": "passing_interceptions",
    "rushing yards": "rushing_yards",
    "rushing attempts": "rushing_attempts",
    "receiving yards": "receiving_yards",
    "receptions": "receiving_receptions",
    "anytime td scorer": "touchdowns",
    "anytime touchdown scorer": "touchdowns",
    "longest reception": "receiving_longestReception",
    "longest rush": "rushing_longestRush",
    "points": "points",
    "rebounds": "rebounds",
    "assists": "assists",
    "points + rebounds + assists (pra)": "points+rebounds+assists",
    "points + rebounds + assists": "points+rebounds+assists",
    "pra": "points+rebounds+assists",
    "3-pointers made": "threePointersMade",
    "3 pointers made": "threePointersMade",
    "steals": "steals",
    "blocks": "blocks",
    "turnovers": "turnovers",
    "hits": "hits",
    "home runs": "homeRuns",
    "rbis": "runsBattedIn",
    "runs": "runs",
    "total bases": "totalBases",
    "stolen bases": "stolenBases",
    "pitcher strikeouts": "pitcher_strikeouts",
    "pitcher outs recorded": "pitcher_outsRecorded",
    "walks drawn": "walks",
    "shots on goal": "shotsOnGoal",
    "blocked shots": "blockedShots",
    "goalie saves": "goalie_saves",
    "points + assists": "points+assists",
    "points + rebounds": "points+rebounds",
    "rebounds + assists": "rebounds+assists",
    "double double": "double_double",
    "triple double": "triple_double",
}

_NORMALIZED_ALIASES = {normalize(key): value for key, value in STAT_ALIAS_MAP.items()}

_PERIOD_RE = re.compile(
    r"\b(1st|2nd|3rd|4th|first|second|third|fourth)\s+(quarter|half|period)", re.IGNORECASE
)
_COMPOSITE_RE = re.compile(r"\+|\band\b|\bplus\b", re.IGNORECASE)


def map_stat_type_to_stat_id(stat_type: str | None) -> str:
    """Canonical provider stat id for a display stat name."""
    normalized = normalize(stat_type)
    if not normalized:
        return ""
    mapped = _NORMALIZED_ALIASES.get(normalized)
    if mapped:
        return mapped
    underscored = "_".join(normalized.split())
    return re.sub(r"_?\+_?", "+", underscored)


def resolve_prop_bet_type(stat_type: str | None) -> PropBetType:
    """Yes/no props have no numeric line; everything else is over/under."""
    return "yn" if normalize(stat_type) in YES_NO_PROP_STATS else "ou"


def prop_side(stat_type: str | None, direction: Direction) -> str:
    """Provider side id for a prop direction (Over->yes for yes/no props)."""
    if resolve_prop_bet_type(stat_type) == "yn":
        return "yes" if direction == "Over" else "no"
    return direction.lower()


def find_odd(event: Event, predicate: Callable[[Odd], bool]) -> Odd | None:
    """First odd in provider order matching the predicate."""
    for odd in event.odds:
        if predicate(odd):
            return odd
    return None


def find_game_odd(event: Event, bet_type: str, side: str) -> Odd | None:
    """Full-game team market (``ml``/``sp``) or combined total (``ou``)."""

    def _matches(odd: Odd) -> bool:
        if odd.bet_type != bet_type or odd.period != GAME_PERIOD or odd.side != side:
            return False
        if odd.stat_id != "points" or odd.player_id:
            return False
        return bet_type != "ou" or odd.stat_entity == "all"

    return find_odd(event, _matches)


def _first_number(canonical: tuple[float | None, ...], quotes: list[float | None]) -> float | None:
    for value in canonical:
        if value is not None:
            return value
    for value in quotes:
        if value is not None:
            return value
    return None


def pick_price(odd: Odd) -> float | None:
    """American price: book, then fair, then first bookmaker."""
    return _first_number(
        (odd.book_odds, odd.fair_odds), [quote.odds for quote in odd.by_bookmaker]
    )


def pick_spread(odd: Odd) -> float | None:
    return _first_number(
        (odd.book_spread, odd.fair_spread), [quote.spread for quote in odd.by_bookmaker]
    )


def pick_total(odd: Odd) -> float | None:
    return _first_number(
        (odd.book_over_under, odd.fair_over_under),
        [quote.over_under for quote in odd.by_bookmaker],
    )


def pick_line(odd: Odd, kind: LineKind) -> float | None:
    return pick_spread(odd) if kind == "spread" else pick_total(odd)


@dataclass(frozen=True)
class LineQuote:
    line: float
    bookmaker: str | None = None


def _quote_line(quote: BookmakerQuote, kind: LineKind) -> float | None:
    return quote.spread if kind == "spread" else quote.over_under


def available_lines(odd: Odd, kind: LineKind = "total") -> list[LineQuote]:
    """Canonical line followed by distinct bookmaker alternates."""
    canonical = (
        (odd.book_spread, odd.fair_spread)
        if kind == "spread"
        else (odd.book_over_under, odd.fair_over_under)
    )
    lines: list[LineQuote] = []
    seen: set[float] = set()
    direct = next((value for value in canonical if value is not None), None)
    if direct is not None:
        lines.append(LineQuote(line=direct))
        seen.add(direct)
    for quote in odd.by_bookmaker:
        value = _quote_line(quote, kind)
        if value is not None and value not in seen:
            lines.append(LineQuote(line=value, bookmaker=quote.bookmaker))
            seen.add(value)
    return lines


def find_closest_line(odd: Odd, requested: float, kind: LineKind = "total") -> LineQuote | None:
    """Quoted line nearest the requested one; earlier entries win ties."""
    best: LineQuote | None = None
    best_diff = float("inf")
    for entry in available_lines(odd, kind):
        diff = abs(entry.line - requested)
        if diff < best_diff:
            best, best_diff = entry, diff
    return best


@dataclass(frozen=True)
class PropMatch:
    odd: Odd
    provider_line: float | None
    closest: LineQuote | None
    exact_stat: bool


def _stat_text_matches(odd: Odd, stat_id: str, stat_text: str) -> bool:
    if odd.market_name and _PERIOD_RE.search(odd.market_name) and not _PERIOD_RE.search(
        stat_text
    ):
        return False
    if odd.stat_id.lower() == stat_id.lower():
        return True

    normalized_stat = normalize(stat_text)
    wants_composite = "+" in normalized_stat
    if "+" in odd.stat_id and not wants_composite:
        return False
    if not odd.market_name:
        return False
    if _COMPOSITE_RE.search(odd.market_name) and not wants_composite:
        return False

    market = normalize(odd.market_name)
    words = normalized_stat.split()
    if not words:
        return False
    if len(words) == 1:
        return re.search(rf"\b{re.escape(words[0])}\b", market) is not None
    return all(word in market for word in words)


def prop_candidates(
    event: Event, player_key: str, stat_type: str, direction: Direction
) -> list[Odd]:
    """Odds for the player on the requested side that plausibly quote the stat."""
    bet_type = resolve_prop_bet_type(stat_type)
    side = prop_side(stat_type, direction)
    stat_id = map_stat_type_to_stat_id(stat_type)
    return [
        odd
        for odd in event.odds
        if odd.player_id == player_key
        and odd.bet_type == bet_type
        and odd.side == side
        and _stat_text_matches(odd, stat_id, stat_type)
    ]


def select_prop_odd(candidates: list[Odd], stat_type: str, line: float) -> PropMatch | None:
    """Pick the best prop quote; exact stat ids always outrank inexact ones."""
    if not candidates:
        return None
    stat_id = map_stat_type_to_stat_id(stat_type).lower()

    if resolve_prop_bet_type(stat_type) == "yn":
        exact = next((odd for odd in candidates if odd.stat_id.lower() == stat_id), None)
        chosen = exact or candidates[0]
        return PropMatch(
            odd=chosen, provider_line=None, closest=None, exact_stat=exact is not None
        )

    scored: list[tuple[float, PropMatch]] = []
    for odd in candidates:
        closest = find_closest_line(odd, line)
        provider_line = closest.line if closest is not None else pick_total(odd)
        exact = odd.stat_id.lower() == stat_id
        diff = abs(provider_line - line) if provider_line is not None else float("inf")
        score = diff if exact else INEXACT_STAT_PENALTY + diff
        scored.append((score, PropMatch(odd, provider_line, closest, exact)))
    scored.sort(key=lambda item: item[0])
    return scored[0][1]

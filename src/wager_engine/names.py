"""Free-text team and player name resolution against provider entities."""

from __future__ import annotations

import re
from typing import Protocol

from wager_engine.events.models import Event, Team, TeamSide

_STRIP_RE = re.compile(r"[^a-z0-9\s+]")


def normalize(value: str | None) -> str:
    """Lowercase, keep letters/digits/whitespace/'+', collapse whitespace."""
    lowered = (value or "").lower()
    return " ".join(_STRIP_RE.sub(" ", lowered).split())


def _contains_either_way(candidate: str, target: str) -> bool:
    return candidate == target or target in candidate or candidate in target


def team_names(team: Team) -> list[str]:
    """Distinct normalized display-name variants for a team."""
    names: list[str] = []
    for value in team.names:
        normalized = normalize(value)
        if normalized and normalized not in names:
            names.append(normalized)
    return names


def team_matches(team: Team, target: str | None) -> bool:
    """True when target names this team; an empty target matches anything."""
    normalized_target = normalize(target)
    if not normalized_target:
        return True
    return any(_contains_either_way(name, normalized_target) for name in team_names(team))


def resolve_team_side(event: Event, selection: str | None) -> TeamSide | None:
    """Map a selection to the home or away side; home is checked first."""
    normalized = normalize(selection)
    if not normalized:
        return None
    if any(_contains_either_way(name, normalized) for name in team_names(event.home)):
        return "home"
    if any(_contains_either_way(name, normalized) for name in team_names(event.away)):
        return "away"
    return None


def find_player_key_by_name(event: Event, display_name: str | None) -> str | None:
    """Resolve a player display name to the provider player id.

    Exact normalized matches win over containment matches.
    """
    target = normalize(display_name)
    if not target or not event.players:
        return None
    partial: str | None = None
    for player_id, player in event.players.items():
        variants = [normalize(value) for value in player.name_variants()]
        variants = [value for value in variants if value]
        if target in variants:
            return player_id
        if partial is None and any(_contains_either_way(value, target) for value in variants):
            partial = player_id
    return partial


class NameResolver(Protocol):
    """Swappable entity-matching strategy used by validation and settlement."""

    def resolve_side(self, event: Event, selection: str | None) -> TeamSide | None:
        raise NotImplementedError

    def find_player_key(self, event: Event, display_name: str | None) -> str | None:
        raise NotImplementedError


class ContainmentResolver:
    """Substring matching in either direction over normalized names.

    When a selection matches both teams the home side wins; that tie-break is
    arbitrary.
    """

    def resolve_side(self, event: Event, selection: str | None) -> TeamSide | None:
        return resolve_team_side(event, selection)

    def find_player_key(self, event: Event, display_name: str | None) -> str | None:
        return find_player_key_by_name(event, display_name)

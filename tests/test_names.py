from __future__ import annotations

import pytest
from fakes import TATUM, make_event_payload

from wager_engine.events.models import Event
from wager_engine.names import (
    ContainmentResolver,
    find_player_key_by_name,
    normalize,
    resolve_team_side,
)


def _event(**overrides) -> Event:
    event = Event.from_payload(make_event_payload(**overrides))
    assert event is not None
    return event


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("  Boston   Celtics ", "boston celtics"),
        ("L.A. Lakers!", "l a lakers"),
        ("Points + Rebounds", "points + rebounds"),
        (None, ""),
    ],
)
def test_normalize(raw: str | None, expected: str) -> None:
    assert normalize(raw) == expected


@pytest.mark.parametrize(
    ("selection", "expected"),
    [
        ("Boston Celtics", "home"),
        ("celtics", "home"),
        ("The Boston Celtics Basketball", "home"),
        ("LAL", "away"),
        ("Knicks", None),
        ("", None),
    ],
)
def test_resolve_team_side(selection: str, expected: str | None) -> None:
    assert resolve_team_side(_event(), selection) == expected


def test_find_player_key_prefers_exact_match() -> None:
    players = {
        "JAYSON_TATUM_JR_1_NBA": {"name": "Jayson Tatum Jr"},
        TATUM: {"name": "Jayson Tatum"},
    }
    event = _event(players=players)

    assert find_player_key_by_name(event, "jayson tatum") == TATUM
    assert find_player_key_by_name(event, "Tatum Jr") == "JAYSON_TATUM_JR_1_NBA"
    assert find_player_key_by_name(event, "LeBron James") is None
    assert find_player_key_by_name(event, "") is None


def test_find_player_key_matches_alias() -> None:
    event = _event(players={"PLAYER_X": {"name": "Giannis Antetokounmpo", "alias": "Greek Freak"}})

    assert ContainmentResolver().find_player_key(event, "Greek Freak") == "PLAYER_X"

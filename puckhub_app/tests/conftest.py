# file: puckhub_app/tests/conftest.py
"""Common pytest fixtures for puckhub_app tests.

Provides a minimal league (organization, season, division, round, two teams
with rosters) and builders used across test modules.

Fixtures:
    - ``org``, ``season``, ``division``, ``league_round``: league structure.
    - ``make_round``, ``make_team``, ``make_player``, ``make_game``: builders.
    - ``home``, ``away``: rosters (three skaters and a goalie) of two teams.
    - ``lineup``: lineup entries dressing whole rosters.
    - ``play``: dress both rosters, record goals and (optionally) complete.
"""

from __future__ import annotations

import datetime as _dt
from types import SimpleNamespace
from typing import Any, Callable, Iterable

import pytest
from django.apps import apps

from puckhub_app.models import EventType, Position
from puckhub_app.services.games import LineupEntry, add_event, complete_game, set_lineup

APP: str = "puckhub_app"


def model(name: str) -> Any:
    """Return a model class of the app by name."""
    return apps.get_model(APP, name)


def lineup_entries(*rosters: SimpleNamespace) -> list[LineupEntry]:
    """Build lineup entries dressing every player of the given rosters."""
    entries: list[LineupEntry] = []
    for roster in rosters:
        entries.extend(
            LineupEntry(player_id=p.pk, team_id=roster.team.pk, position=Position.FORWARD)
            for p in roster.skaters
        )
        entries.append(
            LineupEntry(
                player_id=roster.goalie.pk,
                team_id=roster.team.pk,
                position=Position.GOALIE,
                is_starting_goalie=True,
            )
        )
    return entries


# --- League structure ------------------------------------------------------


@pytest.fixture
def org() -> Any:
    """Create the tenant organization."""
    return model("Organization").objects.create(name="Testovací liga", slug="testovaci-liga")


@pytest.fixture
def season(org: Any) -> Any:
    """Create a 2025/2026 season."""
    return model("Season").objects.create(
        organization=org,
        name="2025/2026",
        season_start=_dt.date(2025, 9, 1),
        season_end=_dt.date(2026, 4, 30),
    )


@pytest.fixture
def division(season: Any) -> Any:
    """Create a division of ``season`` (organization inherited)."""
    return model("Division").objects.create(season=season, name="1. liga")


@pytest.fixture
def make_round(division: Any) -> Callable[..., Any]:
    """Return a builder for rounds of ``division``."""

    def _make(name: str = "Základní část", **kwargs: Any) -> Any:
        return model("Round").objects.create(division=kwargs.pop("division", division), name=name, **kwargs)

    return _make


@pytest.fixture
def league_round(make_round: Callable[..., Any]) -> Any:
    """Create the default regular-season round (2/1/0 points)."""
    return make_round()


@pytest.fixture
def make_team(org: Any, division: Any) -> Callable[..., Any]:
    """Return a builder for teams assigned to ``division``."""

    def _make(name: str) -> Any:
        team = model("Team").objects.create(organization=org, name=name)
        model("TeamDivision").objects.create(team=team, division=division)
        return team

    return _make


@pytest.fixture
def make_player(org: Any, season: Any) -> Callable[..., Any]:
    """Return a builder for players with a contract starting in ``season``."""

    def _make(team: Any, first: str, last: str, position: str = Position.FORWARD, number: int | None = None) -> Any:
        player = model("Player").objects.create(organization=org, first_name=first, last_name=last)
        model("Contract").objects.create(
            player=player, team=team, position=position, jersey_number=number, start_season=season
        )
        return player

    return _make


@pytest.fixture
def make_roster(make_player: Callable[..., Any]) -> Callable[..., SimpleNamespace]:
    """Return a builder for a team roster of three skaters and one goalie."""

    def _make(team: Any) -> SimpleNamespace:
        skaters = [
            make_player(team, f"{team.name}", f"Hráč{i}", Position.FORWARD, 10 + i) for i in range(1, 4)
        ]
        goalie = make_player(team, f"{team.name}", "Brankář", Position.GOALIE, 1)
        return SimpleNamespace(team=team, skaters=skaters, goalie=goalie)

    return _make


@pytest.fixture
def home(make_team: Callable[..., Any], make_roster: Callable[..., SimpleNamespace]) -> SimpleNamespace:
    """Roster of the home team ``HC Domácí``."""
    return make_roster(make_team("HC Domácí"))


@pytest.fixture
def away(make_team: Callable[..., Any], make_roster: Callable[..., SimpleNamespace]) -> SimpleNamespace:
    """Roster of the away team ``HC Hosté``."""
    return make_roster(make_team("HC Hosté"))


# --- Games -----------------------------------------------------------------


@pytest.fixture
def lineup() -> Callable[..., list[LineupEntry]]:
    """Return the builder of lineup entries for whole rosters."""
    return lineup_entries


@pytest.fixture
def make_game(league_round: Any) -> Callable[..., Any]:
    """Return a builder for scheduled games (default round ``league_round``)."""

    def _make(home_team: Any, away_team: Any, rnd: Any | None = None, **kwargs: Any) -> Any:
        return model("Game").objects.create(
            round=rnd or league_round, home_team=home_team, away_team=away_team, **kwargs
        )

    return _make


@pytest.fixture
def play(make_game: Callable[..., Any]) -> Callable[..., Any]:
    """Return a helper that dresses both rosters, records goals and completes.

    ``goals`` is an iterable of ``(roster, scorer, *assistants)`` tuples.
    """

    def _play(
        home_roster: SimpleNamespace,
        away_roster: SimpleNamespace,
        goals: Iterable[tuple] = (),
        *,
        complete: bool = True,
        rnd: Any | None = None,
        game: Any | None = None,
    ) -> Any:
        game = game or make_game(home_roster.team, away_roster.team, rnd=rnd)
        set_lineup(game.pk, lineup_entries(home_roster, away_roster))
        for scoring, scorer, *assistants in goals:
            assistants = list(assistants) + [None, None]
            add_event(
                game.pk,
                event_type=EventType.GOAL,
                team_id=scoring.team.pk,
                period=1,
                scorer_id=scorer.pk if scorer else None,
                assist_1_id=assistants[0].pk if assistants[0] else None,
                assist_2_id=assistants[1].pk if assistants[1] else None,
            )
        if complete:
            complete_game(game.pk)
        game.refresh_from_db()
        return game

    return _play

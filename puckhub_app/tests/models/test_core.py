# file: puckhub_app/tests/models/test_core.py
"""Validation tests for core league models.

Coverage:
* ``Season.clean`` date range rule.
* Organization inheritance of ``Division``, ``Round`` and ``Game``.
* ``Contract.clean`` and ``Contract.objects.active_in`` season overlap.
* Unique team name per organization and single division assignment.
"""

from __future__ import annotations

import datetime as dt
from typing import Any

import pytest
from django.apps import apps
from django.core.exceptions import ValidationError
from django.db import IntegrityError

from puckhub_app.models import Position

pytestmark = pytest.mark.django_db

APP = "puckhub_app"


def _season(org: Any, name: str, start: dt.date, end: dt.date) -> Any:
    Season = apps.get_model(APP, "Season")
    return Season.objects.create(organization=org, name=name, season_start=start, season_end=end)


# --- Season ----------------------------------------------------------------


def test_season_end_before_start_is_rejected(org: Any) -> None:
    """Reject a season that ends before it starts."""
    Season = apps.get_model(APP, "Season")
    season = Season(
        organization=org, name="Chyba", season_start=dt.date(2025, 9, 1), season_end=dt.date(2025, 8, 1)
    )
    with pytest.raises(ValidationError):
        season.clean()


def test_single_day_season_is_valid(org: Any) -> None:
    """Accept a season whose start equals its end (inclusive range)."""
    Season = apps.get_model(APP, "Season")
    day = dt.date(2025, 9, 1)
    Season(organization=org, name="Turnaj", season_start=day, season_end=day).clean()


# --- Organization inheritance ----------------------------------------------


def test_children_inherit_organization(
    org: Any, division: Any, league_round: Any, home: Any, away: Any, make_game: Any
) -> None:
    """Division, round and game take the organization of their parent."""
    game = make_game(home.team, away.team)
    assert division.organization_id == org.pk
    assert league_round.organization_id == org.pk
    assert game.organization_id == org.pk


def test_round_defaults(league_round: Any) -> None:
    """New rounds award 2/1/0 points and count for both statistics."""
    assert (league_round.points_win, league_round.points_draw, league_round.points_loss) == (2, 1, 0)
    assert league_round.counts_for_player_stats is True
    assert league_round.counts_for_goalie_stats is True


# --- Teams -----------------------------------------------------------------


def test_team_name_unique_per_organization(org: Any) -> None:
    """Two teams of one organization cannot share a name."""
    Team = apps.get_model(APP, "Team")
    Team.objects.create(organization=org, name="HC Duplicita")
    with pytest.raises(IntegrityError):
        Team.objects.create(organization=org, name="HC Duplicita")


def test_team_assigned_to_division_once(make_team: Any, division: Any) -> None:
    """A team cannot be assigned to the same division twice."""
    TeamDivision = apps.get_model(APP, "TeamDivision")
    team = make_team("HC Jednou")
    with pytest.raises(IntegrityError):
        TeamDivision.objects.create(team=team, division=division)


# --- Contracts -------------------------------------------------------------


def test_contract_active_in_respects_season_bounds(org: Any, season: Any, make_team: Any) -> None:
    """Open-ended contracts stay active; ended ones stop after their end season."""
    Player = apps.get_model(APP, "Player")
    Contract = apps.get_model(APP, "Contract")
    team = make_team("HC Smlouvy")
    later = _season(org, "2026/2027", dt.date(2026, 9, 1), dt.date(2027, 4, 30))

    open_ended = Player.objects.create(organization=org, first_name="Jan", last_name="Otevřený")
    ended = Player.objects.create(organization=org, first_name="Petr", last_name="Ukončený")
    future = Player.objects.create(organization=org, first_name="Karel", last_name="Budoucí")
    Contract.objects.create(player=open_ended, team=team, position=Position.FORWARD, start_season=season)
    Contract.objects.create(
        player=ended, team=team, position=Position.DEFENSE, start_season=season, end_season=season
    )
    Contract.objects.create(player=future, team=team, position=Position.GOALIE, start_season=later)

    current = set(Contract.objects.active_in(season).values_list("player_id", flat=True))
    upcoming = set(Contract.objects.active_in(later).values_list("player_id", flat=True))

    assert current == {open_ended.pk, ended.pk}
    assert upcoming == {open_ended.pk, future.pk}


def test_contract_cannot_end_before_start(org: Any, season: Any, make_team: Any) -> None:
    """Reject a contract whose end season precedes its start season."""
    Player = apps.get_model(APP, "Player")
    Contract = apps.get_model(APP, "Contract")
    earlier = _season(org, "2024/2025", dt.date(2024, 9, 1), dt.date(2025, 4, 30))
    player = Player.objects.create(organization=org, first_name="Ota", last_name="Zpětný")
    contract = Contract(
        player=player,
        team=make_team("HC Zpět"),
        position=Position.FORWARD,
        start_season=season,
        end_season=earlier,
    )
    with pytest.raises(ValidationError) as exc:
        contract.clean()
    assert "end_season" in exc.value.message_dict

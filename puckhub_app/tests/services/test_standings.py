# file: puckhub_app/tests/services/test_standings.py
"""Tests for standings aggregation and recalculation.

Coverage:
* ``compute_table`` points formula, bonus points, ranking keys and the
  zero-sum properties of a full round-robin.
* ``recalculate_standings`` end to end: ranks, previous ranks, repeatability,
  round scoping, custom point values, tenant scoping, and the bonus point
  and game deletion signal handling.
* ``recalculate_all_standings``, ``standings_for_round`` and ``team_form``.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any

import pytest
from django.apps import apps

from puckhub_app.models import EventType, GameStatus
from puckhub_app.services.standings import (
    compute_table,
    recalculate_all_standings,
    recalculate_standings,
    standings_for_round,
    team_form,
)
from puckhub_app.services.stats import recalculate_player_stats

pytestmark = pytest.mark.django_db

APP = "puckhub_app"

STANDING_FIELDS = (
    "team_id",
    "games_played",
    "wins",
    "draws",
    "losses",
    "goals_for",
    "goals_against",
    "goal_difference",
    "points",
    "bonus_points",
    "total_points",
    "rank",
)


def _table(round_id: int) -> list[tuple]:
    Standing = apps.get_model(APP, "Standing")
    return list(Standing.objects.filter(round_id=round_id).order_by("rank").values_list(*STANDING_FIELDS))


def _standing(round_id: int, team: Any) -> Any:
    return apps.get_model(APP, "Standing").objects.get(round_id=round_id, team=team)


# --- compute_table (pure) --------------------------------------------------


def test_points_formula_uses_round_values_and_bonus() -> None:
    """Points equal wins/draws/losses times round values, plus bonus."""
    results = [(1, 2, 4, 1), (2, 1, 2, 2), (1, 2, 0, 3)]
    table = compute_table(results, points_win=3, points_draw=1, points_loss=-1, bonus={1: -2, 9: 10})
    rows = {row.team_id: row for row in table}

    assert (rows[1].wins, rows[1].draws, rows[1].losses) == (1, 1, 1)
    assert rows[1].points == 3 + 1 - 1
    assert rows[1].bonus_points == -2
    assert rows[1].total_points == 1
    assert rows[2].total_points == 3
    # bonus of a team without games is ignored
    assert 9 not in rows


def test_ranking_keys_order() -> None:
    """Rank by total points, then fewer games, goal difference and goals for."""
    results = [(1, 2, 3, 1), (3, 4, 1, 0), (5, 6, 2, 0)]
    table = compute_table(results, points_win=2, points_draw=1, points_loss=0)
    assert [row.team_id for row in table] == [1, 5, 3, 4, 2, 6]


def test_fewer_games_beats_better_goal_difference() -> None:
    """Equal points: the team with fewer games played ranks higher."""
    results = [(7, 9, 1, 0), (8, 10, 5, 0), (11, 8, 1, 0)]
    table = compute_table(results, points_win=2, points_draw=1, points_loss=0)
    order = [row.team_id for row in table]
    assert order.index(7) < order.index(8)


def test_full_tie_keeps_first_seen_order() -> None:
    """Fully tied teams keep the order in which they first appeared."""
    results = [(4, 3, 1, 1), (2, 1, 0, 0)]
    table = compute_table(results, points_win=2, points_draw=1, points_loss=0)
    assert [row.team_id for row in table] == [4, 3, 2, 1]


def test_round_robin_is_zero_sum() -> None:
    """A complete round-robin balances wins, goals and 2/1/0 points."""
    teams = [1, 2, 3, 4, 5]
    scores = itertools.cycle([(3, 1), (0, 0), (1, 4), (2, 2), (5, 0), (0, 1)])
    results = [(h, a, *next(scores)) for h, a in itertools.permutations(teams, 2)]
    table = compute_table(results, points_win=2, points_draw=1, points_loss=0)

    assert len(table) == len(teams)
    assert sum(r.wins for r in table) == sum(r.losses for r in table)
    assert sum(r.draws for r in table) % 2 == 0
    assert sum(r.goals_for for r in table) == sum(r.goals_against for r in table)
    assert sum(r.goal_difference for r in table) == 0
    assert sum(r.points for r in table) == 2 * len(results)
    assert all(r.games_played == 2 * (len(teams) - 1) for r in table)


# --- recalculate_standings -------------------------------------------------


def test_single_win_end_to_end(play: Any, home: Any, away: Any, league_round: Any) -> None:
    """A 1:0 home win ranks the home team first with two points."""
    play(home, away, [(home, home.skaters[0], home.skaters[1])])

    winner = _standing(league_round.pk, home.team)
    loser = _standing(league_round.pk, away.team)

    assert (winner.rank, winner.games_played, winner.wins, winner.points) == (1, 1, 1, 2)
    assert (winner.goals_for, winner.goals_against, winner.goal_difference) == (1, 0, 1)
    assert (loser.rank, loser.losses, loser.points, loser.goal_difference) == (2, 1, 0, -1)
    assert winner.previous_rank is None and loser.previous_rank is None
    assert winner.rank_change is None


def test_goalless_game_is_a_draw(play: Any, home: Any, away: Any, league_round: Any) -> None:
    """A completed game without goals ends 0:0 and awards draw points."""
    game = play(home, away)
    assert (game.home_score, game.away_score) == (0, 0)
    for team in (home.team, away.team):
        row = _standing(league_round.pk, team)
        assert (row.draws, row.points) == (1, 1)


def test_recalculation_is_repeatable_and_tracks_previous_rank(
    play: Any, home: Any, away: Any, league_round: Any
) -> None:
    """Recalculating unchanged data yields identical rows; previous rank is kept."""
    play(home, away, [(away, away.skaters[0])])
    first = _table(league_round.pk)

    recalculate_standings(league_round.pk)

    assert _table(league_round.pk) == first
    assert _standing(league_round.pk, away.team).previous_rank == 1
    assert _standing(league_round.pk, home.team).previous_rank == 2
    assert _standing(league_round.pk, away.team).rank_change == 0


def test_custom_round_points(play: Any, home: Any, away: Any, make_round: Any) -> None:
    """Rounds may award custom points for a win."""
    playoffs = make_round("Play-off", points_win=3, points_draw=1, points_loss=0)
    play(home, away, [(home, home.skaters[0])], rnd=playoffs)
    assert _standing(playoffs.pk, home.team).points == 3


def test_standings_are_scoped_to_their_round(
    play: Any, home: Any, away: Any, league_round: Any, make_round: Any
) -> None:
    """A game of another round does not change this round's table."""
    play(home, away, [(home, home.skaters[0])])
    before = _table(league_round.pk)

    other = make_round("Nadstavba")
    play(away, home, [(away, away.skaters[0]), (away, away.skaters[1])], rnd=other)

    assert _table(league_round.pk) == before
    assert _standing(other.pk, away.team).rank == 1


def test_missing_round_is_logged_noop(caplog: pytest.LogCaptureFixture) -> None:
    """Recalculating an unknown round only logs a warning."""
    Standing = apps.get_model(APP, "Standing")
    with caplog.at_level(logging.WARNING, logger="puckhub_app"):
        recalculate_standings(999_999)
    assert Standing.objects.count() == 0
    assert "999999" in caplog.text


def test_bonus_points_change_recalculates_round(
    play: Any,
    home: Any,
    away: Any,
    league_round: Any,
    django_capture_on_commit_callbacks: Any,
) -> None:
    """Saving and deleting bonus points re-ranks the round after commit."""
    BonusPoint = apps.get_model(APP, "BonusPoint")
    play(home, away, [(home, home.skaters[0])])

    with django_capture_on_commit_callbacks(execute=True):
        bonus = BonusPoint.objects.create(round=league_round, team=away.team, points=3, reason="Kontumace")

    leader = _standing(league_round.pk, away.team)
    assert (leader.rank, leader.previous_rank, leader.bonus_points, leader.total_points) == (1, 2, 3, 3)
    assert bonus.organization_id == league_round.organization_id

    with django_capture_on_commit_callbacks(execute=True):
        bonus.delete()

    assert _standing(league_round.pk, away.team).total_points == 0
    assert _standing(league_round.pk, home.team).rank == 1


def test_moving_bonus_points_refreshes_both_rounds(
    play: Any,
    home: Any,
    away: Any,
    league_round: Any,
    make_round: Any,
    django_capture_on_commit_callbacks: Any,
) -> None:
    """A bonus moved to another round no longer counts in the old one."""
    BonusPoint = apps.get_model(APP, "BonusPoint")
    playoffs = make_round("Play-off", sort_order=1)
    play(home, away, [(home, home.skaters[0])])
    play(home, away, rnd=playoffs)

    with django_capture_on_commit_callbacks(execute=True):
        bonus = BonusPoint.objects.create(round=league_round, team=away.team, points=5, reason="Kontumace")
    assert _standing(league_round.pk, away.team).total_points == 5

    with django_capture_on_commit_callbacks(execute=True):
        bonus.round = playoffs
        bonus.save()

    old = _standing(league_round.pk, away.team)
    assert (old.bonus_points, old.total_points, old.rank) == (0, 0, 2)
    new = _standing(playoffs.pk, away.team)
    assert (new.bonus_points, new.total_points, new.rank) == (5, 6, 1)


def test_deleting_completed_game_drops_it_from_aggregates(
    play: Any,
    home: Any,
    away: Any,
    league_round: Any,
    django_capture_on_commit_callbacks: Any,
) -> None:
    """Standings and season statistics forget a deleted completed game."""
    game = play(home, away, [(home, home.skaters[0], home.skaters[1])])
    assert _standing(league_round.pk, home.team).total_points == 2

    with django_capture_on_commit_callbacks(execute=True):
        game.delete()

    assert _table(league_round.pk) == []
    assert not apps.get_model(APP, "PlayerSeasonStat").objects.exists()
    assert not apps.get_model(APP, "GoalieSeasonStat").objects.exists()


def test_deleting_scheduled_game_schedules_nothing(
    make_game: Any, home: Any, away: Any, django_capture_on_commit_callbacks: Any
) -> None:
    """Games that never counted do not trigger recalculation."""
    game = make_game(home.team, away.team)
    with django_capture_on_commit_callbacks() as callbacks:
        game.delete()
    assert callbacks == []


def test_recalculation_is_scoped_to_organization(
    play: Any, home: Any, away: Any, league_round: Any, make_game: Any, season: Any
) -> None:
    """An explicit tenant ignores games recorded under another organization."""
    Organization = apps.get_model(APP, "Organization")
    GameEvent = apps.get_model(APP, "GameEvent")
    PlayerSeasonStat = apps.get_model(APP, "PlayerSeasonStat")
    Standing = apps.get_model(APP, "Standing")
    other = Organization.objects.create(name="Cizí liga", slug="cizi-liga")
    play(home, away, [(home, home.skaters[0])])
    foreign = make_game(
        home.team, away.team, organization=other, status=GameStatus.COMPLETED, home_score=0, away_score=2
    )
    for _ in range(2):
        GameEvent.objects.create(
            game=foreign, event_type=EventType.GOAL, team=away.team, scorer=away.skaters[0], period=1
        )

    org_id = league_round.organization_id
    recalculate_standings(league_round.pk, organization_id=org_id)
    recalculate_player_stats(season.pk, organization_id=org_id)

    rows = Standing.objects.filter(round=league_round).values_list("team_id", "games_played", "wins", "goals_for")
    assert sorted(rows) == sorted([(home.team.pk, 1, 1, 1), (away.team.pk, 1, 0, 0)])
    assert not Standing.objects.filter(organization=other).exists()
    assert PlayerSeasonStat.objects.get(player=home.skaters[0]).goals == 1
    assert PlayerSeasonStat.objects.get(player=away.skaters[0]).goals == 0
    assert not PlayerSeasonStat.objects.filter(organization=other).exists()


def test_negative_bonus_points(play: Any, home: Any, away: Any, league_round: Any) -> None:
    """Negative bonus points lower the total below game points."""
    BonusPoint = apps.get_model(APP, "BonusPoint")
    play(home, away, [(home, home.skaters[0])])
    BonusPoint.objects.create(round=league_round, team=home.team, points=-5, reason="Pokuta")

    recalculate_standings(league_round.pk)

    row = _standing(league_round.pk, home.team)
    assert (row.points, row.bonus_points, row.total_points, row.rank) == (2, -5, -3, 2)


def test_recalculate_all_standings_counts_rounds(
    play: Any, home: Any, away: Any, division: Any, league_round: Any, make_round: Any
) -> None:
    """Every round of the division is recalculated."""
    make_round("Play-off", sort_order=1)
    play(home, away, complete=False)
    assert recalculate_all_standings(division.pk) == 2


def test_standings_for_round_order(play: Any, home: Any, away: Any, league_round: Any) -> None:
    """Read helper returns the leader first."""
    play(home, away, [(away, away.skaters[0])])
    assert [row.team_id for row in standings_for_round(league_round.pk)] == [away.team.pk, home.team.pk]


# --- team_form -------------------------------------------------------------


def test_team_form_newest_first_and_limit(play: Any, home: Any, away: Any, league_round: Any) -> None:
    """Form lists the newest result first and honors the limit."""
    play(home, away, [(home, home.skaters[0])])
    play(home, away)
    play(home, away, [(away, away.skaters[0])])

    forms = {f.team_id: f.form for f in team_form(league_round.pk)}
    assert [e.result for e in forms[home.team.pk]] == ["L", "D", "W"]
    assert [e.result for e in forms[away.team.pk]] == ["W", "D", "L"]
    assert forms[home.team.pk][0].opponent_id == away.team.pk
    assert (forms[home.team.pk][0].goals_for, forms[home.team.pk][0].goals_against) == (0, 1)

    limited = {f.team_id: f.form for f in team_form(league_round.pk, limit=2)}
    assert [e.result for e in limited[home.team.pk]] == ["L", "D"]


def test_team_form_limit_is_clamped(play: Any, home: Any, away: Any, league_round: Any) -> None:
    """A limit below one still returns the latest result."""
    play(home, away)
    play(home, away, [(home, home.skaters[0])])
    forms = team_form(league_round.pk, limit=0)
    assert all(len(f.form) == 1 for f in forms)
    assert len(team_form(league_round.pk, limit=500)[0].form) == 2

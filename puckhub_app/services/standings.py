# file: puckhub_app/services/standings.py
"""Standings recomputation and read helpers.

Internal documentation is in English; user-facing strings remain Czech
(there are none here).

Provided utilities:
    - :func:`compute_table` – pure aggregation of game results into ranked rows.
    - :func:`recalculate_standings` – rebuild the ``Standing`` rows of a round.
    - :func:`recalculate_all_standings` – rebuild every round of a division.
    - :func:`standings_for_round` – ordered standings queryset.
    - :func:`team_form` – recent W/D/L sequence per team of a round.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from django.conf import settings
from django.db import DEFAULT_DB_ALIAS, transaction
from django.db.models import Sum
from django.db.models.query import QuerySet

from puckhub_app.models import BonusPoint, Game, Round, Standing

logger = logging.getLogger(__name__)

__all__ = [
    "TableRow",
    "FormEntry",
    "TeamForm",
    "compute_table",
    "recalculate_standings",
    "recalculate_all_standings",
    "standings_for_round",
    "team_form",
]

FORM_LIMIT_MAX = 20


# --- Pure aggregation ------------------------------------------------------


@dataclass
class TableRow:
    """Accumulated results of one team within a round."""

    team_id: int
    games_played: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    goals_for: int = 0
    goals_against: int = 0
    points: int = 0
    bonus_points: int = 0

    @property
    def goal_difference(self) -> int:
        """Return goals for minus goals against."""
        return self.goals_for - self.goals_against

    @property
    def total_points(self) -> int:
        """Return game points plus bonus points."""
        return self.points + self.bonus_points

    def sort_key(self) -> tuple[int, int, int, int]:
        """Return the ranking key (ascending sort puts the leader first)."""
        return (-self.total_points, self.games_played, -self.goal_difference, -self.goals_for)


def compute_table(
    results: Iterable[tuple[int, int, int, int]],
    *,
    points_win: int,
    points_draw: int,
    points_loss: int,
    bonus: dict[int, int] | None = None,
) -> list[TableRow]:
    """Aggregate ``(home_id, away_id, home_score, away_score)`` tuples.

    Only teams that appear in at least one result get a row; bonus points of
    other teams are ignored. The returned list is ranked by total points
    (desc), games played (asc), goal difference (desc) and goals for (desc).
    The sort is stable, so fully tied teams keep their first-seen order.

    Args:
        results: Final scores of the completed games.
        points_win: Points awarded for a win.
        points_draw: Points awarded for a draw.
        points_loss: Points awarded for a loss.
        bonus: Optional summed bonus points per team id.

    Returns:
        list[TableRow]: Rows in rank order.
    """
    rows: dict[int, TableRow] = {}

    def row_for(team_id: int) -> TableRow:
        if team_id not in rows:
            rows[team_id] = TableRow(team_id=team_id)
        return rows[team_id]

    for home_id, away_id, home_score, away_score in results:
        home, away = row_for(home_id), row_for(away_id)
        home.games_played += 1
        away.games_played += 1
        home.goals_for += home_score
        home.goals_against += away_score
        away.goals_for += away_score
        away.goals_against += home_score
        if home_score > away_score:
            home.wins += 1
            away.losses += 1
        elif home_score < away_score:
            away.wins += 1
            home.losses += 1
        else:
            home.draws += 1
            away.draws += 1

    bonus = bonus or {}
    for row in rows.values():
        row.points = row.wins * points_win + row.draws * points_draw + row.losses * points_loss
        row.bonus_points = bonus.get(row.team_id, 0)

    return sorted(rows.values(), key=TableRow.sort_key)


# --- Recalculation ---------------------------------------------------------


def recalculate_standings(
    round_id: int, *, organization_id: int | None = None, using: str = DEFAULT_DB_ALIAS
) -> None:
    """Rebuild the standings table of a round from its completed games.

    The previous rank of every team is captured before the rows are replaced;
    a team without a prior row gets ``previous_rank=None``. A missing round is
    a logged no-op.

    Args:
        round_id: Round whose table is rebuilt.
        organization_id: Tenant scope; resolved from the round when omitted.
        using: Database alias to run against.
    """
    rnd = Round.objects.using(using).filter(pk=round_id).first()
    if rnd is None:
        logger.warning("Standings skipped: round %s does not exist", round_id)
        return
    org_id = organization_id or rnd.organization_id

    results = (
        Game.objects.using(using)
        .filter(organization_id=org_id, round_id=round_id)
        .counted()
        .values_list("home_team_id", "away_team_id", "home_score", "away_score")
    )
    bonus = {
        row["team_id"]: int(row["total"] or 0)
        for row in BonusPoint.objects.using(using)
        .filter(organization_id=org_id, round_id=round_id)
        .order_by()
        .values("team_id")
        .annotate(total=Sum("points"))
    }
    table = compute_table(
        results,
        points_win=rnd.points_win,
        points_draw=rnd.points_draw,
        points_loss=rnd.points_loss,
        bonus=bonus,
    )

    with transaction.atomic(using=using):
        existing = Standing.objects.using(using).filter(organization_id=org_id, round_id=round_id)
        previous = dict(existing.values_list("team_id", "rank"))
        existing.delete()
        Standing.objects.using(using).bulk_create(
            [
                Standing(
                    organization_id=org_id,
                    round_id=round_id,
                    team_id=row.team_id,
                    games_played=row.games_played,
                    wins=row.wins,
                    draws=row.draws,
                    losses=row.losses,
                    goals_for=row.goals_for,
                    goals_against=row.goals_against,
                    goal_difference=row.goal_difference,
                    points=row.points,
                    bonus_points=row.bonus_points,
                    total_points=row.total_points,
                    rank=idx,
                    previous_rank=previous.get(row.team_id),
                )
                for idx, row in enumerate(table, start=1)
            ]
        )

    logger.info("Standings of round %s recalculated: %d teams", round_id, len(table))


def recalculate_all_standings(division_id: int, *, using: str = DEFAULT_DB_ALIAS) -> int:
    """Recalculate every round of a division in ``sort_order``.

    Returns:
        int: Number of rounds recalculated.
    """
    round_ids = list(
        Round.objects.using(using)
        .filter(division_id=division_id)
        .order_by("sort_order", "id")
        .values_list("id", flat=True)
    )
    for round_id in round_ids:
        recalculate_standings(round_id, using=using)
    return len(round_ids)


# --- Read helpers ----------------------------------------------------------


def standings_for_round(round_id: int) -> QuerySet[Standing]:
    """Return the standings of a round in ranking order."""
    return (
        Standing.objects.filter(round_id=round_id)
        .select_related("team")
        .order_by("-total_points", "games_played", "-goal_difference", "-goals_for", "rank")
    )


@dataclass(frozen=True)
class FormEntry:
    """One recent result of a team: ``W``, ``D`` or ``L`` with the score."""

    result: str
    opponent_id: int
    goals_for: int
    goals_against: int


@dataclass
class TeamForm:
    """Most recent results of a team, newest first."""

    team_id: int
    form: list[FormEntry] = field(default_factory=list)


def _result(goals_for: int, goals_against: int) -> str:
    if goals_for > goals_against:
        return "W"
    if goals_for < goals_against:
        return "L"
    return "D"


def team_form(round_id: int, limit: int | None = None) -> list[TeamForm]:
    """Return the last ``limit`` results of every team playing in a round.

    Games are taken newest ``finalized_at`` first. ``limit`` defaults to the
    ``PUCKHUB_TEAM_FORM_LIMIT`` setting and is clamped to ``1..20``.
    """
    if limit is None:
        limit = getattr(settings, "PUCKHUB_TEAM_FORM_LIMIT", 5)
    limit = max(1, min(int(limit), FORM_LIMIT_MAX))

    games = (
        Game.objects.filter(round_id=round_id)
        .counted()
        .order_by("-finalized_at", "-id")
        .values_list("home_team_id", "away_team_id", "home_score", "away_score")
    )
    forms: dict[int, TeamForm] = {}
    for home_id, away_id, home_score, away_score in games:
        for team_id, opponent_id, gf, ga in (
            (home_id, away_id, home_score, away_score),
            (away_id, home_id, away_score, home_score),
        ):
            entry = forms.setdefault(team_id, TeamForm(team_id=team_id))
            if len(entry.form) < limit:
                entry.form.append(
                    FormEntry(result=_result(gf, ga), opponent_id=opponent_id, goals_for=gf, goals_against=ga)
                )
    return list(forms.values())

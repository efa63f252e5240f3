# file: puckhub_app/services/scheduler.py
"""Fixture generation for rounds.

Provided utilities:
    - :func:`generate_round_robin` – pure double round-robin pairing.
    - :func:`generate_double_round_robin` – create the missing ``Game`` rows of
      a round for every team assigned to its division.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Sequence

from django.conf import settings
from django.db import transaction

from puckhub_app.exceptions import PreconditionFailed
from puckhub_app.models import Game, Round, TeamDivision

logger = logging.getLogger(__name__)

__all__ = ["Fixture", "ScheduleResult", "generate_round_robin", "generate_double_round_robin"]


@dataclass(frozen=True)
class Fixture:
    """A home/away pairing."""

    home_team_id: int
    away_team_id: int


@dataclass
class ScheduleResult:
    """Outcome of :func:`generate_double_round_robin`."""

    total_fixtures: int
    skipped_existing: int
    created: list[Game] = field(default_factory=list)

    @property
    def created_count(self) -> int:
        """Return the number of games created."""
        return len(self.created)


def generate_round_robin(team_ids: Sequence[int]) -> list[Fixture]:
    """Pair every team with every other team at home and away.

    For each ``i < j`` the fixtures ``(i, j)`` and ``(j, i)`` are emitted in
    that order, so ``n`` teams yield ``n * (n - 1)`` fixtures. Fewer than two
    teams yield an empty list.
    """
    fixtures: list[Fixture] = []
    for i, home in enumerate(team_ids):
        for away in team_ids[i + 1 :]:
            fixtures.append(Fixture(home, away))
            fixtures.append(Fixture(away, home))
    return fixtures


def generate_double_round_robin(
    round_id: int, *, start_at: dt.datetime | None = None, cadence_days: int | None = None
) -> ScheduleResult:
    """Create the games of a double round-robin for a round.

    Teams are taken from the round's division. Pairings that already exist in
    the round (same home and away team) are skipped. Games are numbered by
    their fixture position; with ``start_at`` each fixture is scheduled
    ``cadence_days`` after the previous one.

    Raises:
        Round.DoesNotExist: If the round does not exist.
        PreconditionFailed: If the division has fewer than two teams.
    """
    rnd = Round.objects.select_related("division").get(pk=round_id)
    if cadence_days is None:
        cadence_days = getattr(settings, "PUCKHUB_SCHEDULE_CADENCE_DAYS", 7)
    if cadence_days < 1:
        raise PreconditionFailed("Rozestup mezi zápasy musí být alespoň 1 den.")

    team_ids = list(
        TeamDivision.objects.filter(division_id=rnd.division_id)
        .order_by("id")
        .values_list("team_id", flat=True)
    )
    if len(team_ids) < 2:
        raise PreconditionFailed("Pro rozpis jsou potřeba alespoň dva týmy v divizi.")

    fixtures = generate_round_robin(team_ids)
    existing = set(Game.objects.filter(round_id=round_id).values_list("home_team_id", "away_team_id"))

    games: list[Game] = []
    skipped = 0
    for idx, fixture in enumerate(fixtures):
        if (fixture.home_team_id, fixture.away_team_id) in existing:
            skipped += 1
            continue
        games.append(
            Game(
                organization_id=rnd.organization_id,
                round_id=round_id,
                home_team_id=fixture.home_team_id,
                away_team_id=fixture.away_team_id,
                game_number=idx + 1,
                scheduled_at=start_at + dt.timedelta(days=idx * cadence_days) if start_at else None,
            )
        )

    with transaction.atomic():
        created = Game.objects.bulk_create(games)

    logger.info(
        "Round %s: %d fixtures, %d created, %d already existed",
        round_id,
        len(fixtures),
        len(created),
        skipped,
    )
    return ScheduleResult(total_fixtures=len(fixtures), skipped_existing=skipped, created=created)

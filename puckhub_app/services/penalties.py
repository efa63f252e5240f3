# file: puckhub_app/services/penalties.py
"""On-demand penalty aggregates per player and per team.

Nothing here is persisted: the breakdowns are derived from penalty events of
completed games in rounds that count for player statistics every time they
are requested.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from puckhub_app.models import EventType, GameEvent

from .stats import eligible_games

__all__ = [
    "UNKNOWN_PENALTY_TYPE",
    "PenaltyBreakdown",
    "PlayerPenaltyStats",
    "TeamPenaltyStats",
    "penalty_stats",
    "team_penalty_stats",
]

UNKNOWN_PENALTY_TYPE = "unknown"


@dataclass
class PenaltyBreakdown:
    """Count and minutes of one penalty type."""

    count: int = 0
    minutes: int = 0


@dataclass
class _PenaltyTotals:
    total_minutes: int = 0
    total_count: int = 0
    breakdown: dict[str, PenaltyBreakdown] = field(default_factory=dict)

    def add(self, type_code: str | None, minutes: int | None) -> None:
        minutes = int(minutes or 0)
        bucket = self.breakdown.setdefault(type_code or UNKNOWN_PENALTY_TYPE, PenaltyBreakdown())
        bucket.count += 1
        bucket.minutes += minutes
        self.total_count += 1
        self.total_minutes += minutes


@dataclass
class PlayerPenaltyStats(_PenaltyTotals):
    """Penalty totals of one player for one team."""

    player_id: int = 0
    team_id: int = 0


@dataclass
class TeamPenaltyStats(_PenaltyTotals):
    """Penalty totals of one team."""

    team_id: int = 0


def _penalty_rows(season_id: int, team_id: int | None) -> Iterable[dict]:
    events = GameEvent.objects.filter(
        game__in=eligible_games(season_id, "counts_for_player_stats"),
        event_type=EventType.PENALTY,
    )
    if team_id:
        events = events.filter(team_id=team_id)
    return events.order_by("id").values(
        "penalty_player_id", "team_id", "penalty_minutes", "penalty_type__code"
    )


def penalty_stats(season_id: int, *, team_id: int | None = None) -> list[PlayerPenaltyStats]:
    """Return penalty totals per ``(player, team)`` sorted by minutes (desc).

    Events without a penalized player are skipped; events whose penalty type
    cannot be resolved are counted under :data:`UNKNOWN_PENALTY_TYPE`.
    """
    totals: dict[tuple[int, int], PlayerPenaltyStats] = {}
    for row in _penalty_rows(season_id, team_id):
        player_id = row["penalty_player_id"]
        if player_id is None:
            continue
        key = (player_id, row["team_id"])
        if key not in totals:
            totals[key] = PlayerPenaltyStats(player_id=player_id, team_id=row["team_id"])
        totals[key].add(row["penalty_type__code"], row["penalty_minutes"])
    return sorted(totals.values(), key=lambda s: (-s.total_minutes, s.player_id, s.team_id))


def team_penalty_stats(season_id: int) -> list[TeamPenaltyStats]:
    """Return penalty totals per team sorted by minutes (desc)."""
    totals: dict[int, TeamPenaltyStats] = {}
    for row in _penalty_rows(season_id, None):
        team_id = row["team_id"]
        if team_id not in totals:
            totals[team_id] = TeamPenaltyStats(team_id=team_id)
        totals[team_id].add(row["penalty_type__code"], row["penalty_minutes"])
    return sorted(totals.values(), key=lambda s: (-s.total_minutes, s.team_id))

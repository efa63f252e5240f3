# file: puckhub_app/services/stats.py
"""Season statistics: recomputation routines and read helpers.

Internal documentation is in English; user-facing strings remain Czech
(there are none here).

Provided utilities:
    - :func:`recalculate_player_stats` – rebuild ``PlayerSeasonStat`` of a
      season from goal/penalty events and lineups.
    - :func:`generate_goalie_game_stats` – record goals against of the
      starting goalies of a completed game.
    - :func:`backfill_goalie_game_stats` – fill in missing per-game goalie rows.
    - :func:`recalculate_goalie_stats` – rebuild ``GoalieSeasonStat`` of a
      season from per-game goalie rows.
    - :func:`player_stats` / :func:`goalie_stats` – ordered leaderboards.

Both recomputations are full replaces of the season's rows inside one
transaction; running them twice on unchanged data yields identical rows.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from django.db import DEFAULT_DB_ALIAS, transaction
from django.db.models import Count, Min, OuterRef, Subquery, Sum
from django.db.models.query import QuerySet

from puckhub_app.models import (
    Contract,
    Division,
    EventType,
    Game,
    GameEvent,
    GameLineup,
    GoalieGameStat,
    GoalieSeasonStat,
    PlayerSeasonStat,
    Season,
)

logger = logging.getLogger(__name__)

__all__ = [
    "GoalieLeaderboard",
    "goals_against_average",
    "eligible_games",
    "recalculate_player_stats",
    "generate_goalie_game_stats",
    "backfill_goalie_game_stats",
    "recalculate_goalie_stats",
    "player_stats",
    "goalie_min_games",
    "goalie_stats",
]

TWO_PLACES = Decimal("0.01")


def goals_against_average(goals_against: int, games_played: int) -> Decimal:
    """Return ``goals_against / games_played`` rounded half-up to 2 places.

    Zero games played yields ``0.00``.
    """
    if games_played <= 0:
        return Decimal("0.00")
    return (Decimal(goals_against) / Decimal(games_played)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def eligible_games(
    season_id: int, flag: str, *, organization_id: int | None = None, using: str = DEFAULT_DB_ALIAS
) -> QuerySet[Game]:
    """Return counted games of a season whose round has ``flag`` set.

    Args:
        season_id: Season to scope by (through round and division).
        flag: ``"counts_for_player_stats"`` or ``"counts_for_goalie_stats"``.
        organization_id: Optional tenant filter.
        using: Database alias.
    """
    qs = Game.objects.using(using).in_season(season_id).counted().filter(**{f"round__{flag}": True})
    if organization_id:
        qs = qs.filter(organization_id=organization_id)
    return qs


def _resolve_season(season_id: int, using: str) -> Season | None:
    season = Season.objects.using(using).filter(pk=season_id).first()
    if season is None:
        logger.warning("Season statistics skipped: season %s does not exist", season_id)
    return season


# --- Player statistics -----------------------------------------------------


def recalculate_player_stats(
    season_id: int, *, organization_id: int | None = None, using: str = DEFAULT_DB_ALIAS
) -> None:
    """Rebuild skater statistics of a season.

    Per ``(player, team)``: distinct games with a lineup entry, goals as
    scorer, assists as first plus second assistant (each counted
    independently) and summed penalty minutes. Only completed games of rounds
    with ``counts_for_player_stats`` contribute; when there are none all rows
    of the season are removed.

    Args:
        season_id: Season to rebuild.
        organization_id: Tenant scope; resolved from the season when omitted.
        using: Database alias.
    """
    season = _resolve_season(season_id, using)
    if season is None:
        return
    org_id = organization_id or season.organization_id
    games = eligible_games(season_id, "counts_for_player_stats", organization_id=org_id, using=using)

    totals: dict[tuple[int, int], dict[str, int]] = defaultdict(
        lambda: {"games_played": 0, "goals": 0, "assists": 0, "penalty_minutes": 0}
    )
    if games.exists():
        events = GameEvent.objects.using(using).filter(game__in=games).order_by()
        goals = events.filter(event_type=EventType.GOAL)

        for row in goals.filter(scorer__isnull=False).values("scorer_id", "team_id").annotate(n=Count("id")):
            totals[(row["scorer_id"], row["team_id"])]["goals"] += row["n"]

        for fk in ("assist_1_id", "assist_2_id"):
            assist_qs = goals.filter(**{f"{fk}__isnull": False}).values(fk, "team_id").annotate(n=Count("id"))
            for row in assist_qs:
                totals[(row[fk], row["team_id"])]["assists"] += row["n"]

        penalties = (
            events.filter(event_type=EventType.PENALTY, penalty_player__isnull=False)
            .values("penalty_player_id", "team_id")
            .annotate(mins=Sum("penalty_minutes"))
        )
        for row in penalties:
            totals[(row["penalty_player_id"], row["team_id"])]["penalty_minutes"] += int(row["mins"] or 0)

        lineups = (
            GameLineup.objects.using(using)
            .filter(game__in=games)
            .order_by()
            .values("player_id", "team_id")
            .annotate(gp=Count("game_id", distinct=True))
        )
        for row in lineups:
            totals[(row["player_id"], row["team_id"])]["games_played"] = row["gp"]

    with transaction.atomic(using=using):
        PlayerSeasonStat.objects.using(using).filter(organization_id=org_id, season_id=season_id).delete()
        PlayerSeasonStat.objects.using(using).bulk_create(
            [
                PlayerSeasonStat(
                    organization_id=org_id,
                    season_id=season_id,
                    player_id=player_id,
                    team_id=team_id,
                    total_points=values["goals"] + values["assists"],
                    **values,
                )
                for (player_id, team_id), values in totals.items()
            ]
        )

    logger.info("Player stats of season %s recalculated: %d rows", season_id, len(totals))


# --- Goalie statistics -----------------------------------------------------


def generate_goalie_game_stats(game: Game, *, using: str = DEFAULT_DB_ALIAS) -> int:
    """Replace the per-game goalie rows of ``game``.

    Every lineup entry flagged ``is_starting_goalie`` gets one row whose
    ``goals_against`` is the number of goal events of the opposing team.

    Returns:
        int: Number of rows created.
    """
    goals_by_team = dict(
        GameEvent.objects.using(using)
        .filter(game=game, event_type=EventType.GOAL)
        .order_by()
        .values("team_id")
        .annotate(n=Count("id"))
        .values_list("team_id", "n")
    )
    starters = GameLineup.objects.using(using).filter(game=game, is_starting_goalie=True)
    rows = [
        GoalieGameStat(
            organization_id=game.organization_id,
            game_id=game.pk,
            player_id=entry.player_id,
            team_id=entry.team_id,
            goals_against=goals_by_team.get(game.opponent_of(entry.team_id), 0),
        )
        for entry in starters
    ]
    with transaction.atomic(using=using):
        GoalieGameStat.objects.using(using).filter(game=game).delete()
        GoalieGameStat.objects.using(using).bulk_create(rows)
    return len(rows)


def backfill_goalie_game_stats(season_id: int, *, using: str = DEFAULT_DB_ALIAS) -> int:
    """Create per-game goalie rows for completed games of a season lacking them.

    Returns:
        int: Number of games backfilled.
    """
    missing = (
        Game.objects.using(using)
        .in_season(season_id)
        .counted()
        .filter(goalie_stats__isnull=True)
        .distinct()
    )
    count = 0
    for game in missing:
        generate_goalie_game_stats(game, using=using)
        count += 1
    if count:
        logger.info("Goalie game stats backfilled for %d games of season %s", count, season_id)
    return count


def recalculate_goalie_stats(
    season_id: int, *, organization_id: int | None = None, using: str = DEFAULT_DB_ALIAS
) -> None:
    """Rebuild goalie statistics of a season from per-game goalie rows.

    Only completed games of rounds with ``counts_for_goalie_stats`` count.
    Goalies without a game played get no row.

    Args:
        season_id: Season to rebuild.
        organization_id: Tenant scope; resolved from the season when omitted.
        using: Database alias.
    """
    season = _resolve_season(season_id, using)
    if season is None:
        return
    org_id = organization_id or season.organization_id
    games = eligible_games(season_id, "counts_for_goalie_stats", organization_id=org_id, using=using)

    aggregated = (
        GoalieGameStat.objects.using(using)
        .filter(game__in=games)
        .order_by()
        .values("player_id", "team_id")
        .annotate(gp=Count("id"), ga=Sum("goals_against"))
    )
    rows = [
        GoalieSeasonStat(
            organization_id=org_id,
            season_id=season_id,
            player_id=row["player_id"],
            team_id=row["team_id"],
            games_played=row["gp"],
            goals_against=int(row["ga"] or 0),
            gaa=goals_against_average(int(row["ga"] or 0), row["gp"]),
        )
        for row in aggregated
        if row["gp"] > 0
    ]

    with transaction.atomic(using=using):
        GoalieSeasonStat.objects.using(using).filter(organization_id=org_id, season_id=season_id).delete()
        GoalieSeasonStat.objects.using(using).bulk_create(rows)

    logger.info("Goalie stats of season %s recalculated: %d rows", season_id, len(rows))


# --- Read helpers ----------------------------------------------------------


def player_stats(
    season_id: int, *, team_id: int | None = None, position: str | None = None
) -> QuerySet[PlayerSeasonStat]:
    """Return the skater leaderboard of a season.

    Rows are annotated with ``position`` taken from the player's contract with
    the row's team covering the season (latest start wins), and ordered by
    points, goals and assists (all descending).
    """
    contract_position = (
        Contract.objects.filter(player_id=OuterRef("player_id"), team_id=OuterRef("team_id"))
        .overlapping(OuterRef("season__season_start"), OuterRef("season__season_end"))
        .order_by("-start_season__season_start")
        .values("position")[:1]
    )
    qs = (
        PlayerSeasonStat.objects.filter(season_id=season_id)
        .select_related("player", "team")
        .annotate(position=Subquery(contract_position))
    )
    if team_id:
        qs = qs.filter(team_id=team_id)
    if position:
        qs = qs.filter(position=position)
    return qs.order_by("-total_points", "-goals", "-assists", "player__last_name")


@dataclass
class GoalieLeaderboard:
    """Goalie rows of a season split by the qualification threshold."""

    min_games: int
    qualified: list[GoalieSeasonStat] = field(default_factory=list)
    below_threshold: list[GoalieSeasonStat] = field(default_factory=list)


def goalie_min_games(season_id: int) -> int:
    """Return the lowest ``goalie_min_games`` of the season's divisions.

    A season without divisions falls back to the field default.
    """
    value = Division.objects.filter(season_id=season_id).aggregate(m=Min("goalie_min_games"))["m"]
    if value is None:
        return Division._meta.get_field("goalie_min_games").default
    return value


def goalie_stats(season_id: int, *, team_id: int | None = None) -> GoalieLeaderboard:
    """Return goalie rows of a season split into qualified and the rest.

    Qualified goalies (``games_played >= min_games``) are sorted by GAA
    ascending, then games played descending; the remaining ones by games
    played descending.
    """
    qs = GoalieSeasonStat.objects.filter(season_id=season_id).select_related("player", "team")
    if team_id:
        qs = qs.filter(team_id=team_id)
    board = GoalieLeaderboard(min_games=goalie_min_games(season_id))
    for row in qs.order_by("gaa", "-games_played", "id"):
        if row.games_played >= board.min_games:
            board.qualified.append(row)
        else:
            board.below_threshold.append(row)
    board.below_threshold.sort(key=lambda r: (-r.games_played, r.gaa))
    return board

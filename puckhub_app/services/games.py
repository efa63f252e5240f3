# file: puckhub_app/services/games.py
"""Game report editing and lifecycle transitions.

Internal documentation is in English; user-facing messages remain Czech.

The game report (lineups, events, suspensions) may only change while the game
is neither completed nor cancelled. Scores are always derived from goal
events. Standings and season statistics are recalculated only when a game is
completed or reopened from the completed state.

Provided utilities:
    - :func:`recalculate_score` – recount goal events into the game's score.
    - :func:`set_lineup` – replace the lineup of a game.
    - :func:`add_event` / :func:`update_event` / :func:`delete_event`.
    - :func:`add_suspension` / :func:`update_suspension` /
      :func:`delete_suspension`.
    - :func:`refresh_served_games` / :func:`active_suspensions`.
    - :func:`complete_game` / :func:`reopen_game` / :func:`cancel_game`.
    - :func:`recalculate_season` – manual repair pass over a whole season.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from django.db import transaction
from django.db.models import F, Q
from django.db.models.query import QuerySet
from django.utils import timezone

from puckhub_app.exceptions import PreconditionFailed
from puckhub_app.models import (
    EventType,
    Game,
    GameEvent,
    GameLineup,
    GameStatus,
    GameSuspension,
    GoalieGameStat,
    Position,
    Round,
    Season,
)

from .standings import recalculate_standings
from .stats import (
    backfill_goalie_game_stats,
    generate_goalie_game_stats,
    recalculate_goalie_stats,
    recalculate_player_stats,
)

logger = logging.getLogger(__name__)

__all__ = [
    "LineupEntry",
    "assert_game_editable",
    "recalculate_score",
    "set_lineup",
    "add_event",
    "update_event",
    "delete_event",
    "add_suspension",
    "update_suspension",
    "delete_suspension",
    "refresh_served_games",
    "active_suspensions",
    "complete_game",
    "reopen_game",
    "cancel_game",
    "recalculate_season",
]

NOT_EDITABLE = "Ukončený nebo zrušený zápas nelze upravovat."

EVENT_FIELDS = (
    "team_id",
    "period",
    "time_minutes",
    "time_seconds",
    "scorer_id",
    "assist_1_id",
    "assist_2_id",
    "goalie_id",
    "penalty_player_id",
    "penalty_type_id",
    "penalty_minutes",
    "penalty_description",
)
SUSPENSION_FIELDS = ("suspension_type", "suspended_games", "reason")


# --- Helpers ---------------------------------------------------------------


def _get_game(game_id: int, *, lock: bool = False) -> Game:
    qs = Game.objects.select_related("round__division")
    if lock:
        qs = qs.select_for_update()
    return qs.get(pk=game_id)


def assert_game_editable(game: Game) -> None:
    """Raise :class:`PreconditionFailed` if the game report is locked."""
    if not game.is_editable:
        raise PreconditionFailed(NOT_EDITABLE)


def recalculate_score(game_id: int) -> tuple[int, int] | None:
    """Recount goal events of a game into ``home_score``/``away_score``.

    Goals of any team other than the home team count for the away side, so a
    game without goals ends up ``0:0``.

    Returns:
        tuple[int, int] | None: The new score, or ``None`` when the game no
        longer exists.
    """
    home_team_id = Game.objects.filter(pk=game_id).values_list("home_team_id", flat=True).first()
    if home_team_id is None:
        return None
    home = away = 0
    for team_id in GameEvent.objects.filter(game_id=game_id, event_type=EventType.GOAL).values_list(
        "team_id", flat=True
    ):
        if team_id == home_team_id:
            home += 1
        else:
            away += 1
    Game.objects.filter(pk=game_id).update(home_score=home, away_score=away)
    return home, away


# --- Lineup ----------------------------------------------------------------


@dataclass(frozen=True)
class LineupEntry:
    """One player to be dressed for a game."""

    player_id: int
    team_id: int
    position: str = Position.FORWARD
    jersey_number: int | None = None
    is_starting_goalie: bool = False


def set_lineup(game_id: int, players: Iterable[LineupEntry]) -> list[GameLineup]:
    """Replace the whole lineup of an editable game.

    Raises:
        Game.DoesNotExist: If the game does not exist.
        PreconditionFailed: If the game is locked, a team does not play the
            game, or a player is listed twice.
    """
    entries = list(players)
    with transaction.atomic():
        game = _get_game(game_id, lock=True)
        assert_game_editable(game)

        seen: set[int] = set()
        for entry in entries:
            if entry.team_id not in (game.home_team_id, game.away_team_id):
                raise PreconditionFailed("Tým v sestavě není účastníkem tohoto zápasu.")
            if entry.player_id in seen:
                raise PreconditionFailed("Hráč je v sestavě uveden vícekrát.")
            if entry.is_starting_goalie and entry.position != Position.GOALIE:
                raise PreconditionFailed("Startujícím brankářem může být jen hráč na pozici Brankář.")
            seen.add(entry.player_id)

        GameLineup.objects.filter(game=game).delete()
        created = GameLineup.objects.bulk_create(
            [
                GameLineup(
                    game=game,
                    player_id=entry.player_id,
                    team_id=entry.team_id,
                    position=entry.position,
                    jersey_number=entry.jersey_number,
                    is_starting_goalie=entry.is_starting_goalie,
                )
                for entry in entries
            ]
        )
    logger.info("Lineup of game %s replaced: %d players", game_id, len(created))
    return created


# --- Events ----------------------------------------------------------------


def add_event(
    game_id: int,
    *,
    event_type: str,
    team_id: int,
    period: int,
    time_minutes: int = 0,
    time_seconds: int = 0,
    suspension: Mapping[str, Any] | None = None,
    **fields: Any,
) -> GameEvent:
    """Record a goal or penalty on an editable game.

    ``fields`` accepts the goal/penalty columns (``scorer_id``,
    ``assist_1_id``, ``penalty_player_id``, ``penalty_minutes`` ...). For a
    penalty with a penalized player, ``suspension`` (``suspension_type``,
    ``suspended_games``, ``reason``) creates a linked suspension that is
    deleted together with the event. The game score is refreshed by the
    ``GameEvent`` signal handlers.

    Raises:
        Game.DoesNotExist: If the game does not exist.
        PreconditionFailed: If the game is locked.
        ValidationError: If the event itself is invalid.
    """
    unknown = set(fields) - set(EVENT_FIELDS)
    if unknown:
        raise TypeError(f"Unknown event fields: {sorted(unknown)}")

    with transaction.atomic():
        game = _get_game(game_id, lock=True)
        assert_game_editable(game)
        event = GameEvent(
            game=game,
            event_type=event_type,
            team_id=team_id,
            period=period,
            time_minutes=time_minutes,
            time_seconds=time_seconds,
            **fields,
        )
        event.full_clean()
        event.save()

        if suspension and event.event_type == EventType.PENALTY and event.penalty_player_id:
            GameSuspension.objects.create(
                game=game,
                game_event=event,
                player_id=event.penalty_player_id,
                team_id=event.team_id,
                suspension_type=suspension["suspension_type"],
                suspended_games=suspension.get("suspended_games", 1),
                reason=suspension.get("reason") or "",
            )
    return event


def update_event(event_id: int, **changes: Any) -> GameEvent:
    """Update selected fields of an event on an editable game.

    The event type cannot be changed; delete and re-add instead.

    Raises:
        GameEvent.DoesNotExist: If the event does not exist.
        PreconditionFailed: If the game is locked.
    """
    unknown = set(changes) - set(EVENT_FIELDS)
    if unknown:
        raise TypeError(f"Unknown event fields: {sorted(unknown)}")

    with transaction.atomic():
        event = GameEvent.objects.select_related("game").get(pk=event_id)
        assert_game_editable(event.game)
        for name, value in changes.items():
            setattr(event, name, value)
        event.full_clean()
        event.save()
    return event


def delete_event(event_id: int) -> None:
    """Delete an event (and its linked suspension) from an editable game.

    Raises:
        GameEvent.DoesNotExist: If the event does not exist.
        PreconditionFailed: If the game is locked.
    """
    with transaction.atomic():
        event = GameEvent.objects.select_related("game").get(pk=event_id)
        assert_game_editable(event.game)
        event.delete()


# --- Suspensions -----------------------------------------------------------


def add_suspension(
    game_id: int,
    *,
    player_id: int,
    team_id: int,
    suspension_type: str,
    suspended_games: int = 1,
    reason: str = "",
) -> GameSuspension:
    """Create a standalone suspension on an editable game.

    Raises:
        Game.DoesNotExist: If the game does not exist.
        PreconditionFailed: If the game is locked or the team does not play it.
    """
    with transaction.atomic():
        game = _get_game(game_id, lock=True)
        assert_game_editable(game)
        if team_id not in (game.home_team_id, game.away_team_id):
            raise PreconditionFailed("Tým není účastníkem tohoto zápasu.")
        suspension = GameSuspension(
            game=game,
            player_id=player_id,
            team_id=team_id,
            suspension_type=suspension_type,
            suspended_games=suspended_games,
            reason=reason,
        )
        suspension.full_clean()
        suspension.save()
    return suspension


def update_suspension(suspension_id: int, **changes: Any) -> GameSuspension:
    """Update type, length or reason of a suspension on an editable game.

    Raises:
        GameSuspension.DoesNotExist: If the suspension does not exist.
        PreconditionFailed: If the origin game is locked.
    """
    unknown = set(changes) - set(SUSPENSION_FIELDS)
    if unknown:
        raise TypeError(f"Unknown suspension fields: {sorted(unknown)}")

    with transaction.atomic():
        suspension = GameSuspension.objects.select_related("game").get(pk=suspension_id)
        assert_game_editable(suspension.game)
        for name, value in changes.items():
            setattr(suspension, name, value)
        suspension.full_clean()
        suspension.served_games = min(suspension.served_games, suspension.suspended_games)
        suspension.save()
    return suspension


def delete_suspension(suspension_id: int) -> bool:
    """Delete a suspension; a missing one is a no-op.

    Returns:
        bool: Whether a row was deleted.

    Raises:
        PreconditionFailed: If the origin game is locked.
    """
    suspension = GameSuspension.objects.select_related("game").filter(pk=suspension_id).first()
    if suspension is None:
        return False
    assert_game_editable(suspension.game)
    suspension.delete()
    return True


def _served_games(suspension: GameSuspension, season_id: int) -> int:
    served = (
        Game.objects.in_season(season_id)
        .filter(status=GameStatus.COMPLETED, finalized_at__gte=suspension.created_at)
        .filter(Q(home_team_id=suspension.team_id) | Q(away_team_id=suspension.team_id))
        .exclude(pk=suspension.game_id)
        .count()
    )
    return min(served, suspension.suspended_games)


def refresh_served_games(game: Game) -> int:
    """Recompute ``served_games`` of suspensions affected by ``game``.

    Covers every suspension of either team of ``game`` that originates in the
    same season. A suspension is served by each completed game of its team,
    other than its origin game, finalized after the suspension was created.

    Returns:
        int: Number of suspensions whose counter changed.
    """
    season_id = game.season_id
    suspensions = GameSuspension.objects.filter(
        team_id__in=(game.home_team_id, game.away_team_id),
        game__round__division__season_id=season_id,
    )
    changed = []
    for suspension in suspensions:
        served = _served_games(suspension, season_id)
        if served != suspension.served_games:
            suspension.served_games = served
            changed.append(suspension)
    if changed:
        GameSuspension.objects.bulk_update(changed, ["served_games"])
    return len(changed)


def active_suspensions(game: Game) -> QuerySet[GameSuspension]:
    """Return suspensions that players of ``game``'s teams still have to sit out.

    Only suspensions from other games of the same season are listed.
    """
    return (
        GameSuspension.objects.filter(
            team_id__in=(game.home_team_id, game.away_team_id),
            game__round__division__season_id=game.season_id,
            served_games__lt=F("suspended_games"),
        )
        .exclude(game_id=game.pk)
        .select_related("player", "team", "game")
        .order_by("created_at", "id")
    )


# --- Lifecycle -------------------------------------------------------------


def _recalculate_for(game: Game) -> None:
    season_id = game.season_id
    recalculate_standings(game.round_id, organization_id=game.organization_id)
    recalculate_player_stats(season_id, organization_id=game.organization_id)
    recalculate_goalie_stats(season_id, organization_id=game.organization_id)


def complete_game(game_id: int) -> Game:
    """Finalize a game and refresh everything derived from it.

    Steps, in one transaction: validate lineups, derive the score from goal
    events, mark the game completed, refresh served suspension games,
    regenerate per-game goalie rows, then recalculate the round standings and
    the season's player and goalie statistics.

    Raises:
        Game.DoesNotExist: If the game does not exist.
        PreconditionFailed: If the game is locked or a team has no lineup.
    """
    with transaction.atomic():
        game = _get_game(game_id, lock=True)
        assert_game_editable(game)

        dressed = set(GameLineup.objects.filter(game=game).values_list("team_id", flat=True))
        if game.home_team_id not in dressed or game.away_team_id not in dressed:
            raise PreconditionFailed("Oba týmy musí mít před uzavřením zápasu vyplněnou sestavu.")

        game.home_score, game.away_score = recalculate_score(game.pk)
        game.status = GameStatus.COMPLETED
        game.finalized_at = timezone.now()
        game.save(update_fields=["home_score", "away_score", "status", "finalized_at"])

        refresh_served_games(game)
        generate_goalie_game_stats(game)
        _recalculate_for(game)

    logger.info("Game %s completed %s:%s", game_id, game.home_score, game.away_score)
    return game


def reopen_game(game_id: int) -> Game:
    """Return a completed or cancelled game to ``scheduled``.

    Reopening a completed game removes its contribution from standings,
    season statistics and served suspension games. Reopening a cancelled game
    only resets the status.

    Raises:
        Game.DoesNotExist: If the game does not exist.
        PreconditionFailed: If the game is neither completed nor cancelled.
    """
    with transaction.atomic():
        game = _get_game(game_id, lock=True)
        if game.status not in (GameStatus.COMPLETED, GameStatus.CANCELLED):
            raise PreconditionFailed("Znovu otevřít lze jen ukončený nebo zrušený zápas.")

        was_completed = game.status == GameStatus.COMPLETED
        game.status = GameStatus.SCHEDULED
        game.finalized_at = None
        game.save(update_fields=["status", "finalized_at"])

        if was_completed:
            GoalieGameStat.objects.filter(game=game).delete()
            refresh_served_games(game)
            _recalculate_for(game)

    logger.info("Game %s reopened", game_id)
    return game


def cancel_game(game_id: int) -> Game:
    """Cancel a game that has not been completed.

    Events, lineups and suspensions of the game are removed and the score is
    cleared. Aggregates are untouched; the game was never counted.

    Raises:
        Game.DoesNotExist: If the game does not exist.
        PreconditionFailed: If the game is completed (reopen it first).
    """
    with transaction.atomic():
        game = _get_game(game_id, lock=True)
        if game.status == GameStatus.COMPLETED:
            raise PreconditionFailed("Ukončený zápas nelze zrušit, nejprve jej znovu otevřete.")

        GameSuspension.objects.filter(game=game).delete()
        GameEvent.objects.filter(game=game).delete()
        GameLineup.objects.filter(game=game).delete()

        game.status = GameStatus.CANCELLED
        game.home_score = None
        game.away_score = None
        game.finalized_at = None
        game.save(update_fields=["status", "home_score", "away_score", "finalized_at"])

    logger.info("Game %s cancelled", game_id)
    return game


def recalculate_season(season_id: int) -> int:
    """Rebuild every derived table of a season.

    Backfills missing per-game goalie rows, recalculates standings of every
    round of the season and then player and goalie statistics.

    Returns:
        int: Number of rounds whose standings were recalculated.

    Raises:
        Season.DoesNotExist: If the season does not exist.
    """
    season = Season.objects.get(pk=season_id)
    round_ids = list(
        Round.objects.filter(division__season=season)
        .order_by("division__sort_order", "division_id", "sort_order", "id")
        .values_list("id", flat=True)
    )
    with transaction.atomic():
        backfill_goalie_game_stats(season.pk)
        for round_id in round_ids:
            recalculate_standings(round_id, organization_id=season.organization_id)
        recalculate_player_stats(season.pk, organization_id=season.organization_id)
        recalculate_goalie_stats(season.pk, organization_id=season.organization_id)

    logger.info("Season %s recalculated (%d rounds)", season_id, len(round_ids))
    return len(round_ids)

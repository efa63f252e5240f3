# file: puckhub_app/signals.py
"""Signal handlers keeping derived data in sync with edits.

This module wires Django model signals to four behaviors:

* Recount the score of a game whenever one of its goal events is created,
  updated, or deleted (only while the game report is editable).
* Recalculate the standings of a round after a :class:`BonusPoint` of that
  round is saved, moved to another round or deleted.
* Drop a deleted completed :class:`Game` from standings and season statistics.
* Recalculate season statistics when a :class:`Round` toggles one of its
  eligibility flags.

All user-facing text remains **Czech**; internal documentation is in English.
"""

from __future__ import annotations

from typing import Any

from django.db import transaction
from django.db.models.signals import post_delete, post_save, pre_save
from django.dispatch import receiver

from .models import LOCKED_STATUSES, BonusPoint, EventType, Game, GameEvent, GameStatus, Round
from .services.games import recalculate_score
from .services.standings import recalculate_standings
from .services.stats import recalculate_goalie_stats, recalculate_player_stats


# --- Score recomputation triggers (GameEvent) ------------------------------


@receiver(pre_save, sender=GameEvent)
def _remember_event_type(sender: type[GameEvent], instance: GameEvent, **kwargs: Any) -> None:
    """Store the persisted event type so a goal turned penalty still recounts."""
    previous = None
    if instance.pk and not kwargs.get("raw"):
        previous = GameEvent.objects.filter(pk=instance.pk).values_list("event_type", flat=True).first()
    instance._previous_event_type = previous


@receiver(post_save, sender=GameEvent)
@receiver(post_delete, sender=GameEvent)
def _events_changed(sender: type[GameEvent], instance: GameEvent, **kwargs: Any) -> None:
    """Recount the game score when a goal event changes.

    Locked games (completed or cancelled) keep their final score.
    """
    if kwargs.get("raw"):
        return
    if EventType.GOAL not in (instance.event_type, getattr(instance, "_previous_event_type", None)):
        return
    status = Game.objects.filter(pk=instance.game_id).values_list("status", flat=True).first()
    if status is None or status in LOCKED_STATUSES:
        return
    recalculate_score(instance.game_id)


# --- Standings triggers (BonusPoint) ---------------------------------------


@receiver(pre_save, sender=BonusPoint)
def _remember_bonus_round(sender: type[BonusPoint], instance: BonusPoint, **kwargs: Any) -> None:
    """Store the persisted round so moving a bonus also refreshes its old round."""
    previous = None
    if instance.pk and not kwargs.get("raw"):
        previous = BonusPoint.objects.filter(pk=instance.pk).values_list("round_id", flat=True).first()
    instance._previous_round_id = previous


@receiver(post_save, sender=BonusPoint)
@receiver(post_delete, sender=BonusPoint)
def _bonus_points_changed(sender: type[BonusPoint], instance: BonusPoint, **kwargs: Any) -> None:
    """Recalculate the affected rounds' standings once the change is committed.

    Both the current round and, for a moved bonus, the previous one are
    refreshed. Deferred with ``transaction.on_commit``; when a round was
    deleted in the same transaction its recalculation is a logged no-op.
    """
    if kwargs.get("raw"):
        return
    organization_id = instance.organization_id
    round_ids = [instance.round_id]
    previous = getattr(instance, "_previous_round_id", None)
    if previous and previous != instance.round_id:
        round_ids.append(previous)
    for round_id in round_ids:
        transaction.on_commit(
            lambda round_id=round_id: recalculate_standings(round_id, organization_id=organization_id)
        )


# --- Aggregate triggers (Game deletion) ------------------------------------


@receiver(post_delete, sender=Game)
def _counted_game_deleted(sender: type[Game], instance: Game, **kwargs: Any) -> None:
    """Drop a deleted completed game from standings and season statistics.

    Games that were never completed did not contribute and are ignored. The
    work runs after commit, so a cascade from a deleted round or season ends
    as logged no-ops.
    """
    if instance.status != GameStatus.COMPLETED:
        return
    round_id, organization_id = instance.round_id, instance.organization_id
    season_id = Round.objects.filter(pk=round_id).values_list("division__season_id", flat=True).first()

    def _refresh() -> None:
        recalculate_standings(round_id, organization_id=organization_id)
        if season_id is not None:
            recalculate_player_stats(season_id, organization_id=organization_id)
            recalculate_goalie_stats(season_id, organization_id=organization_id)

    transaction.on_commit(_refresh)


# --- Season statistics triggers (Round flags) ------------------------------


@receiver(pre_save, sender=Round)
def _remember_round_flags(sender: type[Round], instance: Round, **kwargs: Any) -> None:
    """Store the persisted eligibility flags before the round is updated."""
    previous = None
    if instance.pk and not kwargs.get("raw"):
        previous = (
            Round.objects.filter(pk=instance.pk)
            .values_list("counts_for_player_stats", "counts_for_goalie_stats")
            .first()
        )
    instance._previous_stat_flags = previous


@receiver(post_save, sender=Round)
def _round_flags_changed(sender: type[Round], instance: Round, created: bool, **kwargs: Any) -> None:
    """Recompute the season aggregate whose eligibility flag was toggled."""
    previous = getattr(instance, "_previous_stat_flags", None)
    if created or kwargs.get("raw") or previous is None:
        return
    player_flag, goalie_flag = previous
    season_id = instance.division.season_id
    if player_flag != instance.counts_for_player_stats:
        recalculate_player_stats(season_id, organization_id=instance.organization_id)
    if goalie_flag != instance.counts_for_goalie_stats:
        recalculate_goalie_stats(season_id, organization_id=instance.organization_id)

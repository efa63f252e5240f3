# file: puckhub_app/models/games.py
"""Game domain models: fixtures and lineups.

Contains:
* :class:`GameStatus` – lifecycle state enum.
* :class:`Game` – fixture of a round between two teams of its division.
* :class:`GameLineup` – player dressed for a game (one row per player).

Scores are derived from goal events (see
:func:`puckhub_app.services.games.recalculate_score`) and are never edited by
hand while events exist. Internal documentation is English; user-facing labels
remain Czech.
"""

from __future__ import annotations

from typing import Any

from django.core.exceptions import ValidationError
from django.db import models

from .core import Organization, Position, Round


# --- Status enum -----------------------------------------------------------


class GameStatus(models.TextChoices):
    """Lifecycle state of a game (labels in Czech)."""

    SCHEDULED = "scheduled", "Naplánováno"
    IN_PROGRESS = "in_progress", "Probíhá"
    POSTPONED = "postponed", "Odloženo"
    COMPLETED = "completed", "Ukončeno"
    CANCELLED = "cancelled", "Zrušeno"


LOCKED_STATUSES = (GameStatus.COMPLETED, GameStatus.CANCELLED)


# --- Game ------------------------------------------------------------------


class GameQuerySet(models.QuerySet):
    """Query helpers shared by the aggregation services."""

    def counted(self) -> "GameQuerySet":
        """Completed games with both scores filled in."""
        return self.filter(
            status=GameStatus.COMPLETED, home_score__isnull=False, away_score__isnull=False
        )

    def in_season(self, season_id: int) -> "GameQuerySet":
        """Games of any round in any division of the season."""
        return self.filter(round__division__season_id=season_id)


class Game(models.Model):
    """A fixture between two teams within a round.

    Notes:
        * Both teams must be assigned to the round's division.
        * Only ``COMPLETED`` games with non-null scores take part in standings
          and season statistics.
        * ``finalized_at`` is set on completion and cleared on reopen.
    """

    organization = models.ForeignKey(
        Organization, on_delete=models.CASCADE, related_name="games", verbose_name="Organizace"
    )
    round = models.ForeignKey(
        Round, on_delete=models.CASCADE, related_name="games", verbose_name="Kolo"
    )
    home_team = models.ForeignKey(
        "puckhub_app.Team",
        on_delete=models.PROTECT,
        related_name="games_home",
        verbose_name="Domácí tým",
    )
    away_team = models.ForeignKey(
        "puckhub_app.Team",
        on_delete=models.PROTECT,
        related_name="games_away",
        verbose_name="Hostující tým",
    )

    scheduled_at = models.DateTimeField("Datum a čas zápasu", blank=True, null=True)
    game_number = models.PositiveIntegerField("Číslo zápasu", blank=True, null=True)
    notes = models.TextField("Poznámka", blank=True)

    status = models.CharField(
        "Stav", max_length=20, choices=GameStatus.choices, default=GameStatus.SCHEDULED
    )
    home_score = models.PositiveIntegerField("Skóre domácí", blank=True, null=True)
    away_score = models.PositiveIntegerField("Skóre hosté", blank=True, null=True)
    finalized_at = models.DateTimeField("Uzavřeno", blank=True, null=True)

    objects = GameQuerySet.as_manager()

    class Meta:
        verbose_name = "Zápas"
        verbose_name_plural = "Zápasy"
        ordering = ("scheduled_at", "game_number", "id")
        indexes = [
            models.Index(fields=("round", "status")),
        ]

    def clean(self) -> None:
        """Validate team distinctness and division membership.

        Raises:
            ValidationError: If any business rule is violated.
        """
        if self.home_team_id and self.home_team_id == self.away_team_id:
            raise ValidationError("Domácí a hostující tým nesmí být stejný.")

        if self.round_id and self.home_team_id and self.away_team_id:
            from .core import TeamDivision

            assigned = set(
                TeamDivision.objects.filter(
                    division_id=self.round.division_id,
                    team_id__in=[self.home_team_id, self.away_team_id],
                ).values_list("team_id", flat=True)
            )
            if self.home_team_id not in assigned:
                raise ValidationError({"home_team": "Domácí tým nepatří do divize tohoto kola."})
            if self.away_team_id not in assigned:
                raise ValidationError({"away_team": "Hostující tým nepatří do divize tohoto kola."})

    def save(self, *args: Any, **kwargs: Any) -> None:
        """Inherit the organization from the round when missing, then persist."""
        if not self.organization_id and self.round_id:
            self.organization_id = self.round.organization_id
        super().save(*args, **kwargs)

    @property
    def is_editable(self) -> bool:
        """Whether the game report (events, lineups, suspensions) may change."""
        return self.status not in LOCKED_STATUSES

    @property
    def season_id(self) -> int:
        """Season the game belongs to (through round and division)."""
        return self.round.division.season_id

    def opponent_of(self, team_id: int) -> int:
        """Return the id of the other team in this game."""
        return self.away_team_id if team_id == self.home_team_id else self.home_team_id

    def __str__(self) -> str:  # pragma: no cover - trivial
        """Readable label: ``Home vs Away (YYYY-MM-DD HH:MM)``."""
        when = f" ({self.scheduled_at:%Y-%m-%d %H:%M})" if self.scheduled_at else ""
        return f"{self.home_team} vs {self.away_team}{when}"


# --- Lineup ----------------------------------------------------------------


class GameLineup(models.Model):
    """A player dressed for a game on one of the two sides.

    ``is_starting_goalie`` marks the goalie whose goals-against are recorded
    when the game is completed.
    """

    game = models.ForeignKey(
        Game, on_delete=models.CASCADE, related_name="lineups", verbose_name="Zápas"
    )
    player = models.ForeignKey(
        "puckhub_app.Player", on_delete=models.CASCADE, related_name="lineups", verbose_name="Hráč"
    )
    team = models.ForeignKey("puckhub_app.Team", on_delete=models.PROTECT, verbose_name="Tým")
    position = models.CharField("Pozice", max_length=20, choices=Position.choices)
    jersey_number = models.PositiveIntegerField("Číslo dresu", blank=True, null=True)
    is_starting_goalie = models.BooleanField("Startující brankář", default=False)

    class Meta:
        verbose_name = "Sestava"
        verbose_name_plural = "Sestavy"
        constraints = [
            models.UniqueConstraint(fields=("game", "player"), name="uniq_lineup_game_player"),
        ]

    def clean(self) -> None:
        """Validate that the team plays the game and goalie flags are coherent.

        Raises:
            ValidationError: If the team is not a participant of the game or a
            non-goalie is flagged as starting goalie.
        """
        if (
            self.game_id
            and self.team_id
            and self.team_id not in (self.game.home_team_id, self.game.away_team_id)
        ):
            raise ValidationError("Tým v sestavě není účastníkem tohoto zápasu.")

        if self.is_starting_goalie and self.position != Position.GOALIE:
            raise ValidationError("Startujícím brankářem může být jen hráč na pozici Brankář.")

    def __str__(self) -> str:  # pragma: no cover - trivial
        """Readable label with game and player."""
        return f"{self.game} – {self.player}"

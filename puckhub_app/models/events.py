# file: puckhub_app/models/events.py
"""Game event models attached to a :class:`Game`.

This module defines domain objects that capture what happens during a match:

- **Enumerations**
  - :class:`EventType` – goal or penalty.
  - :class:`SuspensionType` – match penalty / game misconduct.

- **Concrete models**
  - :class:`GameEvent` – a goal (scorer, up to two assists, goalie scored on)
    or a penalty (offending player, type, minutes).
  - :class:`GameSuspension` – multi-game ban, either created together with a
    penalty event (and deleted with it) or standalone.
"""

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models


# --- Enums -----------------------------------------------------------------


class EventType(models.TextChoices):
    """Kind of game event (labels in Czech)."""

    GOAL = "goal", "Gól"
    PENALTY = "penalty", "Trest"


class SuspensionType(models.TextChoices):
    """Kind of suspension (labels in Czech)."""

    MATCH_PENALTY = "match_penalty", "Trest do konce utkání"
    GAME_MISCONDUCT = "game_misconduct", "Osobní trest do konce utkání"


# --- Game event ------------------------------------------------------------


class GameEvent(models.Model):
    """Timestamped, team-bound event of a game.

    Goal fields (``scorer``, ``assist_1``, ``assist_2``, ``goalie``) are used
    for ``GOAL`` events, penalty fields for ``PENALTY`` events. All player
    references are optional so that incomplete reports can still be recorded.
    """

    game = models.ForeignKey(
        "puckhub_app.Game", on_delete=models.CASCADE, related_name="events", verbose_name="Zápas"
    )
    event_type = models.CharField("Typ události", max_length=10, choices=EventType.choices)
    team = models.ForeignKey("puckhub_app.Team", on_delete=models.PROTECT, verbose_name="Tým")
    period = models.PositiveSmallIntegerField("Třetina", validators=[MinValueValidator(1)])
    time_minutes = models.PositiveSmallIntegerField("Minuta", default=0)
    time_seconds = models.PositiveSmallIntegerField("Sekunda", default=0)

    # Goal
    scorer = models.ForeignKey(
        "puckhub_app.Player",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="goals_scored",
        verbose_name="Střelec",
    )
    assist_1 = models.ForeignKey(
        "puckhub_app.Player",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assists_primary",
        verbose_name="Asistence 1",
    )
    assist_2 = models.ForeignKey(
        "puckhub_app.Player",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assists_secondary",
        verbose_name="Asistence 2",
    )
    goalie = models.ForeignKey(
        "puckhub_app.Player",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="goals_conceded",
        verbose_name="Brankář (inkasoval)",
    )

    # Penalty
    penalty_player = models.ForeignKey(
        "puckhub_app.Player",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="penalties",
        verbose_name="Faulující hráč",
    )
    penalty_type = models.ForeignKey(
        "puckhub_app.PenaltyType",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        verbose_name="Typ trestu",
    )
    penalty_minutes = models.PositiveSmallIntegerField("Délka trestu (min)", blank=True, null=True)
    penalty_description = models.CharField("Popis", max_length=255, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Událost zápasu"
        verbose_name_plural = "Události zápasu"
        ordering = ("period", "time_minutes", "time_seconds", "id")
        indexes = [
            models.Index(fields=("game", "event_type")),
        ]

    @property
    def clock(self) -> str:
        """Return ``mm:ss`` within the period."""
        return f"{self.time_minutes}:{self.time_seconds:02d}"

    def clean(self) -> None:
        """Domain validation for events.

        Rules:
            * The game report must still be editable.
            * The team must take part in the game.
            * Seconds must be below 60.
            * Scorer and assistants must be three different players.
        """
        super().clean()

        if self.game_id and not self.game.is_editable:
            raise ValidationError("Ukončený nebo zrušený zápas nelze upravovat.")

        if (
            self.game_id
            and self.team_id
            and self.team_id not in (self.game.home_team_id, self.game.away_team_id)
        ):
            raise ValidationError({"team": "Tým není účastníkem tohoto zápasu."})

        if self.time_seconds is not None and self.time_seconds > 59:
            raise ValidationError({"time_seconds": "Sekundy musí být v rozsahu 0–59."})

        if self.event_type == EventType.GOAL:
            if self.assist_1_id and self.assist_1_id == self.scorer_id:
                raise ValidationError("Asistent 1 nesmí být zároveň střelcem.")
            if self.assist_2_id and (
                self.assist_2_id == self.scorer_id or self.assist_2_id == self.assist_1_id
            ):
                raise ValidationError("Asistent 2 nesmí být střelcem ani shodný s Asistentem 1.")

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.get_event_type_display()} {self.period}. třetina {self.clock} ({self.team})"


# --- Suspension ------------------------------------------------------------


class GameSuspension(models.Model):
    """Ban of a player for a number of subsequent games.

    ``served_games`` is derived: it counts completed games of the same season
    involving ``team`` (other than the origin ``game``) that were finalized
    after the suspension was created, capped at ``suspended_games``. See
    :func:`puckhub_app.services.games.refresh_served_games`.
    """

    game = models.ForeignKey(
        "puckhub_app.Game", on_delete=models.CASCADE, related_name="suspensions", verbose_name="Zápas"
    )
    game_event = models.OneToOneField(
        GameEvent,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="suspension",
        verbose_name="Trest",
    )
    player = models.ForeignKey(
        "puckhub_app.Player", on_delete=models.CASCADE, related_name="suspensions", verbose_name="Hráč"
    )
    team = models.ForeignKey("puckhub_app.Team", on_delete=models.PROTECT, verbose_name="Tým")
    suspension_type = models.CharField("Typ", max_length=20, choices=SuspensionType.choices)
    suspended_games = models.PositiveSmallIntegerField(
        "Zápasů zákazu", default=1, validators=[MinValueValidator(1)]
    )
    served_games = models.PositiveSmallIntegerField("Odpykáno zápasů", default=0)
    reason = models.CharField("Důvod", max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Zákaz startu"
        verbose_name_plural = "Zákazy startu"
        indexes = [
            models.Index(fields=("team",)),
        ]

    @property
    def remaining_games(self) -> int:
        """Games still to be sat out."""
        return max(self.suspended_games - self.served_games, 0)

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.player} – {self.served_games}/{self.suspended_games}"

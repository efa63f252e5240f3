# file: puckhub_app/models/core.py
"""Core domain models for the league management backend.

Contains foundational entities:
- :class:`Organization` – tenant owning all league data.
- :class:`Season` with an inclusive date range.
- :class:`Division` belonging to a season (goalie qualification threshold).
- :class:`Round` belonging to a division (point values, stats eligibility).
- :class:`Team` and :class:`TeamDivision` assignment.
- :class:`Player` and :class:`Contract` binding a player to a team.
- :class:`PenaltyType` catalogue used by penalty events.

Internal documentation is English; user-facing labels stay Czech.
"""

from __future__ import annotations

from typing import Any

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q


# --- Enums -----------------------------------------------------------------


class Position(models.TextChoices):
    """Supported hockey player positions (UI labels in Czech)."""

    FORWARD = "forward", "Útočník"
    DEFENSE = "defense", "Obránce"
    GOALIE = "goalie", "Brankář"


class RoundType(models.TextChoices):
    """Competition phase within a division (labels in Czech)."""

    REGULAR = "regular", "Základní část"
    PREROUND = "preround", "Předkolo"
    PLAYOFFS = "playoffs", "Play-off"
    PLAYDOWNS = "playdowns", "Play-down"
    PLAYUPS = "playups", "Play-up"
    RELEGATION = "relegation", "Baráž"
    PLACEMENT = "placement", "O umístění"
    FINAL = "final", "Finále"


# --- Organization ----------------------------------------------------------


class Organization(models.Model):
    """Tenant that owns seasons, teams, players and every derived table."""

    name = models.CharField("Název organizace", max_length=255)
    slug = models.SlugField("Zkratka", max_length=100, unique=True)

    class Meta:
        verbose_name = "Organizace"
        verbose_name_plural = "Organizace"

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.name


# --- Season ----------------------------------------------------------------


class Season(models.Model):
    """Competitive period ``[season_start, season_end]`` (both inclusive).

    Seasons are not required to be disjoint; only contract eligibility relies
    on boundary comparisons.
    """

    organization = models.ForeignKey(
        Organization, on_delete=models.CASCADE, related_name="seasons", verbose_name="Organizace"
    )
    name = models.CharField("Název sezóny", max_length=100)
    season_start = models.DateField("Začátek sezóny")
    season_end = models.DateField("Konec sezóny")

    class Meta:
        verbose_name = "Sezóna"
        verbose_name_plural = "Sezóny"
        ordering = ("-season_start",)

    def clean(self) -> None:
        """Validate the season range.

        Raises:
            ValidationError: If ``season_end`` is before ``season_start``.
        """
        if self.season_end and self.season_start and self.season_end < self.season_start:
            raise ValidationError("Konec sezóny musí být po začátku.")

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.name


# --- Division --------------------------------------------------------------


class Division(models.Model):
    """A division (group of teams) competing within one season.

    ``goalie_min_games`` is the minimum number of games a goalie has to play to
    be listed among qualified goalies.
    """

    organization = models.ForeignKey(
        Organization, on_delete=models.CASCADE, related_name="divisions", verbose_name="Organizace"
    )
    season = models.ForeignKey(
        Season, on_delete=models.CASCADE, related_name="divisions", verbose_name="Sezóna"
    )
    name = models.CharField("Název divize", max_length=255)
    sort_order = models.IntegerField("Pořadí", default=0)
    goalie_min_games = models.PositiveIntegerField(
        "Min. zápasů brankáře", default=7, help_text="Hranice pro kvalifikované brankáře."
    )

    class Meta:
        verbose_name = "Divize"
        verbose_name_plural = "Divize"
        ordering = ("sort_order", "name")

    def save(self, *args: Any, **kwargs: Any) -> None:
        """Inherit the organization from the season when missing."""
        if not self.organization_id and self.season_id:
            self.organization_id = self.season.organization_id
        super().save(*args, **kwargs)

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.name} ({self.season})"


# --- Round -----------------------------------------------------------------


class Round(models.Model):
    """A competition phase of a division with its own scoring rules.

    Standings of a round always use every completed game of the round. Season
    aggregates only include the round when the matching eligibility flag is
    set (``counts_for_player_stats`` / ``counts_for_goalie_stats``).
    """

    organization = models.ForeignKey(
        Organization, on_delete=models.CASCADE, related_name="rounds", verbose_name="Organizace"
    )
    division = models.ForeignKey(
        Division, on_delete=models.CASCADE, related_name="rounds", verbose_name="Divize"
    )
    name = models.CharField("Název kola", max_length=255)
    round_type = models.CharField(
        "Typ kola", max_length=20, choices=RoundType.choices, default=RoundType.REGULAR
    )
    sort_order = models.IntegerField("Pořadí", default=0)

    points_win = models.IntegerField("Body za výhru", default=2)
    points_draw = models.IntegerField("Body za remízu", default=1)
    points_loss = models.IntegerField("Body za prohru", default=0)

    counts_for_player_stats = models.BooleanField("Započítat do statistik hráčů", default=True)
    counts_for_goalie_stats = models.BooleanField("Započítat do statistik brankářů", default=True)

    class Meta:
        verbose_name = "Kolo"
        verbose_name_plural = "Kola"
        ordering = ("sort_order", "id")

    def save(self, *args: Any, **kwargs: Any) -> None:
        """Inherit the organization from the division when missing."""
        if not self.organization_id and self.division_id:
            self.organization_id = self.division.organization_id
        super().save(*args, **kwargs)

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.division.name} – {self.name}"


# --- Team ------------------------------------------------------------------


class Team(models.Model):
    """A team owned by an organization; name is unique per organization."""

    organization = models.ForeignKey(
        Organization, on_delete=models.CASCADE, related_name="teams", verbose_name="Organizace"
    )
    name = models.CharField("Název týmu", max_length=255)
    short_name = models.CharField("Zkratka", max_length=20, blank=True)
    city = models.CharField("Město", max_length=255, blank=True, null=True)
    divisions = models.ManyToManyField(
        Division, through="TeamDivision", related_name="teams", blank=True, verbose_name="Divize"
    )

    class Meta:
        verbose_name = "Tým"
        verbose_name_plural = "Týmy"
        constraints = [
            models.UniqueConstraint(fields=["organization", "name"], name="uniq_team_name_per_org"),
        ]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.name


class TeamDivision(models.Model):
    """Assignment of a team to a division (a team may play several divisions)."""

    team = models.ForeignKey(Team, on_delete=models.CASCADE, verbose_name="Tým")
    division = models.ForeignKey(Division, on_delete=models.CASCADE, verbose_name="Divize")

    class Meta:
        verbose_name = "Zařazení týmu"
        verbose_name_plural = "Zařazení týmů"
        constraints = [
            models.UniqueConstraint(fields=["team", "division"], name="uniq_team_division"),
        ]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.team} @ {self.division}"


# --- Player / Contract -----------------------------------------------------


class Player(models.Model):
    """A person registered with an organization.

    The playing position is not stored here; it lives on the :class:`Contract`
    binding the player to a team for a range of seasons.
    """

    organization = models.ForeignKey(
        Organization, on_delete=models.CASCADE, related_name="players", verbose_name="Organizace"
    )
    first_name = models.CharField("Jméno", max_length=255)
    last_name = models.CharField("Příjmení", max_length=255)
    nickname = models.CharField("Přezdívka", max_length=50, blank=True, null=True)
    date_of_birth = models.DateField("Datum narození", blank=True, null=True)

    class Meta:
        verbose_name = "Hráč"
        verbose_name_plural = "Hráči"
        ordering = ("last_name", "first_name")

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.first_name} {self.last_name}"


class ContractQuerySet(models.QuerySet):
    """Query helpers for contracts."""

    def overlapping(self, start: Any, end: Any) -> "ContractQuerySet":
        """Contracts whose season span overlaps ``[start, end]``.

        A contract starts in ``start_season`` and runs until ``end_season``
        (open-ended when ``None``). The bounds may be dates or expressions
        such as ``OuterRef`` so the filter also serves subqueries.
        """
        return self.filter(start_season__season_start__lte=end).filter(
            Q(end_season__isnull=True) | Q(end_season__season_end__gte=start)
        )

    def active_in(self, season: Season) -> "ContractQuerySet":
        """Contracts overlapping ``season``."""
        return self.overlapping(season.season_start, season.season_end)


class Contract(models.Model):
    """Player-to-team binding with position and jersey number."""

    player = models.ForeignKey(
        Player, on_delete=models.CASCADE, related_name="contracts", verbose_name="Hráč"
    )
    team = models.ForeignKey(
        Team, on_delete=models.CASCADE, related_name="contracts", verbose_name="Tým"
    )
    position = models.CharField("Pozice", max_length=20, choices=Position.choices)
    jersey_number = models.PositiveIntegerField("Číslo dresu", blank=True, null=True)
    start_season = models.ForeignKey(
        Season, on_delete=models.CASCADE, related_name="contracts_started", verbose_name="Od sezóny"
    )
    end_season = models.ForeignKey(
        Season,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="contracts_ended",
        verbose_name="Do sezóny",
    )

    objects = ContractQuerySet.as_manager()

    class Meta:
        verbose_name = "Smlouva"
        verbose_name_plural = "Smlouvy"
        constraints = [
            models.UniqueConstraint(
                fields=["player", "team", "start_season"], name="uniq_contract_player_team_start"
            ),
        ]

    def clean(self) -> None:
        """Reject contracts whose end season starts before the start season."""
        if (
            self.start_season_id
            and self.end_season_id
            and self.end_season.season_end < self.start_season.season_start
        ):
            raise ValidationError({"end_season": "Smlouva nemůže skončit před svým začátkem."})

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.player} – {self.team} ({self.get_position_display()})"


# --- Penalty types ---------------------------------------------------------


class PenaltyType(models.Model):
    """Catalogue entry for penalty categories (shared by all organizations)."""

    code = models.CharField("Kód", max_length=20, unique=True)
    name = models.CharField("Název", max_length=255)
    short_name = models.CharField("Zkratka", max_length=20)
    default_minutes = models.PositiveSmallIntegerField("Výchozí délka (min)")

    class Meta:
        verbose_name = "Typ trestu"
        verbose_name_plural = "Typy trestů"
        ordering = ("code",)

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.short_name} ({self.default_minutes} min)"

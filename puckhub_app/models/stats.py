# file: puckhub_app/models/stats.py
"""Derived statistics tables and manual standings adjustments.

Defines:
* :class:`Standing` – ranked table row per ``(round, team)``.
* :class:`BonusPoint` – manual (possibly negative) point adjustment.
* :class:`PlayerSeasonStat` – skater totals per ``(player, season, team)``.
* :class:`GoalieGameStat` – goals against of a starting goalie in one game.
* :class:`GoalieSeasonStat` – goalie totals per ``(player, season, team)``.

Apart from :class:`BonusPoint`, every table here is fully derived from games,
events and lineups and is rebuilt by the services in
:mod:`puckhub_app.services`; rows are never patched in place.

Internal documentation is English; user-facing labels remain Czech.
"""

from __future__ import annotations

from django.db import models


# --- Standings -------------------------------------------------------------


class Standing(models.Model):
    """One row of a round's standings table.

    ``previous_rank`` holds the rank from the preceding recalculation and is
    ``None`` for a team that had no row before.
    """

    organization = models.ForeignKey(
        "puckhub_app.Organization", on_delete=models.CASCADE, verbose_name="Organizace"
    )
    round = models.ForeignKey(
        "puckhub_app.Round", on_delete=models.CASCADE, related_name="standings", verbose_name="Kolo"
    )
    team = models.ForeignKey(
        "puckhub_app.Team", on_delete=models.CASCADE, related_name="standings", verbose_name="Tým"
    )

    games_played = models.PositiveIntegerField("Z", default=0)
    wins = models.PositiveIntegerField("V", default=0)
    draws = models.PositiveIntegerField("R", default=0)
    losses = models.PositiveIntegerField("P", default=0)
    goals_for = models.PositiveIntegerField("Vstřelené", default=0)
    goals_against = models.PositiveIntegerField("Obdržené", default=0)
    goal_difference = models.IntegerField("Rozdíl skóre", default=0)
    points = models.IntegerField("Body", default=0)
    bonus_points = models.IntegerField("Bonusové body", default=0)
    total_points = models.IntegerField("Body celkem", default=0)
    rank = models.PositiveIntegerField("Pořadí", null=True, blank=True)
    previous_rank = models.PositiveIntegerField("Předchozí pořadí", null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Tabulka"
        verbose_name_plural = "Tabulky"
        ordering = ("round", "rank")
        constraints = [
            models.UniqueConstraint(fields=["round", "team"], name="uniq_standing_round_team"),
        ]

    @property
    def rank_change(self) -> int | None:
        """Positive when the team climbed since the previous calculation."""
        if self.rank is None or self.previous_rank is None:
            return None
        return self.previous_rank - self.rank

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.rank}. {self.team} ({self.total_points})"


class BonusPoint(models.Model):
    """Manual adjustment of a team's points in a round (may be negative)."""

    organization = models.ForeignKey(
        "puckhub_app.Organization", on_delete=models.CASCADE, verbose_name="Organizace"
    )
    round = models.ForeignKey(
        "puckhub_app.Round", on_delete=models.CASCADE, related_name="bonus_points", verbose_name="Kolo"
    )
    team = models.ForeignKey(
        "puckhub_app.Team", on_delete=models.CASCADE, related_name="bonus_points", verbose_name="Tým"
    )
    points = models.IntegerField("Body")
    reason = models.CharField("Důvod", max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Bonusové body"
        verbose_name_plural = "Bonusové body"
        ordering = ("-created_at",)

    def save(self, *args, **kwargs) -> None:
        """Inherit the organization from the round when missing."""
        if not self.organization_id and self.round_id:
            self.organization_id = self.round.organization_id
        super().save(*args, **kwargs)

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.team}: {self.points:+d} ({self.round})"


# --- Season statistics -----------------------------------------------------


class PlayerSeasonStat(models.Model):
    """Skater totals of one player for one team in one season.

    A player who changed teams during the season has one row per team.
    Position is not stored; it is resolved from the matching contract.
    """

    organization = models.ForeignKey(
        "puckhub_app.Organization", on_delete=models.CASCADE, verbose_name="Organizace"
    )
    player = models.ForeignKey(
        "puckhub_app.Player", on_delete=models.CASCADE, related_name="season_stats", verbose_name="Hráč"
    )
    season = models.ForeignKey(
        "puckhub_app.Season", on_delete=models.CASCADE, related_name="player_stats", verbose_name="Sezóna"
    )
    team = models.ForeignKey(
        "puckhub_app.Team", on_delete=models.CASCADE, related_name="player_stats", verbose_name="Tým"
    )

    games_played = models.PositiveIntegerField("Zápasy", default=0)
    goals = models.PositiveIntegerField("Góly", default=0)
    assists = models.PositiveIntegerField("Asistence", default=0)
    total_points = models.PositiveIntegerField("Body", default=0)
    penalty_minutes = models.PositiveIntegerField("Trestné minuty", default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Statistika hráče"
        verbose_name_plural = "Statistiky hráčů"
        constraints = [
            models.UniqueConstraint(
                fields=["player", "season", "team"], name="uniq_player_season_team"
            )
        ]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.player} ({self.team}) {self.goals}+{self.assists}"


class GoalieGameStat(models.Model):
    """Goals against of a starting goalie in a single game."""

    organization = models.ForeignKey(
        "puckhub_app.Organization", on_delete=models.CASCADE, verbose_name="Organizace"
    )
    game = models.ForeignKey(
        "puckhub_app.Game", on_delete=models.CASCADE, related_name="goalie_stats", verbose_name="Zápas"
    )
    player = models.ForeignKey(
        "puckhub_app.Player", on_delete=models.CASCADE, related_name="goalie_game_stats", verbose_name="Brankář"
    )
    team = models.ForeignKey("puckhub_app.Team", on_delete=models.CASCADE, verbose_name="Tým")
    goals_against = models.PositiveIntegerField("Obdržené góly", default=0)

    class Meta:
        verbose_name = "Statistika brankáře v zápase"
        verbose_name_plural = "Statistiky brankářů v zápasech"
        constraints = [
            models.UniqueConstraint(fields=["game", "player"], name="uniq_goalie_game_player")
        ]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.player} – {self.game}: {self.goals_against}"


class GoalieSeasonStat(models.Model):
    """Goalie totals of one player for one team in one season.

    ``gaa`` (goals-against average) is stored with two decimal places; goalies
    without a game played get no row at all.
    """

    organization = models.ForeignKey(
        "puckhub_app.Organization", on_delete=models.CASCADE, verbose_name="Organizace"
    )
    player = models.ForeignKey(
        "puckhub_app.Player", on_delete=models.CASCADE, related_name="goalie_season_stats", verbose_name="Brankář"
    )
    season = models.ForeignKey(
        "puckhub_app.Season", on_delete=models.CASCADE, related_name="goalie_stats", verbose_name="Sezóna"
    )
    team = models.ForeignKey(
        "puckhub_app.Team", on_delete=models.CASCADE, related_name="goalie_stats", verbose_name="Tým"
    )

    games_played = models.PositiveIntegerField("Zápasy", default=0)
    goals_against = models.PositiveIntegerField("Obdržené góly", default=0)
    gaa = models.DecimalField("Průměr obdržených gólů", max_digits=5, decimal_places=2)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Statistika brankáře"
        verbose_name_plural = "Statistiky brankářů"
        constraints = [
            models.UniqueConstraint(
                fields=["player", "season", "team"], name="uniq_goalie_season_team"
            )
        ]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.player} ({self.team}) GAA {self.gaa}"

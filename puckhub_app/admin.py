# file: puckhub_app/admin.py
"""Django admin configuration for the league structure, games and statistics.

Internal documentation (docstrings, comments) is in **English**. All
user-facing labels/descriptions remain **Czech** to match the target market.

The admin is the operator surface of the recalculation engine: lifecycle
actions on games (complete/reopen/cancel), manual recalculation of standings
and season statistics, and read-only views of every derived table.
"""

from __future__ import annotations

from typing import Any, Callable

import nested_admin
from django.contrib import admin, messages

from .exceptions import PreconditionFailed
from .models import (
    BonusPoint,
    Contract,
    Division,
    Game,
    GameEvent,
    GameLineup,
    GameSuspension,
    GoalieGameStat,
    GoalieSeasonStat,
    Organization,
    PenaltyType,
    Player,
    PlayerSeasonStat,
    Round,
    Season,
    Standing,
    Team,
    TeamDivision,
)
from .services.games import cancel_game, complete_game, recalculate_season, reopen_game
from .services.scheduler import generate_double_round_robin
from .services.standings import recalculate_all_standings, recalculate_standings


# ------------------------------------------------------------
# Read-only base for derived tables
# ------------------------------------------------------------
class DerivedTableAdmin(admin.ModelAdmin):
    """Admin for tables rebuilt by the services; rows are never edited by hand."""

    def has_add_permission(self, request: Any) -> bool:
        """Disallow manual creation."""
        return False

    def has_change_permission(self, request: Any, obj: Any | None = None) -> bool:
        """Disallow manual edits."""
        return False

    def has_delete_permission(self, request: Any, obj: Any | None = None) -> bool:
        """Disallow manual deletion."""
        return False


# ------------------------------------------------------------
# Organization / Season structure (nested)
# ------------------------------------------------------------
@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):
    """Admin for tenants."""

    list_display = ("name", "slug")
    search_fields = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}


class RoundInline(nested_admin.NestedTabularInline):
    """Rounds of a division, edited inside the season form."""

    model = Round
    extra = 0
    fields = (
        "name",
        "round_type",
        "sort_order",
        "points_win",
        "points_draw",
        "points_loss",
        "counts_for_player_stats",
        "counts_for_goalie_stats",
    )


class DivisionInline(nested_admin.NestedStackedInline):
    """Divisions of a season with their rounds nested below."""

    model = Division
    extra = 0
    fields = ("name", "sort_order", "goalie_min_games")
    inlines = [RoundInline]


@admin.register(Season)
class SeasonAdmin(nested_admin.NestedModelAdmin):
    """Season with nested divisions and rounds."""

    list_display = ("name", "organization", "season_start", "season_end")
    list_filter = ("organization",)
    search_fields = ("name",)
    inlines = [DivisionInline]
    actions = ["recalculate_selected_seasons"]

    @admin.action(description="Přepočítat tabulky a statistiky vybraných sezón")
    def recalculate_selected_seasons(self, request: Any, queryset: Any) -> None:
        """Run the full repair pass for each selected season."""
        rounds = sum(recalculate_season(season.pk) for season in queryset)
        self.message_user(request, f"Přepočítáno: {queryset.count()} sezón ({rounds} kol).")


class TeamDivisionInline(admin.TabularInline):
    """Assignment of teams to divisions."""

    model = TeamDivision
    extra = 0


@admin.register(Division)
class DivisionAdmin(admin.ModelAdmin):
    """Admin for divisions with team assignment."""

    exclude = ("organization",)
    list_display = ("name", "season", "sort_order", "goalie_min_games")
    list_filter = ("season",)
    search_fields = ("name", "season__name")
    inlines = [TeamDivisionInline]
    actions = ["recalculate_division_standings"]

    @admin.action(description="Přepočítat tabulky všech kol vybraných divizí")
    def recalculate_division_standings(self, request: Any, queryset: Any) -> None:
        """Recalculate the standings of every round of the selected divisions."""
        rounds = sum(recalculate_all_standings(division.pk) for division in queryset)
        self.message_user(request, f"Přepočítáno {rounds} kol.")


@admin.register(Round)
class RoundAdmin(admin.ModelAdmin):
    """Admin for rounds with standings and fixture helpers."""

    exclude = ("organization",)
    list_display = (
        "name",
        "division",
        "round_type",
        "sort_order",
        "points_win",
        "points_draw",
        "points_loss",
        "counts_for_player_stats",
        "counts_for_goalie_stats",
    )
    list_filter = ("round_type", "division__season", "division")
    search_fields = ("name", "division__name")
    actions = ["recalculate_round_standings", "generate_fixtures"]

    @admin.action(description="Přepočítat tabulku vybraných kol")
    def recalculate_round_standings(self, request: Any, queryset: Any) -> None:
        """Recalculate the standings of the selected rounds."""
        for rnd in queryset:
            recalculate_standings(rnd.pk)
        self.message_user(request, f"Přepočítáno: {queryset.count()} kol.")

    @admin.action(description="Vygenerovat rozpis každý s každým (doma/venku)")
    def generate_fixtures(self, request: Any, queryset: Any) -> None:
        """Create the missing double round-robin games of the selected rounds."""
        for rnd in queryset:
            try:
                result = generate_double_round_robin(rnd.pk)
            except PreconditionFailed as exc:
                self.message_user(request, f"{rnd}: {exc.messages[0]}", level=messages.WARNING)
                continue
            self.message_user(
                request,
                f"{rnd}: vytvořeno {result.created_count} zápasů, "
                f"přeskočeno {result.skipped_existing} existujících.",
            )


# ------------------------------------------------------------
# Teams / Players
# ------------------------------------------------------------
@admin.register(Team)
class TeamAdmin(admin.ModelAdmin):
    """Admin for teams."""

    list_display = ("name", "short_name", "city", "organization")
    list_filter = ("organization",)
    search_fields = ("name", "short_name", "city")
    inlines = [TeamDivisionInline]


class ContractInline(admin.TabularInline):
    """Contracts of a player."""

    model = Contract
    extra = 0
    fields = ("team", "position", "jersey_number", "start_season", "end_season")


@admin.register(Player)
class PlayerAdmin(admin.ModelAdmin):
    """Admin for players with their contracts."""

    list_display = ("last_name", "first_name", "nickname", "date_of_birth", "organization")
    list_filter = ("organization",)
    search_fields = ("first_name", "last_name", "nickname")
    inlines = [ContractInline]


@admin.register(PenaltyType)
class PenaltyTypeAdmin(admin.ModelAdmin):
    """Admin for the penalty catalogue."""

    list_display = ("code", "short_name", "name", "default_minutes")
    search_fields = ("code", "name")


# ------------------------------------------------------------
# Game report inlines (locked once the game is completed or cancelled)
# ------------------------------------------------------------
class GameReportInlineMixin:
    """Permissions that freeze the report of a locked game."""

    def _editable(self, obj: Game | None) -> bool:
        return obj is None or obj.is_editable

    def has_add_permission(self, request: Any, obj: Game | None = None) -> bool:
        """Allow adding rows only while the game is editable."""
        return self._editable(obj) and super().has_add_permission(request, obj)

    def has_change_permission(self, request: Any, obj: Game | None = None) -> bool:
        """Allow editing rows only while the game is editable."""
        return self._editable(obj) and super().has_change_permission(request, obj)

    def has_delete_permission(self, request: Any, obj: Game | None = None) -> bool:
        """Allow deleting rows only while the game is editable."""
        return self._editable(obj) and super().has_delete_permission(request, obj)


class GameLineupInline(GameReportInlineMixin, nested_admin.NestedTabularInline):
    """Players dressed for the game."""

    model = GameLineup
    extra = 0
    fields = ("team", "player", "position", "jersey_number", "is_starting_goalie")


class GameEventInline(GameReportInlineMixin, nested_admin.NestedStackedInline):
    """Goals and penalties of the game."""

    model = GameEvent
    extra = 0
    fieldsets = (
        (None, {"fields": ("event_type", "team", ("period", "time_minutes", "time_seconds"))}),
        ("Gól", {"fields": ("scorer", "assist_1", "assist_2", "goalie")}),
        ("Trest", {"fields": ("penalty_player", "penalty_type", "penalty_minutes", "penalty_description")}),
    )


class GameSuspensionInline(GameReportInlineMixin, nested_admin.NestedTabularInline):
    """Suspensions handed out in the game."""

    model = GameSuspension
    fk_name = "game"
    extra = 0
    fields = ("player", "team", "suspension_type", "suspended_games", "served_games", "reason", "game_event")
    readonly_fields = ("served_games", "game_event")


# ------------------------------------------------------------
# Game
# ------------------------------------------------------------
@admin.register(Game)
class GameAdmin(nested_admin.NestedModelAdmin):
    """Game admin with report inlines and lifecycle actions."""

    list_display = (
        "id",
        "scheduled_at",
        "round",
        "game_number",
        "home_team",
        "away_team",
        "home_score",
        "away_score",
        "status",
    )
    list_filter = ("status", "round__division__season", "round__division", "round")
    date_hierarchy = "scheduled_at"
    search_fields = ("home_team__name", "away_team__name")
    readonly_fields = ("status", "home_score", "away_score", "finalized_at")
    fields = (
        "round",
        ("home_team", "away_team"),
        ("scheduled_at", "game_number"),
        "notes",
        ("status", "home_score", "away_score", "finalized_at"),
    )
    inlines = [GameLineupInline, GameEventInline, GameSuspensionInline]
    actions = ["complete_selected_games", "reopen_selected_games", "cancel_selected_games"]

    def get_readonly_fields(self, request: Any, obj: Game | None = None) -> tuple[str, ...]:
        """Freeze the round and pairing of a locked game; reopen it to change them."""
        fields = tuple(super().get_readonly_fields(request, obj))
        if obj is not None and not obj.is_editable:
            fields += ("round", "home_team", "away_team")
        return fields

    def has_delete_permission(self, request: Any, obj: Game | None = None) -> bool:
        """Disallow deleting a locked game; it has to be reopened first."""
        if obj is not None and not obj.is_editable:
            return False
        return super().has_delete_permission(request, obj)

    def _run_lifecycle(
        self, request: Any, queryset: Any, operation: Callable[[int], Game], done: str
    ) -> None:
        ok = 0
        for game in queryset:
            try:
                operation(game.pk)
            except PreconditionFailed as exc:
                self.message_user(request, f"{game}: {exc.messages[0]}", level=messages.WARNING)
            else:
                ok += 1
        if ok:
            self.message_user(request, f"{done}: {ok} zápasů.")

    @admin.action(description="Uzavřít vybrané zápasy (přepočítat tabulky a statistiky)")
    def complete_selected_games(self, request: Any, queryset: Any) -> None:
        """Complete each selected game; locked or lineup-less games are reported."""
        self._run_lifecycle(request, queryset, complete_game, "Uzavřeno")

    @admin.action(description="Znovu otevřít vybrané zápasy")
    def reopen_selected_games(self, request: Any, queryset: Any) -> None:
        """Reopen each selected completed or cancelled game."""
        self._run_lifecycle(request, queryset, reopen_game, "Znovu otevřeno")

    @admin.action(description="Zrušit vybrané zápasy")
    def cancel_selected_games(self, request: Any, queryset: Any) -> None:
        """Cancel each selected game that is not completed."""
        self._run_lifecycle(request, queryset, cancel_game, "Zrušeno")


# ------------------------------------------------------------
# Standings / bonus points
# ------------------------------------------------------------
@admin.register(BonusPoint)
class BonusPointAdmin(admin.ModelAdmin):
    """Manual point adjustments; saving or deleting recalculates the round."""

    exclude = ("organization",)
    list_display = ("team", "round", "points", "reason", "created_at")
    list_filter = ("round__division__season", "round")
    search_fields = ("team__name", "reason")


@admin.register(Standing)
class StandingAdmin(DerivedTableAdmin):
    """Read-only standings table."""

    list_display = (
        "rank",
        "team",
        "games_played",
        "wins",
        "draws",
        "losses",
        "goals_for",
        "goals_against",
        "goal_difference",
        "points",
        "bonus_points",
        "total_points",
        "previous_rank",
        "rank_change",
    )
    list_filter = ("round__division__season", "round")
    ordering = ("round", "rank")

    @admin.display(description="Změna pořadí")
    def rank_change(self, obj: Standing) -> str:
        """Return the signed rank movement, or a dash for a first calculation."""
        change = obj.rank_change
        if change is None:
            return "-"
        return f"{change:+d}"


# ------------------------------------------------------------
# Season statistics
# ------------------------------------------------------------
@admin.register(PlayerSeasonStat)
class PlayerSeasonStatAdmin(DerivedTableAdmin):
    """Read-only skater season statistics."""

    list_display = ("player", "team", "season", "games_played", "goals", "assists", "total_points", "penalty_minutes")
    list_filter = ("season", "team")
    search_fields = ("player__first_name", "player__last_name")
    ordering = ("-total_points", "-goals", "-assists")


@admin.register(GoalieSeasonStat)
class GoalieSeasonStatAdmin(DerivedTableAdmin):
    """Read-only goalie season statistics."""

    list_display = ("player", "team", "season", "games_played", "goals_against", "gaa")
    list_filter = ("season", "team")
    search_fields = ("player__first_name", "player__last_name")
    ordering = ("gaa", "-games_played")


@admin.register(GoalieGameStat)
class GoalieGameStatAdmin(DerivedTableAdmin):
    """Read-only per-game goalie rows."""

    list_display = ("game", "player", "team", "goals_against")
    list_filter = ("team",)

"""Rebuild standings and season statistics from stored game data.

Derived tables are pure functions of games, events, lineups and bonus
points, so running this command is always safe. Exactly one scope has to be
given:

* ``--season`` backfills per-game goalie rows, then rebuilds every round's
  standings and the season's player and goalie statistics.
* ``--division`` rebuilds the standings of every round of the division.
* ``--round`` rebuilds the standings of a single round.
"""

from django.core.management.base import BaseCommand, CommandError

from puckhub_app.models import Division, Round, Season
from puckhub_app.services.games import recalculate_season
from puckhub_app.services.standings import recalculate_all_standings, recalculate_standings


class Command(BaseCommand):
    help = "Přepočítá tabulky a statistiky sezóny, divize nebo kola"

    def add_arguments(self, parser):
        """Register the mutually exclusive scope options."""
        scope = parser.add_mutually_exclusive_group(required=True)
        scope.add_argument("--season", type=int, help="ID sezóny")
        scope.add_argument("--division", type=int, help="ID divize")
        scope.add_argument("--round", type=int, help="ID kola")

    def handle(self, *args, **options):
        """Execute the recalculation for the selected scope."""
        if options["season"]:
            try:
                rounds = recalculate_season(options["season"])
            except Season.DoesNotExist as exc:
                raise CommandError(f"Sezóna {options['season']} neexistuje.") from exc
            self.stdout.write(self.style.SUCCESS(f"✅ Sezóna přepočítána ({rounds} kol)."))
            return

        if options["division"]:
            if not Division.objects.filter(pk=options["division"]).exists():
                raise CommandError(f"Divize {options['division']} neexistuje.")
            rounds = recalculate_all_standings(options["division"])
            self.stdout.write(self.style.SUCCESS(f"✅ Tabulky divize přepočítány ({rounds} kol)."))
            return

        if not Round.objects.filter(pk=options["round"]).exists():
            raise CommandError(f"Kolo {options['round']} neexistuje.")
        recalculate_standings(options["round"])
        self.stdout.write(self.style.SUCCESS("✅ Tabulka kola přepočítána."))

"""Recalculation services for standings and season statistics.

The aggregators below are the entry points used by the game lifecycle,
signal handlers, admin actions and the ``recalculate_stats`` command.
"""

from puckhub_app.services.standings import recalculate_all_standings, recalculate_standings
from puckhub_app.services.stats import recalculate_goalie_stats, recalculate_player_stats

__all__ = [
    "recalculate_standings",
    "recalculate_all_standings",
    "recalculate_player_stats",
    "recalculate_goalie_stats",
]

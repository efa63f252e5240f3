from .core import (
    Organization,
    Season,
    Division,
    Round,
    RoundType,
    Team,
    TeamDivision,
    Player,
    Position,
    Contract,
    PenaltyType,
)
from .games import Game, GameStatus, GameLineup, LOCKED_STATUSES
from .events import EventType, SuspensionType, GameEvent, GameSuspension
from .stats import Standing, BonusPoint, PlayerSeasonStat, GoalieGameStat, GoalieSeasonStat

__all__ = [
    "Organization", "Season", "Division", "Round", "RoundType",
    "Team", "TeamDivision", "Player", "Position", "Contract", "PenaltyType",
    "Game", "GameStatus", "GameLineup", "LOCKED_STATUSES",
    "EventType", "SuspensionType", "GameEvent", "GameSuspension",
    "Standing", "BonusPoint", "PlayerSeasonStat", "GoalieGameStat", "GoalieSeasonStat",
]

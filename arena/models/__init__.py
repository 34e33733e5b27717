from .matches import Match, MATCH_STATUSES
from .tournaments import (
    Tournament, TournamentParticipant, TournamentRound, TournamentKill,
    TOURNAMENT_STATUSES, ROUND_STATUSES,
)
from .streams import LiveStream, LiveChatMessage

__all__ = [
    "Match",
    "MATCH_STATUSES",
    "Tournament",
    "TournamentParticipant",
    "TournamentRound",
    "TournamentKill",
    "TOURNAMENT_STATUSES",
    "ROUND_STATUSES",
    "LiveStream",
    "LiveChatMessage",
]

from .matches import (
    MatchBase, MatchCreate, MatchResponse, MatchComplete,
    LiveStatsPayload, StatsSave, CountdownResponse
)
from .tournaments import (
    TournamentBase, TournamentCreate, TournamentUpdate, TournamentResponse,
    ParticipantCreate, ParticipantResponse, LeaderboardEntry, RoundResponse,
    KillCreate, KillResponse
)
from .streams import (
    StreamBase, StreamCreate, StreamUpdate, StreamResponse,
    ChatMessageCreate, ChatMessageResponse
)
from .control import (
    ClockSet, ClockView, AutosaveView, ControlSnapshot, SaveResult,
    ChatSend, ChatTranscript
)

__all__ = [
    "MatchBase", "MatchCreate", "MatchResponse", "MatchComplete",
    "LiveStatsPayload", "StatsSave", "CountdownResponse",
    "TournamentBase", "TournamentCreate", "TournamentUpdate", "TournamentResponse",
    "ParticipantCreate", "ParticipantResponse", "LeaderboardEntry", "RoundResponse",
    "KillCreate", "KillResponse",
    "StreamBase", "StreamCreate", "StreamUpdate", "StreamResponse",
    "ChatMessageCreate", "ChatMessageResponse",
    "ClockSet", "ClockView", "AutosaveView", "ControlSnapshot", "SaveResult",
    "ChatSend", "ChatTranscript",
]

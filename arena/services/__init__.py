# Core timing and sync modules (no database dependencies)
from .timers import TimerHandle, start_timer, stop_timer, call_later
from .countdown import Countdown, TimeLeft, time_left, countdown_stream
from .match_clock import MatchClock, ClockState, parse_clock, format_clock
from .retry import RetryPolicy
from .broadcast import Broadcaster, BroadcastEvent, EventType, tournament_topic
from .autosave import LiveStats, StatsAutosaver, merge_details
from .chat_poller import ChatPoller

# Record operations over the data store
from .matches import MatchService
from .tournaments import TournamentService
from .streams import StreamService
from .live_control import LiveMatchControl, ChatRoom, ControlCenter

__all__ = [
    "TimerHandle",
    "start_timer",
    "stop_timer",
    "call_later",
    "Countdown",
    "TimeLeft",
    "time_left",
    "countdown_stream",
    "MatchClock",
    "ClockState",
    "parse_clock",
    "format_clock",
    "RetryPolicy",
    "Broadcaster",
    "BroadcastEvent",
    "EventType",
    "tournament_topic",
    "LiveStats",
    "StatsAutosaver",
    "merge_details",
    "ChatPoller",
    "MatchService",
    "TournamentService",
    "StreamService",
    "LiveMatchControl",
    "ChatRoom",
    "ControlCenter",
]

"""Live match stats and the loop that keeps them persisted.

While an operator's match clock runs, ``StatsAutosaver.tick`` writes the
in-memory stats into the match's ``match_details`` JSON every 100 ms. The
write is a field-level merge done inside the store against the stored
object, so keys this session does not own (written by other tools or
operators) survive. Between two sessions writing the same stat the last
write wins; an explicit save can pass ``expected_version`` to refuse
overwriting a newer record instead.
"""

import logging
from dataclasses import dataclass, asdict, fields
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..errors import StoreError
from ..store.base import DataStore, Row
from ..utils import utcnow
from .broadcast import Broadcaster, EventType, match_topic
from .match_clock import parse_clock
from .retry import RetryPolicy
from .timers import TimerHandle, start_timer, stop_timer

logger = logging.getLogger(__name__)

MATCHES = "matches"
DETAILS_COLUMN = "match_details"


@dataclass
class LiveStats:
    player1_kills: int = 0
    player1_deaths: int = 0
    player2_kills: int = 0
    player2_deaths: int = 0
    time_remaining: str = ""
    current_round: int = 1
    notes: str = ""

    @classmethod
    def field_names(cls):
        return [f.name for f in fields(cls)]

    @classmethod
    def from_details(cls, details: Optional[Dict[str, Any]]) -> "LiveStats":
        details = details or {}
        return cls(
            player1_kills=details.get("player1_kills") or 0,
            player1_deaths=details.get("player1_deaths") or 0,
            player2_kills=details.get("player2_kills") or 0,
            player2_deaths=details.get("player2_deaths") or 0,
            time_remaining=details.get("time_remaining") or "",
            current_round=details.get("current_round") or 1,
            notes=details.get("notes") or "",
        )

    def apply(self, **changes) -> "LiveStats":
        unknown = set(changes) - set(self.field_names())
        if unknown:
            raise ValueError(f"Unknown stat fields: {sorted(unknown)}")
        for key, value in changes.items():
            if value is None:
                continue
            if key == "time_remaining" and parse_clock(value) is None:
                # Malformed clock values are dropped, like MatchClock.set
                continue
            setattr(self, key, value)
        return self

    def kd_ratio(self, player: int) -> float:
        if player not in (1, 2):
            raise ValueError("player must be 1 or 2")
        kills = getattr(self, f"player{player}_kills")
        deaths = getattr(self, f"player{player}_deaths")
        return round(kills / deaths, 2) if deaths > 0 else float(kills)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def stats_patch(stats: LiveStats, now: datetime) -> Dict[str, Any]:
    patch = stats.to_dict()
    patch["last_updated"] = now.isoformat()
    return patch


def merge_details(previous: Optional[Dict[str, Any]], stats: LiveStats, now: datetime) -> Dict[str, Any]:
    """Overlay the stats (and ``last_updated``) on a details object without mutating it."""
    merged = dict(previous or {})
    merged.update(stats_patch(stats, now))
    return merged


class StatsAutosaver:
    """Owns the live stats of one match for one operator session."""

    def __init__(
        self,
        store: DataStore,
        match_id: str,
        stats: Optional[LiveStats] = None,
        retry: Optional[RetryPolicy] = None,
        broadcaster: Optional[Broadcaster] = None,
        now: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.match_id = match_id
        self.stats = stats or LiveStats()
        self.retry = retry or RetryPolicy(name=f"autosave {match_id}", now=now)
        self.broadcaster = broadcaster
        self._now = now
        self.details: Dict[str, Any] = {}
        self.version: Optional[int] = None
        self.writes = 0
        self.closed = False
        self._handle: Optional[TimerHandle] = None

    @property
    def running(self) -> bool:
        return self._handle is not None and self._handle.active

    @property
    def stale(self) -> bool:
        return self.retry.stale

    @property
    def last_error(self) -> Optional[str]:
        return self.retry.last_error

    async def load(self) -> Row:
        """Fetch the match and prime the stats from its stored details."""
        row = await self.store.get(MATCHES, self.match_id)
        self._remember(row)
        self.stats = LiveStats.from_details(self.details)
        return row

    def _remember(self, row: Row):
        self.details = dict(row.get(DETAILS_COLUMN) or {})
        self.version = row.get("details_version")

    async def _write(self, expected_version: Optional[int]) -> Row:
        row = await self.store.merge_json(
            MATCHES,
            self.match_id,
            DETAILS_COLUMN,
            stats_patch(self.stats, self._now()),
            expected_version=expected_version,
        )
        self.writes += 1
        if self.closed:
            return row
        self._remember(row)
        if self.broadcaster:
            self.broadcaster.publish(
                match_topic(self.match_id),
                EventType.MATCH_UPDATED,
                {"match_id": self.match_id, "match_details": self.details, "details_version": self.version},
            )
        return row

    async def tick(self) -> Optional[Row]:
        """Background write; failures are logged and retried with backoff."""
        if not self.retry.ready():
            return None
        return await self.flush()

    async def flush(self) -> Optional[Row]:
        """Write now even while backing off; failures are recorded, not raised."""
        if self.closed:
            return None
        try:
            row = await self._write(None)
        except StoreError as e:
            self.retry.record_failure(e)
            return None
        self.retry.record_success()
        return row

    async def save(self, expected_version: Optional[int] = None) -> Row:
        """Explicit save; errors propagate to the caller."""
        try:
            row = await self._write(expected_version)
        except StoreError as e:
            logger.error(f"Saving stats for match {self.match_id} failed: {e}")
            raise
        self.retry.record_success()
        logger.info(f"Saved stats for match {self.match_id} (version {self.version})")
        return row

    def start(self, interval: float = 0.1):
        if self.running or self.closed:
            return
        self._handle = start_timer(interval, self.tick, name=f"autosave:{self.match_id}")

    def stop(self):
        stop_timer(self._handle)
        self._handle = None

    def close(self):
        self.stop()
        self.closed = True

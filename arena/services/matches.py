"""Match records and their status lifecycle."""

import logging
from typing import Any, Dict, List, Optional

from ..errors import InvalidTransition
from ..models import MATCH_STATUSES
from ..store.base import DataStore, Row, eq
from .autosave import LiveStats
from .broadcast import Broadcaster, EventType, match_topic

logger = logging.getLogger(__name__)

MATCHES = "matches"

# scheduled -> in_progress -> completed; cancelled/disputed any time before completed
TRANSITIONS = {
    "scheduled": {"in_progress", "live", "cancelled", "disputed"},
    "in_progress": {"completed", "cancelled", "disputed", "live"},
    "live": {"completed", "cancelled", "disputed", "in_progress"},
    "disputed": {"in_progress", "completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}

def check_transition(current: str, target: str):
    if target not in TRANSITIONS.get(current, set()):
        raise InvalidTransition("match", current, target)


class MatchService:
    def __init__(self, store: DataStore, broadcaster: Optional[Broadcaster] = None):
        self.store = store
        self.broadcaster = broadcaster

    async def list_matches(
        self,
        status: Optional[str] = None,
        tournament_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[Row]:
        if status and status not in MATCH_STATUSES:
            raise ValueError(f"Unknown match status: {status}")
        filters = []
        if status:
            filters.append(eq("status", status))
        if tournament_id:
            filters.append(eq("tournament_id", tournament_id))
        return await self.store.select(MATCHES, filters, order_by="scheduled_time", limit=limit)

    async def get_match(self, match_id: str) -> Row:
        return await self.store.get(MATCHES, match_id)

    async def create_match(self, data: Dict[str, Any]) -> Row:
        if data.get("tournament_id"):
            # Raises RecordNotFound for a dangling reference
            await self.store.get("tournaments", data["tournament_id"])
        row = await self.store.insert(MATCHES, data)
        logger.info(f"Created match {row['id']}")
        return row

    async def delete_match(self, match_id: str):
        await self.store.get(MATCHES, match_id)
        await self.store.delete(MATCHES, [eq("id", match_id)])
        logger.info(f"Deleted match {match_id}")

    async def _move(self, match_id: str, target: str, **extra) -> Row:
        match = await self.store.get(MATCHES, match_id)
        check_transition(match["status"], target)
        rows = await self.store.update(MATCHES, {"status": target, **extra}, [eq("id", match_id)])
        row = rows[0]
        logger.info(f"Match {match_id}: {match['status']} -> {target}")
        if self.broadcaster:
            self.broadcaster.publish(
                match_topic(match_id),
                EventType.MATCH_STATUS,
                {"match_id": match_id, "status": target},
            )
        return row

    async def start_match(self, match_id: str) -> Row:
        return await self._move(match_id, "in_progress")

    async def complete_match(
        self,
        match_id: str,
        player1_score: Optional[int] = None,
        player2_score: Optional[int] = None,
    ) -> Row:
        """Complete a match; scores default to the live kill counts."""
        match = await self.store.get(MATCHES, match_id)
        stats = LiveStats.from_details(match.get("match_details"))
        if player1_score is None:
            player1_score = stats.player1_kills
        if player2_score is None:
            player2_score = stats.player2_kills
        winner_id = None
        if player1_score > player2_score:
            winner_id = match.get("player1_id")
        elif player2_score > player1_score:
            winner_id = match.get("player2_id")
        return await self._move(
            match_id,
            "completed",
            player1_score=player1_score,
            player2_score=player2_score,
            winner_id=winner_id,
        )

    async def cancel_match(self, match_id: str) -> Row:
        return await self._move(match_id, "cancelled")

    async def dispute_match(self, match_id: str) -> Row:
        return await self._move(match_id, "disputed")

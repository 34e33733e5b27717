"""Tournament records, round progression, participants and the live kill feed."""

import logging
from typing import Any, Dict, List, Optional

from ..errors import InvalidTransition, RecordNotFound
from ..models import TOURNAMENT_STATUSES
from ..store.base import DataStore, Row, eq
from ..utils import utcnow
from .broadcast import Broadcaster, EventType, tournament_topic

logger = logging.getLogger(__name__)

TOURNAMENTS = "tournaments"
PARTICIPANTS = "tournament_participants"
ROUNDS = "tournament_rounds"
KILLS = "tournament_kills"

CLOSED = ("completed", "cancelled")


class TournamentService:
    def __init__(self, store: DataStore, broadcaster: Optional[Broadcaster] = None):
        self.store = store
        self.broadcaster = broadcaster

    def _publish(self, tournament_id: str, event_type: EventType, data: Dict[str, Any]):
        if self.broadcaster is not None:
            self.broadcaster.publish(tournament_topic(tournament_id), event_type, data)

    async def list_tournaments(self, status: Optional[str] = None, limit: int = 50) -> List[Row]:
        if status and status not in TOURNAMENT_STATUSES:
            raise ValueError(f"Unknown tournament status: {status}")
        filters = [eq("status", status)] if status else []
        return await self.store.select(TOURNAMENTS, filters, order_by="start_date", limit=limit)

    async def get_tournament(self, tournament_id: str) -> Row:
        return await self.store.get(TOURNAMENTS, tournament_id)

    async def create_tournament(self, data: Dict[str, Any]) -> Row:
        if data.get("total_rounds") is not None and data["total_rounds"] < 1:
            raise ValueError("total_rounds must be at least 1")
        row = await self.store.insert(TOURNAMENTS, data)
        logger.info(f"Created tournament {row['id']} ({row['name']})")
        return row

    async def update_tournament(self, tournament_id: str, changes: Dict[str, Any]) -> Row:
        tournament = await self.store.get(TOURNAMENTS, tournament_id)
        if tournament["status"] in CLOSED:
            raise InvalidTransition("tournament", tournament["status"], "updated")
        changes = {k: v for k, v in changes.items() if v is not None}
        if not changes:
            return tournament
        rows = await self.store.update(TOURNAMENTS, changes, [eq("id", tournament_id)])
        return rows[0]

    async def _set(self, tournament_id: str, **values) -> Row:
        rows = await self.store.update(TOURNAMENTS, values, [eq("id", tournament_id)])
        self._publish(tournament_id, EventType.TOURNAMENT_UPDATED, rows[0])
        return rows[0]

    # Rounds

    async def list_rounds(self, tournament_id: str) -> List[Row]:
        await self.store.get(TOURNAMENTS, tournament_id)
        return await self.store.select(ROUNDS, [eq("tournament_id", tournament_id)], order_by="round_number")

    async def current_round(self, tournament_id: str) -> Row:
        """The round row that is still in progress."""
        await self.store.get(TOURNAMENTS, tournament_id)
        rows = await self.store.select(
            ROUNDS,
            [eq("tournament_id", tournament_id), eq("status", "in_progress")],
            order_by="round_number",
            descending=True,
            limit=1,
        )
        if not rows:
            raise RecordNotFound(ROUNDS, f"{tournament_id} (in progress)")
        return rows[0]

    async def _open_round(self, tournament_id: str, round_number: int) -> Row:
        return await self.store.insert(ROUNDS, {
            "tournament_id": tournament_id,
            "round_number": round_number,
            "status": "in_progress",
            "start_time": utcnow(),
        })

    async def _close_rounds(self, tournament_id: str) -> List[Row]:
        return await self.store.update(
            ROUNDS,
            {"status": "completed", "end_time": utcnow()},
            [eq("tournament_id", tournament_id), eq("status", "in_progress")],
        )

    async def start_tournament(self, tournament_id: str) -> Row:
        tournament = await self.store.get(TOURNAMENTS, tournament_id)
        if tournament["status"] != "upcoming":
            raise InvalidTransition("tournament", tournament["status"], "ongoing")
        await self._open_round(tournament_id, 1)
        logger.info(f"Tournament {tournament_id} started")
        return await self._set(tournament_id, status="ongoing", current_round=1)

    async def next_round(self, tournament_id: str) -> Row:
        """Close the running round and open the next one."""
        tournament = await self.store.get(TOURNAMENTS, tournament_id)
        if tournament["status"] != "ongoing":
            raise InvalidTransition("tournament", tournament["status"], "next round")
        current = tournament["current_round"] or 0
        if current >= tournament["total_rounds"]:
            raise InvalidTransition("tournament", f"round {current}", f"round {current + 1}")
        await self._close_rounds(tournament_id)
        await self._open_round(tournament_id, current + 1)
        logger.info(f"Tournament {tournament_id} round {current + 1}")
        return await self._set(tournament_id, current_round=current + 1)

    async def end_round(self, tournament_id: str) -> Row:
        """End the current round; ending the last round completes the tournament."""
        tournament = await self.store.get(TOURNAMENTS, tournament_id)
        if tournament["status"] != "ongoing":
            raise InvalidTransition("tournament", tournament["status"], "end round")
        closed = await self._close_rounds(tournament_id)
        if (tournament["current_round"] or 0) >= tournament["total_rounds"]:
            await self._assign_placements(tournament_id)
            logger.info(f"Tournament {tournament_id} completed")
            return await self._set(tournament_id, status="completed")
        if closed:
            self._publish(tournament_id, EventType.TOURNAMENT_UPDATED, tournament)
        return tournament

    async def cancel_tournament(self, tournament_id: str) -> Row:
        tournament = await self.store.get(TOURNAMENTS, tournament_id)
        if tournament["status"] in CLOSED:
            raise InvalidTransition("tournament", tournament["status"], "cancelled")
        await self._close_rounds(tournament_id)
        return await self._set(tournament_id, status="cancelled")

    async def list_tournament_matches(self, tournament_id: str) -> List[Row]:
        await self.store.get(TOURNAMENTS, tournament_id)
        return await self.store.select("matches", [eq("tournament_id", tournament_id)], order_by="scheduled_time")

    # Participants and leaderboard

    async def _participant(self, tournament_id: str, user_id: str) -> Optional[Row]:
        rows = await self.store.select(
            PARTICIPANTS, [eq("tournament_id", tournament_id), eq("user_id", user_id)], limit=1
        )
        return rows[0] if rows else None

    async def add_participant(self, tournament_id: str, user_id: str, username: Optional[str] = None) -> Row:
        tournament = await self.store.get(TOURNAMENTS, tournament_id)
        if tournament["status"] in CLOSED:
            raise InvalidTransition("tournament", tournament["status"], "registration")
        if await self._participant(tournament_id, user_id) is not None:
            raise ValueError(f"User {user_id} is already registered")
        row = await self.store.insert(PARTICIPANTS, {
            "tournament_id": tournament_id,
            "user_id": user_id,
            "username": username or user_id,
        })
        logger.info(f"Registered {row['username']} for tournament {tournament_id}")
        return row

    async def remove_participant(self, tournament_id: str, participant_id: str):
        deleted = await self.store.delete(
            PARTICIPANTS, [eq("id", participant_id), eq("tournament_id", tournament_id)]
        )
        if not deleted:
            raise RecordNotFound(PARTICIPANTS, participant_id)

    async def leaderboard(self, tournament_id: str) -> List[Row]:
        """Participants by score, then kills, then registration order."""
        await self.store.get(TOURNAMENTS, tournament_id)
        rows = await self.store.select(PARTICIPANTS, [eq("tournament_id", tournament_id)], order_by="joined_at")
        # sorted() is stable, so registration order breaks the remaining ties
        rows = sorted(rows, key=lambda r: (-(r["score"] or 0), -(r["total_kills"] or 0)))
        for rank, row in enumerate(rows, start=1):
            row["rank"] = rank
        return rows

    async def _assign_placements(self, tournament_id: str):
        for row in await self.leaderboard(tournament_id):
            await self.store.update(PARTICIPANTS, {"placement": row["rank"]}, [eq("id", row["id"])])

    # Kill feed

    async def add_kill(
        self,
        tournament_id: str,
        killer_id: str,
        victim_id: str,
        weapon: Optional[str] = None,
        headshot: bool = False,
    ) -> Row:
        """Record a kill and credit the killer one kill and one point."""
        tournament = await self.store.get(TOURNAMENTS, tournament_id)
        if tournament["status"] != "ongoing":
            raise InvalidTransition("tournament", tournament["status"], "kill")
        if killer_id == victim_id:
            raise ValueError("Killer and victim must be different players")
        killer = await self._participant(tournament_id, killer_id)
        victim = await self._participant(tournament_id, victim_id)
        for user_id, participant in ((killer_id, killer), (victim_id, victim)):
            if participant is None:
                raise ValueError(f"User {user_id} is not registered in this tournament")

        kill = await self.store.insert(KILLS, {
            "tournament_id": tournament_id,
            "round_number": tournament["current_round"] or 1,
            "killer_id": killer_id,
            "victim_id": victim_id,
            "weapon": weapon,
            "headshot": headshot,
            "kill_time": utcnow(),
        })
        await self.store.increment(PARTICIPANTS, killer["id"], {"total_kills": 1, "score": 1})
        entry = dict(kill, killer_username=killer["username"], victim_username=victim["username"])
        self._publish(tournament_id, EventType.TOURNAMENT_KILL, entry)
        return entry

    async def kill_feed(self, tournament_id: str, limit: int = 20) -> List[Row]:
        """Most recent kills first, with both usernames filled in."""
        await self.store.get(TOURNAMENTS, tournament_id)
        kills = await self.store.select(
            KILLS, [eq("tournament_id", tournament_id)], order_by="kill_time", descending=True, limit=limit
        )
        participants = await self.store.select(PARTICIPANTS, [eq("tournament_id", tournament_id)])
        names = {p["user_id"]: p["username"] for p in participants}
        return [
            dict(k, killer_username=names.get(k["killer_id"], k["killer_id"]),
                 victim_username=names.get(k["victim_id"], k["victim_id"]))
            for k in kills
        ]

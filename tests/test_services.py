"""Tests for the match, tournament and stream services."""

import asyncio

import pytest

from arena.errors import InvalidTransition, RecordNotFound
from arena.services.broadcast import Broadcaster, EventType, match_topic, stream_topic, tournament_topic
from arena.services.matches import MatchService, check_transition
from arena.services.streams import StreamService
from arena.services.tournaments import TournamentService


class TestMatchService:
    """Tests for match lifecycle."""

    def test_create_requires_existing_tournament(self, store):
        service = MatchService(store)
        with pytest.raises(RecordNotFound):
            asyncio.run(service.create_match({"tournament_id": "ghost"}))

    def test_lifecycle(self, store):
        broadcaster = Broadcaster()
        subscription = broadcaster.subscribe(match_topic("m1"))

        async def scenario():
            service = MatchService(store, broadcaster)
            await service.create_match({"id": "m1", "player1_id": "p1", "player2_id": "p2"})
            started = await service.start_match("m1")
            event = await subscription.get(timeout=0.1)
            completed = await service.complete_match("m1", 13, 7)
            return started, event, completed

        started, event, completed = asyncio.run(scenario())
        assert started["status"] == "in_progress"
        assert event.event_type == EventType.MATCH_STATUS
        assert event.data == {"match_id": "m1", "status": "in_progress"}
        assert completed["status"] == "completed"
        assert completed["winner_id"] == "p1"

    def test_complete_defaults_to_live_kills(self, store):
        async def scenario():
            service = MatchService(store)
            await service.create_match({
                "id": "m1",
                "player1_id": "p1",
                "player2_id": "p2",
                "status": "in_progress",
                "match_details": {"player1_kills": 4, "player2_kills": 9},
            })
            return await service.complete_match("m1")

        row = asyncio.run(scenario())
        assert (row["player1_score"], row["player2_score"]) == (4, 9)
        assert row["winner_id"] == "p2"

    def test_draw_has_no_winner(self, store):
        async def scenario():
            service = MatchService(store)
            await service.create_match({"id": "m1", "player1_id": "p1", "status": "live"})
            return await service.complete_match("m1", 5, 5)

        assert asyncio.run(scenario())["winner_id"] is None

    def test_terminal_states(self):
        with pytest.raises(InvalidTransition):
            check_transition("completed", "in_progress")
        with pytest.raises(InvalidTransition):
            check_transition("cancelled", "disputed")
        check_transition("disputed", "completed")

    def test_cannot_complete_scheduled(self, store):
        async def scenario():
            service = MatchService(store)
            await service.create_match({"id": "m1"})
            await service.complete_match("m1", 1, 0)

        with pytest.raises(InvalidTransition):
            asyncio.run(scenario())

    def test_list_filters(self, store):
        async def scenario():
            service = MatchService(store)
            await store.insert("tournaments", {"id": "t1", "name": "Cup"})
            await service.create_match({"tournament_id": "t1"})
            await service.create_match({"status": "live"})
            return (
                await service.list_matches(tournament_id="t1"),
                await service.list_matches(status="live"),
                await service.list_matches(),
            )

        in_cup, live, everything = asyncio.run(scenario())
        assert len(in_cup) == 1
        assert live[0]["status"] == "live"
        assert len(everything) == 2

    def test_unknown_status_filter(self, store):
        with pytest.raises(ValueError):
            asyncio.run(MatchService(store).list_matches(status="finished"))

    def test_delete(self, store):
        async def scenario():
            service = MatchService(store)
            await service.create_match({"id": "m1"})
            await service.delete_match("m1")
            await service.get_match("m1")

        with pytest.raises(RecordNotFound):
            asyncio.run(scenario())


class TestTournamentService:
    """Tests for tournament rounds."""

    def test_rejects_zero_rounds(self, store):
        with pytest.raises(ValueError):
            asyncio.run(TournamentService(store).create_tournament({"name": "Cup", "total_rounds": 0}))

    def test_round_progression(self, store):
        async def scenario():
            service = TournamentService(store)
            await service.create_tournament({"id": "t1", "name": "Cup", "total_rounds": 2})
            started = await service.start_tournament("t1")
            not_last = await service.end_round("t1")
            second = await service.next_round("t1")
            try:
                await service.next_round("t1")
            except InvalidTransition:
                beyond = True
            else:
                beyond = False
            finished = await service.end_round("t1")
            return started, not_last, second, beyond, finished

        started, not_last, second, beyond, finished = asyncio.run(scenario())
        assert (started["status"], started["current_round"]) == ("ongoing", 1)
        assert not_last["status"] == "ongoing"
        assert second["current_round"] == 2
        assert beyond
        assert finished["status"] == "completed"

    def test_start_only_when_upcoming(self, store):
        async def scenario():
            service = TournamentService(store)
            await service.create_tournament({"id": "t1", "name": "Cup"})
            await service.start_tournament("t1")
            await service.start_tournament("t1")

        with pytest.raises(InvalidTransition):
            asyncio.run(scenario())

    def test_room_details_update(self, store):
        async def scenario():
            service = TournamentService(store)
            await service.create_tournament({"id": "t1", "name": "Cup"})
            return await service.update_tournament("t1", {"room_code": "ABC123", "map_name": None})

        row = asyncio.run(scenario())
        assert row["room_code"] == "ABC123"
        assert row["map_name"] is None

    def test_no_updates_once_cancelled(self, store):
        async def scenario():
            service = TournamentService(store)
            await service.create_tournament({"id": "t1", "name": "Cup"})
            await service.cancel_tournament("t1")
            await service.update_tournament("t1", {"room_code": "X"})

        with pytest.raises(InvalidTransition):
            asyncio.run(scenario())

    def test_list_tournament_matches(self, store):
        async def scenario():
            service = TournamentService(store)
            await service.create_tournament({"id": "t1", "name": "Cup"})
            await MatchService(store).create_match({"tournament_id": "t1"})
            await MatchService(store).create_match({})
            return await service.list_tournament_matches("t1")

        assert len(asyncio.run(scenario())) == 1

    def test_unknown_status_filter(self, store):
        with pytest.raises(ValueError):
            asyncio.run(TournamentService(store).list_tournaments(status="finished"))

    def test_round_records(self, store):
        """Each round gets a row that is closed when the round ends."""

        async def scenario():
            service = TournamentService(store)
            await service.create_tournament({"id": "t1", "name": "Cup", "total_rounds": 2})
            await service.start_tournament("t1")
            first = await service.current_round("t1")
            await service.next_round("t1")
            second = await service.current_round("t1")
            await service.end_round("t1")
            try:
                await service.current_round("t1")
            except RecordNotFound:
                between = True
            else:
                between = False
            return first, second, between, await service.list_rounds("t1")

        first, second, between, rounds = asyncio.run(scenario())
        assert first["round_number"] == 1
        assert second["round_number"] == 2
        assert between
        assert [(r["round_number"], r["status"]) for r in rounds] == [(1, "completed"), (2, "completed")]
        assert all(r["end_time"] >= r["start_time"] for r in rounds)


class TestTournamentLive:
    """Tests for participants, the kill feed and the leaderboard."""

    async def _setup(self, store, broadcaster=None):
        service = TournamentService(store, broadcaster)
        await service.create_tournament({"id": "t1", "name": "Cup", "total_rounds": 2})
        for user_id in ("u1", "u2", "u3"):
            await service.add_participant("t1", user_id, f"player-{user_id}")
        await service.start_tournament("t1")
        return service

    def test_duplicate_registration(self, store):
        async def scenario():
            service = await self._setup(store)
            await service.add_participant("t1", "u1")

        with pytest.raises(ValueError):
            asyncio.run(scenario())

    def test_kill_credits_killer(self, store):
        async def scenario():
            service = await self._setup(store)
            kill = await service.add_kill("t1", "u1", "u2", weapon="AWP", headshot=True)
            await service.add_kill("t1", "u1", "u3")
            return kill, await service.leaderboard("t1")

        kill, board = asyncio.run(scenario())
        assert kill["round_number"] == 1
        assert kill["killer_username"] == "player-u1"
        assert kill["victim_username"] == "player-u2"
        assert kill["headshot"] is True
        top = board[0]
        assert (top["user_id"], top["total_kills"], top["score"], top["rank"]) == ("u1", 2, 2, 1)
        assert [r["rank"] for r in board] == [1, 2, 3]

    def test_leaderboard_ties_keep_registration_order(self, store):
        async def scenario():
            service = await self._setup(store)
            return await service.leaderboard("t1")

        assert [r["user_id"] for r in asyncio.run(scenario())] == ["u1", "u2", "u3"]

    def test_kill_validation(self, store):
        async def scenario():
            service = await self._setup(store)
            errors = 0
            for killer, victim in (("u1", "u1"), ("u1", "ghost"), ("ghost", "u2")):
                try:
                    await service.add_kill("t1", killer, victim)
                except ValueError:
                    errors += 1
            return errors, await service.kill_feed("t1")

        errors, feed = asyncio.run(scenario())
        assert errors == 3
        assert feed == []

    def test_kills_need_ongoing_tournament(self, store):
        async def scenario():
            service = TournamentService(store)
            await service.create_tournament({"id": "t1", "name": "Cup"})
            await service.add_participant("t1", "u1")
            await service.add_participant("t1", "u2")
            await service.add_kill("t1", "u1", "u2")

        with pytest.raises(InvalidTransition):
            asyncio.run(scenario())

    def test_kill_feed_newest_first(self, store):
        async def scenario():
            service = await self._setup(store)
            await service.add_kill("t1", "u1", "u2")
            await service.next_round("t1")
            await service.add_kill("t1", "u3", "u1")
            return await service.kill_feed("t1", limit=1), await service.kill_feed("t1")

        latest, feed = asyncio.run(scenario())
        assert len(latest) == 1
        assert latest[0]["killer_id"] == "u3"
        assert latest[0]["round_number"] == 2
        assert [k["killer_username"] for k in feed] == ["player-u3", "player-u1"]

    def test_kill_is_published(self, store):
        broadcaster = Broadcaster()
        subscription = broadcaster.subscribe(tournament_topic("t1"))

        async def scenario():
            service = await self._setup(store, broadcaster)
            await service.add_kill("t1", "u2", "u3", weapon="Vandal")
            events = []
            while True:
                event = await subscription.get(timeout=0.05)
                if event is None:
                    return events
                events.append(event)

        kills = [e for e in asyncio.run(scenario()) if e.event_type == EventType.TOURNAMENT_KILL]
        assert len(kills) == 1
        assert kills[0].data["weapon"] == "Vandal"

    def test_placements_on_completion(self, store):
        async def scenario():
            service = await self._setup(store)
            await service.add_kill("t1", "u3", "u1")
            await service.next_round("t1")
            await service.end_round("t1")
            return await service.leaderboard("t1")

        board = asyncio.run(scenario())
        assert [(r["user_id"], r["placement"]) for r in board] == [("u3", 1), ("u1", 2), ("u2", 3)]

    def test_remove_participant(self, store):
        async def scenario():
            service = await self._setup(store)
            board = await service.leaderboard("t1")
            await service.remove_participant("t1", board[0]["id"])
            try:
                await service.remove_participant("t1", board[0]["id"])
            except RecordNotFound:
                missing = True
            else:
                missing = False
            return missing, await service.leaderboard("t1")

        missing, board = asyncio.run(scenario())
        assert missing
        assert len(board) == 2


class TestStreamService:
    """Tests for streams and their chat."""

    def test_new_streams_start_inactive(self, store):
        row = asyncio.run(StreamService(store).create_stream({"title": "Finals", "is_active": True}))
        assert row["is_active"] is False

    def test_single_active_stream(self, store):
        async def scenario():
            service = StreamService(store)
            for stream_id in ("s1", "s2"):
                await service.create_stream({"id": stream_id, "title": stream_id})
            await service.set_stream_active("s1", True)
            await service.set_stream_active("s2", True)
            return await service.list_streams(), await service.get_active_stream()

        streams, active = asyncio.run(scenario())
        assert [s["id"] for s in streams if s["is_active"]] == ["s2"]
        assert active["id"] == "s2"

    def test_active_falls_back_to_newest(self, store, fake_now):
        async def scenario():
            service = StreamService(store)
            await service.create_stream({"id": "old", "title": "old", "created_at": fake_now()})
            await service.create_stream({"id": "new", "title": "new", "created_at": fake_now.advance(60)})
            return await service.get_active_stream()

        assert asyncio.run(scenario())["id"] == "new"

    def test_no_streams(self, store):
        assert asyncio.run(StreamService(store).get_active_stream()) is None

    def test_messages(self, store):
        broadcaster = Broadcaster()
        subscription = broadcaster.subscribe(stream_topic("s1"))

        async def scenario():
            service = StreamService(store, broadcaster)
            await service.create_stream({"id": "s1", "title": "Finals"})
            first = await service.send_message("s1", "viewer", "hi")
            await asyncio.sleep(0.001)
            await service.send_message("s1", "admin", "welcome", is_admin=True)
            everything = await service.list_messages("s1")
            newer = await service.list_messages("s1", after=first["created_at"])
            event = await subscription.get(timeout=0.1)
            return everything, newer, event

        everything, newer, event = asyncio.run(scenario())
        assert [m["message"] for m in everything] == ["hi", "welcome"]
        assert [m["message"] for m in newer] == ["welcome"]
        assert event.event_type == EventType.CHAT_MESSAGE

    def test_blank_message(self, store):
        async def scenario():
            service = StreamService(store)
            await service.create_stream({"id": "s1", "title": "Finals"})
            await service.send_message("s1", "viewer", " ")

        with pytest.raises(ValueError):
            asyncio.run(scenario())

    def test_message_to_missing_stream(self, store):
        with pytest.raises(RecordNotFound):
            asyncio.run(StreamService(store).send_message("ghost", "viewer", "hi"))

    def test_delete_removes_chat(self, store):
        async def scenario():
            service = StreamService(store)
            await service.create_stream({"id": "s1", "title": "Finals"})
            await service.send_message("s1", "viewer", "hi")
            await service.delete_stream("s1")
            return await store.select("live_chat_messages")

        assert asyncio.run(scenario()) == []

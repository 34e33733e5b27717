"""Tests for broadcast.py, retry.py and timers.py"""

import asyncio
import json

from arena.services.broadcast import BroadcastEvent, Broadcaster, EventType, match_topic
from arena.services.retry import RetryPolicy
from arena.services.timers import call_later, start_timer, stop_timer


class TestBroadcaster:
    """Tests for in-process pub/sub."""

    def test_publish_without_subscribers(self):
        assert Broadcaster().publish("match:x", EventType.MATCH_UPDATED, {}) == 0

    def test_topics_are_isolated(self):
        broadcaster = Broadcaster()
        mine = broadcaster.subscribe(match_topic("a"))
        other = broadcaster.subscribe(match_topic("b"))

        async def scenario():
            delivered = broadcaster.publish(match_topic("a"), EventType.MATCH_STATUS, {"status": "live"})
            return delivered, await mine.get(timeout=0.05), await other.get(timeout=0.05)

        delivered, event, nothing = asyncio.run(scenario())
        assert delivered == 1
        assert event.data == {"status": "live"}
        assert nothing is None

    def test_slow_subscriber_drops_oldest(self):
        broadcaster = Broadcaster(max_queue=2)
        subscription = broadcaster.subscribe("t")
        for i in range(3):
            broadcaster.publish("t", EventType.CHAT_MESSAGE, {"n": i})

        async def drain():
            return [(await subscription.get(timeout=0.05)).data["n"] for _ in range(2)]

        assert asyncio.run(drain()) == [1, 2]
        assert subscription.dropped == 1

    def test_unsubscribe(self):
        broadcaster = Broadcaster()
        subscription = broadcaster.subscribe("t")
        assert broadcaster.subscriber_count() == 1
        subscription.close()
        assert broadcaster.subscriber_count("t") == 0
        subscription.close()

    def test_sse_format(self, fake_now):
        event = BroadcastEvent(EventType.CHAT_MESSAGE, "stream:s1", {"at": fake_now()}, sent_at=fake_now())
        frame = event.to_sse()
        assert frame.startswith("event: chat.message\ndata: ")
        assert frame.endswith("\n\n")
        payload = json.loads(frame.split("data: ", 1)[1])
        assert payload["topic"] == "stream:s1"
        assert payload["data"]["at"] == fake_now().isoformat()

    def test_stream_sends_heartbeat(self):
        async def scenario():
            broadcaster = Broadcaster()
            frames = broadcaster.stream("t", heartbeat=0.01)
            frame = await frames.__anext__()
            await frames.aclose()
            return frame, broadcaster.subscriber_count()

        frame, remaining = asyncio.run(scenario())
        assert frame.startswith("event: heartbeat")
        assert remaining == 0


class TestRetryPolicy:
    """Tests for backoff and staleness."""

    def test_delays_double_up_to_cap(self):
        retry = RetryPolicy(base_delay=0.5, max_delay=4.0)
        assert [retry.delay_for(n) for n in range(0, 6)] == [0.0, 0.5, 1.0, 2.0, 4.0, 4.0]

    def test_ready_after_delay(self, fake_now):
        retry = RetryPolicy(base_delay=2.0, now=fake_now)
        assert retry.ready()
        retry.record_failure(RuntimeError("down"))
        assert not retry.ready()
        fake_now.advance(2.0)
        assert retry.ready()

    def test_stale_and_recovery(self, fake_now):
        retry = RetryPolicy(stale_after=2, now=fake_now)
        retry.record_failure(RuntimeError("one"))
        assert not retry.stale
        retry.record_failure(RuntimeError("two"))
        assert retry.stale
        assert retry.last_error == "two"
        retry.record_success()
        assert not retry.stale
        assert retry.failures == 0
        assert retry.next_attempt_at is None


class TestTimers:
    """Tests for owned timer handles."""

    def test_repeating_timer(self):
        ticks = []

        async def scenario():
            handle = start_timer(0.01, lambda: ticks.append(1), name="test")
            await asyncio.sleep(0.055)
            stop_timer(handle)
            count = len(ticks)
            await asyncio.sleep(0.03)
            return handle, count

        handle, count = asyncio.run(scenario())
        assert count >= 3
        assert len(ticks) == count
        assert not handle.active

    def test_failing_callback_keeps_running(self):
        calls = []

        def explode():
            calls.append(1)
            raise RuntimeError("boom")

        async def scenario():
            handle = start_timer(0.01, explode)
            await asyncio.sleep(0.045)
            stop_timer(handle)

        asyncio.run(scenario())
        assert len(calls) >= 2

    def test_call_later_runs_once(self):
        calls = []

        async def callback():
            calls.append(1)

        async def scenario():
            handle = call_later(0.01, callback)
            await asyncio.sleep(0.05)
            return handle

        handle = asyncio.run(scenario())
        assert calls == [1]
        assert not handle.active

    def test_stop_is_idempotent(self):
        stop_timer(None)

        async def scenario():
            handle = start_timer(0.01, lambda: None)
            stop_timer(handle)
            stop_timer(handle)
            return handle

        assert asyncio.run(scenario()).task is None

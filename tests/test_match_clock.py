"""Tests for match_clock.py"""

import asyncio

import pytest

from arena.services.match_clock import ClockState, MatchClock, format_clock, parse_clock


class TestParsing:
    """Tests for M:SS parsing and formatting."""

    @pytest.mark.parametrize("value,expected", [
        ("5:00", 300),
        ("0:09", 9),
        ("12:34", 754),
        ("90:00", 5400),
    ])
    def test_valid(self, value, expected):
        assert parse_clock(value) == expected

    @pytest.mark.parametrize("value", ["abc", "5:6", "", None, "5:001", ":30", "5-00"])
    def test_invalid(self, value):
        assert parse_clock(value) is None

    def test_format(self):
        assert format_clock(235) == "3:55"
        assert format_clock(9) == "0:09"
        assert format_clock(0) == "0:00"
        assert format_clock(-4) == "0:00"


class TestSet:
    """Tests for setting the clock."""

    @pytest.mark.parametrize("value", ["0:00", "1:05", "5:00", "10:59", "120:30"])
    def test_set_round_trip(self, value):
        """A valid value reads back unchanged."""
        clock = MatchClock()
        assert clock.set(value)
        assert clock.display == value

    @pytest.mark.parametrize("value", ["abc", "5:6", ""])
    def test_set_rejects_invalid(self, value):
        """Invalid input is ignored without touching the display."""
        clock = MatchClock("4:20")
        assert clock.set(value) is False
        assert clock.display == "4:20"

    def test_set_while_running_changes_countdown(self):
        clock = MatchClock("5:00")
        clock.start(schedule=False)
        clock.set("1:00")
        clock.tick()
        assert clock.display == "0:59"


class TestStartPause:
    """Tests for running the clock."""

    def test_start_blank_defaults_to_five_minutes(self):
        clock = MatchClock("")
        clock.start(schedule=False)
        assert clock.display == "5:00"
        assert clock.state == ClockState.RUNNING

    def test_start_at_zero_substitutes_default(self):
        clock = MatchClock("0:00")
        clock.start(schedule=False)
        assert clock.display == "5:00"

    def test_scenario_a_run_then_pause(self):
        """65 ticks from 5:00 shows 3:55; paused it stays there."""
        clock = MatchClock("5:00")
        clock.start(schedule=False)
        for _ in range(65):
            clock.tick()
        assert clock.display == "3:55"

        clock.pause()
        for _ in range(5):
            clock.tick()
        assert clock.display == "3:55"
        assert clock.state == ClockState.STOPPED

    def test_resume_continues_from_display(self):
        clock = MatchClock("2:00")
        clock.start(schedule=False)
        clock.tick()
        clock.pause()
        clock.start(schedule=False)
        clock.tick()
        assert clock.display == "1:58"

    def test_scenario_b_expiry_then_reset(self):
        """Reaching zero stops and pins 0:00 until reset."""
        stops = []
        clock = MatchClock("0:03", on_stop=lambda: stops.append(1))
        clock.start(schedule=False)
        for _ in range(3):
            clock.tick()
        assert clock.display == "0:00"
        assert clock.state == ClockState.STOPPED
        assert stops == [1]

        for _ in range(10):
            clock.tick()
        assert clock.display == "0:00"

        clock.reset()
        assert clock.display == "5:00"
        assert clock.state == ClockState.STOPPED

    def test_on_change_sees_each_second(self):
        changes = []
        clock = MatchClock("0:03", on_change=changes.append)
        clock.start(schedule=False)
        clock.tick()
        clock.tick()
        assert changes == ["0:02", "0:01"]

    def test_reset_while_stopped_does_not_fire_on_stop(self):
        stops = []
        clock = MatchClock("1:00", on_stop=lambda: stops.append(1))
        clock.reset()
        assert stops == []
        assert clock.display == "5:00"

    def test_runs_on_timer(self):
        """With a real timer the clock counts down until paused."""

        async def scenario():
            clock = MatchClock("5:00", tick_seconds=0.01)
            clock.start()
            await asyncio.sleep(0.08)
            clock.pause()
            paused_at = clock.display
            await asyncio.sleep(0.05)
            return paused_at, clock.display

        paused_at, later = asyncio.run(scenario())
        assert paused_at == later
        assert 280 <= parse_clock(paused_at) < 300

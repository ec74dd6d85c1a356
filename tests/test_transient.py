"""Tests for transient detach timers."""

import asyncio

import pytest

from chatlayer.rooms.transient import TransientFaultTracker


class TestTransientFaultTracker:
    """Test TransientFaultTracker."""

    @pytest.mark.asyncio
    async def test_timer_fires_after_timeout(self):
        """Test the expiry callback runs and the entry is dropped."""
        tracker = TransientFaultTracker(0.01, "room")
        fired = []

        assert tracker.start("messages", lambda: fired.append("messages")) is True
        assert tracker.has("messages")

        await asyncio.sleep(0.05)

        assert fired == ["messages"]
        assert not tracker.has("messages")
        assert len(tracker) == 0

    @pytest.mark.asyncio
    async def test_one_timer_per_key(self):
        """Test a second start for the same key is refused."""
        tracker = TransientFaultTracker(0.01, "room")
        fired = []

        assert tracker.start("typing", lambda: fired.append(1)) is True
        assert tracker.start("typing", lambda: fired.append(2)) is False

        await asyncio.sleep(0.05)
        assert fired == [1]

    @pytest.mark.asyncio
    async def test_clear_cancels_timer(self):
        """Test a cleared timer never fires."""
        tracker = TransientFaultTracker(0.01, "room")
        fired = []
        tracker.start("presence", lambda: fired.append(1))

        assert tracker.clear("presence") is True
        assert tracker.clear("presence") is False

        await asyncio.sleep(0.05)
        assert fired == []

    @pytest.mark.asyncio
    async def test_clear_all(self):
        """Test clear_all cancels every pending timer."""
        tracker = TransientFaultTracker(0.01, "room")
        fired = []
        tracker.start("a", lambda: fired.append("a"))
        tracker.start("b", lambda: fired.append("b"))

        tracker.clear_all()

        await asyncio.sleep(0.05)
        assert fired == []
        assert len(tracker) == 0

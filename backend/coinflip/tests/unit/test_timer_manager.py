import asyncio

from coinflip.session.timer_manager import AsyncioClock, TimerManager
from coinflip.tests.mocks import VirtualClock, settle


class TestVirtualClockScheduling:
    async def test_callback_fires_after_delay(self):
        clock = VirtualClock()
        timers = TimerManager(clock)
        fired = []

        async def callback():
            fired.append(clock.now)

        timers.schedule("room-1", 2.0, callback)
        await clock.advance(1.0)
        assert fired == []
        assert timers.has_pending("room-1")

        await clock.advance(1.0)
        assert fired == [2.0]
        assert not timers.has_pending("room-1")
        assert timers.pending_count == 0

    async def test_callbacks_fire_in_deadline_order(self):
        clock = VirtualClock()
        timers = TimerManager(clock)
        order = []

        async def make(label):
            order.append(label)

        timers.schedule("room-1", 3.0, lambda: make("late"))
        timers.schedule("room-2", 1.0, lambda: make("early"))
        await clock.advance(5.0)

        assert order == ["early", "late"]

    async def test_sleep_inside_callback_uses_clock(self):
        clock = VirtualClock()
        timers = TimerManager(clock)
        steps = []

        async def sequence():
            steps.append("start")
            await timers.sleep(3.0)
            steps.append("end")

        timers.schedule("room-1", 0, sequence)
        await clock.advance(0)
        assert steps == ["start"]

        await clock.advance(3.0)
        assert steps == ["start", "end"]

    async def test_cancel_all_stops_pending_callbacks(self):
        clock = VirtualClock()
        timers = TimerManager(clock)
        fired = []

        async def callback():
            fired.append(True)

        timers.schedule("room-1", 1.0, callback)
        await clock.advance(0)
        timers.cancel_all()
        await clock.advance(2.0)

        assert fired == []
        assert timers.pending_count == 0

    async def test_cancelled_task_reports_cancelled(self):
        clock = VirtualClock()
        timers = TimerManager(clock)

        async def callback():
            pass

        task = timers.schedule("room-1", 1.0, callback)
        await clock.advance(0)
        timers.cancel_all()
        await settle()

        assert task.cancelled()

    async def test_failing_callback_is_logged_not_raised(self, caplog):
        clock = VirtualClock()
        timers = TimerManager(clock)

        async def callback():
            raise RuntimeError("boom")

        timers.schedule("room-1", 0, callback)
        await clock.advance(0)

        assert timers.pending_count == 0
        assert "scheduled callback failed" in caplog.text


class TestRealClock:
    async def test_default_clock_is_asyncio(self):
        assert isinstance(TimerManager().clock, AsyncioClock)

    async def test_drain_waits_for_nested_schedules(self):
        timers = TimerManager()
        fired = []

        async def second():
            fired.append("second")

        async def first():
            fired.append("first")
            timers.schedule("room-1", 0.01, second)

        timers.schedule("room-1", 0.01, first)
        await asyncio.wait_for(timers.drain(), timeout=1.0)

        assert fired == ["first", "second"]
        assert timers.pending_count == 0

import asyncio
import heapq
import itertools

# Event loop turns given to woken tasks before time moves on. Flip sequences
# only suspend on the clock, so a handful of turns lets them reach their next sleep.
_SETTLE_TURNS = 20


class VirtualClock:
    """Manually advanced clock for TimerManager.

    sleep() parks the caller until advance() moves virtual time past its
    deadline. Sleepers wake in deadline order, and the loop is given a few
    turns after each wake-up so the woken task can run to its next sleep.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._sleepers: list[tuple[float, int, asyncio.Future[None]]] = []
        self._counter = itertools.count()

    @property
    def pending_sleepers(self) -> int:
        return sum(1 for _, _, fut in self._sleepers if not fut.done())

    async def sleep(self, seconds: float) -> None:
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        heapq.heappush(self._sleepers, (self.now + seconds, next(self._counter), future))
        await future

    async def advance(self, seconds: float) -> None:
        target = self.now + seconds
        await settle()
        while self._sleepers and self._sleepers[0][0] <= target:
            deadline, _, future = heapq.heappop(self._sleepers)
            self.now = max(self.now, deadline)
            if not future.done():
                future.set_result(None)
            await settle()
        self.now = target


async def settle() -> None:
    """Yield to the event loop so ready tasks can run."""
    for _ in range(_SETTLE_TURNS):
        await asyncio.sleep(0)

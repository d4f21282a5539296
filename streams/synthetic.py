from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
import random
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Set, Union

from streams.bus import StreamBus
from streams.models import SIGNAL_FIELDS, SignalVector, clamp_percent

logger = logging.getLogger(__name__)

SignalCallback = Callable[[SignalVector], Union[None, Awaitable[None]]]


class SignalFeed:
    """Simulated EEG headset: a bounded random walk over a SignalVector.

    The current vector is an immutable snapshot replaced on every tick or
    adjustment, so readers never observe a half-updated reading.
    """

    def __init__(
        self,
        bus: Optional[StreamBus] = None,
        interval_ms: int = 1000,
        magnitude: float = 5.0,
        initial: Optional[SignalVector] = None,
        seed: Optional[int] = None,
    ):
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self.bus = bus
        self.interval_ms = interval_ms
        self.magnitude = float(magnitude)
        self._rng = random.Random(seed)
        self._current: SignalVector = initial or SignalVector()
        self._subscribers: Dict[int, SignalCallback] = {}
        self._ids = itertools.count(1)
        self._task: Optional[asyncio.Task] = None
        self._pending: Set["asyncio.Future[Any]"] = set()
        self._ticks = 0

    @property
    def current(self) -> SignalVector:
        return self._current

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def tick_count(self) -> int:
        return self._ticks

    def subscribe(self, callback: SignalCallback) -> Callable[[], None]:
        """Register a listener for new vectors; returns its unsubscribe function."""
        sub_id = next(self._ids)
        self._subscribers[sub_id] = callback

        def _unsubscribe() -> None:
            self._subscribers.pop(sub_id, None)

        return _unsubscribe

    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _fluctuate(self, value: float) -> float:
        return clamp_percent(value + self._rng.uniform(-self.magnitude, self.magnitude))

    def tick(self) -> SignalVector:
        previous = self._current
        self._current = SignalVector(**{name: self._fluctuate(getattr(previous, name)) for name in SIGNAL_FIELDS})
        self._ticks += 1
        self._notify(self._current, source="tick")
        return self._current

    def adjust(self, partial: Mapping[str, float]) -> SignalVector:
        self._current = self._current.with_updates(partial)
        self._notify(self._current, source="adjust")
        return self._current

    def simulate_stress(self, level: float) -> SignalVector:
        cur = self._current
        return self.adjust(
            {
                "stress": cur.stress + level,
                "relaxation": cur.relaxation - level / 2,
                "attention": cur.attention + level / 3,
            }
        )

    def simulate_relaxation(self, level: float) -> SignalVector:
        cur = self._current
        return self.adjust(
            {
                "relaxation": cur.relaxation + level,
                "stress": cur.stress - level / 2,
                "attention": cur.attention - level / 4,
            }
        )

    def simulate_recognition(self, recognized: bool) -> SignalVector:
        cur = self._current
        if recognized:
            return self.adjust({"recognition": cur.recognition + 30, "attention": cur.attention + 10})
        return self.adjust({"recognition": cur.recognition - 20, "stress": cur.stress + 15})

    def _notify(self, vector: SignalVector, source: str) -> None:
        try:
            loop: Optional[asyncio.AbstractEventLoop] = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        for callback in list(self._subscribers.values()):
            if loop is not None and not inspect.iscoroutinefunction(callback):
                # plain callbacks may block (store writes); keep them off the loop
                self._track(loop.run_in_executor(None, self._call_plain, callback, vector))
                continue
            try:
                result = callback(vector)
            except Exception:
                logger.exception("Signal subscriber %r failed", callback)
                continue
            if inspect.isawaitable(result):
                self._spawn(result, loop)
        if self.bus is not None:
            self.bus.publish_nowait(
                {
                    "kind": "signal",
                    "signal": vector.model_dump(mode="json", by_alias=True),
                    "meta": {
                        "source": source,
                        "tick": self._ticks,
                        "ts_ms": int(datetime.now(tz=timezone.utc).timestamp() * 1000),
                    },
                }
            )

    def _call_plain(self, callback: SignalCallback, vector: SignalVector) -> None:
        result = callback(vector)
        if inspect.iscoroutine(result):
            # a plain function handed back a coroutine; there is no loop in this thread
            result.close()
            logger.warning("Signal subscriber %r returned a coroutine from a worker thread", callback)

    def _spawn(self, awaitable: Awaitable[Any], loop: Optional[asyncio.AbstractEventLoop]) -> None:
        if loop is None:
            # no running loop: nothing can drive the coroutine
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            logger.warning("Dropped async signal subscriber outside an event loop")
            return
        self._track(asyncio.ensure_future(awaitable, loop=loop))

    def _track(self, future: "asyncio.Future[Any]") -> None:
        self._pending.add(future)
        future.add_done_callback(self._reap)

    def _reap(self, future: "asyncio.Future[Any]") -> None:
        self._pending.discard(future)
        if not future.cancelled() and future.exception() is not None:
            logger.error("Signal subscriber failed: %s", future.exception())

    async def start(self) -> bool:
        if self.running:
            return False

        async def _runner() -> None:
            try:
                while True:
                    await asyncio.sleep(self.interval_ms / 1000.0)
                    self.tick()
            except asyncio.CancelledError:
                return

        self._task = asyncio.create_task(_runner())
        logger.info("Signal feed started (interval=%sms, magnitude=%s)", self.interval_ms, self.magnitude)
        return True

    def stop(self) -> bool:
        task, self._task = self._task, None
        if task is None or task.done():
            return False
        task.cancel()
        logger.info("Signal feed stopped after %s ticks", self._ticks)
        return True

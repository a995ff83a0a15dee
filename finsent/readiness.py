"""
Backend Readiness Poller
Probes the liveness endpoint until the backend answers, with a progress estimate
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

import aiohttp

from .errors import ProbeFailure

log = logging.getLogger(__name__)

DEBUG_PROGRESS = 80.0


class ReadinessState(str, Enum):
    PROBING = 'probing'
    READY = 'ready'
    DEBUG = 'debug'


@dataclass(frozen=True)
class ReadinessSnapshot:
    state: ReadinessState
    attempt_count: int
    progress: float

    @property
    def is_ready(self) -> bool:
        return self.state is ReadinessState.READY


class Cancellable(Protocol):
    def cancel(self): ...


class Scheduler(Protocol):
    """Timer and task source; swapped for a fake in tests"""

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable: ...

    def spawn(self, coro: Awaitable) -> Cancellable: ...


class AsyncioScheduler:
    """Scheduler backed by the running event loop"""

    def call_later(self, delay, callback):
        return asyncio.get_running_loop().call_later(delay, callback)

    def spawn(self, coro):
        return asyncio.get_running_loop().create_task(coro)


# What a probe may raise when the backend is still cold
PROBE_ERRORS = (ProbeFailure, asyncio.TimeoutError, aiohttp.ClientError, OSError)


class ReadinessPoller:
    """
    probing -> ready (terminal), probing <-> debug (user toggled).

    A tick fires immediately on start and then every `interval` seconds. Each
    tick launches one probe bounded by `timeout`, unless the previous probe is
    still outstanding. Failures bump attempt_count; the first success moves to
    ready and stops the timer. Debug mode cancels everything and pins progress
    at 80 without touching the network.

    Outcomes are tagged with a generation number; anything that lands after the
    poller left probing (or after a debug round trip) is dropped.
    """

    def __init__(self, probe: Callable[[], Awaitable], *,
                 interval: float = 1.5, timeout: float = 1.0, max_attempts: int = 8,
                 scheduler: Optional[Scheduler] = None):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self._probe = probe
        self.interval = interval
        self.timeout = timeout
        self.max_attempts = max_attempts
        self._scheduler = scheduler or AsyncioScheduler()

        self._state = ReadinessState.PROBING
        self._attempt_count = 0
        self._running = False
        self._generation = 0
        self._timer: Optional[Cancellable] = None
        self._inflight: Optional[Cancellable] = None
        self._handlers: list = []

    # -- read side -------------------------------------------------------

    @property
    def state(self) -> ReadinessState:
        return self._state

    @property
    def attempt_count(self) -> int:
        return self._attempt_count

    @property
    def progress(self) -> float:
        if self._state is ReadinessState.DEBUG:
            return DEBUG_PROGRESS
        if self._state is ReadinessState.READY:
            return 100.0
        return min(100.0, self._attempt_count * (100.0 / self.max_attempts))

    @property
    def snapshot(self) -> ReadinessSnapshot:
        return ReadinessSnapshot(self._state, self._attempt_count, self.progress)

    @property
    def probe_pending(self) -> bool:
        return self._inflight is not None

    def on_state_change(self, handler: Callable[[ReadinessSnapshot], None]):
        """Register an observer; returns a callable that unregisters it"""
        self._handlers.append(handler)

        def unsubscribe():
            if handler in self._handlers:
                self._handlers.remove(handler)
        return unsubscribe

    def _notify(self):
        snap = self.snapshot
        for handler in list(self._handlers):
            handler(snap)

    # -- lifecycle -------------------------------------------------------

    def start(self):
        if self._running:
            return
        self._running = True
        if self._state is ReadinessState.PROBING:
            self._tick()

    def stop(self):
        self._running = False
        self._cancel_pending()

    def enter_debug(self):
        if self._state is not ReadinessState.PROBING:
            # Already in debug, or ready (terminal)
            log.debug("[READY] enter_debug ignored in state %s", self._state.value)
            return
        self._cancel_pending()
        self._state = ReadinessState.DEBUG
        log.info("[READY] Debug mode: simulating cold start")
        self._notify()

    def exit_debug(self):
        if self._state is not ReadinessState.DEBUG:
            return
        self._state = ReadinessState.PROBING
        self._attempt_count = 0
        log.info("[READY] Debug mode off, probing again")
        self._notify()
        if self._running:
            self._tick()

    # -- polling ---------------------------------------------------------

    def _cancel_pending(self):
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._inflight is not None:
            self._inflight.cancel()
            self._inflight = None

    def _tick(self):
        self._timer = None
        if not self._running or self._state is not ReadinessState.PROBING:
            return
        self._timer = self._scheduler.call_later(self.interval, self._tick)
        if self._inflight is not None:
            log.debug("[PROBE] Previous probe still pending, skipping tick")
            return
        self._inflight = self._scheduler.spawn(self._run_probe(self._generation))

    async def _run_probe(self, generation: int):
        try:
            await asyncio.wait_for(self._probe(), timeout=self.timeout)
            ok = True
        except PROBE_ERRORS as e:
            log.debug("[PROBE] Backend not ready: %r", e)
            ok = False
        except Exception as e:
            # Injected checks may raise anything; polling must keep going
            log.warning("[PROBE] Liveness check raised %r", e)
            ok = False

        if generation != self._generation or self._state is not ReadinessState.PROBING:
            log.debug("[PROBE] Discarding stale probe result")
            return
        self._inflight = None
        if ok:
            self._mark_ready()
        else:
            self._attempt_count += 1
            self._notify()

    def _mark_ready(self):
        self._state = ReadinessState.READY
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        log.info("[READY] Backend ready after %d failed probes", self._attempt_count)
        self._notify()

    async def wait_ready(self) -> ReadinessSnapshot:
        """Resolve once the backend is ready (asyncio scheduler only)"""
        ready = asyncio.Event()

        def on_change(snap: ReadinessSnapshot):
            if snap.is_ready:
                ready.set()

        unsubscribe = self.on_state_change(on_change)
        try:
            if self._state is not ReadinessState.READY:
                await ready.wait()
        finally:
            unsubscribe()
        return self.snapshot

"""Cancellable one-shot timers.

Each state machine owns its handles; re-arming means cancelling the old
handle and storing the new one. Cancelling only stops the callback from
running, it never undoes a write the callback already made.
"""

import logging
import time
from typing import Callable, List, Optional


class TimerHandle:
    def __init__(self, deadline: float, label: str = ''):
        self.deadline = deadline
        self.label = label
        self.cancelled = False
        self.fired = False

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)

    def cancel(self) -> None:
        self.cancelled = True

    def __repr__(self):
        state = 'fired' if self.fired else 'cancelled' if self.cancelled else 'pending'
        return f"<TimerHandle {self.label} {state} deadline={self.deadline:.3f}>"


def cancel(handle: Optional[TimerHandle]) -> None:
    if handle is not None:
        handle.cancel()


class BackgroundScheduler:
    """Runs each timer as a Socket.IO background task that sleeps until its deadline."""

    def __init__(self, start_task: Optional[Callable] = None, sleep: Optional[Callable] = None,
                 heartbeat_sec: int = 0, logger: Optional[logging.Logger] = None):
        if start_task is None or sleep is None:
            from oldheck import socketio
            start_task = start_task or socketio.start_background_task
            sleep = sleep or socketio.sleep
        self._start_task = start_task
        self._sleep = sleep
        self._heartbeat = heartbeat_sec
        self.logger = logger or logging.getLogger(__name__)

    def now(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: Callable[[], None], label: str = '') -> TimerHandle:
        handle = TimerHandle(self.now() + delay, label)
        self.logger.info(f"[timer-set] {label} duration={delay}s deadline={handle.deadline:.3f}")

        def _runner():
            while not handle.cancelled:
                remaining = handle.deadline - time.time()
                if remaining <= 0:
                    break
                step = min(self._heartbeat, remaining) if self._heartbeat > 0 else remaining
                self._sleep(step)
                if self._heartbeat > 0:
                    self.logger.info(f"[timer-heartbeat] {label} remaining={max(0.0, handle.deadline - time.time()):.1f}s")
            if handle.cancelled:
                self.logger.info(f"[timer-abort] {label} cancelled")
                return
            handle.fired = True
            self.logger.info(f"[timer-fire] {label}")
            callback()

        self._start_task(_runner)
        return handle


class ManualScheduler:
    """Deterministic clock for TESTING: timers fire only when `advance` passes their deadline."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._now = 0.0
        self._pending: List[tuple] = []
        self._seq = 0
        self.logger = logger or logging.getLogger(__name__)

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None], label: str = '') -> TimerHandle:
        handle = TimerHandle(self._now + delay, label)
        self._seq += 1
        self._pending.append((handle.deadline, self._seq, handle, callback))
        self.logger.debug(f"[timer-set] {label} duration={delay}s")
        return handle

    @property
    def pending(self) -> List[TimerHandle]:
        return [h for _, _, h, _ in sorted(self._pending, key=lambda p: p[:2]) if h.active]

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due timers in deadline order.

        Timers armed by a callback fire in the same call if they fall due
        before the new time.
        """
        target = self._now + seconds
        while True:
            due = [p for p in self._pending if p[0] <= target and p[2].active]
            if not due:
                break
            entry = min(due, key=lambda p: p[:2])
            self._pending.remove(entry)
            deadline, _, handle, callback = entry
            self._now = max(self._now, deadline)
            handle.fired = True
            self.logger.debug(f"[timer-fire] {handle.label}")
            callback()
        self._pending = [p for p in self._pending if p[2].active]
        self._now = target

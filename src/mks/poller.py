"""Convergence polling.

``wait_for_state`` blocks until a refresh function reports a target status,
the refresh fails, the timeout elapses, or the caller cancels. Polling is
sequential: one refresh at a time, sleeping in between.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Collection
from dataclasses import dataclass
from typing import Any

from mks._config import PollSchedule
from mks.exceptions import (
    ConvergenceCancelled,
    ConvergenceError,
    ConvergenceTimeout,
    MksError,
)

logger = logging.getLogger("mks.poller")

RefreshFunc = Callable[[], "tuple[Any, str]"]


@dataclass
class ConvergenceRequest:
    """One wait operation.

    ``refresh`` returns ``(observed_value, status)`` and raises on failure.
    All durations are in seconds.
    """

    pending: Collection[str]
    target: Collection[str]
    refresh: RefreshFunc
    timeout: float
    min_timeout: float = 0.0
    delay: float = 0.0
    poll_interval: float = 0.0
    description: str = "remote state"

    @classmethod
    def from_schedule(
        cls,
        schedule: PollSchedule,
        *,
        pending: Collection[str],
        target: Collection[str],
        refresh: RefreshFunc,
        description: str = "remote state",
        max_timeout: float | None = None,
    ) -> ConvergenceRequest:
        """Build a request from a schedule, optionally capping its timeout."""
        timeout = schedule.timeout
        if max_timeout is not None:
            timeout = min(timeout, max_timeout)
        return cls(
            pending=pending,
            target=target,
            refresh=refresh,
            timeout=timeout,
            min_timeout=schedule.min_timeout,
            delay=schedule.delay,
            poll_interval=schedule.poll_interval,
            description=description,
        )

    @property
    def interval(self) -> float:
        return max(self.poll_interval, self.min_timeout)


class Sleeper:
    """Sleeps that wake early when ``cancel`` is set."""

    def __init__(self, cancel: threading.Event | None = None) -> None:
        self.cancel = cancel

    @property
    def cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()

    def check(self, what: str) -> None:
        if self.cancelled:
            raise ConvergenceCancelled(f"cancelled while waiting for {what}")

    def __call__(self, seconds: float) -> None:
        if seconds <= 0:
            return
        if self.cancel is None:
            time.sleep(seconds)
        else:
            self.cancel.wait(seconds)


def wait_for_state(
    request: ConvergenceRequest,
    *,
    cancel: threading.Event | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] | None = None,
) -> Any:
    """Poll until ``request.refresh`` reports a target status.

    Args:
        request: What to poll and for how long.
        cancel: Set by the caller to abort; checked before and after every sleep.
        clock: Monotonic clock, injectable for tests.
        sleep: Sleep function, injectable for tests. Defaults to a sleep that
            wakes when ``cancel`` is set.

    Returns:
        The observed value from the refresh that reached a target status.

    Raises:
        ConvergenceTimeout: The timeout elapsed first.
        ConvergenceCancelled: ``cancel`` was set.
        ConvergenceError: The refresh raised or returned an unexpected status.
    """
    sleeper = Sleeper(cancel)
    sleep = sleep or sleeper
    what = request.description
    deadline = clock() + request.timeout
    last_status: str | None = None

    def pause(seconds: float) -> None:
        sleeper.check(what)
        seconds = min(seconds, max(deadline - clock(), 0.0))
        if seconds > 0:
            sleep(seconds)
        sleeper.check(what)

    def timed_out() -> ConvergenceTimeout:
        return ConvergenceTimeout(
            f"timeout while waiting for {what} to become {_join(request.target)} "
            f"(last state: {last_status!r}, timeout: {request.timeout:g}s)",
            timeout=request.timeout,
            last_status=last_status,
        )

    logger.debug("Waiting %gs before polling %s", request.delay, what)
    pause(request.delay)

    attempts = 0
    while True:
        if clock() >= deadline:
            raise timed_out()

        attempts += 1
        try:
            value, status = request.refresh()
        except ConvergenceError:
            raise
        except MksError as e:
            raise ConvergenceError(
                f"error while waiting for {what}: {e}", last_status=last_status
            ) from e
        last_status = status
        logger.debug("Poll %d of %s: %s", attempts, what, status)

        if status in request.target:
            return value

        if status not in request.pending:
            raise ConvergenceError(
                f"unexpected state {status!r} while waiting for {what}, "
                f"wanted target {_join(request.target)}",
                last_status=status,
            )

        if clock() >= deadline:
            raise timed_out()
        pause(request.interval)


def _join(statuses: Collection[str]) -> str:
    return ", ".join(sorted(str(s) for s in statuses))

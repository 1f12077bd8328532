"""Adaptive polling for long-running remote jobs."""

import asyncio
import time
from enum import Enum
from typing import Any, Awaitable, Callable, NamedTuple, Optional

from loguru import logger

from .exceptions import ConfigurationError, PollingFailedError, PollingTimeoutError

MINUTE = 60.0
HOUR = 60 * MINUTE

DEFAULT_MULTIPLIER = 1.5


class PollState(str, Enum):
    """Classification of a single status check."""

    READY = 'ready'
    FAILED = 'failed'
    IN_PROGRESS = 'in_progress'
    UNRECOGNIZED = 'unrecognized'


class PollResult(NamedTuple):
    """Outcome of a single status check."""

    state: PollState
    value: Any = None
    detail: str = ''


CheckFunc = Callable[[], Awaitable[PollResult]]
ProgressFunc = Callable[[float, float], Awaitable[None]]


class AdaptivePoller:
    """Polls a remote job with an interval that grows as the job runs longer.

    While ``elapsed < fast_phase`` the poller checks every ``initial`` seconds
    to catch quick completions. After that the interval grows geometrically,
    capped at ``maximum``. The whole wait is bounded by ``timeout``.

    All durations are in seconds.
    """

    def __init__(
        self,
        initial: float,
        fast_phase: float,
        maximum: float,
        timeout: float,
        multiplier: float = DEFAULT_MULTIPLIER,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        if initial <= 0:
            raise ConfigurationError('initial poll interval must be positive')
        if maximum < initial:
            raise ConfigurationError('maximum poll interval must be >= initial')
        if fast_phase < 0:
            raise ConfigurationError('fast phase duration must not be negative')
        if multiplier < 1:
            raise ConfigurationError('backoff multiplier must be >= 1')
        if timeout <= 0:
            raise ConfigurationError('poll timeout must be positive')

        self.initial = initial
        self.fast_phase = fast_phase
        self.maximum = maximum
        self.timeout = timeout
        self.multiplier = multiplier
        self._sleep = sleep
        self._clock = clock

    @classmethod
    def for_archives(cls, **kwargs) -> 'AdaptivePoller':
        """Poller tuned for source archive exports (up to 24 hours)."""
        params = dict(
            initial=30.0, fast_phase=10 * MINUTE, maximum=5 * MINUTE, timeout=24 * HOUR
        )
        params.update(kwargs)
        return cls(**params)

    @classmethod
    def for_migrations(cls, **kwargs) -> 'AdaptivePoller':
        """Poller tuned for destination imports (up to 48 hours)."""
        params = dict(
            initial=30.0, fast_phase=15 * MINUTE, maximum=10 * MINUTE, timeout=48 * HOUR
        )
        params.update(kwargs)
        return cls(**params)

    def interval(self, elapsed: float) -> float:
        """Compute the delay before the next check.

        Args:
            elapsed: Seconds since polling started

        Returns:
            Seconds to wait, never decreasing as ``elapsed`` grows
        """
        if elapsed < self.fast_phase:
            return self.initial

        exponent = (elapsed - self.fast_phase) / self.initial
        try:
            backoff = self.initial * self.multiplier**exponent
        except OverflowError:
            return self.maximum
        return min(self.maximum, backoff)

    async def wait_for(
        self,
        check: CheckFunc,
        description: str,
        on_progress: Optional[ProgressFunc] = None,
    ) -> Any:
        """Poll ``check`` until it reports ready.

        The first check runs immediately. Unrecognized states are treated as
        still in progress. Cancellation of the calling task propagates out of
        the wait at once.

        Args:
            check: Coroutine function returning a PollResult
            description: Human readable name of the job, used in messages
            on_progress: Called with (elapsed, next_interval) after every
                check that did not finish the wait

        Returns:
            The ``value`` of the ready PollResult

        Raises:
            PollingFailedError: If a check reports a failed state
            PollingTimeoutError: If the deadline passes first
        """
        started = self._clock()
        deadline = started + self.timeout
        last_interval = self.initial
        delay = 0.0

        while True:
            if delay > 0:
                await self._sleep(delay)

            if self._clock() >= deadline:
                raise PollingTimeoutError(
                    f'{description} timeout exceeded ({self.timeout / HOUR:g} hours)'
                )

            result = await check()

            if result.state == PollState.READY:
                logger.info(
                    f'{description} ready after {self._clock() - started:.0f}s'
                )
                return result.value

            if result.state == PollState.FAILED:
                raise PollingFailedError(result.detail or f'{description} failed')

            if result.state == PollState.UNRECOGNIZED:
                logger.warning(
                    f'{description} reported unrecognized state '
                    f'{result.detail!r}, continuing to poll'
                )

            elapsed = self._clock() - started
            next_interval = self.interval(elapsed)

            if on_progress is not None:
                await on_progress(elapsed, next_interval)

            if next_interval > last_interval:
                logger.info(
                    f'Adjusting {description} poll interval from '
                    f'{last_interval:.0f}s to {next_interval:.0f}s '
                    f'after {elapsed:.0f}s'
                )
                last_interval = next_interval

            delay = min(next_interval, max(0.0, deadline - self._clock()))

# src/whodb/e2e/matrix/waiting.py
"""Bounded polling for UI transitions and eventually-consistent backends."""
import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Optional, Union

from .errors import WaitTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
DEFAULT_INTERVAL = 0.25


def wait_for(predicate: Callable[[], Any], timeout: float = DEFAULT_TIMEOUT,
             interval: float = DEFAULT_INTERVAL, message: Optional[str] = None,
             clock: Callable[[], float] = time.monotonic,
             sleep: Callable[[float], None] = time.sleep) -> Any:
    """Poll ``predicate`` until it returns a truthy value and return that value.

    An ``AssertionError`` raised by the predicate counts as "not yet"; the last
    one is chained to the ``WaitTimeoutError`` raised when ``timeout`` expires.
    The predicate is always evaluated at least once.
    """
    deadline = clock() + timeout
    attempts = 0
    last_error: Optional[AssertionError] = None
    while True:
        attempts += 1
        try:
            result = predicate()
            if result:
                return result
            last_error = None
        except AssertionError as e:
            last_error = e
        if clock() >= deadline:
            break
        sleep(interval)
    description = message or getattr(predicate, "__name__", "condition")
    if last_error is not None:
        description = f"{description}: {last_error}"
    logger.debug(f"Wait for {description} gave up after {attempts} attempts")
    raise WaitTimeoutError(description, timeout, attempts) from last_error


async def async_wait_for(predicate: Callable[[], Union[Any, Awaitable[Any]]],
                         timeout: float = DEFAULT_TIMEOUT, interval: float = DEFAULT_INTERVAL,
                         message: Optional[str] = None,
                         clock: Callable[[], float] = time.monotonic) -> Any:
    """Asynchronous ``wait_for``; the predicate may be a plain or a coroutine function."""
    deadline = clock() + timeout
    attempts = 0
    last_error: Optional[AssertionError] = None
    while True:
        attempts += 1
        try:
            result = predicate()
            if inspect.isawaitable(result):
                result = await result
            if result:
                return result
            last_error = None
        except AssertionError as e:
            last_error = e
        if clock() >= deadline:
            break
        await asyncio.sleep(interval)
    description = message or getattr(predicate, "__name__", "condition")
    if last_error is not None:
        description = f"{description}: {last_error}"
    raise WaitTimeoutError(description, timeout, attempts) from last_error


def settle_mutations(fixture, sleep: Callable[[float], None] = time.sleep) -> float:
    """Wait out the fixture's mutation visibility delay; returns the seconds waited."""
    delay = fixture.mutation_delay
    if delay > 0:
        logger.debug(f"Waiting {delay:.3f}s for mutations on {fixture.id} to become visible")
        sleep(delay)
    return delay


async def async_settle_mutations(fixture) -> float:
    delay = fixture.mutation_delay
    if delay > 0:
        await asyncio.sleep(delay)
    return delay

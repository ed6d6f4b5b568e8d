"""
Retry utilities for node lifecycle operations.

Two combinators share one policy object:
- retry(): re-run an operation until it succeeds (or, inverted, until it fails)
- retry_until_true(): poll a predicate until it returns anything but False
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

from rich.console import Console

from chainbox.commands.constants import (
    DEFAULT_REJECTION_MESSAGE,
    START_RETRIES,
    START_RETRY_DELAY,
    STOP_POLL_DELAY,
    STOP_POLL_RETRIES,
)
from chainbox.commands.errors import (
    NodeError,
    RetryExhaustedError,
    RpcError,
    ValidationError,
)

logger = logging.getLogger(__name__)
console = Console()


class RetryPolicy:
    """Configuration for retry behavior.

    Attributes:
        max_retries: Additional attempts after the first one
        delay: Seconds to wait between attempts (never before the first)
        rejection_message: Message of the RetryExhaustedError raised on exhaustion
        retry_until_failure: retry() only; keep going until the operation fails
        throw_on_exhaustion: retry_until_true() only; raise instead of returning False
        retry_on: Exception types counted as a failed attempt
    """

    def __init__(
        self,
        max_retries: int,
        delay: float = 0,
        rejection_message: str = DEFAULT_REJECTION_MESSAGE,
        retry_until_failure: bool = False,
        throw_on_exhaustion: bool = False,
        retry_on: tuple = (Exception,),
    ):
        if isinstance(max_retries, bool) or not isinstance(max_retries, int):
            raise ValidationError(
                "max_retries must be an integer", field="max_retries", value=max_retries
            )
        if max_retries < 0:
            raise ValidationError(
                "max_retries must not be negative",
                field="max_retries",
                value=max_retries,
            )
        if isinstance(delay, bool) or not isinstance(delay, (int, float)):
            raise ValidationError("delay must be a number", field="delay", value=delay)
        if delay < 0:
            raise ValidationError(
                "delay must not be negative", field="delay", value=delay
            )
        if not retry_on:
            raise ValidationError("retry_on must name at least one exception type")

        self.max_retries = max_retries
        self.delay = delay
        self.rejection_message = rejection_message
        self.retry_until_failure = retry_until_failure
        self.throw_on_exhaustion = throw_on_exhaustion
        self.retry_on = tuple(retry_on)

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def __repr__(self) -> str:
        return (
            f"RetryPolicy(max_retries={self.max_retries}, delay={self.delay}, "
            f"retry_until_failure={self.retry_until_failure}, "
            f"throw_on_exhaustion={self.throw_on_exhaustion})"
        )


async def _invoke(func: Callable[[], Any]) -> Any:
    """Call a sync or async zero-argument callable and return its result."""
    result = func()
    if inspect.isawaitable(result):
        result = await result
    return result


async def _wait_before(attempt: int, policy: RetryPolicy) -> None:
    if attempt > 0 and policy.delay > 0:
        await asyncio.sleep(policy.delay)


async def retry(policy: RetryPolicy, operation: Callable[[], Any]) -> Any:
    """
    Re-run an operation under a bounded retry policy.

    Args:
        policy: RetryPolicy controlling attempts, delay and mode
        operation: Zero-argument callable (sync or async)

    Returns:
        The first successful result. In inverted mode (retry_until_failure),
        None once the operation fails.

    Raises:
        RetryExhaustedError: If the budget runs out first
        Exception: Anything not listed in policy.retry_on, unchanged
    """
    last_exception: Optional[BaseException] = None

    for attempt in range(policy.max_attempts):
        await _wait_before(attempt, policy)

        try:
            result = await _invoke(operation)
        except policy.retry_on as e:
            if policy.retry_until_failure:
                return None
            last_exception = e
            console.print(
                f"[yellow]⚠️  Attempt {attempt + 1}/{policy.max_attempts} failed: {e}[/yellow]"
            )
            continue

        if not policy.retry_until_failure:
            return result
        logger.debug("Operation still succeeding on attempt %d", attempt + 1)

    raise RetryExhaustedError(
        policy.rejection_message,
        attempts=policy.max_attempts,
        last_error=last_exception,
    ) from last_exception


async def retry_until_true(policy: RetryPolicy, predicate: Callable[[], Any]) -> Any:
    """
    Poll a predicate until it returns something other than False.

    Exceptions raised by the predicate are logged and count as "not yet".

    Args:
        policy: RetryPolicy controlling attempts, delay and exhaustion behavior
        predicate: Zero-argument callable (sync or async)

    Returns:
        The first result that is not the boolean False, or False when the
        budget runs out and policy.throw_on_exhaustion is not set.

    Raises:
        RetryExhaustedError: If the budget runs out and throw_on_exhaustion is set
    """
    for attempt in range(policy.max_attempts):
        await _wait_before(attempt, policy)

        try:
            result = await _invoke(predicate)
        except policy.retry_on as e:
            console.print(
                f"[yellow]⚠️  Check {attempt + 1}/{policy.max_attempts} raised: {e}[/yellow]"
            )
            continue

        if result is not False:
            return result

    if policy.throw_on_exhaustion:
        raise RetryExhaustedError(
            policy.rejection_message, attempts=policy.max_attempts
        )
    return False


# Common retry policies
START_RETRY_POLICY = RetryPolicy(
    max_retries=START_RETRIES,
    delay=START_RETRY_DELAY,
    rejection_message="Could not start node: retry limit reached",
    retry_on=(NodeError, RpcError, OSError),
)

STOP_POLL_POLICY = RetryPolicy(
    max_retries=STOP_POLL_RETRIES,
    delay=STOP_POLL_DELAY,
    throw_on_exhaustion=False,
)

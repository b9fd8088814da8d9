"""
Reconnect policy for transport-level failures.

Implements the bounded reconnect loop with tenacity: only
``TransientTransportError`` triggers another attempt, every other exception
(and every received HTTP response) passes straight through.
"""

import logging
from typing import Any, Callable, TypeVar

from tenacity import (
    RetryError,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_none,
    wait_random_exponential,
)

from .config import RetryConfig
from .exceptions import APIConnectionError

T = TypeVar("T")


class TransientTransportError(Exception):
    """
    A send failed below HTTP (reset, timeout, malformed response, early EOF).

    Internal signal between the transport and the retry policy; callers only
    ever see the ``APIConnectionError`` raised once the budget is spent.
    """

    def __init__(self, host: str, cause: Exception):
        self.host = host
        self.cause = cause
        super().__init__(f"{type(cause).__name__}: {cause}")


def _wait_strategy(config: RetryConfig) -> Any:
    if config.max_wait_seconds <= 0:
        return wait_none()
    if config.jitter:
        return wait_random_exponential(
            multiplier=config.multiplier,
            min=config.min_wait_seconds,
            max=config.max_wait_seconds,
        )
    return wait_exponential(
        multiplier=config.multiplier,
        min=config.min_wait_seconds,
        max=config.max_wait_seconds,
    )


def create_retry_decorator(config: RetryConfig, host: str, attempts: int = 0) -> Any:
    """
    Create a tenacity retry decorator for one logical send.

    Args:
        config: Retry configuration
        host: Host being talked to, for log messages
        attempts: Reconnects already spent by the caller

    Returns:
        Configured tenacity retry decorator
    """
    logger = logging.getLogger(f"{__name__}.retry")
    remaining = max(config.max_attempts - attempts, 0)

    def log_reconnect(retry_state: Any) -> None:
        if retry_state.outcome and retry_state.outcome.failed:
            exception = retry_state.outcome.exception()
            logger.debug(
                f"Send to {host} failed with [{exception}]. Reconnecting "
                f"(attempt {attempts + retry_state.attempt_number} "
                f"of {config.max_attempts})"
            )

    return retry(
        retry=retry_if_exception_type(TransientTransportError),
        # The first send plus `remaining` reconnects
        stop=stop_after_attempt(remaining + 1),
        wait=_wait_strategy(config),
        before_sleep=log_reconnect,
        reraise=False,
    )


class RetryPolicy:
    """
    Runs operations under the reconnect policy and converts an exhausted
    budget into ``APIConnectionError``.
    """

    def __init__(self, config: RetryConfig):
        self.config = config
        self.logger = logging.getLogger(f"{__name__}.RetryPolicy")

    def call(self, func: Callable[[], T], host: str, attempts: int = 0) -> T:
        """
        Run ``func`` until it succeeds, fails terminally, or runs out of reconnects.

        Args:
            func: Zero-argument operation performing one send
            host: Host being talked to
            attempts: Reconnects already spent by the caller

        Raises:
            APIConnectionError: After the reconnect budget is exhausted
        """
        wrapped = create_retry_decorator(self.config, host, attempts)(func)
        try:
            return wrapped()  # type: ignore[no-any-return]
        except RetryError as e:
            total = max(self.config.max_attempts, attempts)
            self.logger.warning(f"Giving up on {host} after {total} attempts")
            raise APIConnectionError(
                f"Unable to reconnect to {host} after {total} attempts",
                host=host,
                attempts=total,
            ) from e.last_attempt.exception()

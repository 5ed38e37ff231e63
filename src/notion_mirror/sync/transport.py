"""Batched, retrying writes to the remote workspace.

The Notion API rate-limits aggressively and occasionally fails large
appends with 5xx errors.  ``RetryingTransport.send`` splits a block list
into batches and writes them in order; when a batch fails with a retryable
error it waits, halves the batch, and tries again.  The smaller size sticks
for the rest of the list.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

from ..core.client import is_retryable_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry and pacing parameters.

    Attributes:
        max_attempts: Attempts per batch (or per call) before giving up.
        initial_backoff: Seconds to wait before the first retry.
        backoff_factor: Multiplier applied to the wait after each retry.
        request_delay: Seconds between consecutive successful writes.
        batch_size: Default number of items per batch.
        is_retryable: Decides whether an exception is worth retrying.
    """

    max_attempts: int = 3
    initial_backoff: float = 0.5
    backoff_factor: float = 2.0
    request_delay: float = 0.2
    batch_size: int = 30
    is_retryable: Callable[[BaseException], bool] = is_retryable_error

    def backoff(self, attempt: int) -> float:
        """Wait before retry number *attempt* (1-based)."""
        return self.initial_backoff * self.backoff_factor ** (attempt - 1)


@dataclass(frozen=True)
class Batch:
    """An immutable slice of items sent in one request."""

    items: tuple[Any, ...]

    def __len__(self) -> int:
        return len(self.items)

    def halved(self) -> Batch:
        """The leading half of this batch, never fewer than one item."""
        return Batch(self.items[: max(1, len(self.items) // 2)])


@dataclass(frozen=True)
class SendResult:
    """Outcome of ``RetryingTransport.send``.

    Attributes:
        sent: Items written successfully, counted from the start.
        total: Items requested.
        batch_size: Batch size in effect when sending stopped.
        error: The error that stopped sending, or None.
    """

    sent: int
    total: int
    batch_size: int
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RetryingTransport:
    """Applies a ``RetryPolicy`` to remote writes.

    Args:
        policy: Retry and pacing parameters.
        sleep: Blocking sleep function (replaceable in tests).
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    def pause(self) -> None:
        """Wait the configured inter-request delay."""
        if self.policy.request_delay > 0:
            self._sleep(self.policy.request_delay)

    def send(
        self,
        items: Sequence[Any],
        write: Callable[[list[Any]], None],
        batch_size: int | None = None,
    ) -> SendResult:
        """Write *items* in order through *write*, one batch per call.

        Non-retryable errors stop sending immediately.  Retryable errors
        are retried with backoff and a halved batch until the batch has
        used ``max_attempts`` attempts.

        Returns:
            A ``SendResult``; ``sent`` items are on the remote even when
            ``error`` is set.
        """
        policy = self.policy
        size = max(1, batch_size or policy.batch_size)
        total = len(items)
        offset = 0

        while offset < total:
            batch = Batch(tuple(items[offset : offset + size]))
            attempt = 1
            while True:
                try:
                    write(list(batch.items))
                    break
                except Exception as e:
                    if not policy.is_retryable(e):
                        logger.debug("Non-retryable write error: %s", e)
                        return SendResult(offset, total, size, e)
                    if attempt >= policy.max_attempts:
                        logger.warning(
                            "Giving up after %d attempts at offset %d: %s",
                            attempt,
                            offset,
                            e,
                        )
                        return SendResult(offset, total, size, e)
                    delay = policy.backoff(attempt)
                    batch = batch.halved()
                    size = len(batch)
                    logger.warning(
                        "Retryable write error (attempt %d/%d), retrying "
                        "%d items in %.2fs: %s",
                        attempt,
                        policy.max_attempts,
                        size,
                        delay,
                        e,
                    )
                    self._sleep(delay)
                    attempt += 1

            offset += len(batch)
            if offset < total:
                self.pause()

        return SendResult(offset, total, size)

    def call(self, operation: Callable[[], T]) -> T:
        """Run *operation*, retrying retryable failures with backoff.

        Raises:
            The last error once attempts are exhausted, or the first
            non-retryable error.
        """
        policy = self.policy
        attempt = 1
        while True:
            try:
                return operation()
            except Exception as e:
                if not policy.is_retryable(e) or attempt >= policy.max_attempts:
                    raise
                delay = policy.backoff(attempt)
                logger.warning(
                    "Retryable error (attempt %d/%d), retrying in %.2fs: %s",
                    attempt,
                    policy.max_attempts,
                    delay,
                    e,
                )
                self._sleep(delay)
                attempt += 1

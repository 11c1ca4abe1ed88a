"""Transactional write runner with bounded retry on storage conflicts."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.errors import CoreError, ConflictRetryExhausted

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Storage errors that mean "another writer got there first"
RETRYABLE_ERRORS = (OperationalError, IntegrityError)


def calculate_delay(attempt: int, base_delay: float, max_delay: float, jitter: bool = True) -> float:
    """Exponential backoff with jitter."""
    delay = min(base_delay * (2 ** (attempt - 1)), max_delay)
    if jitter:
        delay *= 0.5 + random.random() * 0.5
    return delay


async def run_transaction(
    db: AsyncSession,
    operation: str,
    work: Callable[[list[Any]], Awaitable[T]],
    max_attempts: int | None = None,
) -> tuple[T, list[Any]]:
    """Run ``work`` inside one DB transaction and commit it.

    ``work`` receives a fresh list to append domain events to; the events are
    returned alongside the result only once the commit has succeeded, so
    callers never publish state that was rolled back.

    Domain failures (``CoreError``) roll back and propagate immediately.
    Storage conflicts roll back and are retried with backoff; after
    ``max_attempts`` they surface as ``ConflictRetryExhausted``.

    Any failure rolls the session back, which expires every object it had
    loaded. Callers that keep using the session after a failure should hold
    on to ids, not instances, and reload what they need.
    """
    cfg = get_settings().retry
    attempts = max_attempts or cfg.max_attempts

    for attempt in range(1, attempts + 1):
        events: list[Any] = []
        try:
            result = await work(events)
            await db.commit()
            return result, events
        except CoreError:
            await db.rollback()
            raise
        except RETRYABLE_ERRORS as e:
            await db.rollback()
            if attempt == attempts:
                logger.error("%s: giving up after %d conflicting attempts (%s)", operation, attempts, e)
                break
            delay = calculate_delay(attempt, cfg.base_delay, cfg.max_delay)
            logger.warning(
                "%s: attempt %d/%d conflicted (%s), retrying in %.3fs",
                operation, attempt, attempts, e.__class__.__name__, delay,
            )
            await asyncio.sleep(delay)
        except BaseException:
            await db.rollback()
            raise

    raise ConflictRetryExhausted(operation, attempts)

"""Bounded retry for operations that may lose an optimistic-concurrency race.

The services never retry on their own. Callers that can safely replay a whole
operation (the API adapter for next-task assignment) opt in here.
"""

import logging

from worktrack.core.exceptions import ConflictError

logger = logging.getLogger(__name__)


def retry_on_conflict(fn, attempts: int = 3):
    """Call ``fn()`` and replay it on ConflictError, at most ``attempts`` times.

    Each failed attempt has already been rolled back by the store, so the
    next call re-reads fresh state. The last ConflictError is re-raised.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except ConflictError:
            if attempt == attempts:
                logger.warning("Conflict persisted after %d attempt(s); giving up", attempts)
                raise
            logger.info("Conflict on attempt %d/%d; retrying", attempt, attempts)

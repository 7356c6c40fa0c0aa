"""
Optimistic concurrency helpers.

retry_on_conflict re-runs an operation a few times when its compare-and-swap
loses a race. The wrapped callable must re-read its snapshot on every call,
so each retry re-validates against the new state.
"""

import logging
import random
import time
from functools import wraps

from django.conf import settings

from core.db.exceptions import ConcurrentModificationError

logger = logging.getLogger(__name__)


def retry_on_conflict(func=None, *, attempts: int = None, backoff: float = None):
    """
    Retry ``func`` with exponential backoff on ConcurrentModificationError.

    Only compare-and-swap losses are retried. Other ConflictErrors (for
    example acting on a superseded proposal) go straight to the caller.

    Usage:
        @retry_on_conflict
        def accept(self, actor, proposal_id): ...

        @retry_on_conflict(attempts=5)
        def submit(...): ...
    """

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            max_attempts = attempts or getattr(settings, 'NETWORKK_CONFLICT_RETRIES', 3)
            base_delay = backoff
            if base_delay is None:
                base_delay = getattr(settings, 'NETWORKK_CONFLICT_BACKOFF_SECONDS', 0.05)

            attempt = 1
            while True:
                try:
                    return fn(*args, **kwargs)
                except ConcurrentModificationError as exc:
                    if attempt >= max_attempts:
                        logger.warning(
                            f"{fn.__qualname__} gave up after {attempt} attempts: {exc}"
                        )
                        raise

                    delay = base_delay * (2 ** (attempt - 1))
                    delay += random.uniform(0, delay * 0.1)
                    logger.info(
                        f"{fn.__qualname__} lost an optimistic lock on "
                        f"{exc.model_name}:{exc.object_id}, retrying in {delay:.3f}s "
                        f"(attempt {attempt + 1}/{max_attempts})"
                    )
                    if delay:
                        time.sleep(delay)
                    attempt += 1

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator

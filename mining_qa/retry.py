"""Opt-in retry for tests that must tolerate transient failures.

Nothing inside the drivers retries; a test that wants resilience decorates
itself (or a helper) explicitly.
"""

from __future__ import annotations

import functools
from typing import Callable, Tuple, Type

from .config import get_logger
from .errors import TransportAbort, WaitTimeout

logger = get_logger("retry")

TRANSIENT_ERRORS: Tuple[Type[BaseException], ...] = (WaitTimeout, TransportAbort)


def retry_transient(attempts: int = 3, exceptions: Tuple[Type[BaseException], ...] = TRANSIENT_ERRORS):
    """Re-invoke the decorated callable up to *attempts* times on *exceptions*.

    Other exceptions propagate on the first occurrence.  Each retry is logged
    with the failure reason; the last failure is re-raised unchanged.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    def decorator(func: Callable):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(1, attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as exc:
                    if attempt == attempts:
                        raise
                    logger.warning(
                        "Transient failure %d/%d in %s: %s",
                        attempt,
                        attempts,
                        func.__name__,
                        exc,
                    )

        return wrapper

    return decorator

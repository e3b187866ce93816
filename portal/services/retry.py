"""
Fixed-delay bounded retry.

The auth flows poll for rows that another store has not caught up with
yet.  There is no backoff and no cancellation: ``attempts`` tries with
``delay`` seconds between consecutive tries, never after the last one.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


class RetryExhausted(Exception):
    def __init__(self, operation: str, attempts: int, last_error: Optional[BaseException] = None):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        reason = f': {last_error}' if last_error is not None else ''
        super().__init__(f'{operation} failed after {attempts} attempt(s){reason}')


@dataclass
class RetryPolicy:
    attempts: int
    delay: float
    sleep: Callable[[float], None] = time.sleep

    def call(self, fn: Callable[[], Any], *, operation: str = 'operation',
             accept: Optional[Callable[[Any], bool]] = None) -> Any:
        """Run ``fn`` until it returns an accepted value.

        A raised exception or a result rejected by ``accept`` counts as a
        failed attempt.  Raises :class:`RetryExhausted` carrying the last
        exception (if any) once all attempts are used.
        """
        last_error: Optional[BaseException] = None
        for attempt in range(1, self.attempts + 1):
            try:
                result = fn()
            except Exception as exc:
                last_error = exc
                logger.warning('attempt_failed', operation=operation, attempt=attempt,
                               attempts=self.attempts, error=str(exc))
            else:
                if accept is None or accept(result):
                    if attempt > 1:
                        logger.info('attempt_succeeded', operation=operation, attempt=attempt)
                    return result
                last_error = None
                logger.info('attempt_rejected', operation=operation, attempt=attempt, attempts=self.attempts)
            if attempt < self.attempts:
                self.sleep(self.delay)
        raise RetryExhausted(operation, self.attempts, last_error)

"""
Minimal saga: do A, do B; if B fails, undo A.

Each completed phase registers an undo step.  On :meth:`Saga.compensate`
the steps run newest first, each under its own retry policy, so an undo
must be idempotent.  An undo that still fails is logged and reported back
to the caller rather than raised.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import structlog

from portal.services.retry import RetryExhausted, RetryPolicy

logger = structlog.get_logger(__name__)


@dataclass
class UndoStep:
    name: str
    action: Callable[[], Any]
    context: dict = field(default_factory=dict)


@dataclass
class CompensationFailure:
    step: str
    error: Optional[BaseException]
    context: dict


class Saga:
    def __init__(self, name: str, *, undo_policy: RetryPolicy):
        self.name = name
        self.undo_policy = undo_policy
        self._steps: list[UndoStep] = []

    def on_undo(self, name: str, action: Callable[[], Any], **context) -> None:
        self._steps.append(UndoStep(name=name, action=action, context=context))

    def commit(self) -> None:
        self._steps.clear()

    def compensate(self) -> list[CompensationFailure]:
        failures: list[CompensationFailure] = []
        while self._steps:
            step = self._steps.pop()
            try:
                self.undo_policy.call(step.action, operation=f'{self.name}.undo.{step.name}')
            except RetryExhausted as exc:
                logger.error('compensation_failed', saga=self.name, step=step.name,
                             error=str(exc.last_error), **step.context)
                failures.append(CompensationFailure(step=step.name, error=exc.last_error, context=step.context))
            else:
                logger.info('compensation_done', saga=self.name, step=step.name, **step.context)
        return failures

#!/usr/bin/env python3
"""
KUBESHARD PASS RESULTS
----------------------
The engine never retries on its own. Every pass reports back a requeue
delay, an error, both or neither, and the outer scheduler decides what
to do with it.

Author: KubeShard Team
Date: 2026-10-17
"""

from dataclasses import dataclass
from typing import List, Optional


class ReconcileError(Exception):
    """Aggregate of per-object failures collected during a pass."""

    def __init__(self, message: str, errors: List[Exception]):
        self.errors = list(errors)
        details = "; ".join(str(e) for e in self.errors)
        super().__init__(f"{message}: {details}" if details else message)


@dataclass
class PassResult:
    requeue_after: Optional[float] = None  # seconds
    error: Optional[Exception] = None

    @property
    def requeue(self) -> bool:
        return self.error is not None or self.requeue_after is not None


class ResultBuilder:
    """
    Accumulates the outcome of a pass. Requeue requests keep the earliest
    delay; errors are kept in the order they were reported.
    """

    def __init__(self):
        self._requeue_after: Optional[float] = None
        self._errors: List[Exception] = []

    def requeue_after(self, seconds: float):
        if seconds <= 0:
            return
        if self._requeue_after is None or seconds < self._requeue_after:
            self._requeue_after = seconds

    def error(self, err: Exception):
        self._errors.append(err)

    def result(self) -> PassResult:
        if not self._errors:
            error = None
        elif len(self._errors) == 1:
            error = self._errors[0]
        else:
            error = ReconcileError("multiple reconcile errors", self._errors)
        return PassResult(requeue_after=self._requeue_after, error=error)

"""Caller-supplied deadline / cancellation signal checked between candidates."""

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..errors import OperationCancelled


@dataclass
class Cancellation:
    """
    Attributes:
        deadline: Absolute time (on `clock`) after which work must stop
        event: Set by the caller to cancel immediately
        clock: Monotonic clock used to compare against the deadline
    """
    deadline: Optional[float] = None
    event: Optional[threading.Event] = None
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    @classmethod
    def after(cls, seconds: float, clock: Callable[[], float] = time.monotonic) -> "Cancellation":
        """A cancellation that expires `seconds` from now."""
        return cls(deadline=clock() + seconds, clock=clock)

    @property
    def cancelled(self) -> bool:
        if self.event is not None and self.event.is_set():
            return True
        return self.deadline is not None and self.clock() >= self.deadline

    def cancel(self) -> None:
        if self.event is None:
            self.event = threading.Event()
        self.event.set()

    def check(self) -> None:
        """Raise OperationCancelled if the caller gave up."""
        if self.cancelled:
            raise OperationCancelled("Operation cancelled by caller")


def check(cancellation: Optional[Cancellation]) -> None:
    if cancellation is not None:
        cancellation.check()

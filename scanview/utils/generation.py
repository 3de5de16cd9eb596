"""
Generation tokens for discarding superseded results.

Each new computation of a view calls `begin()`; a result computed under an
older token is dropped when it arrives.
"""

import threading
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from scanview.utils.log import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Generation:
    guard: "GenerationGuard"
    number: int

    @property
    def is_current(self) -> bool:
        return self.guard.current == self.number


class GenerationGuard(Generic[T]):
    """
    Holds the latest published result of one view.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._current = 0
        self._latest: Optional[T] = None

    @property
    def current(self) -> int:
        return self._current

    @property
    def latest(self) -> Optional[T]:
        return self._latest

    def begin(self) -> Generation:
        with self._lock:
            self._current += 1
            return Generation(self, self._current)

    def publish(self, token: Generation, result: T) -> bool:
        """
        Store `result` if `token` is still current; return whether it was kept.
        """
        with self._lock:
            if token.number != self._current:
                logger.debug(
                    "Dropping stale %s result (generation %d, current %d)",
                    self.name, token.number, self._current,
                )
                return False
            self._latest = result
            return True

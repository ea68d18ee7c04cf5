"""Clock strategies used by the deduplication lock."""

__all__ = [
    "Clock",
    "SystemClock",
    "FixedClock",
    "epoch_seconds",
]

import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Protocol

from aibs_informatics_core.utils.time import get_current_time


class Clock(Protocol):
    """Source of the current time and of blocking waits."""

    def now(self) -> datetime:
        ...

    def sleep(self, seconds: float) -> None:
        ...


class SystemClock:
    """Wall clock."""

    def now(self) -> datetime:
        return get_current_time()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


@dataclass
class FixedClock:
    """Clock pinned to a given instant.

    `sleep` does not block; it advances the pinned time and records the
    requested duration in `sleeps`.
    """

    current: datetime
    sleeps: List[float] = field(default_factory=list)

    def now(self) -> datetime:
        return self.current

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current = self.current + timedelta(seconds=seconds)


def epoch_seconds(value: datetime) -> int:
    """Whole seconds since the Unix epoch.

    Naive datetimes are interpreted as local time, as `datetime.timestamp` does.
    """
    return int(value.timestamp())

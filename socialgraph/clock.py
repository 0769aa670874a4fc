"""
Injectable clock.

Every row timestamp (edges, posts, comments) is read through a clock so that
feed ordering can be pinned in tests and does not depend on the store's
``CURRENT_TIMESTAMP`` resolution.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone


class SystemClock:
    """Wall-clock time in UTC, microsecond resolution."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class ManualClock:
    """
    Deterministic clock for tests and replays.

    ``now()`` returns the current instant and then advances by ``step``,
    so consecutive writes get strictly increasing timestamps. Set ``step``
    to zero to force timestamp collisions.
    """
    current: datetime = field(default_factory=lambda: datetime(2024, 1, 1))
    step: timedelta = timedelta(seconds=1)

    def now(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value

    def advance(self, delta: timedelta) -> None:
        self.current = self.current + delta

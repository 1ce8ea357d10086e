"""System clock adapter for the Clock port."""

from datetime import datetime, timezone


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

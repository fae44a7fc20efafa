"""Wall-clock helpers. Store timestamps are UTC epoch milliseconds."""

from datetime import UTC, datetime


def now_millis() -> int:
    """Current UTC time in epoch milliseconds."""
    return int(datetime.now(UTC).timestamp() * 1000)

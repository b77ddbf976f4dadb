"""DateTime utilities for timezone-aware timestamp handling.

Database columns store offset-naive UTC values; access token claims carry
integer seconds since the epoch.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    Get current UTC datetime without timezone info (offset-naive).

    Compatible with PostgreSQL TIMESTAMP WITHOUT TIME ZONE columns.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Lambda version for SQLAlchemy default/onupdate parameters
utc_now_lambda = lambda: datetime.now(timezone.utc).replace(tzinfo=None)


def epoch_seconds_now() -> int:
    """Current time as whole seconds since the epoch (UTC)."""
    return int(datetime.now(timezone.utc).timestamp())


def from_epoch_seconds(seconds: int) -> datetime:
    """
    Convert seconds since the epoch to a timezone-aware UTC datetime.

    Example:
        >>> from_epoch_seconds(0)
        datetime.datetime(1970, 1, 1, 0, 0, tzinfo=datetime.timezone.utc)
    """
    return datetime.fromtimestamp(seconds, tz=timezone.utc)

"""
Resolution of client-supplied transaction timestamps.

Clients send transaction_date_time in one of three ways:

  - ISO 8601 with an offset or "Z"   -> converted to UTC
  - naive ISO 8601 ("2025-01-31T09:30") -> read as wall-clock time at
    settings.DEFAULT_INPUT_UTC_OFFSET (UTC+05:30 unless configured), then
    converted to UTC
  - omitted                           -> the current time (UTC)

Everything stored is UTC. SQLite drops tzinfo on the way in and out, so
values read back are naive and must be treated as UTC (see as_utc).
"""

from datetime import datetime, timezone, tzinfo

from ledgerbook.config import settings


def resolve_transaction_time(
    value: datetime | None,
    default_tz: tzinfo | None = None,
) -> datetime:
    """Return the UTC instant a transaction should be recorded at."""
    if value is None:
        return datetime.now(timezone.utc)
    if value.tzinfo is None or value.utcoffset() is None:
        value = value.replace(tzinfo=default_tz or settings.default_input_tz)
    return value.astimezone(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to a naive datetime read back from the store."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

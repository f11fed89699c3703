"""Shared UTC timestamp helpers."""

from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return current UTC time with second precision."""
    return datetime.now(UTC).replace(microsecond=0)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones."""
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)


def iso_z(value: datetime) -> str:
    """Format a datetime as ISO-8601 with trailing Z in UTC."""
    return as_utc(value).isoformat().replace("+00:00", "Z")


def parse_iso_z(value: str) -> datetime | None:
    """Parse an ISO timestamp and normalize to UTC."""
    raw = value.strip()
    if not raw:
        return None
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    return as_utc(parsed)

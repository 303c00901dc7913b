import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from cabinet.utils.exceptions import InvalidFormatError

# ASCII digits only, matched with fullmatch so a trailing newline is rejected
DURATION_PATTERN = re.compile(r"([0-9]+)([mhd])")

_UNITS = {
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
}


def parse_duration(duration: str) -> timedelta:
    """Parse expressions like "30m", "12h" or "7d" into a timedelta.

    Only a single integer amount with one unit is accepted; "1.5h" and
    compound forms such as "1d12h" raise InvalidFormatError, as do amounts
    too large for a timedelta.
    """
    match = DURATION_PATTERN.fullmatch(duration or "")
    if not match:
        raise InvalidFormatError(
            f"Invalid duration '{duration}'. Use <integer><unit> with unit m, h or d (e.g. \"1d\", \"7d\", \"30d\")"
        )

    amount, unit = match.groups()
    try:
        return int(amount) * _UNITS[unit]
    except OverflowError as e:
        raise InvalidFormatError(f"Duration '{duration}' is too long") from e


def get_expiration_date(duration: str, now: Optional[datetime] = None) -> datetime:
    """Absolute expiry for a duration counted from now"""
    now = now or datetime.now(timezone.utc)
    lifetime = parse_duration(duration)
    try:
        return now + lifetime
    except OverflowError as e:
        raise InvalidFormatError(f"Duration '{duration}' runs past the latest representable date") from e


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_expired(expires_at: datetime, now: Optional[datetime] = None) -> bool:
    now = now or datetime.now(timezone.utc)
    return as_utc(now) > as_utc(expires_at)

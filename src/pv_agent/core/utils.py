import datetime
import re
import time
from typing import Any, Dict


def now_utc() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc).replace(microsecond=0)


def now_utc_iso() -> str:
    """Return current UTC time as ISO8601 string with 'Z'."""
    return to_iso(now_utc())


def to_iso(dt: datetime.datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return (
        dt.astimezone(datetime.timezone.utc)
        .replace(microsecond=0)
        .isoformat()
        .replace("+00:00", "Z")
    )


def parse_iso(raw: str) -> datetime.datetime:
    """
    Parse a timestamp written by to_iso() (or any ISO8601 string).
    Naive values are taken as UTC.
    """
    dt = datetime.datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return dt


def epoch_millis() -> int:
    return int(time.time() * 1000)


_CAMEL_BOUNDARY = re.compile(r"_([a-z0-9])")


def to_camel(name: str) -> str:
    """snake_case -> camelCase (adverse_event_description -> adverseEventDescription)."""
    return _CAMEL_BOUNDARY.sub(lambda m: m.group(1).upper(), name)


def camelize_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    return {to_camel(k): v for k, v in data.items()}

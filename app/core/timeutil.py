from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    # naive UTC, igual que las columnas DateTime
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is not None and value.utcoffset() is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value

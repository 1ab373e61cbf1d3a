from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, matching what MongoDB hands back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value):
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def epoch_millis(value: datetime) -> int:
    return int(value.replace(tzinfo=timezone.utc).timestamp() * 1000)

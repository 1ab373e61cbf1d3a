import re

from .TimeUtils import utcnow, epoch_millis

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(title: str) -> str:
    """Lower-case the title and collapse every run of other characters to '-'"""
    return _NON_ALNUM.sub("-", title.lower()).strip("-")


def generate_event_slug(title: str, created_at=None) -> str:
    """Slug for an event: the slugified title plus a millisecond timestamp"""
    created_at = created_at or utcnow()
    return f"{slugify(title)}-{epoch_millis(created_at)}"

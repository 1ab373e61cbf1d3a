from models.models import EventStatus
from services.Exceptions import Forbidden


def is_organizer(event, user) -> bool:
    if not event or not user:
        return False
    organizer_id = (event.get("organizer") or {}).get("userId")
    return organizer_id is not None and organizer_id == user.get("user_id")


def is_owner(registration, user) -> bool:
    return bool(user) and registration.get("user") == user.get("user_id")


def require_organizer(event, user, action="manage this event"):
    if not is_organizer(event, user):
        raise Forbidden(f"Not authorized to {action}")


def require_owner(registration, user, action="modify this registration"):
    if not is_owner(registration, user):
        raise Forbidden(f"Not authorized to {action}")


def require_owner_or_organizer(registration, event, user, action="view this registration"):
    if not (is_owner(registration, user) or is_organizer(event, user)):
        raise Forbidden(f"Not authorized to {action}")


def can_view_event(event, user) -> bool:
    """Drafts are private to their organizer; every other status is public."""
    if event.get("status") != EventStatus.DRAFT.value:
        return True
    return is_organizer(event, user)

from models.models import RegistrationStatus, RegistrationType
from services.Exceptions import InvalidState

PENDING = RegistrationStatus.PENDING.value
APPROVED = RegistrationStatus.APPROVED.value
REJECTED = RegistrationStatus.REJECTED.value
WAITLISTED = RegistrationStatus.WAITLISTED.value
CONFIRMED = RegistrationStatus.CONFIRMED.value
ATTENDED = RegistrationStatus.ATTENDED.value
CANCELLED = RegistrationStatus.CANCELLED.value
NO_SHOW = RegistrationStatus.NO_SHOW.value

TERMINAL_STATUSES = frozenset({ATTENDED, NO_SHOW, REJECTED, CANCELLED})

TRANSITIONS = {
    PENDING: frozenset({APPROVED, REJECTED, WAITLISTED, CANCELLED}),
    WAITLISTED: frozenset({APPROVED, REJECTED, CANCELLED}),
    APPROVED: frozenset({CONFIRMED, CANCELLED}),
    CONFIRMED: frozenset({ATTENDED, NO_SHOW, CANCELLED}),
    ATTENDED: frozenset(),
    NO_SHOW: frozenset(),
    REJECTED: frozenset(),
    CANCELLED: frozenset(),
}


def initial_status(registration_type: str) -> str:
    """Volunteers skip manual approval; partners wait for the organizer."""
    if registration_type == RegistrationType.VOLUNTEER.value:
        return APPROVED
    return PENDING


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def ensure_transition(current: str, target: str):
    if not can_transition(current, target):
        raise InvalidState(f"Cannot change registration status from '{current}' to '{target}'")

"""
Registration lifecycle: create, transitions, check-in, cancellation, feedback.

Every operation that touches a registration's status ends with the
projection synchronizer so Event and User embedded data match the rows.
Status changes are compare-and-set on the current status, so two racing
transitions on one registration cannot both win.
"""
import uuid

from pymongo.errors import DuplicateKeyError

from config.log import get_logger
from database.DB import USERS, EVENTS, REGISTRATIONS
from helpers.TimeUtils import utcnow
from models.models import (
    Registration,
    RegistrationType,
    Feedback,
)
from services import CapacityGate, StateMachine
from services.Authorization import require_organizer, require_owner, require_owner_or_organizer
from services.Exceptions import Conflict, CapacityExceeded, InvalidState, NotFound, ValidationError
from services.ProjectionSynchronizer import sync_registration

logger = get_logger(__name__)

USER_POPULATE_FIELDS = {"_id": 0, "user_id": 1, "name": 1, "email": 1, "profilePicture": 1}
EVENT_POPULATE_FIELDS = {
    "_id": 0, "event_id": 1, "title": 1, "startDate": 1, "endDate": 1,
    "location": 1, "organizer": 1, "status": 1,
}
UPDATABLE_STATUSES_BLOCKED = frozenset({StateMachine.CANCELLED, StateMachine.REJECTED})


def _history_entry(status, actor, notes):
    return {"status": status, "changedAt": utcnow(), "changedBy": actor, "notes": notes}


async def load_registration(db, registration_id):
    registration = await db.find_one(REGISTRATIONS, {"registration_id": registration_id})
    if registration is None:
        raise NotFound("Registration not found")
    return registration


async def load_event(db, event_id):
    event = await db.find_one(EVENTS, {"event_id": event_id})
    if event is None:
        raise NotFound("Event not found")
    return event


async def populate(db, registration):
    """Attach a slim view of the registration's user and event."""
    registration = dict(registration)
    registration["user"] = await db.find_one(USERS, {"user_id": registration["user"]}, USER_POPULATE_FIELDS)
    registration["event"] = await db.find_one(EVENTS, {"event_id": registration["event"]}, EVENT_POPULATE_FIELDS)
    return registration


async def create_registration(db, user, payload, ip_address=None, user_agent=None):
    """
    Register `user` for an event.

    payload is the validated RegistrationCreate body. Checks run in the
    order: event open, type accepted, partnership type offered, no existing
    registration, capacity. Uniqueness is ultimately enforced by the
    (user, event) unique index; the volunteer slot by an atomic conditional
    update.
    """
    event = await load_event(db, payload.eventId)
    registration_type = payload.type

    CapacityGate.ensure_event_open(event)
    CapacityGate.ensure_accepting(event, registration_type)

    if not payload.consent.dataProcessing:
        raise ValidationError("Consent to data processing is required")

    if registration_type == RegistrationType.PARTNER.value:
        if payload.partnershipDetails is None:
            raise ValidationError("partnershipDetails.partnershipType is required for partner registrations")
        CapacityGate.ensure_partnership_offered(event, payload.partnershipDetails.partnershipType)

    existing = await db.find_one(REGISTRATIONS, {"user": user["user_id"], "event": event["event_id"]})
    if existing:
        raise Conflict("You are already registered for this event")

    if registration_type == RegistrationType.VOLUNTEER.value:
        CapacityGate.ensure_volunteer_capacity(event)
    else:
        CapacityGate.ensure_partner_capacity(event, payload.partnershipDetails.partnershipType)

    now = utcnow()
    status = StateMachine.initial_status(registration_type)
    notes = "Registration created"
    if registration_type == RegistrationType.VOLUNTEER.value:
        notes = "Registration created and auto-approved"

    try:
        registration = Registration(
            registration_id=str(uuid.uuid4()),
            user=user["user_id"],
            event=event["event_id"],
            type=registration_type,
            volunteerDetails=payload.volunteerDetails if registration_type == RegistrationType.VOLUNTEER.value else None,
            partnershipDetails=payload.partnershipDetails if registration_type == RegistrationType.PARTNER.value else None,
            status=status,
            approvedAt=now if status == StateMachine.APPROVED else None,
            statusHistory=[_history_entry(status, user["user_id"], notes)],
            customResponses=payload.customResponses,
            consent=payload.consent,
            registrationSource=payload.registrationSource,
            ipAddress=ip_address,
            userAgent=user_agent,
            createdAt=now,
            updatedAt=now,
        )
    except ValueError as e:
        raise ValidationError(str(e))

    document = registration.model_dump()
    is_volunteer = registration_type == RegistrationType.VOLUNTEER.value

    # The slot is taken before the row exists, so the counter is never behind the rows.
    if is_volunteer and not await CapacityGate.reserve_volunteer_slot(db, event):
        raise CapacityExceeded("Event has reached volunteer capacity")

    try:
        await db.add(REGISTRATIONS, document)
    except DuplicateKeyError:
        if is_volunteer:
            # Compensate: a concurrent request registered this user first; give the slot back.
            await CapacityGate.adjust_volunteer_slots(db, event["event_id"], -1)
            logger.info("Released volunteer slot after duplicate registration",
                        event_id=event["event_id"], user_id=user["user_id"])
        await sync_registration(db, document)
        raise Conflict("You are already registered for this event")

    await sync_registration(db, document)
    logger.info("Registration created", registration_id=document["registration_id"],
                event_id=event["event_id"], user_id=user["user_id"], type=registration_type, status=status)
    return await load_registration(db, document["registration_id"])


async def _transition(db, registration, target, actor, notes, extra_set=None):
    """Compare-and-set the status and append exactly one history entry."""
    now = utcnow()
    update_set = {"status": target, "updatedAt": now}
    if extra_set:
        update_set.update(extra_set)

    result = await db.update(
        REGISTRATIONS,
        {"registration_id": registration["registration_id"], "status": registration["status"]},
        {"$set": update_set, "$push": {"statusHistory": _history_entry(target, actor, notes)}}
    )
    if result["matched_count"] == 0:
        raise Conflict("Registration was modified by another request; reload and retry")

    await CapacityGate.adjust_volunteer_slots(db, registration["event"], CapacityGate.slot_delta(registration, target))
    await sync_registration(db, registration)
    logger.info("Registration status changed", registration_id=registration["registration_id"],
                previous=registration["status"], status=target, actor=actor)
    return await load_registration(db, registration["registration_id"])


async def get_registration(db, user, registration_id):
    registration = await load_registration(db, registration_id)
    event = await db.find_one(EVENTS, {"event_id": registration["event"]})
    require_owner_or_organizer(registration, event, user)
    return await populate(db, registration)


async def update_registration(db, user, registration_id, payload):
    """Owner edits of the user-controlled blocks only."""
    registration = await load_registration(db, registration_id)
    require_owner(registration, user, "update this registration")

    if registration["status"] in UPDATABLE_STATUSES_BLOCKED:
        raise InvalidState(f"Cannot update a {registration['status']} registration")

    updates = {}
    fields = payload.model_fields_set

    if "volunteerDetails" in fields and payload.volunteerDetails is not None:
        if registration["type"] != RegistrationType.VOLUNTEER.value:
            raise ValidationError("volunteerDetails only apply to volunteer registrations")
        updates["volunteerDetails"] = payload.volunteerDetails.model_dump()

    if "partnershipDetails" in fields and payload.partnershipDetails is not None:
        if registration["type"] != RegistrationType.PARTNER.value:
            raise ValidationError("partnershipDetails only apply to partner registrations")
        current_type = (registration.get("partnershipDetails") or {}).get("partnershipType")
        new_type = payload.partnershipDetails.partnershipType
        if new_type != current_type:
            if registration["status"] not in (StateMachine.PENDING, StateMachine.WAITLISTED):
                raise InvalidState("Partnership type can only change before approval")
            event = await load_event(db, registration["event"])
            CapacityGate.ensure_partnership_offered(event, new_type)
        updates["partnershipDetails"] = payload.partnershipDetails.model_dump()

    if "customResponses" in fields and payload.customResponses is not None:
        updates["customResponses"] = [response.model_dump() for response in payload.customResponses]

    if "notes" in fields and payload.notes is not None:
        updates["notes.user"] = payload.notes.user

    if "consent" in fields and payload.consent is not None:
        if not payload.consent.dataProcessing:
            raise ValidationError("Consent to data processing cannot be withdrawn; cancel the registration instead")
        updates["consent"] = payload.consent.model_dump()

    if not updates:
        raise ValidationError("No fields to update")

    updates["updatedAt"] = utcnow()
    await db.update(REGISTRATIONS, {"registration_id": registration_id}, {"$set": updates})
    await sync_registration(db, registration)
    return await populate(db, await load_registration(db, registration_id))


async def cancel_registration(db, user, registration_id):
    registration = await load_registration(db, registration_id)
    require_owner(registration, user, "cancel this registration")

    if StateMachine.is_terminal(registration["status"]):
        raise InvalidState(f"Cannot cancel a registration that is already {registration['status']}")

    return await _transition(db, registration, StateMachine.CANCELLED, user["user_id"], "Cancelled by user")


async def _organizer_context(db, user, registration_id, action):
    registration = await load_registration(db, registration_id)
    event = await load_event(db, registration["event"])
    require_organizer(event, user, action)
    return registration, event


async def approve_registration(db, user, registration_id, notes=None):
    registration, event = await _organizer_context(db, user, registration_id, "approve this registration")

    if registration["type"] != RegistrationType.PARTNER.value:
        raise InvalidState("Only partnership registrations require approval")
    StateMachine.ensure_transition(registration["status"], StateMachine.APPROVED)

    partnership_type = (registration.get("partnershipDetails") or {}).get("partnershipType")
    CapacityGate.ensure_partner_capacity(event, partnership_type)

    return await _transition(db, registration, StateMachine.APPROVED, user["user_id"],
                             notes or "Registration approved", {"approvedAt": utcnow()})


async def reject_registration(db, user, registration_id, reason=None):
    registration, _ = await _organizer_context(db, user, registration_id, "reject this registration")
    StateMachine.ensure_transition(registration["status"], StateMachine.REJECTED)
    return await _transition(db, registration, StateMachine.REJECTED, user["user_id"],
                             reason or "Registration rejected")


async def waitlist_registration(db, user, registration_id, notes=None):
    registration, _ = await _organizer_context(db, user, registration_id, "waitlist this registration")
    StateMachine.ensure_transition(registration["status"], StateMachine.WAITLISTED)
    return await _transition(db, registration, StateMachine.WAITLISTED, user["user_id"],
                             notes or "Registration waitlisted")


async def confirm_registration(db, user, registration_id):
    registration = await load_registration(db, registration_id)
    require_owner(registration, user, "confirm this registration")
    StateMachine.ensure_transition(registration["status"], StateMachine.CONFIRMED)

    now = utcnow()
    return await _transition(db, registration, StateMachine.CONFIRMED, user["user_id"], "Attendance confirmed",
                             {"confirmation.isConfirmed": True, "confirmation.confirmedAt": now})


async def mark_no_show(db, user, registration_id, notes=None):
    registration, _ = await _organizer_context(db, user, registration_id, "update attendance")
    StateMachine.ensure_transition(registration["status"], StateMachine.NO_SHOW)
    return await _transition(db, registration, StateMachine.NO_SHOW, user["user_id"],
                             notes or "Marked as no-show")


async def check_in(db, user, registration_id, actual_role=None, hours_contributed=None):
    """
    Record attendance. The status is forced to 'attended' whatever it was
    before; this deliberately bypasses the transition table.
    """
    registration, _ = await _organizer_context(db, user, registration_id, "check in users")

    now = utcnow()
    checkin = {
        "checkin.checkedIn": True,
        "checkin.checkedInAt": now,
        "checkin.checkedInBy": user["user_id"],
        "checkin.actualRole": actual_role,
        "checkin.hoursContributed": hours_contributed,
    }

    if registration["status"] == StateMachine.ATTENDED:
        checkin["updatedAt"] = now
        await db.update(REGISTRATIONS, {"registration_id": registration_id}, {"$set": checkin})
        await sync_registration(db, registration)
        return await load_registration(db, registration_id)

    if registration["status"] in StateMachine.TERMINAL_STATUSES:
        logger.warning("Checking in a registration in a terminal state",
                       registration_id=registration_id, status=registration["status"])

    return await _transition(db, registration, StateMachine.ATTENDED, user["user_id"], "Checked in", checkin)


async def submit_feedback(db, user, registration_id, payload):
    registration = await load_registration(db, registration_id)
    require_owner(registration, user, "submit feedback for this registration")

    event = await load_event(db, registration["event"])
    if event["endDate"] > utcnow():
        raise InvalidState("Cannot submit feedback before event ends")

    if registration.get("feedback"):
        raise InvalidState("Feedback has already been submitted for this registration")

    feedback = Feedback(
        rating=payload.rating,
        comments=payload.comments,
        wouldRecommend=payload.wouldRecommend,
        improvements=payload.improvements,
        submittedAt=utcnow(),
    ).model_dump()

    result = await db.update(
        REGISTRATIONS,
        {"registration_id": registration_id, "feedback": None},
        {"$set": {"feedback": feedback, "updatedAt": utcnow()}}
    )
    if result["matched_count"] == 0:
        raise InvalidState("Feedback has already been submitted for this registration")

    return await load_registration(db, registration_id)


async def list_event_registrations(db, user, event_id):
    event = await load_event(db, event_id)
    require_organizer(event, user, "view registrations")

    result = await db.find_many(REGISTRATIONS, {"event": event_id}, sort=[("createdAt", -1)])
    registrations = []
    for registration in result["data"]:
        registration["user"] = await db.find_one(
            USERS, {"user_id": registration["user"]},
            {"_id": 0, "user_id": 1, "name": 1, "email": 1, "profilePicture": 1, "stats": 1}
        )
        registrations.append(registration)
    return registrations

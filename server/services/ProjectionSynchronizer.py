"""
Keeps the denormalized registration projections in line with the
registrations collection.

Registration rows are the source of truth. Each Event carries embedded
volunteer/partner summaries plus counters, and each User carries embedded
event-membership lists plus stats; both are rebuilt from the rows and written
back with a single $set per document, so running a sync twice is a no-op.
"""
from database.DB import USERS, EVENTS, REGISTRATIONS
from config.log import get_logger
from helpers.TimeUtils import utcnow
from models.models import RegistrationType
from services.CapacityGate import VOLUNTEER_COUNTER

logger = get_logger(__name__)

ACTIVE_VOLUNTEER_STATUSES = frozenset({"registered", "confirmed", "attended"})
ACTIVE_PARTNER_STATUSES = frozenset({"approved", "active", "completed"})

# Registration status -> embedded summary status. Statuses missing from a
# map are left out of that projection entirely (e.g. cancelled rows).
EVENT_VOLUNTEER_STATUS = {
    "approved": "registered",
    "confirmed": "confirmed",
    "attended": "attended",
    "no-show": "no-show",
}
USER_VOLUNTEER_STATUS = {
    "approved": "registered",
    "confirmed": "registered",
    "attended": "attended",
    "no-show": "no-show",
}
PARTNER_STATUS = {
    "pending": "pending",
    "waitlisted": "pending",
    "approved": "approved",
    "confirmed": "active",
    "attended": "completed",
    "rejected": "rejected",
}


def _ordered(registrations):
    return sorted(registrations, key=lambda r: (r.get("createdAt") or utcnow(), r["registration_id"]))


def _volunteer_role(registration):
    checkin = registration.get("checkin") or {}
    details = registration.get("volunteerDetails") or {}
    return checkin.get("actualRole") or details.get("preferredRole")


def _contribution(registration):
    details = registration.get("partnershipDetails") or {}
    return details.get("partnershipType"), details.get("contribution") or {}


def build_event_projection(event, registrations):
    """Return the $set document describing the event's registration projection."""
    volunteers = []
    partners = []

    for registration in _ordered(registrations):
        if registration["type"] == RegistrationType.VOLUNTEER.value:
            status = EVENT_VOLUNTEER_STATUS.get(registration["status"])
            if status is None:
                continue
            volunteers.append({
                "userId": registration["user"],
                "registrationId": registration["registration_id"],
                "registeredAt": registration.get("createdAt"),
                "role": _volunteer_role(registration),
                "status": status,
                "notes": (registration.get("notes") or {}).get("organizer"),
            })
        else:
            status = PARTNER_STATUS.get(registration["status"])
            if status is None:
                continue
            partnership_type, contribution = _contribution(registration)
            partners.append({
                "userId": registration["user"],
                "registrationId": registration["registration_id"],
                "registeredAt": registration.get("createdAt"),
                "partnershipType": partnership_type,
                "status": status,
                "contribution": contribution.get("description"),
                "fundingAmount": contribution.get("value"),
                "approvedAt": registration.get("approvedAt"),
                "notes": (registration.get("notes") or {}).get("organizer"),
            })

    active_volunteers = [v for v in volunteers if v["status"] in ACTIVE_VOLUNTEER_STATUSES]
    active_partners = [p for p in partners if p["status"] in ACTIVE_PARTNER_STATUSES]

    volunteer_opportunities = event.get("volunteerOpportunities") or {}
    roles = []
    for role in volunteer_opportunities.get("roles") or []:
        role = dict(role)
        role["filled"] = sum(1 for v in active_volunteers if v["role"] == role.get("title"))
        roles.append(role)

    partnership_opportunities = event.get("partnershipOpportunities") or {}
    offers = []
    for offer in partnership_opportunities.get("types") or []:
        offer = dict(offer)
        offer["currentPartners"] = sum(1 for p in active_partners if p["partnershipType"] == offer.get("type"))
        offers.append(offer)

    return {
        "registrations.volunteers": volunteers,
        "registrations.partners": partners,
        VOLUNTEER_COUNTER: len(active_volunteers),
        "volunteerOpportunities.roles": roles,
        "partnershipOpportunities.types": offers,
        "partnershipOpportunities.currentFunding": sum(p["fundingAmount"] or 0 for p in active_partners),
        "stats.totalRegistrations": len(volunteers) + len(partners),
    }


def build_user_projection(registrations):
    volunteer_events = []
    partnership_events = []
    total_hours = 0

    for registration in _ordered(registrations):
        if registration["type"] == RegistrationType.VOLUNTEER.value:
            checkin = registration.get("checkin") or {}
            if checkin.get("checkedIn"):
                total_hours += checkin.get("hoursContributed") or 0
            status = USER_VOLUNTEER_STATUS.get(registration["status"])
            if status is None:
                continue
            volunteer_events.append({
                "eventId": registration["event"],
                "registrationId": registration["registration_id"],
                "registeredAt": registration.get("createdAt"),
                "role": _volunteer_role(registration),
                "status": status,
            })
        else:
            status = PARTNER_STATUS.get(registration["status"])
            if status is None:
                continue
            partnership_type, contribution = _contribution(registration)
            partnership_events.append({
                "eventId": registration["event"],
                "registrationId": registration["registration_id"],
                "registeredAt": registration.get("createdAt"),
                "partnershipType": partnership_type,
                "status": status,
                "contribution": contribution.get("description"),
                "fundingAmount": contribution.get("value"),
            })

    events_attended = sum(1 for e in volunteer_events if e["status"] == "attended")
    partnerships_completed = sum(1 for e in partnership_events if e["status"] == "completed")

    return {
        "volunteerEvents": volunteer_events,
        "partnershipEvents": partnership_events,
        "stats.totalVolunteerHours": total_hours,
        "stats.eventsAttended": events_attended,
        "stats.partnershipsCompleted": partnerships_completed,
        "stats.impactScore": events_attended * 10 + partnerships_completed * 25,
    }


def _lookup(document, dotted_key):
    value = document
    for part in dotted_key.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _drifted(document, projection):
    return any(_lookup(document, key) != value for key, value in projection.items())


async def sync_event(db, event_id, repair_counters=False):
    """
    Rebuild one event's projection. Returns True when stored values had drifted.

    currentVolunteers is maintained by the capacity gate's atomic $inc, so it
    is only overwritten from the rows when repair_counters is set.
    """
    event = await db.find_one(EVENTS, {"event_id": event_id})
    if event is None:
        return False

    result = await db.find_many(REGISTRATIONS, {"event": event_id})
    projection = build_event_projection(event, result["data"])
    if not repair_counters:
        projection.pop(VOLUNTEER_COUNTER)
    drifted = _drifted(event, projection)

    await db.update(EVENTS, {"event_id": event_id}, {"$set": projection})
    return drifted


async def sync_user(db, user_id):
    """Rebuild one user's projection. Returns True when stored values had drifted."""
    user = await db.find_one(USERS, {"user_id": user_id})
    if user is None:
        return False

    result = await db.find_many(REGISTRATIONS, {"user": user_id})
    projection = build_user_projection(result["data"])
    drifted = _drifted(user, projection)

    await db.update(USERS, {"user_id": user_id}, {"$set": projection})
    return drifted


async def sync_registration(db, registration):
    """Run after any registration mutation: refresh both sides it touches."""
    await sync_event(db, registration["event"])
    await sync_user(db, registration["user"])


async def reconcile_all(db):
    """Full repair pass over every event and user."""
    events_fixed = 0
    users_fixed = 0

    events = await db.find_many(EVENTS, {}, projection={"event_id": 1})
    for event in events["data"]:
        if await sync_event(db, event["event_id"], repair_counters=True):
            events_fixed += 1

    users = await db.find_many(USERS, {}, projection={"user_id": 1})
    for user in users["data"]:
        if await sync_user(db, user["user_id"]):
            users_fixed += 1

    report = {
        "eventsScanned": len(events["data"]),
        "eventsRepaired": events_fixed,
        "usersScanned": len(users["data"]),
        "usersRepaired": users_fixed,
    }
    logger.info("Projection reconcile finished", **report)
    return report

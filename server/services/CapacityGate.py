from database.DB import EVENTS
from models.models import EventStatus, RegistrationType
from services.Exceptions import CapacityExceeded, InvalidState, ValidationError

OPEN_EVENT_STATUSES = frozenset({EventStatus.PUBLISHED.value, EventStatus.ONGOING.value})
# Registration statuses that occupy a volunteer slot.
SLOT_HOLDING_STATUSES = frozenset({"approved", "confirmed", "attended"})

# Owned by the atomic $inc below; projection rebuilds leave it alone.
VOLUNTEER_COUNTER = "volunteerOpportunities.currentVolunteers"


def ensure_event_open(event):
    if event.get("status") not in OPEN_EVENT_STATUSES:
        raise InvalidState(f"Event is not open for registration (status '{event.get('status')}')")


def ensure_accepting(event, registration_type):
    if registration_type == RegistrationType.VOLUNTEER.value:
        if not (event.get("volunteerOpportunities") or {}).get("isAcceptingVolunteers", False):
            raise InvalidState("Event is not accepting volunteers")
    elif not (event.get("partnershipOpportunities") or {}).get("isAcceptingPartners", False):
        raise InvalidState("Event is not accepting partners")


def find_partnership_offer(event, partnership_type):
    for offer in (event.get("partnershipOpportunities") or {}).get("types") or []:
        if offer.get("type") == partnership_type:
            return offer
    return None


def ensure_partnership_offered(event, partnership_type):
    if not partnership_type:
        raise ValidationError("partnershipDetails.partnershipType is required for partner registrations")
    offer = find_partnership_offer(event, partnership_type)
    if offer is None:
        raise InvalidState(f"Event does not offer '{partnership_type}' partnerships")
    return offer


def ensure_volunteer_capacity(event):
    """Fast read-only check; the binding check is reserve_volunteer_slot."""
    opportunities = event.get("volunteerOpportunities") or {}
    if opportunities.get("currentVolunteers", 0) >= opportunities.get("maxVolunteers", 0):
        raise CapacityExceeded("Event has reached volunteer capacity")


def ensure_partner_capacity(event, partnership_type):
    offer = ensure_partnership_offered(event, partnership_type)
    max_partners = offer.get("maxPartners")
    if max_partners is not None and offer.get("currentPartners", 0) >= max_partners:
        raise CapacityExceeded(f"Event has reached capacity for '{partnership_type}' partners")
    return offer


async def reserve_volunteer_slot(db, event):
    """
    Atomically take one volunteer slot: the $inc only applies while the event
    is still accepting volunteers and below maxVolunteers. Returns False when
    no slot could be taken.
    """
    max_volunteers = (event.get("volunteerOpportunities") or {}).get("maxVolunteers", 0)
    result = await db.update(
        EVENTS,
        {
            "event_id": event["event_id"],
            "volunteerOpportunities.isAcceptingVolunteers": True,
            "volunteerOpportunities.maxVolunteers": max_volunteers,
            "volunteerOpportunities.currentVolunteers": {"$lt": max_volunteers},
        },
        {"$inc": {VOLUNTEER_COUNTER: 1}}
    )
    return result["matched_count"] > 0


async def adjust_volunteer_slots(db, event_id, delta):
    if delta:
        await db.update(EVENTS, {"event_id": event_id}, {"$inc": {VOLUNTEER_COUNTER: delta}})


def slot_delta(registration, target):
    """Change in held volunteer slots when `registration` moves to `target`."""
    if registration["type"] != RegistrationType.VOLUNTEER.value:
        return 0
    return int(target in SLOT_HOLDING_STATUSES) - int(registration["status"] in SLOT_HOLDING_STATUSES)

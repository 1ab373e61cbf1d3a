import math
import re
import uuid
from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import Field

from config.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from config.log import get_logger
from database.DB import get_db, USERS, EVENTS, REGISTRATIONS
from helpers.SlugGenerator import generate_event_slug
from helpers.TimeUtils import utcnow
from models.models import (
    Document,
    Event,
    EventBody,
    EventCategory,
    EventLocation,
    EventMedia,
    EventResource,
    EventStatus,
    PartnershipOpportunities,
    VolunteerOpportunities,
    Visibility,
)
from services import RegistrationService
from services.Authorization import can_view_event, require_organizer
from services.Exceptions import NotFound, ValidationError
from services.ProjectionSynchronizer import sync_event, sync_user
from .dependencies import get_current_user, get_optional_user
from .views import serialize, with_event_timing

logger = get_logger(__name__)

router = APIRouter()

SORT_FIELDS = {
    "startDate": "startDate",
    "endDate": "endDate",
    "createdAt": "createdAt",
    "title": "title",
    "views": "stats.views",
}
ACCEPTED_REGISTRATION_STATUSES = ["approved", "confirmed", "attended"]
SUMMARY_USER_FIELDS = {"_id": 0, "user_id": 1, "name": 1, "profilePicture": 1, "stats": 1}
# Counters derived from registration rows; an update never takes them from the client.
DERIVED_OPPORTUNITY_FIELDS = {
    "volunteerOpportunities": ("currentVolunteers",),
    "partnershipOpportunities": ("currentFunding",),
}


# Pydantic models
class OrganizerContact(Document):
    name: Optional[str] = None
    phone: Optional[str] = None
    organization: Optional[str] = None
    website: Optional[str] = None
    logo: Optional[str] = None


class SEOInput(Document):
    metaTitle: Optional[str] = None
    metaDescription: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)


class EventCreate(EventBody):
    organizer: OrganizerContact = Field(default_factory=OrganizerContact)
    seo: SEOInput = Field(default_factory=SEOInput)


class EventUpdate(Document):
    title: Optional[str] = None
    description: Optional[str] = None
    shortDescription: Optional[str] = None
    category: Optional[EventCategory] = None
    tags: Optional[List[str]] = None
    location: Optional[EventLocation] = None
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    duration: Optional[float] = None
    timezone: Optional[str] = None
    organizer: Optional[OrganizerContact] = None
    volunteerOpportunities: Optional[VolunteerOpportunities] = None
    partnershipOpportunities: Optional[PartnershipOpportunities] = None
    media: Optional[EventMedia] = None
    resources: Optional[List[EventResource]] = None
    status: Optional[EventStatus] = None
    visibility: Optional[Visibility] = None
    seo: Optional[SEOInput] = None


def _event_query(category, location, search, type, status, user):
    query = {"status": status}
    clauses = []

    if status == EventStatus.DRAFT.value:
        # Drafts are only ever listed for their own organizer.
        query["organizer.userId"] = user["user_id"] if user else None

    if category and category != "all":
        query["category"] = category

    if location:
        pattern = {"$regex": re.escape(location), "$options": "i"}
        clauses.append({"$or": [
            {"location.address.city": pattern},
            {"location.address.state": pattern},
            {"location.address.country": pattern},
            {"location.venue": pattern},
        ]})

    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        clauses.append({"$or": [
            {"title": pattern},
            {"description": pattern},
            {"shortDescription": pattern},
            {"tags": pattern},
        ]})

    if type == "volunteer":
        query["volunteerOpportunities.isAcceptingVolunteers"] = True
    elif type == "partnership":
        query["partnershipOpportunities.isAcceptingPartners"] = True

    if clauses:
        query["$and"] = clauses
    return query


async def _load_visible_event(db, query, user):
    event = await db.find_one(EVENTS, query)
    if event is None or not can_view_event(event, user):
        raise NotFound("Event not found")
    return event


def _keep_stored_counters(event, changes):
    """Overwrite client-sent opportunity counters with the stored ones."""
    for block, fields in DERIVED_OPPORTUNITY_FIELDS.items():
        if block not in changes:
            continue
        stored = event.get(block) or {}
        for field in fields:
            changes[block][field] = stored.get(field, 0)

    if "volunteerOpportunities" in changes:
        filled = {role.get("title"): role.get("filled", 0)
                  for role in (event.get("volunteerOpportunities") or {}).get("roles") or []}
        for role in changes["volunteerOpportunities"].get("roles") or []:
            role["filled"] = filled.get(role["title"], 0)

    if "partnershipOpportunities" in changes:
        partners = {offer.get("type"): offer.get("currentPartners", 0)
                    for offer in (event.get("partnershipOpportunities") or {}).get("types") or []}
        for offer in changes["partnershipOpportunities"].get("types") or []:
            offer["currentPartners"] = partners.get(offer["type"], 0)


def _update_document(validated, changes):
    """$set for an update; opportunity blocks go in field by field, minus their counters."""
    update_fields = {}
    for key in list(changes) + ["organizer", "seo"]:
        if key not in validated:
            continue
        if key in DERIVED_OPPORTUNITY_FIELDS:
            for field, value in validated[key].items():
                if field not in DERIVED_OPPORTUNITY_FIELDS[key]:
                    update_fields[f"{key}.{field}"] = value
        else:
            update_fields[key] = validated[key]
    update_fields["updatedAt"] = utcnow()
    return update_fields


async def _populate_summaries(db, event):
    """Replace summary userIds with a slim public view of each user."""
    registrations = event.get("registrations") or {}
    user_ids = {s["userId"] for s in registrations.get("volunteers", []) + registrations.get("partners", [])}
    if not user_ids:
        return event

    result = await db.find_many(USERS, {"user_id": {"$in": list(user_ids)}}, projection=SUMMARY_USER_FIELDS)
    users = {u["user_id"]: u for u in result["data"]}
    for key in ("volunteers", "partners"):
        for summary in registrations.get(key, []):
            summary["user"] = users.get(summary["userId"])
    return event


@router.get('')
async def get_events(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    category: Optional[str] = None,
    location: Optional[str] = None,
    search: Optional[str] = None,
    type: Literal["all", "volunteer", "partnership"] = "all",
    status: EventStatus = EventStatus.PUBLISHED,
    sortBy: Literal["startDate", "endDate", "createdAt", "title", "views"] = "startDate",
    sortOrder: Literal["asc", "desc"] = "asc",
    user: Optional[dict] = Depends(get_optional_user),
    db=Depends(get_db),
):
    """List events with filtering and pagination"""
    query = _event_query(category, location, search, type, status.value, user)
    sort = [(SORT_FIELDS[sortBy], -1 if sortOrder == "desc" else 1), ("event_id", 1)]

    result = await db.find_many(
        EVENTS, query, projection={"registrations": 0},
        sort=sort, skip=(page - 1) * limit, limit=limit
    )
    total = await db.count(EVENTS, query)

    return JSONResponse(content={
        "events": serialize(result["data"]),
        "pagination": {
            "currentPage": page,
            "totalPages": math.ceil(total / limit),
            "totalEvents": total,
            "hasNext": page * limit < total,
            "hasPrev": page > 1,
        }
    })


@router.get('/meta/categories')
async def get_categories():
    return JSONResponse(content={"categories": [category.value for category in EventCategory]})


@router.get('/stats/overview')
async def get_overview(db=Depends(get_db)):
    """Platform-wide event and participation counts"""
    now = utcnow()
    published = {"status": EventStatus.PUBLISHED.value}

    overview = {
        "totalEvents": await db.count(EVENTS, published),
        "upcomingEvents": await db.count(EVENTS, {**published, "startDate": {"$gt": now}}),
        "ongoingEvents": await db.count(EVENTS, {"status": EventStatus.ONGOING.value}),
        "totalVolunteers": await db.count(REGISTRATIONS, {
            "type": "volunteer", "status": {"$in": ACCEPTED_REGISTRATION_STATUSES}
        }),
        "totalPartners": await db.count(REGISTRATIONS, {
            "type": "partner", "status": {"$in": ACCEPTED_REGISTRATION_STATUSES}
        }),
    }
    categories = await db.aggregate(EVENTS, [
        {"$match": published},
        {"$group": {"_id": "$category", "count": {"$sum": 1}}},
        {"$sort": {"count": -1}},
    ])

    return JSONResponse(content={"overview": overview, "categories": serialize(categories)})


@router.get('/slug/{slug}')
async def get_event_by_slug(slug: str, user: Optional[dict] = Depends(get_optional_user), db=Depends(get_db)):
    event = await _load_visible_event(db, {"seo.slug": slug}, user)
    await db.update(EVENTS, {"event_id": event["event_id"]}, {"$inc": {"stats.views": 1}})
    event = await _populate_summaries(db, event)
    return JSONResponse(content=serialize(with_event_timing(event)))


@router.get('/{event_id}')
async def get_event(event_id: str, user: Optional[dict] = Depends(get_optional_user), db=Depends(get_db)):
    """Single event with populated registration summaries; counts a view"""
    event = await _load_visible_event(db, {"event_id": event_id}, user)
    await db.update(EVENTS, {"event_id": event_id}, {"$inc": {"stats.views": 1}})
    event = await _populate_summaries(db, event)
    return JSONResponse(content=serialize(with_event_timing(event)))


@router.post('')
async def create_event(event_data: EventCreate, user: dict = Depends(get_current_user), db=Depends(get_db)):
    """Create a new event organized by the caller"""
    now = utcnow()
    body = event_data.model_dump(exclude={"organizer", "seo"})
    organizer = event_data.organizer.model_dump()
    organizer.update({
        "userId": user["user_id"],
        "name": organizer.get("name") or user["name"],
        "email": user["email"],
    })

    seo = event_data.seo.model_dump()
    seo["slug"] = generate_event_slug(event_data.title, now)

    event = Event(
        **body,
        event_id=str(uuid.uuid4()),
        organizer=organizer,
        seo=seo,
        createdAt=now,
        updatedAt=now,
    ).model_dump()
    # Counters are derived; whatever the client sent is recomputed from (zero) registrations.
    event.update({
        "registrations": {"volunteers": [], "partners": []},
        "stats": {"views": 0, "shares": 0, "totalRegistrations": 0},
    })
    event["volunteerOpportunities"]["currentVolunteers"] = 0

    result = await db.add(EVENTS, event)
    if result["status"] != 200:
        raise ValidationError("Failed to create event")
    await sync_event(db, event["event_id"])

    created = await db.find_one(EVENTS, {"event_id": event["event_id"]})
    logger.info("Event created", event_id=event["event_id"], organizer=user["user_id"])
    return JSONResponse(status_code=201, content={"message": "Event created successfully", "event": serialize(created)})


@router.put('/{event_id}')
async def update_event(event_id: str, event_data: EventUpdate, user: dict = Depends(get_current_user), db=Depends(get_db)):
    """Update an existing event (organizer only)"""
    event = await db.find_one(EVENTS, {"event_id": event_id})
    if event is None:
        raise NotFound("Event not found")
    require_organizer(event, user, "update this event")

    changes = event_data.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No fields to update")

    _keep_stored_counters(event, changes)

    merged = dict(event)
    merged.pop("_id", None)
    if "organizer" in changes:
        contact = {k: v for k, v in changes.pop("organizer").items() if v is not None}
        merged["organizer"] = {**event["organizer"], **contact}
    if "seo" in changes:
        merged["seo"] = {**changes.pop("seo"), "slug": (event.get("seo") or {}).get("slug")}
    merged.update(changes)

    if not (merged.get("seo") or {}).get("slug"):
        merged.setdefault("seo", {})["slug"] = generate_event_slug(merged["title"])

    try:
        validated = Event.model_validate(merged).model_dump()
    except ValueError as e:
        raise ValidationError(str(e))

    await db.update(EVENTS, {"event_id": event_id}, {"$set": _update_document(validated, changes)})
    # Opportunity edits can change role/type lists; recompute their counters.
    await sync_event(db, event_id)

    updated_event = await db.find_one(EVENTS, {"event_id": event_id})
    return JSONResponse(content={"message": "Event updated successfully", "event": serialize(updated_event)})


@router.delete('/{event_id}')
async def delete_event(event_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    """Delete an event (organizer only); its registrations go with it"""
    event = await db.find_one(EVENTS, {"event_id": event_id})
    if event is None:
        raise NotFound("Event not found")
    require_organizer(event, user, "delete this event")

    registrations = await db.find_many(REGISTRATIONS, {"event": event_id}, projection={"user": 1})
    user_ids = {registration["user"] for registration in registrations["data"]}

    await db.delete(EVENTS, {"event_id": event_id})
    await db.delete_many(REGISTRATIONS, {"event": event_id})
    for user_id in user_ids:
        await sync_user(db, user_id)

    logger.info("Event deleted", event_id=event_id, users_resynced=len(user_ids))
    return JSONResponse(content={"message": "Event deleted successfully"})


@router.get('/{event_id}/registrations')
async def get_event_registrations(event_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    registrations = await RegistrationService.list_event_registrations(db, user, event_id)
    return JSONResponse(content={"registrations": serialize(registrations)})

import math
from collections import Counter
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import Field

from config.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from database.DB import get_db, USERS, EVENTS, REGISTRATIONS
from helpers.TimeUtils import utcnow
from models.models import Document, EventCategory, NotificationSettings, UserLocation
from services import UserService
from services.Exceptions import NotFound, ValidationError
from .dependencies import get_current_user
from .views import profile_view, serialize, with_event_timing

router = APIRouter()

ACTIVE_REGISTRATION_STATUSES = ["approved", "confirmed"]
EVENT_LIST_FIELDS = {
    "_id": 0, "event_id": 1, "title": 1, "shortDescription": 1, "category": 1,
    "startDate": 1, "endDate": 1, "location": 1, "status": 1, "media": 1, "seo": 1,
}


class ProfileUpdate(Document):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    location: Optional[UserLocation] = None
    interests: Optional[List[EventCategory]] = None
    skills: Optional[List[str]] = None
    bio: Optional[str] = Field(None, max_length=500)
    notifications: Optional[NotificationSettings] = None


async def _events_by_id(db, event_ids):
    result = await db.find_many(EVENTS, {"event_id": {"$in": list(event_ids)}}, projection=EVENT_LIST_FIELDS)
    return {event["event_id"]: event for event in result["data"]}


async def _user_registrations(db, user_id, query=None):
    result = await db.find_many(
        REGISTRATIONS, {"user": user_id, **(query or {})},
        projection={"statusHistory": 0, "ipAddress": 0, "userAgent": 0},
        sort=[("createdAt", -1)]
    )
    registrations = result["data"]
    events = await _events_by_id(db, {registration["event"] for registration in registrations})
    for registration in registrations:
        registration["event"] = events.get(registration["event"])
    # Registrations whose event vanished are not shown.
    return [registration for registration in registrations if registration["event"] is not None]


@router.get('/profile')
async def get_profile(user: dict = Depends(get_current_user)):
    return JSONResponse(content={"user": profile_view(user)})


@router.put('/profile')
async def update_profile(profile_data: ProfileUpdate, user: dict = Depends(get_current_user), db=Depends(get_db)):
    """Update the caller's editable profile fields"""
    changes = profile_data.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No fields to update")
    if "name" in changes and changes["name"] is not None:
        changes["name"] = changes["name"].strip()

    changes["updatedAt"] = utcnow()
    await db.update(USERS, {"user_id": user["user_id"]}, {"$set": changes})

    updated_user = await db.find_one(USERS, {"user_id": user["user_id"]})
    return JSONResponse(content={"message": "Profile updated successfully", "user": profile_view(updated_user)})


@router.get('/dashboard')
async def get_dashboard(user: dict = Depends(get_current_user), db=Depends(get_db)):
    """Upcoming events and recent activity for the caller"""
    now = utcnow()
    registrations = await _user_registrations(db, user["user_id"])

    upcoming = [
        registration for registration in registrations
        if registration["event"]["startDate"] > now and registration["status"] in ACTIVE_REGISTRATION_STATUSES
    ]
    upcoming.sort(key=lambda registration: registration["event"]["startDate"])
    pending_actions = [
        registration for registration in registrations
        if registration["status"] == "approved" and registration["event"]["startDate"] > now
    ]

    return JSONResponse(content=serialize({
        "user": profile_view(user),
        "upcomingEvents": upcoming[:5],
        "recentRegistrations": registrations[:5],
        "pendingConfirmations": len(pending_actions),
        "stats": user.get("stats", {}),
    }))


@router.get('/events')
async def get_user_events(
    type: Literal["all", "volunteer", "partner"] = "all",
    status: Literal["all", "upcoming", "past", "active"] = "all",
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    """The caller's registrations with their events, filtered and paginated"""
    query = {}
    if type != "all":
        query["type"] = type
    if status == "active":
        query["status"] = {"$in": ACTIVE_REGISTRATION_STATUSES}

    registrations = await _user_registrations(db, user["user_id"], query)

    now = utcnow()
    if status == "upcoming":
        registrations = [r for r in registrations if r["event"]["startDate"] > now]
    elif status == "past":
        registrations = [r for r in registrations if r["event"]["endDate"] < now]

    total = len(registrations)
    start = (page - 1) * limit
    page_items = [
        {**registration, "event": with_event_timing(registration["event"])}
        for registration in registrations[start:start + limit]
    ]

    return JSONResponse(content=serialize({
        "registrations": page_items,
        "pagination": {
            "currentPage": page,
            "totalPages": math.ceil(total / limit),
            "totalRegistrations": total,
            "hasNext": start + limit < total,
            "hasPrev": page > 1,
        }
    }))


@router.get('/stats')
async def get_user_stats(user: dict = Depends(get_current_user), db=Depends(get_db)):
    """Registration breakdowns for the caller's profile page"""
    registrations = await _user_registrations(db, user["user_id"])

    by_status = Counter(f"{r['type']}:{r['status']}" for r in registrations)
    status_counts = {}
    for key, count in by_status.items():
        registration_type, registration_status = key.split(":", 1)
        status_counts.setdefault(registration_type, {})[registration_status] = count

    categories = Counter(r["event"].get("category") for r in registrations)
    monthly = Counter(r["createdAt"].strftime("%Y-%m") for r in registrations if r.get("createdAt"))

    return JSONResponse(content={
        "stats": serialize(user.get("stats", {})),
        "registrationsByStatus": status_counts,
        "categoryDistribution": [
            {"category": category, "count": count} for category, count in categories.most_common()
        ],
        "monthlyActivity": [
            {"month": month, "count": monthly[month]} for month in sorted(monthly)
        ],
    })


@router.delete('/account')
async def delete_account(user: dict = Depends(get_current_user), db=Depends(get_db)):
    removed = await UserService.delete_account(db, user)
    return JSONResponse(content={"message": "Account deleted successfully", "registrationsRemoved": removed})


@router.get('/{user_id}/public')
async def get_public_profile(user_id: str, db=Depends(get_db)):
    """Public view of a user; only attended events the user agreed to show are listed"""
    user = await db.find_one(USERS, {"user_id": user_id, "isActive": True})
    if user is None:
        raise NotFound("User not found")

    registrations = await _user_registrations(db, user_id, {
        "status": "attended",
        "consent.publicProfile": True,
    })
    public_events = [
        {
            "type": registration["type"],
            "role": (registration.get("checkin") or {}).get("actualRole"),
            "event": registration["event"],
        }
        for registration in registrations
    ]

    return JSONResponse(content=serialize({
        "user": {
            "id": user["user_id"],
            "name": user["name"],
            "profilePicture": user.get("profilePicture"),
            "bio": user.get("bio"),
            "interests": user.get("interests", []),
            "skills": user.get("skills", []),
            "stats": user.get("stats", {}),
            "memberSince": user.get("createdAt"),
        },
        "events": public_events,
    }))

"""Response shapes shared by several routers."""
from helpers.DateTimeSerializer import DateTimeSerializerVisitor
from helpers.TimeUtils import utcnow

_serializer = DateTimeSerializerVisitor()


def serialize(obj):
    return _serializer.visit(obj)


def profile_view(user):
    return serialize({
        "id": user["user_id"],
        "authId": user.get("authId"),
        "email": user.get("email"),
        "name": user.get("name"),
        "profilePicture": user.get("profilePicture"),
        "location": user.get("location"),
        "interests": user.get("interests", []),
        "skills": user.get("skills", []),
        "bio": user.get("bio"),
        "stats": user.get("stats", {}),
        "notifications": user.get("notifications", {}),
        "totalEvents": len(user.get("volunteerEvents", [])) + len(user.get("partnershipEvents", [])),
        "createdAt": user.get("createdAt"),
        "lastLogin": user.get("lastLogin"),
    })


def with_event_timing(event):
    """Add the read-only timing/progress fields clients display on event pages."""
    now = utcnow()
    event = dict(event)
    start, end = event.get("startDate"), event.get("endDate")
    volunteers = event.get("volunteerOpportunities") or {}
    partnerships = event.get("partnershipOpportunities") or {}

    event["isUpcoming"] = bool(start and start > now)
    event["isOngoing"] = bool(start and end and start <= now <= end)
    event["isPast"] = bool(end and end < now)
    event["volunteersNeeded"] = max(0, volunteers.get("maxVolunteers", 0) - volunteers.get("currentVolunteers", 0))

    goal = partnerships.get("totalFundingGoal")
    event["fundingProgress"] = (partnerships.get("currentFunding", 0) / goal) * 100 if goal else 0
    return event

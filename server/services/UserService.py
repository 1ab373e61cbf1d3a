import uuid

from pymongo.errors import DuplicateKeyError

from config.log import get_logger
from database.DB import USERS, REGISTRATIONS
from helpers.TimeUtils import utcnow
from models.models import User
from services import CapacityGate, StateMachine
from services.Exceptions import Conflict, NotFound
from services.ProjectionSynchronizer import sync_event

logger = get_logger(__name__)


async def find_by_identity(db, identity):
    return await db.find_one(USERS, {"authId": identity.id})


async def login(db, identity):
    """Find the user for a verified identity, creating it on first login."""
    now = utcnow()
    user = await find_by_identity(db, identity)
    if user is not None:
        await db.update(USERS, {"user_id": user["user_id"]}, {"$set": {"lastLogin": now}})
        return await db.find_one(USERS, {"user_id": user["user_id"]}), False

    document = User(
        user_id=str(uuid.uuid4()),
        authId=identity.id,
        email=identity.email,
        name=identity.name,
        profilePicture=identity.picture,
        lastLogin=now,
        createdAt=now,
        updatedAt=now,
    ).model_dump()

    try:
        await db.add(USERS, document)
    except DuplicateKeyError:
        # Either a concurrent first login won the race, or the email belongs to another identity.
        user = await find_by_identity(db, identity)
        if user is None:
            raise Conflict("An account with this email already exists")
        return user, False

    logger.info("User created on first login", user_id=document["user_id"], email=document["email"])
    return await db.find_one(USERS, {"user_id": document["user_id"]}), True


async def delete_account(db, user):
    """Remove the user and every registration they hold, then rebuild the affected events."""
    result = await db.find_many(REGISTRATIONS, {"user": user["user_id"]}, projection={"event": 1, "type": 1, "status": 1})
    event_ids = {registration["event"] for registration in result["data"]}

    deleted = await db.delete_many(REGISTRATIONS, {"user": user["user_id"]})
    outcome = await db.delete(USERS, {"user_id": user["user_id"]})
    if outcome["deleted_count"] == 0:
        raise NotFound("User not found")

    for registration in result["data"]:
        # Deleting a row is a move out of every status: give back any slot it held.
        await CapacityGate.adjust_volunteer_slots(
            db, registration["event"], CapacityGate.slot_delta(registration, StateMachine.CANCELLED)
        )
    for event_id in event_ids:
        await sync_event(db, event_id)

    logger.info("Account deleted", user_id=user["user_id"],
                registrations_removed=deleted["deleted_count"], events_resynced=len(event_ids))
    return deleted["deleted_count"]

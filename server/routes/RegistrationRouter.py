from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import Field

from database.DB import get_db
from models.models import (
    Consent,
    CustomResponse,
    Document,
    PartnershipDetails,
    RegistrationNotes,
    RegistrationSource,
    RegistrationType,
    VolunteerDetails,
)
from services import RegistrationService
from .dependencies import get_current_user
from .views import serialize

router = APIRouter()


# Pydantic models
class RegistrationCreate(Document):
    eventId: str
    type: RegistrationType
    volunteerDetails: Optional[VolunteerDetails] = None
    partnershipDetails: Optional[PartnershipDetails] = None
    customResponses: List[CustomResponse] = Field(default_factory=list)
    consent: Consent
    registrationSource: RegistrationSource = RegistrationSource.WEB


class RegistrationUpdate(Document):
    volunteerDetails: Optional[VolunteerDetails] = None
    partnershipDetails: Optional[PartnershipDetails] = None
    customResponses: Optional[List[CustomResponse]] = None
    notes: Optional[RegistrationNotes] = None
    consent: Optional[Consent] = None


class ApproveRequest(Document):
    notes: Optional[str] = None


class RejectRequest(Document):
    reason: Optional[str] = None


class CheckInRequest(Document):
    actualRole: Optional[str] = None
    hoursContributed: Optional[float] = Field(None, ge=0)


class FeedbackRequest(Document):
    rating: int = Field(..., ge=1, le=5)
    comments: Optional[str] = Field(None, max_length=1000)
    wouldRecommend: Optional[bool] = None
    improvements: Optional[str] = Field(None, max_length=500)


@router.post('')
async def create_registration(
    registration_data: RegistrationCreate,
    request: Request,
    user: dict = Depends(get_current_user),
    db=Depends(get_db)
):
    """Register the caller as a volunteer or partner for an event"""
    registration = await RegistrationService.create_registration(
        db, user, registration_data,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    populated = await RegistrationService.populate(db, registration)
    return JSONResponse(
        status_code=201,
        content={"message": "Registration successful", "registration": serialize(populated)}
    )


@router.get('/{registration_id}')
async def get_registration(registration_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    registration = await RegistrationService.get_registration(db, user, registration_id)
    return JSONResponse(content=serialize(registration))


@router.put('/{registration_id}')
async def update_registration(
    registration_id: str,
    registration_data: RegistrationUpdate,
    user: dict = Depends(get_current_user),
    db=Depends(get_db)
):
    registration = await RegistrationService.update_registration(db, user, registration_id, registration_data)
    return JSONResponse(content={"message": "Registration updated successfully", "registration": serialize(registration)})


@router.delete('/{registration_id}')
async def cancel_registration(registration_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    """Cancel the caller's own registration; the row is kept with status 'cancelled'"""
    registration = await RegistrationService.cancel_registration(db, user, registration_id)
    return JSONResponse(content={"message": "Registration cancelled successfully", "registration": serialize(registration)})


@router.post('/{registration_id}/approve')
async def approve_registration(
    registration_id: str,
    body: ApproveRequest = ApproveRequest(),
    user: dict = Depends(get_current_user),
    db=Depends(get_db)
):
    registration = await RegistrationService.approve_registration(db, user, registration_id, body.notes)
    return JSONResponse(content={"message": "Registration approved successfully", "registration": serialize(registration)})


@router.post('/{registration_id}/reject')
async def reject_registration(
    registration_id: str,
    body: RejectRequest = RejectRequest(),
    user: dict = Depends(get_current_user),
    db=Depends(get_db)
):
    registration = await RegistrationService.reject_registration(db, user, registration_id, body.reason)
    return JSONResponse(content={"message": "Registration rejected", "registration": serialize(registration)})


@router.post('/{registration_id}/waitlist')
async def waitlist_registration(
    registration_id: str,
    body: ApproveRequest = ApproveRequest(),
    user: dict = Depends(get_current_user),
    db=Depends(get_db)
):
    registration = await RegistrationService.waitlist_registration(db, user, registration_id, body.notes)
    return JSONResponse(content={"message": "Registration waitlisted", "registration": serialize(registration)})


@router.post('/{registration_id}/confirm')
async def confirm_registration(registration_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    registration = await RegistrationService.confirm_registration(db, user, registration_id)
    return JSONResponse(content={"message": "Attendance confirmed", "registration": serialize(registration)})


@router.post('/{registration_id}/no-show')
async def mark_no_show(
    registration_id: str,
    body: ApproveRequest = ApproveRequest(),
    user: dict = Depends(get_current_user),
    db=Depends(get_db)
):
    registration = await RegistrationService.mark_no_show(db, user, registration_id, body.notes)
    return JSONResponse(content={"message": "Marked as no-show", "registration": serialize(registration)})


@router.post('/{registration_id}/checkin')
async def check_in(
    registration_id: str,
    body: CheckInRequest = CheckInRequest(),
    user: dict = Depends(get_current_user),
    db=Depends(get_db)
):
    """Check in an attendee (event organizer only)"""
    registration = await RegistrationService.check_in(
        db, user, registration_id,
        actual_role=body.actualRole,
        hours_contributed=body.hoursContributed,
    )
    return JSONResponse(content={"message": "Check-in successful", "registration": serialize(registration)})


@router.post('/{registration_id}/feedback')
async def submit_feedback(
    registration_id: str,
    feedback_data: FeedbackRequest,
    user: dict = Depends(get_current_user),
    db=Depends(get_db)
):
    registration = await RegistrationService.submit_feedback(db, user, registration_id, feedback_data)
    return JSONResponse(content={"message": "Feedback submitted successfully", "registration": serialize(registration)})

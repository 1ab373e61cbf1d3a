from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from helpers.TimeUtils import as_naive_utc


class EventCategory(str, Enum):
    TECHNOLOGY = "Technology"
    EDUCATION = "Education"
    HEALTHCARE = "Healthcare"
    ENVIRONMENT = "Environment"
    COMMUNITY_DEVELOPMENT = "Community Development"
    ARTS_CULTURE = "Arts & Culture"
    SPORTS_RECREATION = "Sports & Recreation"
    SOCIAL_SERVICES = "Social Services"
    BUSINESS = "Business & Entrepreneurship"
    OTHER = "Other"


class EventStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    INVITE_ONLY = "invite-only"


class PartnershipKind(str, Enum):
    SPONSOR = "sponsor"
    VENUE = "venue"
    SPEAKER = "speaker"
    MEDIA = "media"
    OTHER = "other"


class RegistrationType(str, Enum):
    VOLUNTEER = "volunteer"
    PARTNER = "partner"


class RegistrationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    WAITLISTED = "waitlisted"
    CONFIRMED = "confirmed"
    ATTENDED = "attended"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class VolunteerSummaryStatus(str, Enum):
    REGISTERED = "registered"
    CONFIRMED = "confirmed"
    ATTENDED = "attended"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class PartnerSummaryStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ACTIVE = "active"
    COMPLETED = "completed"


class AnswerKind(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    SELECT = "select"
    MULTISELECT = "multiselect"
    FILE = "file"


class TShirtSize(str, Enum):
    XS = "XS"
    S = "S"
    M = "M"
    L = "L"
    XL = "XL"
    XXL = "XXL"
    XXXL = "XXXL"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class RegistrationSource(str, Enum):
    WEB = "web"
    MOBILE = "mobile"
    API = "api"
    IMPORT = "import"
    ADMIN = "admin"


class Document(BaseModel):
    """Base for everything persisted; enums are stored as their plain values."""
    model_config = ConfigDict(use_enum_values=True, validate_default=True)


# --- shared ---------------------------------------------------------------

class Coordinates(Document):
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)


class Address(Document):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    zipCode: Optional[str] = None


# --- user -----------------------------------------------------------------

class UserLocation(Document):
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    coordinates: Optional[Coordinates] = None


class UserVolunteerEvent(Document):
    eventId: str
    registrationId: str
    registeredAt: datetime
    role: Optional[str] = None
    status: VolunteerSummaryStatus = VolunteerSummaryStatus.REGISTERED


class UserPartnershipEvent(Document):
    eventId: str
    registrationId: str
    registeredAt: datetime
    partnershipType: PartnershipKind
    status: PartnerSummaryStatus = PartnerSummaryStatus.PENDING
    contribution: Optional[str] = None
    fundingAmount: Optional[float] = Field(None, ge=0)


class UserStats(Document):
    totalVolunteerHours: float = 0
    eventsAttended: int = 0
    partnershipsCompleted: int = 0
    impactScore: int = 0


class NotificationSettings(Document):
    email: bool = True
    eventReminders: bool = True
    partnershipUpdates: bool = True
    communityUpdates: bool = False


class User(Document):
    user_id: str
    authId: str
    email: str
    name: str
    profilePicture: Optional[str] = None
    location: Optional[UserLocation] = None
    interests: List[EventCategory] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)
    bio: Optional[str] = Field(None, max_length=500)
    volunteerEvents: List[UserVolunteerEvent] = Field(default_factory=list)
    partnershipEvents: List[UserPartnershipEvent] = Field(default_factory=list)
    stats: UserStats = Field(default_factory=UserStats)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    isActive: bool = True
    lastLogin: Optional[datetime] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value):
        return value.strip().lower()


# --- event ----------------------------------------------------------------

class EventLocation(Document):
    venue: Optional[str] = None
    address: Optional[Address] = None
    coordinates: Optional[Coordinates] = None
    isVirtual: bool = False
    virtualLink: Optional[str] = None


class Organizer(Document):
    userId: Optional[str] = None
    name: str
    email: str
    phone: Optional[str] = None
    organization: Optional[str] = None
    website: Optional[str] = None
    logo: Optional[str] = None


class VolunteerRole(Document):
    title: str
    description: Optional[str] = None
    skillsRequired: List[str] = Field(default_factory=list)
    count: Optional[int] = Field(None, ge=0)
    filled: int = 0


class VolunteerRequirements(Document):
    minAge: Optional[int] = Field(None, ge=0)
    backgroundCheck: bool = False
    specificSkills: List[str] = Field(default_factory=list)
    timeCommitment: Optional[str] = None


class VolunteerOpportunities(Document):
    isAcceptingVolunteers: bool = True
    maxVolunteers: int = Field(50, ge=0)
    currentVolunteers: int = 0
    roles: List[VolunteerRole] = Field(default_factory=list)
    requirements: VolunteerRequirements = Field(default_factory=VolunteerRequirements)
    benefits: List[str] = Field(default_factory=list)


class SuggestedAmount(Document):
    min: Optional[float] = Field(None, ge=0)
    max: Optional[float] = Field(None, ge=0)


class PartnershipOffer(Document):
    type: PartnershipKind
    description: Optional[str] = None
    requirements: Optional[str] = None
    benefits: List[str] = Field(default_factory=list)
    fundingRequired: bool = False
    suggestedAmount: Optional[SuggestedAmount] = None
    maxPartners: Optional[int] = Field(None, ge=0)
    currentPartners: int = 0


class PartnershipOpportunities(Document):
    isAcceptingPartners: bool = True
    types: List[PartnershipOffer] = Field(default_factory=list)
    totalFundingGoal: Optional[float] = Field(None, ge=0)
    currentFunding: float = 0


class EventMedia(Document):
    featuredImage: Optional[str] = None
    gallery: List[str] = Field(default_factory=list)
    videos: List[str] = Field(default_factory=list)


class EventResource(Document):
    title: str
    description: Optional[str] = None
    url: Optional[str] = None
    type: Optional[str] = Field(None, pattern="^(document|video|link|image|other)$")


class VolunteerSummary(Document):
    userId: str
    registrationId: str
    registeredAt: datetime
    role: Optional[str] = None
    status: VolunteerSummaryStatus = VolunteerSummaryStatus.REGISTERED
    notes: Optional[str] = None


class PartnerSummary(Document):
    userId: str
    registrationId: str
    registeredAt: datetime
    partnershipType: PartnershipKind
    status: PartnerSummaryStatus = PartnerSummaryStatus.PENDING
    contribution: Optional[str] = None
    fundingAmount: Optional[float] = None
    approvedAt: Optional[datetime] = None
    notes: Optional[str] = None


class EventRegistrations(Document):
    volunteers: List[VolunteerSummary] = Field(default_factory=list)
    partners: List[PartnerSummary] = Field(default_factory=list)


class EventStats(Document):
    views: int = 0
    shares: int = 0
    totalRegistrations: int = 0


class EventSEO(Document):
    metaTitle: Optional[str] = None
    metaDescription: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    slug: Optional[str] = None


class EventBody(Document):
    """Organizer-editable part of an event; shared by the create payload and the stored document."""
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., max_length=2000)
    shortDescription: str = Field(..., max_length=300)
    category: EventCategory
    tags: List[str] = Field(default_factory=list)
    location: EventLocation = Field(default_factory=EventLocation)
    startDate: datetime
    endDate: datetime
    duration: float = Field(..., ge=0)
    timezone: str = "UTC"
    volunteerOpportunities: VolunteerOpportunities = Field(default_factory=VolunteerOpportunities)
    partnershipOpportunities: PartnershipOpportunities = Field(default_factory=PartnershipOpportunities)
    media: EventMedia = Field(default_factory=EventMedia)
    resources: List[EventResource] = Field(default_factory=list)
    status: EventStatus = EventStatus.DRAFT
    visibility: Visibility = Visibility.PUBLIC

    @field_validator("title")
    @classmethod
    def strip_title(cls, value):
        value = value.strip()
        if not value:
            raise ValueError("title must not be blank")
        return value

    @field_validator("startDate", "endDate")
    @classmethod
    def normalize_dates(cls, value):
        return as_naive_utc(value)

    @model_validator(mode="after")
    def check_dates(self):
        if self.endDate < self.startDate:
            raise ValueError("endDate must not be before startDate")
        return self


class Event(EventBody):
    event_id: str
    organizer: Organizer
    registrations: EventRegistrations = Field(default_factory=EventRegistrations)
    stats: EventStats = Field(default_factory=EventStats)
    seo: EventSEO = Field(default_factory=EventSEO)
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


# --- registration ---------------------------------------------------------

class Availability(Document):
    startTime: Optional[datetime] = None
    endTime: Optional[datetime] = None
    flexibleSchedule: bool = False


class EmergencyContact(Document):
    name: Optional[str] = None
    phone: Optional[str] = None
    relationship: Optional[str] = None


class VolunteerDetails(Document):
    preferredRole: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    experience: Optional[str] = Field(None, max_length=500)
    availability: Optional[Availability] = None
    emergencyContact: Optional[EmergencyContact] = None
    specialRequirements: Optional[str] = Field(None, max_length=300)
    tshirtSize: Optional[TShirtSize] = None


class ContactPerson(Document):
    name: Optional[str] = None
    title: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class Contribution(Document):
    description: Optional[str] = Field(None, max_length=1000)
    value: Optional[float] = Field(None, ge=0)
    currency: str = "USD"
    inKind: bool = False
    inKindDescription: Optional[str] = None


class PreviousPartnership(Document):
    eventName: Optional[str] = None
    year: Optional[int] = None
    type: Optional[str] = None


class SocialMedia(Document):
    facebook: Optional[str] = None
    twitter: Optional[str] = None
    linkedin: Optional[str] = None
    instagram: Optional[str] = None


class PartnershipDetails(Document):
    partnershipType: PartnershipKind
    organizationName: Optional[str] = None
    organizationWebsite: Optional[str] = None
    contactPerson: Optional[ContactPerson] = None
    contribution: Contribution = Field(default_factory=Contribution)
    requirements: Optional[str] = Field(None, max_length=500)
    expectations: Optional[str] = Field(None, max_length=500)
    previousPartnerships: List[PreviousPartnership] = Field(default_factory=list)
    logoUrl: Optional[str] = None
    websiteUrl: Optional[str] = None
    socialMedia: Optional[SocialMedia] = None


class CustomResponse(Document):
    question: str
    answer: Optional[str] = None
    type: AnswerKind = AnswerKind.TEXT


class StatusHistoryEntry(Document):
    status: RegistrationStatus
    changedAt: datetime
    changedBy: Optional[str] = None
    notes: Optional[str] = None


class RegistrationNotes(Document):
    user: Optional[str] = Field(None, max_length=1000)
    organizer: Optional[str] = Field(None, max_length=1000)
    internal: Optional[str] = Field(None, max_length=1000)


class Confirmation(Document):
    isConfirmed: bool = False
    confirmedAt: Optional[datetime] = None
    remindersSent: int = 0


class CheckIn(Document):
    checkedIn: bool = False
    checkedInAt: Optional[datetime] = None
    checkedInBy: Optional[str] = None
    actualRole: Optional[str] = None
    hoursContributed: Optional[float] = Field(None, ge=0)


class Feedback(Document):
    rating: int = Field(..., ge=1, le=5)
    comments: Optional[str] = Field(None, max_length=1000)
    wouldRecommend: Optional[bool] = None
    improvements: Optional[str] = Field(None, max_length=500)
    submittedAt: Optional[datetime] = None


class Consent(Document):
    dataProcessing: bool
    communications: bool = True
    photoRelease: bool = False
    publicProfile: bool = False


class Payment(Document):
    required: bool = False
    amount: Optional[float] = Field(None, ge=0)
    currency: str = "USD"
    status: PaymentStatus = PaymentStatus.PENDING
    transactionId: Optional[str] = None
    paymentMethod: Optional[str] = None
    paidAt: Optional[datetime] = None


class Registration(Document):
    registration_id: str
    user: str
    event: str
    type: RegistrationType
    volunteerDetails: Optional[VolunteerDetails] = None
    partnershipDetails: Optional[PartnershipDetails] = None
    status: RegistrationStatus = RegistrationStatus.PENDING
    approvedAt: Optional[datetime] = None
    statusHistory: List[StatusHistoryEntry] = Field(default_factory=list)
    notes: RegistrationNotes = Field(default_factory=RegistrationNotes)
    customResponses: List[CustomResponse] = Field(default_factory=list)
    confirmation: Confirmation = Field(default_factory=Confirmation)
    checkin: CheckIn = Field(default_factory=CheckIn)
    feedback: Optional[Feedback] = None
    consent: Consent
    payment: Payment = Field(default_factory=Payment)
    registrationSource: RegistrationSource = RegistrationSource.WEB
    ipAddress: Optional[str] = None
    userAgent: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @model_validator(mode="after")
    def check_details_match_type(self):
        # Details form a tagged union keyed by `type`.
        if self.type == RegistrationType.VOLUNTEER.value:
            if self.partnershipDetails is not None:
                raise ValueError("volunteer registrations cannot carry partnershipDetails")
        elif self.partnershipDetails is None:
            raise ValueError("partner registrations require partnershipDetails")
        elif self.volunteerDetails is not None:
            raise ValueError("partner registrations cannot carry volunteerDetails")
        return self

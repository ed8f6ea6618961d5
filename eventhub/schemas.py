from pydantic import BaseModel, EmailStr, Field, model_validator
from datetime import date, datetime
from typing import Literal, Optional
from eventhub.models import EventStatus, PaymentStatus, TicketStatus, UserRole

MAX_TICKETS_PER_PURCHASE = 10
TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


# ============== User Schemas ==============

class UserBase(BaseModel):
    email: EmailStr
    name: str = Field(min_length=2)
    role: UserRole = UserRole.ATTENDEE
    company_name: Optional[str] = None
    contact_details: Optional[str] = None


class UserCreate(UserBase):
    password: str = Field(min_length=8)


class UserResponse(UserBase):
    id: int
    created_at: datetime

    class Config:
        from_attributes = True


class TokenRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(min_length=8)


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2)
    role: Optional[UserRole] = None
    company_name: Optional[str] = None
    contact_details: Optional[str] = None


# ============== Category Schemas ==============

class CategoryResponse(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    color: Optional[str] = None

    class Config:
        from_attributes = True


# ============== Location Schemas ==============

class LocationResponse(BaseModel):
    id: str
    label: str
    type: Literal["physical", "virtual"]


# ============== Ticket Type Schemas ==============

class TicketTypeIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    price: float = Field(ge=0)
    quantity: int = Field(ge=1)


class TicketTypeResponse(BaseModel):
    name: str
    description: Optional[str] = None
    price: float
    quantity: int
    sold: int
    remaining: int


class AvailabilityResponse(BaseModel):
    total_capacity: int
    total_sold: int
    available: int


# ============== Event Schemas ==============

class EventCreate(BaseModel):
    title: str = Field(min_length=3, max_length=255)
    description: str = Field(min_length=10)
    start_date: date
    end_date: Optional[date] = None  # Defaults to the start date
    start_time: str = Field(pattern=TIME_PATTERN)
    end_time: str = Field(pattern=TIME_PATTERN)
    location: str = Field(min_length=3)
    venue: Optional[str] = None
    category: str = Field(min_length=1, max_length=100)
    max_attendees: int = Field(ge=1)
    ticket_price: float = Field(default=0, ge=0)
    is_virtual: bool = False
    virtual_link: Optional[str] = None
    image_url: Optional[str] = None
    tags: list[str] = []
    ticket_types: Optional[list[TicketTypeIn]] = Field(default=None, min_length=1)
    status: Literal["draft", "published"] = "draft"

    @model_validator(mode="after")
    def check_venue_or_link(self):
        if self.is_virtual and (not self.virtual_link or len(self.virtual_link) < 3):
            raise ValueError("Virtual events require a virtual link")
        if not self.is_virtual and (not self.venue or len(self.venue) < 3):
            raise ValueError("Physical events require a venue")
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("End date must not be before the start date")
        return self


class EventUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=3, max_length=255)
    description: Optional[str] = Field(default=None, min_length=10)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    start_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    end_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    location: Optional[str] = Field(default=None, min_length=1)
    venue: Optional[str] = None
    is_virtual: Optional[bool] = None
    virtual_link: Optional[str] = None
    capacity: Optional[int] = Field(default=None, ge=1)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    tags: Optional[list[str]] = None
    image_url: Optional[str] = None
    status: Optional[EventStatus] = None
    ticket_types: Optional[list[TicketTypeIn]] = Field(default=None, min_length=1)


class OrganizerSummary(BaseModel):
    id: int
    name: str
    company_name: Optional[str] = None

    class Config:
        from_attributes = True


class EventResponse(BaseModel):
    id: int
    slug: str
    title: str
    description: str
    start_date: date
    start_time: str
    end_date: date
    end_time: str
    location: str
    venue: Optional[str] = None
    is_virtual: bool
    virtual_link: Optional[str] = None
    capacity: int
    image_url: Optional[str] = None
    tags: list[str] = []
    status: EventStatus
    organizer: OrganizerSummary
    category: Optional[CategoryResponse] = None
    ticket_types: list[TicketTypeResponse]
    availability: AvailabilityResponse
    created_at: datetime


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class EventListResponse(BaseModel):
    events: list[EventResponse]
    pagination: Pagination


class EventCancelResponse(BaseModel):
    id: int
    status: EventStatus


# ============== Purchase Schemas ==============

class PurchaseRequest(BaseModel):
    event_id: int = Field(alias="eventId")
    quantity: int = Field(ge=1, le=MAX_TICKETS_PER_PURCHASE)
    total_amount: float = Field(alias="totalAmount", ge=0)
    ticket_type: Optional[str] = Field(default=None, alias="ticketType")

    class Config:
        populate_by_name = True


class PurchaseResponse(BaseModel):
    id: int
    confirmation_code: str = Field(alias="confirmationCode")
    status: TicketStatus

    class Config:
        populate_by_name = True


class PaymentCompletionRequest(BaseModel):
    ticket_id: int = Field(alias="ticketId")

    class Config:
        populate_by_name = True


class PaymentCompletionResponse(BaseModel):
    id: int
    payment_status: PaymentStatus = Field(alias="paymentStatus")

    class Config:
        populate_by_name = True


# ============== Ticket Schemas ==============

class TicketEventSummary(BaseModel):
    id: int
    title: str
    slug: str
    start_date: date
    start_time: str
    location: str
    is_virtual: bool

    class Config:
        from_attributes = True


class TicketResponse(BaseModel):
    id: int
    confirmation_code: str
    event_id: int
    ticket_type: str
    quantity: int
    total_price: float
    status: TicketStatus
    payment_status: PaymentStatus
    purchase_date: Optional[datetime] = None
    event: TicketEventSummary

    class Config:
        from_attributes = True

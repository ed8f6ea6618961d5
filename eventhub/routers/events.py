import math
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from eventhub.database import get_db
from eventhub.models import Event, User
from eventhub.schemas import (
    AvailabilityResponse,
    CategoryResponse,
    EventCancelResponse,
    EventCreate,
    EventListResponse,
    EventResponse,
    EventUpdate,
    OrganizerSummary,
    Pagination,
    TicketTypeResponse,
)
from eventhub.services import catalog
from eventhub.services.auth import get_optional_user, require_organizer
from eventhub.services.availability import calculate_availability, remaining_for

router = APIRouter(prefix="/events", tags=["events"])


def build_event_response(event: Event) -> EventResponse:
    """Event with its ticket types and derived availability."""
    availability = calculate_availability(event.ticket_types)
    return EventResponse(
        id=event.id,
        slug=event.slug,
        title=event.title,
        description=event.description,
        start_date=event.start_date,
        start_time=event.start_time,
        end_date=event.end_date,
        end_time=event.end_time,
        location=event.location,
        venue=event.venue,
        is_virtual=event.is_virtual,
        virtual_link=event.virtual_link,
        capacity=event.capacity,
        image_url=event.image_url,
        tags=event.tags,
        status=event.status,
        organizer=OrganizerSummary.model_validate(event.organizer),
        category=CategoryResponse.model_validate(event.category) if event.category else None,
        ticket_types=[
            TicketTypeResponse(
                name=tt.name,
                description=tt.description,
                price=tt.price,
                quantity=tt.quantity,
                sold=tt.sold,
                remaining=remaining_for(tt),
            )
            for tt in event.ticket_types
        ],
        availability=AvailabilityResponse(
            total_capacity=availability.total_capacity,
            total_sold=availability.total_sold,
            available=availability.available,
        ),
        created_at=event.created_at,
    )


@router.get("", response_model=EventListResponse)
def list_events(
    search: Optional[str] = None,
    category: Optional[str] = None,
    price: Optional[str] = Query(default=None, description="free, under-50, 50-100 or over-100"),
    event_type: Optional[str] = Query(default=None, alias="eventType", description="virtual or in-person"),
    sort: str = Query(default="date", description="date, price, popularity; anything else is newest first"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Published events, filtered, sorted and paginated."""
    events, total = catalog.list_published_events(
        db,
        search=search,
        category=category,
        price=price,
        event_type=event_type,
        sort=sort,
        page=page,
        limit=limit,
    )
    return EventListResponse(
        events=[build_event_response(e) for e in events],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit),
        ),
    )


@router.get("/organizer", response_model=list[EventResponse])
def list_my_events(
    organizer: User = Depends(require_organizer),
    db: Session = Depends(get_db),
):
    """The calling organizer's events in every status, newest first."""
    return [build_event_response(e) for e in catalog.list_organizer_events(db, organizer)]


@router.get("/slug/{slug}", response_model=EventResponse)
def get_event_by_slug(
    slug: str,
    viewer: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    return build_event_response(catalog.get_event_by_slug(db, slug, viewer))


@router.get("/{event_id}", response_model=EventResponse)
def get_event(
    event_id: int,
    viewer: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """Get event with ticket types and availability."""
    return build_event_response(catalog.get_event(db, event_id, viewer))


@router.post("", response_model=EventResponse, status_code=201)
def create_event(
    event: EventCreate,
    organizer: User = Depends(require_organizer),
    db: Session = Depends(get_db),
):
    """Create a new event. Organizers only."""
    return build_event_response(catalog.create_event(db, organizer, event))


@router.put("/{event_id}", response_model=EventResponse)
def update_event(
    event_id: int,
    event: EventUpdate,
    user: User = Depends(require_organizer),
    db: Session = Depends(get_db),
):
    """Update an event you own."""
    return build_event_response(catalog.update_event(db, event_id, user, event))


@router.post("/{event_id}/publish", response_model=EventResponse)
def publish_event(
    event_id: int,
    user: User = Depends(require_organizer),
    db: Session = Depends(get_db),
):
    return build_event_response(catalog.publish_event(db, event_id, user))


@router.delete("/{event_id}", response_model=EventCancelResponse)
def cancel_event(
    event_id: int,
    user: User = Depends(require_organizer),
    db: Session = Depends(get_db),
):
    """Cancel an event. Events are never physically deleted."""
    event = catalog.cancel_event(db, event_id, user)
    return EventCancelResponse(id=event.id, status=event.status)

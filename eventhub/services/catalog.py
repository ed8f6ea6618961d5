"""Event catalog: organizer-side management and the public listing query."""

import logging
import re
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload

from eventhub.errors import ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from eventhub.models import Category, Event, EventStatus, TicketType, User

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    EventStatus.DRAFT: {EventStatus.PUBLISHED, EventStatus.CANCELLED},
    EventStatus.PUBLISHED: {EventStatus.CANCELLED},
    EventStatus.CANCELLED: set(),
}

# Optional columns an update may set back to null
CLEARABLE_FIELDS = {"venue", "virtual_link", "image_url"}


def escape_like(text: str) -> str:
    """Make % and _ in user input match literally in a LIKE pattern."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]", "-", text.lower())
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-") or "event"


def unique_event_slug(db: Session, title: str, exclude_event_id: Optional[int] = None) -> str:
    """Slug for ``title``, suffixed with -1, -2, ... until no other event uses it."""
    base = slugify(title)
    slug = base
    counter = 1
    while True:
        query = db.query(Event.id).filter(Event.slug == slug)
        if exclude_event_id is not None:
            query = query.filter(Event.id != exclude_event_id)
        if not query.first():
            return slug
        slug = f"{base}-{counter}"
        counter += 1


def find_or_create_category(db: Session, name: str) -> Category:
    """Look a category up by name or slug; create it on first use."""
    name = name.strip().lower()
    slug = slugify(name)
    category = db.query(Category).filter(or_(Category.name == name, Category.slug == slug)).first()
    if category:
        return category

    category = Category(name=name, slug=slug, description=f"{name} events")
    db.add(category)
    try:
        db.commit()
    except IntegrityError:
        # Another request created it first
        db.rollback()
        category = db.query(Category).filter(Category.slug == slug).first()
        if not category:
            raise
        return category

    db.refresh(category)
    logger.info("Created category '%s'", name)
    return category


def transition_status(event: Event, new_status: EventStatus) -> None:
    if new_status == event.status:
        return
    if new_status not in ALLOWED_TRANSITIONS[event.status]:
        raise InvalidStateError(
            f"Cannot change event status from {event.status.value} to {new_status.value}"
        )
    logger.info("Event %s status %s -> %s", event.id, event.status.value, new_status.value)
    event.status = new_status


def _load_event(db: Session, event_id: int) -> Optional[Event]:
    return (
        db.query(Event)
        .options(
            selectinload(Event.ticket_types),
            joinedload(Event.category),
            joinedload(Event.organizer),
        )
        .filter(Event.id == event_id)
        .first()
    )


def _owned_event(db: Session, event_id: int, user: User) -> Event:
    event = _load_event(db, event_id)
    if not event:
        raise NotFoundError("Event not found")
    if event.organizer_id != user.id:
        raise ForbiddenError("You do not own this event")
    return event


def _visible_to(event: Optional[Event], viewer: Optional[User]) -> Event:
    if not event:
        raise NotFoundError("Event not found")
    if event.status != EventStatus.PUBLISHED and (viewer is None or viewer.id != event.organizer_id):
        raise NotFoundError("Event not found")
    return event


def get_event(db: Session, event_id: int, viewer: Optional[User] = None) -> Event:
    """Published events for everyone; drafts and cancelled events only for their organizer."""
    return _visible_to(_load_event(db, event_id), viewer)


def get_event_by_slug(db: Session, slug: str, viewer: Optional[User] = None) -> Event:
    event = db.query(Event.id).filter(Event.slug == slug.lower()).first()
    return _visible_to(_load_event(db, event.id) if event else None, viewer)


def create_event(db: Session, organizer: User, data) -> Event:
    """Create an event from an ``EventCreate`` payload."""
    category = find_or_create_category(db, data.category)

    if data.ticket_types:
        ticket_types = [
            TicketType(
                position=i,
                name=tt.name,
                description=tt.description,
                price=tt.price,
                quantity=tt.quantity,
                sold=0,
            )
            for i, tt in enumerate(data.ticket_types)
        ]
    else:
        is_free = data.ticket_price == 0
        ticket_types = [
            TicketType(
                position=0,
                name="Free" if is_free else "General Admission",
                description="Free admission" if is_free else "Standard ticket",
                price=data.ticket_price,
                quantity=data.max_attendees,
                sold=0,
            )
        ]

    event = Event(
        slug=unique_event_slug(db, data.title),
        title=data.title,
        description=data.description,
        start_date=data.start_date,
        start_time=data.start_time,
        end_date=data.end_date or data.start_date,
        end_time=data.end_time,
        location="Virtual" if data.is_virtual else data.location,
        venue=None if data.is_virtual else data.venue,
        is_virtual=data.is_virtual,
        virtual_link=data.virtual_link if data.is_virtual else None,
        capacity=data.max_attendees,
        image_url=data.image_url,
        status=EventStatus(data.status),
        organizer_id=organizer.id,
        category_id=category.id,
        ticket_types=ticket_types,
    )
    event.tags = data.tags
    db.add(event)
    db.commit()

    logger.info("Organizer %s created event %s (%s)", organizer.id, event.id, event.slug)
    return _load_event(db, event.id)


def _replace_ticket_types(event: Event, incoming) -> None:
    """Apply a new ticket-type list, keeping sold counts of types that stay."""
    existing = {tt.name: tt for tt in event.ticket_types}
    incoming_names = {tt.name for tt in incoming}
    if len(incoming_names) != len(incoming):
        raise InvalidStateError("Ticket type names must be unique")

    for name, tt in existing.items():
        if name not in incoming_names and tt.sold > 0:
            raise InvalidStateError(f"Cannot remove ticket type '{name}' with sold tickets")

    new_list = []
    for i, data in enumerate(incoming):
        tt = existing.get(data.name)
        if tt is None:
            tt = TicketType(name=data.name, sold=0)
        elif data.quantity < tt.sold:
            raise InvalidStateError(
                f"Quantity for '{data.name}' cannot be below the {tt.sold} already sold"
            )
        tt.position = i
        tt.description = data.description
        tt.price = data.price
        tt.quantity = data.quantity
        new_list.append(tt)

    event.ticket_types = new_list


def _apply_venue_rules(event: Event) -> None:
    """Virtual events need a link and sit at location "Virtual"; in-person events need a venue."""
    if event.is_virtual:
        if not event.virtual_link or len(event.virtual_link) < 3:
            raise ValidationError("Virtual events require a virtual link")
        event.location = "Virtual"
        event.venue = None
        return

    if not event.venue or len(event.venue) < 3:
        raise ValidationError("Physical events require a venue")
    if event.location == "Virtual":
        raise ValidationError("Physical events require a location")
    event.virtual_link = None


def update_event(db: Session, event_id: int, user: User, data) -> Event:
    """Apply an ``EventUpdate`` payload. Owner only; cancelled events are frozen."""
    event = _owned_event(db, event_id, user)
    if event.status == EventStatus.CANCELLED:
        raise InvalidStateError("Event has been cancelled")

    update_data = data.model_dump(exclude_unset=True)

    status = update_data.pop("status", None)
    ticket_types = update_data.pop("ticket_types", None)
    category_name = update_data.pop("category", None)
    tags = update_data.pop("tags", None)

    # Resolved first: creating a category commits the session
    if category_name:
        event.category_id = find_or_create_category(db, category_name).id

    if "title" in update_data and update_data["title"] != event.title:
        event.slug = unique_event_slug(db, update_data["title"], exclude_event_id=event.id)

    for field, value in update_data.items():
        if value is None and field not in CLEARABLE_FIELDS:
            continue
        setattr(event, field, value)

    if tags is not None:
        event.tags = tags

    _apply_venue_rules(event)

    if event.end_date < event.start_date:
        raise InvalidStateError("End date must not be before the start date")

    if ticket_types is not None:
        _replace_ticket_types(event, data.ticket_types)

    if status is not None:
        transition_status(event, EventStatus(status))

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise InvalidStateError("Ticket quantities conflict with tickets already sold")

    logger.info("Organizer %s updated event %s", user.id, event_id)
    return _load_event(db, event_id)


def publish_event(db: Session, event_id: int, user: User) -> Event:
    event = _owned_event(db, event_id, user)
    transition_status(event, EventStatus.PUBLISHED)
    db.commit()
    return _load_event(db, event_id)


def cancel_event(db: Session, event_id: int, user: User) -> Event:
    """Soft delete. Cancelling twice is a no-op."""
    event = _owned_event(db, event_id, user)
    transition_status(event, EventStatus.CANCELLED)
    db.commit()
    return event


def list_locations(db: Session) -> list[dict]:
    """Distinct locations of published in-person events, with a leading virtual entry."""
    rows = db.execute(
        select(Event.location)
        .where(
            Event.status == EventStatus.PUBLISHED,
            Event.is_virtual.is_(False),
            Event.location.is_not(None),
            func.trim(Event.location) != "",
        )
        .distinct()
        .order_by(Event.location)
    ).scalars()
    locations = [{"id": slugify(label), "label": label, "type": "physical"} for label in rows]

    has_virtual = db.query(Event.id).filter(
        Event.status == EventStatus.PUBLISHED,
        Event.is_virtual.is_(True),
    ).first()
    if has_virtual:
        locations.insert(0, {"id": "virtual", "label": "Virtual/Online", "type": "virtual"})
    return locations


def list_organizer_events(db: Session, organizer: User) -> list[Event]:
    return (
        db.query(Event)
        .options(
            selectinload(Event.ticket_types),
            joinedload(Event.category),
            joinedload(Event.organizer),
        )
        .filter(Event.organizer_id == organizer.id)
        .order_by(Event.created_at.desc(), Event.id.desc())
        .all()
    )


def _price_filter(bucket: str):
    if bucket == "free":
        return Event.ticket_types.any(TicketType.price == 0)
    if bucket == "under-50":
        return Event.ticket_types.any((TicketType.price > 0) & (TicketType.price < 50))
    if bucket == "50-100":
        return Event.ticket_types.any((TicketType.price >= 50) & (TicketType.price <= 100))
    if bucket == "over-100":
        return Event.ticket_types.any(TicketType.price > 100)
    return None


def _sort_order(sort: Optional[str]):
    if sort == "date":
        return [Event.start_date.asc(), Event.start_time.asc()]
    if sort == "price":
        lowest_price = (
            select(func.min(TicketType.price))
            .where(TicketType.event_id == Event.id)
            .correlate(Event)
            .scalar_subquery()
        )
        return [lowest_price.asc()]
    if sort == "popularity":
        total_sold = (
            select(func.coalesce(func.sum(TicketType.sold), 0))
            .where(TicketType.event_id == Event.id)
            .correlate(Event)
            .scalar_subquery()
        )
        return [total_sold.desc()]
    return [Event.created_at.desc()]


def list_published_events(
    db: Session,
    *,
    search: Optional[str] = None,
    category: Optional[str] = None,
    price: Optional[str] = None,
    event_type: Optional[str] = None,
    sort: Optional[str] = "date",
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Event], int]:
    """Filtered, sorted page of published events plus the total match count."""
    query = db.query(Event).filter(Event.status == EventStatus.PUBLISHED)

    if category and category.lower() != "all":
        category_row = db.query(Category).filter(func.lower(Category.name) == category.lower()).first()
        if category_row:
            query = query.filter(Event.category_id == category_row.id)

    if search:
        pattern = f"%{escape_like(search)}%"
        query = query.filter(or_(
            Event.title.ilike(pattern, escape="\\"),
            Event.description.ilike(pattern, escape="\\"),
            Event.tags_text.ilike(pattern, escape="\\"),
        ))

    if price:
        price_clause = _price_filter(price)
        if price_clause is not None:
            query = query.filter(price_clause)

    if event_type == "virtual":
        query = query.filter(Event.is_virtual.is_(True))
    elif event_type == "in-person":
        query = query.filter(Event.is_virtual.is_(False))

    total = query.count()

    events = (
        query.options(
            selectinload(Event.ticket_types),
            joinedload(Event.category),
            joinedload(Event.organizer),
        )
        .order_by(*_sort_order(sort), Event.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return events, total

"""Ticket purchase workflow."""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from eventhub.config import get_settings
from eventhub.errors import (
    DuplicatePurchaseError,
    InsufficientInventoryError,
    InvalidStateError,
    NotFoundError,
    PriceMismatchError,
)
from eventhub.models import Event, EventStatus, PaymentStatus, Ticket, TicketType
from eventhub.services import ledger
from eventhub.services.availability import calculate_availability

logger = logging.getLogger(__name__)


def _to_decimal(value) -> Decimal:
    # str() first so 25.01 stays 25.01 instead of its binary expansion
    return Decimal(str(value))


def load_event_for_purchase(db: Session, event_id: int) -> Optional[Event]:
    """Read the event and its ticket types straight from storage."""
    return (
        db.query(Event)
        .options(selectinload(Event.ticket_types))
        .filter(Event.id == event_id)
        .populate_existing()
        .first()
    )


def select_ticket_type(event: Event, name: Optional[str]) -> TicketType:
    """The named ticket type, or the first declared one when no name is given."""
    if not event.ticket_types:
        raise InvalidStateError("Event has no ticket types")
    if name is None:
        return event.ticket_types[0]
    for ticket_type in event.ticket_types:
        if ticket_type.name == name:
            return ticket_type
    raise NotFoundError(f"Ticket type '{name}' not found")


def check_total(ticket_type: TicketType, quantity: int, total_amount: float) -> Decimal:
    """Return the expected total, or raise if the client's differs by more than the tolerance."""
    tolerance = _to_decimal(get_settings().price_tolerance)
    expected = _to_decimal(ticket_type.price) * quantity
    if abs(_to_decimal(total_amount) - expected) > tolerance:
        raise PriceMismatchError()
    return expected


def purchase_tickets(
    db: Session,
    *,
    user_id: int,
    event_id: int,
    quantity: int,
    total_amount: float,
    ticket_type_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Ticket:
    """
    Buy ``quantity`` units of one ticket type for an event.

    Checks run against a fresh read of the event: it must exist, be
    published and not have started; enough units must remain; the purchaser
    must not already hold an active entry; the client's total must match
    ``price * quantity``. Free tickets are recorded as paid.
    """
    now = now or datetime.now(timezone.utc)

    event = load_event_for_purchase(db, event_id)
    if not event:
        raise NotFoundError("Event not found")

    if event.status == EventStatus.CANCELLED:
        raise InvalidStateError("Event has been cancelled")
    if event.status != EventStatus.PUBLISHED:
        raise InvalidStateError("Event is not on sale")

    if event.starts_at < now:
        raise InvalidStateError("Cannot purchase tickets for past events")

    availability = calculate_availability(event.ticket_types)
    if quantity > availability.available:
        raise InsufficientInventoryError(availability.available)

    if ledger.find_active_ticket(db, event.id, user_id):
        raise DuplicatePurchaseError()

    ticket_type = select_ticket_type(event, ticket_type_name)
    expected_total = check_total(ticket_type, quantity, total_amount)

    payment_status = PaymentStatus.COMPLETED if ticket_type.price == 0 else PaymentStatus.PENDING

    ticket = ledger.commit_purchase(
        db,
        event_id=event.id,
        user_id=user_id,
        ticket_type=ticket_type,
        quantity=quantity,
        total_price=float(expected_total),
        payment_status=payment_status,
    )

    logger.info(
        "Ticket %s purchased: event=%s user=%s type=%s quantity=%d payment=%s",
        ticket.confirmation_code, event_id, user_id, ticket.ticket_type,
        quantity, payment_status.value,
    )
    return ticket

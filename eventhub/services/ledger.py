"""Ticket ledger: purchase records and the sold-count they are committed against.

Creating a ledger entry and reserving its units on the ticket type happen in
one transaction. The reservation is a conditional UPDATE, so two buyers racing
for the last unit cannot both succeed.
"""

import logging
import secrets
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from eventhub.config import get_settings
from eventhub.errors import DuplicatePurchaseError, InsufficientInventoryError, InternalError
from eventhub.models import Ticket, TicketType, TicketStatus, PaymentStatus
from eventhub.services.availability import remaining_for

logger = logging.getLogger(__name__)

# No 0/O or 1/I so codes survive being read aloud or retyped
CONFIRMATION_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def generate_confirmation_code(length: Optional[int] = None) -> str:
    if length is None:
        length = get_settings().confirmation_code_length
    return "".join(secrets.choice(CONFIRMATION_CODE_ALPHABET) for _ in range(length))


def find_active_ticket(db: Session, event_id: int, user_id: int) -> Optional[Ticket]:
    """Return the purchaser's active ledger entry for an event, if any."""
    return (
        db.query(Ticket)
        .filter(
            Ticket.event_id == event_id,
            Ticket.user_id == user_id,
            Ticket.status == TicketStatus.ACTIVE,
        )
        .first()
    )


def reserve_inventory(db: Session, ticket_type_id: int, quantity: int) -> bool:
    """
    Increment ``sold`` by ``quantity`` only if it stays within ``quantity``.

    Runs inside the caller's transaction. Returns False, without changing
    anything, when not enough units are left.
    """
    stmt = (
        update(TicketType)
        .where(
            TicketType.id == ticket_type_id,
            TicketType.sold + quantity <= TicketType.quantity,
        )
        .values(sold=TicketType.sold + quantity)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    return result.rowcount == 1


def commit_purchase(
    db: Session,
    *,
    event_id: int,
    user_id: int,
    ticket_type: TicketType,
    quantity: int,
    total_price: float,
    payment_status: PaymentStatus,
) -> Ticket:
    """
    Reserve units and write the ledger entry as a single transaction.

    Raises InsufficientInventoryError if the reservation loses a race,
    DuplicatePurchaseError if another active entry for the same purchaser
    lands first. A confirmation-code collision rolls back and retries with a
    fresh code.
    """
    settings = get_settings()
    ticket_type_id = ticket_type.id
    ticket_type_name = ticket_type.name

    for attempt in range(1, settings.confirmation_code_attempts + 1):
        if not reserve_inventory(db, ticket_type_id, quantity):
            db.rollback()
            fresh = db.get(TicketType, ticket_type_id, populate_existing=True)
            remaining = remaining_for(fresh) if fresh else 0
            logger.info(
                "Reservation rejected: ticket type %s has %d left, %d requested",
                ticket_type_id, remaining, quantity,
            )
            raise InsufficientInventoryError(remaining)

        ticket = Ticket(
            confirmation_code=generate_confirmation_code(),
            event_id=event_id,
            user_id=user_id,
            ticket_type=ticket_type_name,
            quantity=quantity,
            total_price=total_price,
            status=TicketStatus.ACTIVE,
            payment_status=payment_status,
        )
        db.add(ticket)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            if find_active_ticket(db, event_id, user_id):
                raise DuplicatePurchaseError()
            logger.warning("Confirmation code collision on attempt %d, retrying", attempt)
            continue

        db.refresh(ticket)
        return ticket

    logger.error("Could not allocate a unique confirmation code after %d attempts", settings.confirmation_code_attempts)
    raise InternalError()

"""Demo payment capture: moves a pending ledger entry to completed."""

import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from eventhub.errors import AlreadyCompletedError, NotFoundError
from eventhub.models import PaymentStatus, Ticket

logger = logging.getLogger(__name__)


def complete_payment(db: Session, *, user_id: int, ticket_id: int) -> Ticket:
    """Mark the requester's ticket as paid. No other field changes."""
    ticket = (
        db.query(Ticket)
        .filter(Ticket.id == ticket_id, Ticket.user_id == user_id)
        .first()
    )
    if not ticket:
        raise NotFoundError("Ticket not found")

    if ticket.payment_status == PaymentStatus.COMPLETED:
        raise AlreadyCompletedError()

    # Conditional so two concurrent completions can't both report success
    result = db.execute(
        update(Ticket)
        .where(Ticket.id == ticket.id, Ticket.payment_status != PaymentStatus.COMPLETED)
        .values(payment_status=PaymentStatus.COMPLETED)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise AlreadyCompletedError()

    db.commit()
    db.refresh(ticket)

    logger.info("Payment completed for ticket %s (user=%s)", ticket.confirmation_code, user_id)
    return ticket

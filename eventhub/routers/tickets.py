from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session, joinedload

from eventhub.config import get_settings
from eventhub.database import get_db
from eventhub.errors import InvalidStateError, NotFoundError
from eventhub.models import PaymentStatus, Ticket, TicketStatus, User
from eventhub.rate_limit import limiter
from eventhub.schemas import (
    PaymentCompletionRequest,
    PaymentCompletionResponse,
    PurchaseRequest,
    PurchaseResponse,
    TicketResponse,
)
from eventhub.services.auth import get_current_user
from eventhub.services.payments import complete_payment
from eventhub.services.purchase import purchase_tickets
from eventhub.services.qrcode import generate_qr_code

router = APIRouter(prefix="/tickets", tags=["tickets"])


def _owned_ticket(db: Session, ticket_id: int, user: User) -> Ticket:
    """Ticket with its event joined in, if the caller owns it."""
    ticket = (
        db.query(Ticket)
        .options(joinedload(Ticket.event))
        .filter(Ticket.id == ticket_id, Ticket.user_id == user.id)
        .first()
    )
    if not ticket:
        raise NotFoundError("Ticket not found")
    return ticket


@router.post("/purchase", response_model=PurchaseResponse, status_code=201)
@limiter.limit(get_settings().purchase_rate_limit)
def purchase_ticket(
    request: Request,
    purchase: PurchaseRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Buy tickets for an event. Free tickets are confirmed immediately."""
    ticket = purchase_tickets(
        db,
        user_id=user.id,
        event_id=purchase.event_id,
        quantity=purchase.quantity,
        total_amount=purchase.total_amount,
        ticket_type_name=purchase.ticket_type,
    )
    return PurchaseResponse(
        id=ticket.id,
        confirmation_code=ticket.confirmation_code,
        status=ticket.status,
    )


@router.post("/complete-payment", response_model=PaymentCompletionResponse)
def complete_ticket_payment(
    body: PaymentCompletionRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Mark a pending ticket as paid (demo payment flow, no gateway involved)."""
    ticket = complete_payment(db, user_id=user.id, ticket_id=body.ticket_id)
    return PaymentCompletionResponse(id=ticket.id, payment_status=ticket.payment_status)


@router.get("/mine", response_model=list[TicketResponse])
def list_my_tickets(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """The caller's tickets, newest purchase first."""
    return (
        db.query(Ticket)
        .options(joinedload(Ticket.event))
        .filter(Ticket.user_id == user.id)
        .order_by(Ticket.purchase_date.desc(), Ticket.id.desc())
        .all()
    )


@router.get("/{ticket_id}", response_model=TicketResponse)
def get_ticket(
    ticket_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _owned_ticket(db, ticket_id, user)


@router.get("/{ticket_id}/qr")
def get_ticket_qr_code(
    ticket_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """QR code image for a paid, active ticket."""
    ticket = _owned_ticket(db, ticket_id, user)

    if ticket.payment_status != PaymentStatus.COMPLETED:
        raise InvalidStateError("Ticket not paid")
    if ticket.status != TicketStatus.ACTIVE:
        raise InvalidStateError(f"Ticket is {ticket.status.value}")

    qr_bytes = generate_qr_code(ticket.confirmation_code)
    return Response(content=qr_bytes, media_type="image/png")

"""Remaining-inventory accounting for an event's ticket types."""

import logging
from dataclasses import dataclass
from typing import Iterable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Availability:
    total_capacity: int
    total_sold: int
    available: int


def calculate_availability(ticket_types: Iterable) -> Availability:
    """
    Sum quantity and sold across ticket types.

    Accepts anything with ``quantity`` and ``sold`` attributes (ORM rows or
    plain records). ``available`` is never negative; an oversold event is
    logged as a warning.
    """
    total_capacity = 0
    total_sold = 0
    for ticket_type in ticket_types:
        total_capacity += ticket_type.quantity or 0
        total_sold += ticket_type.sold or 0

    available = total_capacity - total_sold
    if available < 0:
        logger.warning(
            "Oversold inventory detected: %d sold against capacity %d",
            total_sold, total_capacity,
        )
        available = 0

    return Availability(
        total_capacity=total_capacity,
        total_sold=total_sold,
        available=available,
    )


def remaining_for(ticket_type) -> int:
    """Units left on a single ticket type."""
    return max((ticket_type.quantity or 0) - (ticket_type.sold or 0), 0)

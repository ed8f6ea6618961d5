from sqlalchemy import (
    Column, Integer, String, Text, Date, DateTime, Float, ForeignKey, Enum, Boolean,
    CheckConstraint, Index, UniqueConstraint, text,
)
from sqlalchemy.orm import relationship
from datetime import datetime, time, timezone
import enum

from eventhub.database import Base


def utcnow():
    return datetime.now(timezone.utc)


def _enum_column_type(enum_cls):
    # Persist the lower-case values ("active"), not the member names ("ACTIVE")
    return Enum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=20,
    )


class UserRole(str, enum.Enum):
    ORGANIZER = "organizer"
    ATTENDEE = "attendee"


class EventStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    CANCELLED = "cancelled"


class TicketStatus(str, enum.Enum):
    ACTIVE = "active"
    USED = "used"
    REFUNDED = "refunded"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    role = Column(_enum_column_type(UserRole), nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    company_name = Column(String(255), nullable=True)  # Organizers only
    contact_details = Column(Text, nullable=True)  # Organizers only
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    events = relationship("Event", back_populates="organizer")
    tickets = relationship("Ticket", back_populates="user")


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True)
    slug = Column(String(120), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    color = Column(String(20), default="#3b82f6")  # Hex color for UI badges
    created_at = Column(DateTime(timezone=True), default=utcnow)

    events = relationship("Event", back_populates="category")


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    start_date = Column(Date, nullable=False, index=True)
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_date = Column(Date, nullable=False)
    end_time = Column(String(5), nullable=False)  # HH:MM
    location = Column(String(500), nullable=False)
    venue = Column(String(255), nullable=True)
    is_virtual = Column(Boolean, default=False, nullable=False)
    virtual_link = Column(String(500), nullable=True)
    capacity = Column(Integer, nullable=False)
    image_url = Column(String(500), nullable=True)
    tags_text = Column("tags", Text, nullable=True)  # Comma-separated
    status = Column(_enum_column_type(EventStatus), default=EventStatus.DRAFT, nullable=False, index=True)
    organizer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    organizer = relationship("User", back_populates="events")
    category = relationship("Category", back_populates="events")
    ticket_types = relationship(
        "TicketType",
        back_populates="event",
        order_by="TicketType.position",
        cascade="all, delete-orphan",
    )
    tickets = relationship("Ticket", back_populates="event")

    @property
    def tags(self) -> list[str]:
        if not self.tags_text:
            return []
        return [t for t in self.tags_text.split(",") if t]

    @tags.setter
    def tags(self, values):
        cleaned = [v.strip() for v in (values or []) if v and v.strip()]
        self.tags_text = ",".join(cleaned) if cleaned else None

    @property
    def starts_at(self) -> datetime:
        """Start date and time combined, in UTC."""
        return datetime.combine(self.start_date, time.fromisoformat(self.start_time), tzinfo=timezone.utc)


class TicketType(Base):
    """A named price/quantity tier within one event."""
    __tablename__ = "ticket_types"
    __table_args__ = (
        UniqueConstraint("event_id", "name", name="uq_ticket_types_event_name"),
        CheckConstraint("price >= 0", name="ck_ticket_types_price"),
        CheckConstraint("quantity >= 0", name="ck_ticket_types_quantity"),
        CheckConstraint("sold >= 0 AND sold <= quantity", name="ck_ticket_types_sold"),
    )

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)  # Declaration order
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False, default=0)
    quantity = Column(Integer, nullable=False)
    sold = Column(Integer, nullable=False, default=0)

    event = relationship("Event", back_populates="ticket_types")


class Ticket(Base):
    """Ledger entry: one purchase transaction, possibly several units."""
    __tablename__ = "tickets"
    __table_args__ = (
        # At most one active entry per (event, purchaser)
        Index(
            "uq_tickets_active_event_user",
            "event_id",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
        CheckConstraint("quantity >= 1", name="ck_tickets_quantity"),
        CheckConstraint("total_price >= 0", name="ck_tickets_total_price"),
    )

    id = Column(Integer, primary_key=True, index=True)
    confirmation_code = Column(String(32), unique=True, nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    ticket_type = Column(String(100), nullable=False)
    quantity = Column(Integer, nullable=False)
    total_price = Column(Float, nullable=False)
    status = Column(_enum_column_type(TicketStatus), default=TicketStatus.ACTIVE, nullable=False, index=True)
    payment_status = Column(_enum_column_type(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    purchase_date = Column(DateTime(timezone=True), default=utcnow, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    event = relationship("Event", back_populates="tickets")
    user = relationship("User", back_populates="tickets")

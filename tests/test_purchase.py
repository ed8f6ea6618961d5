"""Tests for the ticket purchase endpoint."""

from datetime import date, timedelta

from eventhub.models import Ticket, TicketType


def buy(client, headers, event_id, quantity=1, total=25, **extra):
    body = {"eventId": event_id, "quantity": quantity, "totalAmount": total}
    body.update(extra)
    return client.post("/api/tickets/purchase", json=body, headers=headers)


def sold_count(db, event_id):
    db.expire_all()
    return sum(tt.sold for tt in db.query(TicketType).filter(TicketType.event_id == event_id))


class TestPaidPurchase:
    def test_success_is_pending(self, client, db, attendee, create_event):
        event = create_event()

        r = buy(client, attendee["headers"], event["id"], quantity=2, total=50)
        assert r.status_code == 201, r.text
        data = r.json()
        assert data["status"] == "active"
        assert len(data["confirmationCode"]) == 12

        ticket = db.query(Ticket).filter(Ticket.id == data["id"]).one()
        assert ticket.payment_status.value == "pending"
        assert ticket.quantity == 2
        assert ticket.total_price == 50
        assert ticket.ticket_type == "General Admission"
        assert sold_count(db, event["id"]) == 2

    def test_last_ticket_then_sold_out(self, client, db, register, create_event, set_sold):
        event = create_event(ticket_types=[{"name": "GA", "price": 25, "quantity": 10}])
        set_sold(event["id"], 9)

        first = register()
        r = buy(client, first["headers"], event["id"], quantity=1, total=25)
        assert r.status_code == 201, r.text
        assert sold_count(db, event["id"]) == 10

        second = register()
        r2 = buy(client, second["headers"], event["id"], quantity=1, total=25)
        assert r2.status_code == 409
        assert r2.json()["error"] == "InsufficientInventory"
        assert sold_count(db, event["id"]) == 10

    def test_exceeds_availability(self, client, attendee, create_event):
        event = create_event(max_attendees=3, ticket_price=10)
        r = buy(client, attendee["headers"], event["id"], quantity=5, total=50)
        assert r.status_code == 409
        assert r.json()["error"] == "InsufficientInventory"
        assert "Only 3 tickets available" in r.json()["detail"]


class TestFreePurchase:
    def test_free_ticket_completed_immediately(self, client, db, attendee, create_event):
        event = create_event(ticket_types=[{"name": "Free", "price": 0, "quantity": 50}])

        r = buy(client, attendee["headers"], event["id"], quantity=2, total=0)
        assert r.status_code == 201, r.text

        ticket = db.query(Ticket).filter(Ticket.id == r.json()["id"]).one()
        assert ticket.payment_status.value == "completed"
        assert ticket.total_price == 0
        assert sold_count(db, event["id"]) == 2

    def test_default_free_ticket_type(self, client, attendee, create_event):
        event = create_event(ticket_price=0)
        assert event["ticket_types"][0]["name"] == "Free"
        r = buy(client, attendee["headers"], event["id"], quantity=1, total=0)
        assert r.status_code == 201


class TestQuantityValidation:
    def test_zero_rejected(self, client, db, attendee, create_event):
        event = create_event()
        r = buy(client, attendee["headers"], event["id"], quantity=0, total=0)
        assert r.status_code == 422
        assert r.json()["error"] == "ValidationError"
        assert db.query(Ticket).count() == 0

    def test_eleven_rejected(self, client, db, attendee, create_event):
        event = create_event()
        r = buy(client, attendee["headers"], event["id"], quantity=11, total=275)
        assert r.status_code == 422
        assert r.json()["error"] == "ValidationError"
        assert sold_count(db, event["id"]) == 0

    def test_ten_allowed(self, client, attendee, create_event):
        event = create_event()
        r = buy(client, attendee["headers"], event["id"], quantity=10, total=250)
        assert r.status_code == 201

    def test_negative_total_rejected(self, client, attendee, create_event):
        event = create_event()
        r = buy(client, attendee["headers"], event["id"], quantity=1, total=-1)
        assert r.status_code == 422

    def test_missing_fields(self, client, attendee):
        r = client.post("/api/tickets/purchase", json={"quantity": 1}, headers=attendee["headers"])
        assert r.status_code == 422


class TestPriceCheck:
    def test_boundary_passes(self, client, attendee, create_event):
        event = create_event()
        r = buy(client, attendee["headers"], event["id"], quantity=1, total=25.01)
        assert r.status_code == 201, r.text

    def test_boundary_below_passes(self, client, attendee, create_event):
        event = create_event()
        r = buy(client, attendee["headers"], event["id"], quantity=1, total=24.99)
        assert r.status_code == 201, r.text

    def test_over_tolerance_rejected(self, client, db, attendee, create_event):
        event = create_event()
        r = buy(client, attendee["headers"], event["id"], quantity=1, total=25.02)
        assert r.status_code == 400
        assert r.json()["error"] == "PriceMismatch"
        assert db.query(Ticket).count() == 0
        assert sold_count(db, event["id"]) == 0

    def test_total_uses_quantity(self, client, attendee, create_event):
        event = create_event()
        r = buy(client, attendee["headers"], event["id"], quantity=3, total=25)
        assert r.json()["error"] == "PriceMismatch"

    def test_stored_total_is_authoritative(self, client, db, attendee, create_event):
        event = create_event()
        r = buy(client, attendee["headers"], event["id"], quantity=1, total=25.01)
        ticket = db.query(Ticket).filter(Ticket.id == r.json()["id"]).one()
        assert ticket.total_price == 25


class TestEventChecks:
    def test_event_not_found(self, client, attendee):
        r = buy(client, attendee["headers"], 99999)
        assert r.status_code == 404
        assert r.json()["error"] == "NotFound"

    def test_past_event(self, client, db, attendee, create_event):
        yesterday = (date.today() - timedelta(days=1)).isoformat()
        event = create_event(start_date=yesterday)

        r = buy(client, attendee["headers"], event["id"])
        assert r.status_code == 400
        assert r.json()["error"] == "InvalidState"
        assert db.query(Ticket).count() == 0
        assert sold_count(db, event["id"]) == 0

    def test_cancelled_event(self, client, organizer, attendee, create_event):
        event = create_event()
        client.delete(f"/api/events/{event['id']}", headers=organizer["headers"])

        r = buy(client, attendee["headers"], event["id"])
        assert r.status_code == 400
        assert r.json()["error"] == "InvalidState"

    def test_draft_event(self, client, db, attendee, create_event):
        event = create_event(status="draft")

        r = buy(client, attendee["headers"], event["id"])
        assert r.status_code == 400
        assert r.json() == {"error": "InvalidState", "detail": "Event is not on sale"}
        assert db.query(Ticket).count() == 0
        assert sold_count(db, event["id"]) == 0


class TestDuplicatePurchase:
    def test_second_purchase_rejected(self, client, db, attendee, create_event):
        event = create_event()
        assert buy(client, attendee["headers"], event["id"]).status_code == 201

        r = buy(client, attendee["headers"], event["id"])
        assert r.status_code == 409
        assert r.json()["error"] == "DuplicatePurchase"
        assert db.query(Ticket).count() == 1
        assert sold_count(db, event["id"]) == 1

    def test_other_event_allowed(self, client, attendee, create_event):
        first = create_event(title="First Show")
        second = create_event(title="Second Show")
        assert buy(client, attendee["headers"], first["id"]).status_code == 201
        assert buy(client, attendee["headers"], second["id"]).status_code == 201

    def test_other_purchaser_allowed(self, client, register, create_event):
        event = create_event()
        assert buy(client, register()["headers"], event["id"]).status_code == 201
        assert buy(client, register()["headers"], event["id"]).status_code == 201


class TestTicketTypeSelection:
    TYPES = [
        {"name": "GA", "price": 25, "quantity": 5},
        {"name": "VIP", "price": 100, "quantity": 2},
    ]

    def test_defaults_to_first_type(self, client, db, attendee, create_event):
        event = create_event(ticket_types=self.TYPES)
        r = buy(client, attendee["headers"], event["id"], total=25)
        assert r.status_code == 201
        assert db.query(Ticket).one().ticket_type == "GA"

    def test_named_type(self, client, db, attendee, create_event):
        event = create_event(ticket_types=self.TYPES)
        r = buy(client, attendee["headers"], event["id"], quantity=2, total=200, ticketType="VIP")
        assert r.status_code == 201, r.text
        ticket = db.query(Ticket).one()
        assert ticket.ticket_type == "VIP"
        assert ticket.total_price == 200

    def test_unknown_type(self, client, attendee, create_event):
        event = create_event(ticket_types=self.TYPES)
        r = buy(client, attendee["headers"], event["id"], ticketType="Balcony")
        assert r.status_code == 404

    def test_chosen_type_sold_out(self, client, attendee, create_event, set_sold):
        event = create_event(ticket_types=self.TYPES)
        set_sold(event["id"], 2, name="VIP")

        # GA still has stock, so the event as a whole is not sold out
        r = buy(client, attendee["headers"], event["id"], total=100, ticketType="VIP")
        assert r.status_code == 409
        assert r.json()["error"] == "InsufficientInventory"
        assert "Only 0 tickets available" in r.json()["detail"]


class TestAuth:
    def test_requires_token(self, client, create_event):
        event = create_event()
        r = buy(client, {}, event["id"])
        assert r.status_code == 401
        assert r.json()["error"] == "Unauthorized"

    def test_bad_token(self, client, create_event):
        event = create_event()
        r = buy(client, {"Authorization": "Bearer nonsense"}, event["id"])
        assert r.status_code == 401

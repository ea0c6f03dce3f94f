"""
HTTP surface of the booking core: status codes and the problem-details envelope.
"""

from unittest.mock import Mock

from fastapi.testclient import TestClient
import pytest

from bookati.api.dependencies import (
    get_booking_admission_service,
    get_db,
    get_side_effect_dispatcher,
)
from bookati.core.exceptions import LockTimeoutException
from bookati.main import app
from tests.helpers.capacity import reload_slot


@pytest.fixture
def client(db, dispatcher):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_side_effect_dispatcher] = lambda: dispatcher
    yield TestClient(app)
    app.dependency_overrides.clear()


def _payload(slot, visitor_count, **extra):
    body = {
        "tenant_id": slot.tenant_id,
        "service_id": slot.service_id,
        "slot_id": slot.id,
        "visitor_count": visitor_count,
        "price_per_unit": "15.00",
    }
    body.update(extra)
    return body


class TestCreateBooking:
    def test_created(self, client, make_slot):
        slot = make_slot(3)

        response = client.post("/api/v1/bookings", json=_payload(slot, 2))

        assert response.status_code == 201
        data = response.json()
        assert data["slot_id"] == slot.id
        assert data["visitor_count"] == 2
        assert data["paid_quantity"] == 2
        assert data["total_price"] == "30.00"
        assert data["status"] == "pending"

    def test_insufficient_capacity_is_a_409_problem(self, client, make_slot):
        slot = make_slot(1)
        client.post("/api/v1/bookings", json=_payload(slot, 1))

        response = client.post("/api/v1/bookings", json=_payload(slot, 1))

        assert response.status_code == 409
        problem = response.json()
        assert problem["title"] == "Conflict"
        assert problem["code"] == "INSUFFICIENT_CAPACITY"
        assert problem["errors"]["available"] == 0
        assert problem["errors"]["requested"] == 1
        assert problem["instance"] == "/api/v1/bookings"

    def test_lock_timeout_is_a_retryable_503(self, client, make_slot):
        slot = make_slot(1)
        service = Mock()
        service.admit.side_effect = LockTimeoutException("slot", slot.id)
        app.dependency_overrides[get_booking_admission_service] = lambda: service

        response = client.post("/api/v1/bookings", json=_payload(slot, 1))

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "1"
        assert response.json()["code"] == "LOCK_TIMEOUT"

    def test_request_validation(self, client, make_slot):
        slot = make_slot(3)

        response = client.post(
            "/api/v1/bookings", json=_payload(slot, 0, status="cancelled", surprise=True)
        )

        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"

    def test_unknown_slot_is_404(self, client, make_slot):
        slot = make_slot(3)
        body = _payload(slot, 1)
        body["slot_id"] = "01ARZ3NDEKTSV4RRFFQ69G5FAV"

        response = client.post("/api/v1/bookings", json=body)

        assert response.status_code == 404
        assert response.json()["errors"] == {"slot_id": "01ARZ3NDEKTSV4RRFFQ69G5FAV"}


class TestBookingLifecycleRoutes:
    def test_get_cancel_and_complete(self, client, db, make_slot):
        slot = make_slot(3)
        created = client.post("/api/v1/bookings", json=_payload(slot, 2)).json()

        fetched = client.get(f"/api/v1/bookings/{created['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["id"] == created["id"]

        cancelled = client.post(
            f"/api/v1/bookings/{created['id']}/cancel", json={"reason": "sick"}
        )
        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "cancelled"
        assert cancelled.json()["cancellation_reason"] == "sick"
        assert reload_slot(db, slot).available_capacity == 3

        refused = client.post(f"/api/v1/bookings/{created['id']}/complete")
        assert refused.status_code == 422
        assert refused.json()["code"] == "INVALID_STATUS_TRANSITION"

    def test_cancel_without_body(self, client, make_slot):
        slot = make_slot(3)
        created = client.post("/api/v1/bookings", json=_payload(slot, 1)).json()

        response = client.post(f"/api/v1/bookings/{created['id']}/cancel")

        assert response.status_code == 200
        assert response.json()["cancellation_reason"] is None

    def test_status_and_reschedule(self, client, make_slot):
        first = make_slot(3)
        second = make_slot(3)
        created = client.post("/api/v1/bookings", json=_payload(first, 2)).json()

        confirmed = client.post(
            f"/api/v1/bookings/{created['id']}/status", json={"status": "confirmed"}
        )
        moved = client.post(
            f"/api/v1/bookings/{created['id']}/reschedule", json={"slot_id": second.id}
        )

        assert confirmed.json()["status"] == "confirmed"
        assert moved.status_code == 200
        assert moved.json()["slot_id"] == second.id

    def test_malformed_booking_id(self, client):
        response = client.get("/api/v1/bookings/not-a-ulid")
        assert response.status_code == 422

    def test_bulk(self, client, make_slot, make_subscription, customer, invoice_client):
        slots = [make_slot(3), make_slot(3)]
        make_subscription(customer, 1)

        response = client.post(
            "/api/v1/bookings/bulk",
            json={
                "tenant_id": slots[0].tenant_id,
                "service_id": slots[0].service_id,
                "slot_ids": [slot.id for slot in slots],
                "price_per_unit": "12.00",
                "customer_id": customer.id,
            },
        )

        assert response.status_code == 201
        group = response.json()
        assert len(group["bookings"]) == 2
        assert group["paid_quantity"] == 1
        assert group["total_price"] == "12.00"
        invoice_client.create_invoice.assert_called_once()


class TestSlotAndPackageRoutes:
    def test_hold_then_purge(self, client, make_slot):
        slot = make_slot(3)

        response = client.post(
            f"/api/v1/slots/{slot.id}/holds", json={"session_id": "checkout-a", "quantity": 2}
        )

        assert response.status_code == 201
        assert response.json()["reserved_capacity"] == 2
        assert client.delete("/api/v1/slots/holds/expired").json() == {"deleted": 0}

    def test_recalculate(self, client, make_slot):
        slot = make_slot(4)

        response = client.post("/api/v1/slots/recalculate", json={"slot_ids": [slot.id]})

        assert response.status_code == 200
        assert response.json()["changed"] == 0
        assert response.json()["slots"][0]["after"]["available_capacity"] == 4

    def test_coverage_preview(self, client, tenant, service, customer, make_subscription):
        make_subscription(customer, 3)

        response = client.get(
            "/api/v1/packages/coverage",
            params={
                "tenant_id": tenant.id,
                "service_id": service.id,
                "quantity": 5,
                "customer_id": customer.id,
            },
        )

        assert response.status_code == 200
        assert response.json()["covered_quantity"] == 3
        assert response.json()["paid_quantity"] == 2
        assert response.json()["remaining_capacity"] == 3

    def test_coverage_preview_for_guest(self, client, tenant, service):
        response = client.get(
            "/api/v1/packages/coverage",
            params={"tenant_id": tenant.id, "service_id": service.id, "quantity": 2},
        )
        assert response.json()["remaining_capacity"] == 0
        assert response.json()["paid_quantity"] == 2


def test_health_and_metrics(client):
    assert client.get("/api/v1/health").json()["status"] == "healthy"

    metrics = client.get("/metrics/prometheus")
    assert metrics.status_code == 200
    assert "bookati_booking_admissions_total" in metrics.text

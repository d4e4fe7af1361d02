"""
Integration tests for API endpoints
"""
import pytest

from conftest import CUSTOMER_ID, OWNER_ID, SUNDAY, TUESDAY, WEDNESDAY
from detailing_scheduler.services import notifications


def _create(client, **overrides):
    payload = {
        "customer_id": CUSTOMER_ID,
        "date": TUESDAY.isoformat(),
        "start_time": "10:00",
        "end_time": "11:00",
        "service_type": "Exterior Wash",
    }
    payload.update(overrides)
    return client.post("/reservations", json=payload)


@pytest.fixture
def reservation_id(client, sample_business):
    response = _create(client, business_id=sample_business.id, staff_id="staff-1")
    assert response.status_code == 201
    return response.json()["reservation_id"]


@pytest.mark.integration
class TestHealthEndpoint:
    """Test health check endpoint"""

    def test_health_check(self, client):
        """Test health check returns OK"""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert "Detailing Scheduler" in response.json()["app"]

    def test_root_endpoint(self, client):
        """Test root endpoint"""
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert "message" in data
        assert "docs" in data
        assert "health" in data


@pytest.mark.integration
class TestReservationEndpoints:
    """Test reservation lifecycle over HTTP"""

    def test_create_and_get(self, client, reservation_id, publisher):
        response = client.get(f"/reservations/{reservation_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "scheduled"
        assert data["start_time"] == "10:00"
        assert data["staff_id"] == "staff-1"
        assert publisher.types() == [notifications.BOOKING_CREATED]

    def test_overlap_returns_409(self, client, reservation_id, sample_business):
        response = _create(
            client,
            business_id=sample_business.id,
            staff_id="staff-1",
            start_time="10:30",
            end_time="11:30",
        )

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "SLOT_CONFLICT"
        assert "message" in response.json()["detail"]

    def test_touching_boundary_is_accepted(self, client, reservation_id, sample_business):
        response = _create(
            client,
            business_id=sample_business.id,
            staff_id="staff-1",
            start_time="11:00",
            end_time="12:00",
        )
        assert response.status_code == 201

    def test_invalid_input_returns_422(self, client):
        inverted = _create(client, start_time="11:00", end_time="10:00")
        malformed = _create(client, date="next tuesday")

        assert inverted.status_code == 422
        assert inverted.json()["detail"]["code"] == "INVALID_INTERVAL"
        assert malformed.json()["detail"]["code"] == "INVALID_DATE"

    def test_closed_business_returns_409(self, client, sample_business):
        response = _create(client, business_id=sample_business.id, date=SUNDAY.isoformat())

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "BUSINESS_CLOSED"

    def test_missing_reservation_returns_404(self, client):
        response = client.get("/reservations/999")

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "RESERVATION_NOT_FOUND"

    def test_patch(self, client, reservation_id):
        response = client.patch(
            f"/reservations/{reservation_id}", json={"notes": "Bring ladder", "price": 75.0}
        )

        assert response.status_code == 200
        assert response.json()["notes"] == "Bring ladder"
        assert response.json()["price"] == 75.0

    def test_reschedule_requires_actor(self, client, reservation_id):
        body = {"new_date": WEDNESDAY.isoformat(), "new_start_time": "10:00", "new_end_time": "11:00"}

        anonymous = client.post(f"/reservations/{reservation_id}/reschedule", json=body)
        stranger = client.post(
            f"/reservations/{reservation_id}/reschedule",
            json=body,
            headers={"X-Actor-Id": "stranger"},
        )

        assert anonymous.status_code == 403
        assert stranger.status_code == 403

    def test_reschedule_and_history(self, client, reservation_id):
        response = client.post(
            f"/reservations/{reservation_id}/reschedule",
            json={
                "new_date": WEDNESDAY.isoformat(),
                "new_start_time": "13:00",
                "new_end_time": "14:00",
                "reason": "Work meeting",
            },
            headers={"X-Actor-Id": CUSTOMER_ID},
        )

        assert response.status_code == 200
        assert response.json()["date"] == WEDNESDAY.isoformat()
        assert response.json()["reschedule_count"] == 1

        history = client.get(f"/reservations/{reservation_id}/history").json()
        assert len(history) == 1
        assert history[0]["original_start_time"] == "10:00"
        assert history[0]["rescheduled_by"] == "customer"
        assert history[0]["reason"] == "Work meeting"

    def test_cancel(self, client, reservation_id):
        response = client.post(
            f"/reservations/{reservation_id}/cancel", json={"reason": "Customer request"}
        )
        reservation = client.get(f"/reservations/{reservation_id}").json()

        assert response.json() == {"success": True}
        assert reservation["status"] == "cancelled"
        assert "Customer request" in reservation["notes"]

    def test_cancel_without_body(self, client, reservation_id):
        response = client.post(f"/reservations/{reservation_id}/cancel")
        assert response.json() == {"success": True}

    def test_forward_transitions_and_complete(self, client, reservation_id):
        assert client.post(f"/reservations/{reservation_id}/confirm").json()["status"] == "confirmed"
        assert client.post(f"/reservations/{reservation_id}/start").json()["status"] == "in-progress"

        cancel = client.post(f"/reservations/{reservation_id}/cancel")
        assert cancel.status_code == 422
        assert cancel.json()["detail"]["code"] == "INVALID_TRANSITION"

        response = client.post(f"/reservations/{reservation_id}/complete", json={"notes": "Done"})
        assert response.status_code == 200
        assert response.json() == {"reservation_id": reservation_id, "history_record_id": None}

    def test_complete_with_vehicle(self, client):
        created = _create(client, vehicle_id="vehicle-1").json()
        response = client.post(
            f"/reservations/{created['reservation_id']}/complete",
            json={"products_used": ["wax-01"]},
        )
        assert response.json()["history_record_id"] is not None

    def test_can_reschedule(self, client, reservation_id):
        response = client.get(f"/reservations/{reservation_id}/can-reschedule")
        assert response.json() == {"can_reschedule": True, "reason": None}

    def test_patch_null_required_field_returns_422(self, client, reservation_id):
        response = client.patch(f"/reservations/{reservation_id}", json={"service_type": None})

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "NULL_FIELDS"
        assert client.get(f"/reservations/{reservation_id}").json()["service_type"] == "Exterior Wash"

    def test_cancel_records_actor(self, client, reservation_id):
        client.post(f"/reservations/{reservation_id}/cancel", headers={"X-Actor-Id": CUSTOMER_ID})
        reservation = client.get(f"/reservations/{reservation_id}").json()

        assert reservation["cancelled_by"] == CUSTOMER_ID
        assert reservation["cancelled_at"].startswith("2030-06-03")

    def test_cancellation_policy(self, client, reservation_id):
        response = client.get(f"/reservations/{reservation_id}/cancellation-policy")

        assert response.status_code == 200
        assert response.json() == {
            "can_cancel": True,
            "reason": None,
            "hours_until_appointment": 26,
            "deadline_hours": 24,
        }


@pytest.mark.integration
class TestListingEndpoints:
    """Test reservation listings"""

    def test_list_by_date(self, client, reservation_id):
        response = client.get("/reservations", params={"date": TUESDAY.isoformat()})

        assert response.status_code == 200
        assert [r["id"] for r in response.json()] == [reservation_id]

    def test_list_by_customer_and_staff(self, client, reservation_id):
        by_customer = client.get("/reservations", params={"customer_id": CUSTOMER_ID})
        by_staff = client.get(
            "/reservations", params={"staff_id": "staff-1", "date": TUESDAY.isoformat()}
        )

        assert len(by_customer.json()) == 1
        assert len(by_staff.json()) == 1

    def test_listing_needs_a_filter(self, client):
        assert client.get("/reservations").status_code == 422
        assert client.get("/reservations", params={"staff_id": "staff-1"}).status_code == 422

    def test_upcoming(self, client, reservation_id):
        response = client.get("/reservations/upcoming", params={"days": 3})

        assert response.status_code == 200
        assert list(response.json()) == [TUESDAY.isoformat()]


@pytest.mark.integration
class TestBusinessEndpoints:
    """Test slots and availability management"""

    def test_available_slots(self, client, sample_business):
        response = client.get(
            f"/businesses/{sample_business.id}/slots",
            params={"date": TUESDAY.isoformat(), "duration": 60},
        )

        assert response.status_code == 200
        slots = response.json()["available_slots"]
        assert len(slots) == 15
        assert slots[0] == {"start_time": "09:00", "end_time": "10:00"}
        assert slots[-1] == {"start_time": "16:00", "end_time": "17:00"}

    def test_slots_exclude_booked_time(self, client, reservation_id, sample_business):
        response = client.get(
            f"/businesses/{sample_business.id}/slots",
            params={"date": TUESDAY.isoformat(), "duration": 60},
        )
        starts = [s["start_time"] for s in response.json()["available_slots"]]

        assert "10:00" not in starts
        assert "09:00" in starts
        assert "11:00" in starts

    def test_slots_for_unknown_business(self, client):
        response = client.get(
            "/businesses/999/slots", params={"date": TUESDAY.isoformat(), "duration": 60}
        )
        assert response.status_code == 404

    def test_resolved_hours(self, client, sample_business):
        open_day = client.get(
            f"/businesses/{sample_business.id}/hours", params={"date": TUESDAY.isoformat()}
        )
        closed_day = client.get(
            f"/businesses/{sample_business.id}/hours", params={"date": SUNDAY.isoformat()}
        )

        assert open_day.json()["open_time"] == "09:00"
        assert closed_day.json()["is_open"] is False

    def test_set_weekly_availability(self, client, sample_business):
        url = f"/businesses/{sample_business.id}/availability/sunday"
        body = {"is_open": True, "open_time": "10:00", "close_time": "14:00"}

        assert client.put(url, json=body).status_code == 403
        response = client.put(url, json=body, headers={"X-Actor-Id": OWNER_ID})
        weekly = client.get(f"/businesses/{sample_business.id}/availability").json()

        assert response.status_code == 200
        assert weekly["sunday"]["open_time"] == "10:00"

    def test_special_day_closure(self, client, sample_business):
        response = client.put(
            f"/businesses/{sample_business.id}/special-days/{TUESDAY.isoformat()}",
            json={"is_open": False, "reason": "Holiday"},
            headers={"X-Actor-Id": OWNER_ID},
        )
        slots = client.get(
            f"/businesses/{sample_business.id}/slots",
            params={"date": TUESDAY.isoformat(), "duration": 60},
        )

        assert response.json()["is_open"] is False
        assert response.json()["reason"] == "Holiday"
        assert slots.json()["available_slots"] == []

    def test_create_bundle(self, client, sample_business, sample_services):
        response = client.post(
            f"/businesses/{sample_business.id}/bundles",
            json={"name": "Quick Shine", "service_ids": [sample_services[0].id, sample_services[2].id]},
            headers={"X-Actor-Id": OWNER_ID},
        )

        assert response.status_code == 201
        assert response.json()["total_duration"] == 90


@pytest.mark.integration
class TestBundleEndpoints:
    """Test bundle booking over HTTP"""

    def _book(self, client, bundle_id, start="09:00"):
        return client.post(
            f"/bundles/{bundle_id}/book",
            json={
                "customer_id": CUSTOMER_ID,
                "date": TUESDAY.isoformat(),
                "start_time": start,
                "customer_info": {"name": "Ann", "phone": "+15551234567"},
            },
        )

    def test_book_bundle(self, client, sample_bundle):
        response = self._book(client, sample_bundle.id)

        assert response.status_code == 201
        reservation_id = response.json()["reservation_id"]
        reservation = client.get(f"/reservations/{reservation_id}").json()
        services = client.get(f"/reservations/{reservation_id}/services").json()
        assert reservation["end_time"] == "11:30"
        assert reservation["bundle_id"] == sample_bundle.id
        assert [s["status"] for s in services] == ["pending", "pending"]

    def test_sold_out_returns_409(self, client, sample_bundle):
        self._book(client, sample_bundle.id, "09:00")
        self._book(client, sample_bundle.id, "12:00")
        response = self._book(client, sample_bundle.id, "14:30")

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "BUNDLE_SOLD_OUT"

    def test_bundle_slots(self, client, sample_bundle):
        response = client.get(
            f"/bundles/{sample_bundle.id}/slots", params={"date": TUESDAY.isoformat()}
        )

        assert response.status_code == 200
        assert response.json()["duration"] == 150
        assert len(response.json()["available_slots"]) == 12

    def test_cancel_bundle_booking(self, client, sample_bundle, test_db_session):
        reservation_id = self._book(client, sample_bundle.id).json()["reservation_id"]
        response = client.post(f"/bundles/reservations/{reservation_id}/cancel")

        assert response.json() == {"success": True}
        test_db_session.refresh(sample_bundle)
        assert sample_bundle.current_redemptions == 0


@pytest.mark.integration
class TestSlotValidationEndpoints:
    """Test dry-run slot validation"""

    def _payload(self, business_id, **overrides):
        payload = {
            "business_id": business_id,
            "date": TUESDAY.isoformat(),
            "start_time": "10:00",
            "end_time": "11:00",
            "service_type": "Exterior Wash",
        }
        payload.update(overrides)
        return payload

    def test_valid_slot(self, client, sample_business):
        response = client.post("/reservations/validate", json=self._payload(sample_business.id))

        assert response.status_code == 200
        assert response.json() == {"is_valid": True, "errors": [], "warnings": []}

    def test_duration_warning(self, client, sample_business):
        response = client.post(
            "/reservations/validate", json=self._payload(sample_business.id, end_time="12:00")
        )

        assert response.json()["is_valid"] is True
        assert response.json()["warnings"] == [
            "Appointment duration (120min) differs from service duration (60min)"
        ]

    def test_booked_slot_is_invalid_and_nothing_written(
        self, client, reservation_id, sample_business
    ):
        response = client.post(
            "/reservations/validate",
            json=self._payload(sample_business.id, staff_id="staff-1", start_time="10:30", end_time="11:30"),
        )

        assert response.json()["is_valid"] is False
        assert len(response.json()["errors"]) == 1
        assert len(client.get("/reservations", params={"date": TUESDAY.isoformat()}).json()) == 1

    def test_batch(self, client, sample_business):
        response = client.post(
            "/reservations/validate-batch",
            json={
                "reservations": [
                    self._payload(sample_business.id),
                    self._payload(sample_business.id, start_time="10:30", end_time="11:30"),
                    self._payload(sample_business.id, date=SUNDAY.isoformat()),
                ]
            },
        )

        assert response.status_code == 200
        results = response.json()
        assert [r["index"] for r in results] == [0, 1, 2]
        assert [r["is_valid"] for r in results] == [True, False, False]
        assert results[1]["errors"] == ["Overlaps request 0 in this batch"]


@pytest.mark.integration
class TestStaffEndpoints:
    """Test staff working windows"""

    def test_only_the_staff_member_sets_their_window(self, client):
        response = client.put(
            f"/staff/staff-1/availability/{TUESDAY.isoformat()}",
            json={"is_available": True, "start_time": "12:00", "end_time": "17:00"},
            headers={"X-Actor-Id": "staff-2"},
        )
        assert response.status_code == 403

    def test_window_limits_bookings(self, client, sample_business):
        response = client.put(
            f"/staff/staff-1/availability/{TUESDAY.isoformat()}",
            json={"is_available": True, "start_time": "12:00", "end_time": "17:00"},
            headers={"X-Actor-Id": "staff-1"},
        )
        assert response.status_code == 200
        assert response.json()["start_time"] == "12:00"
        assert response.json()["is_custom"] is True

        outside = _create(client, business_id=sample_business.id, staff_id="staff-1")
        inside = _create(
            client,
            business_id=sample_business.id,
            staff_id="staff-1",
            start_time="13:00",
            end_time="14:00",
        )

        assert outside.status_code == 409
        assert outside.json()["detail"]["code"] == "OUTSIDE_STAFF_HOURS"
        assert inside.status_code == 201

    def test_range_listing(self, client):
        client.put(
            f"/staff/staff-1/availability/{WEDNESDAY.isoformat()}",
            json={"is_available": False, "reason": "vacation"},
            headers={"X-Actor-Id": "staff-1"},
        )
        response = client.get(
            "/staff/staff-1/availability",
            params={"start_date": TUESDAY.isoformat(), "end_date": WEDNESDAY.isoformat()},
        )

        assert response.status_code == 200
        days = response.json()["dates"]
        assert [d["is_available"] for d in days] == [True, False]
        assert days[1]["reason"] == "vacation"

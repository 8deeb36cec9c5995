"""
HTTP tests: routing, status codes and the error-to-response mapping.
"""

import uuid

DOCTOR = "Dr. Maria Santos"
DEPARTMENT = "General Medicine"
API = "/api/v1"


def _create_schedule(client, clinic_day, **overrides):
    body = {
        "doctor_name": DOCTOR,
        "department_name": DEPARTMENT,
        "day_of_week": (clinic_day.weekday() + 1) % 7,
        "start_time": "09:00",
        "end_time": "10:00",
        "max_appointments": 1,
    }
    body.update(overrides)
    response = client.post(f"{API}/doctor-availability/schedules", json=body)
    assert response.status_code == 200, response.text
    return response.json()


def _book(client, clinic_day, preferred_time: str, patient_name: str = "Juan Dela Cruz"):
    return client.post(
        f"{API}/appointments",
        json={
            "patient_name": patient_name,
            "doctor_name": DOCTOR,
            "department_name": DEPARTMENT,
            "appointment_date": clinic_day.isoformat(),
            "preferred_time": preferred_time,
        },
    )


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class TestBookingApi:
    def test_availability_and_booking_flow(self, client, clinic_day):
        schedule = _create_schedule(client, clinic_day)
        assert schedule["start_time"] == "09:00"

        response = client.get(
            f"{API}/doctor-availability",
            params={
                "doctor_name": DOCTOR,
                "department_name": DEPARTMENT,
                "appointment_date": clinic_day.isoformat(),
            },
        )
        assert response.status_code == 200
        assert response.json()["recommended_times"] == ["09:00", "09:30"]

        first = _book(client, clinic_day, "09:15")
        assert first.status_code == 201, first.text
        booking_id = first.json()["booking_id"]

        second = _book(client, clinic_day, "09:30", patient_name="Lea Bautista")
        assert second.status_code == 422
        assert "full" in second.json()["detail"]

        cancel = client.patch(f"{API}/appointments/{booking_id}", json={"status": "cancelled"})
        assert cancel.status_code == 200
        assert cancel.json()["status"] == "Canceled"

        third = _book(client, clinic_day, "09:30", patient_name="Lea Bautista")
        assert third.status_code == 201

        listing = client.get(f"{API}/appointments", params={"status": "Pending"})
        assert listing.status_code == 200
        assert listing.json()["total"] == 1

    def test_time_catalog(self, client, clinic_day):
        _create_schedule(client, clinic_day)

        response = client.get(
            f"{API}/doctor-availability/times",
            params={"department_name": DEPARTMENT, "appointment_date": clinic_day.isoformat()},
        )

        assert response.status_code == 200
        assert response.json()["allowed_times"] == ["09:00", "09:30"]

    def test_delete_schedule(self, client, clinic_day):
        schedule = _create_schedule(client, clinic_day)

        assert client.delete(f"{API}/doctor-availability/schedules/{schedule['id']}").status_code == 204
        assert client.delete(f"{API}/doctor-availability/schedules/{schedule['id']}").status_code == 404

    def test_unknown_appointment(self, client):
        response = client.get(f"{API}/appointments/APT-00000000-NOPE00")

        assert response.status_code == 404
        assert response.json() == {"detail": "Appointment not found."}


class TestCheckupApi:
    def test_stale_version_is_a_conflict(self, client):
        created = client.post(f"{API}/checkups", json={"patient_name": "Juan Dela Cruz"})
        assert created.status_code == 201
        visit = created.json()
        assert visit["version"] == 1

        queued = client.post(
            f"{API}/checkups/{visit['id']}/actions",
            json={"action": "queue", "expected_version": 1},
        )
        assert queued.status_code == 200
        assert queued.json()["version"] == 2

        stale = client.post(
            f"{API}/checkups/{visit['id']}/actions",
            json={"action": "escalate_emergency", "expected_version": 1},
        )
        assert stale.status_code == 409

    def test_invalid_transition_is_400(self, client):
        visit = client.post(f"{API}/checkups", json={"patient_name": "Juan Dela Cruz"}).json()

        response = client.post(f"{API}/checkups/{visit['id']}/actions", json={"action": "archive"})

        assert response.status_code == 400
        assert "requires status completed" in response.json()["detail"]

    def test_listing(self, client):
        client.post(f"{API}/checkups", json={"patient_name": "Juan Dela Cruz"})

        response = client.get(f"{API}/checkups", params={"status": "intake"})

        assert response.status_code == 200
        assert response.json()["total"] == 1


class TestLaboratoryApi:
    def test_lifecycle_and_activity(self, client):
        created = client.post(
            f"{API}/laboratory",
            json={
                "patient_name": "Juan Dela Cruz",
                "category": "Hematology",
                "requested_by_doctor": DOCTOR,
                "priority": "Urgent",
                "tests": ["Complete Blood Count"],
            },
        )
        assert created.status_code == 201
        request_id = created.json()["id"]

        early = client.post(f"{API}/laboratory/{request_id}/actions", json={"action": "release"})
        assert early.status_code == 400

        for body in (
            {"action": "start_processing", "lab_staff": "Tech. Rosa", "sample_collected": True},
            {"action": "save_results", "encoded_values": {"wbc": "7.2"}, "finalize": True},
            {"action": "release"},
        ):
            response = client.post(f"{API}/laboratory/{request_id}/actions", json=body)
            assert response.status_code == 200, response.text

        assert client.get(f"{API}/laboratory/{request_id}").json()["status"] == "Completed"

        activity = client.get(f"{API}/laboratory/{request_id}/activity").json()
        assert [a["action"] for a in activity] == [
            "Request Created",
            "Processing Started",
            "Result Finalized",
            "Report Released",
        ]

    def test_unknown_request(self, client):
        response = client.get(f"{API}/laboratory/{uuid.uuid4()}")

        assert response.status_code == 404


class TestPharmacyApi:
    def test_dispense_insufficient_stock(self, client):
        created = client.post(
            f"{API}/pharmacy/medicines",
            json={"sku": "MED-PARA-500", "medicine_name": "Paracetamol 500mg", "stock_on_hand": 5},
        )
        assert created.status_code == 201
        medicine_id = created.json()["medicine"]["id"]

        response = client.post(
            f"{API}/pharmacy/medicines/{medicine_id}/actions",
            json={
                "action": "dispense",
                "quantity": 10,
                "patient_name": "Juan Dela Cruz",
                "prescription_reference": "RX-0001",
            },
        )

        assert response.status_code == 422
        assert response.json() == {"detail": "Insufficient stock. Available: 5"}

        snapshot = client.get(f"{API}/pharmacy").json()
        assert snapshot["medicines"][0]["stock_on_hand"] == 5
        assert len(snapshot["movements"]) == 1

    def test_request_fulfilment(self, client):
        medicine_id = client.post(
            f"{API}/pharmacy/medicines",
            json={"sku": "MED-AMOX-500", "medicine_name": "Amoxicillin 500mg", "stock_on_hand": 20},
        ).json()["medicine"]["id"]

        request = client.post(
            f"{API}/pharmacy/requests",
            json={
                "medicine_id": medicine_id,
                "patient_name": "Lea Bautista",
                "quantity": 14,
                "prescription_reference": "RX-0042",
            },
        )
        assert request.status_code == 201
        request_id = request.json()["id"]

        fulfilled = client.post(f"{API}/pharmacy/requests/{request_id}/fulfill", json={"actor": "Pharm. Cruz"})
        assert fulfilled.status_code == 200
        body = fulfilled.json()
        assert body["medicine"]["stock_on_hand"] == 6
        assert body["dispense_request"]["status"] == "Fulfilled"

        again = client.post(f"{API}/pharmacy/requests/{request_id}/fulfill")
        assert again.status_code == 400

        movements = client.get(f"{API}/pharmacy/medicines/{medicine_id}/movements").json()
        assert [m["movement_type"] for m in movements] == ["fulfillment", "initial"]

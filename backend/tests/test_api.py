"""
API tests for the FuelPOS backend routes.
"""
import time
from decimal import Decimal
from types import SimpleNamespace

import pytest
from starlette.websockets import WebSocketDisconnect

from fuelpos.models import Alert, AuditLog, GasTransaction

from tests.helpers import CASHIER_PIN


def _wait_for(client, session_id, predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get(f"/api/payments/qr/sessions/{session_id}").json()
        if predicate(body):
            return body
        time.sleep(0.02)
    raise AssertionError(f"Session {session_id} never matched, last state {body['state']}")


def _start_qr(client, employee, fuel_type, liters=10, method="promptpay"):
    return client.post("/api/payments/qr/sessions", json={
        "employee_id": employee.id,
        "fuel_type_id": fuel_type.id,
        "fuel_amount": liters,
        "payment_method": method,
    })


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["bank_gateway"] == "simulated"


class TestAuth:

    def test_login_success_is_audited(self, client, employee, db_session):
        response = client.post("/api/auth/login", json={"pin": CASHIER_PIN})
        assert response.status_code == 200
        assert response.json()["employee"]["full_name"] == "Somchai Jaidee"

        entry = db_session.query(AuditLog).one()
        assert entry.action == "login"
        assert entry.employee_id == employee.id
        assert entry.details["success"] is True

    def test_failed_login_never_stores_pin(self, client, employee, db_session):
        response = client.post("/api/auth/login", json={"pin": "9876"})
        assert response.status_code == 401

        entry = db_session.query(AuditLog).one()
        assert entry.employee_id is None
        assert entry.details == {"success": False, "reason": "invalid_pin"}
        assert "9876" not in str(entry.details)

    def test_login_is_rate_limited(self, client, employee):
        for _ in range(5):
            assert client.post("/api/auth/login", json={"pin": "0000"}).status_code == 401
        assert client.post("/api/auth/login", json={"pin": CASHIER_PIN}).status_code == 429

    def test_logout(self, client, employee, db_session):
        response = client.post("/api/auth/logout", json={"employee_id": employee.id,
                                                         "employee_name": employee.full_name})
        assert response.status_code == 200
        assert db_session.query(AuditLog).one().action == "logout"

        assert client.post("/api/auth/logout", json={"employee_id": "ghost"}).status_code == 404


class TestFuelCatalog:

    def test_lists_only_available_fuel(self, client, fuel_type, unavailable_fuel):
        names = [f["name"] for f in client.get("/api/fuel-types").json()]
        assert names == ["Gasohol 95"]

    def test_get_fuel_type(self, client, fuel_type):
        body = client.get(f"/api/fuel-types/{fuel_type.id}").json()
        assert Decimal(body["price_per_liter"]) == Decimal("25.00")
        assert client.get("/api/fuel-types/missing").status_code == 404


class TestTransactions:

    def test_cash_sale_ignores_client_total(self, client, employee, fuel_type, db_session):
        response = client.post("/api/transactions", json={
            "employee_id": employee.id,
            "fuel_type_id": fuel_type.id,
            "fuel_amount": 10,
            "payment_method": "cash",
            "total_amount": 1.00,
        })
        assert response.status_code == 200
        body = response.json()
        assert Decimal(body["total_amount"]) == Decimal("250.00")

        fetched = client.get(f"/api/transactions/{body['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["receipt_number"] == body["receipt_number"]

        history = client.get(f"/api/employees/{employee.id}/transactions").json()
        assert [t["id"] for t in history] == [body["id"]]

    def test_qr_methods_are_rejected(self, client, employee, fuel_type, db_session):
        response = client.post("/api/transactions", json={
            "employee_id": employee.id,
            "fuel_type_id": fuel_type.id,
            "fuel_amount": 10,
            "payment_method": "promptpay",
        })
        assert response.status_code == 400
        assert db_session.query(GasTransaction).count() == 0

    def test_unavailable_fuel_is_rejected_and_audited(self, client, employee, unavailable_fuel, db_session):
        response = client.post("/api/transactions", json={
            "employee_id": employee.id,
            "fuel_type_id": unavailable_fuel.id,
            "fuel_amount": 5,
            "payment_method": "card",
        })
        assert response.status_code == 400

        entry = db_session.query(AuditLog).one()
        assert entry.action == "payment_processed"
        assert entry.details["success"] is False

    def test_zero_liters_fails_validation(self, client, employee, fuel_type):
        response = client.post("/api/transactions", json={
            "employee_id": employee.id,
            "fuel_type_id": fuel_type.id,
            "fuel_amount": 0,
            "payment_method": "cash",
        })
        assert response.status_code == 422

    def test_unknown_transaction(self, client):
        assert client.get("/api/transactions/missing").status_code == 404


class TestQRPayments:

    def test_start_session_prices_from_catalog(self, client, employee, fuel_type):
        response = _start_qr(client, employee, fuel_type)
        assert response.status_code == 200
        body = response.json()
        assert body["state"] == "waiting"
        assert Decimal(body["amount"]) == Decimal("250.00")
        assert body["merchant_ref"] == "0105558555555"
        assert body["qr_image"].startswith("data:image/png;base64,")
        assert body["remaining_seconds"] > 0

    def test_start_session_validates_order(self, client, employee, fuel_type, unavailable_fuel):
        ghost = SimpleNamespace(id="ghost")
        assert _start_qr(client, ghost, fuel_type).status_code == 404
        assert _start_qr(client, employee, unavailable_fuel).status_code == 400
        assert _start_qr(client, employee, fuel_type, method="cash").status_code == 422

    def test_simulated_payment_records_sale(self, client, employee, fuel_type, db_session):
        session = _start_qr(client, employee, fuel_type).json()

        response = client.post(f"/api/payments/qr/simulate/{session['transaction_ref']}",
                               json={"status": "success", "external_transaction_id": "TH123"})
        assert response.status_code == 200

        body = _wait_for(client, session["session_id"], lambda b: b["transaction"] is not None)
        assert body["state"] == "succeeded"
        assert body["external_transaction_id"] == "TH123"
        assert Decimal(body["transaction"]["total_amount"]) == Decimal("250.00")

        row = db_session.query(GasTransaction).one()
        assert row.payment_method == "promptpay"
        assert row.payment_session_id == session["session_id"]

    def test_cancel_then_cancel_again(self, client, employee, fuel_type, db_session):
        session_id = _start_qr(client, employee, fuel_type).json()["session_id"]

        response = client.post(f"/api/payments/qr/sessions/{session_id}/cancel")
        assert response.status_code == 200
        assert response.json()["state"] == "cancelled"
        assert response.json()["remaining_seconds"] == 0

        assert client.post(f"/api/payments/qr/sessions/{session_id}/cancel").status_code == 409
        assert client.post(f"/api/payments/qr/sessions/{session_id}/retry").status_code == 409
        assert db_session.query(GasTransaction).count() == 0

    def test_retry_of_waiting_session_conflicts(self, client, employee, fuel_type):
        session_id = _start_qr(client, employee, fuel_type).json()["session_id"]
        assert client.post(f"/api/payments/qr/sessions/{session_id}/retry").status_code == 409

    def test_declined_payment_can_be_retried(self, client, employee, fuel_type):
        session = _start_qr(client, employee, fuel_type).json()
        client.post(f"/api/payments/qr/simulate/{session['transaction_ref']}", json={"status": "failed"})
        failed = _wait_for(client, session["session_id"], lambda b: b["state"] == "failed")
        assert failed["failure"]["reason"] == "declined"

        response = client.post(f"/api/payments/qr/sessions/{session['session_id']}/retry")
        assert response.status_code == 200
        retried = response.json()
        assert retried["session_id"] != session["session_id"]
        assert retried["state"] == "waiting"

        old = client.get(f"/api/payments/qr/sessions/{session['session_id']}").json()
        assert old["superseded_by"] == retried["session_id"]

    def test_unknown_session(self, client):
        assert client.get("/api/payments/qr/sessions/missing").status_code == 404
        assert client.post("/api/payments/qr/sessions/missing/cancel").status_code == 404

    def test_event_stream_ends_on_cancel(self, client, employee, fuel_type):
        session_id = _start_qr(client, employee, fuel_type).json()["session_id"]

        with client.websocket_connect(f"/api/payments/qr/sessions/{session_id}/events") as ws:
            snapshot = ws.receive_json()
            assert snapshot["kind"] == "snapshot"
            assert snapshot["state"] == "waiting"

            client.post(f"/api/payments/qr/sessions/{session_id}/cancel")
            event = ws.receive_json()
            assert event["kind"] == "transition"
            assert event["state"] == "cancelled"

            with pytest.raises(WebSocketDisconnect):
                ws.receive_json()

    def test_event_stream_of_closed_session_ends_after_snapshot(self, client, employee, fuel_type):
        session_id = _start_qr(client, employee, fuel_type).json()["session_id"]
        client.post(f"/api/payments/qr/sessions/{session_id}/cancel")

        with client.websocket_connect(f"/api/payments/qr/sessions/{session_id}/events") as ws:
            snapshot = ws.receive_json()
            assert snapshot["state"] == "cancelled"
            assert snapshot["payload"] == {"remaining_seconds": 0}
            with pytest.raises(WebSocketDisconnect):
                ws.receive_json()

    def test_client_leaving_stream_releases_listener(self, client, employee, fuel_type, api_manager):
        session_id = _start_qr(client, employee, fuel_type).json()["session_id"]

        with client.websocket_connect(f"/api/payments/qr/sessions/{session_id}/events") as ws:
            assert ws.receive_json()["state"] == "waiting"
            assert len(api_manager._listeners) == 1

        deadline = time.monotonic() + 2.0
        while api_manager._listeners and time.monotonic() < deadline:
            time.sleep(0.01)
        assert api_manager._listeners == []
        assert api_manager.get_session(session_id).state.value == "waiting"

    def test_event_stream_for_unknown_session(self, client):
        with client.websocket_connect("/api/payments/qr/sessions/missing/events") as ws:
            with pytest.raises(WebSocketDisconnect) as excinfo:
                ws.receive_json()
        assert excinfo.value.code == 4404


class TestAdmin:

    def test_audit_trail_and_chain(self, client, employee):
        client.post("/api/auth/login", json={"pin": CASHIER_PIN})
        client.post("/api/auth/logout", json={"employee_id": employee.id})

        logs = client.get("/api/audit-logs").json()
        assert [entry["action"] for entry in logs] == ["login", "logout"]

        status = client.get("/api/audit-logs/verify").json()
        assert status == {"valid": True, "total_entries": 2, "broken_at": None, "message": None}

    def test_tampering_breaks_chain(self, client, employee, db_session):
        client.post("/api/auth/login", json={"pin": CASHIER_PIN})
        client.post("/api/auth/logout", json={"employee_id": employee.id})

        first = db_session.query(AuditLog).order_by(AuditLog.id).first()
        first.details = {"success": True, "employee_name": "Someone Else"}
        db_session.commit()

        status = client.get("/api/audit-logs/verify").json()
        assert status["valid"] is False
        assert status["broken_at"] == first.id

    def test_resolve_alert(self, client, employee, db_session):
        alert = Alert(employee_id=employee.id, type="failed_payments",
                      title="Captured payment not recorded", description="TH1 for 250.00 THB")
        db_session.add(alert)
        db_session.commit()

        active = client.get("/api/alerts", params={"status": "active"}).json()
        assert [a["id"] for a in active] == [alert.id]

        response = client.patch(f"/api/alerts/{alert.id}",
                                json={"status": "resolved", "resolved_by": employee.id})
        assert response.status_code == 200
        assert response.json()["status"] == "resolved"
        assert response.json()["resolved_at"] is not None

        assert client.get("/api/alerts", params={"status": "active"}).json() == []
        assert client.patch("/api/alerts/missing", json={"status": "dismissed"}).status_code == 404

from datetime import date, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from conftest import booking_payload
from hotel_booking.main import app
from hotel_booking.services import payments as payment_service
from hotel_booking.services.payment_gateway import GatewayResponse, MockPaymentGateway, get_payment_gateway

URL = "/api/v1/payments"
GOOD_CARD = "4242 4242 4242 4242"
DECLINED_CARD = "4000000000000002"


@pytest.fixture
def booking(customer_client, room, stay):
    resp = customer_client.post("/api/v1/bookings", json=booking_payload(room, *stay))
    assert resp.status_code == 201
    return resp.json()


def _pay(client, booking, card=GOOD_CARD, **extra):
    payload = {"bookingId": booking["id"], "amount": booking["totalPrice"], "method": "Credit Card", "cardNumber": card}
    payload.update(extra)
    return client.post(URL, json=payload)


def test_successful_payment_confirms_booking(customer_client, booking):
    resp = _pay(customer_client, booking)

    assert resp.status_code == 201, resp.text
    payment = resp.json()
    assert payment["status"] == "completed"
    assert payment["method"] == "credit_card"
    assert payment["currency"] == "USD"
    assert payment["amount"] == 300.0
    assert payment["transactionId"].startswith("txn_")

    updated = customer_client.get(f"/api/v1/bookings/{booking['id']}").json()
    assert updated["status"] == "confirmed"
    assert updated["payment"]["status"] == "completed"


def test_declined_card_leaves_booking_pending(customer_client, booking):
    resp = _pay(customer_client, booking, card=DECLINED_CARD)

    assert resp.status_code == 400
    body = resp.json()
    assert body["error"]["code"] == "PAYMENT_ERROR"
    assert body["error"]["details"]["status"] == "failed"

    payments = customer_client.get(f"{URL}/booking/{booking['id']}").json()
    assert [p["status"] for p in payments] == ["failed"]
    assert customer_client.get(f"/api/v1/bookings/{booking['id']}").json()["status"] == "pending"


def test_retry_after_decline_reuses_payment(customer_client, booking):
    failed_id = _pay(customer_client, booking, card=DECLINED_CARD).json()["error"]["details"]["paymentId"]

    resp = _pay(customer_client, booking)

    assert resp.status_code == 201
    assert resp.json()["id"] == failed_id
    assert resp.json()["status"] == "completed"


def test_amount_must_match_total(customer_client, booking):
    resp = _pay(customer_client, booking, amount=299.99)
    assert resp.status_code == 400
    assert resp.json()["error"]["details"][0]["field"] == "amount"


def test_other_currencies_rejected(customer_client, booking):
    resp = _pay(customer_client, booking, currency="EUR")
    assert resp.status_code == 400
    assert resp.json()["error"]["details"][0]["field"] == "currency"


def test_paying_twice_conflicts(customer_client, booking):
    assert _pay(customer_client, booking).status_code == 201
    assert _pay(customer_client, booking).status_code == 409


def test_cannot_pay_cancelled_booking(customer_client, booking):
    customer_client.post(f"/api/v1/bookings/{booking['id']}/cancel")
    assert _pay(customer_client, booking).status_code == 409


def test_cannot_pay_someone_elses_booking(other_client, booking):
    assert _pay(other_client, booking).status_code == 403


def test_refund_cancels_booking(admin_client, customer_client, booking):
    payment_id = _pay(customer_client, booking).json()["id"]

    resp = admin_client.post(f"{URL}/{payment_id}/refund", json={"reason": "Guest complaint"})

    assert resp.status_code == 200
    assert resp.json()["status"] == "refunded"
    assert resp.json()["refundReason"] == "Guest complaint"
    updated = customer_client.get(f"/api/v1/bookings/{booking['id']}").json()
    assert updated["status"] == "cancelled"
    assert updated["cancellationReason"] == "Refunded: Guest complaint"


def test_refund_requires_completed_payment(admin_client, customer_client, booking):
    failed_id = _pay(customer_client, booking, card=DECLINED_CARD).json()["error"]["details"]["paymentId"]
    assert admin_client.post(f"{URL}/{failed_id}/refund").status_code == 400


def test_refund_is_admin_only(customer_client, booking):
    payment_id = _pay(customer_client, booking).json()["id"]
    assert customer_client.post(f"{URL}/{payment_id}/refund").status_code == 403


def test_early_guest_cancellation_refunds_payment(customer_client, booking):
    payment_id = _pay(customer_client, booking).json()["id"]

    resp = customer_client.post(f"/api/v1/bookings/{booking['id']}/cancel")

    assert resp.json()["status"] == "cancelled"
    assert customer_client.get(f"{URL}/{payment_id}").json()["status"] == "refunded"


def test_late_guest_cancellation_keeps_payment(customer_client, room):
    today = date.today()
    resp = customer_client.post("/api/v1/bookings", json=booking_payload(room, today, today + timedelta(days=2)))
    booking = resp.json()
    payment_id = _pay(customer_client, booking).json()["id"]

    customer_client.post(f"/api/v1/bookings/{booking['id']}/cancel")

    assert customer_client.get(f"{URL}/{payment_id}").json()["status"] == "completed"


def test_admin_cancellation_always_refunds(admin_client, customer_client, room):
    today = date.today()
    booking = customer_client.post(
        "/api/v1/bookings", json=booking_payload(room, today, today + timedelta(days=2))
    ).json()
    payment_id = _pay(customer_client, booking).json()["id"]

    admin_client.post(f"/api/v1/bookings/{booking['id']}/cancel")

    assert admin_client.get(f"{URL}/{payment_id}").json()["status"] == "refunded"


def test_failed_gateway_refund_keeps_booking_active(admin_client, customer_client, booking):
    payment_id = _pay(customer_client, booking).json()["id"]

    class RefusingGateway(MockPaymentGateway):
        def refund(self, transaction_id, amount):
            return GatewayResponse(success=False, transaction_id=None, message="Gateway offline")

    app.dependency_overrides[get_payment_gateway] = RefusingGateway
    try:
        resp = admin_client.post(f"/api/v1/bookings/{booking['id']}/cancel")
    finally:
        app.dependency_overrides.pop(get_payment_gateway)

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "PAYMENT_ERROR"
    assert admin_client.get(f"/api/v1/bookings/{booking['id']}").json()["status"] == "confirmed"
    assert admin_client.get(f"{URL}/{payment_id}").json()["status"] == "completed"


def test_status_callback_completes_payment(admin_client, customer_client, booking):
    failed_id = _pay(customer_client, booking, card=DECLINED_CARD).json()["error"]["details"]["paymentId"]

    assert admin_client.patch(f"{URL}/{failed_id}/status", json={"status": "pending"}).status_code == 200
    resp = admin_client.patch(f"{URL}/{failed_id}/status", json={"status": "completed"})

    assert resp.status_code == 200
    assert customer_client.get(f"/api/v1/bookings/{booking['id']}").json()["status"] == "confirmed"


def test_status_callback_cannot_refund(admin_client, customer_client, booking):
    payment_id = _pay(customer_client, booking).json()["id"]
    resp = admin_client.patch(f"{URL}/{payment_id}/status", json={"status": "refunded"})
    assert resp.status_code == 400


def test_admin_lists_and_updates_payments(admin_client, customer_client, booking):
    payment_id = _pay(customer_client, booking, method="debit_card").json()["id"]

    assert [p["id"] for p in admin_client.get(URL).json()] == [payment_id]
    assert customer_client.get(URL).status_code == 403

    resp = admin_client.put(f"{URL}/{payment_id}", json={"transactionId": "manual-42"})
    assert resp.status_code == 200
    assert resp.json()["transactionId"] == "manual-42"
    assert resp.json()["method"] == "debit_card"

    resp = admin_client.patch(f"{URL}/{payment_id}", json={"amount": 10})
    assert resp.status_code == 400


def test_delete_only_unsettled_payments(admin_client, customer_client, booking):
    failed_id = _pay(customer_client, booking, card=DECLINED_CARD).json()["error"]["details"]["paymentId"]
    assert admin_client.delete(f"{URL}/{failed_id}").status_code == 204
    assert admin_client.get(f"{URL}/{failed_id}").status_code == 404

    payment_id = _pay(customer_client, booking).json()["id"]
    assert admin_client.delete(f"{URL}/{payment_id}").status_code == 409


def test_cash_payments_never_decline(customer_client, booking):
    resp = _pay(customer_client, booking, method="cash", card=DECLINED_CARD)
    assert resp.status_code == 201
    assert resp.json()["status"] == "completed"


def test_callback_completion_assigns_transaction_id(admin_client, customer_client, booking):
    failed_id = _pay(customer_client, booking, card=DECLINED_CARD).json()["error"]["details"]["paymentId"]
    admin_client.patch(f"{URL}/{failed_id}/status", json={"status": "pending"})

    resp = admin_client.patch(f"{URL}/{failed_id}/status", json={"status": "completed"})

    assert resp.status_code == 200
    assert resp.json()["transactionId"].startswith("txn_")


def test_callback_stores_reported_transaction_id(admin_client, customer_client, booking):
    failed_id = _pay(customer_client, booking, card=DECLINED_CARD).json()["error"]["details"]["paymentId"]
    admin_client.patch(f"{URL}/{failed_id}/status", json={"status": "pending"})

    resp = admin_client.patch(f"{URL}/{failed_id}/status", json={"status": "completed", "transactionId": "gw-981"})

    assert resp.status_code == 200
    assert resp.json()["transactionId"] == "gw-981"


def test_callback_rejects_duplicate_transaction_id(admin_client, customer_client, other_client, booking, room, stay):
    paid_id = _pay(customer_client, booking).json()["id"]
    taken = admin_client.get(f"{URL}/{paid_id}").json()["transactionId"]

    _, check_out = stay
    later = other_client.post(
        "/api/v1/bookings", json=booking_payload(room, check_out, check_out + timedelta(days=2))
    ).json()
    failed_id = _pay(other_client, later, card=DECLINED_CARD).json()["error"]["details"]["paymentId"]
    admin_client.patch(f"{URL}/{failed_id}/status", json={"status": "pending"})

    resp = admin_client.patch(f"{URL}/{failed_id}/status", json={"status": "completed", "transactionId": taken})

    assert resp.status_code == 409
    assert admin_client.get(f"{URL}/{failed_id}").json()["status"] == "pending"


def test_admin_cancel_refunds_callback_completed_payment(admin_client, customer_client, booking):
    failed_id = _pay(customer_client, booking, card=DECLINED_CARD).json()["error"]["details"]["paymentId"]
    admin_client.patch(f"{URL}/{failed_id}/status", json={"status": "pending"})
    admin_client.patch(f"{URL}/{failed_id}/status", json={"status": "completed"})

    resp = admin_client.post(f"/api/v1/bookings/{booking['id']}/cancel")

    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "cancelled"
    assert admin_client.get(f"{URL}/{failed_id}").json()["status"] == "refunded"


def test_refund_endpoint_after_callback_completion(admin_client, customer_client, booking):
    failed_id = _pay(customer_client, booking, card=DECLINED_CARD).json()["error"]["details"]["paymentId"]
    admin_client.patch(f"{URL}/{failed_id}/status", json={"status": "pending"})
    admin_client.patch(f"{URL}/{failed_id}/status", json={"status": "completed"})

    resp = admin_client.post(f"{URL}/{failed_id}/refund", json={"reason": "Overbooked"})

    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "refunded"


def test_delete_payment_rolls_back_when_commit_fails(customer_client, booking, db_session, monkeypatch):
    failed_id = _pay(customer_client, booking, card=DECLINED_CARD).json()["error"]["details"]["paymentId"]
    payment = payment_service.get_payment(db_session, failed_id)

    def broken_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(db_session, "commit", broken_commit)
    with pytest.raises(OperationalError):
        payment_service.delete_payment(db_session, payment)
    monkeypatch.undo()

    assert not db_session.deleted
    assert payment_service.get_payment(db_session, failed_id).id == failed_id

import pytest

from hotel_booking.config import settings
from hotel_booking.services import mail


class FakeResponse:
    def raise_for_status(self):
        return None


@pytest.fixture
def mailgun(monkeypatch):
    monkeypatch.setattr(settings, "MAILGUN_API_KEY", "key-test")
    monkeypatch.setattr(settings, "MAILGUN_DOMAIN", "mg.example.com")
    sent = []

    def fake_post(url, auth=None, data=None, timeout=None):
        sent.append({"url": url, "auth": auth, "data": data})
        return FakeResponse()

    monkeypatch.setattr(mail.requests, "post", fake_post)
    return sent


def test_confirmation_template_renders_booking_details():
    body = mail.render_booking_confirmation("Alice", 7, "101", "2024-06-01", "2024-06-04", "300.00")

    assert "Hello Alice" in body
    assert "#7" in body
    assert "101" in body
    assert "2024-06-01" in body and "2024-06-04" in body
    assert f"300.00 {settings.CURRENCY}" in body
    assert f"{settings.API_PREFIX}/bookings/7" in body


def test_guest_name_is_escaped():
    body = mail.render_booking_confirmation("<b>Eve</b>", 1, "101", "2024-06-01", "2024-06-02", "100.00")
    assert "<b>Eve</b>" not in body
    assert "&lt;b&gt;Eve&lt;/b&gt;" in body


def test_confirmation_is_sent_as_html(mailgun):
    mail.send_booking_confirmation_email("alice@example.com", "Alice", 7, "101", "2024-06-01", "2024-06-04", "300.00")

    assert len(mailgun) == 1
    message = mailgun[0]
    assert message["url"] == "https://api.mailgun.net/v3/mg.example.com/messages"
    assert message["auth"] == ("api", "key-test")
    assert message["data"]["to"] == ["alice@example.com"]
    assert message["data"]["subject"] == "Booking #7 confirmed"
    assert "text" not in message["data"]
    assert message["data"]["html"].lstrip().startswith("<!DOCTYPE html>")


def test_mailgun_errors_are_logged_not_raised(monkeypatch, caplog):
    monkeypatch.setattr(settings, "MAILGUN_API_KEY", "key-test")
    monkeypatch.setattr(settings, "MAILGUN_DOMAIN", "mg.example.com")

    def failing_post(*args, **kwargs):
        raise mail.requests.exceptions.ConnectionError("unreachable")

    monkeypatch.setattr(mail.requests, "post", failing_post)

    mail.send_booking_confirmation_email("alice@example.com", "Alice", 7, "101", "2024-06-01", "2024-06-04", "300.00")

    assert "Failed to send booking confirmation" in caplog.text


def test_unconfigured_mailgun_skips_sending(monkeypatch):
    monkeypatch.setattr(settings, "MAILGUN_API_KEY", "")
    calls = []
    monkeypatch.setattr(mail.requests, "post", lambda *a, **kw: calls.append(a))

    mail.send_booking_confirmation_email("alice@example.com", "Alice", 7, "101", "2024-06-01", "2024-06-04", "300.00")

    assert calls == []

import datetime
import logging

import requests

from ..config import settings
from ..templating import templates

logger = logging.getLogger(__name__)


def render_booking_confirmation(guest_name: str, booking_id: int, room_number: str, check_in: str, check_out: str, total) -> str:
    return templates.get_template("emails/booking_confirmation.html").render({
        "app_name": settings.APP_NAME,
        "guest_name": guest_name,
        "booking_id": booking_id,
        "room_number": room_number,
        "check_in": check_in,
        "check_out": check_out,
        "total": total,
        "manage_url": f"{settings.BASE_URL}{settings.API_PREFIX}/bookings/{booking_id}",
        "current_year": datetime.datetime.now().year,
    })


def send_booking_confirmation_email(email: str, guest_name: str, booking_id: int, room_number: str, check_in: str, check_out: str, total):
    """Sends a booking confirmation to the guest using the Mailgun API."""
    if not settings.MAILGUN_API_KEY or not settings.MAILGUN_DOMAIN:
        logger.warning("Mailgun API key or domain not configured. Skipping email.")
        return

    template_body = render_booking_confirmation(guest_name, booking_id, room_number, check_in, check_out, total)

    mailgun_url = f"https://api.mailgun.net/v3/{settings.MAILGUN_DOMAIN}/messages"
    auth = ("api", settings.MAILGUN_API_KEY)
    data = {
        "from": f"{settings.APP_NAME} <{settings.MAIL_FROM}>",
        "to": [email],
        "subject": f"Booking #{booking_id} confirmed",
        "html": template_body,
    }

    try:
        response = requests.post(mailgun_url, auth=auth, data=data, timeout=10)
        response.raise_for_status()
        logger.info(f"Booking confirmation for #{booking_id} sent to {email} via Mailgun.")
    except requests.exceptions.RequestException as e:
        logger.error(f"Failed to send booking confirmation to {email} via Mailgun: {e}")

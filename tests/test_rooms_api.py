from datetime import timedelta
from decimal import Decimal

from conftest import booking_payload
from hotel_booking.models import Room, RoomType

URL = "/api/v1/rooms"

NEW_ROOM = {
    "roomNumber": "305",
    "roomType": "suite",
    "pricePerNight": 250,
    "capacity": 4,
    "description": "Corner suite",
    "amenities": ["WiFi", " Balcony ", ""],
    "photos": ["https://img.example.com/305.jpg"],
}


def test_rooms_are_public(anon_client, room):
    resp = anon_client.get(URL)
    assert resp.status_code == 200
    rooms = resp.json()
    assert rooms[0]["roomNumber"] == "101"
    assert rooms[0]["pricePerNight"] == 100.0
    assert rooms[0]["availabilityStatus"] == "available"

    assert anon_client.get(f"{URL}/{room}").json()["roomType"] == "double"


def test_missing_room_is_404(anon_client):
    resp = anon_client.get(f"{URL}/404")
    assert resp.status_code == 404
    assert resp.json() == {"message": "Room with ID 404 not found", "error": {"code": "RESOURCE_NOT_FOUND"}}


def test_admin_creates_room(admin_client):
    resp = admin_client.post(URL, json=NEW_ROOM)

    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["roomNumber"] == "305"
    assert body["amenities"] == ["WiFi", "Balcony"]
    assert body["availabilityStatus"] == "available"


def test_customer_cannot_create_room(customer_client):
    assert customer_client.post(URL, json=NEW_ROOM).status_code == 403


def test_duplicate_room_number_conflicts(admin_client, room):
    resp = admin_client.post(URL, json={**NEW_ROOM, "roomNumber": "101"})
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "CONFLICT"


def test_invalid_room_payload(admin_client):
    resp = admin_client.post(URL, json={**NEW_ROOM, "pricePerNight": 0, "roomType": "castle"})
    assert resp.status_code == 400
    fields = {d["field"] for d in resp.json()["error"]["details"]}
    assert fields == {"pricePerNight", "roomType"}


def test_list_filters(anon_client, add, room):
    add(Room(room_number="401", room_type=RoomType.SUITE, price_per_night=Decimal("400"), capacity=4))

    def numbers(**params):
        return [r["roomNumber"] for r in anon_client.get(URL, params=params).json()]

    assert numbers(roomType="suite") == ["401"]
    assert numbers(maxPrice=150) == ["101"]
    assert numbers(minPrice=150) == ["401"]
    assert numbers(capacity=3) == ["401"]


def test_search_hides_booked_rooms(anon_client, customer_client, room, stay):
    check_in, check_out = stay
    customer_client.post("/api/v1/bookings", json=booking_payload(room, check_in, check_out))

    params = {"checkInDate": check_in.isoformat(), "checkOutDate": check_out.isoformat()}
    assert anon_client.get(f"{URL}/search", params=params).json() == []

    params = {"checkInDate": check_out.isoformat(), "checkOutDate": (check_out + timedelta(days=1)).isoformat()}
    assert [r["id"] for r in anon_client.get(f"{URL}/search", params=params).json()] == [room]


def test_search_by_amenities_and_guests(anon_client, room, stay):
    check_in, check_out = stay
    base = {"checkInDate": check_in.isoformat(), "checkOutDate": check_out.isoformat()}

    assert len(anon_client.get(f"{URL}/search", params={**base, "amenities": "wifi, tv"}).json()) == 1
    assert anon_client.get(f"{URL}/search", params={**base, "amenities": "pool"}).json() == []
    assert anon_client.get(f"{URL}/search", params={**base, "guests": 3}).json() == []


def test_search_rejects_inverted_dates(anon_client, stay):
    check_in, check_out = stay
    resp = anon_client.get(
        f"{URL}/search", params={"checkInDate": check_out.isoformat(), "checkOutDate": check_in.isoformat()}
    )
    assert resp.status_code == 400


def test_availability_reports_conflicts(anon_client, customer_client, room, stay):
    check_in, check_out = stay
    customer_client.post("/api/v1/bookings", json=booking_payload(room, check_in, check_out))

    resp = anon_client.get(
        f"{URL}/{room}/availability",
        params={"checkInDate": (check_in + timedelta(days=1)).isoformat(), "checkOutDate": (check_out + timedelta(days=1)).isoformat()},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["available"] is False
    assert body["conflicts"] == [{"checkInDate": check_in.isoformat(), "checkOutDate": check_out.isoformat()}]


def test_maintenance_toggle(admin_client, room, stay):
    resp = admin_client.patch(f"{URL}/{room}", json={"availabilityStatus": "maintenance"})
    assert resp.status_code == 200
    assert resp.json()["availabilityStatus"] == "maintenance"

    check_in, check_out = stay
    params = {"checkInDate": check_in.isoformat(), "checkOutDate": check_out.isoformat()}
    assert admin_client.get(f"{URL}/{room}/availability", params=params).json()["available"] is False

    resp = admin_client.put(f"{URL}/{room}", json={"availabilityStatus": "available", "pricePerNight": 120})
    assert resp.json()["availabilityStatus"] == "available"
    assert resp.json()["pricePerNight"] == 120.0


def test_occupied_cannot_be_set_by_hand(admin_client, room):
    resp = admin_client.patch(f"{URL}/{room}", json={"availabilityStatus": "occupied"})
    assert resp.status_code == 400


def test_delete_room(admin_client, room):
    assert admin_client.delete(f"{URL}/{room}").status_code == 204
    assert admin_client.get(f"{URL}/{room}").status_code == 404


def test_room_with_bookings_cannot_be_deleted(admin_client, customer_client, room, stay):
    customer_client.post("/api/v1/bookings", json=booking_payload(room, *stay))
    assert admin_client.delete(f"{URL}/{room}").status_code == 409

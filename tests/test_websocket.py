import pytest
from starlette.websockets import WebSocketDisconnect

from swyft import auth


def join(ws, event, payload):
    ws.send_json({"event": event, "payload": payload})
    return ws.receive_json()


def test_connect_and_ping(client):
    with client.websocket_connect("/ws") as ws:
        assert ws.receive_json() == {"event": "connected", "payload": {"email": None}}
        ws.send_json({"event": "ping"})
        assert ws.receive_json() == {"event": "pong"}


def test_bad_frames_keep_connection_open(client):
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_text("not json")
        assert ws.receive_json()["event"] == "error"
        ws.send_json({"event": "teleport"})
        assert ws.receive_json() == {"event": "error", "payload": {"message": "Unknown event: teleport"}}
        ws.send_json({"event": "joinRoom"})
        assert ws.receive_json()["payload"]["message"] == "Missing room email"
        ws.send_json({"event": "ping"})
        assert ws.receive_json() == {"event": "pong"}


def test_room_join_and_leave_are_acknowledged(client):
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        assert join(ws, "joinRoom", "john@passenger.com") == {"event": "joinedRoom", "payload": "john@passenger.com"}
        assert join(ws, "joinRoom", {"email": "mary@passenger.com"})["payload"] == "mary@passenger.com"
        assert join(ws, "joinRideRoom", 7) == {"event": "joinedRoom", "payload": "ride:7"}
        assert join(ws, "leaveRideRoom", {"rideId": 7}) == {"event": "leftRoom", "payload": "ride:7"}

        manager = client.app.state.ws_manager
        assert len(manager.members("john@passenger.com")) == 1
        assert join(ws, "leaveRoom", "john@passenger.com")["event"] == "leftRoom"
        assert manager.members("john@passenger.com") == []

    assert client.app.state.ws_manager.connections == set()
    assert client.app.state.ws_manager.rooms == {}


def test_new_ride_is_broadcast(client, ride_data):
    with client.websocket_connect("/ws") as driver_ws:
        driver_ws.receive_json()

        res = client.post("/api/rides", json=ride_data)

        message = driver_ws.receive_json()
        assert message["event"] == "newRide"
        assert message["payload"]["id"] == res.json()["rideId"]
        assert message["payload"]["status"] == "pending"


def test_lifecycle_pushes_to_passenger_room(client, ride_data, make_driver):
    make_driver()
    ride_id = client.post("/api/rides", json=ride_data).json()["rideId"]

    with client.websocket_connect("/ws") as passenger_ws:
        passenger_ws.receive_json()
        join(passenger_ws, "joinRoom", "john@passenger.com")

        client.post(f"/api/rides/{ride_id}/accept", json={"email": "sarah@driver.com"})
        message = passenger_ws.receive_json()
        assert message["event"] == "rideUpdated"
        assert message["payload"]["status"] == "accepted"
        assert message["payload"]["driver_email"] == "sarah@driver.com"

        client.post(f"/api/rides/{ride_id}/driver-location", json={"lat": -17.8, "lng": 31.05})
        message = passenger_ws.receive_json()
        assert message == {
            "event": "driverLocationUpdated",
            "payload": {"rideId": ride_id, "lat": -17.8, "lng": 31.05},
        }

        client.post(f"/api/rides/{ride_id}/start")
        assert passenger_ws.receive_json()["payload"]["status"] == "in_progress"

        client.post(f"/api/rides/{ride_id}/complete")
        message = passenger_ws.receive_json()
        assert message["payload"]["status"] == "completed"

        # Failed transitions publish nothing; the next frame is the pong
        client.post(f"/api/rides/{ride_id}/complete")
        passenger_ws.send_json({"event": "ping"})
        assert passenger_ws.receive_json() == {"event": "pong"}


def test_mixed_case_booking_reaches_passenger_room(client, ride_data, make_driver):
    make_driver()
    ride_id = client.post("/api/rides", json={**ride_data, "passenger_email": "John@Passenger.com"}).json()["rideId"]

    with client.websocket_connect("/ws") as passenger_ws:
        passenger_ws.receive_json()
        assert join(passenger_ws, "joinRoom", "JOHN@passenger.com")["payload"] == "john@passenger.com"

        client.post(f"/api/rides/{ride_id}/accept", json={"email": "sarah@driver.com"})
        message = passenger_ws.receive_json()
        assert message["event"] == "rideUpdated"
        assert message["payload"]["passenger_email"] == "john@passenger.com"


def test_auth_required_rejects_anonymous(client, monkeypatch):
    monkeypatch.setenv("WS_REQUIRE_AUTH", "true")
    auth.get_settings.cache_clear()

    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
    assert exc.value.code == 4001


def test_invalid_token_rejected(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws?token=garbage") as ws:
            ws.receive_json()


def test_auth_required_binds_room_to_token(client, monkeypatch):
    monkeypatch.setenv("WS_REQUIRE_AUTH", "true")
    auth.get_settings.cache_clear()
    token = auth.create_access_token({"sub": "john@passenger.com"})

    with client.websocket_connect(f"/ws?token={token}") as ws:
        assert ws.receive_json()["payload"] == {"email": "john@passenger.com"}
        assert join(ws, "joinRoom", "mary@passenger.com") == {
            "event": "error",
            "payload": {"message": "Cannot join another user's room"},
        }
        assert join(ws, "joinRoom", "John@Passenger.com")["event"] == "joinedRoom"

"""Integration tests for the WebSocket protocol.

Flip delays are zero in these tests, so every sequence completes as soon as
the server loop gets a turn.
"""

import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from coinflip.server.app import create_app
from coinflip.server.websocket import DECODE_ERROR_CLOSE_CODE, MAX_DECODE_ERRORS
from coinflip.tests.helpers.websocket import create_room_ws, recv_until, recv_ws, send_ws
from coinflip.tests.integration.conftest import make_settings


class TestWebSocketGameFlow:
    def test_ping(self, client):
        with client.websocket_connect("/ws") as ws:
            send_ws(ws, {"type": "ping"})
            assert recv_ws(ws) == {"type": "pong"}

    def test_create_join_and_auto_flip(self, client):
        with client.websocket_connect("/ws") as creator, client.websocket_connect("/ws") as joiner:
            created = create_room_ws(creator, side="heads", player_name="Alice")
            code = created["room"]["code"]

            send_ws(joiner, {"type": "join_room", "code": code, "player_name": "Bob"})
            joiner_messages = recv_until(joiner, "game_completed")
            creator_messages = recv_until(creator, "game_completed")

            assert [m["type"] for m in joiner_messages] == [
                "room_ready",
                "room_joined",
                "coin_flip_started",
                "coin_flip_result",
                "game_completed",
            ]
            assert [m["type"] for m in creator_messages] == [
                "room_ready",
                "coin_flip_started",
                "coin_flip_result",
                "game_completed",
            ]

            joined = joiner_messages[1]
            assert joined["player_side"] == "tails"

            result = creator_messages[2]
            outcomes = {creator_messages[-1]["result"], joiner_messages[-1]["result"]}
            assert outcomes == {"win", "lose"}
            winner_name = "Alice" if result["flip_result"] == "heads" else "Bob"
            assert result["winner_player"]["name"] == winner_name

    def test_replay_after_completion(self, client):
        with client.websocket_connect("/ws") as creator, client.websocket_connect("/ws") as joiner:
            created = create_room_ws(creator)
            room_id = created["room"]["id"]
            send_ws(joiner, {"type": "join_room", "code": created["room"]["code"]})
            recv_until(joiner, "game_completed")
            recv_until(creator, "game_completed")

            send_ws(creator, {"type": "flip_coin", "room_id": room_id})
            replay_messages = recv_until(creator, "game_completed")

            assert replay_messages[0]["type"] == "room_ready"
            assert replay_messages[0]["is_replay"] is True
            started = next(m for m in replay_messages if m["type"] == "coin_flip_started")
            assert started["is_replay"] is True
            result = next(m for m in replay_messages if m["type"] == "coin_flip_result")
            assert result["game"]["nonce"] == 2

    def test_flip_on_waiting_room_errors(self, client):
        with client.websocket_connect("/ws") as ws:
            created = create_room_ws(ws)
            send_ws(ws, {"type": "flip_coin", "room_id": created["room"]["id"]})
            error = recv_ws(ws)
            assert error["type"] == "error"
            assert error["error_type"] == "room_not_ready"

    def test_join_unknown_room(self, client):
        with client.websocket_connect("/ws") as ws:
            send_ws(ws, {"type": "join_room", "code": "ZZZZZZ"})
            error = recv_ws(ws)
            assert error["error_type"] == "room_not_found"

    def test_creator_disconnect_deletes_room(self, client):
        with client.websocket_connect("/ws") as creator:
            created = create_room_ws(creator)
        code = created["room"]["code"]

        with client.websocket_connect("/ws") as ws:
            # A round trip on a new connection guarantees the old one was cleaned up.
            send_ws(ws, {"type": "ping"})
            recv_ws(ws)

        assert client.get(f"/api/game/rooms/{code}").status_code == 404

    def test_room_status(self, client):
        with client.websocket_connect("/ws") as ws:
            created = create_room_ws(ws)
            send_ws(ws, {"type": "get_room_status", "code": created["room"]["code"]})
            status = recv_ws(ws)
            assert status["type"] == "room_status"
            assert status["room"]["status"] == "waiting"


class TestWebSocketValidation:
    def test_invalid_message_keeps_connection_open(self, client):
        with client.websocket_connect("/ws") as ws:
            send_ws(ws, {"type": "create_room", "side": "edge"})
            assert recv_ws(ws)["error_type"] == "validation_error"

            send_ws(ws, {"type": "ping"})
            assert recv_ws(ws) == {"type": "pong"}

    def test_text_frame_is_rejected(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_text("hello")
            error = recv_ws(ws)
            assert error["error_type"] == "validation_error"

    def test_repeated_decode_errors_close_connection(self, client):
        with client.websocket_connect("/ws") as ws:
            for _ in range(MAX_DECODE_ERRORS):
                ws.send_bytes(b"\xc1")
                assert recv_ws(ws)["error_type"] == "validation_error"

            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_bytes()
            assert exc_info.value.code == DECODE_ERROR_CLOSE_CODE

    def test_valid_frame_resets_decode_error_count(self, client):
        with client.websocket_connect("/ws") as ws:
            for _ in range(MAX_DECODE_ERRORS - 1):
                ws.send_bytes(b"\xc1")
                recv_ws(ws)
            send_ws(ws, {"type": "ping"})
            assert recv_ws(ws) == {"type": "pong"}

            ws.send_bytes(b"\xc1")
            assert recv_ws(ws)["error_type"] == "validation_error"
            send_ws(ws, {"type": "ping"})
            assert recv_ws(ws) == {"type": "pong"}


class TestWebSocketRateLimit:
    def test_burst_then_throttle(self):
        app = create_app(settings=make_settings(ws_rate_limit_rate=0.001, ws_rate_limit_burst=2))
        with TestClient(app) as client, client.websocket_connect("/ws") as ws:
            for _ in range(2):
                send_ws(ws, {"type": "ping"})
                assert recv_ws(ws) == {"type": "pong"}

            send_ws(ws, {"type": "ping"})
            error = recv_ws(ws)
            assert error["type"] == "error"
            assert error["error_type"] == "rate_limited"

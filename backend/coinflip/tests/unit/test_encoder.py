"""
Tests for MessagePack encoder module.
"""

from datetime import UTC, datetime

import msgpack
import pytest

from coinflip.logic.enums import CoinSide, ErrorType
from coinflip.messaging.encoder import MAX_ARRAY_LEN, MAX_BUFFER_LEN, DecodeError, decode, encode
from coinflip.messaging.types import ErrorMessage, RoomView
from shared.dal.models import Room


class TestEncode:
    def test_model_is_dumped_in_json_mode(self) -> None:
        message = ErrorMessage(message="nope", error_type=ErrorType.ROOM_FULL)

        assert decode(encode(message)) == {"type": "error", "message": "nope", "error_type": "room_full"}

    def test_datetimes_become_iso_strings(self) -> None:
        created = datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)
        room = Room(
            id="room-1",
            code="ABC123",
            creator_side=CoinSide.HEADS,
            stake_amount=10.0,
            total_pot=20.0,
            server_seed="s" * 64,
            created_at=created,
            updated_at=created,
        )

        result = decode(encode(RoomView.from_room(room)))

        assert result["created_at"] == "2026-01-02T03:04:05Z"
        assert result["creator_side"] == "heads"

    def test_plain_dict_passes_through(self) -> None:
        data = {"type": "ping"}
        assert decode(encode(data)) == data


class TestDecode:
    def test_rejects_garbage(self) -> None:
        with pytest.raises(DecodeError):
            decode(b"\xc1")

    def test_rejects_non_map(self) -> None:
        with pytest.raises(DecodeError, match="expected map"):
            decode(msgpack.packb([1, 2, 3]))

    def test_rejects_oversized_payload(self) -> None:
        with pytest.raises(DecodeError, match="payload too large"):
            decode(b"\x00" * (MAX_BUFFER_LEN + 1))

    def test_rejects_oversized_array(self) -> None:
        with pytest.raises(DecodeError):
            decode(msgpack.packb({"items": list(range(MAX_ARRAY_LEN + 1))}))

    def test_rejects_integer_map_keys(self) -> None:
        with pytest.raises(DecodeError):
            decode(msgpack.packb({1: "x"}))

    def test_rejects_truncated_data(self) -> None:
        with pytest.raises(DecodeError):
            decode(encode({"type": "create_room", "side": "heads"})[:-3])

"""
MessagePack codec for WebSocket frames.

Outgoing messages are pydantic models dumped in JSON mode (datetimes become
ISO strings, enums become their values) and packed; incoming frames must
unpack to a map.
"""

from typing import Any

import msgpack
from pydantic import BaseModel


class DecodeError(Exception):
    """Error raised when a frame cannot be decoded into a message map."""


# Client frames are tiny (a type tag and at most three short strings).
MAX_BUFFER_LEN = 16 * 1024
MAX_STR_LEN = 4 * 1024
MAX_BIN_LEN = 1024
MAX_ARRAY_LEN = 64
MAX_MAP_LEN = 32
MAX_EXT_LEN = 1024


def encode(data: BaseModel | dict[str, Any]) -> bytes:
    """Pack a message model or plain dict to MessagePack bytes."""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    return msgpack.packb(data, use_bin_type=True)


def decode(data: bytes) -> dict[str, Any]:
    """
    Unpack MessagePack bytes to a dict.

    Raises DecodeError if data is invalid, not a map, or exceeds size limits.
    """
    if len(data) > MAX_BUFFER_LEN:
        raise DecodeError(f"payload too large: {len(data)} bytes (max {MAX_BUFFER_LEN})")
    try:
        result = msgpack.unpackb(
            data,
            raw=False,
            strict_map_key=True,
            max_str_len=MAX_STR_LEN,
            max_bin_len=MAX_BIN_LEN,
            max_array_len=MAX_ARRAY_LEN,
            max_map_len=MAX_MAP_LEN,
            max_ext_len=MAX_EXT_LEN,
        )
    except (msgpack.UnpackException, ValueError) as e:
        raise DecodeError(f"failed to decode MessagePack data: {e}") from e

    if not isinstance(result, dict):
        raise DecodeError(f"expected map, got {type(result).__name__}")

    return result

"""
Provably fair coin flip generation and verification.

Protocol:
1. The server seed (32 random bytes) is generated when the room is created.
   Only its SHA-256 hash is published while the room is open.
2. The client seed (16 random bytes) is generated when the second player joins,
   after the server seed is fixed, so neither side can pick a favorable pair.
3. Each flip hashes "server_seed:client_seed:nonce" with SHA-256. The first 8 hex
   characters are read as an unsigned 32-bit integer; even is heads, odd is tails.
4. The nonce starts at 0 and is incremented before every flip, so replays in the
   same room never reuse an input.

The byte-slicing rule in step 3 must stay bit-exact: recorded games are verified
against it, and so are third-party verification tools.
"""

import hashlib
import hmac
import secrets
from urllib.parse import urlencode

from pydantic import BaseModel

from coinflip.logic.enums import CoinSide

SERVER_SEED_BYTES = 32
CLIENT_SEED_BYTES = 16
_HASH_PREFIX_CHARS = 8  # 8 hex chars = 32 bits
_SEPARATOR = ":"

VERIFICATION_INSTRUCTIONS = (
    "1. Copy the server seed, client seed, and nonce",
    "2. Visit any provably fair verification tool",
    "3. Input the values to verify the result",
    "4. The result should match the game outcome",
)


class FlipOutcome(BaseModel, frozen=True):
    side: CoinSide
    hash: str


class VerificationPayload(BaseModel, frozen=True):
    """Everything a player needs to re-check a flip on their own."""

    server_seed: str
    client_seed: str
    nonce: int
    verification_url: str
    instructions: list[str]


def generate_server_seed() -> str:
    """Return a fresh 64-character hex server seed from the OS CSPRNG."""
    return secrets.token_hex(SERVER_SEED_BYTES)


def generate_client_seed() -> str:
    """Return a fresh 32-character hex client seed from the OS CSPRNG."""
    return secrets.token_hex(CLIENT_SEED_BYTES)


def hash_server_seed(server_seed: str) -> str:
    """SHA-256 commitment of the server seed, safe to publish before the flip."""
    return hashlib.sha256(server_seed.encode()).hexdigest()


def _validate_inputs(server_seed: object, client_seed: object, nonce: object) -> None:
    if not isinstance(server_seed, str) or not isinstance(client_seed, str):
        raise TypeError("Seeds must be strings")
    # bool is an int subclass; True/False are never valid nonces
    if isinstance(nonce, bool) or not isinstance(nonce, int):
        raise TypeError(f"Nonce must be an integer, got {type(nonce).__name__}")
    if nonce < 0:
        raise ValueError(f"Nonce must be non-negative, got {nonce}")


def compute_result(server_seed: str, client_seed: str, nonce: int) -> FlipOutcome:
    """Deterministically derive the flip side and its hash from the seed pair and nonce.

    Raises TypeError for non-string seeds or a non-integer nonce, ValueError for a
    negative nonce.
    """
    _validate_inputs(server_seed, client_seed, nonce)
    combined = _SEPARATOR.join((server_seed, client_seed, str(nonce)))
    digest = hashlib.sha256(combined.encode()).hexdigest()
    value = int(digest[:_HASH_PREFIX_CHARS], 16)
    side = CoinSide.HEADS if value % 2 == 0 else CoinSide.TAILS
    return FlipOutcome(side=side, hash=digest)


def verify(
    server_seed: str,
    client_seed: str,
    nonce: int,
    expected_hash: str,
    expected_side: str,
) -> bool:
    """Recompute a flip and compare both hash and side. Never raises."""
    try:
        outcome = compute_result(server_seed, client_seed, nonce)
    except (TypeError, ValueError):
        return False
    if not isinstance(expected_hash, str) or not isinstance(expected_side, str):
        return False
    hash_matches = hmac.compare_digest(outcome.hash, expected_hash.lower())
    return hash_matches and outcome.side.value == expected_side.lower()


def build_verification_payload(
    server_seed: str,
    client_seed: str,
    nonce: int,
    base_url: str,
) -> VerificationPayload:
    query = urlencode({"server": server_seed, "client": client_seed, "nonce": nonce})
    return VerificationPayload(
        server_seed=server_seed,
        client_seed=client_seed,
        nonce=nonce,
        verification_url=f"{base_url}?{query}",
        instructions=list(VERIFICATION_INSTRUCTIONS),
    )

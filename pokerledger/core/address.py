"""
Deterministic ledger addresses.

Every game record lives at an address derived from a seed tag, the
caller's identifiers and the program id. Derivation follows the ledger's
program-derived-address rule so that the addresses computed here are
the ones the on-ledger program writes to:

    for bump in 255..0:
        candidate = sha256(seeds || [bump] || program_id || "ProgramDerivedAddress")
        if candidate is not a valid ed25519 point: return candidate, bump

Usage:
    table = get_table_address(table_id_from_name("high-rollers"))
    seat = get_seat_address(table, 2)
    hand = get_hand_address(table, 17)
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence, Tuple, Union
import hashlib
import struct

from pokerledger.core.constants import (
    PROGRAM_ID, TABLE_SEED, SEAT_SEED, HAND_SEED, DECK_SEED, VAULT_SEED,
    TABLE_ID_LENGTH, MAX_PLAYERS,
)


ADDRESS_LENGTH = 32
MAX_SEED_LENGTH = 32
MAX_SEEDS = 16
PDA_MARKER = b"ProgramDerivedAddress"

B58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
B58_INDEX = {c: i for i, c in enumerate(B58_ALPHABET)}

# ed25519 field and curve parameters
_P = 2 ** 255 - 19
_D = (-121665 * pow(121666, _P - 2, _P)) % _P


class InvalidSeatIndex(ValueError):
    """Seat index outside the table's seat range."""


def b58encode(data: bytes) -> str:
    """Encode bytes with the Bitcoin base58 alphabet."""
    n = int.from_bytes(data, "big")
    out = []
    while n > 0:
        n, rem = divmod(n, 58)
        out.append(B58_ALPHABET[rem])
    # Leading zero bytes map to leading '1's
    pad = len(data) - len(data.lstrip(b"\0"))
    return "1" * pad + "".join(reversed(out))


def b58decode(text: str) -> bytes:
    """Decode a base58 string."""
    n = 0
    for char in text:
        if char not in B58_INDEX:
            raise ValueError(f"Invalid base58 character: {char!r}")
        n = n * 58 + B58_INDEX[char]
    body = n.to_bytes((n.bit_length() + 7) // 8, "big") if n else b""
    pad = len(text) - len(text.lstrip("1"))
    return b"\0" * pad + body


@dataclass(frozen=True)
class Address:
    """An opaque 32-byte ledger address."""
    raw: bytes

    def __post_init__(self):
        if not isinstance(self.raw, (bytes, bytearray)) or len(self.raw) != ADDRESS_LENGTH:
            raise ValueError(f"Address must be {ADDRESS_LENGTH} bytes")
        object.__setattr__(self, "raw", bytes(self.raw))

    @classmethod
    def from_string(cls, text: str) -> Address:
        """Parse a base58 address."""
        return cls(b58decode(text))

    @classmethod
    def default(cls) -> Address:
        """The all-zero address (an unset identity)."""
        return cls(bytes(ADDRESS_LENGTH))

    def is_default(self) -> bool:
        return self.raw == bytes(ADDRESS_LENGTH)

    def __bytes__(self) -> bytes:
        return self.raw

    def __str__(self) -> str:
        return b58encode(self.raw)

    def __repr__(self) -> str:
        return f"Address({self})"


AddressLike = Union[Address, str, bytes]


def to_address(value: AddressLike) -> Address:
    """Coerce a base58 string, raw bytes or Address into an Address."""
    if isinstance(value, Address):
        return value
    if isinstance(value, str):
        return Address.from_string(value)
    return Address(value)


def is_on_curve(data: bytes) -> bool:
    """
    True if the 32 bytes decompress to a point on the ed25519 curve.

    Matches compressed Edwards-Y decompression: y is read from the low
    255 bits and the point exists iff (y^2 - 1) / (d*y^2 + 1) is a square.
    """
    y = (int.from_bytes(data, "little") & ((1 << 255) - 1)) % _P
    y2 = y * y % _P
    u = (y2 - 1) % _P
    v = (_D * y2 + 1) % _P
    if v == 0:
        return u == 0
    w = u * pow(v, _P - 2, _P) % _P
    return w == 0 or pow(w, (_P - 1) // 2, _P) == 1


def _hash_seeds(seeds: Sequence[bytes], program: Address) -> bytes:
    if len(seeds) > MAX_SEEDS:
        raise ValueError(f"At most {MAX_SEEDS} seeds allowed, got {len(seeds)}")
    hasher = hashlib.sha256()
    for seed in seeds:
        if len(seed) > MAX_SEED_LENGTH:
            raise ValueError(f"Seed longer than {MAX_SEED_LENGTH} bytes: {len(seed)}")
        hasher.update(seed)
    hasher.update(program.raw)
    hasher.update(PDA_MARKER)
    return hasher.digest()


def create_program_address(seeds: Sequence[bytes], program_id: AddressLike = PROGRAM_ID) -> Address:
    """
    Hash seeds into a program address.

    Raises:
        ValueError: If the seeds are too long or the result lies on the curve.
    """
    digest = _hash_seeds(seeds, to_address(program_id))
    if is_on_curve(digest):
        raise ValueError("Derived address is on the ed25519 curve")
    return Address(digest)


def find_program_address(
    seeds: Sequence[bytes],
    program_id: AddressLike = PROGRAM_ID,
) -> Tuple[Address, int]:
    """
    Find the canonical program address for the seeds.

    Returns:
        Tuple of (address, bump) where bump is the highest value that
        yields an off-curve address.
    """
    program = to_address(program_id)
    seeds = [bytes(s) for s in seeds]

    for bump in range(255, -1, -1):
        digest = _hash_seeds(seeds + [bytes([bump])], program)
        if not is_on_curve(digest):
            return Address(digest), bump
    raise ValueError("Unable to find a viable program address bump")


def derive(seed_tag: bytes, *components: bytes, program_id: AddressLike = PROGRAM_ID) -> Address:
    """Derive the address for a seed tag followed by ordered components."""
    address, _ = find_program_address([seed_tag, *components], program_id)
    return address


def _u64_le(value: int) -> bytes:
    if not 0 <= value < 2 ** 64:
        raise ValueError(f"Hand number must fit in u64, got {value}")
    return struct.pack("<Q", value)


def get_table_address(table_id: bytes, program_id: AddressLike = PROGRAM_ID) -> Address:
    """Seeds: "table" + table_id[32]."""
    if len(table_id) != TABLE_ID_LENGTH:
        raise ValueError(f"Table id must be {TABLE_ID_LENGTH} bytes, got {len(table_id)}")
    return derive(TABLE_SEED, bytes(table_id), program_id=program_id)


def get_seat_address(
    table: AddressLike,
    seat_index: int,
    max_seats: int = MAX_PLAYERS,
    program_id: AddressLike = PROGRAM_ID,
) -> Address:
    """
    Seeds: "seat" + table_address[32] + seat_index[u8].

    Raises:
        InvalidSeatIndex: If seat_index is not in [0, max_seats).
    """
    if not 0 <= seat_index < min(max_seats, 256):
        raise InvalidSeatIndex(f"Seat index must be 0-{max_seats - 1}, got {seat_index}")
    return derive(SEAT_SEED, to_address(table).raw, bytes([seat_index]), program_id=program_id)


def get_hand_address(table: AddressLike, hand_number: int, program_id: AddressLike = PROGRAM_ID) -> Address:
    """Seeds: "hand" + table_address[32] + hand_number[u64 LE]."""
    return derive(HAND_SEED, to_address(table).raw, _u64_le(hand_number), program_id=program_id)


def get_deck_address(table: AddressLike, hand_number: int, program_id: AddressLike = PROGRAM_ID) -> Address:
    """Seeds: "deck" + table_address[32] + hand_number[u64 LE]."""
    return derive(DECK_SEED, to_address(table).raw, _u64_le(hand_number), program_id=program_id)


def get_vault_address(table: AddressLike, program_id: AddressLike = PROGRAM_ID) -> Address:
    """Seeds: "vault" + table_address[32]."""
    return derive(VAULT_SEED, to_address(table).raw, program_id=program_id)


def table_id_from_name(name: str) -> bytes:
    """UTF-8 bytes of the name, truncated or zero-padded to 32 bytes."""
    encoded = name.encode("utf-8")[:TABLE_ID_LENGTH]
    return encoded + bytes(TABLE_ID_LENGTH - len(encoded))


def name_from_table_id(table_id: bytes) -> str:
    """Bytes up to the first zero byte, decoded as UTF-8."""
    end = table_id.find(b"\0")
    if end == -1:
        end = len(table_id)
    # Truncation may split a multi-byte character
    return bytes(table_id[:end]).decode("utf-8", errors="replace")

"""
Fixed-layout decoders for ledger records.

The byte layouts are owned by the on-ledger program, not by this
package. Each record kind therefore has its own hand-written decoder
that reads every field at a fixed offset, so the whole contract for a
kind is reviewable in one place.

Record kinds:
1. Table          account, 8-byte discriminator + 118 bytes
2. HandState      account, 8-byte discriminator + 98 bytes
3. PlayerSeat     account, 8-byte discriminator + 127 bytes
4. DeckState      account, 8-byte discriminator + 867 bytes
5. HandCompleted  event payload, 387 bytes (the discriminator travels in the log line)

All integers are little-endian. Offsets in errors are relative to the
record body (the byte after the discriminator for accounts).

Decoding never substitutes defaults: an unknown enum tag, a bool byte
other than 0/1 or a card byte outside 0-51/255 fails loudly.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import Dict, Any, Iterable, List, Optional, Tuple, Type, TypeVar
import base64
import binascii
import hashlib
import struct

from pokerledger.core.address import Address, name_from_table_id
from pokerledger.core.card import Card, HIDDEN_CARD, is_valid_card_byte, decode_card_byte
from pokerledger.core.constants import (
    BITMAP_SEATS, COMMUNITY_CARDS, DECK_SIZE, MAX_RESULTS,
)
from pokerledger.core.hand import HandCategory, HAND_CATEGORY_NAMES


DISCRIMINATOR_LENGTH = 8
PROGRAM_DATA_PREFIX = "Program data: "
NOT_EVALUATED = 255


def account_discriminator(name: str) -> bytes:
    """First 8 bytes of sha256("account:<Name>")."""
    return hashlib.sha256(f"account:{name}".encode()).digest()[:DISCRIMINATOR_LENGTH]


def event_discriminator(name: str) -> bytes:
    """First 8 bytes of sha256("event:<Name>")."""
    return hashlib.sha256(f"event:{name}".encode()).digest()[:DISCRIMINATOR_LENGTH]


TABLE_DISCRIMINATOR = account_discriminator("Table")
HAND_DISCRIMINATOR = account_discriminator("HandState")
SEAT_DISCRIMINATOR = account_discriminator("PlayerSeat")
DECK_DISCRIMINATOR = account_discriminator("DeckState")
HAND_COMPLETED_DISCRIMINATOR = event_discriminator("HandCompleted")

TABLE_SIZE = 118
HAND_SIZE = 98
SEAT_SIZE = 127
DECK_SIZE_BYTES = 867
PLAYER_RESULT_SIZE = 54
HAND_COMPLETED_SIZE = 387


# ============= Errors =============

class DecodeError(ValueError):
    """Base class for all record decoding failures."""


class TruncatedRecord(DecodeError):
    """Buffer shorter than the record's fixed length."""

    def __init__(self, kind: str, expected: int, actual: int):
        self.kind = kind
        self.expected = expected
        self.actual = actual
        super().__init__(f"{kind}: need {expected} bytes, got {actual}")


class UnknownVariant(DecodeError):
    """Tagged field holds a value outside its known tag set."""

    def __init__(self, offset: int, value: int, field_name: str = ""):
        self.offset = offset
        self.value = value
        self.field_name = field_name
        super().__init__(f"Unknown variant {value} for {field_name or 'field'} at offset {offset}")


class DiscriminatorMismatch(DecodeError):
    """Account data belongs to a different record kind."""

    def __init__(self, kind: str, expected: bytes, actual: bytes):
        self.kind = kind
        self.expected = expected
        self.actual = actual
        super().__init__(f"{kind}: discriminator {actual.hex()} does not match {expected.hex()}")


class InvalidField(DecodeError):
    """Field value violates the record's constraints."""

    def __init__(self, offset: int, value: Any, field_name: str, reason: str = ""):
        self.offset = offset
        self.value = value
        self.field_name = field_name
        detail = f": {reason}" if reason else ""
        super().__init__(f"Invalid {field_name}={value!r} at offset {offset}{detail}")


# ============= Enums =============

class TableStatus(IntEnum):
    """Table lifecycle."""
    WAITING = 0
    PLAYING = 1
    CLOSED = 2


class GamePhase(IntEnum):
    """Phases of a hand. Strictly forward-progressing."""
    DEALING = 0
    PREFLOP = 1
    FLOP = 2
    TURN = 3
    RIVER = 4
    SHOWDOWN = 5
    SETTLED = 6


class SeatStatus(IntEnum):
    """Seat status within the current hand."""
    SITTING = 0
    PLAYING = 1
    FOLDED = 2
    ALL_IN = 3


# ============= Field readers =============

def _u8(data: bytes, offset: int) -> int:
    return data[offset]


def _u32(data: bytes, offset: int) -> int:
    return struct.unpack_from("<I", data, offset)[0]


def _u64(data: bytes, offset: int) -> int:
    return struct.unpack_from("<Q", data, offset)[0]


def _i64(data: bytes, offset: int) -> int:
    return struct.unpack_from("<q", data, offset)[0]


def _u128(data: bytes, offset: int) -> int:
    return int.from_bytes(data[offset:offset + 16], "little")


def _address(data: bytes, offset: int) -> Address:
    return Address(bytes(data[offset:offset + 32]))


def _bool(data: bytes, offset: int, field_name: str) -> bool:
    value = data[offset]
    if value not in (0, 1):
        raise UnknownVariant(offset, value, field_name)
    return value == 1


E = TypeVar("E", bound=IntEnum)


def _enum(enum_cls: Type[E], data: bytes, offset: int, field_name: str) -> E:
    value = data[offset]
    try:
        return enum_cls(value)
    except ValueError:
        raise UnknownVariant(offset, value, field_name) from None


def _card_byte(data: bytes, offset: int, field_name: str) -> int:
    value = data[offset]
    if not is_valid_card_byte(value):
        raise InvalidField(offset, value, field_name, "card must be 0-51 or 255")
    return value


def _check_length(kind: str, data: bytes, expected: int) -> None:
    if len(data) < expected:
        raise TruncatedRecord(kind, expected, len(data))


def _account_body(kind: str, data: bytes, discriminator: bytes, size: int) -> bytes:
    """Check length and discriminator, return the body."""
    _check_length(kind, data, DISCRIMINATOR_LENGTH + size)
    actual = bytes(data[:DISCRIMINATOR_LENGTH])
    if actual != discriminator:
        raise DiscriminatorMismatch(kind, discriminator, actual)
    return bytes(data[DISCRIMINATOR_LENGTH:DISCRIMINATOR_LENGTH + size])


def _cards(values: Iterable[int]) -> List[Optional[Card]]:
    return [decode_card_byte(v) for v in values]


def _optional_address(address: Optional[Address]) -> Optional[str]:
    return None if address is None else str(address)


# ============= Table =============

@dataclass(frozen=True)
class TableSnapshot:
    """Decoded Table account."""
    authority: Address
    table_id: bytes
    small_blind: int
    big_blind: int
    min_buy_in: int
    max_buy_in: int
    max_players: int
    current_players: int
    status: TableStatus
    hand_number: int
    occupied_seats: int
    dealer_position: int
    last_ready_time: int
    bump: int

    @property
    def is_hand_in_progress(self) -> bool:
        return self.status == TableStatus.PLAYING and self.hand_number > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "authority": str(self.authority),
            "table_id": self.table_id.hex(),
            "name": name_from_table_id(self.table_id),
            "small_blind": self.small_blind,
            "big_blind": self.big_blind,
            "min_buy_in": self.min_buy_in,
            "max_buy_in": self.max_buy_in,
            "max_players": self.max_players,
            "current_players": self.current_players,
            "status": self.status.name,
            "hand_number": self.hand_number,
            "occupied_seats": self.occupied_seats,
            "dealer_position": self.dealer_position,
            "last_ready_time": self.last_ready_time,
        }


def decode_table(data: bytes) -> TableSnapshot:
    """
    Decode a Table account.

    Layout (body offsets):
        0   authority[32]        64  small_blind u64     72  big_blind u64
        32  table_id[32]         80  min_buy_in u64      88  max_buy_in u64
        96  max_players u8       97  current_players u8  98  status u8
        99  hand_number u64      107 occupied_seats u8   108 dealer_position u8
        109 last_ready_time i64  117 bump u8
    """
    body = _account_body("Table", data, TABLE_DISCRIMINATOR, TABLE_SIZE)

    max_players = _u8(body, 96)
    current_players = _u8(body, 97)
    occupied_seats = _u8(body, 107)
    dealer_position = _u8(body, 108)

    if not 0 < max_players <= BITMAP_SEATS:
        raise InvalidField(96, max_players, "max_players", f"must be 1-{BITMAP_SEATS}")
    if current_players != bin(occupied_seats).count("1"):
        raise InvalidField(97, current_players, "current_players",
                           f"bitmap {occupied_seats:#010b} disagrees")
    if occupied_seats >> max_players:
        raise InvalidField(107, occupied_seats, "occupied_seats", "seat beyond max_players")
    if dealer_position >= max_players:
        raise InvalidField(108, dealer_position, "dealer_position", "must be < max_players")

    return TableSnapshot(
        authority=_address(body, 0),
        table_id=body[32:64],
        small_blind=_u64(body, 64),
        big_blind=_u64(body, 72),
        min_buy_in=_u64(body, 80),
        max_buy_in=_u64(body, 88),
        max_players=max_players,
        current_players=current_players,
        status=_enum(TableStatus, body, 98, "status"),
        hand_number=_u64(body, 99),
        occupied_seats=occupied_seats,
        dealer_position=dealer_position,
        last_ready_time=_i64(body, 109),
        bump=_u8(body, 117),
    )


# ============= HandState =============

@dataclass(frozen=True)
class HandSnapshot:
    """Decoded HandState account."""
    table: Address
    hand_number: int
    phase: GamePhase
    pot: int
    current_bet: int
    min_raise: int
    dealer_position: int
    action_on: int
    community_cards: Tuple[int, ...]
    community_revealed: int
    active_players: int
    acted_this_round: int
    active_count: int
    all_in_players: int
    last_action_time: int
    hand_start_time: int
    bump: int

    @property
    def revealed_cards(self) -> List[Card]:
        """Community cards visible so far, left to right."""
        return [c for c in _cards(self.community_cards) if c is not None]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": str(self.table),
            "hand_number": self.hand_number,
            "phase": self.phase.name,
            "pot": self.pot,
            "current_bet": self.current_bet,
            "min_raise": self.min_raise,
            "dealer_position": self.dealer_position,
            "action_on": self.action_on,
            "community_cards": list(self.community_cards),
            "board": [c.to_dict() for c in self.revealed_cards],
            "community_revealed": self.community_revealed,
            "active_players": self.active_players,
            "acted_this_round": self.acted_this_round,
            "active_count": self.active_count,
            "all_in_players": self.all_in_players,
            "last_action_time": self.last_action_time,
            "hand_start_time": self.hand_start_time,
        }


def decode_hand(data: bytes) -> HandSnapshot:
    """
    Decode a HandState account.

    Layout (body offsets):
        0   table[32]            32  hand_number u64     40  phase u8
        41  pot u64              49  current_bet u64     57  min_raise u64
        65  dealer_position u8   66  action_on u8
        67  community length u32 (always 5)              71  community_cards[5]
        76  community_revealed   77  active_players      78  acted_this_round
        79  active_count         80  all_in_players
        81  last_action_time i64 89  hand_start_time i64 97  bump u8
    """
    body = _account_body("HandState", data, HAND_DISCRIMINATOR, HAND_SIZE)

    vec_len = _u32(body, 67)
    if vec_len != COMMUNITY_CARDS:
        raise InvalidField(67, vec_len, "community_cards.len", f"must be {COMMUNITY_CARDS}")

    cards = tuple(_card_byte(body, 71 + i, f"community_cards[{i}]") for i in range(COMMUNITY_CARDS))
    # Cards reveal left to right
    dealt = [c != HIDDEN_CARD for c in cards]
    if dealt != sorted(dealt, reverse=True):
        raise InvalidField(71, list(cards), "community_cards", "revealed cards must form a prefix")

    revealed = _u8(body, 76)
    if revealed > COMMUNITY_CARDS:
        raise InvalidField(76, revealed, "community_revealed", f"must be <= {COMMUNITY_CARDS}")

    return HandSnapshot(
        table=_address(body, 0),
        hand_number=_u64(body, 32),
        phase=_enum(GamePhase, body, 40, "phase"),
        pot=_u64(body, 41),
        current_bet=_u64(body, 49),
        min_raise=_u64(body, 57),
        dealer_position=_u8(body, 65),
        action_on=_u8(body, 66),
        community_cards=cards,
        community_revealed=revealed,
        active_players=_u8(body, 77),
        acted_this_round=_u8(body, 78),
        active_count=_u8(body, 79),
        all_in_players=_u8(body, 80),
        last_action_time=_i64(body, 81),
        hand_start_time=_i64(body, 89),
        bump=_u8(body, 97),
    )


# ============= PlayerSeat =============

@dataclass(frozen=True)
class SeatSnapshot:
    """
    Decoded PlayerSeat account.

    Hole card slots are u128 handles: 0-51 is a plaintext card, 255 is the
    not-dealt sentinel and anything larger is an encrypted handle.
    """
    table: Address
    player: Optional[Address]
    seat_index: int
    chips: int
    current_bet: int
    total_bet_this_hand: int
    hole_card_1: int
    hole_card_2: int
    revealed_card_1: int
    revealed_card_2: int
    cards_revealed: bool
    status: SeatStatus
    has_acted: bool
    bump: int

    @property
    def are_cards_encrypted(self) -> bool:
        return self.hole_card_1 > HIDDEN_CARD or self.hole_card_2 > HIDDEN_CARD

    @property
    def has_dealt_cards(self) -> bool:
        return self.hole_card_1 != HIDDEN_CARD and self.hole_card_2 != HIDDEN_CARD

    @property
    def hole_cards(self) -> Tuple[Optional[Card], Optional[Card]]:
        """Plaintext hole cards; None for hidden or encrypted slots."""
        return tuple(
            Card.from_int(v) if v <= 51 else None
            for v in (self.hole_card_1, self.hole_card_2)
        )

    @property
    def shown_cards(self) -> Tuple[Optional[Card], Optional[Card]]:
        """Cards revealed for showdown, visible to every observer."""
        if not self.cards_revealed:
            return (None, None)
        return (decode_card_byte(self.revealed_card_1), decode_card_byte(self.revealed_card_2))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": str(self.table),
            "player": _optional_address(self.player),
            "seat_index": self.seat_index,
            "chips": self.chips,
            "current_bet": self.current_bet,
            "total_bet_this_hand": self.total_bet_this_hand,
            "status": self.status.name,
            "has_acted": self.has_acted,
            "is_encrypted": self.are_cards_encrypted,
            "cards_revealed": self.cards_revealed,
            "revealed_cards": [c.to_dict() if c else None for c in self.shown_cards],
        }


def decode_seat(data: bytes) -> SeatSnapshot:
    """
    Decode a PlayerSeat account.

    Layout (body offsets):
        0   table[32]              32  player[32]           64  seat_index u8
        65  chips u64              73  current_bet u64      81  total_bet_this_hand u64
        89  hole_card_1 u128       105 hole_card_2 u128
        121 revealed_card_1 u8     122 revealed_card_2 u8   123 cards_revealed bool
        124 status u8              125 has_acted bool       126 bump u8
    """
    body = _account_body("PlayerSeat", data, SEAT_DISCRIMINATOR, SEAT_SIZE)

    seat_index = _u8(body, 64)
    if seat_index >= BITMAP_SEATS:
        raise InvalidField(64, seat_index, "seat_index", f"must be < {BITMAP_SEATS}")

    current_bet = _u64(body, 73)
    total_bet = _u64(body, 81)
    if total_bet < current_bet:
        raise InvalidField(81, total_bet, "total_bet_this_hand", "less than current_bet")

    player = _address(body, 32)

    return SeatSnapshot(
        table=_address(body, 0),
        player=None if player.is_default() else player,
        seat_index=seat_index,
        chips=_u64(body, 65),
        current_bet=current_bet,
        total_bet_this_hand=total_bet,
        hole_card_1=_u128(body, 89),
        hole_card_2=_u128(body, 105),
        revealed_card_1=_card_byte(body, 121, "revealed_card_1"),
        revealed_card_2=_card_byte(body, 122, "revealed_card_2"),
        cards_revealed=_bool(body, 123, "cards_revealed"),
        status=_enum(SeatStatus, body, 124, "status"),
        has_acted=_bool(body, 125, "has_acted"),
        bump=_u8(body, 126),
    )


# ============= DeckState =============

@dataclass(frozen=True)
class DeckSnapshot:
    """Decoded DeckState account. Cards are encrypted handles."""
    hand: Address
    cards: Tuple[int, ...]
    deal_index: int
    is_shuffled: bool
    bump: int

    @property
    def cards_remaining(self) -> int:
        return max(DECK_SIZE - self.deal_index, 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hand": str(self.hand),
            "deal_index": self.deal_index,
            "cards_remaining": self.cards_remaining,
            "is_shuffled": self.is_shuffled,
        }


def decode_deck(data: bytes) -> DeckSnapshot:
    """
    Decode a DeckState account.

    Layout (body offsets):
        0   hand[32]     32  cards[52] u128 each
        864 deal_index u8    865 is_shuffled bool    866 bump u8
    """
    body = _account_body("DeckState", data, DECK_DISCRIMINATOR, DECK_SIZE_BYTES)

    deal_index = _u8(body, 864)
    if deal_index > DECK_SIZE:
        raise InvalidField(864, deal_index, "deal_index", f"must be <= {DECK_SIZE}")

    return DeckSnapshot(
        hand=_address(body, 0),
        cards=tuple(_u128(body, 32 + 16 * i) for i in range(DECK_SIZE)),
        deal_index=deal_index,
        is_shuffled=_bool(body, 865, "is_shuffled"),
        bump=_u8(body, 866),
    )


# ============= HandCompleted event =============

@dataclass(frozen=True)
class PlayerResult:
    """One player's outcome in a completed hand."""
    player: Address
    seat_index: int
    hole_cards: Optional[Tuple[Card, Card]]
    hand_rank: Optional[HandCategory]
    chips_won: int
    chips_bet: int
    folded: bool
    all_in: bool

    @property
    def hand_rank_label(self) -> Optional[str]:
        return HAND_CATEGORY_NAMES[self.hand_rank] if self.hand_rank is not None else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "player": str(self.player),
            "seat_index": self.seat_index,
            "hole_cards": [c.to_dict() for c in self.hole_cards] if self.hole_cards else None,
            "hand_rank": self.hand_rank_label,
            "chips_won": self.chips_won,
            "chips_bet": self.chips_bet,
            "folded": self.folded,
            "all_in": self.all_in,
        }


@dataclass(frozen=True)
class HandCompletedRecord:
    """Append-only audit record emitted once per finished hand."""
    table_id: bytes
    hand_number: int
    timestamp: int
    community_cards: Tuple[int, ...]
    total_pot: int
    player_count: int
    players: Tuple[PlayerResult, ...]
    signature: Optional[str] = field(default=None, compare=False)

    @property
    def board(self) -> List[Card]:
        return [c for c in _cards(self.community_cards) if c is not None]

    def with_signature(self, signature: Optional[str]) -> HandCompletedRecord:
        return replace(self, signature=signature)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table_id": self.table_id.hex(),
            "hand_number": self.hand_number,
            "timestamp": self.timestamp,
            "community_cards": [c.to_dict() for c in self.board],
            "total_pot": self.total_pot,
            "player_count": self.player_count,
            "players": [p.to_dict() for p in self.players],
            "signature": self.signature,
        }


def _decode_player_result(data: bytes, base: int) -> PlayerResult:
    """
    Layout (offsets from the slot start):
        0  player[32]     32 seat_index    33 hole_card_1   34 hole_card_2
        35 hand_rank      36 chips_won u64 44 chips_bet u64
        52 folded bool    53 all_in bool
    """
    # Unrevealed winners carry the low byte of their encrypted handle,
    # so anything outside 0-51 means the cards were not shown
    card_1 = _u8(data, base + 33)
    card_2 = _u8(data, base + 34)
    hole_cards = None
    if card_1 < DECK_SIZE and card_2 < DECK_SIZE:
        hole_cards = (Card.from_int(card_1), Card.from_int(card_2))

    rank_value = _u8(data, base + 35)
    if rank_value == NOT_EVALUATED:
        hand_rank = None
    else:
        hand_rank = _enum(HandCategory, data, base + 35, "hand_rank")

    return PlayerResult(
        player=_address(data, base),
        seat_index=_u8(data, base + 32),
        hole_cards=hole_cards,
        hand_rank=hand_rank,
        chips_won=_u64(data, base + 36),
        chips_bet=_u64(data, base + 44),
        folded=_bool(data, base + 52, "folded"),
        all_in=_bool(data, base + 53, "all_in"),
    )


def decode_hand_completed(data: bytes) -> HandCompletedRecord:
    """
    Decode a HandCompleted event payload (without discriminator).

    Layout:
        0   table_id[32]      32  hand_number u64   40  timestamp i64
        48  community[5]      53  total_pot u64     61  player_count u8
        62  results[6 x 54]   386 results_count u8
    """
    _check_length("HandCompleted", data, HAND_COMPLETED_SIZE)

    results_count = _u8(data, 386)
    if results_count > MAX_RESULTS:
        raise InvalidField(386, results_count, "results_count", f"must be <= {MAX_RESULTS}")

    # Every slot is decoded, only the populated prefix is kept
    results = [_decode_player_result(data, 62 + i * PLAYER_RESULT_SIZE) for i in range(MAX_RESULTS)]

    return HandCompletedRecord(
        table_id=bytes(data[0:32]),
        hand_number=_u64(data, 32),
        timestamp=_i64(data, 40),
        community_cards=tuple(
            _card_byte(data, 48 + i, f"community_cards[{i}]") for i in range(COMMUNITY_CARDS)
        ),
        total_pot=_u64(data, 53),
        player_count=_u8(data, 61),
        players=tuple(results[:results_count]),
    )


def decode_hand_completed_event(data: bytes) -> HandCompletedRecord:
    """Decode a HandCompleted event that still carries its discriminator."""
    _check_length("HandCompleted", data, DISCRIMINATOR_LENGTH + HAND_COMPLETED_SIZE)
    actual = bytes(data[:DISCRIMINATOR_LENGTH])
    if actual != HAND_COMPLETED_DISCRIMINATOR:
        raise DiscriminatorMismatch("HandCompleted", HAND_COMPLETED_DISCRIMINATOR, actual)
    return decode_hand_completed(data[DISCRIMINATOR_LENGTH:])


def parse_program_data(log_line: str) -> Optional[bytes]:
    """
    Extract the base64 payload of a "Program data: ..." log line.

    Returns None for any other log line.

    Raises:
        DecodeError: If the payload is not valid base64.
    """
    if not log_line.startswith(PROGRAM_DATA_PREFIX):
        return None
    payload = log_line[len(PROGRAM_DATA_PREFIX):].strip()
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Invalid program data payload: {e}") from e


def find_hand_completed(logs: Iterable[str]) -> Optional[HandCompletedRecord]:
    """Decode the first HandCompleted event found in a transaction's logs."""
    for line in logs:
        data = parse_program_data(line)
        if data is None or data[:DISCRIMINATOR_LENGTH] != HAND_COMPLETED_DISCRIMINATOR:
            continue
        return decode_hand_completed_event(data)
    return None


# Decoders by record kind, for callers that pick a kind by name
DECODERS = {
    "table": decode_table,
    "hand": decode_hand,
    "seat": decode_seat,
    "deck": decode_deck,
    "hand_completed": decode_hand_completed,
}

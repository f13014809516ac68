"""
Tests for address derivation, base58 and seat bitmaps.
"""

import pytest
from pokerledger.core.address import (
    Address, InvalidSeatIndex, b58encode, b58decode, to_address, is_on_curve,
    find_program_address, create_program_address, derive,
    get_table_address, get_seat_address, get_hand_address, get_deck_address, get_vault_address,
    table_id_from_name, name_from_table_id,
)
from pokerledger.core.constants import (
    PROGRAM_ID, TABLE_SEED, get_occupied_seats, seats_to_bitmap, is_seat_occupied,
)


@pytest.fixture
def table_address():
    return get_table_address(table_id_from_name("high-rollers"))


class TestBase58:
    """Tests for base58 encoding."""

    def test_known_vector(self):
        """Test the canonical 'hello world' vector."""
        assert b58encode(b"hello world") == "StV1DL6CwTryKyV"
        assert b58decode("StV1DL6CwTryKyV") == b"hello world"

    def test_leading_zeros(self):
        """Leading zero bytes map to leading '1' characters."""
        assert b58encode(bytes(32)) == "1" * 32
        assert b58decode("1" * 32) == bytes(32)
        assert b58encode(b"\x00\x00\x01") == "112"

    def test_program_id_round_trip(self):
        """The program id decodes to 32 bytes and back."""
        raw = b58decode(PROGRAM_ID)
        assert len(raw) == 32
        assert b58encode(raw) == PROGRAM_ID

    def test_invalid_character(self):
        """0, O, I and l are not in the alphabet."""
        with pytest.raises(ValueError):
            b58decode("0OIl")


class TestAddress:
    """Tests for the Address value type."""

    def test_requires_32_bytes(self):
        """Test wrong lengths are rejected."""
        with pytest.raises(ValueError):
            Address(b"short")
        with pytest.raises(ValueError):
            Address(bytes(33))

    def test_string_round_trip(self):
        """Test base58 text form."""
        address = Address(bytes(range(32)))
        assert Address.from_string(str(address)) == address
        assert to_address(str(address)) == address
        assert to_address(bytes(range(32))) == address
        assert to_address(address) is address

    def test_default_address(self):
        """The all-zero address is the unset identity."""
        assert Address.default().is_default()
        assert str(Address.default()) == "1" * 32
        assert not Address(bytes([1] * 32)).is_default()

    def test_hashable(self):
        """Addresses work as dict keys."""
        lookup = {Address(bytes(32)): "zero"}
        assert lookup[Address.default()] == "zero"


class TestCurveCheck:
    """Tests for the ed25519 on-curve check."""

    def test_base_point_is_on_curve(self):
        """The ed25519 base point (y = 4/5) is a curve point."""
        base_point = bytes.fromhex("58" + "66" * 31)
        assert is_on_curve(base_point)

    def test_identity_is_on_curve(self):
        """The neutral element (y = 1) is a curve point."""
        assert is_on_curve(b"\x01" + bytes(31))


class TestProgramAddress:
    """Tests for program-derived addresses."""

    def test_derived_address_is_off_curve(self, table_address):
        """Derived addresses never have a private key."""
        assert not is_on_curve(table_address.raw)

    def test_bump_reproduces_address(self):
        """The returned bump recreates the same address."""
        seeds = [TABLE_SEED, table_id_from_name("high-rollers")]
        address, bump = find_program_address(seeds)
        assert 0 <= bump <= 255
        assert create_program_address(seeds + [bytes([bump])]) == address

    def test_derive_matches_find(self):
        """derive() is find_program_address without the bump."""
        table_id = table_id_from_name("high-rollers")
        address, _ = find_program_address([TABLE_SEED, table_id])
        assert derive(TABLE_SEED, table_id) == address

    def test_program_id_changes_address(self):
        """Same seeds under another program give another address."""
        table_id = table_id_from_name("high-rollers")
        other_program = Address(bytes([9] * 32))
        assert get_table_address(table_id) != get_table_address(table_id, program_id=other_program)

    def test_seed_too_long(self):
        """Seeds longer than 32 bytes are rejected."""
        with pytest.raises(ValueError):
            find_program_address([bytes(33)])

    def test_too_many_seeds(self):
        """At most 16 seeds (including the bump) are allowed."""
        with pytest.raises(ValueError):
            find_program_address([b"x"] * 16)


class TestRecordAddresses:
    """Tests for table, seat, hand, deck and vault addresses."""

    def test_deterministic(self, table_address):
        """The same inputs always give the same address."""
        assert get_table_address(table_id_from_name("high-rollers")) == table_address
        assert get_seat_address(table_address, 2) == get_seat_address(table_address, 2)
        assert get_hand_address(table_address, 7) == get_hand_address(table_address, 7)

    def test_distinct_tables(self, table_address):
        """Different table ids give different addresses."""
        assert get_table_address(table_id_from_name("low-stakes")) != table_address

    def test_distinct_seats(self, table_address):
        """Every seat of a table has its own address."""
        seats = {get_seat_address(table_address, i) for i in range(6)}
        assert len(seats) == 6

    def test_distinct_hands(self, table_address):
        """Each hand number gets a new hand and deck address."""
        assert get_hand_address(table_address, 1) != get_hand_address(table_address, 2)
        assert get_deck_address(table_address, 1) != get_deck_address(table_address, 2)

    def test_seed_tags_separate_kinds(self, table_address):
        """Hand and deck for the same number live at different addresses."""
        assert get_hand_address(table_address, 1) != get_deck_address(table_address, 1)
        assert get_vault_address(table_address) != table_address

    def test_invalid_seat_index(self, table_address):
        """Seat indices outside [0, max_seats) are rejected."""
        with pytest.raises(InvalidSeatIndex):
            get_seat_address(table_address, 6)
        with pytest.raises(InvalidSeatIndex):
            get_seat_address(table_address, -1)
        with pytest.raises(InvalidSeatIndex):
            get_seat_address(table_address, 3, max_seats=3)

    def test_wider_table(self, table_address):
        """A larger max_seats admits higher indices."""
        assert get_seat_address(table_address, 7, max_seats=8) is not None

    def test_hand_number_must_fit_u64(self, table_address):
        """Hand numbers are u64 seeds."""
        get_hand_address(table_address, 2 ** 64 - 1)
        with pytest.raises(ValueError):
            get_hand_address(table_address, 2 ** 64)
        with pytest.raises(ValueError):
            get_hand_address(table_address, -1)

    def test_table_id_length(self):
        """The table id seed must be exactly 32 bytes."""
        with pytest.raises(ValueError):
            get_table_address(b"high-rollers")


class TestTableNames:
    """Tests for table id <-> name conversion."""

    def test_padding(self):
        """Short names are zero-padded to 32 bytes."""
        table_id = table_id_from_name("high-rollers")
        assert len(table_id) == 32
        assert table_id.startswith(b"high-rollers\0")

    def test_round_trip(self):
        """Names survive the trip through a table id."""
        assert name_from_table_id(table_id_from_name("high-rollers")) == "high-rollers"
        assert name_from_table_id(table_id_from_name("")) == ""

    def test_table_id_round_trip(self):
        """Zero-padded ids survive the trip through a name."""
        table_id = b"cash-game-7" + bytes(21)
        assert table_id_from_name(name_from_table_id(table_id)) == table_id

    def test_truncation(self):
        """Names longer than 32 bytes are truncated."""
        name = "x" * 40
        assert name_from_table_id(table_id_from_name(name)) == "x" * 32

    def test_unicode(self):
        """Non-ASCII names are stored as UTF-8."""
        assert name_from_table_id(table_id_from_name("♠ table")) == "♠ table"


class TestSeatBitmap:
    """Tests for occupied-seat bitmaps."""

    def test_occupied_seats(self):
        """Bits map to seat indices."""
        assert get_occupied_seats(0b101) == [0, 2]
        assert get_occupied_seats(0) == []
        assert is_seat_occupied(0b100, 2)
        assert not is_seat_occupied(0b100, 1)

    def test_bits_beyond_max_ignored(self):
        """Only the first max_seats bits are read."""
        assert get_occupied_seats(0b11000001, max_seats=6) == [0]

    def test_round_trip(self):
        """seats_to_bitmap inverts get_occupied_seats."""
        for seats in ([], [0], [1, 3, 5], [0, 1, 2, 3, 4, 5]):
            assert get_occupied_seats(seats_to_bitmap(seats)) == seats

    def test_invalid_seat(self):
        """Seats outside the 8-bit bitmap are rejected."""
        with pytest.raises(ValueError):
            seats_to_bitmap([8])

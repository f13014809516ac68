"""
Pytest configuration and shared fixtures for PokerLedger tests.

Ledger records are built byte-for-byte with struct so that decoders are
tested against the documented layouts rather than against themselves.
"""

import base64
import struct

import pytest
from pokerledger.core.address import (
    Address, table_id_from_name, get_table_address, get_seat_address,
    get_hand_address, get_deck_address,
)
from pokerledger.core.card import Card, Rank, Suit, HIDDEN_CARD
from pokerledger.core.constants import MAX_PLAYERS
from pokerledger.core.layout import (
    TABLE_DISCRIMINATOR, HAND_DISCRIMINATOR, SEAT_DISCRIMINATOR, DECK_DISCRIMINATOR,
    HAND_COMPLETED_DISCRIMINATOR, PROGRAM_DATA_PREFIX,
    TableStatus, GamePhase, SeatStatus,
)
from pokerledger.core.projector import MemoryLedger


TABLE_NAME = "high-rollers"
AUTHORITY = bytes(range(1, 33))
PLAYER = bytes([7] * 32)


class RecordFactory:
    """Builds raw ledger records with overridable fields."""

    def table(
        self,
        name=TABLE_NAME,
        authority=AUTHORITY,
        small_blind=10,
        big_blind=20,
        min_buy_in=1000,
        max_buy_in=10000,
        max_players=MAX_PLAYERS,
        current_players=None,
        status=TableStatus.PLAYING,
        hand_number=1,
        occupied_seats=0b11,
        dealer_position=0,
        last_ready_time=1700000000,
        bump=254,
        discriminator=TABLE_DISCRIMINATOR,
    ) -> bytes:
        if current_players is None:
            current_players = bin(occupied_seats).count("1")
        body = (
            authority
            + table_id_from_name(name)
            + struct.pack("<QQQQ", small_blind, big_blind, min_buy_in, max_buy_in)
            + struct.pack("<BBB", max_players, current_players, status)
            + struct.pack("<Q", hand_number)
            + struct.pack("<BB", occupied_seats, dealer_position)
            + struct.pack("<q", last_ready_time)
            + bytes([bump])
        )
        return discriminator + body

    def hand(
        self,
        table=bytes(32),
        hand_number=1,
        phase=GamePhase.PREFLOP,
        pot=30,
        current_bet=20,
        min_raise=20,
        dealer_position=0,
        action_on=0,
        community_cards=(HIDDEN_CARD,) * 5,
        vec_len=5,
        community_revealed=0,
        active_players=0b11,
        acted_this_round=0,
        active_count=2,
        all_in_players=0,
        last_action_time=1700000010,
        hand_start_time=1700000005,
        bump=253,
        discriminator=HAND_DISCRIMINATOR,
    ) -> bytes:
        body = (
            bytes(table)
            + struct.pack("<Q", hand_number)
            + struct.pack("<B", phase)
            + struct.pack("<QQQ", pot, current_bet, min_raise)
            + struct.pack("<BB", dealer_position, action_on)
            + struct.pack("<I", vec_len)
            + bytes(community_cards)
            + struct.pack("<BBBBB", community_revealed, active_players, acted_this_round,
                          active_count, all_in_players)
            + struct.pack("<qq", last_action_time, hand_start_time)
            + bytes([bump])
        )
        return discriminator + body

    def seat(
        self,
        table=bytes(32),
        player=PLAYER,
        seat_index=0,
        chips=990,
        current_bet=10,
        total_bet_this_hand=10,
        hole_card_1=HIDDEN_CARD,
        hole_card_2=HIDDEN_CARD,
        revealed_card_1=HIDDEN_CARD,
        revealed_card_2=HIDDEN_CARD,
        cards_revealed=0,
        status=SeatStatus.PLAYING,
        has_acted=0,
        bump=252,
        discriminator=SEAT_DISCRIMINATOR,
    ) -> bytes:
        body = (
            bytes(table)
            + bytes(player)
            + struct.pack("<B", seat_index)
            + struct.pack("<QQQ", chips, current_bet, total_bet_this_hand)
            + hole_card_1.to_bytes(16, "little")
            + hole_card_2.to_bytes(16, "little")
            + struct.pack("<BBBBBB", revealed_card_1, revealed_card_2, cards_revealed,
                          status, has_acted, bump)
        )
        return discriminator + body

    def deck(
        self,
        hand=bytes(32),
        cards=None,
        deal_index=4,
        is_shuffled=1,
        bump=251,
        discriminator=DECK_DISCRIMINATOR,
    ) -> bytes:
        if cards is None:
            cards = [(1 << 100) + i for i in range(52)]
        body = (
            bytes(hand)
            + b"".join(c.to_bytes(16, "little") for c in cards)
            + struct.pack("<BBB", deal_index, is_shuffled, bump)
        )
        return discriminator + body

    def player_result(
        self,
        player=PLAYER,
        seat_index=0,
        hole_card_1=HIDDEN_CARD,
        hole_card_2=HIDDEN_CARD,
        hand_rank=255,
        chips_won=0,
        chips_bet=0,
        folded=0,
        all_in=0,
    ) -> bytes:
        return (
            bytes(player)
            + struct.pack("<BBBB", seat_index, hole_card_1, hole_card_2, hand_rank)
            + struct.pack("<QQ", chips_won, chips_bet)
            + struct.pack("<BB", folded, all_in)
        )

    def hand_completed(
        self,
        name=TABLE_NAME,
        hand_number=1,
        timestamp=1700000100,
        community_cards=(51, 50, 49, 48, 47),
        total_pot=200,
        player_count=2,
        results=None,
        results_count=None,
    ) -> bytes:
        """Event payload without the discriminator."""
        if results is None:
            results = [
                self.player_result(seat_index=0, hole_card_1=0, hole_card_2=1,
                                   hand_rank=9, chips_won=200, chips_bet=100),
                self.player_result(seat_index=1, hole_card_1=13, hole_card_2=14,
                                   hand_rank=4, chips_bet=100),
            ]
        if results_count is None:
            results_count = len(results)
        slots = list(results) + [bytes(54)] * (6 - len(results))
        return (
            table_id_from_name(name)
            + struct.pack("<Qq", hand_number, timestamp)
            + bytes(community_cards)
            + struct.pack("<QB", total_pot, player_count)
            + b"".join(slots)
            + bytes([results_count])
        )

    def program_log(self, payload: bytes) -> str:
        """A 'Program data:' log line carrying a HandCompleted event."""
        data = HAND_COMPLETED_DISCRIMINATOR + payload
        return PROGRAM_DATA_PREFIX + base64.b64encode(data).decode()

    def install_table(
        self,
        ledger: MemoryLedger,
        name=TABLE_NAME,
        occupied_seats=0b11,
        hand_number=1,
        status=TableStatus.PLAYING,
        with_hand=True,
        with_deck=True,
    ) -> Address:
        """Put a table, its occupied seats and (optionally) its hand and deck into a ledger."""
        address = get_table_address(table_id_from_name(name))
        ledger.put(address, self.table(
            name=name, occupied_seats=occupied_seats, hand_number=hand_number, status=status,
        ))
        for i in range(MAX_PLAYERS):
            if occupied_seats & (1 << i):
                ledger.put(
                    get_seat_address(address, i),
                    self.seat(table=address.raw, seat_index=i, player=bytes([i + 1] * 32)),
                )
        if with_hand:
            ledger.put(
                get_hand_address(address, hand_number),
                self.hand(table=address.raw, hand_number=hand_number),
            )
        if with_deck:
            hand_address = get_hand_address(address, hand_number)
            ledger.put(get_deck_address(address, hand_number), self.deck(hand=hand_address.raw))
        return address


@pytest.fixture
def records():
    """Factory for raw ledger records."""
    return RecordFactory()


@pytest.fixture
def ledger():
    """An empty in-memory ledger."""
    return MemoryLedger()


@pytest.fixture
def sample_hand():
    """Create a sample 5-card hand (pair of aces)."""
    return [
        Card(Rank.ACE, Suit.SPADES),
        Card(Rank.ACE, Suit.HEARTS),
        Card(Rank.KING, Suit.DIAMONDS),
        Card(Rank.QUEEN, Suit.CLUBS),
        Card(Rank.JACK, Suit.SPADES),
    ]


@pytest.fixture
def royal_flush():
    """Create a royal flush hand."""
    return [
        Card(Rank.ACE, Suit.SPADES),
        Card(Rank.KING, Suit.SPADES),
        Card(Rank.QUEEN, Suit.SPADES),
        Card(Rank.JACK, Suit.SPADES),
        Card(Rank.TEN, Suit.SPADES),
    ]


@pytest.fixture
def straight_flush():
    """Create a straight flush (9-high)."""
    return [
        Card(Rank.NINE, Suit.HEARTS),
        Card(Rank.EIGHT, Suit.HEARTS),
        Card(Rank.SEVEN, Suit.HEARTS),
        Card(Rank.SIX, Suit.HEARTS),
        Card(Rank.FIVE, Suit.HEARTS),
    ]


@pytest.fixture
def wheel_straight():
    """Create a wheel straight (A-2-3-4-5)."""
    return [
        Card(Rank.ACE, Suit.SPADES),
        Card(Rank.TWO, Suit.HEARTS),
        Card(Rank.THREE, Suit.DIAMONDS),
        Card(Rank.FOUR, Suit.CLUBS),
        Card(Rank.FIVE, Suit.SPADES),
    ]

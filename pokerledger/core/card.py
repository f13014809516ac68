"""
Card value type for ledger-encoded cards.

The ledger stores a card as a single byte: card = suit * 13 + rank, with
255 meaning "not dealt / not revealed". This module keeps that encoding
while providing human-readable string representations.

Suit order on the ledger: Hearts, Diamonds, Clubs, Spades.
Rank order: Two (0) ... Ace (12).
"""

from __future__ import annotations
from typing import List, Optional
from enum import IntEnum


HIDDEN_CARD = 255
CARDS_PER_SUIT = 13


class Suit(IntEnum):
    """Card suits in ledger order."""
    HEARTS = 0    # ♥
    DIAMONDS = 1  # ♦
    CLUBS = 2     # ♣
    SPADES = 3    # ♠


class Rank(IntEnum):
    """Card ranks from 2 (lowest) to Ace (highest)."""
    TWO = 0
    THREE = 1
    FOUR = 2
    FIVE = 3
    SIX = 4
    SEVEN = 5
    EIGHT = 6
    NINE = 7
    TEN = 8
    JACK = 9
    QUEEN = 10
    KING = 11
    ACE = 12


# String mappings
SUIT_SYMBOLS = {
    Suit.HEARTS: "♥",
    Suit.DIAMONDS: "♦",
    Suit.CLUBS: "♣",
    Suit.SPADES: "♠",
}

SUIT_CHARS = {
    Suit.HEARTS: "h",
    Suit.DIAMONDS: "d",
    Suit.CLUBS: "c",
    Suit.SPADES: "s",
}

RANK_CHARS = {
    Rank.TWO: "2",
    Rank.THREE: "3",
    Rank.FOUR: "4",
    Rank.FIVE: "5",
    Rank.SIX: "6",
    Rank.SEVEN: "7",
    Rank.EIGHT: "8",
    Rank.NINE: "9",
    Rank.TEN: "T",
    Rank.JACK: "J",
    Rank.QUEEN: "Q",
    Rank.KING: "K",
    Rank.ACE: "A",
}

RANK_NAMES = {
    Rank.TWO: "Two", Rank.THREE: "Three", Rank.FOUR: "Four",
    Rank.FIVE: "Five", Rank.SIX: "Six", Rank.SEVEN: "Seven",
    Rank.EIGHT: "Eight", Rank.NINE: "Nine", Rank.TEN: "Ten",
    Rank.JACK: "Jack", Rank.QUEEN: "Queen", Rank.KING: "King",
    Rank.ACE: "Ace",
}

# Reverse mappings
CHAR_TO_RANK = {v: k for k, v in RANK_CHARS.items()}
CHAR_TO_SUIT = {v: k for k, v in SUIT_CHARS.items()}
SYMBOL_TO_SUIT = {v: k for k, v in SUIT_SYMBOLS.items()}


class Card:
    """
    An immutable playing card in ledger encoding.

    Cards can be created from:
    - Rank and Suit enums: Card(Rank.ACE, Suit.SPADES)
    - String notation: Card.from_string("As"), Card.from_string("10♥")
    - Ledger byte (0-51): Card.from_int(51) = Ace of Spades
    """

    __slots__ = ("rank", "suit", "_int")

    def __init__(self, rank: Rank, suit: Suit):
        object.__setattr__(self, "rank", Rank(rank))
        object.__setattr__(self, "suit", Suit(suit))
        object.__setattr__(self, "_int", int(self.suit) * CARDS_PER_SUIT + int(self.rank))

    def __setattr__(self, name, value):
        raise AttributeError("Card is immutable")

    @classmethod
    def from_string(cls, s: str) -> Card:
        """
        Create a card from string notation.

        Accepts "As", "Kh", "Td", "10d", "2c" or the symbol forms "A♠", "10♥".
        """
        s = s.strip()
        if len(s) < 2:
            raise ValueError(f"Invalid card string: {s}")

        if s[:2] == "10":
            rank_char, suit_part = "T", s[2:]
        else:
            rank_char, suit_part = s[0].upper(), s[1:]

        if rank_char not in CHAR_TO_RANK:
            raise ValueError(f"Invalid rank: {rank_char}")
        rank = CHAR_TO_RANK[rank_char]

        if suit_part.lower() in CHAR_TO_SUIT:
            suit = CHAR_TO_SUIT[suit_part.lower()]
        elif suit_part in SYMBOL_TO_SUIT:
            suit = SYMBOL_TO_SUIT[suit_part]
        else:
            raise ValueError(f"Invalid suit: {suit_part}")

        return cls(rank, suit)

    @classmethod
    def from_int(cls, card_int: int) -> Card:
        """Create a card from its ledger byte (0-51)."""
        if not 0 <= card_int <= 51:
            raise ValueError(f"Card int must be 0-51, got {card_int}")
        return cls(Rank(card_int % CARDS_PER_SUIT), Suit(card_int // CARDS_PER_SUIT))

    def to_int(self) -> int:
        """Return the ledger byte (0-51)."""
        return self._int

    def __int__(self) -> int:
        return self._int

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Card):
            return self._int == other._int
        return False

    def __hash__(self) -> int:
        return self._int

    def __lt__(self, other: Card) -> bool:
        """Compare by rank only (for sorting)."""
        return self.rank < other.rank

    def __repr__(self) -> str:
        return f"Card({RANK_CHARS[self.rank]}{SUIT_CHARS[self.suit]})"

    def __str__(self) -> str:
        rank = "10" if self.rank == Rank.TEN else RANK_CHARS[self.rank]
        return f"{rank}{SUIT_SYMBOLS[self.suit]}"

    @property
    def short_str(self) -> str:
        """Short string like 'As', 'Th'."""
        return f"{RANK_CHARS[self.rank]}{SUIT_CHARS[self.suit]}"

    @property
    def color(self) -> str:
        """Return 'red' for hearts/diamonds, 'black' for clubs/spades."""
        return "red" if self.suit in (Suit.HEARTS, Suit.DIAMONDS) else "black"

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "value": self._int,
            "rank": RANK_CHARS[self.rank],
            "suit": SUIT_SYMBOLS[self.suit],
            "text": str(self),
            "color": self.color,
        }


def decode_card_byte(value: int) -> Optional[Card]:
    """
    Interpret a ledger card byte.

    Returns None for the hidden sentinel (255).

    Raises:
        ValueError: If the value is neither 0-51 nor 255.
    """
    if value == HIDDEN_CARD:
        return None
    return Card.from_int(value)


def is_valid_card_byte(value: int) -> bool:
    """True for 0-51 and for the hidden sentinel."""
    return 0 <= value <= 51 or value == HIDDEN_CARD


def format_card(value: int) -> str:
    """Render a ledger card byte, '??' for hidden or invalid values."""
    if not 0 <= value <= 51:
        return "??"
    return str(Card.from_int(value))


def parse_cards(cards_str: str) -> List[Card]:
    """
    Parse multiple cards from a string.

    Accepts formats:
    - "As Kh Td" (space-separated)
    - "AsKhTd" (no separator, 2 chars each)
    - "A♠ K♥ 10♦" (with symbols)
    """
    cards_str = cards_str.strip()

    if " " in cards_str:
        return [Card.from_string(s) for s in cards_str.split()]

    result = []
    i = 0
    while i < len(cards_str):
        if cards_str.startswith("10", i):
            width = 3
        else:
            width = 2
        chunk = cards_str[i:i + width]
        if len(chunk) < width:
            raise ValueError(f"Cannot parse card at position {i}: {cards_str[i:]}")
        result.append(Card.from_string(chunk))
        i += width

    return result

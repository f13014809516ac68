"""
Hand Evaluation for Texas Hold'em.

This module evaluates 5-7 cards into a category plus five tie-break keys.
Two evaluated hands compare by category first, then by the keys
lexicographically; identical category and keys is a split pot.

Hand Categories (best to worst):
9. Royal Flush: A♠ K♠ Q♠ J♠ T♠
8. Straight Flush: 5 consecutive cards of same suit
7. Four of a Kind: 4 cards of same rank
6. Full House: 3 of a kind + pair
5. Flush: 5 cards of same suit
4. Straight: 5 consecutive cards
3. Three of a Kind: 3 cards of same rank
2. Two Pair: 2 different pairs
1. One Pair: 2 cards of same rank
0. High Card: No made hand

The category numbers are the ones the ledger writes into HandCompleted
events. Ace can be low in A-2-3-4-5 straight (wheel), which scores as
five-high.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Tuple, Sequence, Union
from itertools import combinations
from enum import IntEnum

from pokerledger.core.card import Card, Rank, RANK_CHARS


class HandCategory(IntEnum):
    """Hand categories from worst (lowest value) to best (highest value)."""
    HIGH_CARD = 0
    ONE_PAIR = 1
    TWO_PAIR = 2
    THREE_OF_A_KIND = 3
    STRAIGHT = 4
    FLUSH = 5
    FULL_HOUSE = 6
    FOUR_OF_A_KIND = 7
    STRAIGHT_FLUSH = 8
    ROYAL_FLUSH = 9


# Hand category names for display
HAND_CATEGORY_NAMES = {
    HandCategory.ROYAL_FLUSH: "Royal Flush",
    HandCategory.STRAIGHT_FLUSH: "Straight Flush",
    HandCategory.FOUR_OF_A_KIND: "Four of a Kind",
    HandCategory.FULL_HOUSE: "Full House",
    HandCategory.FLUSH: "Flush",
    HandCategory.STRAIGHT: "Straight",
    HandCategory.THREE_OF_A_KIND: "Three of a Kind",
    HandCategory.TWO_PAIR: "Two Pair",
    HandCategory.ONE_PAIR: "One Pair",
    HandCategory.HIGH_CARD: "High Card",
}

WHEEL_RANKS = [Rank.ACE, Rank.FIVE, Rank.FOUR, Rank.THREE, Rank.TWO]

CardLike = Union[Card, int]


class InvalidHandSize(ValueError):
    """Evaluation needs 5-7 cards."""


@dataclass(frozen=True, order=True)
class EvaluatedHand:
    """
    A ranked hand.

    Attributes:
        category: Hand category
        kickers: Exactly five tie-break rank indices, high to low, zero-padded
        cards: The five cards that make the hand (not used for comparison)
    """
    category: HandCategory
    kickers: Tuple[int, int, int, int, int]
    cards: Tuple[Card, ...] = field(default=(), compare=False)

    @property
    def name(self) -> str:
        return HAND_CATEGORY_NAMES[self.category]


def _to_cards(cards: Sequence[CardLike]) -> List[Card]:
    result = [c if isinstance(c, Card) else Card.from_int(c) for c in cards]
    if len(set(result)) != len(result):
        raise ValueError(f"Duplicate cards in hand: {result}")
    return result


def evaluate_hand(cards: Sequence[CardLike]) -> EvaluatedHand:
    """
    Evaluate a poker hand (5-7 cards).

    For 6 or 7 cards every 5-card subset is evaluated and the best one
    kept; the search is exhaustive because a flush subset can outrank a
    subset with more paired ranks.

    Args:
        cards: Card objects or ledger card bytes (0-51)

    Raises:
        InvalidHandSize: If not 5-7 cards provided
        ValueError: If a card is out of range or repeated
    """
    if len(cards) < 5 or len(cards) > 7:
        raise InvalidHandSize(f"Need 5-7 cards, got {len(cards)}")

    cards = _to_cards(cards)

    if len(cards) == 5:
        return _evaluate_5_cards(cards)

    best = None
    for combo in combinations(cards, 5):
        evaluated = _evaluate_5_cards(list(combo))
        if best is None or evaluated > best:
            best = evaluated
    return best


def _evaluate_5_cards(cards: List[Card]) -> EvaluatedHand:
    """Evaluate exactly 5 cards."""
    sorted_cards = tuple(sorted(cards, key=lambda c: c.rank, reverse=True))
    ranks = [int(c.rank) for c in sorted_cards]

    is_flush = len({c.suit for c in cards}) == 1
    is_straight = all(ranks[i] == ranks[i + 1] + 1 for i in range(4))
    is_wheel = ranks == WHEEL_RANKS

    if is_flush and (is_straight or is_wheel):
        if is_wheel:
            return EvaluatedHand(HandCategory.STRAIGHT_FLUSH, (int(Rank.FIVE), 0, 0, 0, 0), sorted_cards)
        if ranks[0] == Rank.ACE:
            return EvaluatedHand(HandCategory.ROYAL_FLUSH, (12, 11, 10, 9, 8), sorted_cards)
        return EvaluatedHand(HandCategory.STRAIGHT_FLUSH, (ranks[0], 0, 0, 0, 0), sorted_cards)

    # Count rank occurrences
    rank_counts = [0] * 13
    for r in ranks:
        rank_counts[r] += 1

    quads = None
    trips = None
    pairs: List[int] = []
    singles: List[int] = []

    # Scan from Ace down to Two
    for r in range(12, -1, -1):
        count = rank_counts[r]
        if count == 4:
            quads = r
        elif count == 3:
            trips = r
        elif count == 2:
            pairs.append(r)
        elif count == 1:
            singles.append(r)

    if quads is not None:
        if singles:
            kicker = singles[0]
        elif pairs:
            kicker = pairs[0]
        elif trips is not None:
            kicker = trips
        else:
            kicker = 0
        return EvaluatedHand(HandCategory.FOUR_OF_A_KIND, (quads, kicker, 0, 0, 0), sorted_cards)

    if trips is not None and pairs:
        return EvaluatedHand(HandCategory.FULL_HOUSE, (trips, pairs[0], 0, 0, 0), sorted_cards)

    if is_flush:
        return EvaluatedHand(HandCategory.FLUSH, tuple(ranks), sorted_cards)

    if is_straight:
        return EvaluatedHand(HandCategory.STRAIGHT, (ranks[0], 0, 0, 0, 0), sorted_cards)
    if is_wheel:
        return EvaluatedHand(HandCategory.STRAIGHT, (int(Rank.FIVE), 0, 0, 0, 0), _reorder_wheel(sorted_cards))

    padded = singles + [0, 0, 0]

    if trips is not None:
        return EvaluatedHand(HandCategory.THREE_OF_A_KIND, (trips, padded[0], padded[1], 0, 0), sorted_cards)

    if len(pairs) >= 2:
        return EvaluatedHand(HandCategory.TWO_PAIR, (pairs[0], pairs[1], padded[0], 0, 0), sorted_cards)

    if len(pairs) == 1:
        return EvaluatedHand(
            HandCategory.ONE_PAIR, (pairs[0], padded[0], padded[1], padded[2], 0), sorted_cards
        )

    return EvaluatedHand(HandCategory.HIGH_CARD, tuple(ranks), sorted_cards)


def _reorder_wheel(cards: Tuple[Card, ...]) -> Tuple[Card, ...]:
    """Reorder wheel straight so Ace is last (5-4-3-2-A)."""
    return cards[1:] + cards[:1]


def compare_hands(hand1: EvaluatedHand, hand2: EvaluatedHand) -> int:
    """
    Compare two evaluated hands.

    Returns:
        1 if hand1 wins, -1 if hand2 wins, 0 if tie (split pot)
    """
    if hand1 > hand2:
        return 1
    if hand1 < hand2:
        return -1
    return 0


def compare_cards(cards1: Sequence[CardLike], cards2: Sequence[CardLike]) -> int:
    """Evaluate and compare two sets of 5-7 cards."""
    return compare_hands(evaluate_hand(cards1), evaluate_hand(cards2))


def find_winners(player_cards: Sequence[Tuple[int, Sequence[CardLike]]]) -> List[int]:
    """
    Find the winning seats at showdown.

    Args:
        player_cards: (seat_index, 5-7 cards) per contending player

    Returns:
        Seat indices holding the best hand; more than one means a split pot.
    """
    best = None
    winners: List[int] = []

    for seat_index, cards in player_cards:
        evaluated = evaluate_hand(cards)
        if best is None or evaluated > best:
            best = evaluated
            winners = [seat_index]
        elif evaluated == best:
            winners.append(seat_index)

    return winners


def _rank_label(rank: int) -> str:
    return "10" if rank == Rank.TEN else RANK_CHARS[Rank(rank)]


def get_hand_description(hand: EvaluatedHand) -> str:
    """Get a human-readable description like 'Pair of As' or 'Flush (K-high)'."""
    k = hand.kickers

    if hand.category == HandCategory.ROYAL_FLUSH:
        return "Royal Flush"
    elif hand.category == HandCategory.STRAIGHT_FLUSH:
        return f"Straight Flush ({_rank_label(k[0])}-high)"
    elif hand.category == HandCategory.FOUR_OF_A_KIND:
        return f"Four {_rank_label(k[0])}s"
    elif hand.category == HandCategory.FULL_HOUSE:
        return f"Full House ({_rank_label(k[0])}s full of {_rank_label(k[1])}s)"
    elif hand.category == HandCategory.FLUSH:
        return f"Flush ({_rank_label(k[0])}-high)"
    elif hand.category == HandCategory.STRAIGHT:
        return f"Straight ({_rank_label(k[0])}-high)"
    elif hand.category == HandCategory.THREE_OF_A_KIND:
        return f"Three {_rank_label(k[0])}s"
    elif hand.category == HandCategory.TWO_PAIR:
        return f"Two Pair ({_rank_label(k[0])}s and {_rank_label(k[1])}s)"
    elif hand.category == HandCategory.ONE_PAIR:
        return f"Pair of {_rank_label(k[0])}s"
    else:
        return f"{_rank_label(k[0])}-high"

"""
Tests for hand evaluation.
"""

import pytest
from pokerledger.core.card import Card, Rank, Suit, parse_cards
from pokerledger.core.hand import (
    evaluate_hand, compare_hands, compare_cards, find_winners,
    HandCategory, EvaluatedHand, InvalidHandSize, get_hand_description,
)


class TestHandRanking:
    """Tests for hand categories and tie-break keys."""

    def test_royal_flush(self, royal_flush):
        """Test royal flush recognition."""
        hand = evaluate_hand(royal_flush)
        assert hand.category == HandCategory.ROYAL_FLUSH
        assert hand.kickers == (12, 11, 10, 9, 8)

    def test_straight_flush(self, straight_flush):
        """Test straight flush recognition."""
        hand = evaluate_hand(straight_flush)
        assert hand.category == HandCategory.STRAIGHT_FLUSH
        assert hand.kickers == (int(Rank.NINE), 0, 0, 0, 0)

    def test_steel_wheel(self):
        """A-2-3-4-5 suited is a five-high straight flush, not a royal."""
        hand = evaluate_hand(parse_cards("Ah 2h 3h 4h 5h"))
        assert hand.category == HandCategory.STRAIGHT_FLUSH
        assert hand.kickers == (3, 0, 0, 0, 0)

    def test_four_of_a_kind(self):
        """Test four of a kind recognition."""
        hand = evaluate_hand(parse_cards("As Ah Ad Ac Ks"))
        assert hand.category == HandCategory.FOUR_OF_A_KIND
        assert hand.kickers == (12, 11, 0, 0, 0)

    def test_full_house(self):
        """Test full house recognition."""
        hand = evaluate_hand(parse_cards("As Ah Ad Kc Ks"))
        assert hand.category == HandCategory.FULL_HOUSE
        assert hand.kickers == (12, 11, 0, 0, 0)

    def test_flush(self):
        """Test flush recognition."""
        hand = evaluate_hand(parse_cards("As Ks Js 9s 2s"))
        assert hand.category == HandCategory.FLUSH
        assert hand.kickers == (12, 11, 9, 7, 0)

    def test_straight(self):
        """Test straight recognition."""
        hand = evaluate_hand(parse_cards("As Kh Qd Jc Ts"))
        assert hand.category == HandCategory.STRAIGHT
        assert hand.kickers == (12, 0, 0, 0, 0)

    def test_wheel_straight(self, wheel_straight):
        """Test wheel straight (A-2-3-4-5) scores five-high."""
        hand = evaluate_hand(wheel_straight)
        assert hand.category == HandCategory.STRAIGHT
        assert hand.kickers == (int(Rank.FIVE), 0, 0, 0, 0)
        assert hand.cards[-1].rank == Rank.ACE

        desc = get_hand_description(hand)
        assert desc == "Straight (5-high)"

    def test_three_of_a_kind(self):
        """Test three of a kind recognition."""
        hand = evaluate_hand(parse_cards("As Ah Ad Kc Qs"))
        assert hand.category == HandCategory.THREE_OF_A_KIND
        assert hand.kickers == (12, 11, 10, 0, 0)

    def test_two_pair(self):
        """Test two pair recognition."""
        hand = evaluate_hand(parse_cards("As Ah Kd Kc Qs"))
        assert hand.category == HandCategory.TWO_PAIR
        assert hand.kickers == (12, 11, 10, 0, 0)

    def test_one_pair(self, sample_hand):
        """Test one pair recognition."""
        hand = evaluate_hand(sample_hand)
        assert hand.category == HandCategory.ONE_PAIR
        assert hand.kickers == (12, 11, 10, 9, 0)

    def test_high_card(self):
        """Test high card recognition."""
        hand = evaluate_hand(parse_cards("As Kh Jd 9c 2s"))
        assert hand.category == HandCategory.HIGH_CARD
        assert hand.kickers == (12, 11, 9, 7, 0)

    def test_category_values_match_ledger(self):
        """The category numbers are the hand_rank bytes in HandCompleted."""
        assert HandCategory.HIGH_CARD == 0
        assert HandCategory.ONE_PAIR == 1
        assert HandCategory.STRAIGHT == 4
        assert HandCategory.ROYAL_FLUSH == 9

    def test_accepts_card_bytes(self):
        """Ledger card bytes evaluate the same as Card objects."""
        cards = parse_cards("As Ks Qs Js Ts")
        assert evaluate_hand([c.to_int() for c in cards]) == evaluate_hand(cards)


class TestHandValidation:
    """Tests for invalid input."""

    def test_too_few_cards(self):
        """Fewer than 5 cards is rejected."""
        with pytest.raises(InvalidHandSize):
            evaluate_hand(parse_cards("As Ks Qs Js"))

    def test_too_many_cards(self):
        """More than 7 cards is rejected."""
        with pytest.raises(InvalidHandSize):
            evaluate_hand(parse_cards("As Ks Qs Js Ts 9s 8s 7s"))

    def test_duplicate_cards(self):
        """The same card twice is rejected."""
        with pytest.raises(ValueError):
            evaluate_hand(parse_cards("As As Qs Js Ts"))

    def test_invalid_card_byte(self):
        """Bytes outside 0-51 are rejected."""
        with pytest.raises(ValueError):
            evaluate_hand([0, 1, 2, 3, 255])


class TestHandComparison:
    """Tests for comparing hands."""

    def test_royal_flush_beats_straight_flush(self, royal_flush, straight_flush):
        """Royal flush beats straight flush."""
        assert compare_cards(royal_flush, straight_flush) == 1
        assert compare_cards(straight_flush, royal_flush) == -1

    def test_flush_beats_straight(self):
        """Flush beats straight."""
        flush = parse_cards("Ks Js 9s 7s 2s")
        straight = parse_cards("As Kh Qd Jc Th")
        assert compare_cards(flush, straight) == 1

    def test_six_high_straight_beats_wheel(self, wheel_straight):
        """The wheel is the lowest straight."""
        six_high = parse_cards("2s 3h 4d 5c 6s")
        assert compare_cards(six_high, wheel_straight) == 1

    def test_higher_pair_wins(self):
        """Higher pair beats lower pair."""
        pair_aces = parse_cards("As Ah Kd Qc Js")
        pair_kings = parse_cards("Ks Kh Qd Jc Ts")
        assert compare_cards(pair_aces, pair_kings) == 1

    def test_kicker_decides(self):
        """Same pair, different kicker."""
        pair_ace_king = parse_cards("As Ah Kd 5c 2s")
        pair_ace_queen = parse_cards("Ad Ac Qh 5s 2h")
        assert compare_cards(pair_ace_king, pair_ace_queen) == 1

    def test_tie(self):
        """Identical ranks in different suits split the pot."""
        hand1 = evaluate_hand(parse_cards("As Kh Qd Jc 9s"))
        hand2 = evaluate_hand(parse_cards("Ah Kd Qc Js 9h"))
        assert compare_hands(hand1, hand2) == 0
        assert hand1 == hand2

    def test_ordering_ignores_cards(self):
        """Only category and kickers take part in comparison."""
        a = EvaluatedHand(HandCategory.FLUSH, (12, 10, 8, 6, 4), tuple(parse_cards("As Qs Ts 8s 6s")))
        b = EvaluatedHand(HandCategory.FLUSH, (12, 10, 8, 6, 4))
        assert a == b
        assert a < EvaluatedHand(HandCategory.FLUSH, (12, 10, 8, 6, 5))


class TestSevenCardEvaluation:
    """Tests for 7-card hand evaluation."""

    def test_best_five_from_seven(self):
        """Select best 5 cards from 7."""
        hand = evaluate_hand(parse_cards("As Ah Ad Kc Ks 2h 3d"))
        assert hand.category == HandCategory.FULL_HOUSE
        assert hand.kickers == (12, 11, 0, 0, 0)
        assert len(hand.cards) == 5

    def test_pair_with_best_kickers(self):
        """A pair plays with the three highest remaining cards."""
        hand = evaluate_hand(parse_cards("Ah Ad Kh Qc 9s 5d 2c"))
        assert hand.category == HandCategory.ONE_PAIR
        assert hand.kickers == (12, 11, 10, 7, 0)

    def test_flush_from_six_suited(self):
        """Find flush in 6 suited cards."""
        hand = evaluate_hand(parse_cards("As Ks Qs Js 9s 2s 3h"))
        assert hand.category == HandCategory.FLUSH
        assert hand.kickers == (12, 11, 10, 9, 7)

    def test_flush_over_straight(self):
        """A flush subset outranks a straight subset of the same cards."""
        hand = evaluate_hand(parse_cards("9h 8h 7c 6h 5d 2h Kh"))
        assert hand.category == HandCategory.FLUSH

    def test_two_trips_make_full_house(self):
        """Two sets of trips in 7 cards play as a full house."""
        hand = evaluate_hand(parse_cards("Ks Kh Kd 7c 7s 7h 2d"))
        assert hand.category == HandCategory.FULL_HOUSE
        assert hand.kickers == (11, 5, 0, 0, 0)

    def test_quads_use_best_kicker(self):
        """Quads with a pair and a single on board take the higher kicker."""
        hand = evaluate_hand(parse_cards("9s 9h 9d 9c Qs Qh 3d"))
        assert hand.category == HandCategory.FOUR_OF_A_KIND
        assert hand.kickers == (7, 10, 0, 0, 0)

    def test_pair_found_among_21_subsets(self):
        """A pair with low off-suit cards beats every high-card subset."""
        hand = evaluate_hand(parse_cards("2h 2d 5c 9s Kh 3c 4d"))
        assert hand.category == HandCategory.ONE_PAIR
        assert hand.kickers == (0, 11, 7, 3, 0)

    def test_split_between_seven_card_hands(self):
        """Different hole cards can reduce to the same high card hand."""
        hand1 = evaluate_hand(parse_cards("As Kd Qh Jc 9s 4d 2c"))
        hand2 = evaluate_hand(parse_cards("Ah Kc Qd Js 9h 3c 2d"))
        assert hand1.category == HandCategory.HIGH_CARD
        assert compare_hands(hand1, hand2) == 0

    def test_six_card_evaluation(self):
        """6 cards are searched like 7."""
        hand = evaluate_hand(parse_cards("2s 3h 4d 5c 6s 7h"))
        assert hand.category == HandCategory.STRAIGHT
        assert hand.kickers == (5, 0, 0, 0, 0)


class TestFindWinners:
    """Tests for showdown winner selection."""

    def test_single_winner(self):
        """Best hand takes the pot."""
        board = parse_cards("2c 7d 9h Js Kd")
        winners = find_winners([
            (0, board + parse_cards("As Ah")),
            (3, board + parse_cards("Qs Qh")),
        ])
        assert winners == [0]

    def test_split_pot(self):
        """Board plays for everyone: all seats split."""
        board = parse_cards("As Ks Qs Js Ts")
        winners = find_winners([
            (1, board + parse_cards("2h 3h")),
            (4, board + parse_cards("2d 3d")),
        ])
        assert winners == [1, 4]

    def test_no_players(self):
        """No contenders, no winners."""
        assert find_winners([]) == []


class TestHandDescription:
    """Tests for hand description."""

    def test_royal_flush_description(self, royal_flush):
        """Test royal flush description."""
        assert get_hand_description(evaluate_hand(royal_flush)) == "Royal Flush"

    def test_pair_description(self, sample_hand):
        """Test pair description."""
        assert get_hand_description(evaluate_hand(sample_hand)) == "Pair of As"

    def test_full_house_description(self):
        """Test full house description."""
        hand = evaluate_hand(parse_cards("Ts Th Td 4c 4s"))
        assert get_hand_description(hand) == "Full House (10s full of 4s)"

"""
PokerLedger Core - Pure Python address, layout and hand logic

Everything except the projector is free of I/O; the projector only
talks to the ledger through an injected fetcher.
"""

from pokerledger.core.card import Card, Suit, Rank, decode_card_byte
from pokerledger.core.hand import (
    HandCategory, EvaluatedHand, InvalidHandSize, evaluate_hand, compare_hands, find_winners,
)
from pokerledger.core.address import (
    Address, InvalidSeatIndex, find_program_address,
    get_table_address, get_seat_address, get_hand_address, get_deck_address, get_vault_address,
    table_id_from_name, name_from_table_id,
)
from pokerledger.core.layout import (
    DecodeError, TruncatedRecord, UnknownVariant, DiscriminatorMismatch, InvalidField,
    TableStatus, GamePhase, SeatStatus,
    decode_table, decode_hand, decode_seat, decode_deck, decode_hand_completed,
)
from pokerledger.core.projector import (
    StateProjector, GameView, SeatSlot, NotFound, HandHistory,
    LedgerFetcher, MemoryLedger, TransportError,
)

__all__ = [
    "Card",
    "Suit",
    "Rank",
    "decode_card_byte",
    "HandCategory",
    "EvaluatedHand",
    "InvalidHandSize",
    "evaluate_hand",
    "compare_hands",
    "find_winners",
    "Address",
    "InvalidSeatIndex",
    "find_program_address",
    "get_table_address",
    "get_seat_address",
    "get_hand_address",
    "get_deck_address",
    "get_vault_address",
    "table_id_from_name",
    "name_from_table_id",
    "DecodeError",
    "TruncatedRecord",
    "UnknownVariant",
    "DiscriminatorMismatch",
    "InvalidField",
    "TableStatus",
    "GamePhase",
    "SeatStatus",
    "decode_table",
    "decode_hand",
    "decode_seat",
    "decode_deck",
    "decode_hand_completed",
    "StateProjector",
    "GameView",
    "SeatSlot",
    "NotFound",
    "HandHistory",
    "LedgerFetcher",
    "MemoryLedger",
    "TransportError",
]

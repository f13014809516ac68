"""
PokerLedger - Client core for ledger-hosted Texas Hold'em tables

A read-side companion to the on-ledger poker program with:
- Deterministic address derivation for every game record
- Fixed-layout decoders for table, seat, hand, deck and event records
- Pure Python hand evaluation (no external poker dependencies)
- An async state projector plus a FastAPI + WebSocket server

Usage:
    from pokerledger.core import evaluate_hand, get_table_address, StateProjector
"""

__version__ = "0.2.0"

from pokerledger.core.card import Card
from pokerledger.core.hand import HandCategory, EvaluatedHand, evaluate_hand
from pokerledger.core.address import Address, get_table_address, table_id_from_name
from pokerledger.core.layout import DecodeError
from pokerledger.core.projector import StateProjector, MemoryLedger

__all__ = [
    "Card",
    "HandCategory",
    "EvaluatedHand",
    "evaluate_hand",
    "Address",
    "get_table_address",
    "table_id_from_name",
    "DecodeError",
    "StateProjector",
    "MemoryLedger",
    "__version__",
]

"""
Ledger program constants and seat bitmap helpers.

These values mirror the constants compiled into the on-ledger poker
program. Seed tags and the program id are part of the address
derivation contract and must not change:

1. Table:  "table" + table_id[32]
2. Seat:   "seat"  + table_address[32] + seat_index[u8]
3. Hand:   "hand"  + table_address[32] + hand_number[u64 LE]
4. Deck:   "deck"  + table_address[32] + hand_number[u64 LE]
5. Vault:  "vault" + table_address[32]
"""

from typing import Iterable, List


# Address derivation
PROGRAM_ID = "HS3GdhRBU3jMT4G6ogKVktKaibqsMhPRhDhNsmgzeB8Q"

TABLE_SEED = b"table"
SEAT_SEED = b"seat"
HAND_SEED = b"hand"
DECK_SEED = b"deck"
VAULT_SEED = b"vault"

TABLE_ID_LENGTH = 32

# Game limits
MAX_PLAYERS = 6
MIN_PLAYERS = 2
DECK_SIZE = 52
HOLE_CARDS = 2
COMMUNITY_CARDS = 5
MAX_RESULTS = 6
# Seat bitmaps are a single u8 on the ledger
BITMAP_SEATS = 8

# Timeouts (seconds)
ACTION_TIMEOUT_SECONDS = 60
DEAL_TIMEOUT_SECONDS = 30
ALLOWANCE_TIMEOUT_SECONDS = 60
REVEAL_TIMEOUT_SECONDS = 180
TABLE_INACTIVE_TIMEOUT_SECONDS = 3600
EMERGENCY_TIMEOUT_SECONDS = 86400

# Client-side projection
STATE_POLL_INTERVAL_SECONDS = 3.0
HISTORY_CAPACITY = 50
SEEN_HANDS_MULTIPLIER = 4


def is_seat_occupied(occupied_seats: int, seat_index: int) -> bool:
    """Check if a seat is occupied using the table bitmap."""
    return occupied_seats & (1 << seat_index) != 0


def get_occupied_seats(occupied_seats: int, max_seats: int = MAX_PLAYERS) -> List[int]:
    """
    Get occupied seat indices from a bitmap.

    Bits at or above max_seats are ignored.
    """
    return [i for i in range(max_seats) if is_seat_occupied(occupied_seats, i)]


def seats_to_bitmap(seats: Iterable[int]) -> int:
    """Inverse of get_occupied_seats."""
    bitmap = 0
    for seat in seats:
        if not 0 <= seat < BITMAP_SEATS:
            raise ValueError(f"Seat index must be 0-{BITMAP_SEATS - 1}, got {seat}")
        bitmap |= 1 << seat
    return bitmap


def is_player_active(active_players: int, seat_index: int) -> bool:
    """Check if a player is still active in the hand using the hand bitmap."""
    return active_players & (1 << seat_index) != 0

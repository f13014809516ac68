"""
State projection from ledger records.

StateProjector turns raw ledger bytes into one consistent view per table:
- Derives the table, seat, hand and deck addresses
- Fetches them through an injected fetcher and decodes them
- Publishes an immutable GameView atomically
- Records HandCompleted events into a bounded, de-duplicated history

Usage:
    projector = StateProjector(fetcher)
    async with projector:
        view = await projector.refresh(table_address)
        projector.watch(table_address, interval=3.0)
        projector.subscribe(event_source)
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from collections import Counter, OrderedDict
from dataclasses import dataclass, field, replace
from typing import (
    Any, AsyncIterator, Callable, Dict, Iterable, List, Optional, Set, Tuple, Union,
)
import asyncio
import logging
import threading
import time

from pokerledger.core.address import (
    Address, AddressLike, to_address, name_from_table_id,
    get_seat_address, get_hand_address, get_deck_address,
)
from pokerledger.core.constants import (
    PROGRAM_ID, HISTORY_CAPACITY, SEEN_HANDS_MULTIPLIER, STATE_POLL_INTERVAL_SECONDS,
    is_seat_occupied,
)
from pokerledger.core.layout import (
    DecodeError, InvalidField, TableSnapshot, HandSnapshot, SeatSnapshot, DeckSnapshot,
    HandCompletedRecord, decode_table, decode_hand, decode_seat, decode_deck,
    decode_hand_completed, find_hand_completed,
)


logger = logging.getLogger(__name__)


class TransportError(Exception):
    """Recoverable fetch failure (network error, timeout). Eligible for retry."""


class LedgerFetcher(ABC):
    """
    Byte-fetch collaborator.

    fetch() returns the raw account bytes, None when the record does not
    exist, or raises TransportError when the ledger could not be reached.
    """

    @abstractmethod
    async def fetch(self, address: Address) -> Optional[bytes]:
        pass


class MemoryLedger(LedgerFetcher):
    """
    In-process ledger mirror.

    Holds account bytes by address; used by tests and by the HTTP
    ledger-mirror routes.
    """

    def __init__(self, accounts: Optional[Dict[AddressLike, bytes]] = None):
        self._accounts: Dict[Address, bytes] = {}
        self.calls: Counter = Counter()
        for address, data in (accounts or {}).items():
            self.put(address, data)

    def put(self, address: AddressLike, data: bytes) -> None:
        self._accounts[to_address(address)] = bytes(data)

    def delete(self, address: AddressLike) -> bool:
        return self._accounts.pop(to_address(address), None) is not None

    def clear(self) -> None:
        self._accounts.clear()
        self.calls.clear()

    async def fetch(self, address: Address) -> Optional[bytes]:
        self.calls[address] += 1
        return self._accounts.get(address)

    def items(self) -> List[Tuple[Address, bytes]]:
        return list(self._accounts.items())

    def __contains__(self, address: AddressLike) -> bool:
        return to_address(address) in self._accounts

    def __len__(self) -> int:
        return len(self._accounts)


@dataclass(frozen=True)
class NotFound:
    """
    No table record to project.

    retryable is True when the table fetch failed on transport rather
    than the record being absent.
    """
    table: Address
    retryable: bool = False


@dataclass(frozen=True)
class SeatSlot:
    """One seat position. seat is None for an empty (or unfetchable) seat."""
    seat_index: int
    seat: Optional[SeatSnapshot] = None
    missing: bool = False

    @property
    def status(self) -> str:
        if self.seat is None:
            return "empty"
        return self.seat.status.name.lower()

    def to_dict(self) -> Dict[str, Any]:
        result = self.seat.to_dict() if self.seat is not None else {}
        result.update({
            "seat_index": self.seat_index,
            "status": self.status,
            "missing": self.missing,
        })
        return result


@dataclass(frozen=True)
class GameView:
    """Point-in-time view of one table. Never mutated after publication."""
    table_address: Address
    table: TableSnapshot
    hand: Optional[HandSnapshot]
    deck: Optional[DeckSnapshot]
    seats: Tuple[SeatSlot, ...]
    history: Tuple[HandCompletedRecord, ...] = ()
    version: int = 0
    fetched_at: float = 0.0

    @property
    def name(self) -> str:
        return name_from_table_id(self.table.table_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table_address": str(self.table_address),
            "name": self.name,
            "table": self.table.to_dict(),
            "hand": self.hand.to_dict() if self.hand else None,
            "deck": self.deck.to_dict() if self.deck else None,
            "seats": [s.to_dict() for s in self.seats],
            "history": [h.to_dict() for h in self.history],
            "version": self.version,
            "fetched_at": self.fetched_at,
        }


class HandHistory:
    """
    Bounded history of completed hands for one table.

    Entries are kept most-recent-first by hand number, so arrival order
    does not matter. A hand number is recorded at most once; the memory
    of seen hand numbers outlives the entries themselves so that a late
    duplicate of an evicted hand is still recognised.
    """

    def __init__(self, capacity: int = HISTORY_CAPACITY, seen_capacity: Optional[int] = None):
        if capacity <= 0:
            raise ValueError(f"History capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.seen_capacity = max(seen_capacity or capacity * SEEN_HANDS_MULTIPLIER, capacity)
        self._entries: List[HandCompletedRecord] = []
        self._seen: "OrderedDict[int, None]" = OrderedDict()

    def add(self, record: HandCompletedRecord) -> bool:
        """Record a completed hand. Returns False for a duplicate or a hand too old to keep."""
        if record.hand_number in self._seen:
            return False
        if len(self._seen) >= self.seen_capacity and record.hand_number < min(self._seen):
            return False
        if len(self._entries) >= self.capacity and record.hand_number < self._entries[-1].hand_number:
            return False

        self._seen[record.hand_number] = None
        if len(self._seen) > self.seen_capacity:
            # Forget the lowest hand number
            del self._seen[min(self._seen)]

        self._entries.append(record)
        self._entries.sort(key=lambda r: r.hand_number, reverse=True)
        del self._entries[self.capacity:]
        return True

    @property
    def entries(self) -> Tuple[HandCompletedRecord, ...]:
        return tuple(self._entries)

    def __contains__(self, hand_number: int) -> bool:
        return hand_number in self._seen

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()
        self._seen.clear()


RefreshResult = Union[GameView, NotFound]
ViewListener = Callable[[GameView], None]


class StateProjector:
    """
    Owns the published views and hand histories.

    All writes go through _publish and _record under a single lock.
    At most one refresh per table is in flight: concurrent callers join
    the outstanding refresh instead of starting overlapping fetches.
    """

    def __init__(
        self,
        fetcher: LedgerFetcher,
        program_id: AddressLike = PROGRAM_ID,
        history_capacity: int = HISTORY_CAPACITY,
    ):
        self.fetcher = fetcher
        self.program_id = to_address(program_id)
        self.history_capacity = history_capacity

        self._lock = threading.Lock()
        self._views: Dict[Address, GameView] = {}
        self._histories: Dict[bytes, HandHistory] = {}
        self._tables_by_id: Dict[bytes, Address] = {}
        self._version = 0
        self._generation = 0
        self._published_generation: Dict[Address, int] = {}

        self._inflight: Dict[Address, asyncio.Task] = {}
        self._waiters: Counter = Counter()
        self._listeners: List[ViewListener] = []
        self._tasks: Set[asyncio.Task] = set()
        self._watched: Dict[Address, asyncio.Task] = {}
        self._running = False

    # ============= Lifecycle =============

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Allow background polling and subscriptions."""
        self._running = True
        logger.info("State projector started")

    async def stop(self) -> None:
        """Cancel polling, subscriptions and in-flight refreshes."""
        self._running = False
        tasks = list(self._tasks) + list(self._inflight.values())
        for task in tasks:
            task.cancel()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error(f"Background task ended with error: {result}")
        self._tasks.clear()
        self._watched.clear()
        logger.info("State projector stopped")

    async def __aenter__(self) -> StateProjector:
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    # ============= Views =============

    def get_view(self, table: AddressLike) -> Optional[GameView]:
        return self._views.get(to_address(table))

    def get_history(self, table_id: bytes) -> Tuple[HandCompletedRecord, ...]:
        history = self._histories.get(bytes(table_id))
        return history.entries if history else ()

    def add_listener(self, listener: ViewListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ViewListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def refresh(self, table: AddressLike) -> RefreshResult:
        """
        Fetch, decode and publish the current view of a table.

        Returns:
            The published GameView, or NotFound if the table record is
            absent (or unreachable, with retryable=True).

        Raises:
            DecodeError: If any fetched record fails to decode.
        """
        table = to_address(table)

        task = self._inflight.get(table)
        if task is None:
            with self._lock:
                self._generation += 1
                generation = self._generation
            task = asyncio.ensure_future(self._refresh(table, generation))
            self._inflight[table] = task
            task.add_done_callback(lambda t, key=table: self._clear_inflight(key, t))
        else:
            logger.debug(f"Joining in-flight refresh for {table}")

        self._waiters[task] += 1
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            # The last waiter to leave takes the refresh down with it
            if self._waiters[task] == 1 and not task.done():
                task.cancel()
            raise
        finally:
            self._waiters[task] -= 1
            if self._waiters[task] <= 0:
                del self._waiters[task]

    def _clear_inflight(self, table: Address, task: asyncio.Task) -> None:
        if self._inflight.get(table) is task:
            del self._inflight[table]

    async def _fetch(self, address: Address, label: str) -> Tuple[Optional[bytes], bool]:
        """Returns (data, transport_failed)."""
        try:
            return await self.fetcher.fetch(address), False
        except (TransportError, asyncio.TimeoutError) as e:
            logger.warning(f"Transport failure fetching {label} {address}: {e!r}")
            return None, True

    async def _fetch_seat(self, table: TableSnapshot, table_address: Address, seat_index: int) -> SeatSlot:
        if not is_seat_occupied(table.occupied_seats, seat_index):
            return SeatSlot(seat_index)

        address = get_seat_address(table_address, seat_index, table.max_players, self.program_id)
        data, _ = await self._fetch(address, f"seat {seat_index}")
        if data is None:
            return SeatSlot(seat_index, missing=True)

        seat = decode_seat(data)
        if seat.seat_index != seat_index:
            raise InvalidField(64, seat.seat_index, "seat_index", f"expected {seat_index}")
        return SeatSlot(seat_index, seat)

    async def _fetch_hand(self, table: TableSnapshot, table_address: Address) -> Optional[HandSnapshot]:
        address = get_hand_address(table_address, table.hand_number, self.program_id)
        data, _ = await self._fetch(address, f"hand {table.hand_number}")
        if data is None:
            # The hand record can lag behind the table's hand number
            return None
        hand = decode_hand(data)
        if hand.hand_number != table.hand_number:
            raise InvalidField(32, hand.hand_number, "hand_number", f"expected {table.hand_number}")
        return hand

    async def _fetch_deck(self, table: TableSnapshot, table_address: Address) -> Optional[DeckSnapshot]:
        address = get_deck_address(table_address, table.hand_number, self.program_id)
        data, _ = await self._fetch(address, f"deck {table.hand_number}")
        return decode_deck(data) if data is not None else None

    async def _refresh(self, table_address: Address, generation: int) -> RefreshResult:
        data, transport_failed = await self._fetch(table_address, "table")
        if data is None:
            if not transport_failed:
                logger.debug(f"Table {table_address} not found")
            return NotFound(table_address, retryable=transport_failed)

        try:
            table = decode_table(data)

            fetches = [
                self._fetch_seat(table, table_address, i) for i in range(table.max_players)
            ]
            if table.is_hand_in_progress:
                fetches.append(self._fetch_hand(table, table_address))
                fetches.append(self._fetch_deck(table, table_address))

            results = await asyncio.gather(*fetches)
        except DecodeError as e:
            logger.error(f"Decode error while refreshing {table_address}: {e}")
            raise

        seats = tuple(results[:table.max_players])
        hand = deck = None
        if table.is_hand_in_progress:
            hand, deck = results[table.max_players], results[table.max_players + 1]

        view = GameView(
            table_address=table_address,
            table=table,
            hand=hand,
            deck=deck,
            seats=seats,
            fetched_at=time.time(),
        )
        return self._publish(view, generation)

    def _publish(self, view: GameView, generation: int) -> GameView:
        with self._lock:
            key = view.table_address
            if generation < self._published_generation.get(key, 0):
                logger.debug(f"Discarding stale refresh of {key}")
                return self._views[key]

            self._version += 1
            history = self._histories.get(view.table.table_id)
            view = replace(
                view,
                history=history.entries if history else (),
                version=self._version,
            )
            self._views[key] = view
            self._published_generation[key] = generation
            self._tables_by_id[view.table.table_id] = key

        self._notify(view)
        return view

    def _notify(self, view: GameView) -> None:
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception as e:
                logger.error(f"View listener failed: {e}")

    # ============= Event ingestion =============

    def on_hand_completed(self, raw: bytes, signature: Optional[str] = None) -> bool:
        """
        Ingest a HandCompleted event payload (without discriminator).

        Returns:
            True if the hand was recorded, False if it was already present.

        Raises:
            DecodeError: If the payload does not decode.
        """
        try:
            record = decode_hand_completed(raw)
        except DecodeError as e:
            logger.error(f"Rejected HandCompleted payload ({signature}): {e}")
            raise
        return self._record(record.with_signature(signature))

    def on_program_logs(self, logs: Iterable[str], signature: Optional[str] = None) -> bool:
        """Ingest a transaction's log lines. Returns True if a new hand was recorded."""
        try:
            record = find_hand_completed(logs)
        except DecodeError as e:
            logger.error(f"Rejected HandCompleted log ({signature}): {e}")
            raise
        if record is None:
            return False
        return self._record(record.with_signature(signature))

    def _record(self, record: HandCompletedRecord) -> bool:
        with self._lock:
            history = self._histories.get(record.table_id)
            if history is None:
                history = HandHistory(self.history_capacity)
                self._histories[record.table_id] = history

            if not history.add(record):
                logger.debug(f"Duplicate hand #{record.hand_number}, skipping")
                return False
            logger.info(f"Recorded hand #{record.hand_number} for {name_from_table_id(record.table_id)!r}")

            # Republish the table view with the new history
            view = None
            address = self._tables_by_id.get(record.table_id)
            if address is not None and address in self._views:
                self._version += 1
                view = replace(self._views[address], history=history.entries, version=self._version)
                self._views[address] = view

        if view is not None:
            self._notify(view)
        return True

    def clear_history(self, table_id: bytes) -> None:
        with self._lock:
            self._histories.pop(bytes(table_id), None)

    # ============= Background tasks =============

    def _check_running(self) -> None:
        if not self._running:
            raise RuntimeError("State projector is not running; call start() first")

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def watch(self, table: AddressLike, interval: float = STATE_POLL_INTERVAL_SECONDS) -> asyncio.Task:
        """Poll a table every interval seconds until unwatched or stopped."""
        self._check_running()
        table = to_address(table)
        existing = self._watched.get(table)
        if existing is not None and not existing.done():
            return existing
        task = self._spawn(self._poll(table, interval))
        self._watched[table] = task
        return task

    def unwatch(self, table: AddressLike) -> None:
        task = self._watched.pop(to_address(table), None)
        if task is not None:
            task.cancel()

    async def _poll(self, table: Address, interval: float) -> None:
        logger.info(f"Polling {table} every {interval}s")
        while True:
            try:
                result = await self.refresh(table)
            except DecodeError as e:
                logger.error(f"Table {table} failed to decode, retrying in {interval}s: {e}")
            else:
                if isinstance(result, NotFound) and result.retryable:
                    logger.warning(f"Table {table} unreachable, retrying in {interval}s")
            await asyncio.sleep(interval)

    def subscribe(self, source: AsyncIterator[Tuple[bytes, Optional[str]]]) -> asyncio.Task:
        """Consume (raw_event_bytes, signature) deliveries from a push source."""
        self._check_running()
        return self._spawn(self._consume(source))

    async def _consume(self, source: AsyncIterator[Tuple[bytes, Optional[str]]]) -> None:
        async for raw, signature in source:
            try:
                self.on_hand_completed(raw, signature)
            except DecodeError:
                # Already logged; later deliveries are still ingested
                continue

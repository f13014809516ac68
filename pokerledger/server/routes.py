"""
HTTP API Routes for PokerLedger.

These routes expose address derivation, record decoding, hand
evaluation and projected table views. Live view updates are pushed
via WebSocket.
"""

from typing import Dict, Any, Optional
import base64
import binascii

from fastapi import APIRouter, HTTPException, Request

from pokerledger import __version__
from pokerledger.core.address import (
    Address, to_address, table_id_from_name,
    get_table_address, get_seat_address, get_hand_address, get_deck_address, get_vault_address,
)
from pokerledger.core.card import Card
from pokerledger.core.constants import MAX_PLAYERS
from pokerledger.core.hand import evaluate_hand, get_hand_description
from pokerledger.core.layout import DecodeError, DECODERS
from pokerledger.core.projector import StateProjector, MemoryLedger, NotFound
from pokerledger.server.schemas import (
    DecodeRequest, EvaluateRequest, LedgerWriteRequest, EventRequest,
    HealthSchema, AddressesSchema, EvaluationSchema, LedgerWriteSchema,
    EventResultSchema, HistorySchema,
)

router = APIRouter()


def get_projector(request: Request) -> StateProjector:
    """Get the application's state projector."""
    return request.app.state.projector


def get_ledger(request: Request) -> MemoryLedger:
    """Get the in-memory ledger mirror, if the app has one."""
    ledger = getattr(request.app.state, "ledger", None)
    if ledger is None:
        raise HTTPException(status_code=501, detail="Ledger mirror not available")
    return ledger


def _decode_base64(data: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="Invalid base64 data")


def _parse_address(text: str) -> Address:
    try:
        return to_address(text)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid address: {e}")


def _table_address(projector: StateProjector, table_name: str) -> Address:
    return get_table_address(table_id_from_name(table_name), program_id=projector.program_id)


@router.get("/health", response_model=HealthSchema)
async def health(request: Request) -> Dict[str, Any]:
    """Service liveness and configuration."""
    projector = get_projector(request)
    return {
        "status": "ok",
        "version": __version__,
        "program_id": str(projector.program_id),
        "running": projector.is_running,
    }


@router.get("/addresses/{table_name}", response_model=AddressesSchema)
async def get_addresses(request: Request, table_name: str, hand_number: Optional[int] = None) -> Dict[str, Any]:
    """
    Derive every record address for a table.

    The hand and deck addresses are included when hand_number is given.
    """
    program_id = get_projector(request).program_id
    table_id = table_id_from_name(table_name)
    table = get_table_address(table_id, program_id=program_id)

    response: Dict[str, Any] = {
        "table_name": table_name,
        "table_id": table_id.hex(),
        "table": str(table),
        "vault": str(get_vault_address(table, program_id=program_id)),
        "seats": [
            str(get_seat_address(table, i, MAX_PLAYERS, program_id)) for i in range(MAX_PLAYERS)
        ],
    }

    if hand_number is not None:
        try:
            response["hand"] = str(get_hand_address(table, hand_number, program_id))
            response["deck"] = str(get_deck_address(table, hand_number, program_id))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        response["hand_number"] = hand_number

    return response


@router.post("/decode/{kind}")
async def decode_record(kind: str, req: DecodeRequest) -> Dict[str, Any]:
    """
    Decode raw record bytes of the named kind.

    Kinds: table, hand, seat, deck, hand_completed.
    """
    decoder = DECODERS.get(kind)
    if decoder is None:
        raise HTTPException(status_code=404, detail=f"Unknown record kind: {kind}")

    data = _decode_base64(req.data)
    try:
        record = decoder(data)
    except DecodeError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return {"kind": kind, "record": record.to_dict()}


@router.post("/evaluate", response_model=EvaluationSchema)
async def evaluate(req: EvaluateRequest) -> Dict[str, Any]:
    """Evaluate 5-7 cards into a category and tie-break kickers."""
    try:
        cards = [Card.from_string(c) for c in req.cards]
        hand = evaluate_hand(cards)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "category": hand.name,
        "rank": int(hand.category),
        "kickers": list(hand.kickers),
        "description": get_hand_description(hand),
        "cards": [c.to_dict() for c in hand.cards],
    }


# ============= Ledger Mirror Routes =============

@router.put("/ledger/{address}", response_model=LedgerWriteSchema)
async def put_account(request: Request, address: str, req: LedgerWriteRequest) -> Dict[str, Any]:
    """Store account bytes in the in-memory ledger."""
    ledger = get_ledger(request)
    key = _parse_address(address)
    data = _decode_base64(req.data)
    ledger.put(key, data)
    return {"address": str(key), "size": len(data)}


@router.delete("/ledger/{address}")
async def delete_account(request: Request, address: str) -> Dict[str, Any]:
    """Remove an account from the in-memory ledger."""
    ledger = get_ledger(request)
    key = _parse_address(address)
    if not ledger.delete(key):
        raise HTTPException(status_code=404, detail=f"Account {key} not found")
    return {"address": str(key), "deleted": True}


# ============= Table View Routes =============

@router.get("/tables/{table_name}")
async def get_table(request: Request, table_name: str) -> Dict[str, Any]:
    """
    Refresh and return the projected view of a table.

    404 when the table record does not exist, 503 when the ledger could
    not be reached, 502 when a record fails to decode.
    """
    projector = get_projector(request)
    address = _table_address(projector, table_name)

    try:
        result = await projector.refresh(address)
    except DecodeError as e:
        raise HTTPException(status_code=502, detail=f"Undecodable ledger record: {e}")

    if isinstance(result, NotFound):
        if result.retryable:
            raise HTTPException(status_code=503, detail=f"Table {table_name} temporarily unavailable")
        raise HTTPException(status_code=404, detail=f"Table {table_name} not found")

    return result.to_dict()


@router.get("/tables/{table_name}/history", response_model=HistorySchema)
async def get_history(request: Request, table_name: str) -> Dict[str, Any]:
    """Completed hands for a table, most recent first."""
    projector = get_projector(request)
    history = projector.get_history(table_id_from_name(table_name))
    return {
        "table_name": table_name,
        "hands": [h.to_dict() for h in history],
    }


@router.post("/events", response_model=EventResultSchema)
async def post_event(request: Request, req: EventRequest) -> Dict[str, Any]:
    """Ingest a HandCompleted event from a raw payload or transaction logs."""
    projector = get_projector(request)

    if req.data is None and req.logs is None:
        raise HTTPException(status_code=400, detail="Either data or logs is required")

    try:
        if req.data is not None:
            recorded = projector.on_hand_completed(_decode_base64(req.data), req.signature)
        else:
            recorded = projector.on_program_logs(req.logs, req.signature)
    except DecodeError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return {"recorded": recorded}

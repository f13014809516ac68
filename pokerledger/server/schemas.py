"""
Pydantic schemas for API request/response validation.
"""

from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field


# ============= Request Schemas =============

class DecodeRequest(BaseModel):
    """Raw record bytes to decode."""
    data: str = Field(..., description="Base64-encoded record bytes")


class EvaluateRequest(BaseModel):
    """Cards to evaluate."""
    cards: List[str] = Field(..., description="5-7 cards like 'As', 'Td' or '10h'")


class LedgerWriteRequest(BaseModel):
    """Account bytes to mirror into the in-memory ledger."""
    data: str = Field(..., description="Base64-encoded account bytes")


class EventRequest(BaseModel):
    """A HandCompleted delivery, either as a raw payload or as transaction logs."""
    data: Optional[str] = Field(default=None, description="Base64 event payload without discriminator")
    logs: Optional[List[str]] = Field(default=None, description="Transaction log lines")
    signature: Optional[str] = None


# ============= Response Schemas =============

class CardSchema(BaseModel):
    """Card representation."""
    value: int
    rank: str
    suit: str
    text: str
    color: str


class HealthSchema(BaseModel):
    """Service health."""
    status: str
    version: str
    program_id: str
    running: bool


class AddressesSchema(BaseModel):
    """Derived record addresses for one table."""
    table_name: str
    table_id: str
    table: str
    vault: str
    seats: List[str]
    hand_number: Optional[int] = None
    hand: Optional[str] = None
    deck: Optional[str] = None


class EvaluationSchema(BaseModel):
    """Result of evaluating a hand."""
    category: str
    rank: int
    kickers: List[int]
    description: str
    cards: List[CardSchema]


class LedgerWriteSchema(BaseModel):
    """Acknowledgement of a ledger mirror write."""
    address: str
    size: int


class EventResultSchema(BaseModel):
    """Whether an event added a new hand to history."""
    recorded: bool


class HistorySchema(BaseModel):
    """Completed hands, most recent first."""
    table_name: str
    hands: List[Dict[str, Any]]


class ErrorSchema(BaseModel):
    """Error response."""
    error: str
    detail: Optional[str] = None


# ============= WebSocket Message Schemas =============

class WSMessage(BaseModel):
    """Base WebSocket message."""
    type: str
    table: Optional[str] = None


class WSWatchMessage(BaseModel):
    """Start receiving views for a table."""
    type: str = "watch"
    table: str = Field(..., min_length=1)


class WSErrorMessage(BaseModel):
    """WebSocket error message."""
    type: str = "error"
    message: str

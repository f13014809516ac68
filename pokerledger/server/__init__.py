"""
PokerLedger Server - FastAPI + WebSocket Server Layer
"""

from pokerledger.server.app import app, create_app

__all__ = ["app", "create_app"]

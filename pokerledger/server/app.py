"""
FastAPI Application Entry Point for PokerLedger.

This module creates and configures the FastAPI application with:
- HTTP routes for addresses, decoding, evaluation and table views
- WebSocket endpoint for live view updates
- An in-memory ledger mirror feeding the state projector
- CORS middleware for development

Configuration (environment):
    POKERLEDGER_PROGRAM_ID     program id used for address derivation
    POKERLEDGER_POLL_INTERVAL  seconds between refreshes of watched tables
"""

from typing import Optional
import os
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pokerledger import __version__
from pokerledger.core.constants import PROGRAM_ID, STATE_POLL_INTERVAL_SECONDS
from pokerledger.core.projector import StateProjector, MemoryLedger
from pokerledger.server.routes import router
from pokerledger.server.websocket import ViewManager, websocket_endpoint

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def create_app(
    projector: Optional[StateProjector] = None,
    poll_interval: Optional[float] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        projector: State projector to serve; defaults to one backed by a
            fresh in-memory ledger
        poll_interval: Refresh interval for watched tables

    Returns:
        Configured FastAPI application instance
    """
    if poll_interval is None:
        poll_interval = float(os.environ.get("POKERLEDGER_POLL_INTERVAL", STATE_POLL_INTERVAL_SECONDS))

    if projector is None:
        program_id = os.environ.get("POKERLEDGER_PROGRAM_ID", PROGRAM_ID)
        projector = StateProjector(MemoryLedger(), program_id=program_id)

    app = FastAPI(
        title="PokerLedger",
        description="Ledger-hosted Texas Hold'em client core with WebSocket views",
        version=__version__,
    )

    # CORS middleware for development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.projector = projector
    app.state.ledger = projector.fetcher if isinstance(projector.fetcher, MemoryLedger) else None
    app.state.manager = ViewManager(projector, poll_interval=poll_interval)

    # Include HTTP routes
    app.include_router(router)

    # WebSocket endpoint
    app.websocket("/ws")(websocket_endpoint)

    @app.on_event("startup")
    async def startup_event():
        logger.info(f"PokerLedger server starting up (program {projector.program_id})...")
        projector.start()

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("PokerLedger server shutting down...")
        await projector.stop()

    return app


# Create the application instance
app = create_app()


def main():
    """Run the server (for use as entry point)."""
    import uvicorn
    uvicorn.run(
        "pokerledger.server.app:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
PokerLedger - Server Startup Script

Usage:
    python run.py [--host HOST] [--port PORT] [--reload] [--poll-interval SECONDS] [--program-id ID]
"""

import argparse
import os
import uvicorn

from pokerledger.core.constants import PROGRAM_ID, STATE_POLL_INTERVAL_SECONDS


def main():
    parser = argparse.ArgumentParser(description="PokerLedger Server")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    parser.add_argument("--poll-interval", type=float, default=STATE_POLL_INTERVAL_SECONDS,
                        help="Seconds between refreshes of watched tables")
    parser.add_argument("--program-id", default=PROGRAM_ID, help="Program id for address derivation")
    args = parser.parse_args()

    # The app is imported by uvicorn, possibly in a reloader subprocess
    os.environ["POKERLEDGER_POLL_INTERVAL"] = str(args.poll_interval)
    os.environ["POKERLEDGER_PROGRAM_ID"] = args.program_id

    uvicorn.run(
        "pokerledger.server.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()

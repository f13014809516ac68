"""
WebSocket handling for live table views.

This module provides:
- ViewManager: Tracks which connections watch which tables and pushes
  every published view to them
- WebSocket endpoint: Handles watch/unwatch requests from clients
"""

from __future__ import annotations
from typing import Dict, Any, Set
from dataclasses import dataclass, field
import asyncio
import logging

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from pokerledger.core.address import Address, get_table_address, table_id_from_name
from pokerledger.core.constants import STATE_POLL_INTERVAL_SECONDS
from pokerledger.core.layout import DecodeError
from pokerledger.core.projector import StateProjector, GameView, NotFound
from pokerledger.server.schemas import WSWatchMessage


logger = logging.getLogger(__name__)


@dataclass
class TableRoom:
    """A watched table and the connections watching it."""
    table_name: str
    table_address: Address
    connections: Dict[int, WebSocket] = field(default_factory=dict)

    async def broadcast(self, message: Dict[str, Any]):
        """Send a message to every watching connection."""
        for ws in list(self.connections.values()):
            try:
                await ws.send_json(message)
            except Exception as e:
                logger.error(f"Error sending view of {self.table_name}: {e}")


def view_message(view: GameView) -> Dict[str, Any]:
    return {"type": "view", **view.to_dict()}


def not_found_message(table_name: str, result: NotFound) -> Dict[str, Any]:
    return {"type": "not_found", "table": table_name, "retryable": result.retryable}


class ViewManager:
    """
    Fans projector publications out to WebSocket watchers.

    Usage:
        manager = ViewManager(projector, poll_interval=3.0)
        await manager.watch("high-rollers", websocket)
        await manager.unwatch("high-rollers", websocket)
        await manager.disconnect(websocket)
    """

    def __init__(self, projector: StateProjector, poll_interval: float = STATE_POLL_INTERVAL_SECONDS):
        self.projector = projector
        self.poll_interval = poll_interval
        self.rooms: Dict[Address, TableRoom] = {}
        self._pushes: Set[asyncio.Task] = set()
        projector.add_listener(self.on_view)

    def table_address(self, table_name: str) -> Address:
        return get_table_address(table_id_from_name(table_name), program_id=self.projector.program_id)

    def on_view(self, view: GameView) -> None:
        """Projector listener: schedule a broadcast of the new view."""
        room = self.rooms.get(view.table_address)
        if room is None or not room.connections:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No event loop to push view of {room.table_name}")
            return
        task = loop.create_task(room.broadcast(view_message(view)))
        self._pushes.add(task)
        task.add_done_callback(self._push_done)

    def _push_done(self, task: asyncio.Task) -> None:
        self._pushes.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"View broadcast failed: {task.exception()}")

    async def watch(self, table_name: str, websocket: WebSocket) -> Dict[str, Any]:
        """
        Register a connection as a watcher and return the current view.

        Background polling starts with the first watcher when the
        projector is running.
        """
        address = self.table_address(table_name)
        room = self.rooms.get(address)
        if room is None:
            room = TableRoom(table_name=table_name, table_address=address)
            self.rooms[address] = room
        room.connections[id(websocket)] = websocket
        logger.info(f"Watching {table_name} ({len(room.connections)} connections)")

        if self.projector.is_running:
            self.projector.watch(address, self.poll_interval)

        view = self.projector.get_view(address)
        if view is not None:
            return view_message(view)

        result = await self.projector.refresh(address)
        if isinstance(result, NotFound):
            return not_found_message(table_name, result)
        return view_message(result)

    async def unwatch(self, table_name: str, websocket: WebSocket) -> None:
        address = self.table_address(table_name)
        room = self.rooms.get(address)
        if room is None:
            return
        room.connections.pop(id(websocket), None)
        if not room.connections:
            self._close_room(address)

    async def disconnect(self, websocket: WebSocket) -> None:
        """Drop a connection from every table it watches."""
        for address, room in list(self.rooms.items()):
            room.connections.pop(id(websocket), None)
            if not room.connections:
                self._close_room(address)

    def _close_room(self, address: Address) -> None:
        room = self.rooms.pop(address)
        self.projector.unwatch(address)
        logger.info(f"Stopped watching {room.table_name}")

    async def handle_message(self, websocket: WebSocket, message: Dict[str, Any]) -> Dict[str, Any]:
        """
        Handle a message from a client.

        Returns:
            Response dict
        """
        msg_type = message.get("type", "")

        if msg_type not in ("watch", "unwatch", "get_view"):
            return {"type": "error", "message": f"Unknown message type: {msg_type}"}

        try:
            request = WSWatchMessage(**message)
        except ValidationError:
            return {"type": "error", "message": "table is required"}

        if msg_type == "watch":
            return await self.watch(request.table, websocket)
        elif msg_type == "unwatch":
            await self.unwatch(request.table, websocket)
            return {"type": "unwatched", "table": request.table}
        else:
            result = await self.projector.refresh(self.table_address(request.table))
            if isinstance(result, NotFound):
                return not_found_message(request.table, result)
            return view_message(result)


async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for live table views.

    Protocol:
    1. Client connects and sends: {"type": "watch", "table": "high-rollers"}
    2. Server replies with the current view (or not_found)
    3. Server pushes {"type": "view", ...} on every publish for that table
    4. Client may send unwatch or get_view at any time
    """
    manager: ViewManager = websocket.app.state.manager
    await websocket.accept()

    try:
        while True:
            message = await websocket.receive_json()
            try:
                response = await manager.handle_message(websocket, message)
            except DecodeError as e:
                response = {"type": "error", "message": f"Undecodable ledger record: {e}"}
            await websocket.send_json(response)

    except WebSocketDisconnect:
        logger.info("WebSocket disconnected")
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        await manager.disconnect(websocket)

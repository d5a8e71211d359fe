"""
Canvas sync over WebSockets.

Every canvas attached to the editor session gets the full state once on
connect (`graph_state`), then a compact `graph_updated` notice whenever the
store changes. Notices carry the history and selection flags so a client
can refresh toolbars without refetching; it only needs GET /api/graph when
`version` moved past the last graph it rendered.
"""
import asyncio
import logging

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from workflow_core import GraphStore

logger = logging.getLogger(__name__)


class WebSocketManager:
    """
    Keeps connected canvases in step with one GraphStore.

    A canvas that reconnects mid-session is caught up by the initial
    `graph_state`, so no per-client backlog is kept.
    """

    def __init__(self, store: GraphStore):
        self._store = store
        self._clients: set[WebSocket] = set()
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._clients)

    def _update_message(self) -> dict:
        store = self._store
        return {
            "type": "graph_updated",
            "version": store.version,
            "is_dirty": store.is_dirty,
            "can_undo": store.can_undo,
            "can_redo": store.can_redo,
            "in_gesture": store.in_gesture,
            "selection": {
                "node_ids": store.selected_node_ids,
                "edge_ids": store.selected_edge_ids,
            },
        }

    async def connect(self, websocket: WebSocket):
        """Accept a canvas and send it the current graph."""
        await websocket.accept()
        # under the lock so no update can overtake the initial state
        async with self._lock:
            await websocket.send_json({"type": "graph_state", **self._store.get_state()})
            self._clients.add(websocket)
        logger.info("Canvas connected (%d attached)", len(self._clients))

    async def disconnect(self, websocket: WebSocket):
        async with self._lock:
            self._clients.discard(websocket)
        logger.info("Canvas disconnected (%d attached)", len(self._clients))

    async def publish(self):
        """Send the current store flags to every canvas; drop the ones that fail."""
        message = self._update_message()
        async with self._lock:
            stale = []
            for websocket in self._clients:
                if websocket.client_state != WebSocketState.CONNECTED:
                    stale.append(websocket)
                    continue
                try:
                    await websocket.send_json(message)
                except Exception as e:
                    logger.debug("Dropping canvas after failed send: %s", e)
                    stale.append(websocket)
            self._clients.difference_update(stale)

    async def close_session(self):
        """Tell every canvas the editor session is gone and forget them."""
        async with self._lock:
            for websocket in self._clients:
                try:
                    await websocket.send_json({"type": "session_closed", "version": self._store.version})
                except Exception as e:
                    logger.debug("Canvas already gone at shutdown: %s", e)
            self._clients.clear()

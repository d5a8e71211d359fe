"""
Workflow Editor Backend - FastAPI Application

This is the main entry point for the workflow editor backend.
It provides:
- REST API carrying canvas intents into the graph store (nodes, edges,
  gestures, selection, clipboard, groups, undo/redo, load/mark-saved, layout)
- WebSocket endpoint for real-time change notifications
- CORS configuration for local frontend development

One GraphStore is constructed when the app starts (editor mount) and closed
when it stops (unmount). Handlers receive it through a dependency rather
than a module-level global.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from workflow_core import (
    ConnectRequest, CreateNodeRequest, EditorSettings, GestureRequest,
    GraphStore, GroupMembersRequest, GroupRequest, GroupStyleRequest,
    IdsRequest, LayoutRequest, MetaRequest, PasteRequest,
    PositionsRequest, SelectRequest, UpdateNodeRequest, ValidationError,
    get_settings, validate_graph, validation_summary,
)

from .websocket_manager import WebSocketManager

logger = logging.getLogger(__name__)


def configure_logging(settings: EditorSettings):
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# --- Async change notification ---
# Bridge between sync GraphStore callbacks and async WebSocket broadcasts

async def change_broadcaster(ws_manager: WebSocketManager, changed: asyncio.Event):
    """Background task that publishes store changes to attached canvases."""
    while True:
        await changed.wait()
        changed.clear()
        await ws_manager.publish()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Mount the editor session on startup, tear it down on shutdown."""
    settings: EditorSettings = app.state.settings
    configure_logging(settings)

    store = GraphStore(settings)
    ws_manager = WebSocketManager(store)
    changed = asyncio.Event()
    store.on_change(changed.set)

    app.state.store = store
    app.state.ws_manager = ws_manager

    broadcaster_task = asyncio.create_task(change_broadcaster(ws_manager, changed))
    logger.info("Editor session started")

    yield

    await ws_manager.close_session()
    broadcaster_task.cancel()
    try:
        await broadcaster_task
    except asyncio.CancelledError:
        pass
    store.close()
    logger.info("Editor session closed")


def get_store(request: Request) -> GraphStore:
    return request.app.state.store


def _state(store: GraphStore, **extra) -> dict:
    return {"success": True, **extra, **store.get_state()}


def create_app(settings: Optional[EditorSettings] = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Workflow Editor API",
        description="Graph edit engine behind the workflow editor canvas",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.settings = settings

    # CORS for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"success": False, **exc.to_dict()})

    # --- Health Check ---

    @app.get("/api/health")
    async def health_check(request: Request):
        """Health check endpoint."""
        return {"status": "ok", "connections": request.app.state.ws_manager.connection_count}

    # --- Graph State ---

    @app.get("/api/graph")
    async def get_graph(store: GraphStore = Depends(get_store)):
        """Get the current graph, selection and history flags."""
        return store.get_state()

    @app.post("/api/graph/load")
    async def load_graph(data: dict, store: GraphStore = Depends(get_store)):
        """Replace the graph with a saved snapshot (resets history and dirty flag)."""
        issues = store.load(data)
        return _state(store, issues=[i.to_dict() for i in issues])

    @app.post("/api/graph/clear")
    async def clear_graph(store: GraphStore = Depends(get_store)):
        store.clear()
        return _state(store)

    @app.post("/api/graph/mark-saved")
    async def mark_saved(store: GraphStore = Depends(get_store)):
        """Called by the persistence layer after it stored the snapshot."""
        store.mark_saved()
        return _state(store)

    @app.patch("/api/graph/meta")
    async def update_meta(request: MetaRequest, store: GraphStore = Depends(get_store)):
        store.update_meta(name=request.name, description=request.description)
        return _state(store)

    @app.get("/api/validate")
    async def validate(store: GraphStore = Depends(get_store)):
        """Run the full structural check over the current graph."""
        issues = validate_graph(store.snapshot())
        return {
            "issues": [i.to_dict() for i in issues],
            "summary": validation_summary(issues),
        }

    # --- Nodes ---

    @app.post("/api/nodes")
    async def create_node(request: CreateNodeRequest, store: GraphStore = Depends(get_store)):
        """Palette drop: create a node of the given type at a canvas position."""
        node = store.create_node(request.type, request.x, request.y, request.label)
        return _state(store, node=node.to_json_dict())

    @app.patch("/api/nodes/{node_id}")
    async def update_node(node_id: str, request: UpdateNodeRequest, store: GraphStore = Depends(get_store)):
        """Inspector write-back."""
        node = store.update_node(node_id, request.model_dump(exclude_none=True))
        if node is None:
            raise HTTPException(status_code=404, detail=f"Node not found: {node_id}")
        return _state(store, node=node.to_json_dict())

    @app.post("/api/nodes/delete")
    async def delete_nodes(request: IdsRequest, store: GraphStore = Depends(get_store)):
        """Delete nodes; pass no ids to delete the current selection."""
        ids = request.ids or store.selected_node_ids
        removed = store.remove_nodes(ids)
        return _state(store, removed=removed)

    @app.post("/api/nodes/positions")
    async def move_nodes(request: PositionsRequest, store: GraphStore = Depends(get_store)):
        """Drag frame or layout write-back."""
        moved = store.update_node_positions(request.positions)
        return _state(store, moved=moved)

    # --- Edges ---

    @app.post("/api/edges/connect")
    async def connect(request: ConnectRequest, store: GraphStore = Depends(get_store)):
        """
        Connect two ports. A refused connection is a normal response with
        `accepted: false` and the rule that failed.
        """
        result = store.connect(
            request.source, request.source_handle,
            request.target, request.target_handle,
        )
        return {**result.to_dict(), **store.get_state()}

    @app.post("/api/edges/delete")
    async def delete_edges(request: IdsRequest, store: GraphStore = Depends(get_store)):
        ids = request.ids or store.selected_edge_ids
        removed = store.remove_edges(ids)
        return _state(store, removed=removed)

    # --- Gestures ---

    @app.post("/api/gesture/begin")
    async def begin_gesture(request: GestureRequest, store: GraphStore = Depends(get_store)):
        started = store.begin_gesture(request.label)
        return _state(store, started=started)

    @app.post("/api/gesture/end")
    async def end_gesture(store: GraphStore = Depends(get_store)):
        recorded = store.end_gesture()
        return _state(store, recorded=recorded)

    @app.post("/api/gesture/cancel")
    async def cancel_gesture(store: GraphStore = Depends(get_store)):
        cancelled = store.cancel_gesture()
        return _state(store, cancelled=cancelled)

    # --- Undo/Redo ---

    @app.post("/api/undo")
    async def undo(store: GraphStore = Depends(get_store)):
        return _state(store, applied=store.undo())

    @app.post("/api/redo")
    async def redo(store: GraphStore = Depends(get_store)):
        return _state(store, applied=store.redo())

    # --- Selection ---

    @app.post("/api/selection")
    async def select(request: SelectRequest, store: GraphStore = Depends(get_store)):
        if request.edge_ids and not request.node_ids:
            store.select_edges(request.edge_ids, additive=request.additive)
        else:
            store.select(request.node_ids, additive=request.additive)
            if request.edge_ids:
                store.select_edges(request.edge_ids, additive=True)
        return _state(store)

    @app.post("/api/selection/clear")
    async def clear_selection(store: GraphStore = Depends(get_store)):
        store.clear_selection()
        return _state(store)

    @app.post("/api/selection/all")
    async def select_all(store: GraphStore = Depends(get_store)):
        store.select_all()
        return _state(store)

    # --- Clipboard ---

    @app.post("/api/clipboard/copy")
    async def copy_nodes(store: GraphStore = Depends(get_store)):
        return _state(store, copied=store.copy_selected_nodes())

    @app.post("/api/clipboard/paste")
    async def paste_nodes(request: PasteRequest, store: GraphStore = Depends(get_store)):
        offset = None
        if request.x is not None and request.y is not None:
            offset = (request.x, request.y)
        return _state(store, node_ids=store.paste_nodes(offset))

    @app.post("/api/clipboard/duplicate")
    async def duplicate_nodes(store: GraphStore = Depends(get_store)):
        return _state(store, node_ids=store.duplicate_selected_nodes())

    # --- Groups ---

    @app.post("/api/groups")
    async def create_group(request: GroupRequest, store: GraphStore = Depends(get_store)):
        """Wrap nodes in a group frame sized around them."""
        group_id = store.create_group(request.node_ids, request.label, request.color)
        if group_id is None:
            raise HTTPException(status_code=400, detail="No groupable nodes given")
        return _state(store, group_id=group_id)

    @app.post("/api/groups/{group_id}/ungroup")
    async def ungroup(group_id: str, store: GraphStore = Depends(get_store)):
        if not store.ungroup(group_id):
            raise HTTPException(status_code=404, detail=f"Group not found: {group_id}")
        return _state(store)

    @app.get("/api/groups/{group_id}/children")
    async def group_children(group_id: str, store: GraphStore = Depends(get_store)):
        return {"nodes": [n.to_json_dict() for n in store.get_group_children(group_id)]}

    @app.post("/api/groups/{group_id}/nodes")
    async def add_to_group(group_id: str, request: GroupMembersRequest, store: GraphStore = Depends(get_store)):
        added = store.add_nodes_to_group(request.node_ids, group_id)
        return _state(store, changed=added)

    @app.post("/api/groups/remove-nodes")
    async def remove_from_group(request: GroupMembersRequest, store: GraphStore = Depends(get_store)):
        removed = store.remove_nodes_from_group(request.node_ids)
        return _state(store, changed=removed)

    @app.patch("/api/groups/{group_id}")
    async def update_group(group_id: str, request: GroupStyleRequest, store: GraphStore = Depends(get_store)):
        changed = store.update_group_style(
            group_id, label=request.label, color=request.color, collapsed=request.collapsed,
        )
        return _state(store, changed=changed)

    @app.post("/api/groups/{group_id}/toggle")
    async def toggle_group(group_id: str, store: GraphStore = Depends(get_store)):
        return _state(store, changed=store.toggle_group_collapse(group_id))

    # --- Layout ---

    @app.post("/api/layout")
    async def auto_layout(request: LayoutRequest, store: GraphStore = Depends(get_store)):
        try:
            moved = store.apply_layout(request.strategy, request.direction)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return _state(store, moved=moved)

    # --- WebSocket ---

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """WebSocket endpoint for graph change notifications."""
        ws_manager: WebSocketManager = websocket.app.state.ws_manager
        await ws_manager.connect(websocket)
        try:
            while True:
                # Keep the connection open; clients only listen
                await websocket.receive_text()
        except WebSocketDisconnect:
            await ws_manager.disconnect(websocket)

    return app


app = create_app()


# --- Run with uvicorn ---

def run():
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()

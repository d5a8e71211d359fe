"""End-to-end tests for the HTTP backend."""

import pytest
from fastapi.testclient import TestClient

from workflow_backend.main import create_app
from workflow_core import EditorSettings


@pytest.fixture
def client():
    with TestClient(create_app(EditorSettings())) as client:
        yield client


def _add(client, node_type="code", x=0, y=0):
    response = client.post("/api/nodes", json={"type": node_type, "x": x, "y": y})
    assert response.status_code == 200
    return response.json()["node"]["id"]


def test_health(client):
    assert client.get("/api/health").json()["status"] == "ok"


def test_create_connect_undo(client):
    a = _add(client, "start")
    b = _add(client, "end", 300, 0)

    body = client.post("/api/edges/connect", json={
        "source": a, "sourceHandle": "output", "target": b, "targetHandle": "input",
    }).json()
    assert body["accepted"]
    assert len(body["graph"]["edges"]) == 1
    assert body["is_dirty"]

    body = client.post("/api/undo").json()
    assert body["applied"]
    assert body["graph"]["edges"] == []
    assert body["can_redo"]


def test_rejected_connection_is_not_an_http_error(client):
    a = _add(client)
    response = client.post("/api/edges/connect", json={
        "source": a, "sourceHandle": "output", "target": a, "targetHandle": "input",
    })
    assert response.status_code == 200
    assert response.json()["accepted"] is False
    assert response.json()["reason"] == "self_loop"


def test_drag_gesture_is_one_undo_step(client):
    a = _add(client)
    client.post("/api/gesture/begin", json={"label": "drag"})
    for x in range(10, 60, 10):
        client.post("/api/nodes/positions", json={"positions": {a: {"x": x, "y": 0}}})
    assert client.post("/api/gesture/end").json()["recorded"]

    body = client.post("/api/undo").json()
    assert body["graph"]["nodes"][0]["position"]["x"] == 0


def test_update_missing_node_is_404(client):
    response = client.patch("/api/nodes/ghost", json={"label": "x"})
    assert response.status_code == 404


def test_malformed_load_is_400_and_empty(client):
    _add(client)
    response = client.post("/api/graph/load", json={"nodes": [{"id": "x", "type": "nope"}]})
    assert response.status_code == 400
    assert response.json()["success"] is False
    assert client.get("/api/graph").json()["graph"]["nodes"] == []


def test_load_and_mark_saved(client):
    graph = {
        "nodes": [
            {"id": "a", "type": "start", "position": {"x": 0, "y": 0}},
            {"id": "b", "type": "end", "position": {"x": 200, "y": 0}},
        ],
        "edges": [{"id": "e1", "source": "a", "target": "b"}],
    }
    body = client.post("/api/graph/load", json=graph).json()
    assert not body["is_dirty"]
    assert not body["can_undo"]

    client.patch("/api/nodes/a", json={"label": "Begin"})
    assert client.get("/api/graph").json()["is_dirty"]
    assert not client.post("/api/graph/mark-saved").json()["is_dirty"]


def test_select_copy_paste(client):
    a = _add(client)
    client.post("/api/selection", json={"node_ids": [a]})
    assert client.post("/api/clipboard/copy").json()["copied"]
    body = client.post("/api/clipboard/paste", json={}).json()
    assert len(body["node_ids"]) == 1
    assert body["selection"]["node_ids"] == body["node_ids"]
    assert len(body["graph"]["nodes"]) == 2


def test_delete_selection_when_no_ids(client):
    a = _add(client)
    _add(client)
    client.post("/api/selection", json={"node_ids": [a]})
    body = client.post("/api/nodes/delete", json={}).json()
    assert body["removed"]
    assert a not in [n["id"] for n in body["graph"]["nodes"]]


def test_layout_strategies(client):
    _add(client)
    assert client.post("/api/layout", json={"strategy": "grid"}).status_code == 200
    assert client.post("/api/layout", json={"strategy": "spiral"}).status_code == 400


def test_validate_endpoint(client):
    _add(client, "end")
    body = client.get("/api/validate").json()
    assert body["summary"]["valid"]
    assert body["summary"]["warnings"] == 1


def test_load_with_wrong_shape_is_400(client):
    _add(client)
    response = client.post("/api/graph/load", json={"nodes": 5, "edges": []})
    assert response.status_code == 400
    assert response.json()["issues"]
    assert client.get("/api/graph").json()["graph"]["nodes"] == []


def test_removing_connected_port_is_400(client):
    a = _add(client, "start")
    b = _add(client, "end", 300, 0)
    client.post("/api/edges/connect", json={
        "source": a, "sourceHandle": "output", "target": b, "targetHandle": "input",
    })
    response = client.patch(f"/api/nodes/{b}", json={"inputs": []})
    assert response.status_code == 400
    assert len(client.get("/api/graph").json()["graph"]["edges"]) == 1


def test_group_lifecycle(client):
    a = _add(client, "code", 100, 100)
    b = _add(client, "code", 400, 200)

    body = client.post("/api/groups", json={"node_ids": [a, b], "label": "Steps"}).json()
    group_id = body["group_id"]
    group = body["graph"]["nodes"][0]
    assert group["id"] == group_id
    assert group["type"] == "group"
    assert (group["width"], group["height"]) == (660, 340)

    children = client.get(f"/api/groups/{group_id}/children").json()["nodes"]
    assert [n["id"] for n in children] == [a, b]
    assert all(n["parentId"] == group_id for n in children)

    body = client.post(f"/api/groups/{group_id}/toggle").json()
    assert body["changed"]
    assert all(n["hidden"] for n in body["graph"]["nodes"] if n["id"] != group_id)

    body = client.post(f"/api/groups/{group_id}/ungroup").json()
    assert [n["id"] for n in body["graph"]["nodes"]] == [a, b]
    assert body["graph"]["nodes"][0]["position"] == {"x": 100, "y": 100}


def test_group_errors(client):
    assert client.post("/api/groups", json={"node_ids": ["ghost"]}).status_code == 400
    assert client.post("/api/groups/ghost/ungroup").status_code == 404


def test_websocket_receives_updates(client):
    with client.websocket_connect("/ws") as ws:
        initial = ws.receive_json()
        assert initial["type"] == "graph_state"
        assert initial["graph"]["nodes"] == []

        _add(client)
        message = ws.receive_json()
        assert message["type"] == "graph_updated"
        assert message["is_dirty"]
        assert message["can_undo"]
        assert message["selection"] == {"node_ids": [], "edge_ids": []}

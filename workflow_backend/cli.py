#!/usr/bin/env python3
"""Workflow editor CLI - drive a running editor session and save/open snapshots."""

import argparse
import json
import os
import sys
from pathlib import Path

import httpx
from pydantic import ValidationError as PydanticValidationError

from workflow_core import GraphSnapshot, validate_graph, validation_summary

API_BASE = os.environ.get("WORKFLOW_EDITOR_API", "http://127.0.0.1:8765/api")


def _json_out(data):
    print(json.dumps(data))
    sys.exit(0)


def _api_request(method, endpoint, data=None, params=None):
    """Make a request to the workflow editor backend."""
    url = f"{API_BASE}{endpoint}"
    try:
        with httpx.Client(timeout=30.0) as client:
            response = client.request(method, url, json=data, params=params)
    except httpx.HTTPError as e:
        _json_out({"status": "error", "error": f"Connection failed: {e}. Is the editor backend running?"})

    if response.status_code >= 400:
        try:
            detail = response.json()
        except json.JSONDecodeError:
            detail = response.text
        _json_out({"status": "error", "code": response.status_code, "error": detail})
    return response.json()


def _parse_list_arg(value):
    """Parse a comma-separated or JSON list argument."""
    if value is None:
        return []
    try:
        parsed = json.loads(value)
        if isinstance(parsed, list):
            return parsed
    except json.JSONDecodeError:
        pass
    return [v.strip() for v in value.split(",") if v.strip()]


def _read_json_file(path):
    path = Path(path)
    if not path.exists():
        _json_out({"status": "error", "error": f"File not found: {path}"})
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


# ── Graph ────────────────────────────────────────────────────────────────────

def cmd_get_current(args):
    _json_out(_api_request("GET", "/graph"))


def cmd_open(args):
    _json_out(_api_request("POST", "/graph/load", data=_read_json_file(args.file_path)))


def cmd_save(args):
    state = _api_request("GET", "/graph")
    path = Path(args.file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(state["graph"], f, indent=2)
    _api_request("POST", "/graph/mark-saved")
    _json_out({"status": "saved", "file_path": str(path), "version": state["version"]})


def cmd_clear(args):
    _json_out(_api_request("POST", "/graph/clear"))


# ── Nodes ────────────────────────────────────────────────────────────────────

def cmd_add_node(args):
    _json_out(_api_request("POST", "/nodes", data={
        "type": args.node_type,
        "x": args.x,
        "y": args.y,
        "label": args.label,
    }))


def cmd_update_node(args):
    patch = {}
    if args.label is not None:
        patch["label"] = args.label
    if args.description is not None:
        patch["description"] = args.description
    if args.config is not None:
        patch["config"] = json.loads(args.config)
    _json_out(_api_request("PATCH", f"/nodes/{args.node_id}", data=patch))


def cmd_delete_nodes(args):
    _json_out(_api_request("POST", "/nodes/delete", data={"ids": _parse_list_arg(args.node_ids)}))


def cmd_move(args):
    _json_out(_api_request("POST", "/nodes/positions", data={
        "positions": {args.node_id: {"x": args.x, "y": args.y}},
    }))


# ── Edges ────────────────────────────────────────────────────────────────────

def cmd_connect(args):
    _json_out(_api_request("POST", "/edges/connect", data={
        "source": args.source,
        "sourceHandle": args.source_handle,
        "target": args.target,
        "targetHandle": args.target_handle,
    }))


def cmd_delete_edges(args):
    _json_out(_api_request("POST", "/edges/delete", data={"ids": _parse_list_arg(args.edge_ids)}))


# ── Editing ──────────────────────────────────────────────────────────────────

def cmd_undo(args):
    _json_out(_api_request("POST", "/undo"))


def cmd_redo(args):
    _json_out(_api_request("POST", "/redo"))


def cmd_select(args):
    _json_out(_api_request("POST", "/selection", data={
        "node_ids": _parse_list_arg(args.node_ids),
        "additive": args.additive,
    }))


def cmd_copy(args):
    _json_out(_api_request("POST", "/clipboard/copy"))


def cmd_paste(args):
    _json_out(_api_request("POST", "/clipboard/paste", data={"x": args.x, "y": args.y}))


def cmd_duplicate(args):
    _json_out(_api_request("POST", "/clipboard/duplicate"))


def cmd_group(args):
    _json_out(_api_request("POST", "/groups", data={
        "node_ids": _parse_list_arg(args.node_ids),
        "label": args.label,
        "color": args.color,
    }))


def cmd_ungroup(args):
    _json_out(_api_request("POST", f"/groups/{args.group_id}/ungroup"))


def cmd_layout(args):
    _json_out(_api_request("POST", "/layout", data={
        "strategy": args.strategy,
        "direction": args.direction,
    }))


# ── Analysis ─────────────────────────────────────────────────────────────────

def cmd_validate(args):
    """Validate a snapshot file offline, without a running backend."""
    data = _read_json_file(args.file_path)
    try:
        snapshot = GraphSnapshot.from_json_dict(data)
    except PydanticValidationError as e:
        _json_out({"success": False, "error": f"Malformed graph: {e}"})

    issues = validate_graph(snapshot)
    _json_out({
        "success": True,
        "issues": [i.to_dict() for i in issues],
        "summary": validation_summary(issues),
    })


# ── Main ─────────────────────────────────────────────────────────────────────

def build_parser():
    parser = argparse.ArgumentParser(description="Workflow editor CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    # Graph
    sub.add_parser("get-current")

    p = sub.add_parser("open")
    p.add_argument("--file-path", required=True)

    p = sub.add_parser("save")
    p.add_argument("--file-path", required=True)

    sub.add_parser("clear")

    # Nodes
    p = sub.add_parser("add-node")
    p.add_argument("--node-type", required=True)
    p.add_argument("--x", type=float, default=0)
    p.add_argument("--y", type=float, default=0)
    p.add_argument("--label", default=None)

    p = sub.add_parser("update-node")
    p.add_argument("--node-id", required=True)
    p.add_argument("--label", default=None)
    p.add_argument("--description", default=None)
    p.add_argument("--config", default=None, help="JSON object merged into the node config")

    p = sub.add_parser("delete-nodes")
    p.add_argument("--node-ids", required=True)

    p = sub.add_parser("move")
    p.add_argument("--node-id", required=True)
    p.add_argument("--x", type=float, required=True)
    p.add_argument("--y", type=float, required=True)

    # Edges
    p = sub.add_parser("connect")
    p.add_argument("--source", required=True)
    p.add_argument("--source-handle", default=None)
    p.add_argument("--target", required=True)
    p.add_argument("--target-handle", default=None)

    p = sub.add_parser("delete-edges")
    p.add_argument("--edge-ids", required=True)

    # Editing
    sub.add_parser("undo")
    sub.add_parser("redo")

    p = sub.add_parser("select")
    p.add_argument("--node-ids", required=True)
    p.add_argument("--additive", action="store_true")

    sub.add_parser("copy")

    p = sub.add_parser("paste")
    p.add_argument("--x", type=float, default=None)
    p.add_argument("--y", type=float, default=None)

    sub.add_parser("duplicate")

    p = sub.add_parser("group")
    p.add_argument("--node-ids", required=True)
    p.add_argument("--label", default=None)
    p.add_argument("--color", default="default")

    p = sub.add_parser("ungroup")
    p.add_argument("--group-id", required=True)

    p = sub.add_parser("layout")
    p.add_argument("--strategy", default="layered", choices=["layered", "grid"])
    p.add_argument("--direction", default="horizontal", choices=["horizontal", "vertical"])

    # Analysis
    p = sub.add_parser("validate")
    p.add_argument("--file-path", required=True)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    cmd_map = {
        "get-current": cmd_get_current,
        "open": cmd_open,
        "save": cmd_save,
        "clear": cmd_clear,
        "add-node": cmd_add_node,
        "update-node": cmd_update_node,
        "delete-nodes": cmd_delete_nodes,
        "move": cmd_move,
        "connect": cmd_connect,
        "delete-edges": cmd_delete_edges,
        "undo": cmd_undo,
        "redo": cmd_redo,
        "select": cmd_select,
        "copy": cmd_copy,
        "paste": cmd_paste,
        "duplicate": cmd_duplicate,
        "group": cmd_group,
        "ungroup": cmd_ungroup,
        "layout": cmd_layout,
        "validate": cmd_validate,
    }
    cmd_map[args.command](args)


if __name__ == "__main__":
    main()

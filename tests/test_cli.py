import json

import pytest

from workflow_backend import cli


def _run(argv, capsys):
    with pytest.raises(SystemExit):
        cli.main(argv)
    return json.loads(capsys.readouterr().out)


def test_parse_list_arg():
    assert cli._parse_list_arg('["a", "b"]') == ["a", "b"]
    assert cli._parse_list_arg("a, b,") == ["a", "b"]
    assert cli._parse_list_arg(None) == []


def test_validate_offline(tmp_path, capsys):
    path = tmp_path / "graph.json"
    path.write_text(json.dumps({
        "nodes": [{"id": "a", "type": "start"}, {"id": "b", "type": "end"}],
        "edges": [{"from": "a", "to": "b"}],
    }))
    out = _run(["validate", "--file-path", str(path)], capsys)
    assert out["success"]
    assert out["summary"]["valid"]


def test_validate_malformed(tmp_path, capsys):
    path = tmp_path / "graph.json"
    path.write_text(json.dumps({"nodes": [{"id": "a"}]}))
    out = _run(["validate", "--file-path", str(path)], capsys)
    assert not out["success"]


def test_connect_sends_renderer_field_names(monkeypatch, capsys):
    calls = []

    def fake_request(method, endpoint, data=None, params=None):
        calls.append((method, endpoint, data))
        return {"accepted": True}

    monkeypatch.setattr(cli, "_api_request", fake_request)
    _run(["connect", "--source", "a", "--source-handle", "out", "--target", "b"], capsys)
    assert calls == [("POST", "/edges/connect", {
        "source": "a", "sourceHandle": "out", "target": "b", "targetHandle": None,
    })]


def test_group_and_ungroup_requests(monkeypatch, capsys):
    calls = []

    def fake_request(method, endpoint, data=None, params=None):
        calls.append((method, endpoint, data))
        return {"success": True}

    monkeypatch.setattr(cli, "_api_request", fake_request)
    _run(["group", "--node-ids", "a,b", "--label", "Fetch"], capsys)
    _run(["ungroup", "--group-id", "group-1"], capsys)
    assert calls == [
        ("POST", "/groups", {"node_ids": ["a", "b"], "label": "Fetch", "color": "default"}),
        ("POST", "/groups/group-1/ungroup", None),
    ]

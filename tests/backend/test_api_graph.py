"""Tests covering the graph, layout and rendering endpoints."""

from __future__ import annotations

import json
from collections import Counter
from pathlib import Path

from fastapi.testclient import TestClient

from backend.app.config import load_config
from backend.app.main import create_app

FIXTURE_PATH = Path(__file__).resolve().parents[1] / "fixtures" / "sample_documents.json"


def _build_test_app(tmp_path: Path, *, seed: bool = True) -> TestClient:
    registry_path = tmp_path / "documents.json"
    if seed:
        registry_path.write_text(FIXTURE_PATH.read_text(encoding="utf-8"), encoding="utf-8")
    config = load_config()
    ui_config = config.ui.model_copy(update={"document_registry_path": str(registry_path)})
    app = create_app(config=config.model_copy(update={"ui": ui_config}))
    return TestClient(app)


def test_graph_includes_every_group_by_default(tmp_path: Path) -> None:
    client = _build_test_app(tmp_path)

    payload = client.get("/api/graph").json()

    groups = Counter(node["group"] for node in payload["nodes"])
    assert groups == {"PAPER": 3, "AUTHOR": 4, "INSTITUTE": 2, "CONCEPT": 7, "METHOD": 2}
    relations = Counter(edge["relation"] for edge in payload["edges"])
    assert relations == {
        "written_by": 5,
        "published_at": 2,
        "affiliated_with": 4,
        "discusses": 8,
        "uses_method": 3,
    }
    assert payload["node_count"] == 18
    assert payload["edge_count"] == 22
    weights = {node["id"]: node["weight"] for node in payload["nodes"]}
    assert weights["author:K. Chen"] == 6
    assert weights["concept:graph neural networks"] == 4


def test_graph_filters_groups_and_drops_dangling_edges(tmp_path: Path) -> None:
    client = _build_test_app(tmp_path)

    payload = client.get("/api/graph", params={"groups": "paper, author"}).json()

    assert {node["group"] for node in payload["nodes"]} == {"PAPER", "AUTHOR"}
    assert payload["node_count"] == 7
    assert {edge["relation"] for edge in payload["edges"]} == {"written_by"}
    assert payload["edge_count"] == 5


def test_graph_rejects_unknown_group(tmp_path: Path) -> None:
    client = _build_test_app(tmp_path)

    response = client.get("/api/graph", params={"groups": "PAPER,VENUE"})

    assert response.status_code == 400
    assert "VENUE" in response.json()["detail"]


def test_empty_registry_yields_empty_graph(tmp_path: Path) -> None:
    client = _build_test_app(tmp_path, seed=False)

    payload = client.get("/api/graph").json()

    assert payload == {"nodes": [], "edges": [], "node_count": 0, "edge_count": 0}


def test_layout_positions_every_node(tmp_path: Path) -> None:
    client = _build_test_app(tmp_path)

    response = client.get(
        "/api/graph/layout",
        params={"width": 800, "height": 600, "max_ticks": 400},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["width"] == 800
    assert payload["height"] == 600
    assert payload["settled"] is True
    assert 0 < payload["ticks"] <= 400
    for node in payload["nodes"]:
        assert node["x"] is not None
        assert node["y"] is not None
    center_x = sum(node["x"] for node in payload["nodes"]) / len(payload["nodes"])
    assert abs(center_x - 400) < 50


def test_layout_rejects_non_positive_viewport(tmp_path: Path) -> None:
    client = _build_test_app(tmp_path)

    assert client.get("/api/graph/layout", params={"width": 0}).status_code == 422


def test_svg_rendering_with_selection(tmp_path: Path) -> None:
    client = _build_test_app(tmp_path)

    response = client.get(
        "/api/graph/svg",
        params={"selected": "author:K. Chen", "max_ticks": 50},
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("image/svg+xml")
    body = response.text
    assert body.startswith("<svg")
    assert 'opacity="0.1"' in body
    assert "Graph Legend" in body


def test_svg_without_legend_and_unknown_selection(tmp_path: Path) -> None:
    client = _build_test_app(tmp_path)

    plain = client.get("/api/graph/svg", params={"legend": "false", "max_ticks": 10})
    missing = client.get("/api/graph/svg", params={"selected": "author:Nobody", "max_ticks": 10})

    assert "Graph Legend" not in plain.text
    assert missing.status_code == 404


def test_neighborhood_highlight(tmp_path: Path) -> None:
    client = _build_test_app(tmp_path)

    response = client.get("/api/graph/neighborhood/author:K.%20Chen")

    assert response.status_code == 200
    payload = response.json()
    assert payload["selected"]["label"] == "K. Chen"
    assert payload["neighborhood"] == sorted(
        [
            "author:K. Chen",
            "inst:MIT",
            "inst:Stanford University",
            "paper:doc-attn",
            "paper:doc-gnn",
        ]
    )
    assert len(payload["edges"]) == 4
    assert {edge["opacity"] for edge in payload["edges"]} == {0.8}


def test_neighborhood_unknown_or_filtered_node_returns_404(tmp_path: Path) -> None:
    client = _build_test_app(tmp_path)

    assert client.get("/api/graph/neighborhood/concept:unknown").status_code == 404
    filtered = client.get(
        "/api/graph/neighborhood/concept:cas9",
        params={"groups": "PAPER"},
    )
    assert filtered.status_code == 404


def test_institute_graph_links_shared_domains(tmp_path: Path) -> None:
    client = _build_test_app(tmp_path)

    payload = client.get("/api/graph/institutes").json()

    assert {node["id"] for node in payload["nodes"]} == {"inst:MIT", "inst:Stanford University"}
    assert all(node["weight"] == 10 for node in payload["nodes"])
    assert payload["edges"] == [
        {"source": "inst:MIT", "target": "inst:Stanford University", "relation": "same_domain"}
    ]


def test_documents_added_through_api_appear_in_graph(tmp_path: Path) -> None:
    client = _build_test_app(tmp_path, seed=False)
    documents = json.loads(FIXTURE_PATH.read_text(encoding="utf-8"))

    for document in documents:
        assert client.post("/api/documents", json=document).status_code == 201

    assert client.get("/api/graph").json()["node_count"] == 18

"""FastAPI application factory for the papergraph backend."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional

from fastapi import FastAPI, HTTPException, Query, Response, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from backend.app.config import AppConfig, load_config
from backend.app.contracts import DocumentRecord, NodeGroup
from backend.app.documents import DocumentRegistry
from backend.app.graph import (
    KnowledgeGraph,
    apply_group_filter,
    build_graph,
    build_institute_graph,
    parse_groups,
)
from backend.app.graph.models import GraphEdge, GraphNode
from backend.app.layout import KnowledgeGraphView, compute_highlight, legend, render_svg
from backend.app.layout.interaction import neighbor_edges

LOGGER = logging.getLogger(__name__)


class GraphNodePayload(BaseModel):
    """Node description returned for graph rendering."""

    id: str
    label: str
    group: NodeGroup
    weight: float
    metadata: Optional[Dict[str, str]] = None
    x: Optional[float] = None
    y: Optional[float] = None


class GraphEdgePayload(BaseModel):
    """Undirected edge between two node identifiers."""

    source: str
    target: str
    relation: str


class GraphResponse(BaseModel):
    """Graph payload consumed by the explorer."""

    nodes: List[GraphNodePayload]
    edges: List[GraphEdgePayload]
    node_count: int
    edge_count: int


class LayoutResponse(GraphResponse):
    """Graph payload with settled positions."""

    width: float
    height: float
    ticks: int
    settled: bool


class NeighborhoodEdgePayload(GraphEdgePayload):
    """Edge touching the selected node, with its highlight opacity."""

    opacity: float


class NeighborhoodResponse(BaseModel):
    """Result of the highlight pass for one selected node."""

    selected: GraphNodePayload
    neighborhood: List[str]
    edges: List[NeighborhoodEdgePayload]


class UISettingsResponse(BaseModel):
    """UI configuration defaults served to the frontend."""

    graph_defaults: Dict[str, object]
    layout: Dict[str, object]
    interaction: Dict[str, object]
    legend: List[Dict[str, str]] = Field(default_factory=list)


def create_app(config: AppConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        config: Optional pre-loaded configuration. If omitted, the default
            configuration defined in config.yaml is used.

    Returns:
        FastAPI: Configured FastAPI application.
    """

    resolved_config = config or load_config()
    app = FastAPI(title="papergraph API", version=resolved_config.pipeline.version)
    app.state.app_config = resolved_config

    allowed_origins = resolved_config.ui.allowed_origins
    if allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    root_dir = Path(__file__).resolve().parents[2]
    registry_path = (root_dir / resolved_config.ui.document_registry_path).resolve()
    app.state.document_registry = DocumentRegistry(registry_path)
    app.state.ui_config = resolved_config.ui

    @app.get("/health", tags=["system"], summary="Service health probe")
    def health() -> dict[str, str]:
        """Return service health information."""

        return {"status": "ok", "version": resolved_config.pipeline.version}

    @app.get("/api/ui/settings", tags=["ui"], summary="UI configuration defaults")
    def ui_settings() -> UISettingsResponse:
        """Return UI defaults sourced from the configuration file."""

        graph_defaults = resolved_config.ui.graph_defaults
        layout_cfg = resolved_config.layout
        interaction_cfg = resolved_config.interaction
        return UISettingsResponse(
            graph_defaults={
                "groups": [group.value for group in graph_defaults.groups],
                "width": graph_defaults.width,
                "height": graph_defaults.height,
            },
            layout={
                "link_distance": layout_cfg.link_distance,
                "charge_strength": layout_cfg.charge_strength,
                "collide_margin": layout_cfg.collide_margin,
                "alpha_min": layout_cfg.alpha_min,
                "alpha_decay": layout_cfg.resolved_alpha_decay,
                "velocity_decay": layout_cfg.velocity_decay,
                "drag_alpha_target": layout_cfg.drag_alpha_target,
                "tick_interval_ms": layout_cfg.tick_interval_ms,
            },
            interaction={
                "zoom_min": interaction_cfg.zoom_min,
                "zoom_max": interaction_cfg.zoom_max,
                "click_threshold_px": interaction_cfg.click_threshold_px,
                "opacity": interaction_cfg.opacity.model_dump(),
            },
            legend=[{"label": label, "color": color} for label, color in legend()],
        )

    @app.post(
        "/api/documents",
        tags=["documents"],
        summary="Store a research document",
        status_code=status.HTTP_201_CREATED,
    )
    def create_document(record: DocumentRecord) -> DocumentRecord:
        """Add or replace a document in the registry."""

        stored = _require_registry(app).add(record)
        LOGGER.info("Stored document %s", stored.id)
        return stored

    @app.get("/api/documents", tags=["documents"], summary="List stored documents")
    def list_documents() -> List[DocumentRecord]:
        return _require_registry(app).list_records()

    @app.get("/api/documents/{document_id}", tags=["documents"], summary="Fetch one document")
    def get_document(document_id: str) -> DocumentRecord:
        record = _require_registry(app).get(document_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Document not found")
        return record

    @app.delete(
        "/api/documents/{document_id}",
        tags=["documents"],
        summary="Delete a document",
        status_code=status.HTTP_204_NO_CONTENT,
    )
    def delete_document(document_id: str) -> Response:
        if not _require_registry(app).remove(document_id):
            raise HTTPException(status_code=404, detail="Document not found")
        LOGGER.info("Deleted document %s", document_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.get("/api/documents/{document_id}/graph", tags=["graph"], summary="Local graph of one document")
    def document_graph(document_id: str) -> GraphResponse:
        """Return the graph projected from a single document."""

        record = _require_registry(app).get(document_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Document not found")
        return _graph_response(build_graph([record], config=resolved_config.graph))

    @app.get("/api/graph", tags=["graph"], summary="Fetch the filtered knowledge graph")
    def graph_view(
        groups: Optional[str] = Query(None, description="Comma-separated node groups to include"),
    ) -> GraphResponse:
        """Return nodes and edges for the enabled groups."""

        return _graph_response(_filtered_graph(app, groups))

    @app.get("/api/graph/layout", tags=["graph"], summary="Compute a settled layout")
    def graph_layout(
        groups: Optional[str] = Query(None, description="Comma-separated node groups to include"),
        width: Optional[float] = Query(None, gt=0),
        height: Optional[float] = Query(None, gt=0),
        max_ticks: Optional[int] = Query(None, ge=1, le=5000),
    ) -> LayoutResponse:
        """Run the force simulation to rest and return node positions."""

        graph = _filtered_graph(app, groups)
        view_width, view_height = _viewport(app, width, height)
        with _layout_view(app, view_width, view_height) as view:
            view.set_graph(graph)
            ticks = view.settle(max_ticks)
            simulation = view.active_simulation
            settled = simulation.settled if simulation is not None else True
            payload = _graph_response(graph)
        return LayoutResponse(
            **payload.model_dump(),
            width=view_width,
            height=view_height,
            ticks=ticks,
            settled=settled,
        )

    @app.get("/api/graph/svg", tags=["graph"], summary="Render the laid-out graph as SVG")
    def graph_svg(
        groups: Optional[str] = Query(None, description="Comma-separated node groups to include"),
        width: Optional[float] = Query(None, gt=0),
        height: Optional[float] = Query(None, gt=0),
        max_ticks: Optional[int] = Query(None, ge=1, le=5000),
        selected: Optional[str] = Query(None, description="Node id to highlight"),
        include_legend: bool = Query(True, alias="legend"),
    ) -> Response:
        """Return a standalone SVG document of the settled layout."""

        graph = _filtered_graph(app, groups)
        view_width, view_height = _viewport(app, width, height)
        with _layout_view(app, view_width, view_height) as view:
            view.set_graph(graph)
            view.settle(max_ticks)
            if selected:
                try:
                    view.select(selected)
                except KeyError as exc:
                    raise HTTPException(status_code=404, detail="Node not found") from exc
            svg = render_svg(view.scene(), include_legend=include_legend)
        return Response(content=svg, media_type="image/svg+xml")

    @app.get(
        "/api/graph/neighborhood/{node_id:path}",
        tags=["graph"],
        summary="Highlight the 1-hop neighbourhood of a node",
    )
    def graph_neighborhood(
        node_id: str,
        groups: Optional[str] = Query(None, description="Comma-separated node groups to include"),
    ) -> NeighborhoodResponse:
        graph = _filtered_graph(app, groups)
        node = graph.get(node_id)
        if node is None:
            raise HTTPException(status_code=404, detail="Node not found")
        highlight = compute_highlight(graph, node_id, resolved_config.interaction.opacity)
        edges = [
            NeighborhoodEdgePayload(**edge.to_dict(), opacity=highlight.edge_opacity(edge))
            for edge in neighbor_edges(graph.edges, node_id)
        ]
        return NeighborhoodResponse(
            selected=_node_payload(node),
            neighborhood=sorted(highlight.neighborhood),
            edges=edges,
        )

    @app.get("/api/graph/institutes", tags=["graph"], summary="Institute collaboration graph")
    def institute_graph() -> GraphResponse:
        records = _require_registry(app).list_records()
        return _graph_response(build_institute_graph(records, config=resolved_config.graph))

    return app


def _require_registry(app: FastAPI) -> DocumentRegistry:
    registry = getattr(app.state, "document_registry", None)
    if registry is None:
        raise HTTPException(status_code=503, detail="Document registry unavailable")
    return registry


def _parse_csv(raw: Optional[str]) -> List[str]:
    if raw is None:
        return []
    values = [part.strip() for part in raw.split(",")]
    return [value for value in values if value]


def _resolve_groups(app: FastAPI, raw: Optional[str]) -> FrozenSet[NodeGroup]:
    requested = _parse_csv(raw)
    if not requested:
        return frozenset(getattr(app.state, "ui_config").graph_defaults.groups)
    try:
        return parse_groups(requested)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _filtered_graph(app: FastAPI, raw_groups: Optional[str]) -> KnowledgeGraph:
    config: AppConfig = getattr(app.state, "app_config")
    enabled = _resolve_groups(app, raw_groups)
    graph = build_graph(_require_registry(app).list_records(), config=config.graph)
    return apply_group_filter(graph, enabled)


def _viewport(app: FastAPI, width: Optional[float], height: Optional[float]) -> tuple[float, float]:
    defaults = getattr(app.state, "ui_config").graph_defaults
    return (width or defaults.width, height or defaults.height)


def _layout_view(app: FastAPI, width: float, height: float) -> KnowledgeGraphView:
    config: AppConfig = getattr(app.state, "app_config")
    return KnowledgeGraphView(
        width,
        height,
        config=config.layout,
        interaction=config.interaction,
    )


def _node_payload(node: GraphNode) -> GraphNodePayload:
    return GraphNodePayload(
        id=node.id,
        label=node.label,
        group=node.group,
        weight=node.weight,
        metadata=node.metadata.model_dump() if node.metadata is not None else None,
        x=node.x,
        y=node.y,
    )


def _edge_payload(edge: GraphEdge) -> GraphEdgePayload:
    return GraphEdgePayload(source=edge.source, target=edge.target, relation=edge.relation)


def _graph_response(graph: KnowledgeGraph) -> GraphResponse:
    return GraphResponse(
        nodes=[_node_payload(node) for node in graph.nodes],
        edges=[_edge_payload(edge) for edge in graph.edges],
        node_count=graph.node_count,
        edge_count=graph.edge_count,
    )


__all__ = ["create_app"]

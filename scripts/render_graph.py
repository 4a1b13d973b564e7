#!/usr/bin/env python3
"""Render a documents JSON file to a settled knowledge graph layout (SVG or JSON)."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from pydantic import ValidationError

from backend.app.config import ConfigError, load_config
from backend.app.contracts import DocumentRecord
from backend.app.graph import apply_group_filter, build_graph, parse_groups
from backend.app.layout import KnowledgeGraphView, render_svg

LOGGER = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments for the renderer.

    Returns:
        argparse.Namespace: Parsed command line arguments.
    """
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("documents", type=Path, help="JSON file holding a list of documents")
    parser.add_argument("output", type=Path, help="Destination file (.svg or .json)")
    parser.add_argument(
        "--groups",
        default=None,
        help="Comma-separated node groups to include (default: configured groups)",
    )
    parser.add_argument("--width", type=float, default=None, help="Viewport width")
    parser.add_argument("--height", type=float, default=None, help="Viewport height")
    parser.add_argument("--max-ticks", type=int, default=None, help="Upper bound on simulation ticks")
    parser.add_argument("--select", default=None, help="Node id to highlight")
    parser.add_argument("--no-legend", action="store_true", help="Omit the legend from SVG output")
    parser.add_argument("--config", type=Path, default=None, help="Alternate config.yaml")
    return parser.parse_args(argv)


def load_documents(path: Path) -> List[DocumentRecord]:
    """Read and validate documents, skipping entries that fail validation."""

    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, list):
        raise ValueError("Documents file must contain a JSON list")
    documents: List[DocumentRecord] = []
    for index, item in enumerate(payload):
        try:
            documents.append(DocumentRecord.model_validate(item))
        except ValidationError as exc:
            LOGGER.warning("Skipping document #%d: %s", index, exc.errors()[0].get("msg", "invalid"))
    return documents


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the renderer.

    Returns:
        int: Exit status code where ``0`` indicates success.
    """
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    args = parse_args(argv)
    try:
        config = load_config(args.config)
    except ConfigError as exc:
        print(f"Unable to load configuration: {exc}", file=sys.stderr)
        return 2
    try:
        documents = load_documents(args.documents)
    except (OSError, ValueError) as exc:
        print(f"Unable to read documents: {exc}", file=sys.stderr)
        return 1
    try:
        groups = parse_groups(args.groups.split(",")) if args.groups else frozenset(config.ui.graph_defaults.groups)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    graph = apply_group_filter(build_graph(documents, config=config.graph), groups)
    width = args.width or config.ui.graph_defaults.width
    height = args.height or config.ui.graph_defaults.height
    with KnowledgeGraphView(width, height, config=config.layout, interaction=config.interaction) as view:
        view.set_graph(graph)
        ticks = view.settle(args.max_ticks)
        if args.select:
            try:
                view.select(args.select)
            except KeyError:
                print(f"Unknown node id: {args.select}", file=sys.stderr)
                return 1
        scene = view.scene()

    args.output.parent.mkdir(parents=True, exist_ok=True)
    if args.output.suffix.lower() == ".json":
        args.output.write_text(json.dumps(scene.to_dict(), indent=2), encoding="utf-8")
    else:
        args.output.write_text(render_svg(scene, include_legend=not args.no_legend), encoding="utf-8")
    LOGGER.info(
        "Rendered %d nodes and %d edges after %d ticks to %s",
        len(scene.nodes),
        len(scene.edges),
        ticks,
        args.output,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

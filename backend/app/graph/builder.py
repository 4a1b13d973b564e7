"""Project research documents into a typed knowledge graph."""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from backend.app.config import GraphBuilderConfig
from backend.app.contracts import DocumentRecord, NodeGroup, PaperMetadata
from backend.app.graph.models import KnowledgeGraph

LOGGER = logging.getLogger(__name__)

WRITTEN_BY = "written_by"
PUBLISHED_AT = "published_at"
AFFILIATED_WITH = "affiliated_with"
DISCUSSES = "discusses"
USES_METHOD = "uses_method"


def paper_node_id(doc_id: str) -> str:
    return f"paper:{doc_id}"


def author_node_id(name: str) -> str:
    return f"author:{name.strip()}"


def institute_node_id(name: str) -> str:
    return f"inst:{name.strip()}"


def concept_node_id(term: str) -> str:
    return f"concept:{term.strip().lower()}"


def method_node_id(term: str) -> str:
    return f"method:{term.strip().lower()}"


def capitalize_first(text: str) -> str:
    """Upper-case the first character only; the remainder is left untouched."""

    if not text:
        return text
    return text[0].upper() + text[1:]


class GraphBuilder:
    """Accumulate documents into a single graph.

    Each builder owns one graph; ``build_graph`` creates a fresh builder per
    call so no state is shared between builds.
    """

    def __init__(self, config: Optional[GraphBuilderConfig] = None) -> None:
        self._config = config or GraphBuilderConfig()
        self._graph = KnowledgeGraph()
        self._documents = 0

    @property
    def graph(self) -> KnowledgeGraph:
        return self._graph

    @property
    def document_count(self) -> int:
        return self._documents

    def add_document(self, document: DocumentRecord) -> None:
        """Add the paper node and all of its attribute nodes and edges."""

        weights = self._config.base_weights
        graph = self._graph
        paper_id = paper_node_id(document.id)
        graph.add_node(
            paper_id,
            document.title,
            NodeGroup.PAPER,
            weights.paper,
            metadata=PaperMetadata(
                title=document.title,
                date=document.publication_date,
                summary=document.summary,
                source_doc_id=document.id,
            ),
        )

        author_ids = []
        for author in document.authors:
            name = author.strip()
            if not name:
                continue
            author_id = author_node_id(name)
            graph.add_node(author_id, name, NodeGroup.AUTHOR, weights.author)
            graph.add_edge(paper_id, author_id, WRITTEN_BY)
            author_ids.append(author_id)

        institute = (document.institute or "").strip()
        if institute:
            inst_id = institute_node_id(institute)
            graph.add_node(inst_id, institute, NodeGroup.INSTITUTE, weights.institute)
            graph.add_edge(paper_id, inst_id, PUBLISHED_AT)
            # Repeated per document; the edge dedup rule keeps one per pair.
            for author_id in author_ids:
                graph.add_edge(author_id, inst_id, AFFILIATED_WITH)

        self._add_terms(
            paper_id,
            document.key_concepts[: self._config.concept_limit],
            group=NodeGroup.CONCEPT,
            relation=DISCUSSES,
            base_weight=weights.concept,
        )
        self._add_terms(
            paper_id,
            document.methods[: self._config.method_limit],
            group=NodeGroup.METHOD,
            relation=USES_METHOD,
            base_weight=weights.method,
        )
        self._documents += 1

    def add_documents(self, documents: Iterable[DocumentRecord]) -> None:
        for document in documents:
            self.add_document(document)

    def _add_terms(
        self,
        paper_id: str,
        terms: Sequence[str],
        *,
        group: NodeGroup,
        relation: str,
        base_weight: float,
    ) -> None:
        make_id = concept_node_id if group is NodeGroup.CONCEPT else method_node_id
        for term in terms:
            cleaned = term.strip()
            if not cleaned:
                continue
            node_id = make_id(cleaned)
            self._graph.add_node(node_id, capitalize_first(cleaned), group, base_weight)
            self._graph.add_edge(paper_id, node_id, relation)


def build_graph(
    documents: Iterable[DocumentRecord],
    *,
    config: Optional[GraphBuilderConfig] = None,
) -> KnowledgeGraph:
    """Build a deduplicated knowledge graph from ``documents`` in input order.

    Args:
        documents: Research documents to project.
        config: Optional truncation limits and base weights.

    Returns:
        KnowledgeGraph: A new graph owned by the caller.
    """

    builder = GraphBuilder(config)
    builder.add_documents(documents)
    graph = builder.graph
    LOGGER.debug(
        "Built knowledge graph from %d documents (nodes=%d, edges=%d)",
        builder.document_count,
        graph.node_count,
        graph.edge_count,
    )
    return graph


__all__ = [
    "AFFILIATED_WITH",
    "DISCUSSES",
    "GraphBuilder",
    "PUBLISHED_AT",
    "USES_METHOD",
    "WRITTEN_BY",
    "author_node_id",
    "build_graph",
    "capitalize_first",
    "concept_node_id",
    "institute_node_id",
    "method_node_id",
    "paper_node_id",
]

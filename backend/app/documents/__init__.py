"""Document storage used by the graph API."""

from .registry import DocumentRegistry

__all__ = ["DocumentRegistry"]

"""JSON-backed registry of research documents feeding the graph builder."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from threading import RLock
from typing import Dict, Iterable, List, Optional

from pydantic import ValidationError

from backend.app.contracts import DocumentRecord

LOGGER = logging.getLogger(__name__)


class DocumentRegistry:
    """Persistent store of :class:`DocumentRecord` keyed by document id.

    Records keep insertion order; re-adding an existing id replaces the record
    in place.
    """

    def __init__(self, storage_path: Path) -> None:
        self._path = Path(storage_path)
        self._lock = RLock()
        self._records = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, document_id: object) -> bool:
        with self._lock:
            return document_id in self._records

    def add(self, record: DocumentRecord) -> DocumentRecord:
        """Store ``record`` and persist the registry."""

        with self._lock:
            self._records[record.id] = record
            self._persist()
        return record

    def add_many(self, records: Iterable[DocumentRecord]) -> List[DocumentRecord]:
        with self._lock:
            stored = list(records)
            for record in stored:
                self._records[record.id] = record
            self._persist()
        return stored

    def get(self, document_id: str) -> Optional[DocumentRecord]:
        with self._lock:
            return self._records.get(document_id)

    def remove(self, document_id: str) -> bool:
        """Delete a record, returning ``False`` when it was not present."""

        with self._lock:
            if document_id not in self._records:
                return False
            del self._records[document_id]
            self._persist()
            return True

    def list_records(self) -> List[DocumentRecord]:
        """Return all records in insertion order."""

        with self._lock:
            return list(self._records.values())

    def _load(self) -> Dict[str, DocumentRecord]:
        if not self._path.exists():
            return {}
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError:
            LOGGER.warning("Unable to read document registry at %s", self._path)
            return {}
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            LOGGER.warning("Document registry at %s is not valid JSON; starting empty", self._path)
            return {}
        if not isinstance(data, list):
            LOGGER.warning("Document registry at %s must hold a JSON list; starting empty", self._path)
            return {}
        records: Dict[str, DocumentRecord] = {}
        skipped = 0
        for payload in data:
            record = self._deserialize_record(payload)
            if record is None:
                skipped += 1
                continue
            records[record.id] = record
        if skipped:
            LOGGER.warning("Skipped %d malformed document entries in %s", skipped, self._path)
        return records

    def _persist(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        serialised = [record.model_dump(by_alias=True) for record in self._records.values()]
        self._path.write_text(json.dumps(serialised, indent=2), encoding="utf-8")

    @staticmethod
    def _deserialize_record(payload: object) -> Optional[DocumentRecord]:
        if not isinstance(payload, dict):
            return None
        try:
            return DocumentRecord.model_validate(payload)
        except ValidationError:
            return None


__all__ = ["DocumentRegistry"]

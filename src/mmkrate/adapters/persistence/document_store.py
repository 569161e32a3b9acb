# src/mmkrate/adapters/persistence/document_store.py
"""
Document Store - Collections of JSON-like Documents with Atomic Batches

This module provides the storage the orchestrator and health tracker work
against. Data is organised as named collections (rates, latestRates,
collectionStatus, systemHealth) of documents keyed by id. Writes always go
through a WriteBatch, and a batch is applied all-or-nothing under a lock so
two batches never interleave.

Two implementations are provided:
- MemoryDocumentStore: process memory only (tests, STORE_BACKEND=memory)
- JsonFileDocumentStore: memory plus a JSON snapshot written atomically
  (temp file + os.replace) after every committed batch

Files that USE this module:
- mmkrate.application.orchestrator (rate log, latest rates, status)
- mmkrate.application.health (rate log reads, health document)
- mmkrate.app (builds the configured store)
- tests.test_document_store (unit tests)

Files that this module USES:
- mmkrate.domain.errors (PersistenceError)
"""
from __future__ import annotations

import copy
import json
import logging
import operator
import os
import shutil
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from mmkrate.domain.errors import PersistenceError

log = logging.getLogger(__name__)

# (field, op, value), e.g. ("timestamp", ">=", start)
Filter = Tuple[str, str, Any]
Collections = Dict[str, Dict[str, Dict[str, Any]]]

_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}

_DATETIME_TAG = "__datetime__"


def _matches(doc: Dict[str, Any], filters: Sequence[Filter]) -> bool:
    for field, op, value in filters:
        if op not in _OPERATORS:
            raise ValueError(f"Unsupported filter operator: {op}")
        actual = doc.get(field)
        if actual is None:
            return False
        try:
            if not _OPERATORS[op](actual, value):
                return False
        except TypeError:
            return False
    return True


class WriteBatch:
    """
    Collects set/delete operations and applies them in one commit.

    Operations are applied in the order they were added.
    """

    def __init__(self, store: "DocumentStore"):
        self._store = store
        self._ops: List[Tuple[str, str, str, Optional[Dict[str, Any]], bool]] = []

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> "WriteBatch":
        """
        Create or replace a document; with merge=True only the given fields change.
        """
        self._ops.append(("set", collection, doc_id, copy.deepcopy(data), merge))
        return self

    def delete(self, collection: str, doc_id: str) -> "WriteBatch":
        self._ops.append(("delete", collection, doc_id, None, False))
        return self

    def commit(self) -> None:
        """
        Apply every queued operation atomically.

        Raises:
            PersistenceError: If the store cannot apply the batch; nothing is applied
        """
        ops, self._ops = self._ops, []
        if ops:
            self._store._apply(ops)

    def __len__(self) -> int:
        return len(self._ops)


class DocumentStore(ABC):
    """Interface of the document store used by the application layer."""

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return a copy of one document, or None."""

    @abstractmethod
    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Return copies of the documents matching every filter.

        Args:
            collection: Collection name
            filters: (field, op, value) triples; op is one of == > >= < <=
            order_by: Field to sort on (documents missing it sort last)
            descending: Sort newest/largest first
            limit: Maximum number of documents returned
        """

    def count(self, collection: str, filters: Sequence[Filter] = ()) -> int:
        return len(self.query(collection, filters))

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    @abstractmethod
    def _apply(self, ops) -> None:
        """Apply a batch of operations atomically."""


class MemoryDocumentStore(DocumentStore):
    """In-process document store guarded by a lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: Collections = {}

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._data.get(collection, {}).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        with self._lock:
            docs = [doc for doc in self._data.get(collection, {}).values() if _matches(doc, filters)]
            docs = copy.deepcopy(docs)

        if order_by:
            present = [d for d in docs if d.get(order_by) is not None]
            missing = [d for d in docs if d.get(order_by) is None]
            present.sort(key=lambda d: d[order_by], reverse=descending)
            docs = present + missing
        if limit is not None:
            docs = docs[:limit]
        return docs

    def _apply(self, ops) -> None:
        with self._lock:
            # Build the new state on a copy so a failing batch leaves no trace
            staged = self._stage(ops)
            self._persist(staged)
            self._data = staged

    def _stage(self, ops) -> Collections:
        staged = {name: dict(docs) for name, docs in self._data.items()}
        for kind, collection, doc_id, data, merge in ops:
            docs = staged.setdefault(collection, {})
            if kind == "delete":
                docs.pop(doc_id, None)
            elif merge and doc_id in docs:
                docs[doc_id] = {**docs[doc_id], **data}
            else:
                docs[doc_id] = data
        return staged

    def _persist(self, staged: Collections) -> None:
        """Hook for durable stores; called with the lock held before the swap."""


class JsonFileDocumentStore(MemoryDocumentStore):
    """
    Memory store mirrored to a JSON file.

    The whole store is rewritten after each batch using a temporary file and
    an atomic rename, so a crash never leaves a half-written file.
    """

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._data = self._load()

    @staticmethod
    def _encode(value: Any) -> Any:
        if isinstance(value, datetime):
            return {_DATETIME_TAG: value.isoformat()}
        raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")

    @staticmethod
    def _decode(obj: Dict[str, Any]) -> Any:
        if len(obj) == 1 and _DATETIME_TAG in obj:
            return datetime.fromisoformat(obj[_DATETIME_TAG])
        return obj

    def _load(self) -> Collections:
        if not self.path.exists():
            log.info("No store file at %s, starting empty", self.path)
            return {}

        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f, object_hook=self._decode)
        except json.JSONDecodeError as e:
            # Corrupt JSON - keep a copy for inspection and start empty
            backup_path = self.path.with_suffix(".json.corrupt")
            shutil.copy2(self.path, backup_path)
            log.warning("Store file corrupted, backed up to %s: %s", backup_path, e)
            return {}

        if not isinstance(data, dict):
            log.warning("Store file %s has unexpected layout, starting empty", self.path)
            return {}
        log.info("Loaded store from %s (%d collections)", self.path, len(data))
        return data

    def _persist(self, staged: Collections) -> None:
        # Atomic write: write to temp file first, then rename atomically
        temp_fd, temp_path = tempfile.mkstemp(suffix=".json.tmp", dir=str(self.path.parent), text=True)
        try:
            with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
                json.dump(staged, f, ensure_ascii=False, default=self._encode)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, str(self.path))
        except Exception as e:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise PersistenceError(f"Failed to write store file {self.path}: {e}") from e

# src/mmkrate/adapters/persistence/__init__.py
"""
Persistence Adapters - Data Storage

This package contains the document store used for rates, latest rates,
collection status and the health document:
- In-memory storage
- File-based storage (JSON)
"""

from pathlib import Path

from mmkrate.adapters.persistence.document_store import (
    DocumentStore,
    JsonFileDocumentStore,
    MemoryDocumentStore,
    WriteBatch,
)


def build_store(backend: str, data_file: Path) -> DocumentStore:
    """Build the store selected by STORE_BACKEND ("json" or "memory")."""
    if backend == "memory":
        return MemoryDocumentStore()
    return JsonFileDocumentStore(data_file)


__all__ = [
    "DocumentStore",
    "JsonFileDocumentStore",
    "MemoryDocumentStore",
    "WriteBatch",
    "build_store",
]

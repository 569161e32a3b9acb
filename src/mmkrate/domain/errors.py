# src/mmkrate/domain/errors.py
"""
Domain Errors - Collection and Persistence Exceptions

This module defines the exceptions raised while collecting and storing
exchange rates. Collector errors are always caught by the collector itself
and turned into a failed CollectorResult; only CollectionError and
PersistenceError are meant to reach the caller of the orchestrator.
"""

from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base exception for domain errors."""
    pass


class CollectorError(DomainError):
    """
    Base exception for a failed collection strategy.

    Carries optional diagnostic metadata that ends up in the
    CollectorResult metadata when the collector gives up.
    """

    def __init__(self, message: str, metadata: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.metadata = metadata or {}


class SourceUnavailableError(CollectorError):
    """Raised on network failures and HTTP timeouts."""
    pass


class MalformedResponseError(CollectorError):
    """Raised when a source answers with an unexpected structure."""
    pass


class NoRatesFoundError(CollectorError):
    """Raised when a well-formed response contains no valid rate."""
    pass


class CollectionError(DomainError):
    """Raised when a collection run cannot start at all."""
    pass


class PersistenceError(DomainError):
    """Raised when the document store rejects a read or a batch commit."""
    pass

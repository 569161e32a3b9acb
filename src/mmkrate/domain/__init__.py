# src/mmkrate/domain/__init__.py
"""
Domain Layer - Pure Business Objects

This package contains domain models and business errors.
No dependencies on infrastructure or external systems.
"""

from mmkrate.domain.models import (
    CollectionStatus,
    CollectionSummary,
    CollectorPriority,
    CollectorResult,
    ExchangeRate,
    RateDocument,
)
from mmkrate.domain.errors import (
    CollectionError,
    CollectorError,
    DomainError,
    MalformedResponseError,
    NoRatesFoundError,
    PersistenceError,
    SourceUnavailableError,
)

__all__ = [
    "ExchangeRate",
    "RateDocument",
    "CollectionStatus",
    "CollectionSummary",
    "CollectorPriority",
    "CollectorResult",
    "DomainError",
    "CollectorError",
    "SourceUnavailableError",
    "MalformedResponseError",
    "NoRatesFoundError",
    "CollectionError",
    "PersistenceError",
]

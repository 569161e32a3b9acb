# src/mmkrate/application/__init__.py
"""
Application Layer - Use Cases and Services

This package contains the collection orchestrator, the collector health
tracker and the rate trend analysis. The services receive their
collaborators through the constructor.
"""

from mmkrate.application.orchestrator import CollectionOrchestrator
from mmkrate.application.health import CollectorHealth, HealthTracker
from mmkrate.application.trends import TrendForecast, analyze_trend

__all__ = [
    "CollectionOrchestrator",
    "CollectorHealth",
    "HealthTracker",
    "TrendForecast",
    "analyze_trend",
]

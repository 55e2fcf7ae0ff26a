"""Context gathering across configured sources."""

from .aggregator import ContextAggregator, execute_legacy_source, gather_context


__all__ = [
    "ContextAggregator",
    "execute_legacy_source",
    "gather_context",
]

# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Core data models for the bundler.

This module defines the data structures shared by the graph, the cache and
the bundler:
- ModuleNode: A node of the module dependency graph
- GraphSummary: Read-only aggregate view of a ModuleGraph
- CacheStatistics: Performance counters for the bundle cache
- BundleResult: Bundle text paired with its fingerprint

All models use JSON-compatible primitives for serialization.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class ModuleNode:
    """A module in the dependency graph.

    The id is unique within a graph instance. Metadata is arbitrary
    (typically the source path and size for file-backed modules).
    """

    id: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    is_entry: bool = False
    timestamp: float = 0.0  # Unix timestamp of insertion

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict.

        Returns:
            Dictionary with all fields.
        """
        return {
            "id": self.id,
            "metadata": dict(self.metadata),
            "is_entry": self.is_entry,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModuleNode":
        """Deserialize from JSON-compatible dict.

        Raises:
            KeyError: If the id field is missing.
        """
        return cls(
            id=data["id"],
            metadata=dict(data.get("metadata", {})),
            is_entry=data.get("is_entry", False),
            timestamp=data.get("timestamp", 0.0),
        )


@dataclass
class GraphSummary:
    """Aggregate view of a module graph."""

    total_modules: int
    entry_points: List[str]
    circular_dependencies: List[List[str]]
    execution_order: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_modules": self.total_modules,
            "entry_points": list(self.entry_points),
            "circular_dependencies": [list(cycle) for cycle in self.circular_dependencies],
            "execution_order": list(self.execution_order),
        }


@dataclass
class CacheStatistics:
    """Statistics for the bundle cache."""

    hits: int = 0
    misses: int = 0
    stores: int = 0  # Successful builds written to the cache
    coalesced_waits: int = 0  # Requests that joined an in-flight build
    failures: int = 0  # Builds that raised
    clears: int = 0
    current_entry_count: int = 0
    peak_entry_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict.

        Returns:
            Dictionary with all statistics fields.
        """
        return {
            "hits": self.hits,
            "misses": self.misses,
            "stores": self.stores,
            "coalesced_waits": self.coalesced_waits,
            "failures": self.failures,
            "clears": self.clears,
            "current_entry_count": self.current_entry_count,
            "peak_entry_count": self.peak_entry_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheStatistics":
        """Deserialize from JSON-compatible dict.

        Raises:
            KeyError: If required fields are missing from data dict.
        """
        return cls(
            hits=data["hits"],
            misses=data["misses"],
            stores=data["stores"],
            coalesced_waits=data["coalesced_waits"],
            failures=data["failures"],
            clears=data["clears"],
            current_entry_count=data["current_entry_count"],
            peak_entry_count=data["peak_entry_count"],
        )


@dataclass
class BundleResult:
    """Bundle text with its content fingerprint (used as an ETag)."""

    text: str
    etag: str
    project_root: str
    entry_point: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "etag": self.etag,
            "project_root": self.project_root,
            "entry_point": self.entry_point,
        }

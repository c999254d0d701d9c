# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Module dependency graph.

Directed graph of module ids where an edge from -> to means "from depends on
to". The graph is index-keyed: one table of node records plus two adjacency
indices, and nodes never reference each other directly.

Maintains two indices for efficient queries:
- outgoing: module -> modules it depends on
- incoming: module -> modules that depend on it

Adjacency sets are insertion-ordered (dicts with None values) so traversal
and cycle output follow the order dependencies were added.

Cycles are permitted unconditionally. They are never rejected at insertion
time and are only reported on demand by find_circular_dependencies().

Thread Safety:
    Not internally synchronized. Concurrent structural mutation of one
    instance requires external locking.

All traversals use explicit work stacks (no recursion) and accept an
optional CancellationToken checked once per visited node.
"""

import logging
import time
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from aerobundle.cancellation import CancellationToken
from aerobundle.models import GraphSummary, ModuleNode

logger = logging.getLogger(__name__)


class DuplicateModuleError(Exception):
    """Raised when adding a module whose id already exists."""

    def __init__(self, module_id: str) -> None:
        self.module_id = module_id
        super().__init__(f"Module {module_id} already exists in the graph")


class UnknownModuleError(KeyError):
    """Raised when an operation references a module id not in the graph."""

    def __init__(self, module_id: str) -> None:
        self.module_id = module_id
        super().__init__(module_id)

    def __str__(self) -> str:
        return f"Module {self.module_id} does not exist"


class ModuleGraph:
    """Directed module dependency graph with bidirectional adjacency.

    Usage:
        graph = ModuleGraph()
        graph.add_module("main.js", {"path": "/src/main.js"}, is_entry=True)
        graph.add_module("utils.js", {"path": "/src/utils.js"})
        graph.add_dependency("main.js", "utils.js")
        order = graph.get_module_execution_order()  # ["utils.js", "main.js"]
    """

    def __init__(self) -> None:
        self._nodes: Dict[str, ModuleNode] = {}
        self._outgoing: Dict[str, Dict[str, None]] = {}  # module -> dependencies
        self._incoming: Dict[str, Dict[str, None]] = {}  # module -> dependents
        self._entry_nodes: Dict[str, None] = {}

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, module_id: object) -> bool:
        return module_id in self._nodes

    def has_module(self, module_id: str) -> bool:
        return module_id in self._nodes

    @property
    def module_ids(self) -> List[str]:
        """All module ids in insertion order."""
        return list(self._nodes)

    @property
    def entry_points(self) -> List[str]:
        """Entry module ids in the order they were marked."""
        return list(self._entry_nodes)

    def _require(self, module_id: str) -> ModuleNode:
        node = self._nodes.get(module_id)
        if node is None:
            raise UnknownModuleError(module_id)
        return node

    # =========================================================================
    # Structural mutation
    # =========================================================================

    def add_module(
        self,
        module_id: str,
        metadata: Optional[Dict[str, Any]] = None,
        is_entry: bool = False,
    ) -> "ModuleGraph":
        """Add a module to the graph.

        Args:
            module_id: Unique identifier for the module.
            metadata: Arbitrary module metadata (path, size, etc.).
            is_entry: Whether this module is a bundling root.

        Returns:
            The graph, for chaining.

        Raises:
            DuplicateModuleError: If module_id is already present.
        """
        if module_id in self._nodes:
            raise DuplicateModuleError(module_id)

        self._nodes[module_id] = ModuleNode(
            id=module_id,
            metadata=dict(metadata or {}),
            is_entry=is_entry,
            timestamp=time.time(),
        )
        self._outgoing[module_id] = {}
        self._incoming[module_id] = {}

        if is_entry:
            self._entry_nodes[module_id] = None

        return self

    def add_dependency(self, from_id: str, to_id: str) -> "ModuleGraph":
        """Record that from_id depends on to_id.

        Both endpoints are validated before any index is touched. Adding an
        existing edge is a no-op.

        Raises:
            UnknownModuleError: If either module is absent.
        """
        self._require(from_id)
        self._require(to_id)

        self._outgoing[from_id][to_id] = None
        self._incoming[to_id][from_id] = None

        return self

    def remove_module(self, module_id: str) -> "ModuleGraph":
        """Remove a module and every edge touching it.

        Affected neighbour ids are snapshotted before any mutation so the
        cleanup never iterates an index it is modifying.

        Raises:
            UnknownModuleError: If the module is absent.
        """
        self._require(module_id)

        dependents = list(self._incoming[module_id])
        dependencies = list(self._outgoing[module_id])

        for dependent in dependents:
            self._outgoing[dependent].pop(module_id, None)
        for dependency in dependencies:
            self._incoming[dependency].pop(module_id, None)

        del self._nodes[module_id]
        del self._incoming[module_id]
        del self._outgoing[module_id]
        self._entry_nodes.pop(module_id, None)

        logger.debug(
            f"Removed module {module_id} ({len(dependents)} dependents, "
            f"{len(dependencies)} dependencies)"
        )
        return self

    def clear(self) -> None:
        """Remove all modules and edges."""
        self._nodes.clear()
        self._outgoing.clear()
        self._incoming.clear()
        self._entry_nodes.clear()

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_module(self, module_id: str) -> Dict[str, Any]:
        """Get a copy of a module's metadata.

        Returns:
            Metadata merged with the module "id" and insertion "timestamp".
            Mutating the result does not affect the graph.

        Raises:
            UnknownModuleError: If the module is absent.
        """
        node = self._require(module_id)
        return {"id": node.id, **node.metadata, "timestamp": node.timestamp}

    def get_dependencies(self, module_id: str) -> Set[str]:
        """Direct dependencies of a module (outgoing edges)."""
        self._require(module_id)
        return set(self._outgoing[module_id])

    def get_dependents(self, module_id: str) -> Set[str]:
        """Modules that directly depend on a module (incoming edges)."""
        self._require(module_id)
        return set(self._incoming[module_id])

    # =========================================================================
    # Traversals
    # =========================================================================

    def get_all_dependencies(
        self, module_id: str, token: Optional[CancellationToken] = None
    ) -> Set[str]:
        """Get the transitive dependency closure of a module.

        A dependency enters the result as soon as it is seen on an outgoing
        edge, so module_id itself is included when a cycle leads back to it.

        Args:
            module_id: Module to start from.
            token: Optional cancellation token.

        Returns:
            Set of all module ids reachable through outgoing edges.

        Raises:
            UnknownModuleError: If the module is absent.
            OperationCancelledError: If the token is cancelled mid-traversal.
        """
        self._require(module_id)

        visited: Set[str] = set()
        dependencies: Set[str] = set()
        stack: List[str] = [module_id]

        while stack:
            current = stack.pop()
            if current in visited:
                continue
            if token is not None:
                token.raise_if_cancelled("dependency traversal")
            visited.add(current)

            for dep_id in self._outgoing[current]:
                dependencies.add(dep_id)
                if dep_id not in visited:
                    stack.append(dep_id)

        return dependencies

    def find_circular_dependencies(
        self, token: Optional[CancellationToken] = None
    ) -> List[List[str]]:
        """Find circular dependency chains.

        Depth-first search from every not-yet-visited module, keeping the
        current path and the set of modules on it. Reaching a module already
        on the path records the path slice starting at that module.

        Enumeration is best-effort: the visited set is global, so a module
        fully explored from an earlier start is not explored again. At least
        one cycle is reported per strongly-connected region, not every simple
        cycle.

        Returns:
            List of cycles, each a list of module ids in edge order.
        """
        cycles: List[List[str]] = []
        visited: Set[str] = set()
        on_path: Set[str] = set()

        for start_id in self._nodes:
            if start_id in visited:
                continue

            path: List[str] = [start_id]
            visited.add(start_id)
            on_path.add(start_id)
            stack: List[Tuple[str, Iterator[str]]] = [
                (start_id, iter(list(self._outgoing[start_id])))
            ]

            while stack:
                current, deps = stack[-1]
                descended = False
                for dep_id in deps:
                    if dep_id in on_path:
                        cycles.append(path[path.index(dep_id) :])
                        continue
                    if dep_id in visited:
                        continue
                    if token is not None:
                        token.raise_if_cancelled("cycle detection")
                    visited.add(dep_id)
                    on_path.add(dep_id)
                    path.append(dep_id)
                    stack.append((dep_id, iter(list(self._outgoing[dep_id]))))
                    descended = True
                    break

                if not descended:
                    stack.pop()
                    on_path.discard(current)
                    path.pop()

        if cycles:
            logger.debug(f"Detected {len(cycles)} circular dependency chain(s)")
        return cycles

    def get_module_execution_order(self, token: Optional[CancellationToken] = None) -> List[str]:
        """Get modules in dependency-first order.

        Post-order traversal seeded from entry modules first, then from every
        remaining module so disconnected components are included. Each module
        appears exactly once. Within an acyclic subgraph every dependency
        precedes its dependents; modules on a cycle appear in discovery order.
        """
        visited: Set[str] = set()
        order: List[str] = []

        def visit(root_id: str) -> None:
            if root_id in visited:
                return
            visited.add(root_id)
            stack: List[Tuple[str, Iterator[str]]] = [
                (root_id, iter(list(self._outgoing[root_id])))
            ]
            while stack:
                current, deps = stack[-1]
                for dep_id in deps:
                    if dep_id not in visited:
                        if token is not None:
                            token.raise_if_cancelled("execution ordering")
                        visited.add(dep_id)
                        stack.append((dep_id, iter(list(self._outgoing[dep_id]))))
                        break
                else:
                    stack.pop()
                    order.append(current)

        for entry_id in self._entry_nodes:
            visit(entry_id)

        # Disconnected modules
        for module_id in self._nodes:
            visit(module_id)

        return order

    def get_graph_summary(self) -> GraphSummary:
        """Get a read-only aggregate view of the graph."""
        return GraphSummary(
            total_modules=len(self._nodes),
            entry_points=list(self._entry_nodes),
            circular_dependencies=self.find_circular_dependencies(),
            execution_order=self.get_module_execution_order(),
        )

    # =========================================================================
    # Diagnostics
    # =========================================================================

    def validate_graph(self) -> Tuple[bool, List[str]]:
        """Check that the node table, both indices and the entry set agree.

        Returns:
            Tuple of (is_valid, list of error messages).
        """
        errors: List[str] = []

        for index_name, index in (("outgoing", self._outgoing), ("incoming", self._incoming)):
            missing = set(self._nodes) - set(index)
            extra = set(index) - set(self._nodes)
            for module_id in sorted(missing):
                errors.append(f"Module {module_id} has no {index_name} index entry")
            for module_id in sorted(extra):
                errors.append(f"{index_name} index references unknown module {module_id}")

        for from_id, deps in self._outgoing.items():
            for to_id in deps:
                if to_id not in self._nodes:
                    errors.append(f"Edge {from_id} -> {to_id} targets unknown module")
                elif from_id not in self._incoming.get(to_id, {}):
                    errors.append(f"Edge {from_id} -> {to_id} missing from incoming index")

        for to_id, dependents in self._incoming.items():
            for from_id in dependents:
                if to_id not in self._outgoing.get(from_id, {}):
                    errors.append(f"Incoming {from_id} -> {to_id} missing from outgoing index")

        for entry_id in self._entry_nodes:
            if entry_id not in self._nodes:
                errors.append(f"Entry point {entry_id} is not a module")

        if errors:
            logger.warning(f"Module graph validation found {len(errors)} error(s)")
        return (not errors, errors)

    def export_to_dict(self) -> Dict[str, Any]:
        """Export the graph as a JSON-compatible dict."""
        return {
            "modules": [node.to_dict() for node in self._nodes.values()],
            "dependencies": {
                module_id: list(deps) for module_id, deps in self._outgoing.items()
            },
            "entry_points": list(self._entry_nodes),
        }

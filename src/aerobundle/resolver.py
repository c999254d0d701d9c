# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Dependency resolution for bundle entry files.

Walks the local source files an entry file references through
require('...') and import('...') call expressions.

The scan is textual, not a parse:
- Dynamically computed specifiers (require(name), import(`./${x}.js`)) are
  not seen
- Matching text inside string literals or comments is reported as an import
- Static declarations (import x from './a.js') are not matched
- Only specifiers resolving to a recognized source extension are followed;
  bare package names and other assets are skipped

Callers needing semantic accuracy should substitute a real parser.

Cyclic imports terminate through the seen set: a file already seen is never
read again. The returned order is discovery (pre-)order, not
dependency-first order; use ModuleGraph.get_module_execution_order() on
build_module_graph() output for the latter.
"""

import logging
import os
import re
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from aerobundle.cancellation import CancellationToken
from aerobundle.module_graph import ModuleGraph
from aerobundle.reader import FileSystemReader, SourceReader

logger = logging.getLogger(__name__)

# require('./a.js') / import("./b.js")
IMPORT_PATTERN = re.compile(r"""(?:require|import)\s*\(\s*['"]([^'"]+)['"]\s*\)""")

DEFAULT_SOURCE_EXTENSIONS: Tuple[str, ...] = (".js",)


class DependencyResolver:
    """Discovers the transitive local source files of an entry file.

    Usage:
        resolver = DependencyResolver()
        files = resolver.resolve_dependencies("/project/src/main.js")
    """

    def __init__(
        self,
        reader: Optional[SourceReader] = None,
        source_extensions: Sequence[str] = DEFAULT_SOURCE_EXTENSIONS,
    ) -> None:
        """Initialize resolver.

        Args:
            reader: Source reader (default: FileSystemReader).
            source_extensions: Extensions of files that are followed.
        """
        self._reader = reader if reader is not None else FileSystemReader()
        self._source_extensions = tuple(source_extensions)

    def scan_imports(self, content: str) -> List[str]:
        """Extract quoted import specifiers from source text, in order."""
        return IMPORT_PATTERN.findall(content)

    def is_source_file(self, path: str) -> bool:
        return path.endswith(self._source_extensions)

    def _local_dependencies(self, file_path: str, content: str) -> List[str]:
        base_dir = os.path.dirname(file_path)
        resolved: List[str] = []
        for specifier in self.scan_imports(content):
            full_path = os.path.normpath(os.path.join(base_dir, specifier))
            if self.is_source_file(full_path):
                resolved.append(full_path)
        return resolved

    def _walk(
        self,
        file_path: str,
        seen: Dict[str, None],
        token: Optional[CancellationToken],
        edges: Optional[List[Tuple[str, List[str]]]] = None,
    ) -> None:
        # Children are pushed in reverse so they pop in source order, which
        # yields the same pre-order as a recursive walk.
        stack: List[str] = [file_path]

        while stack:
            current = stack.pop()
            if current in seen:
                continue
            if token is not None:
                token.raise_if_cancelled("dependency resolution")

            seen[current] = None
            content = self._reader.read_text(current)
            dependencies = self._local_dependencies(current, content)
            if edges is not None:
                edges.append((current, dependencies))

            logger.debug(f"Resolved {len(dependencies)} local import(s) in {current}")
            stack.extend(reversed(dependencies))

    def resolve_dependencies(
        self,
        file_path: str,
        seen: Optional[Iterable[str]] = None,
        token: Optional[CancellationToken] = None,
    ) -> List[str]:
        """Resolve the transitive set of local source files.

        Args:
            file_path: Path of the file to start from. Made absolute.
            seen: Paths already resolved; none of them is read again. A dict
                (path -> None) accumulates every path the walk reaches, in
                discovery order, so one map can be shared across several
                entry files. Any other iterable is copied and left unchanged.
            token: Optional cancellation token, checked once per file.

        Returns:
            Every seen path (the initial ones first) in discovery order.

        Raises:
            FileNotFoundError: If a referenced file does not exist.
            OSError: If a file cannot be read.
            OperationCancelledError: If the token is cancelled.
        """
        if isinstance(seen, dict):
            seen_paths: Dict[str, None] = seen
        else:
            seen_paths = dict.fromkeys(seen or ())
        start = os.path.abspath(file_path)
        if start in seen_paths:
            return list(seen_paths)

        self._walk(start, seen_paths, token)
        return list(seen_paths)

    def build_module_graph(
        self,
        entry_file: str,
        project_root: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ) -> ModuleGraph:
        """Resolve an entry file and project the result onto a ModuleGraph.

        Nodes are files, edges are resolved local imports (cyclic ones
        included). Module ids are paths relative to project_root when given,
        absolute paths otherwise.

        Args:
            entry_file: Entry source file; its node is marked as an entry.
            project_root: Root used to compute module ids.
            token: Optional cancellation token.

        Returns:
            A new ModuleGraph owned by the caller.
        """
        start = os.path.abspath(entry_file)
        root = os.path.abspath(project_root) if project_root is not None else None

        def module_id(path: str) -> str:
            return os.path.relpath(path, root) if root is not None else path

        seen: Dict[str, None] = {}
        edges: List[Tuple[str, List[str]]] = []
        self._walk(start, seen, token, edges)

        graph = ModuleGraph()
        for path in seen:
            graph.add_module(module_id(path), {"path": path}, is_entry=path == start)
        for source, dependencies in edges:
            for dependency in dependencies:
                graph.add_dependency(module_id(source), module_id(dependency))

        logger.debug(f"Built module graph for {start}: {len(graph)} module(s)")
        return graph

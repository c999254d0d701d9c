# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Source watcher for development bundling.

Monitors a project with watchdog and notifies registered callbacks when a
source file is modified, deleted or moved. The watcher owns no cache; a
typical owner registers Bundler.on_source_changed, which clears the bundle
cache explicitly.

Filtering:
- Dependency and build output directories (node_modules, dist, ...)
- Sensitive files (.env, keys, package manager credentials)
- .gitignore patterns and user-configured patterns
- Only files with a configured source extension

Known Limitations:
- file_event_timestamps grows with every distinct path seen
- Symbolic links are followed by watchdog without validation that resolved
  paths stay within project_root
"""

import fnmatch
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Optional, Set

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

    from aerobundle.config import Config

logger = logging.getLogger(__name__)

# Callback signature: (filepath: str) -> None
InvalidationCallback = Callable[[str], None]


class SourceWatcher:
    """Watches a project for source file changes.

    Thread Safety:
    - Callbacks are invoked from the watchdog observer thread
    - file_event_timestamps: Simple dict operations protected by GIL

    Usage:
        watcher = SourceWatcher("/path/to/project", source_extensions=[".js"])
        watcher.register_invalidation_callback(bundler.on_source_changed)
        watcher.start()
        # ... serve bundles ...
        watcher.stop()
    """

    ALWAYS_IGNORED = {
        ".git",
        "node_modules",
        "bower_components",
        ".cache",
        ".next",
        "coverage",
        "dist",
        "build",
        "__pycache__",
        ".venv",
        "venv",
    }

    SENSITIVE_PATTERNS = {
        ".env",
        ".env.*",
        "*.key",
        "*.pem",
        "credentials.json",
        ".npmrc",
        "secrets.yaml",
        "secrets.yml",
    }

    def __init__(
        self,
        project_root: str,
        source_extensions: Optional[Iterable[str]] = None,
        gitignore_path: Optional[str] = None,
        user_ignore_patterns: Optional[Set[str]] = None,
    ):
        """Initialize SourceWatcher.

        Args:
            project_root: Root directory to watch.
            source_extensions: Extensions that count as source (default: .js).
            gitignore_path: Path to .gitignore (defaults to {project_root}/.gitignore).
            user_ignore_patterns: Additional user-configured ignore patterns.
        """
        self.project_root = Path(project_root).resolve()
        self.source_extensions = set(source_extensions or (".js",))
        self.gitignore_path = (
            Path(gitignore_path) if gitignore_path else self.project_root / ".gitignore"
        )
        self.user_ignore_patterns = user_ignore_patterns or set()

        self.file_event_timestamps: Dict[str, float] = {}

        self._gitignore_patterns: Set[str] = self._load_gitignore()
        self._invalidation_callbacks: List[InvalidationCallback] = []

        self._observer: Optional["BaseObserver"] = None
        self._event_handler = _SourceEventHandler(self)

        logger.info(f"SourceWatcher initialized for {self.project_root}")

    @classmethod
    def from_config(cls, project_root: str, config: "Config") -> "SourceWatcher":
        """Create a watcher using the configured extensions and ignore patterns."""
        return cls(
            project_root,
            source_extensions=config.source_extensions,
            user_ignore_patterns=set(config.watch_ignore_patterns),
        )

    def _load_gitignore(self) -> Set[str]:
        """Load .gitignore patterns, skipping comments and blank lines.

        Directory patterns ("build/") are stored without the trailing slash.
        """
        patterns: Set[str] = set()

        if not self.gitignore_path.exists():
            logger.debug(f"No .gitignore found at {self.gitignore_path}")
            return patterns

        try:
            with open(self.gitignore_path, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith("#") or line.startswith("!"):
                        continue
                    patterns.add(line.rstrip("/"))
            logger.debug(f"Loaded {len(patterns)} patterns from .gitignore")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read .gitignore: {e}")

        return patterns

    def should_ignore(self, file_path: str) -> bool:
        """Check if a path is excluded from watching.

        Args:
            file_path: Absolute or relative file path

        Returns:
            True if the path should be ignored
        """
        path = Path(file_path)
        try:
            rel_path_str = str(path.relative_to(self.project_root))
        except ValueError:
            rel_path_str = str(path)

        for part in Path(rel_path_str).parts:
            if part in self.ALWAYS_IGNORED:
                return True

        for pattern in self.SENSITIVE_PATTERNS:
            if fnmatch.fnmatch(path.name, pattern):
                logger.debug(f"Ignoring sensitive file: {path.name}")
                return True

        for pattern in self._gitignore_patterns | set(self.user_ignore_patterns):
            if fnmatch.fnmatch(rel_path_str, pattern) or fnmatch.fnmatch(path.name, pattern):
                return True
            if any(part == pattern for part in Path(rel_path_str).parts[:-1]):
                return True

        return False

    def is_supported_file(self, file_path: str) -> bool:
        return Path(file_path).suffix in self.source_extensions

    def register_invalidation_callback(self, callback: InvalidationCallback) -> None:
        """Register a callback invoked with the path of a changed source file.

        Callbacks run synchronously on the observer thread and should return
        quickly.

        Example:
            watcher.register_invalidation_callback(bundler.on_source_changed)
        """
        if callback not in self._invalidation_callbacks:
            self._invalidation_callbacks.append(callback)
            logger.debug(f"Registered invalidation callback: {callback}")

    def unregister_invalidation_callback(self, callback: InvalidationCallback) -> None:
        if callback in self._invalidation_callbacks:
            self._invalidation_callbacks.remove(callback)
            logger.debug(f"Unregistered invalidation callback: {callback}")

    def _notify_invalidation_callbacks(self, file_path: str) -> None:
        for callback in self._invalidation_callbacks:
            try:
                callback(file_path)
            except Exception as e:
                # One failing callback must not starve the others
                logger.error(f"Invalidation callback failed for {file_path}: {e}")

    def handle_change(self, file_path: str, invalidate: bool = True) -> bool:
        """Record a change to a path and notify callbacks if it is a source file.

        Returns:
            True if the path was accepted (supported and not ignored).
        """
        if self.should_ignore(file_path) or not self.is_supported_file(file_path):
            return False

        self.file_event_timestamps[file_path] = time.time()
        if invalidate:
            self._notify_invalidation_callbacks(file_path)
        return True

    def get_timestamp(self, file_path: str) -> Optional[float]:
        """Last event timestamp for a file, or None if none was recorded."""
        return self.file_event_timestamps.get(file_path)

    def start(self) -> None:
        """Start watching the project.

        Raises:
            RuntimeError: If the watcher is already running
        """
        if self._observer is not None and self._observer.is_alive():
            raise RuntimeError("SourceWatcher is already running")

        self._observer = Observer()
        self._observer.schedule(  # type: ignore  # watchdog types vary by version
            self._event_handler, str(self.project_root), recursive=True
        )
        self._observer.start()  # type: ignore  # watchdog types vary by version

        logger.info(f"SourceWatcher started, monitoring {self.project_root}")

    def stop(self) -> None:
        """Stop watching. Blocks until the observer thread exits (5s timeout)."""
        if self._observer is not None and self._observer.is_alive():
            self._observer.stop()  # type: ignore  # watchdog types vary by version
            self._observer.join(timeout=5.0)
            logger.info("SourceWatcher stopped")

    def is_running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()


class _SourceEventHandler(FileSystemEventHandler):
    """Internal watchdog handler delegating to SourceWatcher."""

    def __init__(self, watcher: SourceWatcher):
        super().__init__()
        self.watcher = watcher

    def _handle_path(self, path: object, invalidate: bool) -> None:
        file_path = str(path)
        if self.watcher.handle_change(file_path, invalidate=invalidate):
            logger.debug(f"Source event: {file_path}")

    def on_created(self, event: FileSystemEvent) -> None:
        # A new file only matters once something imports it, which is a modification
        if not event.is_directory:
            self._handle_path(event.src_path, invalidate=False)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle_path(event.src_path, invalidate=True)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle_path(event.src_path, invalidate=True)

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._handle_path(event.src_path, invalidate=True)
        dest_path = getattr(event, "dest_path", None)
        if dest_path:
            self._handle_path(dest_path, invalidate=True)

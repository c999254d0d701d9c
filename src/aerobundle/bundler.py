# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Bundle generation with caching.

Pipeline for one (project_root, entry_point) request:
1. Cache lookup (skipped when force=True)
2. Dependency resolution from the entry file
3. Concatenation in discovery order, each file preceded by a
   "// File: <relative path>" separator
4. Minification (when enabled)
5. Cache write, only after every step succeeded

Any failure in steps 2-4 raises BundleGenerationError and leaves the cache
untouched. Concurrent builds of the same key converge on one execution
through BundleCache's in-flight marker.

Thread Safety:
    Bundler is safe to call from multiple threads (e.g. a server thread
    pool). Reads are blocking; run generate_bundle off the event loop when
    hosting it in an async server.
"""

import hashlib
import logging
import os
import time
from typing import Optional, Union

from aerobundle.cache import BundleCache, CacheKey
from aerobundle.cancellation import CancellationToken
from aerobundle.config import Config
from aerobundle.logging_setup import log_fields
from aerobundle.minifier import minify_bundle
from aerobundle.models import BundleResult
from aerobundle.module_graph import ModuleGraph
from aerobundle.reader import FileSystemReader, SourceReader
from aerobundle.resolver import DependencyResolver

logger = logging.getLogger(__name__)


class BundleGenerationError(Exception):
    """Raised when resolving, reading or minifying a bundle fails.

    The original exception is chained as __cause__.
    """

    def __init__(self, message: str, project_root: str, entry_point: str) -> None:
        self.project_root = project_root
        self.entry_point = entry_point
        super().__init__(f"Bundle generation failed: {message}")


def content_fingerprint(data: Union[str, bytes], algorithm: str = "sha256") -> str:
    """Compute a deterministic hex digest of content.

    Args:
        data: Content to fingerprint. Strings are UTF-8 encoded.
        algorithm: hashlib algorithm name.

    Returns:
        Hex digest suitable as an ETag.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.new(algorithm, data).hexdigest()


class Bundler:
    """Resolves, concatenates, minifies and caches bundles.

    The cache is owned by the bundler instance: pass one in to share it
    deliberately, otherwise each bundler gets its own.

    Usage:
        bundler = Bundler(Config())
        text = bundler.generate_bundle("./src", "main.js")
        etag = bundler.content_fingerprint(text)
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        reader: Optional[SourceReader] = None,
        cache: Optional[BundleCache] = None,
    ) -> None:
        """Initialize bundler.

        Args:
            config: Bundler configuration (default: Config.from_dict({})).
            reader: Source reader shared by resolution and concatenation.
            cache: Bundle cache (default: a new BundleCache).
        """
        self.config = config if config is not None else Config.from_dict({})
        self._reader = (
            reader
            if reader is not None
            else FileSystemReader(
                max_retries=self.config.read_max_retries,
                max_file_size_bytes=self.config.max_file_size_kb * 1024,
            )
        )
        self._cache = cache if cache is not None else BundleCache()
        self._resolver = DependencyResolver(self._reader, self.config.source_extensions)

    @property
    def cache(self) -> BundleCache:
        return self._cache

    @property
    def resolver(self) -> DependencyResolver:
        return self._resolver

    def generate_bundle(
        self,
        project_root: str,
        entry_point: str,
        force: bool = False,
        token: Optional[CancellationToken] = None,
    ) -> str:
        """Get the bundle for an entry point, building it on miss or force.

        A cached bundle is returned unchanged, without re-reading any file.

        Args:
            project_root: Project directory; entry_point is relative to it.
            entry_point: Entry file path relative to project_root.
            force: Rebuild even if a cached bundle exists.
            token: Cancellation token for the build. When None and
                resolve_timeout_seconds is set, a deadline token is created.

        Returns:
            Bundle text.

        Raises:
            BundleGenerationError: If the build fails. The cache is unchanged.
        """
        key: CacheKey = (project_root, entry_point)

        if not force:
            cached = self._cache.get(key)
            if cached is not None:
                return cached

        future, is_owner, generation = self._cache.begin_build(key)
        if not is_owner:
            return future.result()

        try:
            text = self._build(project_root, entry_point, token)
        except BaseException as e:
            self._cache.fail_build(key, future, e)
            raise

        self._cache.complete_build(key, future, text, generation)
        return text

    def _build(
        self, project_root: str, entry_point: str, token: Optional[CancellationToken]
    ) -> str:
        if token is None and self.config.resolve_timeout_seconds:
            token = CancellationToken(self.config.resolve_timeout_seconds)

        root = os.path.abspath(project_root)
        entry_file = os.path.join(root, entry_point)
        started = time.monotonic()

        try:
            files = self._resolver.resolve_dependencies(entry_file, token=token)

            parts = []
            for file_path in files:
                content = self._reader.read_text(file_path)
                parts.append(f"\n// File: {os.path.relpath(file_path, root)}\n{content}\n")
            bundle = "".join(parts)

            if self.config.minify:
                bundle = minify_bundle(bundle)
        except Exception as e:
            logger.error(
                f"Bundle generation failed for {entry_file}: {e}",
                extra=log_fields(
                    project_root=project_root,
                    entry_point=entry_point,
                    error_type=type(e).__name__,
                ),
            )
            raise BundleGenerationError(str(e), project_root, entry_point) from e

        logger.info(
            f"Built bundle for {entry_file}: {len(files)} file(s), {len(bundle)} chars",
            extra=log_fields(
                project_root=project_root,
                entry_point=entry_point,
                file_count=len(files),
                chars=len(bundle),
                minified=self.config.minify,
                duration_ms=round((time.monotonic() - started) * 1000, 1),
            ),
        )
        return bundle

    def bundle_with_fingerprint(
        self,
        project_root: str,
        entry_point: str,
        force: bool = False,
        token: Optional[CancellationToken] = None,
    ) -> BundleResult:
        """Generate a bundle and pair it with its fingerprint."""
        text = self.generate_bundle(project_root, entry_point, force=force, token=token)
        return BundleResult(
            text=text,
            etag=self.content_fingerprint(text),
            project_root=project_root,
            entry_point=entry_point,
        )

    def content_fingerprint(self, data: Union[str, bytes]) -> str:
        """Fingerprint content with the configured algorithm."""
        return content_fingerprint(data, self.config.fingerprint_algorithm)

    def clear_cache(self) -> None:
        """Empty the bundle cache; every later request rebuilds."""
        self._cache.clear()
        logger.info("Bundle cache cleared")

    def on_source_changed(self, file_path: str) -> None:
        """Invalidation callback for SourceWatcher.

        Clears the whole cache: a changed file may belong to any bundle.
        """
        logger.debug(f"Source changed: {file_path}", extra=log_fields(file_path=file_path))
        self.clear_cache()

    def build_module_graph(
        self,
        project_root: str,
        entry_point: str,
        token: Optional[CancellationToken] = None,
    ) -> ModuleGraph:
        """Project an entry point's resolved files onto a ModuleGraph.

        Module ids are paths relative to project_root. Not cached.
        """
        entry_file = os.path.join(os.path.abspath(project_root), entry_point)
        return self._resolver.build_module_graph(entry_file, project_root, token=token)

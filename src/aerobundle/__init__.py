# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Module dependency graph and bundle cache for development bundling."""

from .bundler import BundleGenerationError, Bundler, content_fingerprint
from .cache import BundleCache
from .cancellation import CancellationToken, OperationCancelledError
from .config import Config, ConfigurationError
from .file_watcher import SourceWatcher
from .logging_setup import StructuredFormatter, log_fields, setup_logging
from .minifier import minify_bundle
from .models import BundleResult, CacheStatistics, GraphSummary, ModuleNode
from .module_graph import DuplicateModuleError, ModuleGraph, UnknownModuleError
from .reader import FileSystemReader, SourceReader, SourceTooLargeError
from .resolver import DependencyResolver

__version__ = "0.1.0"

__all__ = [
    "ModuleGraph",
    "ModuleNode",
    "GraphSummary",
    "DuplicateModuleError",
    "UnknownModuleError",
    "DependencyResolver",
    "SourceReader",
    "FileSystemReader",
    "SourceTooLargeError",
    "BundleCache",
    "CacheStatistics",
    "Bundler",
    "BundleResult",
    "BundleGenerationError",
    "content_fingerprint",
    "minify_bundle",
    "CancellationToken",
    "OperationCancelledError",
    "Config",
    "ConfigurationError",
    "SourceWatcher",
    "setup_logging",
    "log_fields",
    "StructuredFormatter",
]

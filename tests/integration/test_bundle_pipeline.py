# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""End-to-end tests for the bundling pipeline.

Covers resolution over a realistic project layout, configuration loaded from
YAML, cache behavior across entry points, graph diagnostics and watcher-driven
invalidation.
"""

import time
from pathlib import Path

import pytest
import yaml

from aerobundle import Bundler, Config, SourceWatcher, content_fingerprint

pytestmark = pytest.mark.integration

DISCOVERY_ORDER = [
    "src/main.js",
    "src/app.js",
    "src/lib/util.js",
    "src/lib/store.js",
    "src/lib/events.js",
    "src/pages/about.js",
]


def create_config_file(project_path: Path, **kwargs) -> Path:
    """Create a config file with given settings."""
    config_path = project_path / ".aerobundle.yml"
    config_path.write_text(yaml.dump(kwargs))
    return config_path


def wait_for(condition, timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.05)
    return condition()


class TestBundlePipeline:
    """Resolver, bundler and cache working together."""

    def test_unminified_bundle_follows_discovery_order(self, sample_project: Path) -> None:
        config = Config(create_config_file(sample_project, minify=False))
        bundler = Bundler(config)

        text = bundler.generate_bundle(str(sample_project), "src/main.js")

        prefix = "// File: "
        separators = [line[len(prefix) :] for line in text.splitlines() if line.startswith(prefix)]
        assert separators == DISCOVERY_ORDER
        assert "body { margin: 0; }" not in text
        assert "left-pad" not in text

    def test_minified_bundle(self, sample_project: Path) -> None:
        bundler = Bundler()

        text = bundler.generate_bundle(str(sample_project), "src/main.js")

        assert "\n" not in text
        assert "// File:" not in text
        assert "Application shell" not in text
        assert 'console.log("state:", value);' in text
        assert text.index("module.exports = { start") < text.index("module.exports = { state")

    def test_entry_points_share_cache_but_not_entries(self, sample_project: Path) -> None:
        bundler = Bundler()

        main = bundler.bundle_with_fingerprint(str(sample_project), "src/main.js")
        admin = bundler.bundle_with_fingerprint(str(sample_project), "src/admin.js")

        assert main.etag != admin.etag
        assert admin.text.startswith("const util = require('./lib/util.js'); util.log('admin');")
        assert len(bundler.cache) == 2

        # Cached responses keep their fingerprints
        again = bundler.bundle_with_fingerprint(str(sample_project), "src/main.js")
        assert again.etag == main.etag
        assert bundler.cache.get_statistics().hits == 1

    def test_edit_then_clear_changes_fingerprint(self, sample_project: Path) -> None:
        bundler = Bundler()
        before = bundler.bundle_with_fingerprint(str(sample_project), "src/main.js")

        util = sample_project / "src" / "lib" / "util.js"
        util.write_text(util.read_text().replace("state:", "State:"))

        # Still served from cache until cleared
        assert bundler.generate_bundle(str(sample_project), "src/main.js") == before.text

        bundler.clear_cache()
        after = bundler.bundle_with_fingerprint(str(sample_project), "src/main.js")

        assert after.etag != before.etag
        assert after.etag == content_fingerprint(after.text)


class TestModuleGraphDiagnostics:
    """Module graph built from the sample project."""

    def test_graph_structure(self, sample_project: Path) -> None:
        graph = Bundler().build_module_graph(str(sample_project), "src/main.js")

        assert sorted(graph.module_ids) == sorted(DISCOVERY_ORDER)
        assert graph.entry_points == ["src/main.js"]
        assert graph.get_dependents("src/lib/util.js") == {"src/app.js", "src/pages/about.js"}
        assert graph.get_all_dependencies("src/main.js") == set(DISCOVERY_ORDER) - {"src/main.js"}

        is_valid, errors = graph.validate_graph()
        assert is_valid, errors

    def test_cycle_and_execution_order(self, sample_project: Path) -> None:
        graph = Bundler().build_module_graph(str(sample_project), "src/main.js")

        cycles = graph.find_circular_dependencies()
        assert any(set(cycle) == {"src/lib/store.js", "src/lib/events.js"} for cycle in cycles)

        order = graph.get_module_execution_order()
        assert sorted(order) == sorted(DISCOVERY_ORDER)
        assert order[-1] == "src/main.js"
        assert order.index("src/lib/util.js") < order.index("src/app.js")
        assert order.index("src/lib/util.js") < order.index("src/pages/about.js")

        summary = graph.get_graph_summary()
        assert summary.total_modules == len(DISCOVERY_ORDER)
        assert summary.execution_order == order


@pytest.mark.slow
class TestWatcherInvalidation:
    """SourceWatcher driving Bundler invalidation through watchdog events."""

    def test_modification_clears_cache(self, sample_project: Path) -> None:
        bundler = Bundler()
        watcher = SourceWatcher.from_config(str(sample_project), bundler.config)
        watcher.register_invalidation_callback(bundler.on_source_changed)

        bundler.generate_bundle(str(sample_project), "src/main.js")
        assert len(bundler.cache) == 1

        watcher.start()
        try:
            time.sleep(0.1)
            util = sample_project / "src" / "lib" / "util.js"
            util.write_text(util.read_text() + "\n// touched\n")

            assert wait_for(lambda: len(bundler.cache) == 0)
            assert watcher.get_timestamp(str(util.resolve())) is not None
        finally:
            watcher.stop()

    def test_ignored_directory_does_not_clear_cache(self, sample_project: Path) -> None:
        bundler = Bundler()
        watcher = SourceWatcher(str(sample_project))
        watcher.register_invalidation_callback(bundler.on_source_changed)
        bundler.generate_bundle(str(sample_project), "src/main.js")

        watcher.start()
        try:
            time.sleep(0.1)
            (sample_project / "node_modules" / "left-pad" / "index.js").write_text("// v2\n")
            time.sleep(0.5)

            assert len(bundler.cache) == 1
        finally:
            watcher.stop()

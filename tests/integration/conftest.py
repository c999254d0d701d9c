# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures for integration tests.

Provides a representative JavaScript project for end-to-end bundling.
"""

from pathlib import Path

import pytest


@pytest.fixture
def sample_project(tmp_path: Path) -> Path:
    """Create a representative JavaScript project.

    Creates a multi-module project with:
    - An entry point importing through nested directories
    - A shared module imported from two places
    - A cyclic import pair
    - A lazily imported page via dynamic import()
    - Package and stylesheet imports that are not followed
    - A second entry point sharing modules with the first

    Returns:
        Path to the project root directory
    """
    project_root = tmp_path / "sample_project"
    src = project_root / "src"
    (src / "lib").mkdir(parents=True)
    (src / "pages").mkdir()
    (project_root / "node_modules" / "left-pad").mkdir(parents=True)

    (src / "main.js").write_text(
        """// Application entry
const React = require('react');
require('./styles.css');
const app = require('./app.js');
import('./pages/about.js').then((page) => page.render());
app.start();
"""
    )

    (src / "app.js").write_text(
        """/* Application shell */
const util = require('./lib/util.js');
const store = require('./lib/store.js');
module.exports = { start: () => util.log(store.state) };
"""
    )

    (src / "lib" / "util.js").write_text(
        """// Shared helpers
module.exports = {
    log: function (value) {
        console.log("state:", value);
    },
};
"""
    )

    (src / "lib" / "store.js").write_text(
        """const events = require('./events.js');
module.exports = { state: 1, events };
"""
    )

    # Cyclic pair: events.js -> store.js -> events.js
    (src / "lib" / "events.js").write_text(
        """const store = require('./store.js');
module.exports = { emit: () => store.state };
"""
    )

    (src / "pages" / "about.js").write_text(
        """const util = require('../lib/util.js');
module.exports = { render: () => util.log('about') };
"""
    )

    (src / "admin.js").write_text(
        """const util = require('./lib/util.js');
util.log('admin');
"""
    )

    (src / "styles.css").write_text("body { margin: 0; }\n")
    (project_root / "node_modules" / "left-pad" / "index.js").write_text("module.exports = 1;\n")

    return project_root

# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures for bundler tests."""

from collections import Counter
from pathlib import Path
from typing import Callable, Dict, List

import pytest

from aerobundle.reader import FileSystemReader, SourceReader


class CountingReader(SourceReader):
    """FileSystemReader wrapper that records every read."""

    def __init__(self) -> None:
        self._inner = FileSystemReader(max_retries=1)
        self.reads: List[str] = []

    def read_text(self, path: str) -> str:
        self.reads.append(path)
        return self._inner.read_text(path)

    @property
    def read_count(self) -> int:
        return len(self.reads)

    def counts(self) -> Counter:
        return Counter(self.reads)

    def reset(self) -> None:
        self.reads.clear()


@pytest.fixture
def counting_reader() -> CountingReader:
    return CountingReader()


@pytest.fixture
def write_files(tmp_path: Path) -> Callable[[Dict[str, str]], Path]:
    """Write a {relative_path: content} mapping under tmp_path and return the root."""

    def _write(files: Dict[str, str]) -> Path:
        for rel_path, content in files.items():
            path = tmp_path / rel_path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return tmp_path

    return _write

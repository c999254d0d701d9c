# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Source readers used by the resolver and the bundler.

The bundler core never opens files directly; it goes through a SourceReader
so callers can substitute an in-memory or instrumented implementation.
"""

import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path

logger = logging.getLogger(__name__)


class SourceTooLargeError(OSError):
    """Raised when a source file exceeds the configured size limit."""

    pass


class SourceReader(ABC):
    """Abstract text-read capability."""

    @abstractmethod
    def read_text(self, path: str) -> str:
        """Read the full text of a source file.

        Args:
            path: Absolute path of the file.

        Returns:
            File content.

        Raises:
            FileNotFoundError: If the file does not exist.
            OSError: If the file cannot be read.
        """
        pass


class FileSystemReader(SourceReader):
    """Reads source files from disk.

    Error Recovery:
    - Encoding errors: Try UTF-8 first, fall back to latin-1
    - Transient OS errors (locks, busy files): Retry with exponential backoff
      (100ms, 200ms, 400ms, ...)
    - Size limit: Checked on every attempt, so a transient stat failure is
      retried too; oversized files are rejected without retry
    - Missing files and directories: Raised immediately, never retried
    """

    MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024  # 10MB

    def __init__(
        self,
        max_retries: int = 3,
        max_file_size_bytes: int = MAX_FILE_SIZE_BYTES,
    ) -> None:
        """Initialize reader.

        Args:
            max_retries: Maximum read attempts per file (default: 3).
            max_file_size_bytes: Files larger than this are rejected.
        """
        self._max_retries = max(1, max_retries)
        self._max_file_size_bytes = max_file_size_bytes

    def read_text(self, path: str) -> str:
        for attempt in range(self._max_retries):
            try:
                return self._read_once(path)
            except (FileNotFoundError, IsADirectoryError, SourceTooLargeError):
                raise
            except OSError as e:
                if attempt < self._max_retries - 1:
                    delay = 0.1 * (2**attempt)
                    logger.debug(
                        f"Read attempt {attempt + 1} failed for {path}: {e}. "
                        f"Retrying in {delay * 1000:.0f}ms..."
                    )
                    time.sleep(delay)
                else:
                    logger.warning(f"Failed to read {path} after {self._max_retries} attempts: {e}")
                    raise

        # Unreachable: the loop either returns or raises
        raise OSError(f"Failed to read {path} after {self._max_retries} attempts")

    def _read_once(self, path: str) -> str:
        file_size = Path(path).stat().st_size
        if file_size > self._max_file_size_bytes:
            raise SourceTooLargeError(
                f"{path} is {file_size} bytes, exceeds limit ({self._max_file_size_bytes})"
            )

        try:
            with open(path, encoding="utf-8") as f:
                return f.read()
        except UnicodeDecodeError:
            logger.warning(f"File {path} is not UTF-8, using latin-1 fallback encoding")
            with open(path, encoding="latin-1") as f:
                return f.read()

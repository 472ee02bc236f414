"""Helpers for whole-file binary writes."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import BinaryIO, Callable


class Persistence:
    """Handles truncating and atomic binary file writes."""

    @staticmethod
    def write_binary(file_path: Path, writer: Callable[[BinaryIO], None], atomic: bool = False) -> None:
        """
        Write a file through ``writer``, replacing any previous content.

        Args:
            file_path: Destination file.
            writer: Callback that receives the open binary handle.
            atomic: Write to a temporary sibling first and rename it into place,
                so concurrent readers see either the old or the new file.
        """
        if not atomic:
            with file_path.open("wb") as fp:
                writer(fp)
            return

        tmp_fd, tmp_path = tempfile.mkstemp(dir=file_path.parent, suffix=".tmp")
        try:
            with os.fdopen(tmp_fd, "wb") as fp:
                writer(fp)
                fp.flush()
                os.fsync(fp.fileno())
            os.replace(tmp_path, file_path)
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)

    @staticmethod
    def ensure_dir(dir_path: Path) -> None:
        """Create directory if it doesn't exist."""
        dir_path.mkdir(parents=True, exist_ok=True)

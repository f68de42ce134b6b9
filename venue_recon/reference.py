"""Reference-table providers.

The orchestrator never reads the reference table from a fixed location; it
is handed a provider. ``InlineReference`` wraps text that arrived with the
request. ``FileReferenceStore`` reads (and replaces) a CSV file on disk.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

log = logging.getLogger(__name__)


class ReferenceProvider(Protocol):
    def load(self) -> str:
        """Return the reference table as delimited text ("" if none)."""
        ...


@dataclass(frozen=True)
class InlineReference:
    text: str = ""

    def load(self) -> str:
        return self.text or ""


@dataclass(frozen=True)
class FileReferenceStore:
    """A reference table kept in a single CSV file."""

    path: Path

    def load(self) -> str:
        if not self.path.exists():
            raise FileNotFoundError(f"Reference table not found: {self.path}")
        return self.path.read_text(encoding="utf-8")

    def save(self, text: str) -> None:
        """Replace the stored table.

        Writes to a temp file in the same directory and renames it over the
        target so a reader never sees a partial table.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(text)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        log.info("Stored reference table: %s (%d bytes)", self.path, len(text))

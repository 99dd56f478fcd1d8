"""
Execution log persistence.

The persisted layout is a JSON array of execution records:

    [{"sliceIndex": 0, "status": "succeeded", "timestamp": "...",
      "reference": "...", "error": null, ...}, ...]
"""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Protocol

from lop_twap.core.domain.types import ExecutionRecord


class ExecutionLogSink(Protocol):
    def write(self, records: list[dict[str, Any]]) -> None:
        """Persist the full execution log (replacing any previous snapshot)."""


class JsonExecutionLogSink:
    """Writes the execution log as a JSON array, atomically replacing the file."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def write(self, records: list[dict[str, Any]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        tmp_path.write_text(json.dumps(records, indent=2), encoding="utf-8")
        os.replace(tmp_path, self._path)

    def read(self) -> list[ExecutionRecord]:
        """Load a previously persisted execution log."""
        if not self._path.exists():
            raise FileNotFoundError(self._path)
        raw = json.loads(self._path.read_text(encoding="utf-8"))
        return [ExecutionRecord.model_validate(item) for item in raw]

"""JSON record persistence for caches, sessions and resume checkpoints."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Protocol

from xfetch.core import CheckpointIOError, get_logger


logger = get_logger(__name__)


class RecordStore(Protocol):
    """Read/write access to one keyed JSON record."""

    @property
    def location(self) -> str: ...

    def read(self) -> dict[str, Any] | None: ...

    def write(self, record: dict[str, Any]) -> None: ...

    def delete(self) -> None: ...


class JsonFileStore:
    """Stores a single JSON object in a file.

    Writes go through a temporary sibling file and an atomic rename, so a
    crash mid-write leaves the previous record intact.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path).expanduser().resolve()

    @property
    def location(self) -> str:
        return str(self.path)

    def exists(self) -> bool:
        return self.path.exists()

    def read(self) -> dict[str, Any] | None:
        """Return the stored record, or None if the file does not exist.

        Raises:
            CheckpointIOError: If the file exists but cannot be read or parsed.
        """
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise CheckpointIOError(
                f"Failed to read {self.path}: {e}",
                path=str(self.path),
                operation="read",
            ) from e
        if not isinstance(data, dict):
            raise CheckpointIOError(
                f"Expected a JSON object in {self.path}",
                path=str(self.path),
                operation="read",
            )
        return data

    def write(self, record: dict[str, Any]) -> None:
        """Persist the record, replacing any previous one."""
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(record, indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            raise CheckpointIOError(
                f"Failed to write {self.path}: {e}",
                path=str(self.path),
                operation="write",
            ) from e
        logger.debug("store.written", path=str(self.path))

    def delete(self) -> None:
        """Remove the record if present."""
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise CheckpointIOError(
                f"Failed to delete {self.path}: {e}",
                path=str(self.path),
                operation="delete",
            ) from e

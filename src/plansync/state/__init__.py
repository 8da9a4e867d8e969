"""Key-value persistence of per-workspace view state."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any

from .errors import MissingStateError, StateError

LOGGER = logging.getLogger(__name__)

DEFAULT_STATE_DIRNAME = ".plansync"
STATE_FILENAME = "state.json"


class ViewStateStore:
    """Persist small JSON values under the workspace state directory."""

    def __init__(self, root: Path, base_dirname: str = DEFAULT_STATE_DIRNAME) -> None:
        """Initialize the store for a workspace.

        Args:
            root: Workspace root.
            base_dirname: Name of the directory that stores state artifacts.
        """
        self._root = root
        self._base_dirname = base_dirname
        self._lock = threading.Lock()

    @property
    def base_dirname(self) -> str:
        """Return the directory name used for workspace state."""
        return self._base_dirname

    @property
    def state_dir(self) -> Path:
        """Return the directory holding state artifacts."""
        return self._root / self._base_dirname

    @property
    def state_path(self) -> Path:
        """Return the JSON file backing the store."""
        return self.state_dir / STATE_FILENAME

    def initialize(self) -> Path:
        """Create the state directory if needed.

        Returns:
            Path: Directory containing the state artifacts.
        """
        self.state_dir.mkdir(parents=True, exist_ok=True)
        return self.state_dir

    def load_all(self) -> dict[str, Any]:
        """Return every stored key.

        Raises:
            MissingStateError: If no state file is present.
            StateError: If stored data cannot be parsed.
        """
        with self._lock:
            return self._read()

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value stored under ``key``.

        Args:
            key: Entry name.
            default: Value returned when the key or the file is absent.

        Raises:
            StateError: If the state file exists but cannot be parsed.
        """
        try:
            data = self.load_all()
        except MissingStateError:
            return default
        return data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``, replacing an unreadable file.

        Raises:
            StateError: If the state file cannot be written.
        """
        with self._lock:
            try:
                data = self._read()
            except MissingStateError:
                data = {}
            except StateError as exc:
                LOGGER.warning("Replacing unreadable state file %s: %s", self.state_path, exc)
                data = {}
            data[key] = value
            try:
                self.initialize()
                self.state_path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
            except (OSError, TypeError) as exc:
                raise StateError(f"Unable to write {self.state_path}: {exc}") from exc

    def _read(self) -> dict[str, Any]:
        path = self.state_path
        if not path.exists():
            raise MissingStateError(f"No view state found at {path}")
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StateError(f"Invalid view state data: {exc}") from exc
        if not isinstance(data, dict):
            raise StateError("View state must contain a JSON object.")
        return data


__all__ = [
    "ViewStateStore",
    "DEFAULT_STATE_DIRNAME",
    "STATE_FILENAME",
    "StateError",
    "MissingStateError",
]

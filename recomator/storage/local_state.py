"""
Durable key → string storage for client state (training data, last project
selection, bearer token).

File layout::

    data/state/
      training_data.json
      project_list.json
      auth_token.json

Each file contains one envelope::

    {
      "_meta": {"key": "training_data", "written_at": "2026-10-19T15:00:00Z"},
      "value": "<string exactly as handed to set_item>"
    }

Values are opaque strings (callers serialize their own JSON), so a value
read back is byte-for-byte the value written.
"""

from __future__ import annotations

import json
import logging
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class LocalStateStore:
    """Directory-backed replacement for browser local storage.

    Usage::

        store = LocalStateStore("data/state")
        store.set_item("project_list", '["proj-a", "proj-b"]')
        store.get_item("project_list")   # '["proj-a", "proj-b"]'
    """

    def __init__(self, state_dir: str | Path) -> None:
        self.state_dir = Path(state_dir)

    def _path_for(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid state key '{key}'.")
        return self.state_dir / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value, or ``None`` if the key was never written.

        Raises:
            ValueError: If the file exists but is not a valid envelope.
        """
        path = self._path_for(key)
        if not path.exists():
            return None
        with open(path, encoding="utf-8") as f:
            envelope = json.load(f)
        value = envelope.get("value") if isinstance(envelope, dict) else None
        if not isinstance(value, str):
            raise ValueError(f"State file {path} has no string 'value'.")
        return value

    def set_item(self, key: str, value: str) -> None:
        """Write ``value`` under ``key``, replacing any previous value.

        The file is written to a temporary sibling and renamed into place so
        a crash mid-write never leaves a truncated envelope.
        """
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        envelope = {
            "_meta": {
                "key": key,
                "written_at": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            },
            "value": value,
        }
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(envelope, f, indent=2)
        os.replace(tmp_path, path)
        logger.debug("State saved: %s (%d chars)", path.name, len(value))

    def remove_item(self, key: str) -> None:
        path = self._path_for(key)
        if path.exists():
            path.unlink()

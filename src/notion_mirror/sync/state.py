"""Sync state persistence layer.

The state file ``sync_state.json`` lives in the configured state directory
(by default ``<vault>/.notion_mirror/``) and records what the last pass
wrote:

* ``entries``: ``local_path -> {content_hash, last_synced_at, metadata}``
* ``nodes``: ``local_path -> remote node id`` for folders and documents
* ``root_page_id``: the root the cached node ids belong to

Writes are atomic (temp file plus ``os.replace()``) so an interrupted pass
never leaves a truncated file behind.  State is a plain ``dict`` that the
engine mutates during a pass and persists once at the end.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

STATE_FILE_NAME = "sync_state.json"
STATE_VERSION = 1


def empty_state(root_page_id: str | None = None) -> dict:
    return {
        "version": STATE_VERSION,
        "last_sync": None,
        "root_page_id": root_page_id,
        "entries": {},
        "nodes": {},
    }


class SyncState:
    """Load and save the mirror's sync state.

    Args:
        state_dir: Directory holding ``sync_state.json``.
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = Path(state_dir)

    @property
    def path(self) -> Path:
        return self._state_dir / STATE_FILE_NAME

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> dict:
        """Load state from disk.

        Returns:
            The state dict.  A missing or unreadable file yields an empty
            state; the unreadable case is logged since the next pass will
            re-upload every document.
        """
        path = self.path
        if not path.exists():
            return empty_state()
        try:
            with open(path, encoding="utf-8") as fh:
                state = json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable state file %s: %s", path, e)
            return empty_state()
        if not isinstance(state, dict):
            logger.warning("Ignoring malformed state file %s", path)
            return empty_state()
        state.setdefault("entries", {})
        state.setdefault("nodes", {})
        state.setdefault("root_page_id", None)
        return state

    def save(self, state: dict) -> None:
        """Persist *state* atomically, stamping ``last_sync`` (UTC ISO 8601).

        Creates the state directory if needed.
        """
        self._state_dir.mkdir(parents=True, exist_ok=True)
        state["version"] = STATE_VERSION
        state["last_sync"] = datetime.now(timezone.utc).isoformat()

        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._state_dir), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state, fh, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    # ------------------------------------------------------------------
    # Content hashing
    # ------------------------------------------------------------------

    @staticmethod
    def content_hash(content: str) -> str:
        """MD5 hex digest of *content* encoded as UTF-8.

        No normalisation: any byte-level change, including line endings
        and trailing whitespace, changes the hash.
        """
        return hashlib.md5(content.encode("utf-8")).hexdigest()

"""Change detection for vault documents.

A document needs uploading when it has no fingerprint yet, or when its
content hash differs from the one recorded at its last successful upsert.
The modification time is only a shortcut: when it is known and not newer
than the last sync, the document is unchanged without being read.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

from .models import DocumentRef, Fingerprint
from .state import SyncState

if TYPE_CHECKING:
    from ..vault import VaultSource

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class ChangeTracker:
    """Tracks one fingerprint per vault path.

    Args:
        vault: Source used to read content when a hash is needed.
        fingerprints: Fingerprints loaded from persisted state.
        clock: Returns the current time in epoch milliseconds.
    """

    def __init__(
        self,
        vault: VaultSource,
        fingerprints: dict[str, Fingerprint] | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._vault = vault
        self._fingerprints: dict[str, Fingerprint] = dict(fingerprints or {})
        self._clock = clock

    def now(self) -> int:
        return self._clock()

    def has_changed(self, doc: DocumentRef) -> bool:
        """Return True if *doc* must be uploaded.

        Read failures count as changed; the upsert that follows will
        surface the error as a failed document.
        """
        return self.check(doc)[0]

    def check(self, doc: DocumentRef) -> tuple[bool, str | None]:
        """Like ``has_changed``, also returning the content if it was read.

        The content is ``None`` when the decision needed no read (no
        fingerprint yet, mtime shortcut) or the read failed.
        """
        previous = self._fingerprints.get(doc.local_path)
        if previous is None:
            return True, None

        if doc.mtime_ms is not None and doc.mtime_ms <= previous.last_synced_at:
            return False, None

        try:
            content = self._vault.read_content(doc)
        except Exception as e:
            logger.warning("Could not read %s for change check: %s", doc.local_path, e)
            return True, None

        return SyncState.content_hash(content) != previous.content_hash, content

    def commit(
        self, doc: DocumentRef, content: str, read_at: int | None = None
    ) -> Fingerprint:
        """Record *content* as the version of *doc* now on the remote.

        Args:
            doc: The uploaded document.
            content: The exact text that was uploaded.
            read_at: Clock time taken before *content* was read.  An edit
                saved after that moment has a newer mtime than the stamp,
                so the next pass hashes the file instead of skipping it.
                Defaults to now.
        """
        fingerprint = Fingerprint(
            content_hash=SyncState.content_hash(content),
            last_synced_at=self._clock() if read_at is None else read_at,
        )
        self._fingerprints[doc.local_path] = fingerprint
        return fingerprint

    def prune_deleted(self, existing_paths: Iterable[str]) -> list[str]:
        """Drop fingerprints whose path is not in *existing_paths*.

        Returns:
            The removed paths, sorted.
        """
        keep = set(existing_paths)
        removed = sorted(p for p in self._fingerprints if p not in keep)
        for path in removed:
            del self._fingerprints[path]
        if removed:
            logger.info("Pruned %d fingerprints for deleted documents", len(removed))
        return removed

    def get(self, local_path: str) -> Fingerprint | None:
        return self._fingerprints.get(local_path)

    def forget(self, local_path: str) -> None:
        self._fingerprints.pop(local_path, None)

    def clear(self) -> None:
        self._fingerprints.clear()

    def snapshot(self) -> dict[str, Fingerprint]:
        return dict(self._fingerprints)

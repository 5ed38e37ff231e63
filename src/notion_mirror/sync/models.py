"""Pydantic models for the mirror sync engine.

Defines the data contracts shared by the sync modules:

- ``DocumentRef``: One vault document as enumerated for a pass.
- ``Fingerprint``: Content hash recorded after a successful upsert.
- ``SyncOutcome``: What happened to one document.
- ``DocumentResult``: Outcome of syncing one document.
- ``PassStatus``: Overall status of a pass.
- ``SyncReport``: Aggregate results for one pass.

All models are frozen (immutable).
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class SyncMode(str, Enum):
    """Kind of pass."""

    INCREMENTAL = "incremental"
    FULL = "full"


class SyncOutcome(str, Enum):
    """Per-document result of a pass."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


class PassStatus(str, Enum):
    """Overall status of a pass."""

    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"
    FATAL_FAILURE = "fatal_failure"


class DocumentRef(BaseModel):
    """A vault document as seen by one enumeration.

    Attributes:
        local_path: POSIX path relative to the vault root (unique).
        display_name: Title used for the remote page (file stem).
        parent_path: Containing folder path, ``""`` for the vault root.
        mtime_ms: Modification time in epoch milliseconds, if known.
    """

    local_path: str
    display_name: str
    parent_path: str = ""
    mtime_ms: int | None = None

    model_config = {"frozen": True}


class Fingerprint(BaseModel):
    """Content hash of a document at its last successful upsert.

    Attributes:
        content_hash: MD5 hex digest of the raw UTF-8 content.
        last_synced_at: Epoch milliseconds of the upsert.
    """

    content_hash: str
    last_synced_at: int

    model_config = {"frozen": True}


class DocumentResult(BaseModel):
    """Result of syncing one document.

    Attributes:
        local_path: Vault-relative path.
        outcome: What happened.
        node_id: Remote page id, when one is known.
        error: Error message when the outcome is FAILED.
    """

    local_path: str
    outcome: SyncOutcome
    node_id: str | None = None
    error: str | None = None

    model_config = {"frozen": True}

    @property
    def success(self) -> bool:
        return self.outcome is not SyncOutcome.FAILED


class SyncReport(BaseModel):
    """Aggregate report for one pass.

    Attributes:
        mode: Incremental or full resync.
        status: Overall pass status.
        reason: Why the pass was fatal, when it was.
        results: Per-document results, in processing order.
        warnings: Structural degradations (root fallbacks, failed archives).
        archived: Remote children archived by a full resync wipe.
        started_at: ISO 8601 timestamp when the pass started.
        completed_at: ISO 8601 timestamp when the pass finished.
    """

    mode: SyncMode = SyncMode.INCREMENTAL
    status: PassStatus = PassStatus.SUCCESS
    reason: str | None = None
    results: list[DocumentResult] = []
    warnings: list[str] = []
    archived: int = 0
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def _with_outcome(self, outcome: SyncOutcome) -> list[DocumentResult]:
        return [r for r in self.results if r.outcome is outcome]

    @property
    def created(self) -> list[DocumentResult]:
        return self._with_outcome(SyncOutcome.CREATED)

    @property
    def updated(self) -> list[DocumentResult]:
        return self._with_outcome(SyncOutcome.UPDATED)

    @property
    def skipped(self) -> list[DocumentResult]:
        return self._with_outcome(SyncOutcome.SKIPPED)

    @property
    def failed(self) -> list[DocumentResult]:
        return self._with_outcome(SyncOutcome.FAILED)

    @property
    def is_fatal(self) -> bool:
        return self.status is PassStatus.FATAL_FAILURE

    def error_messages(self, limit: int = 5) -> list[str]:
        """Return up to *limit* ``"path: error"`` lines for failed documents."""
        return [f"{r.local_path}: {r.error}" for r in self.failed][:limit]

    def summary(self) -> str:
        """Format a short multi-line summary with counts by outcome."""
        title = "Full resync" if self.mode is SyncMode.FULL else "Sync"
        if self.is_fatal:
            return f"{title} failed: {self.reason}"
        lines = [
            f"{title} report ({self.status.value})",
            f"  Created: {len(self.created)}",
            f"  Updated: {len(self.updated)}",
            f"  Skipped: {len(self.skipped)}",
            f"  Failed:  {len(self.failed)}",
            f"  Total:   {len(self.results)}",
        ]
        if self.mode is SyncMode.FULL:
            lines.append(f"  Archived: {self.archived}")
        return "\n".join(lines)

"""Incremental mirror of a Markdown vault into Notion.

Public API for pushing local Markdown documents into a Notion page tree
that mirrors the vault's folder layout.  The mirror is one-way: the
remote copy of a document is always overwritten by the local one.

Architecture
------------
A pass detects changed documents by content hash, makes sure a page
exists for every folder, converts each changed document to Notion blocks
and replaces the page content in batches, retrying transient API errors
with a shrinking batch size.

Modules:

- ``engine``    -- ``SyncEngine``: runs incremental and full passes.
- ``tracker``   -- ``ChangeTracker``: fingerprint-based change detection.
- ``resolver``  -- ``NodeCache``, ``NodeResolver``: path to page id mapping
  and folder page creation.
- ``transport`` -- ``RetryingTransport``: batching, backoff and pacing.
- ``state``     -- ``SyncState``: load/save the JSON state file.
- ``models``    -- ``DocumentRef``, ``Fingerprint``, ``DocumentResult``,
  ``SyncReport`` and their enums.
- ``reporter``  -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from notion_mirror.config import load_config
    from notion_mirror.core import NotionClient
    from notion_mirror.sync import SyncEngine, format_sync_report
    from notion_mirror.vault import FileSystemVault

    config = load_config()
    engine = SyncEngine(
        NotionClient(config), FileSystemVault(config.vault_path), config
    )
    print(format_sync_report(engine.run_incremental_sync()))
"""

from .engine import SyncEngine, SyncFatalError
from .models import (
    DocumentRef,
    DocumentResult,
    Fingerprint,
    PassStatus,
    SyncMode,
    SyncOutcome,
    SyncReport,
)
from .reporter import format_sync_report, report_to_json
from .resolver import NodeCache, NodeResolver
from .state import SyncState
from .tracker import ChangeTracker
from .transport import Batch, RetryingTransport, RetryPolicy, SendResult

__all__ = [
    "Batch",
    "ChangeTracker",
    "DocumentRef",
    "DocumentResult",
    "Fingerprint",
    "NodeCache",
    "NodeResolver",
    "PassStatus",
    "RetryPolicy",
    "RetryingTransport",
    "SendResult",
    "SyncEngine",
    "SyncFatalError",
    "SyncMode",
    "SyncOutcome",
    "SyncReport",
    "SyncState",
    "format_sync_report",
    "report_to_json",
]

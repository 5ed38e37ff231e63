"""Sync engine that mirrors a vault into a Notion page tree.

The ``SyncEngine`` ties together the change tracker, block converter,
node resolver and retrying transport into one pass.  A pass:

1. Verifies the token and that the root page exists (fatal on failure).
2. Enumerates vault documents and prunes state for deleted ones.
3. On a full resync, archives everything under the root page.
4. Ensures folder pages exist, shallowest first.
5. For each document: skips it if unchanged, otherwise converts it to
   blocks and replaces the page content (or creates the page).
6. Saves state and returns a ``SyncReport``.  A failed save is a warning
   and turns the pass into a partial failure.

Error handling is per document: a single failure is recorded as a failed
result and the pass moves on.  Only connection problems, a missing root
page or an unreadable vault abort a pass, and an aborted pass saves
nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..converters import BlockConverter, extract_frontmatter
from ..core.client import NotionAPIError
from .models import (
    DocumentRef,
    DocumentResult,
    Fingerprint,
    PassStatus,
    SyncMode,
    SyncOutcome,
    SyncReport,
)
from .resolver import NodeCache, NodeResolver
from .state import SyncState, empty_state
from .tracker import ChangeTracker, now_ms
from .transport import RetryingTransport, RetryPolicy

if TYPE_CHECKING:
    from collections.abc import Callable

    from ..config import Config
    from ..core.remote import ChildSummary, RemoteClient
    from ..vault import VaultSource

logger = logging.getLogger(__name__)


class SyncFatalError(Exception):
    """A pass cannot run at all (no connection, no root page, no vault)."""


class DocumentWriteError(Exception):
    """Blocks for a document could not all be written."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SyncEngine:
    """Mirror one vault under one root page.

    The engine keeps its node cache between passes; create one per
    vault/root pair and reuse it.

    Args:
        client: Remote workspace client.
        vault: Document source.
        config: Runtime configuration (root page, state dir, limits).
        transport: Retry wrapper; built from *config* when omitted.
        clock: Current time in epoch milliseconds.
    """

    def __init__(
        self,
        client: RemoteClient,
        vault: VaultSource,
        config: Config,
        transport: RetryingTransport | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.client = client
        self.vault = vault
        self.config = config
        self.root_id = config.root_page_id

        self.transport = transport or RetryingTransport(
            RetryPolicy(
                max_attempts=config.max_attempts,
                initial_backoff=config.initial_backoff,
                request_delay=config.request_delay,
                batch_size=config.batch_size,
            )
        )
        self.converter = BlockConverter(config.max_block_chars)
        self.state_store = SyncState(Path(config.state_dir))

        state = self.state_store.load()
        if state.get("root_page_id") not in (None, self.root_id):
            logger.info(
                "Root page changed from %s to %s; discarding cached state",
                state.get("root_page_id"),
                self.root_id,
            )
            state = empty_state()
        self.last_sync: str | None = state.get("last_sync")

        fingerprints: dict[str, Fingerprint] = {}
        self._metadata: dict[str, dict[str, str]] = {}
        for path, entry in state.get("entries", {}).items():
            if entry.get("content_hash") and entry.get("last_synced_at") is not None:
                fingerprints[path] = Fingerprint(
                    content_hash=entry["content_hash"],
                    last_synced_at=int(entry["last_synced_at"]),
                )
            if entry.get("metadata"):
                self._metadata[path] = dict(entry["metadata"])

        self.tracker = ChangeTracker(vault, fingerprints, clock)
        self.cache = NodeCache(self.root_id, state.get("nodes"))
        self.resolver = NodeResolver(client, self.cache, self.transport)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run_incremental_sync(self) -> SyncReport:
        """Upload documents that changed since their last successful upsert."""
        return self._run(SyncMode.INCREMENTAL)

    def run_full_resync(self) -> SyncReport:
        """Archive everything under the root page, then upload every document."""
        return self._run(SyncMode.FULL)

    def _run(self, mode: SyncMode) -> SyncReport:
        started_at = _now_iso()
        self.resolver.warnings = []
        warnings: list[str] = []
        archived = 0
        results: list[DocumentResult] = []

        logger.info("Starting %s pass for %s", mode.value, self.config.vault_path)
        try:
            self._connect()
            docs = self._enumerate()
            self._prune(docs)
            if mode is SyncMode.FULL:
                archived = self._wipe_root(warnings)
            parents = self._resolve_structure(docs)
        except SyncFatalError as e:
            logger.error("Sync aborted: %s", e)
            return SyncReport(
                mode=mode,
                status=PassStatus.FATAL_FAILURE,
                reason=str(e),
                warnings=warnings + self.resolver.warnings,
                archived=archived,
                started_at=started_at,
                completed_at=_now_iso(),
            )

        for doc in docs:
            parent_id = parents.get(doc.parent_path, self.root_id)
            results.append(self._sync_document(doc, parent_id))

        status = PassStatus.SUCCESS
        if any(r.outcome is SyncOutcome.FAILED for r in results):
            status = PassStatus.PARTIAL_FAILURE

        try:
            self._save_state()
        except OSError as e:
            message = f"Could not save sync state to {self.state_store.path}: {e}"
            logger.error(message)
            warnings.append(message)
            status = PassStatus.PARTIAL_FAILURE

        report = SyncReport(
            mode=mode,
            status=status,
            results=results,
            warnings=warnings + self.resolver.warnings,
            archived=archived,
            started_at=started_at,
            completed_at=_now_iso(),
        )
        logger.info(
            "Finished %s pass: %d created, %d updated, %d skipped, %d failed",
            mode.value,
            len(report.created),
            len(report.updated),
            len(report.skipped),
            len(report.failed),
        )
        return report

    # ------------------------------------------------------------------
    # Pass phases
    # ------------------------------------------------------------------

    def _connect(self) -> None:
        try:
            self.transport.call(self.client.verify_connection)
        except Exception as e:
            raise SyncFatalError(f"Cannot connect to Notion: {e}") from e

        try:
            exists = self.transport.call(
                lambda: self.client.node_exists(self.root_id)
            )
        except Exception as e:
            raise SyncFatalError(
                f"Cannot check root page {self.root_id}: {e}"
            ) from e
        if not exists:
            raise SyncFatalError(
                f"Root page {self.root_id} not found or not shared with the integration"
            )

    def _enumerate(self) -> list[DocumentRef]:
        try:
            docs = self.vault.enumerate_documents(self.config.exclude_folders)
        except OSError as e:
            raise SyncFatalError(f"Cannot read vault: {e}") from e
        logger.info("Found %d documents", len(docs))
        return docs

    def _prune(self, docs: Sequence[DocumentRef]) -> None:
        paths = [d.local_path for d in docs]
        for path in self.tracker.prune_deleted(paths):
            self._metadata.pop(path, None)
        removed_nodes = self.cache.prune(paths)
        if removed_nodes:
            logger.info("Dropped %d cached nodes for deleted paths", len(removed_nodes))

    def _wipe_root(self, warnings: list[str]) -> int:
        """Archive every child of the root page and forget all state."""
        try:
            children = self._list_all_children(self.root_id)
        except Exception as e:
            raise SyncFatalError(f"Cannot list root page children: {e}") from e

        archived = 0
        for index, child in enumerate(children):
            if index:
                self.transport.pause()
            try:
                self.transport.call(lambda: self.client.delete_node(child.id))
                archived += 1
            except Exception as e:
                message = f"Could not archive {child.type} {child.id}: {e}"
                logger.warning(message)
                warnings.append(message)

        logger.info("Archived %d of %d root children", archived, len(children))
        self.cache.clear()
        self.tracker.clear()
        self._metadata.clear()
        return archived

    def _resolve_structure(self, docs: Sequence[DocumentRef]) -> dict[str, str]:
        """Ensure folder pages for every document parent, shallowest first."""
        parent_paths = sorted(
            {d.parent_path for d in docs if d.parent_path},
            key=lambda p: (p.count("/"), p),
        )
        return {
            path: self.resolver.ensure_folder_chain(path) for path in parent_paths
        }

    # ------------------------------------------------------------------
    # Per-document upsert
    # ------------------------------------------------------------------

    def _sync_document(self, doc: DocumentRef, parent_id: str) -> DocumentResult:
        node_id = self.cache.get(doc.local_path)
        try:
            read_at = self.tracker.now()
            content = None
            if node_id is not None:
                changed, content = self.tracker.check(doc)
                if not changed:
                    return DocumentResult(
                        local_path=doc.local_path,
                        outcome=SyncOutcome.SKIPPED,
                        node_id=node_id,
                    )

            if content is None:
                content = self.vault.read_content(doc)
            metadata, body = extract_frontmatter(content)
            blocks = [
                block.to_notion()
                for block in self.converter.convert(body, self.cache.link_url)
            ]

            outcome = SyncOutcome.UPDATED
            if node_id is not None and not self._update(doc, node_id, blocks):
                node_id = None
            if node_id is None:
                node_id = self._create(doc, parent_id, metadata, blocks)
                outcome = SyncOutcome.CREATED

            self.tracker.commit(doc, content, read_at)
            if metadata:
                self._metadata[doc.local_path] = metadata
            else:
                self._metadata.pop(doc.local_path, None)
        except Exception as e:
            logger.error("Error syncing %s: %s", doc.local_path, e)
            return DocumentResult(
                local_path=doc.local_path,
                outcome=SyncOutcome.FAILED,
                node_id=self.cache.get(doc.local_path),
                error=str(e),
            )

        logger.debug("%s %s -> %s", outcome.value, doc.local_path, node_id)
        return DocumentResult(
            local_path=doc.local_path, outcome=outcome, node_id=node_id
        )

    def _update(
        self, doc: DocumentRef, node_id: str, blocks: list[dict[str, Any]]
    ) -> bool:
        """Replace the content of *node_id* with *blocks*.

        Returns:
            False if the page no longer exists (its cache entry is evicted),
            True once the content is replaced.
        """
        try:
            self._clear_page(node_id)
        except NotionAPIError as e:
            if not e.not_found:
                raise
            logger.info(
                "Page for %s (%s) is gone; recreating it", doc.local_path, node_id
            )
            self.cache.evict(doc.local_path)
            return False

        self._append(doc, node_id, blocks)
        return True

    def _create(
        self,
        doc: DocumentRef,
        parent_id: str,
        metadata: dict[str, str],
        blocks: list[dict[str, Any]],
    ) -> str:
        """Create the page for *doc* and write its blocks.

        The node id is cached as soon as the page exists, so a failure
        while appending the remaining blocks leads to an update next pass
        rather than a second page.
        """
        size = self.transport.policy.batch_size
        first, rest = blocks[:size], blocks[size:]
        properties = metadata if self.config.sync_frontmatter_properties else None

        try:
            node_id = self.transport.call(
                lambda: self.client.create_node(
                    parent_id, doc.display_name, properties, first
                )
            )
        except NotionAPIError as e:
            if not properties or e.status != 400:
                raise
            logger.warning(
                "Notion rejected properties for %s (%s); creating without them",
                doc.local_path,
                e.message,
            )
            node_id = self.transport.call(
                lambda: self.client.create_node(
                    parent_id, doc.display_name, None, first
                )
            )

        self.cache.set(doc.local_path, node_id)
        if rest:
            self.transport.pause()
            self._append(doc, node_id, rest)
        return node_id

    def _append(
        self, doc: DocumentRef, node_id: str, blocks: list[dict[str, Any]]
    ) -> None:
        result = self.transport.send(
            blocks, lambda batch: self.client.append_blocks(node_id, batch)
        )
        if not result.ok:
            raise DocumentWriteError(
                f"Wrote {result.sent} of {result.total} blocks: {result.error}"
            ) from result.error

    def _clear_page(self, node_id: str) -> None:
        """Archive the content blocks of *node_id*; child pages stay."""
        children = [c for c in self._list_all_children(node_id) if not c.is_page]
        for index, child in enumerate(children):
            if index:
                self.transport.pause()
            self.transport.call(lambda: self.client.delete_node(child.id))

    def _list_all_children(self, node_id: str) -> list[ChildSummary]:
        children: list[ChildSummary] = []
        cursor: str | None = None
        while True:
            page = self.transport.call(
                lambda: self.client.list_children(node_id, cursor)
            )
            children.extend(page.results)
            if not page.has_more or not page.next_cursor:
                return children
            cursor = page.next_cursor

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _save_state(self) -> None:
        entries: dict[str, dict[str, Any]] = {}
        for path, fingerprint in self.tracker.snapshot().items():
            entry: dict[str, Any] = fingerprint.model_dump()
            if path in self._metadata:
                entry["metadata"] = self._metadata[path]
            entries[path] = entry

        state = {
            "root_page_id": self.root_id,
            "entries": entries,
            "nodes": self.cache.snapshot(),
        }
        self.state_store.save(state)
        self.last_sync = state["last_sync"]

    def status(self) -> dict[str, Any]:
        """Summary of what the engine currently knows, for status displays."""
        return {
            "vault_path": self.config.vault_path,
            "root_page_id": self.root_id,
            "state_file": str(self.state_store.path),
            "last_sync": self.last_sync,
            "tracked_documents": len(self.tracker.snapshot()),
            "cached_nodes": len(self.cache),
            "excluded_folders": list(self.config.exclude_folders),
        }

"""Remote node resolution for vault folders and documents.

Every vault path that has been mirrored maps to a remote node id through
``NodeCache``.  Folders become plain pages nested the same way the vault
nests directories; ``NodeResolver`` makes sure each folder page exists
before a document is written under it.

Folder pages are found by title among the parent's children before being
created, so a lost cache (new machine, deleted state file) adopts the
existing tree instead of duplicating it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from ..validators import page_url

if TYPE_CHECKING:
    from ..core.remote import RemoteClient
    from .transport import RetryingTransport

logger = logging.getLogger(__name__)

DOCUMENT_SUFFIX = ".md"


def folder_prefixes(path: str) -> list[str]:
    """Return ``"A"``, ``"A/B"``, ``"A/B/C"`` for ``"A/B/C"``."""
    segments = [s for s in path.split("/") if s]
    return ["/".join(segments[: i + 1]) for i in range(len(segments))]


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


class NodeCache:
    """Mapping of vault path to remote node id.

    The empty path is the vault root and always resolves to *root_id*.
    Folder paths and document paths (``*.md``) share the mapping.

    Args:
        root_id: Remote page the vault is mirrored under.
        nodes: Seed entries, typically from persisted state.
    """

    def __init__(self, root_id: str, nodes: dict[str, str] | None = None) -> None:
        self.root_id = root_id
        self._nodes: dict[str, str] = dict(nodes or {})

    def get(self, path: str) -> str | None:
        if not path:
            return self.root_id
        return self._nodes.get(path)

    def set(self, path: str, node_id: str) -> None:
        if path:
            self._nodes[path] = node_id

    def evict(self, path: str) -> None:
        self._nodes.pop(path, None)

    def clear(self) -> None:
        self._nodes.clear()

    def __contains__(self, path: object) -> bool:
        return path in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[str]:
        return iter(self._nodes)

    def snapshot(self) -> dict[str, str]:
        return dict(self._nodes)

    def prune(self, document_paths: Iterable[str]) -> list[str]:
        """Drop entries for paths that no longer exist.

        Documents are kept only if listed in *document_paths*; folders only
        if they are a prefix of a listed document.

        Returns:
            The removed paths, sorted.
        """
        live: set[str] = set()
        for path in document_paths:
            live.add(path)
            live.update(folder_prefixes(str(PurePosixPath(path).parent)))
        removed = sorted(p for p in self._nodes if p not in live)
        for path in removed:
            del self._nodes[path]
        return removed

    # ------------------------------------------------------------------
    # Link lookup
    # ------------------------------------------------------------------

    def find_document(self, target: str) -> str | None:
        """Find the cached document path a wiki link *target* refers to.

        Tried in order: exact path, path plus ``.md``, case-insensitive
        path, then a unique match on the file name alone.
        """
        target = target.strip().strip("/")
        if not target:
            return None
        documents = [p for p in self._nodes if p.endswith(DOCUMENT_SUFFIX)]

        candidates = [target]
        if not target.endswith(DOCUMENT_SUFFIX):
            candidates.append(target + DOCUMENT_SUFFIX)
        for candidate in candidates:
            if candidate in self._nodes and candidate.endswith(DOCUMENT_SUFFIX):
                return candidate

        folded = {c.casefold() for c in candidates}
        for path in documents:
            if path.casefold() in folded:
                return path

        name = PurePosixPath(target).name.casefold()
        name_md = name if name.endswith(DOCUMENT_SUFFIX) else name + DOCUMENT_SUFFIX
        matches = [
            p for p in documents if PurePosixPath(p).name.casefold() == name_md
        ]
        if len(matches) == 1:
            return matches[0]
        return None

    def link_url(self, target: str) -> str | None:
        """URL of the page mirrored from the document *target* names."""
        path = self.find_document(target)
        if path is None:
            return None
        return page_url(self._nodes[path])


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class NodeResolver:
    """Ensures folder pages exist and resolves paths to node ids.

    Args:
        client: Remote workspace client.
        cache: Shared node cache.
        transport: Retry wrapper applied to each remote call.
    """

    def __init__(
        self,
        client: RemoteClient,
        cache: NodeCache,
        transport: RetryingTransport,
    ) -> None:
        self._client = client
        self.cache = cache
        self._transport = transport
        self.warnings: list[str] = []

    def resolve(self, path: str) -> str | None:
        """Node id for *path* if known; the root page for ``""``."""
        return self.cache.get(path)

    def ensure_folder_chain(self, path: str) -> str:
        """Make sure every folder page along *path* exists.

        Cached prefixes are skipped; each uncached segment is ensured once,
        top-down.  When a segment cannot be ensured the chain stops there
        and the root page is returned so documents still land somewhere;
        the failure is recorded in ``warnings``.

        Returns:
            Node id of the deepest folder, or the root page id.
        """
        parent_id = self.cache.root_id
        for prefix in folder_prefixes(path):
            cached = self.cache.get(prefix)
            if cached is not None:
                parent_id = cached
                continue

            title = prefix.rsplit("/", 1)[-1]
            node_id = self._ensure_folder(parent_id, title, prefix)
            if node_id is None:
                message = (
                    f"Could not resolve folder '{prefix}'; "
                    f"documents under '{path}' are placed at the root page"
                )
                logger.warning(message)
                self.warnings.append(message)
                return self.cache.root_id
            parent_id = node_id

        return parent_id

    def _ensure_folder(self, parent_id: str, title: str, path: str) -> str | None:
        """Adopt or create the folder page *title* under *parent_id*.

        Caches the id under *path* on success; returns None on failure.
        """
        try:
            node_id = self.find_child(parent_id, title)
            if node_id is None:
                node_id = self._transport.call(
                    lambda: self._client.create_node(parent_id, title)
                )
                logger.info("Created folder page '%s' (%s)", path, node_id)
                self._transport.pause()
            else:
                logger.debug("Adopted existing folder page '%s' (%s)", path, node_id)
        except Exception as e:
            logger.warning("Failed to ensure folder '%s': %s", path, e)
            return None

        self.cache.set(path, node_id)
        return node_id

    def find_child(self, parent_id: str, title: str) -> str | None:
        """Id of the child page of *parent_id* titled *title* (case-insensitive)."""
        wanted = title.casefold()
        cursor: str | None = None
        while True:
            page = self._transport.call(
                lambda: self._client.list_children(parent_id, cursor)
            )
            for child in page.results:
                if child.type == "child_page" and child.title.casefold() == wanted:
                    return child.id
            if not page.has_more or not page.next_cursor:
                return None
            cursor = page.next_cursor

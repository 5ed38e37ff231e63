"""Shared pytest fixtures for notion-mirror tests."""

from __future__ import annotations

from collections.abc import Iterable
from unittest.mock import MagicMock

import pytest

from notion_mirror.config import Config
from notion_mirror.core.client import NotionAPIError
from notion_mirror.core.remote import ChildPage, ChildSummary
from notion_mirror.sync.models import DocumentRef
from notion_mirror.vault import make_document_ref

ROOT_ID = "11111111-2222-3333-4444-555555555555"


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live Notion workspace",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live Notion workspace"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeVault:
    """In-memory vault: ``{local_path: content}``."""

    def __init__(
        self,
        files: dict[str, str] | None = None,
        mtimes: dict[str, int] | None = None,
    ) -> None:
        self.files: dict[str, str] = dict(files or {})
        self.mtimes: dict[str, int] = dict(mtimes or {})
        self.reads: list[str] = []
        self.unreadable: set[str] = set()

    def enumerate_documents(
        self, excluded_prefixes: Iterable[str] = ()
    ) -> list[DocumentRef]:
        from notion_mirror.vault import is_excluded

        excluded = list(excluded_prefixes)
        return [
            make_document_ref(path, self.mtimes.get(path))
            for path in sorted(self.files)
            if not is_excluded(path, excluded)
        ]

    def read_content(self, doc: DocumentRef) -> str:
        self.reads.append(doc.local_path)
        if doc.local_path in self.unreadable:
            raise OSError(f"cannot read {doc.local_path}")
        return self.files[doc.local_path]


class FakeNotion:
    """In-memory Notion workspace implementing the RemoteClient methods.

    Pages and blocks share one id space.  Every call is recorded in
    ``calls`` as ``(method, *args)``; ``fail`` maps a method name to a
    list of exceptions raised (in order) before the call succeeds.
    """

    WRITE_METHODS = ("create_node", "append_blocks", "delete_node")

    def __init__(self, root_id: str = ROOT_ID) -> None:
        self.root_id = root_id
        self.pages: dict[str, dict] = {
            root_id: {"title": "Root", "parent": None, "archived": False}
        }
        self.children: dict[str, list[str]] = {root_id: []}
        self.blocks: dict[str, dict] = {}
        self.calls: list[tuple] = []
        self.fail: dict[str, list[Exception]] = {}
        self.connected = True
        self._next = 0

    # -- helpers ---------------------------------------------------------

    def _new_id(self) -> str:
        self._next += 1
        return f"00000000-0000-0000-0000-{self._next:012d}"

    def _maybe_fail(self, method: str) -> None:
        queue = self.fail.get(method)
        if queue:
            raise queue.pop(0)

    def writes(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in self.WRITE_METHODS]

    def page_blocks(self, page_id: str) -> list[dict]:
        return [
            self.blocks[i] for i in self.children.get(page_id, []) if i in self.blocks
        ]

    def page_titles(self, parent_id: str) -> list[str]:
        return [
            self.pages[i]["title"]
            for i in self.children.get(parent_id, [])
            if i in self.pages
        ]

    def add_page(self, parent_id: str, title: str) -> str:
        page_id = self._new_id()
        self.pages[page_id] = {"title": title, "parent": parent_id, "archived": False}
        self.children[page_id] = []
        self.children.setdefault(parent_id, []).append(page_id)
        return page_id

    # -- RemoteClient ----------------------------------------------------

    def verify_connection(self) -> str:
        self.calls.append(("verify_connection",))
        self._maybe_fail("verify_connection")
        if not self.connected:
            raise NotionAPIError(401, "unauthorized", "API token is invalid.")
        return "Mirror Bot"

    def create_node(self, parent_id, title, properties=None, blocks=()):
        self.calls.append(("create_node", parent_id, title, properties, list(blocks)))
        self._maybe_fail("create_node")
        if parent_id not in self.children:
            raise NotionAPIError(404, "object_not_found", "parent missing")
        page_id = self.add_page(parent_id, title)
        self.pages[page_id]["properties"] = properties
        for block in blocks:
            self._add_block(page_id, block)
        return page_id

    def _add_block(self, parent_id: str, block: dict) -> None:
        block_id = self._new_id()
        self.blocks[block_id] = block
        self.children[parent_id].append(block_id)

    def append_blocks(self, node_id, blocks):
        self.calls.append(("append_blocks", node_id, list(blocks)))
        self._maybe_fail("append_blocks")
        if node_id not in self.children:
            raise NotionAPIError(404, "object_not_found", "block missing")
        for block in blocks:
            self._add_block(node_id, block)

    def list_children(self, node_id, cursor=None):
        self.calls.append(("list_children", node_id, cursor))
        self._maybe_fail("list_children")
        if node_id not in self.children:
            raise NotionAPIError(404, "object_not_found", "block missing")
        ids = self.children[node_id]
        start = int(cursor) if cursor else 0
        window = ids[start : start + 2]
        results = []
        for child_id in window:
            if child_id in self.pages:
                results.append(
                    ChildSummary(child_id, "child_page", self.pages[child_id]["title"])
                )
            else:
                results.append(ChildSummary(child_id, self.blocks[child_id]["type"]))
        end = start + len(window)
        has_more = end < len(ids)
        return ChildPage(tuple(results), has_more, str(end) if has_more else None)

    def delete_node(self, node_id):
        self.calls.append(("delete_node", node_id))
        self._maybe_fail("delete_node")
        for ids in self.children.values():
            if node_id in ids:
                ids.remove(node_id)
        self.blocks.pop(node_id, None)
        if node_id in self.pages:
            self.pages[node_id]["archived"] = True
            self.children.pop(node_id, None)

    def node_exists(self, node_id):
        self.calls.append(("node_exists", node_id))
        self._maybe_fail("node_exists")
        page = self.pages.get(node_id)
        return page is not None and not page["archived"]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_config(tmp_path):
    """Factory for a Config pointing at a temporary vault and state dir."""

    def _make(**overrides) -> Config:
        vault = tmp_path / "vault"
        vault.mkdir(exist_ok=True)
        values = {
            "token": "secret_test_token",
            "root_page_id": ROOT_ID,
            "vault_path": str(vault),
            "state_dir": str(tmp_path / "state"),
            "request_delay": 0.0,
            "initial_backoff": 0.0,
        }
        values.update(overrides)
        return Config(**values)

    return _make


@pytest.fixture
def mock_config(make_config):
    return make_config()


@pytest.fixture
def fake_notion():
    return FakeNotion()


@pytest.fixture
def mock_notion_client(mock_config):
    """MagicMock constrained to the NotionClient interface."""
    from notion_mirror.core.client import NotionClient

    client = MagicMock(spec=NotionClient)
    client.config = mock_config
    return client


@pytest.fixture
def make_vault():
    """Factory for an in-memory vault."""

    def _make(files=None, mtimes=None) -> FakeVault:
        return FakeVault(files, mtimes)

    return _make

"""Tests for SyncEngine passes against an in-memory Notion workspace.

Covers:
- First pass creates folder pages and document pages
- Repeated pass over an unchanged vault issues no writes
- Modified documents have their page content replaced
- Deleted documents are pruned from local state only
- Full resync archives root children before any create
- Fatal conditions (including a missing vault directory) abort the pass
  without saving state
- Edits saved while a document is being written are not lost
- A failed state save is reported instead of raised
- Per-document failures are isolated (partial_failure)
- Stale cached ids fall back to create
- Partially created pages are cached but not fingerprinted
- Root page change discards cached state
- Frontmatter properties and their fallback
- Wiki links resolve to cached pages
"""

from __future__ import annotations

import json
import shutil
from pathlib import Path
from unittest.mock import patch

import pytest

from notion_mirror.core.client import NotionAPIError
from notion_mirror.sync.engine import SyncEngine
from notion_mirror.sync.models import PassStatus, SyncMode, SyncOutcome
from notion_mirror.sync.state import STATE_FILE_NAME, SyncState
from notion_mirror.validators import page_url
from notion_mirror.vault import FileSystemVault

FIVE_PARAGRAPHS = "p1\n\np2\n\np3\n\np4\n\np5"


@pytest.fixture
def make_engine(fake_notion, make_config, make_vault):
    """Factory for a SyncEngine over an in-memory vault."""

    def _make(files=None, vault=None, **config_overrides):
        if vault is None:
            vault = make_vault(files or {})
        return SyncEngine(fake_notion, vault, make_config(**config_overrides))

    return _make


def _outcomes(report):
    return {r.local_path: r.outcome for r in report.results}


def _state_file(engine) -> Path:
    return Path(engine.config.state_dir) / STATE_FILE_NAME


def _paragraph_text(block: dict) -> str:
    return "".join(
        segment["text"]["content"] for segment in block["paragraph"]["rich_text"]
    )


# ---------------------------------------------------------------------------
# Incremental passes
# ---------------------------------------------------------------------------


class TestIncrementalSync:
    """Tests for SyncEngine.run_incremental_sync()."""

    def test_first_pass_creates_tree(self, make_engine, fake_notion):
        engine = make_engine({"A/B/c.md": "# C\n\nbody", "top.md": "hello"})
        report = engine.run_incremental_sync()

        assert report.status is PassStatus.SUCCESS
        assert report.mode is SyncMode.INCREMENTAL
        assert _outcomes(report) == {
            "A/B/c.md": SyncOutcome.CREATED,
            "top.md": SyncOutcome.CREATED,
        }
        assert fake_notion.page_titles(fake_notion.root_id) == ["A", "top"]

        a_id = engine.cache.get("A")
        b_id = engine.cache.get("A/B")
        c_id = engine.cache.get("A/B/c.md")
        assert fake_notion.pages[b_id]["parent"] == a_id
        assert fake_notion.pages[c_id]["parent"] == b_id
        assert [b["type"] for b in fake_notion.page_blocks(c_id)] == [
            "heading_1",
            "paragraph",
        ]
        assert _state_file(engine).is_file()

    def test_unchanged_vault_issues_no_writes(self, make_engine, fake_notion):
        engine = make_engine({"A/x.md": "one", "y.md": "two"})
        engine.run_incremental_sync()
        writes_before = len(fake_notion.writes())

        report = engine.run_incremental_sync()

        assert len(fake_notion.writes()) == writes_before
        assert len(report.skipped) == 2
        assert report.status is PassStatus.SUCCESS

    def test_unchanged_vault_after_restart(self, make_engine, fake_notion):
        """A new engine reloads state and still skips everything."""
        first = make_engine({"A/x.md": "one"})
        first.run_incremental_sync()
        writes_before = len(fake_notion.writes())

        second = make_engine(vault=first.vault)
        report = second.run_incremental_sync()

        assert len(fake_notion.writes()) == writes_before
        assert _outcomes(report) == {"A/x.md": SyncOutcome.SKIPPED}

    def test_modified_document_replaced(self, make_engine, fake_notion):
        engine = make_engine({"top.md": "hello", "other.md": "same"})
        engine.run_incremental_sync()
        top_id = engine.cache.get("top.md")

        engine.vault.files["top.md"] = "changed"
        report = engine.run_incremental_sync()

        assert _outcomes(report) == {
            "other.md": SyncOutcome.SKIPPED,
            "top.md": SyncOutcome.UPDATED,
        }
        blocks = fake_notion.page_blocks(top_id)
        assert [_paragraph_text(b) for b in blocks] == ["changed"]
        assert engine.cache.get("top.md") == top_id

    def test_changed_document_read_once(self, make_engine):
        engine = make_engine({"top.md": "hello"})
        engine.run_incremental_sync()

        engine.vault.files["top.md"] = "changed"
        engine.vault.reads.clear()
        report = engine.run_incremental_sync()

        assert _outcomes(report) == {"top.md": SyncOutcome.UPDATED}
        assert engine.vault.reads == ["top.md"]

    def test_edit_saved_during_write_is_picked_up(
        self, fake_notion, make_config, make_vault
    ):
        now = {"ms": 1000}
        vault = make_vault({"a.md": "v1"}, mtimes={"a.md": 500})
        engine = SyncEngine(
            fake_notion, vault, make_config(), clock=lambda: now["ms"]
        )
        engine.run_incremental_sync()
        page_id = engine.cache.get("a.md")

        vault.files["a.md"] = "v2"
        vault.mtimes["a.md"] = 1500
        now["ms"] = 2000
        append_blocks = fake_notion.append_blocks

        def append_then_save(node_id, blocks):
            append_blocks(node_id, blocks)
            vault.files["a.md"] = "v3"
            vault.mtimes["a.md"] = 2500
            now["ms"] = 3000

        with patch.object(fake_notion, "append_blocks", append_then_save):
            second = engine.run_incremental_sync()
        assert _outcomes(second) == {"a.md": SyncOutcome.UPDATED}

        third = engine.run_incremental_sync()
        assert _outcomes(third) == {"a.md": SyncOutcome.UPDATED}
        blocks = fake_notion.page_blocks(page_id)
        assert [_paragraph_text(b) for b in blocks] == ["v3"]

    def test_deleted_document_pruned_locally(self, make_engine, fake_notion):
        engine = make_engine({"A/keep.md": "k", "gone.md": "g"})
        engine.run_incremental_sync()
        gone_id = engine.cache.get("gone.md")

        del engine.vault.files["gone.md"]
        report = engine.run_incremental_sync()

        assert [r.local_path for r in report.results] == ["A/keep.md"]
        assert "gone.md" not in engine.cache
        assert engine.tracker.get("gone.md") is None
        assert not fake_notion.pages[gone_id]["archived"]

        state = json.loads(_state_file(engine).read_text(encoding="utf-8"))
        assert set(state["entries"]) == {"A/keep.md"}
        assert set(state["nodes"]) == {"A", "A/keep.md"}

    def test_excluded_folders_skipped(self, make_engine, fake_notion):
        engine = make_engine(
            {"Private/secret.md": "s", "pub.md": "p"},
            exclude_folders=["Private"],
        )
        report = engine.run_incremental_sync()
        assert [r.local_path for r in report.results] == ["pub.md"]
        assert fake_notion.page_titles(fake_notion.root_id) == ["pub"]

    def test_large_document_batched(self, make_engine, fake_notion):
        engine = make_engine({"big.md": FIVE_PARAGRAPHS}, batch_size=2)
        engine.run_incremental_sync()

        creates = [c for c in fake_notion.calls if c[0] == "create_node"]
        appends = [c for c in fake_notion.calls if c[0] == "append_blocks"]
        assert len(creates[0][4]) == 2
        assert [len(c[2]) for c in appends] == [2, 1]
        page_id = engine.cache.get("big.md")
        assert [_paragraph_text(b) for b in fake_notion.page_blocks(page_id)] == [
            "p1",
            "p2",
            "p3",
            "p4",
            "p5",
        ]

    def test_child_pages_survive_update(self, make_engine, fake_notion):
        engine = make_engine({"doc.md": "v1"})
        engine.run_incremental_sync()
        doc_id = engine.cache.get("doc.md")
        sub_id = fake_notion.add_page(doc_id, "Sub")

        engine.vault.files["doc.md"] = "v2"
        engine.run_incremental_sync()

        assert ("delete_node", sub_id) not in fake_notion.calls
        assert fake_notion.page_titles(doc_id) == ["Sub"]
        assert [_paragraph_text(b) for b in fake_notion.page_blocks(doc_id)] == ["v2"]


# ---------------------------------------------------------------------------
# Failure handling
# ---------------------------------------------------------------------------


class TestFailures:
    def test_connection_failure_is_fatal(self, make_engine, fake_notion):
        fake_notion.connected = False
        engine = make_engine({"a.md": "x"})
        report = engine.run_incremental_sync()

        assert report.status is PassStatus.FATAL_FAILURE
        assert "Cannot connect" in report.reason
        assert report.results == []
        assert fake_notion.writes() == []
        assert not _state_file(engine).exists()

    def test_missing_root_is_fatal(self, make_engine, fake_notion):
        fake_notion.pages[fake_notion.root_id]["archived"] = True
        engine = make_engine({"a.md": "x"})
        report = engine.run_incremental_sync()

        assert report.is_fatal
        assert "not found" in report.reason
        assert fake_notion.writes() == []
        assert not _state_file(engine).exists()

    def test_unreadable_vault_is_fatal(self, make_engine, make_vault):
        vault = make_vault({"a.md": "x"})

        def broken(excluded_prefixes=()):
            raise PermissionError("denied")

        vault.enumerate_documents = broken
        engine = make_engine(vault=vault)
        report = engine.run_incremental_sync()
        assert report.is_fatal
        assert "Cannot read vault" in report.reason

    def test_deleted_vault_directory_is_fatal(
        self, make_engine, fake_notion, tmp_path
    ):
        vault_dir = tmp_path / "mounted"
        (vault_dir / "A").mkdir(parents=True)
        (vault_dir / "A" / "x.md").write_text("x", encoding="utf-8")
        (vault_dir / "y.md").write_text("y", encoding="utf-8")
        engine = make_engine(vault=FileSystemVault(vault_dir))
        assert engine.run_incremental_sync().status is PassStatus.SUCCESS
        saved = _state_file(engine).read_text(encoding="utf-8")
        writes_before = len(fake_notion.writes())

        shutil.rmtree(vault_dir)
        for report in (engine.run_incremental_sync(), engine.run_full_resync()):
            assert report.is_fatal
            assert "Cannot read vault" in report.reason
            assert report.archived == 0

        assert len(fake_notion.writes()) == writes_before
        assert _state_file(engine).read_text(encoding="utf-8") == saved
        assert sorted(engine.tracker.snapshot()) == ["A/x.md", "y.md"]

    def test_state_save_failure_is_reported(self, make_engine):
        engine = make_engine({"a.md": "x"})
        with patch.object(
            engine.state_store, "save", side_effect=OSError("disk full")
        ):
            report = engine.run_incremental_sync()

        assert report.status is PassStatus.PARTIAL_FAILURE
        assert _outcomes(report) == {"a.md": SyncOutcome.CREATED}
        assert any("disk full" in w for w in report.warnings)
        assert engine.last_sync is None

    def test_document_failure_is_isolated(self, make_engine, fake_notion):
        engine = make_engine({"a.md": "a", "b.md": "b", "c.md": "c"})
        engine.vault.unreadable.add("b.md")
        report = engine.run_incremental_sync()

        assert report.status is PassStatus.PARTIAL_FAILURE
        assert _outcomes(report) == {
            "a.md": SyncOutcome.CREATED,
            "b.md": SyncOutcome.FAILED,
            "c.md": SyncOutcome.CREATED,
        }
        assert report.error_messages() == ["b.md: cannot read b.md"]

        state = json.loads(_state_file(engine).read_text(encoding="utf-8"))
        assert set(state["entries"]) == {"a.md", "c.md"}

    def test_stale_node_recreated(self, make_engine, fake_notion):
        engine = make_engine({"a.md": "v1"})
        engine.run_incremental_sync()
        old_id = engine.cache.get("a.md")
        fake_notion.delete_node(old_id)

        engine.vault.files["a.md"] = "v2"
        report = engine.run_incremental_sync()

        assert _outcomes(report) == {"a.md": SyncOutcome.CREATED}
        new_id = engine.cache.get("a.md")
        assert new_id != old_id
        assert [_paragraph_text(b) for b in fake_notion.page_blocks(new_id)] == ["v2"]

    def test_partial_create_cached_without_fingerprint(
        self, make_engine, fake_notion
    ):
        engine = make_engine({"doc.md": FIVE_PARAGRAPHS}, batch_size=2)
        fake_notion.fail["append_blocks"] = [
            NotionAPIError(400, "validation_error", "bad block")
        ]
        report = engine.run_incremental_sync()

        (result,) = report.results
        assert result.outcome is SyncOutcome.FAILED
        assert "Wrote 0 of 3 blocks" in result.error
        page_id = engine.cache.get("doc.md")
        assert result.node_id == page_id
        assert engine.tracker.get("doc.md") is None

        state = json.loads(_state_file(engine).read_text(encoding="utf-8"))
        assert "doc.md" not in state["entries"]
        assert state["nodes"]["doc.md"] == page_id

        # Next pass updates the same page instead of creating another
        report = engine.run_incremental_sync()
        assert _outcomes(report) == {"doc.md": SyncOutcome.UPDATED}
        creates = [c for c in fake_notion.calls if c[0] == "create_node"]
        assert len(creates) == 1
        assert len(fake_notion.page_blocks(page_id)) == 5

    def test_rate_limited_append_retried(self, make_engine, fake_notion):
        engine = make_engine({"doc.md": FIVE_PARAGRAPHS}, batch_size=2)
        fake_notion.fail["append_blocks"] = [
            NotionAPIError(429, "rate_limited", "slow down")
        ]
        report = engine.run_incremental_sync()
        assert report.status is PassStatus.SUCCESS
        page_id = engine.cache.get("doc.md")
        assert len(fake_notion.page_blocks(page_id)) == 5

    def test_root_change_discards_state(self, make_engine, make_config):
        config = make_config()
        SyncState(Path(config.state_dir)).save(
            {
                "root_page_id": "99999999-9999-9999-9999-999999999999",
                "entries": {"a.md": {"content_hash": "h", "last_synced_at": 1}},
                "nodes": {"a.md": "stale-id"},
            }
        )
        engine = make_engine({"a.md": "x"})
        assert len(engine.cache) == 0
        assert engine.tracker.snapshot() == {}

        report = engine.run_incremental_sync()
        assert _outcomes(report) == {"a.md": SyncOutcome.CREATED}


# ---------------------------------------------------------------------------
# Full resync
# ---------------------------------------------------------------------------


class TestFullResync:
    """Tests for SyncEngine.run_full_resync()."""

    def test_archives_root_children_before_creating(self, make_engine, fake_notion):
        for n in range(5):
            fake_notion.add_page(fake_notion.root_id, f"old{n}")
        engine = make_engine({"a.md": "x"})

        report = engine.run_full_resync()

        writes = fake_notion.writes()
        assert [w[0] for w in writes[:5]] == ["delete_node"] * 5
        assert writes[5][0] == "create_node"
        assert report.archived == 5
        assert report.mode is SyncMode.FULL
        assert fake_notion.page_titles(fake_notion.root_id) == ["a"]

    def test_recreates_previously_synced_tree(self, make_engine, fake_notion):
        engine = make_engine({"A/x.md": "x"})
        engine.run_incremental_sync()
        old_folder = engine.cache.get("A")

        report = engine.run_full_resync()

        assert _outcomes(report) == {"A/x.md": SyncOutcome.CREATED}
        assert report.archived == 1
        assert engine.cache.get("A") != old_folder
        assert fake_notion.pages[old_folder]["archived"]

    def test_archive_failure_is_warning(self, make_engine, fake_notion):
        fake_notion.add_page(fake_notion.root_id, "locked")
        fake_notion.add_page(fake_notion.root_id, "free")
        fake_notion.fail["delete_node"] = [
            NotionAPIError(400, "validation_error", "locked")
        ]
        engine = make_engine({"a.md": "x"})
        report = engine.run_full_resync()

        assert report.status is PassStatus.SUCCESS
        assert report.archived == 1
        assert len(report.warnings) == 1

    def test_unlistable_root_is_fatal(self, make_engine, fake_notion):
        fake_notion.fail["list_children"] = [
            NotionAPIError(400, "validation_error", "nope")
        ]
        engine = make_engine({"a.md": "x"})
        report = engine.run_full_resync()

        assert report.is_fatal
        assert "Cannot list root page children" in report.reason
        assert not _state_file(engine).exists()


# ---------------------------------------------------------------------------
# Frontmatter and links
# ---------------------------------------------------------------------------


class TestFrontmatterAndLinks:
    def test_frontmatter_sent_as_properties(self, make_engine, fake_notion):
        engine = make_engine(
            {"a.md": "---\ntags: x\n---\nbody"}, sync_frontmatter_properties=True
        )
        engine.run_incremental_sync()

        (create,) = [c for c in fake_notion.calls if c[0] == "create_node"]
        assert create[3] == {"tags": "x"}
        page_id = engine.cache.get("a.md")
        assert [_paragraph_text(b) for b in fake_notion.page_blocks(page_id)] == [
            "body"
        ]

        state = json.loads(_state_file(engine).read_text(encoding="utf-8"))
        assert state["entries"]["a.md"]["metadata"] == {"tags": "x"}

    def test_rejected_properties_retried_without(self, make_engine, fake_notion):
        fake_notion.fail["create_node"] = [
            NotionAPIError(400, "validation_error", "tags is not a property")
        ]
        engine = make_engine(
            {"a.md": "---\ntags: x\n---\nbody"}, sync_frontmatter_properties=True
        )
        report = engine.run_incremental_sync()

        assert _outcomes(report) == {"a.md": SyncOutcome.CREATED}
        creates = [c for c in fake_notion.calls if c[0] == "create_node"]
        assert [c[3] for c in creates] == [{"tags": "x"}, None]

    def test_properties_off_by_default(self, make_engine, fake_notion):
        engine = make_engine({"a.md": "---\ntags: x\n---\nbody"})
        engine.run_incremental_sync()
        (create,) = [c for c in fake_notion.calls if c[0] == "create_node"]
        assert create[3] is None

    def test_wiki_link_resolves_once_target_cached(self, make_engine, fake_notion):
        engine = make_engine({"a.md": "see [[b]]", "b.md": "target"})
        engine.run_incremental_sync()
        a_id = engine.cache.get("a.md")
        b_id = engine.cache.get("b.md")

        # b was not cached yet when a was converted
        (first,) = fake_notion.page_blocks(a_id)
        assert first["paragraph"]["rich_text"] == [
            {"type": "text", "text": {"content": "see b"}}
        ]

        engine.vault.files["a.md"] = "see [[b]]!"
        engine.run_incremental_sync()
        (block,) = fake_notion.page_blocks(a_id)
        segments = block["paragraph"]["rich_text"]
        assert segments[1]["text"] == {
            "content": "b",
            "link": {"url": page_url(b_id)},
        }


class TestStatus:
    def test_status_after_pass(self, make_engine):
        engine = make_engine({"A/x.md": "x"}, exclude_folders=["Drafts"])
        assert engine.status()["last_sync"] is None

        engine.run_incremental_sync()
        status = engine.status()

        assert status["tracked_documents"] == 1
        assert status["cached_nodes"] == 2
        assert status["last_sync"] is not None
        assert status["excluded_folders"] == ["Drafts"]
        assert status["state_file"].endswith(STATE_FILE_NAME)

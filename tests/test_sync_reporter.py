"""Tests for sync report models and formatting."""

from __future__ import annotations

from notion_mirror.sync.models import (
    DocumentResult,
    PassStatus,
    SyncMode,
    SyncOutcome,
    SyncReport,
)
from notion_mirror.sync.reporter import format_sync_report, report_to_json

STARTED = "2026-02-07T10:00:00+00:00"
COMPLETED = "2026-02-07T10:01:00+00:00"


def _result(path, outcome, error=None, node_id="n1"):
    return DocumentResult(
        local_path=path, outcome=outcome, node_id=node_id, error=error
    )


def _report(results=(), **kwargs) -> SyncReport:
    values = {
        "results": list(results),
        "started_at": STARTED,
        "completed_at": COMPLETED,
    }
    values.update(kwargs)
    return SyncReport(**values)


class TestSyncReportModel:
    def test_outcome_buckets(self):
        report = _report(
            [
                _result("a.md", SyncOutcome.CREATED),
                _result("b.md", SyncOutcome.UPDATED),
                _result("c.md", SyncOutcome.SKIPPED),
                _result("d.md", SyncOutcome.FAILED, "boom"),
            ],
            status=PassStatus.PARTIAL_FAILURE,
        )
        assert [r.local_path for r in report.created] == ["a.md"]
        assert [r.local_path for r in report.updated] == ["b.md"]
        assert [r.local_path for r in report.skipped] == ["c.md"]
        assert [r.local_path for r in report.failed] == ["d.md"]
        assert not report.is_fatal

    def test_error_messages_limited(self):
        report = _report(
            [_result(f"{i}.md", SyncOutcome.FAILED, f"e{i}") for i in range(8)]
        )
        assert report.error_messages() == [f"{i}.md: e{i}" for i in range(5)]
        assert len(report.error_messages(limit=2)) == 2

    def test_result_success(self):
        assert _result("a.md", SyncOutcome.SKIPPED).success
        assert not _result("a.md", SyncOutcome.FAILED, "x").success

    def test_summary(self):
        report = _report([_result("a.md", SyncOutcome.CREATED)])
        summary = report.summary()
        assert summary.startswith("Sync report (success)")
        assert "Created: 1" in summary

    def test_summary_fatal(self):
        report = _report(
            mode=SyncMode.FULL, status=PassStatus.FATAL_FAILURE, reason="no root"
        )
        assert report.summary() == "Full resync failed: no root"


class TestFormatSyncReport:
    def test_lists_created_and_updated_not_skipped(self):
        text = format_sync_report(
            _report(
                [
                    _result("a.md", SyncOutcome.CREATED),
                    _result("b.md", SyncOutcome.UPDATED),
                    _result("c.md", SyncOutcome.SKIPPED),
                ]
            )
        )
        assert "Processed 3 documents: 1 created, 1 updated, 1 skipped, 0 failed" in text
        assert "Created:\n  a.md" in text
        assert "Updated:\n  b.md" in text
        assert "c.md" not in text
        assert "Errors:" not in text

    def test_errors_truncated(self):
        text = format_sync_report(
            _report(
                [_result(f"{i}.md", SyncOutcome.FAILED, "bad") for i in range(7)],
                status=PassStatus.PARTIAL_FAILURE,
            )
        )
        assert "  4.md: bad" in text
        assert "5.md" not in text
        assert "... and 2 more" in text

    def test_fatal(self):
        text = format_sync_report(
            _report(
                status=PassStatus.FATAL_FAILURE,
                reason="Cannot connect to Notion: 401",
                warnings=["w1"],
            )
        )
        assert "Pass aborted: Cannot connect to Notion: 401" in text
        assert "warning: w1" in text
        assert "Processed" not in text

    def test_full_resync_shows_archived(self):
        text = format_sync_report(_report(mode=SyncMode.FULL, archived=4))
        assert text.startswith("Full resync report (success)")
        assert "Archived 4 existing pages and blocks" in text

    def test_warnings_section(self):
        text = format_sync_report(_report(warnings=["folder fell back to root"]))
        assert "Warnings:\n  folder fell back to root" in text


class TestReportToJson:
    def test_structure(self):
        report = _report(
            [
                _result("a.md", SyncOutcome.CREATED),
                _result("b.md", SyncOutcome.FAILED, "boom", node_id=None),
            ],
            status=PassStatus.PARTIAL_FAILURE,
            warnings=["w"],
        )
        data = report_to_json(report)

        assert data["mode"] == "incremental"
        assert data["status"] == "partial_failure"
        assert data["reason"] is None
        assert data["counts"] == {
            "total": 2,
            "created": 1,
            "updated": 0,
            "skipped": 0,
            "failed": 1,
            "archived": 0,
        }
        assert data["errors"] == ["b.md: boom"]
        assert data["warnings"] == ["w"]
        assert data["results"] == [
            {"local_path": "a.md", "outcome": "created", "node_id": "n1"},
            {"local_path": "b.md", "outcome": "failed", "error": "boom"},
        ]
        assert data["started_at"] == STARTED
        assert data["completed_at"] == COMPLETED

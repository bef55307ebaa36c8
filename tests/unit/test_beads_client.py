"""Unit tests for the Beads CLI client library."""

from __future__ import annotations

import json
import subprocess
from datetime import datetime, timezone
from unittest.mock import patch, MagicMock

import pytest

from edgestack.lib.beads.client import (
    _run_bd,
    init,
    create_issue,
    show_issue,
    update_issue,
    close_issue,
    reopen_issue,
    comment,
    set_metadata,
    list_issues,
    ready,
    blocked,
    search,
    find_by_github_number,
    add_dependency,
    block,
    remove_dependency,
    close_and_unblock,
    sync,
)
from edgestack.lib.beads.metadata import merge_metadata, parse_metadata, strip_metadata, write_metadata
from edgestack.lib.beads.models import BeadsIssue


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SAMPLE_ISSUE_JSON = {
    "id": "es-5",
    "title": "Move session cache from KV to a Durable Object",
    "status": "open",
    "priority": 1,
    "type": "task",
    "assignee": None,
    "labels": ["github", "durable-objects"],
    "notes": "<!-- es-github_number: 42 -->\nSessions need read-after-write.",
    "description": "KV is eventually consistent.",
    "created_at": "2026-10-01T10:00:00Z",
    "updated_at": None,
}

NOW = datetime(2026, 10, 16, 12, 0, tzinfo=timezone.utc)


def _mock_run(stdout: str = "", returncode: int = 0):
    """Create a mock subprocess.run result."""
    result = MagicMock()
    result.stdout = stdout
    result.stderr = ""
    result.returncode = returncode
    return result


# ---------------------------------------------------------------------------
# _run_bd tests
# ---------------------------------------------------------------------------


class TestRunBd:
    @patch("subprocess.run")
    def test_run_plain(self, mock_run):
        mock_run.return_value = _mock_run("hello world")
        result = _run_bd("status")
        assert result == "hello world"
        mock_run.assert_called_once()
        args = mock_run.call_args[0][0]
        assert args[0] == "bd"
        assert "status" in args

    @patch("subprocess.run")
    def test_run_json(self, mock_run):
        mock_run.return_value = _mock_run(json.dumps({"id": "es-1"}))
        result = _run_bd("show", "es-1", json_output=True)
        assert result == {"id": "es-1"}
        args = mock_run.call_args[0][0]
        assert "--json" in args

    @patch("subprocess.run")
    def test_run_json_empty_output(self, mock_run):
        mock_run.return_value = _mock_run("")
        assert _run_bd("list", json_output=True) == {}

    @patch("subprocess.run")
    def test_workspace_is_cwd(self, mock_run, tmp_path):
        mock_run.return_value = _mock_run("ok")
        _run_bd("status", workspace=tmp_path)
        assert mock_run.call_args.kwargs["cwd"] == str(tmp_path)

    @patch("subprocess.run", side_effect=FileNotFoundError)
    def test_bd_not_found(self, mock_run):
        with pytest.raises(RuntimeError, match="not found on PATH"):
            _run_bd("status")

    @patch("subprocess.run")
    def test_nonzero_exit_propagates(self, mock_run):
        mock_run.side_effect = subprocess.CalledProcessError(1, ["bd", "show"], stderr="no such issue")
        with pytest.raises(subprocess.CalledProcessError):
            _run_bd("show", "es-404")

    @patch("subprocess.run")
    def test_json_parse_failure(self, mock_run):
        mock_run.return_value = _mock_run("not json")
        with pytest.raises(ValueError, match="Failed to parse"):
            _run_bd("show", "es-1", json_output=True)


# ---------------------------------------------------------------------------
# Metadata block tests
# ---------------------------------------------------------------------------


class TestMetadata:
    def test_parse(self):
        notes = "<!-- es-locked_by: kv-optimization-specialist -->\n<!-- es-github_number: 7 -->\nbody"
        assert parse_metadata(notes) == {"locked_by": "kv-optimization-specialist", "github_number": "7"}

    def test_parse_stops_at_body(self):
        notes = "body first\n<!-- es-locked_by: x -->"
        assert parse_metadata(notes) == {}

    def test_parse_empty(self):
        assert parse_metadata(None) == {}

    def test_strip(self):
        notes = "<!-- es-locked_by: x -->\n\nKeep this.\nAnd this."
        assert strip_metadata(notes) == "Keep this.\nAnd this."

    def test_write_sorted_and_drops_none(self):
        text = write_metadata({"locked_by": "a", "github_number": "3", "locked_at": None}, "body")
        assert text == "<!-- es-github_number: 3 -->\n<!-- es-locked_by: a -->\nbody"

    def test_merge_removes_and_keeps_unknown_keys(self):
        notes = "<!-- es-locked_by: a -->\n<!-- es-custom: keep -->\nbody"
        merged = merge_metadata(notes, locked_by=None, lock_expires="2026-10-16T12:30:00+00:00")
        meta = parse_metadata(merged)
        assert "locked_by" not in meta
        assert meta["custom"] == "keep"
        assert meta["lock_expires"] == "2026-10-16T12:30:00+00:00"
        assert strip_metadata(merged) == "body"


# ---------------------------------------------------------------------------
# BeadsIssue model tests
# ---------------------------------------------------------------------------


class TestBeadsIssue:
    def test_from_json(self):
        issue = BeadsIssue.from_json(SAMPLE_ISSUE_JSON)
        assert issue.id == "es-5"
        assert issue.status == "open"
        assert issue.priority == 1
        assert issue.issue_type == "task"
        assert "durable-objects" in issue.tags
        assert issue.github_number == 42
        assert issue.is_linked

    def test_from_json_minimal(self):
        issue = BeadsIssue.from_json({"id": "es-1", "title": "Test"})
        assert issue.id == "es-1"
        assert issue.status == "open"
        assert issue.priority == 2
        assert issue.blocked_by == []
        assert issue.parent is None
        assert not issue.is_linked

    def test_dependencies(self):
        issue = BeadsIssue.from_json({
            "id": "es-3",
            "title": "Bind R2 bucket",
            "dependencies": [
                {"depends_on_id": "es-1", "dependency_type": "blocks", "status": "open"},
                {"depends_on_id": "es-2", "dependency_type": "blocks", "status": "closed"},
                {"depends_on_id": "es-0", "dependency_type": "parent-child"},
            ],
        })
        assert issue.blocked_by == ["es-1"]
        assert issue.parent == "es-0"

    def test_explicit_blocked_by(self):
        issue = BeadsIssue.from_json({"id": "es-3", "title": "t", "blocked_by": ["es-1", "es-2"]})
        assert issue.blocked_by == ["es-1", "es-2"]

    def test_external_ref_links_github(self):
        issue = BeadsIssue.from_json({"id": "es-8", "title": "t", "external_ref": "gh-108"})
        assert issue.github_number == 108

    def test_lock_fields_from_notes(self):
        issue = BeadsIssue.from_json({
            "id": "es-9",
            "title": "t",
            "notes": "<!-- es-locked_by: d1-database-specialist -->\n"
                     "<!-- es-lock_expires: 2026-10-16T12:30:00+00:00 -->",
        })
        assert issue.locked_by == "d1-database-specialist"
        assert issue.is_locked(NOW)
        assert not issue.is_ready(NOW)

    def test_expired_lock_is_released(self):
        issue = BeadsIssue(id="es-9", title="t", locked_by="a", lock_expires="2026-10-16T11:00:00Z")
        assert not issue.is_locked(NOW)
        assert issue.has_stale_lock(NOW)
        assert issue.is_ready(NOW)

    def test_lock_without_expiry_is_held(self):
        issue = BeadsIssue(id="es-9", title="t", locked_by="a")
        assert issue.is_locked(NOW)

    def test_ready_requires_open_and_unblocked(self):
        assert BeadsIssue(id="a", title="t").is_ready(NOW)
        assert not BeadsIssue(id="a", title="t", blocked_by=["b"]).is_ready(NOW)
        assert not BeadsIssue(id="a", title="t", status="in_progress").is_ready(NOW)
        assert not BeadsIssue(id="a", title="t", status="closed").is_ready(NOW)


# ---------------------------------------------------------------------------
# CRUD function tests
# ---------------------------------------------------------------------------


class TestInit:
    @patch("edgestack.lib.beads.client._run_bd")
    def test_init(self, mock_bd):
        mock_bd.return_value = "Initialized"
        init("es")
        args = mock_bd.call_args[0]
        assert args == ("init", "--prefix", "es")


class TestShowIssue:
    @patch("edgestack.lib.beads.client._run_bd")
    def test_show(self, mock_bd):
        mock_bd.return_value = SAMPLE_ISSUE_JSON
        issue = show_issue("es-5")
        assert issue.id == "es-5"
        mock_bd.assert_called_once_with("show", "es-5", json_output=True, workspace=None)

    @patch("edgestack.lib.beads.client._run_bd")
    def test_show_list_wrapper(self, mock_bd):
        mock_bd.return_value = [SAMPLE_ISSUE_JSON]
        assert show_issue("es-5").id == "es-5"

    @patch("edgestack.lib.beads.client._run_bd")
    def test_show_empty(self, mock_bd):
        mock_bd.return_value = {}
        with pytest.raises(ValueError, match="Unexpected bd show output"):
            show_issue("es-5")


class TestCreateIssue:
    @patch("edgestack.lib.beads.client.show_issue")
    @patch("edgestack.lib.beads.client._run_bd")
    def test_create(self, mock_bd, mock_show):
        mock_bd.return_value = "✓ Created issue: es-99\n  Title: New Task"
        mock_show.return_value = BeadsIssue(id="es-99", title="New Task")
        issue = create_issue("New Task", "task", 1, description="Desc", parent="es-1", external_ref="gh-4")
        assert issue.id == "es-99"
        args = mock_bd.call_args[0]
        assert "create" in args
        assert "New Task" in args
        assert args[args.index("-t") + 1] == "task"
        assert args[args.index("--parent") + 1] == "es-1"
        assert args[args.index("--external-ref") + 1] == "gh-4"
        mock_show.assert_called_once_with("es-99", workspace=None)

    @patch("edgestack.lib.beads.client.show_issue")
    @patch("edgestack.lib.beads.client._run_bd")
    def test_create_fallback_id(self, mock_bd, mock_show):
        mock_bd.return_value = "new issue es-a1b2 ready"
        mock_show.return_value = BeadsIssue(id="es-a1b2", title="x")
        create_issue("x")
        mock_show.assert_called_once_with("es-a1b2", workspace=None)

    @patch("edgestack.lib.beads.client._run_bd")
    def test_create_parse_failure(self, mock_bd):
        mock_bd.return_value = "Some unexpected output"
        with pytest.raises(ValueError, match="Could not parse issue ID"):
            create_issue("Bad", "task", 1)


class TestUpdateIssue:
    @patch("edgestack.lib.beads.client._run_bd")
    def test_update_status(self, mock_bd):
        update_issue("es-5", status="in_progress")
        args = mock_bd.call_args[0]
        assert "--status" in args
        assert "in_progress" in args

    @patch("edgestack.lib.beads.client._run_bd")
    def test_update_claim(self, mock_bd):
        update_issue("es-5", claim=True)
        assert "--claim" in mock_bd.call_args[0]

    @patch("edgestack.lib.beads.client._run_bd")
    def test_update_external_ref(self, mock_bd):
        update_issue("es-5", external_ref="gh-12")
        args = mock_bd.call_args[0]
        assert args[args.index("--external-ref") + 1] == "gh-12"


class TestCloseReopenComment:
    @patch("edgestack.lib.beads.client._run_bd")
    def test_close(self, mock_bd):
        close_issue("es-5", reason="Done")
        args = mock_bd.call_args[0]
        assert "close" in args
        assert "--reason" in args

    @patch("edgestack.lib.beads.client._run_bd")
    def test_reopen(self, mock_bd):
        reopen_issue("es-5")
        assert "reopen" in mock_bd.call_args[0]

    @patch("edgestack.lib.beads.client._run_bd")
    def test_comment(self, mock_bd):
        comment("es-5", "Looks good")
        assert mock_bd.call_args[0] == ("comments", "add", "es-5", "Looks good")


class TestSetMetadata:
    @patch("edgestack.lib.beads.client.update_issue")
    @patch("edgestack.lib.beads.client.show_issue")
    def test_merges_into_notes(self, mock_show, mock_update):
        mock_show.return_value = BeadsIssue(id="es-5", title="t", notes="Keep me")
        set_metadata("es-5", locked_by="workers-runtime-guardian", github_number=3)
        notes = mock_update.call_args.kwargs["notes"]
        assert "<!-- es-locked_by: workers-runtime-guardian -->" in notes
        assert "<!-- es-github_number: 3 -->" in notes
        assert notes.endswith("Keep me")
        assert mock_show.call_count == 2


# ---------------------------------------------------------------------------
# Query function tests
# ---------------------------------------------------------------------------


class TestListIssues:
    @patch("edgestack.lib.beads.client._run_bd")
    def test_list_with_filters(self, mock_bd):
        mock_bd.return_value = [SAMPLE_ISSUE_JSON]
        issues = list_issues(status="open", label="github")
        assert len(issues) == 1
        positional = mock_bd.call_args[0]
        assert "--status" in positional
        assert "--label" in positional

    @patch("edgestack.lib.beads.client._run_bd")
    def test_list_all(self, mock_bd):
        mock_bd.return_value = []
        list_issues(all=True)
        assert "--all" in mock_bd.call_args[0]

    @patch("edgestack.lib.beads.client._run_bd")
    def test_list_dict_wrapper(self, mock_bd):
        mock_bd.return_value = {"issues": [SAMPLE_ISSUE_JSON]}
        assert len(list_issues()) == 1

    @patch("edgestack.lib.beads.client._run_bd")
    def test_list_empty_output(self, mock_bd):
        mock_bd.return_value = {}
        assert list_issues() == []


class TestQueries:
    @patch("edgestack.lib.beads.client._run_bd")
    def test_ready_with_assignee(self, mock_bd):
        mock_bd.return_value = []
        assert ready(assignee="human") == []
        assert "--assignee" in mock_bd.call_args[0]

    @patch("edgestack.lib.beads.client._run_bd")
    def test_blocked(self, mock_bd):
        mock_bd.return_value = [{"id": "es-2", "title": "t", "blocked_by": ["es-1"]}]
        issues = blocked()
        assert issues[0].blocked_by == ["es-1"]

    @patch("edgestack.lib.beads.client._run_bd")
    def test_search(self, mock_bd):
        mock_bd.return_value = [SAMPLE_ISSUE_JSON]
        assert len(search("session")) == 1

    @patch("edgestack.lib.beads.client.list_issues")
    def test_find_by_github_number(self, mock_list):
        mock_list.return_value = [
            BeadsIssue(id="es-1", title="a", github_number=10),
            BeadsIssue(id="es-2", title="b", github_number=42),
        ]
        assert find_by_github_number(42).id == "es-2"
        assert find_by_github_number(7) is None


# ---------------------------------------------------------------------------
# Dependency function tests
# ---------------------------------------------------------------------------


class TestDependencies:
    @patch("edgestack.lib.beads.client._run_bd")
    def test_add_dep(self, mock_bd):
        add_dependency("es-5", "es-4")
        assert mock_bd.call_args[0] == ("dep", "add", "es-5", "es-4")

    @patch("edgestack.lib.beads.client._run_bd")
    def test_add_dep_with_type(self, mock_bd):
        add_dependency("es-5", "es-1", dep_type="parent-child")
        args = mock_bd.call_args[0]
        assert "--type" in args
        assert "parent-child" in args

    @patch("edgestack.lib.beads.client._run_bd")
    def test_block(self, mock_bd):
        block("es-3", "es-2")
        assert mock_bd.call_args[0] == ("dep", "add", "es-3", "es-2")

    @patch("edgestack.lib.beads.client._run_bd")
    def test_remove_dep(self, mock_bd):
        remove_dependency("es-5", "es-4")
        assert mock_bd.call_args[0] == ("dep", "remove", "es-5", "es-4")


class TestCloseAndUnblock:
    @patch("edgestack.lib.beads.client.show_issue")
    @patch("edgestack.lib.beads.client.close_issue")
    @patch("edgestack.lib.beads.client.blocked")
    def test_reports_newly_ready(self, mock_blocked, mock_close, mock_show):
        mock_blocked.return_value = [
            BeadsIssue(id="es-2", title="b", blocked_by=["es-1"]),
            BeadsIssue(id="es-3", title="c", blocked_by=["es-1", "es-9"]),
            BeadsIssue(id="es-4", title="d", blocked_by=["es-9"]),
        ]
        refreshed = {
            "es-2": BeadsIssue(id="es-2", title="b"),
            "es-3": BeadsIssue(id="es-3", title="c", blocked_by=["es-9"]),
        }
        mock_show.side_effect = lambda issue_id, workspace=None: refreshed[issue_id]

        unblocked = close_and_unblock("es-1", "done", now=NOW)

        mock_close.assert_called_once_with("es-1", "done", workspace=None)
        assert [i.id for i in unblocked] == ["es-2"]

    @patch("edgestack.lib.beads.client.show_issue")
    @patch("edgestack.lib.beads.client.close_issue")
    @patch("edgestack.lib.beads.client.blocked")
    def test_ignores_stale_closed_blocker(self, mock_blocked, mock_close, mock_show):
        mock_blocked.return_value = [BeadsIssue(id="es-2", title="b", blocked_by=["es-1"])]
        mock_show.return_value = BeadsIssue(id="es-2", title="b", blocked_by=["es-1"])
        unblocked = close_and_unblock("es-1", now=NOW)
        assert [i.id for i in unblocked] == ["es-2"]


# ---------------------------------------------------------------------------
# Sync tests
# ---------------------------------------------------------------------------


class TestSync:
    @patch("edgestack.lib.beads.client._run_bd")
    def test_sync_basic(self, mock_bd):
        sync()
        assert "sync" in mock_bd.call_args[0]

    @patch("edgestack.lib.beads.client._run_bd")
    def test_sync_full(self, mock_bd):
        sync(full=True)
        assert "--full" in mock_bd.call_args[0]

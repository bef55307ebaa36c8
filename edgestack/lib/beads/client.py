"""Python wrapper around the Beads (bd) CLI.

All functions shell out to `bd` and parse JSON output.

Every public function accepts an optional ``workspace`` keyword argument.
When provided, it is passed as ``cwd`` to ``subprocess.run`` so that
``bd`` discovers the correct per-project ``.beads/`` directory.
"""

from __future__ import annotations

import json
import logging
import re
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Any

from edgestack.lib.beads.metadata import merge_metadata
from edgestack.lib.beads.models import BeadsIssue

logger = logging.getLogger("lib.beads.client")

_CREATED_PATTERN = re.compile(r"Created issue:\s*(\S+)")
# Fallback: any "<prefix>-<suffix>" token whose suffix contains a digit.
_ANY_ID_PATTERN = re.compile(r"\b([A-Za-z]\w*-(?=[0-9a-z]*\d)[0-9a-z]+(?:\.\d+)*)\b")


def _run_bd(
    *args: str,
    json_output: bool = False,
    workspace: str | Path | None = None,
) -> str | Any:
    """Run a bd CLI command and return output.

    Args:
        *args: CLI arguments after 'bd'.
        json_output: If True, append --json and parse the result.
        workspace: Working directory for the bd process.

    Returns:
        Parsed JSON (dict or list) if json_output, else raw stdout string.

    Raises:
        RuntimeError: If bd is not found on PATH.
        subprocess.CalledProcessError: If bd exits non-zero.
        ValueError: If JSON parsing fails.
    """
    cmd = ["bd", *args]
    if json_output:
        cmd.append("--json")

    cwd = str(workspace) if workspace else None
    logger.debug("Running: %s", " ".join(cmd))

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            check=True,
            cwd=cwd,
        )
    except FileNotFoundError:
        raise RuntimeError(
            "Beads CLI (bd) not found on PATH. "
            "Install Beads: https://github.com/steveyegge/beads"
        ) from None
    except subprocess.CalledProcessError as e:
        logger.error("bd command failed (exit %d): %s\nstderr: %s", e.returncode, " ".join(cmd), e.stderr)
        raise

    stdout = result.stdout.strip()

    if json_output:
        if not stdout:
            return {}
        try:
            return json.loads(stdout)
        except json.JSONDecodeError as e:
            raise ValueError(f"Failed to parse bd JSON output: {e}\nOutput: {stdout[:500]}") from e

    return stdout


def _parse_issue(data: dict) -> BeadsIssue:
    """Parse a single issue from bd JSON output."""
    return BeadsIssue.from_json(data)


def _parse_issues(data: Any) -> list[BeadsIssue]:
    """Parse a list of issues from bd JSON output."""
    if isinstance(data, list):
        return [_parse_issue(item) for item in data]
    if isinstance(data, dict):
        if not data:
            return []
        # Some bd commands return {"issues": [...]}
        issues = data.get("issues", data.get("items"))
        if isinstance(issues, list):
            return [_parse_issue(item) for item in issues]
        return [_parse_issue(data)]
    return []


# ---------------------------------------------------------------------------
# Workspace
# ---------------------------------------------------------------------------


def init(prefix: str, *, workspace: str | Path | None = None) -> str:
    """Initialise a Beads database with the given issue prefix."""
    return _run_bd("init", "--prefix", prefix, workspace=workspace)


# ---------------------------------------------------------------------------
# Issue CRUD
# ---------------------------------------------------------------------------


def create_issue(
    title: str,
    issue_type: str = "task",
    priority: int = 2,
    *,
    description: str | None = None,
    labels: str | None = None,
    assignee: str | None = None,
    notes: str | None = None,
    parent: str | None = None,
    external_ref: str | None = None,
    workspace: str | Path | None = None,
) -> BeadsIssue:
    """Create a Beads issue.

    Returns:
        The created BeadsIssue.
    """
    args = ["create", title, "-t", issue_type, "-p", str(priority)]
    if description:
        args.extend(["--description", description])
    if labels:
        args.extend(["--labels", labels])
    if assignee:
        args.extend(["--assignee", assignee])
    if notes:
        args.extend(["--notes", notes])
    if parent:
        args.extend(["--parent", parent])
    if external_ref:
        args.extend(["--external-ref", external_ref])

    # bd create prints a confirmation line rather than the issue JSON,
    # so parse the ID and show it.
    output = _run_bd(*args, workspace=workspace)

    match = _CREATED_PATTERN.search(output) or _ANY_ID_PATTERN.search(output)
    if match:
        return show_issue(match.group(1), workspace=workspace)

    raise ValueError(f"Could not parse issue ID from bd create output: {output[:300]}")


def show_issue(issue_id: str, *, workspace: str | Path | None = None) -> BeadsIssue:
    """Get full details of a single issue."""
    data = _run_bd("show", issue_id, json_output=True, workspace=workspace)
    if isinstance(data, list) and data:
        data = data[0]
    if isinstance(data, dict) and data:
        return _parse_issue(data)
    raise ValueError(f"Unexpected bd show output for {issue_id}: {type(data)}")


def update_issue(issue_id: str, *, workspace: str | Path | None = None, **kwargs: Any) -> None:
    """Update issue fields.

    Supported kwargs:
        status, notes, append_notes, assignee, priority,
        add_label, remove_label, external_ref, claim (bool).
    """
    args = ["update", issue_id]

    if kwargs.get("claim"):
        args.append("--claim")
    if "status" in kwargs:
        args.extend(["--status", kwargs["status"]])
    if "notes" in kwargs:
        args.extend(["--notes", kwargs["notes"]])
    if "append_notes" in kwargs:
        args.extend(["--append-notes", kwargs["append_notes"]])
    if "assignee" in kwargs:
        args.extend(["--assignee", kwargs["assignee"]])
    if "priority" in kwargs:
        args.extend(["--priority", str(kwargs["priority"])])
    if "add_label" in kwargs:
        args.extend(["--add-label", kwargs["add_label"]])
    if "remove_label" in kwargs:
        args.extend(["--remove-label", kwargs["remove_label"]])
    if "external_ref" in kwargs:
        args.extend(["--external-ref", kwargs["external_ref"]])

    _run_bd(*args, workspace=workspace)


def close_issue(issue_id: str, reason: str | None = None, *, workspace: str | Path | None = None) -> None:
    """Close an issue."""
    args = ["close", issue_id]
    if reason:
        args.extend(["--reason", reason])
    _run_bd(*args, workspace=workspace)


def reopen_issue(issue_id: str, reason: str | None = None, *, workspace: str | Path | None = None) -> None:
    """Reopen a closed issue."""
    args = ["reopen", issue_id]
    if reason:
        args.extend(["--reason", reason])
    _run_bd(*args, workspace=workspace)


def comment(issue_id: str, text: str, *, workspace: str | Path | None = None) -> None:
    """Add a comment to an issue."""
    _run_bd("comments", "add", issue_id, text, workspace=workspace)


def set_metadata(issue_id: str, *, workspace: str | Path | None = None, **values: Any) -> BeadsIssue:
    """Merge *values* into the issue's notes metadata block.

    A ``None`` value removes the key.  Returns the re-read issue.
    """
    issue = show_issue(issue_id, workspace=workspace)
    notes = merge_metadata(issue.notes, **{k: (None if v is None else str(v)) for k, v in values.items()})
    update_issue(issue_id, notes=notes, workspace=workspace)
    return show_issue(issue_id, workspace=workspace)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def list_issues(*, workspace: str | Path | None = None, **filters: Any) -> list[BeadsIssue]:
    """List issues with filters.

    Supported filters:
        status, label, label_any, assignee, issue_type (as 'type'),
        parent, priority, title, sort, reverse (bool), limit, all (bool).
    """
    args = ["list"]
    _filter_map = {
        "status": "--status",
        "label": "--label",
        "label_any": "--label-any",
        "assignee": "--assignee",
        "issue_type": "--type",
        "parent": "--parent",
        "priority": "--priority",
        "title": "--title",
        "sort": "--sort",
        "limit": "--limit",
    }
    for key, flag in _filter_map.items():
        if key in filters:
            args.extend([flag, str(filters[key])])
    if filters.get("reverse"):
        args.append("--reverse")
    if filters.get("all"):
        args.append("--all")

    data = _run_bd(*args, json_output=True, workspace=workspace)
    return _parse_issues(data)


def ready(*, assignee: str | None = None, unassigned: bool = False, workspace: str | Path | None = None) -> list[BeadsIssue]:
    """Get ready (unblocked, open) work as reported by bd."""
    args = ["ready"]
    if assignee:
        args.extend(["--assignee", assignee])
    if unassigned:
        args.append("--unassigned")

    data = _run_bd(*args, json_output=True, workspace=workspace)
    return _parse_issues(data)


def blocked(*, workspace: str | Path | None = None) -> list[BeadsIssue]:
    """Get blocked issues."""
    data = _run_bd("blocked", json_output=True, workspace=workspace)
    return _parse_issues(data)


def search(query: str, *, workspace: str | Path | None = None) -> list[BeadsIssue]:
    """Search issues by text."""
    data = _run_bd("search", query, json_output=True, workspace=workspace)
    return _parse_issues(data)


def find_by_github_number(number: int, *, workspace: str | Path | None = None) -> BeadsIssue | None:
    """Return the issue linked to GitHub issue *number*, if any."""
    for issue in list_issues(all=True, workspace=workspace):
        if issue.github_number == number:
            return issue
    return None


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def add_dependency(
    blocked_id: str, blocker_id: str, dep_type: str = "blocks",
    *, workspace: str | Path | None = None,
) -> None:
    """Add a dependency: blocker blocks blocked."""
    args = ["dep", "add", blocked_id, blocker_id]
    if dep_type != "blocks":
        args.extend(["--type", dep_type])
    _run_bd(*args, workspace=workspace)


def block(blocked_id: str, blocker_id: str, *, workspace: str | Path | None = None) -> None:
    """Mark *blocked_id* as blocked by *blocker_id*."""
    add_dependency(blocked_id, blocker_id, workspace=workspace)


def remove_dependency(issue_id: str, depends_on_id: str, *, workspace: str | Path | None = None) -> None:
    """Remove a dependency."""
    _run_bd("dep", "remove", issue_id, depends_on_id, workspace=workspace)


def dependents(issue_id: str, *, workspace: str | Path | None = None) -> list[BeadsIssue]:
    """Open issues currently blocked by *issue_id*."""
    return [issue for issue in blocked(workspace=workspace) if issue_id in issue.blocked_by]


def close_and_unblock(
    issue_id: str,
    reason: str | None = None,
    *,
    now: datetime | None = None,
    workspace: str | Path | None = None,
) -> list[BeadsIssue]:
    """Close *issue_id* and return the dependents that became ready."""
    waiting = dependents(issue_id, workspace=workspace)
    close_issue(issue_id, reason, workspace=workspace)

    unblocked = []
    for dependent in waiting:
        refreshed = show_issue(dependent.id, workspace=workspace)
        if issue_id in refreshed.blocked_by:
            # Older bd versions keep closed blockers in the dependency list.
            refreshed.blocked_by = [b for b in refreshed.blocked_by if b != issue_id]
        if refreshed.is_ready(now):
            unblocked.append(refreshed)
    if unblocked:
        logger.info("Closing %s unblocked: %s", issue_id, ", ".join(i.id for i in unblocked))
    return unblocked


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------


def sync(*, force: bool = False, full: bool = False, import_mode: bool = False, workspace: str | Path | None = None) -> None:
    """Sync the Beads database."""
    args = ["sync"]
    if force:
        args.append("--force")
    if full:
        args.append("--full")
    if import_mode:
        args.append("--import")
    _run_bd(*args, workspace=workspace)

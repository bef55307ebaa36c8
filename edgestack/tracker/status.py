"""Workspace status summary (``/es-beads-status``)."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from edgestack.lib.beads import client as beads
from edgestack.lib.beads.models import BeadsIssue
from edgestack.tracker.workspace import find_workspace_root


@dataclass
class StatusReport:
    """Snapshot of a Beads workspace."""

    counts: dict[str, int] = field(default_factory=dict)
    ready: list[BeadsIssue] = field(default_factory=list)
    blocked: list[BeadsIssue] = field(default_factory=list)
    locked: list[BeadsIssue] = field(default_factory=list)
    stale_locks: list[BeadsIssue] = field(default_factory=list)
    linked: list[BeadsIssue] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(self.counts.values())


def collect_status(workspace: Path, now: datetime | None = None) -> StatusReport:
    """Gather counts and the ready / blocked / locked lists.

    Raises:
        FileNotFoundError: If *workspace* is not inside a Beads workspace.
    """
    root = find_workspace_root(workspace)
    current = now or datetime.now(timezone.utc)
    issues = beads.list_issues(all=True, workspace=root)
    blocked_map = {i.id: i.blocked_by for i in beads.blocked(workspace=root)}

    report = StatusReport(counts=dict(Counter(i.status for i in issues)))
    for issue in issues:
        if not issue.blocked_by and issue.id in blocked_map:
            issue.blocked_by = blocked_map[issue.id]
        if issue.is_linked:
            report.linked.append(issue)
        if issue.is_closed:
            continue
        if issue.is_locked(current):
            report.locked.append(issue)
        elif issue.has_stale_lock(current):
            report.stale_locks.append(issue)
        if issue.blocked_by:
            report.blocked.append(issue)
        elif issue.is_ready(current):
            report.ready.append(issue)

    report.ready.sort(key=lambda i: (i.priority, i.id))
    return report

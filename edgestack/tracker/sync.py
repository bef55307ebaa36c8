"""Bidirectional status sync between Beads and GitHub Issues (``/es-beads-sync``).

For every Beads issue linked to a GitHub issue the open/closed state of
both sides is compared with the state recorded after the previous sync.
The side whose state flipped wins, unless the other side was also edited
since that sync; then the caller's resolver decides.  Pairs with no
recorded history resolve towards "closed".
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from pydantic import BaseModel

from edgestack.lib.beads import client as beads
from edgestack.lib.beads.models import CLOSED_STATUSES, BeadsIssue, parse_timestamp
from edgestack.lib.github import client as github
from edgestack.lib.github.models import GitHubIssue
from edgestack.tracker.importer import GITHUB_TAG, github_ref
from edgestack.tracker.state import SyncLink, SyncState
from edgestack.tracker.workspace import find_workspace_root, sync_state_path

logger = logging.getLogger("tracker.sync")

DIRECTION_BOTH = "both"
DIRECTION_TO_GITHUB = "to-github"
DIRECTION_FROM_GITHUB = "from-github"
DIRECTIONS = (DIRECTION_BOTH, DIRECTION_TO_GITHUB, DIRECTION_FROM_GITHUB)

WINNER_BEADS = "beads"
WINNER_GITHUB = "github"
WINNER_SKIP = "skip"

CLOSE_GITHUB = "close-github"
REOPEN_GITHUB = "reopen-github"
CLOSE_BEADS = "close-beads"
REOPEN_BEADS = "reopen-beads"
CREATE_GITHUB = "create-github"
LINK_BEADS = "link-beads"


class SyncAction(BaseModel):
    """One change made (or planned, on a dry run) by a sync."""

    beads_id: str
    github_number: int | None = None
    action: str
    detail: str = ""
    applied: bool = False


class SyncConflict(BaseModel):
    """A pair where both sides saw activity since the last sync and now disagree."""

    beads_id: str
    github_number: int
    beads_status: str
    github_state: str
    resolution: str = WINNER_SKIP


class SyncReport(BaseModel):
    """Result of a sync run."""

    actions: list[SyncAction] = []
    conflicts: list[SyncConflict] = []
    errors: list[str] = []
    dry_run: bool = False


@dataclass
class _Pair:
    issue: BeadsIssue
    remote: GitHubIssue
    previous: SyncLink | None

    @property
    def beads_closed(self) -> bool:
        return self.issue.is_closed

    @property
    def github_closed(self) -> bool:
        return self.remote.is_closed


Resolver = Callable[[SyncConflict], str]
Confirm = Callable[[str], bool]


def _updated_since(updated_at: str | None, synced_at: str) -> bool:
    updated = parse_timestamp(updated_at)
    synced = parse_timestamp(synced_at)
    return updated is not None and synced is not None and updated > synced


def _pick_winner(pair: _Pair, resolver: Resolver | None, report: SyncReport) -> str:
    prev = pair.previous
    if prev is None:
        return WINNER_BEADS if pair.beads_closed else WINNER_GITHUB

    # A side is "touched" if its state flipped or it was edited after the last sync.
    beads_flipped = (prev.beads_status in CLOSED_STATUSES) != pair.beads_closed
    github_flipped = (prev.github_state == "closed") != pair.github_closed
    beads_touched = beads_flipped or _updated_since(pair.issue.updated_at, prev.synced_at)
    github_touched = github_flipped or _updated_since(pair.remote.updated_at, prev.synced_at)

    if beads_flipped and not github_touched:
        return WINNER_BEADS
    if github_flipped and not beads_touched:
        return WINNER_GITHUB

    conflict = SyncConflict(
        beads_id=pair.issue.id,
        github_number=pair.remote.number,
        beads_status=pair.issue.status,
        github_state=pair.remote.state,
    )
    if resolver is not None:
        conflict.resolution = resolver(conflict)
    report.conflicts.append(conflict)
    return conflict.resolution


def _planned_action(pair: _Pair, winner: str) -> str:
    if winner == WINNER_BEADS:
        return CLOSE_GITHUB if pair.beads_closed else REOPEN_GITHUB
    return CLOSE_BEADS if pair.github_closed else REOPEN_BEADS


def _direction_allows(direction: str, action: str) -> bool:
    if direction == DIRECTION_BOTH:
        return True
    if action in (CLOSE_GITHUB, REOPEN_GITHUB, CREATE_GITHUB, LINK_BEADS):
        return direction == DIRECTION_TO_GITHUB
    return direction == DIRECTION_FROM_GITHUB


def _apply(pair: _Pair, action: str, *, repo: str | None, root: Path) -> str:
    issue, number = pair.issue, pair.remote.number
    if action == CLOSE_GITHUB:
        github.close_issue(number, f"Closed in Beads ({issue.id}).", repo=repo, cwd=root)
        return f"closed GitHub #{number}"
    if action == REOPEN_GITHUB:
        github.reopen_issue(number, f"Reopened in Beads ({issue.id}).", repo=repo, cwd=root)
        return f"reopened GitHub #{number}"
    if action == CLOSE_BEADS:
        unblocked = beads.close_and_unblock(issue.id, f"Closed on GitHub (#{number})", workspace=root)
        detail = f"closed {issue.id}"
        if unblocked:
            detail += f"; unblocked {', '.join(u.id for u in unblocked)}"
        return detail
    beads.reopen_issue(issue.id, f"Reopened on GitHub (#{number})", workspace=root)
    return f"reopened {issue.id}"


def _sync_pair(
    pair: _Pair,
    state: SyncState,
    report: SyncReport,
    *,
    direction: str,
    resolver: Resolver | None,
    confirm: Confirm | None,
    dry_run: bool,
    repo: str | None,
    root: Path,
) -> None:
    issue, remote = pair.issue, pair.remote
    if pair.beads_closed == pair.github_closed:
        if not dry_run:
            state.record(issue.id, remote.number, issue.status, remote.state)
        return

    winner = _pick_winner(pair, resolver, report)
    if winner == WINNER_SKIP:
        logger.info("Skipping %s <-> #%d (unresolved conflict)", issue.id, remote.number)
        return

    action = _planned_action(pair, winner)
    if not _direction_allows(direction, action):
        logger.debug("Direction %s excludes %s for %s", direction, action, issue.id)
        return

    entry = SyncAction(beads_id=issue.id, github_number=remote.number, action=action)
    report.actions.append(entry)

    if action == REOPEN_GITHUB and not dry_run:
        question = f"Reopen closed GitHub issue #{remote.number} to match {issue.id}?"
        if confirm is None or not confirm(question):
            entry.detail = "reopen not confirmed"
            return

    if dry_run:
        entry.detail = "dry run"
        return

    entry.detail = _apply(pair, action, repo=repo, root=root)
    entry.applied = True
    final_closed = pair.beads_closed if winner == WINNER_BEADS else pair.github_closed
    state.record(
        issue.id,
        remote.number,
        "closed" if final_closed else "open",
        "closed" if final_closed else "open",
    )


def _link_beads(issue: BeadsIssue, number: int, url: str | None, root: Path) -> None:
    beads.update_issue(issue.id, external_ref=github_ref(number), workspace=root)
    beads.set_metadata(issue.id, github_issue=url, github_number=number, workspace=root)


def _push_one(
    issue: BeadsIssue,
    state: SyncState,
    entry: SyncAction,
    *,
    repo: str | None,
    root: Path,
) -> None:
    known = state.links.get(issue.id)
    if known is not None:
        # GitHub issue exists from an earlier run whose Beads write failed.
        _link_beads(issue, known.github_number, None, root)
        entry.detail = f"linked to GitHub #{known.github_number}"
        entry.applied = True
        return

    body = f"{issue.description or ''}\n\nTracked in Beads as `{issue.id}`.".strip()
    number, url = github.create_issue(issue.title, body, repo=repo, cwd=root)
    entry.github_number = number
    state.record(issue.id, number, issue.status, "open")
    _link_beads(issue, number, url, root)
    entry.detail = f"created GitHub #{number}"
    entry.applied = True


def _push_new(
    issues: list[BeadsIssue],
    state: SyncState,
    report: SyncReport,
    *,
    dry_run: bool,
    repo: str | None,
    root: Path,
) -> None:
    for issue in issues:
        if issue.is_linked or issue.is_closed or GITHUB_TAG not in issue.tags:
            continue
        known = state.links.get(issue.id)
        entry = SyncAction(
            beads_id=issue.id,
            github_number=known.github_number if known else None,
            action=CREATE_GITHUB if known is None else LINK_BEADS,
        )
        report.actions.append(entry)
        if dry_run:
            entry.detail = "dry run"
            continue
        try:
            _push_one(issue, state, entry, repo=repo, root=root)
        except (subprocess.CalledProcessError, ValueError) as e:
            logger.error("Pushing %s to GitHub failed: %s", issue.id, e)
            entry.detail = "failed"
            report.errors.append(f"{issue.id}: {e}")


def sync_issues(
    workspace: Path,
    *,
    repo: str | None = None,
    direction: str = DIRECTION_BOTH,
    resolver: Resolver | None = None,
    confirm: Confirm | None = None,
    dry_run: bool = False,
    push_new: bool = False,
    state_file: Path | None = None,
) -> SyncReport:
    """Synchronise open/closed state of linked Beads and GitHub issues.

    Per-issue CLI failures are collected in ``report.errors``.

    Raises:
        ValueError: If *direction* is unknown.
        FileNotFoundError: If *workspace* is not a Beads workspace.
    """
    if direction not in DIRECTIONS:
        raise ValueError(f"Unknown sync direction '{direction}'. Valid: {list(DIRECTIONS)}")

    root = find_workspace_root(workspace)
    state_path = sync_state_path(root, state_file)
    state = SyncState.load(state_path)
    report = SyncReport(dry_run=dry_run)

    issues = beads.list_issues(all=True, workspace=root)
    for issue in issues:
        if not issue.is_linked:
            continue
        try:
            remote = github.view_issue(issue.github_number, repo=repo, cwd=root)
            pair = _Pair(issue=issue, remote=remote, previous=state.links.get(issue.id))
            _sync_pair(
                pair, state, report,
                direction=direction, resolver=resolver, confirm=confirm,
                dry_run=dry_run, repo=repo, root=root,
            )
        except (subprocess.CalledProcessError, ValueError) as e:
            logger.error("Sync failed for %s (GitHub #%s): %s", issue.id, issue.github_number, e)
            report.errors.append(f"{issue.id}: {e}")

    if push_new and _direction_allows(direction, CREATE_GITHUB):
        _push_new(issues, state, report, dry_run=dry_run, repo=repo, root=root)

    if not dry_run:
        state.last_sync = datetime.now(timezone.utc).isoformat()
        state.repo = repo or state.repo
        state.save(state_path)

    return report

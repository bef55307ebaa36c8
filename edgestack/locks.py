"""Advisory locks on Beads issues.

A lock is a convention, not a guarantee: ``locked_by``, ``locked_at`` and
``lock_expires`` are written to the issue's notes metadata block and any
agent may force them away.  An expired lock counts as released.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable

from edgestack.lib.beads import client as beads
from edgestack.lib.beads.models import BeadsIssue

logger = logging.getLogger("locks")

DEFAULT_TTL_MINUTES = 30


class LockHeldError(RuntimeError):
    """Raised when another agent holds a live lock on the issue."""

    def __init__(self, lock: LockInfo) -> None:
        self.lock = lock
        expires = f" until {lock.lock_expires}" if lock.lock_expires else ""
        super().__init__(f"Issue {lock.issue_id} is locked by '{lock.locked_by}'{expires}")


@dataclass
class LockInfo:
    """Lock fields of a single issue."""

    issue_id: str
    locked_by: str
    locked_at: str | None = None
    lock_expires: str | None = None

    @classmethod
    def from_issue(cls, issue: BeadsIssue) -> LockInfo:
        return cls(
            issue_id=issue.id,
            locked_by=issue.locked_by or "",
            locked_at=issue.locked_at,
            lock_expires=issue.lock_expires,
        )


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


def acquire(
    issue_id: str,
    agent: str,
    ttl_minutes: int = DEFAULT_TTL_MINUTES,
    *,
    force: bool = False,
    now: datetime | None = None,
    workspace: str | Path | None = None,
) -> LockInfo:
    """Lock *issue_id* for *agent*.

    Re-acquiring one's own lock refreshes the expiry.

    Raises:
        LockHeldError: If another agent holds a live lock and force is False.
    """
    current = _now(now)
    issue = beads.show_issue(issue_id, workspace=workspace)
    if issue.is_locked(current) and issue.locked_by != agent:
        if not force:
            raise LockHeldError(LockInfo.from_issue(issue))
        logger.warning("Force-taking lock on %s from %s for %s", issue_id, issue.locked_by, agent)

    expires = current + timedelta(minutes=ttl_minutes)
    updated = beads.set_metadata(
        issue_id,
        locked_by=agent,
        locked_at=current.isoformat(),
        lock_expires=expires.isoformat(),
        assigned_agent=agent,
        workspace=workspace,
    )
    logger.info("Locked %s for %s until %s", issue_id, agent, expires.isoformat())
    return LockInfo.from_issue(updated)


def release(
    issue_id: str,
    agent: str | None = None,
    *,
    force: bool = False,
    now: datetime | None = None,
    workspace: str | Path | None = None,
) -> None:
    """Clear the lock on *issue_id*.

    Raises:
        LockHeldError: If the live lock belongs to someone other than
            *agent* and force is False.
    """
    issue = beads.show_issue(issue_id, workspace=workspace)
    if not issue.locked_by:
        return
    if issue.is_locked(_now(now)) and agent != issue.locked_by and not force:
        raise LockHeldError(LockInfo.from_issue(issue))

    beads.set_metadata(
        issue_id,
        locked_by=None,
        locked_at=None,
        lock_expires=None,
        workspace=workspace,
    )
    logger.info("Released lock on %s (held by %s)", issue_id, issue.locked_by)


def inspect(
    issue_id: str,
    *,
    now: datetime | None = None,
    workspace: str | Path | None = None,
) -> LockInfo | None:
    """Return the live lock on *issue_id*, or None."""
    issue = beads.show_issue(issue_id, workspace=workspace)
    if not issue.is_locked(_now(now)):
        return None
    return LockInfo.from_issue(issue)


def expired_locks(issues: Iterable[BeadsIssue], now: datetime | None = None) -> list[LockInfo]:
    """Locks in *issues* that have passed their expiry."""
    current = _now(now)
    return [LockInfo.from_issue(i) for i in issues if i.has_stale_lock(current)]

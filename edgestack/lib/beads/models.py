"""Data models for the Beads CLI client."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from edgestack.lib.beads.metadata import METADATA_KEYS, parse_metadata

CLOSED_STATUSES = frozenset({"closed", "done"})

_GITHUB_REF_PATTERN = re.compile(r"^gh-(\d+)$")


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _dependency_id(dep: dict) -> str:
    return dep.get("depends_on_id") or dep.get("id") or ""


def _dependency_type(dep: dict) -> str:
    return dep.get("dependency_type") or dep.get("type") or "blocks"


def _blocked_by(data: dict) -> list[str]:
    if isinstance(data.get("blocked_by"), list):
        return [str(item) for item in data["blocked_by"]]
    blockers = []
    for dep in data.get("dependencies") or []:
        if not isinstance(dep, dict):
            continue
        if _dependency_type(dep) != "blocks":
            continue
        if dep.get("status") in CLOSED_STATUSES:
            continue
        dep_id = _dependency_id(dep)
        if dep_id:
            blockers.append(dep_id)
    return blockers


def _parent(data: dict) -> str | None:
    if data.get("parent"):
        return data["parent"]
    for dep in data.get("dependencies") or []:
        if isinstance(dep, dict) and _dependency_type(dep) in ("parent-child", "parent"):
            return _dependency_id(dep) or None
    return None


@dataclass
class BeadsIssue:
    """Parsed Beads issue from JSON output."""

    id: str
    title: str
    status: str = "open"
    priority: int = 2
    issue_type: str = "task"
    assignee: str | None = None
    tags: list[str] = field(default_factory=list)
    notes: str | None = None
    description: str | None = None
    external_ref: str | None = None
    blocked_by: list[str] = field(default_factory=list)
    parent: str | None = None
    locked_by: str | None = None
    locked_at: str | None = None
    lock_expires: str | None = None
    github_issue: str | None = None
    github_number: int | None = None
    assigned_agent: str | None = None
    created_at: str = ""
    updated_at: str | None = None
    closed_at: str | None = None

    @classmethod
    def from_json(cls, data: dict) -> BeadsIssue:
        """Create a BeadsIssue from bd JSON output."""
        notes = data.get("notes") or None
        meta: dict[str, Any] = {
            key: data[key] for key in METADATA_KEYS if data.get(key) not in (None, "")
        }
        meta.update(parse_metadata(notes))

        external_ref = data.get("external_ref") or None
        github_number = meta.get("github_number")
        if github_number in (None, "") and external_ref:
            match = _GITHUB_REF_PATTERN.match(external_ref)
            if match:
                github_number = match.group(1)

        return cls(
            id=data.get("id", ""),
            title=data.get("title", ""),
            status=data.get("status", "open"),
            priority=data.get("priority", 2),
            issue_type=data.get("type", data.get("issue_type", "task")),
            assignee=data.get("assignee") or None,
            tags=data.get("labels", data.get("tags")) or [],
            notes=notes,
            description=data.get("description") or None,
            external_ref=external_ref,
            blocked_by=_blocked_by(data),
            parent=_parent(data),
            locked_by=meta.get("locked_by") or None,
            locked_at=meta.get("locked_at") or None,
            lock_expires=meta.get("lock_expires") or None,
            github_issue=meta.get("github_issue") or None,
            github_number=int(github_number) if github_number not in (None, "") else None,
            assigned_agent=meta.get("assigned_agent") or None,
            created_at=data.get("created_at", data.get("created", "")),
            updated_at=data.get("updated_at", data.get("updated")) or None,
            closed_at=data.get("closed_at") or None,
        )

    @property
    def is_closed(self) -> bool:
        return self.status in CLOSED_STATUSES

    @property
    def is_linked(self) -> bool:
        """True when the issue is linked to a GitHub issue."""
        return self.github_number is not None

    def is_locked(self, now: datetime | None = None) -> bool:
        """A lock is held while ``locked_by`` is set and not past ``lock_expires``."""
        if not self.locked_by:
            return False
        expires = parse_timestamp(self.lock_expires)
        if expires is None:
            return True
        return expires > (now or datetime.now(timezone.utc))

    def has_stale_lock(self, now: datetime | None = None) -> bool:
        return bool(self.locked_by) and not self.is_locked(now)

    def is_ready(self, now: datetime | None = None) -> bool:
        """Ready iff open, nothing blocks it, and no live lock is held."""
        return self.status == "open" and not self.blocked_by and not self.is_locked(now)

"""Data models for the GitHub CLI client."""

from __future__ import annotations

from dataclasses import dataclass, field

ISSUE_FIELDS = ("number", "title", "body", "state", "url", "labels", "assignees", "updatedAt", "closedAt")


def _names(items: list | None, key: str) -> list[str]:
    names = []
    for item in items or []:
        if isinstance(item, dict):
            value = item.get(key)
            if value:
                names.append(value)
        elif item:
            names.append(str(item))
    return names


@dataclass
class GitHubIssue:
    """Parsed GitHub issue from ``gh issue view/list --json`` output."""

    number: int
    title: str
    body: str = ""
    state: str = "open"
    url: str = ""
    labels: list[str] = field(default_factory=list)
    assignees: list[str] = field(default_factory=list)
    updated_at: str | None = None
    closed_at: str | None = None

    @classmethod
    def from_json(cls, data: dict) -> GitHubIssue:
        """Create a GitHubIssue from gh JSON output."""
        return cls(
            number=int(data.get("number", 0)),
            title=data.get("title", ""),
            body=data.get("body") or "",
            state=(data.get("state") or "open").lower(),
            url=data.get("url", ""),
            labels=_names(data.get("labels"), "name"),
            assignees=_names(data.get("assignees"), "login"),
            updated_at=data.get("updatedAt") or None,
            closed_at=data.get("closedAt") or None,
        )

    @property
    def is_closed(self) -> bool:
        return self.state == "closed"

"""Beads CLI client library for edge-stack."""

from edgestack.lib.beads.client import (
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
    dependents,
    close_and_unblock,
    sync,
)
from edgestack.lib.beads.models import BeadsIssue

__all__ = [
    "init",
    "create_issue",
    "show_issue",
    "update_issue",
    "close_issue",
    "reopen_issue",
    "comment",
    "set_metadata",
    "list_issues",
    "ready",
    "blocked",
    "search",
    "find_by_github_number",
    "add_dependency",
    "block",
    "remove_dependency",
    "dependents",
    "close_and_unblock",
    "sync",
    "BeadsIssue",
]

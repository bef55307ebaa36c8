"""GitHub CLI client library for edge-stack."""

from edgestack.lib.github.client import (
    check_auth,
    view_issue,
    list_issues,
    create_issue,
    close_issue,
    reopen_issue,
    comment_issue,
    create_pr,
)
from edgestack.lib.github.models import GitHubIssue

__all__ = [
    "check_auth",
    "view_issue",
    "list_issues",
    "create_issue",
    "close_issue",
    "reopen_issue",
    "comment_issue",
    "create_pr",
    "GitHubIssue",
]

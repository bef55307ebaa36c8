"""Import a GitHub issue into Beads as an epic with child tasks (``/es-beads-import``)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from edgestack.breakdown import Breakdown, breakdown
from edgestack.lib.beads import client as beads
from edgestack.lib.beads.metadata import write_metadata
from edgestack.lib.beads.models import BeadsIssue
from edgestack.lib.github import client as github
from edgestack.lib.github.models import GitHubIssue
from edgestack.tracker.workspace import find_workspace_root

logger = logging.getLogger("tracker.importer")

GITHUB_TAG = "github"
IMPORTED_TASK_TAG = "github-import"


def github_ref(number: int) -> str:
    """External reference string for a GitHub issue number."""
    return f"gh-{number}"


@dataclass
class ImportResult:
    """Outcome of importing one GitHub issue."""

    github: GitHubIssue
    plan: Breakdown
    epic: BeadsIssue | None = None
    tasks: list[BeadsIssue] = field(default_factory=list)
    already_imported: bool = False
    resumed: bool = False
    declined: bool = False
    dry_run: bool = False


def _labels(issue: GitHubIssue) -> str:
    return ",".join([GITHUB_TAG, *issue.labels])


def _import_comment(epic: BeadsIssue, tasks: list[BeadsIssue]) -> str:
    lines = [f"Imported into Beads as epic `{epic.id}`."]
    if tasks:
        lines.append("")
        lines.append("Tasks:")
        lines.extend(f"- `{t.id}` {t.title}" for t in tasks)
    return "\n".join(lines)


def _create_tasks(
    plan: Breakdown,
    epic: BeadsIssue,
    existing: dict[str, BeadsIssue],
    priority: int,
    root: Path,
) -> list[BeadsIssue]:
    """Create the planned tasks under *epic* that are not in *existing*.

    *existing* maps lower-cased titles to children already under the epic.
    """
    created: list[BeadsIssue] = []
    previous: BeadsIssue | None = None
    previous_done = True
    for task in plan.tasks:
        child = existing.get(task.title.lower())
        if child is not None:
            previous, previous_done = child, child.is_closed
            continue
        child = beads.create_issue(
            task.title,
            "task",
            priority,
            description=f"Section: {task.section}" if task.section else None,
            labels=IMPORTED_TASK_TAG,
            parent=epic.id,
            workspace=root,
        )
        if task.done:
            beads.close_issue(child.id, "Checked off on GitHub", workspace=root)
            child.status = "closed"
        elif plan.sequential and previous is not None and not previous_done:
            beads.block(child.id, previous.id, workspace=root)
            child.blocked_by = [previous.id]
        created.append(child)
        previous, previous_done = child, task.done
    return created


def import_issue(
    number: int,
    workspace: Path,
    *,
    repo: str | None = None,
    confirm: Callable[[str], bool] | None = None,
    dry_run: bool = False,
    comment: bool = False,
    priority: int = 2,
) -> ImportResult:
    """Import GitHub issue *number* into the Beads workspace.

    A closed GitHub issue is only imported when ``confirm`` approves it.
    When the epic already exists but some planned tasks are missing under
    it (an earlier import stopped partway), only the missing tasks are
    created.

    Raises:
        FileNotFoundError: If *workspace* is not a Beads workspace.
        RuntimeError: If gh or bd is missing.
    """
    root = find_workspace_root(workspace)
    issue = github.view_issue(number, repo=repo, cwd=root)
    plan = breakdown(issue.body)
    result = ImportResult(github=issue, plan=plan, dry_run=dry_run)

    epic = beads.find_by_github_number(number, workspace=root)
    existing: dict[str, BeadsIssue] = {}
    if epic is not None:
        result.epic = epic
        if epic.issue_type == "epic":
            children = beads.list_issues(parent=epic.id, all=True, workspace=root)
            existing = {child.title.lower(): child for child in children}
        if epic.issue_type != "epic" or all(task.title.lower() in existing for task in plan.tasks):
            logger.info("GitHub #%d already imported as %s", number, epic.id)
            result.already_imported = True
            return result
        logger.info("Resuming import of GitHub #%d into %s", number, epic.id)
        result.resumed = True

    if dry_run:
        return result

    if epic is None and issue.is_closed:
        question = f"GitHub issue #{number} is closed. Import it anyway?"
        if confirm is None or not confirm(question):
            logger.info("Skipped closed GitHub issue #%d", number)
            result.declined = True
            return result

    if epic is None:
        notes = write_metadata({"github_issue": issue.url, "github_number": str(number)})
        description = issue.body.strip()
        if issue.url:
            description = f"{description}\n\nImported from {issue.url}".strip()

        epic = beads.create_issue(
            issue.title,
            "epic",
            priority,
            description=description or None,
            labels=_labels(issue),
            notes=notes,
            external_ref=github_ref(number),
            workspace=root,
        )
        result.epic = epic
        logger.info("Created epic %s for GitHub #%d (%d tasks from %s)",
                    epic.id, number, len(plan.tasks), plan.source)

    result.tasks = _create_tasks(plan, epic, existing, priority, root)

    if comment:
        github.comment_issue(number, _import_comment(epic, result.tasks), repo=repo, cwd=root)

    return result

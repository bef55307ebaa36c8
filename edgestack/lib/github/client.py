"""Python wrapper around the GitHub (gh) CLI.

Mirrors the Beads client: every function shells out to ``gh`` and parses
``--json`` output where gh offers it.  ``repo`` selects ``--repo OWNER/NAME``;
``cwd`` lets gh infer the repository from a git checkout instead.
"""

from __future__ import annotations

import json
import logging
import re
import subprocess
from pathlib import Path
from typing import Any

from edgestack.lib.github.models import ISSUE_FIELDS, GitHubIssue

logger = logging.getLogger("lib.github.client")

_ISSUE_URL_PATTERN = re.compile(r"/issues/(\d+)")
_URL_PATTERN = re.compile(r"https://\S+")


def _run_gh(
    *args: str,
    json_fields: tuple[str, ...] | None = None,
    repo: str | None = None,
    cwd: str | Path | None = None,
) -> str | Any:
    """Run a gh CLI command and return output.

    Returns:
        Parsed JSON if json_fields is given, else raw stdout string.

    Raises:
        RuntimeError: If gh is not found on PATH.
        subprocess.CalledProcessError: If gh exits non-zero.
        ValueError: If JSON parsing fails.
    """
    cmd = ["gh", *args]
    if repo:
        cmd.extend(["--repo", repo])
    if json_fields:
        cmd.extend(["--json", ",".join(json_fields)])

    logger.debug("Running: %s", " ".join(cmd))

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            check=True,
            cwd=str(cwd) if cwd else None,
        )
    except FileNotFoundError:
        raise RuntimeError(
            "GitHub CLI (gh) not found on PATH. Install it from https://cli.github.com/"
        ) from None
    except subprocess.CalledProcessError as e:
        logger.error("gh command failed (exit %d): %s\nstderr: %s", e.returncode, " ".join(cmd), e.stderr)
        raise

    stdout = result.stdout.strip()

    if json_fields:
        if not stdout:
            return {}
        try:
            return json.loads(stdout)
        except json.JSONDecodeError as e:
            raise ValueError(f"Failed to parse gh JSON output: {e}\nOutput: {stdout[:500]}") from e

    return stdout


def check_auth(*, cwd: str | Path | None = None) -> bool:
    """Return True when gh is installed and authenticated."""
    try:
        _run_gh("auth", "status", cwd=cwd)
    except (RuntimeError, subprocess.CalledProcessError):
        return False
    return True


# ---------------------------------------------------------------------------
# Issues
# ---------------------------------------------------------------------------


def view_issue(number: int, *, repo: str | None = None, cwd: str | Path | None = None) -> GitHubIssue:
    """Fetch a single issue."""
    data = _run_gh("issue", "view", str(number), json_fields=ISSUE_FIELDS, repo=repo, cwd=cwd)
    if not isinstance(data, dict) or not data:
        raise ValueError(f"Unexpected gh issue view output for #{number}: {type(data)}")
    return GitHubIssue.from_json(data)


def list_issues(
    *,
    state: str = "open",
    labels: list[str] | None = None,
    limit: int = 100,
    repo: str | None = None,
    cwd: str | Path | None = None,
) -> list[GitHubIssue]:
    """List issues filtered by state and labels."""
    args = ["issue", "list", "--state", state, "--limit", str(limit)]
    for label in labels or []:
        args.extend(["--label", label])
    data = _run_gh(*args, json_fields=ISSUE_FIELDS, repo=repo, cwd=cwd)
    if not isinstance(data, list):
        return []
    return [GitHubIssue.from_json(item) for item in data]


def create_issue(
    title: str,
    body: str = "",
    *,
    labels: list[str] | None = None,
    repo: str | None = None,
    cwd: str | Path | None = None,
) -> tuple[int, str]:
    """Create an issue and return ``(number, url)``.

    gh prints the new issue URL; the number is parsed from it.
    """
    args = ["issue", "create", "--title", title, "--body", body]
    for label in labels or []:
        args.extend(["--label", label])
    output = _run_gh(*args, repo=repo, cwd=cwd)

    match = _ISSUE_URL_PATTERN.search(output)
    if not match:
        raise ValueError(f"Could not parse issue number from gh issue create output: {output[:300]}")
    url_match = _URL_PATTERN.search(output)
    url = url_match.group(0) if url_match else ""
    return int(match.group(1)), url


def close_issue(
    number: int,
    comment: str | None = None,
    *,
    repo: str | None = None,
    cwd: str | Path | None = None,
) -> None:
    """Close an issue, optionally leaving a comment."""
    args = ["issue", "close", str(number)]
    if comment:
        args.extend(["--comment", comment])
    _run_gh(*args, repo=repo, cwd=cwd)


def reopen_issue(
    number: int,
    comment: str | None = None,
    *,
    repo: str | None = None,
    cwd: str | Path | None = None,
) -> None:
    """Reopen a closed issue."""
    args = ["issue", "reopen", str(number)]
    if comment:
        args.extend(["--comment", comment])
    _run_gh(*args, repo=repo, cwd=cwd)


def comment_issue(number: int, body: str, *, repo: str | None = None, cwd: str | Path | None = None) -> None:
    """Add a comment to an issue."""
    _run_gh("issue", "comment", str(number), "--body", body, repo=repo, cwd=cwd)


# ---------------------------------------------------------------------------
# Pull requests
# ---------------------------------------------------------------------------


def create_pr(
    title: str,
    body: str,
    *,
    base: str | None = None,
    head: str | None = None,
    draft: bool = False,
    repo: str | None = None,
    cwd: str | Path | None = None,
) -> str:
    """Create a pull request and return its URL."""
    args = ["pr", "create", "--title", title, "--body", body]
    if base:
        args.extend(["--base", base])
    if head:
        args.extend(["--head", head])
    if draft:
        args.append("--draft")
    output = _run_gh(*args, repo=repo, cwd=cwd)
    match = _URL_PATTERN.search(output)
    return match.group(0) if match else output

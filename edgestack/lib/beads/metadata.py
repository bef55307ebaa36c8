"""Metadata block stored at the top of Beads issue notes.

Beads has no free-form key/value fields, so edge-stack keeps lock and
GitHub link information in HTML comment lines that lead the notes::

    <!-- es-locked_by: workers-runtime-guardian -->
    <!-- es-github_number: 42 -->
    Regular notes text.
"""

from __future__ import annotations

import re

_META_PATTERN = re.compile(r"^<!--\s*es-([a-z_]+):\s*(.*?)\s*-->$")

METADATA_KEYS = frozenset({
    "locked_by",
    "locked_at",
    "lock_expires",
    "github_issue",
    "github_number",
    "assigned_agent",
})


def parse_metadata(notes: str | None) -> dict[str, str]:
    """Parse the leading ``<!-- es-key: value -->`` lines of *notes*.

    Parsing stops at the first line that is neither blank nor a metadata
    comment.
    """
    values: dict[str, str] = {}
    if not notes:
        return values
    for line in notes.split("\n"):
        stripped = line.strip()
        if not stripped:
            continue
        match = _META_PATTERN.match(stripped)
        if not match:
            break
        values[match.group(1)] = match.group(2)
    return values


def strip_metadata(notes: str | None) -> str:
    """Return *notes* without the leading metadata block."""
    if not notes:
        return ""
    lines = notes.split("\n")
    body_start = 0
    for i, line in enumerate(lines):
        stripped = line.strip()
        if stripped == "" or _META_PATTERN.match(stripped):
            body_start = i + 1
        else:
            break
    return "\n".join(lines[body_start:])


def write_metadata(values: dict[str, str | None], body: str = "") -> str:
    """Render a metadata block followed by *body*.

    Keys are written in sorted order; ``None`` and empty values are dropped.
    """
    lines = [
        f"<!-- es-{key}: {value} -->"
        for key, value in sorted(values.items())
        if value is not None and str(value) != ""
    ]
    if body:
        lines.append(body)
    return "\n".join(lines)


def merge_metadata(notes: str | None, **updates: str | None) -> str:
    """Apply *updates* to the metadata block of *notes*, keeping the body.

    A ``None`` value removes the key.
    """
    current: dict[str, str | None] = dict(parse_metadata(notes))
    for key, value in updates.items():
        if value is None:
            current.pop(key, None)
        else:
            current[key] = str(value)
    return write_metadata(current, strip_metadata(notes))

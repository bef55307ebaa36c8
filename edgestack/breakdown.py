"""Heuristic task breakdown of free-form GitHub issue bodies.

Tasks are taken from the first pattern family that appears in the body,
in order of preference: checkbox lines, numbered lists, section headers.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

MAX_TITLE_LENGTH = 120

_FENCE_PATTERN = re.compile(r"^\s*(```|~~~)")
_CHECKBOX_PATTERN = re.compile(r"^\s*[-*+]\s+\[([ xX])\]\s+(.+)$")
_NUMBERED_PATTERN = re.compile(r"^\s*\d+[.)]\s+(.+)$")
_HEADER_PATTERN = re.compile(r"^\s*(#{1,6})\s+(.+?)\s*#*\s*$")

# Headers that describe the issue rather than a piece of work.
BOILERPLATE_HEADERS = frozenset({
    "description",
    "overview",
    "summary",
    "background",
    "context",
    "notes",
    "references",
    "acceptance criteria",
})

SOURCE_CHECKBOXES = "checkboxes"
SOURCE_NUMBERED = "numbered"
SOURCE_HEADERS = "headers"
SOURCE_NONE = "none"


@dataclass
class Task:
    """A unit of work extracted from an issue body."""

    title: str
    done: bool = False
    section: str | None = None
    order: int = 0


@dataclass
class Breakdown:
    """Tasks plus the pattern family they came from."""

    tasks: list[Task] = field(default_factory=list)
    source: str = SOURCE_NONE

    @property
    def sequential(self) -> bool:
        """Numbered steps imply each one blocks the next."""
        return self.source == SOURCE_NUMBERED


def _clean_title(text: str) -> str:
    title = " ".join(text.split()).rstrip(":").strip()
    if len(title) > MAX_TITLE_LENGTH:
        title = title[: MAX_TITLE_LENGTH - 3].rstrip() + "..."
    return title


def _content_lines(body: str) -> list[str]:
    """Lines of *body* outside fenced code blocks."""
    lines = []
    in_fence = False
    for line in body.splitlines():
        if _FENCE_PATTERN.match(line):
            in_fence = not in_fence
            continue
        if not in_fence:
            lines.append(line)
    return lines


def _collect(lines: list[str], source: str) -> list[Task]:
    tasks: list[Task] = []
    seen: set[str] = set()
    section: str | None = None

    for line in lines:
        header = _HEADER_PATTERN.match(line)
        if header:
            level = len(header.group(1))
            text = _clean_title(header.group(2))
            if source == SOURCE_HEADERS and level in (2, 3) and text.lower() not in BOILERPLATE_HEADERS:
                _append(tasks, seen, Task(title=text, section=section))
            section = text
            continue

        if source == SOURCE_CHECKBOXES:
            match = _CHECKBOX_PATTERN.match(line)
            if match:
                _append(tasks, seen, Task(
                    title=_clean_title(match.group(2)),
                    done=match.group(1) in "xX",
                    section=section,
                ))
        elif source == SOURCE_NUMBERED:
            match = _NUMBERED_PATTERN.match(line)
            if match:
                _append(tasks, seen, Task(title=_clean_title(match.group(1)), section=section))

    for i, task in enumerate(tasks):
        task.order = i
    return tasks


def _append(tasks: list[Task], seen: set[str], task: Task) -> None:
    key = task.title.lower()
    if not task.title or key in seen:
        return
    seen.add(key)
    tasks.append(task)


def breakdown(body: str | None) -> Breakdown:
    """Extract tasks from an issue body."""
    if not body or not body.strip():
        return Breakdown()

    lines = _content_lines(body)
    for source in (SOURCE_CHECKBOXES, SOURCE_NUMBERED, SOURCE_HEADERS):
        tasks = _collect(lines, source)
        if tasks:
            return Breakdown(tasks=tasks, source=source)
    return Breakdown()


def extract_tasks(body: str | None) -> list[Task]:
    """Shortcut for ``breakdown(body).tasks``."""
    return breakdown(body).tasks

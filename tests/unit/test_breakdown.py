"""Tests for the issue-body task breakdown heuristics."""

from __future__ import annotations

from edgestack.breakdown import (
    MAX_TITLE_LENGTH,
    SOURCE_CHECKBOXES,
    SOURCE_HEADERS,
    SOURCE_NONE,
    SOURCE_NUMBERED,
    breakdown,
    extract_tasks,
)


class TestCheckboxes:
    def test_checked_and_unchecked(self):
        body = (
            "We need sessions in a Durable Object.\n"
            "\n"
            "- [ ] Create SessionStore class\n"
            "- [x] Add binding to wrangler.toml\n"
            "* [X] Remove KV namespace\n"
        )
        result = breakdown(body)
        assert result.source == SOURCE_CHECKBOXES
        assert [t.title for t in result.tasks] == [
            "Create SessionStore class",
            "Add binding to wrangler.toml",
            "Remove KV namespace",
        ]
        assert [t.done for t in result.tasks] == [False, True, True]
        assert [t.order for t in result.tasks] == [0, 1, 2]
        assert not result.sequential

    def test_checkboxes_win_over_numbered(self):
        body = "1. Step one\n2. Step two\n- [ ] Real task\n"
        assert [t.title for t in extract_tasks(body)] == ["Real task"]

    def test_section_is_nearest_header(self):
        body = "## Storage\n- [ ] Create bucket\n## API\n- [ ] Add route\n"
        tasks = extract_tasks(body)
        assert [(t.title, t.section) for t in tasks] == [
            ("Create bucket", "Storage"),
            ("Add route", "API"),
        ]


class TestNumbered:
    def test_numbered_is_sequential(self):
        body = "Steps:\n1. Write migration\n2) Apply migration\n3. Deploy\n"
        result = breakdown(body)
        assert result.source == SOURCE_NUMBERED
        assert result.sequential
        assert [t.title for t in result.tasks] == ["Write migration", "Apply migration", "Deploy"]


class TestHeaders:
    def test_headers_skip_boilerplate(self):
        body = (
            "# Epic title\n"
            "## Overview\n"
            "Some text.\n"
            "## Add D1 schema\n"
            "### Seed data\n"
            "#### Too deep\n"
            "## Acceptance Criteria\n"
        )
        result = breakdown(body)
        assert result.source == SOURCE_HEADERS
        assert [t.title for t in result.tasks] == ["Add D1 schema", "Seed data"]


class TestCleanup:
    def test_code_fences_ignored(self):
        body = "```md\n- [ ] not a task\n```\n- [ ] real task\n"
        assert [t.title for t in extract_tasks(body)] == ["real task"]

    def test_tilde_fences_ignored(self):
        body = "~~~\n1. inside\n~~~\n"
        assert breakdown(body).source == SOURCE_NONE

    def test_duplicates_removed_case_insensitively(self):
        body = "- [ ] Add cache\n- [ ] add   CACHE\n"
        assert len(extract_tasks(body)) == 1

    def test_whitespace_and_colon(self):
        body = "- [ ]   Configure   routes:  \n"
        assert extract_tasks(body)[0].title == "Configure routes"

    def test_long_titles_truncated(self):
        body = "- [ ] " + "x" * 300 + "\n"
        title = extract_tasks(body)[0].title
        assert len(title) == MAX_TITLE_LENGTH
        assert title.endswith("...")

    def test_empty_body(self):
        assert breakdown(None).tasks == []
        assert breakdown("   ").source == SOURCE_NONE

    def test_prose_only(self):
        assert breakdown("Just a paragraph about Workers.").source == SOURCE_NONE


class TestHeaderSections:
    def test_section_is_preceding_header(self):
        body = "# Session storage\n## Add D1 schema\n### Seed data\n"
        tasks = extract_tasks(body)
        assert [(t.title, t.section) for t in tasks] == [
            ("Add D1 schema", "Session storage"),
            ("Seed data", "Add D1 schema"),
        ]

    def test_first_header_has_no_section(self):
        assert extract_tasks("## Add D1 schema\n")[0].section is None


    def test_motivation_header_is_a_task(self):
        tasks = extract_tasks("## Motivation\n## Problem\n## Background\n")
        assert [t.title for t in tasks] == ["Motivation", "Problem"]

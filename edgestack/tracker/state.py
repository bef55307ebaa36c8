"""Pydantic models for the GitHub sync state file."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger("tracker.state")


class SyncLink(BaseModel):
    """State of one Beads/GitHub pair after the last successful sync."""

    github_number: int
    beads_status: str
    github_state: str
    synced_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class SyncState(BaseModel):
    """Contents of ``.beads/github-sync.json``."""

    last_sync: str | None = None
    repo: str | None = None
    links: dict[str, SyncLink] = {}

    @classmethod
    def load(cls, path: Path) -> SyncState:
        """Read the state file; a missing or corrupt file yields an empty state."""
        if not path.is_file():
            return cls()
        try:
            return cls.model_validate_json(path.read_text(encoding="utf-8"))
        except ValueError as e:
            logger.warning("Ignoring unreadable sync state %s: %s", path, e)
            return cls()

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.model_dump(), indent=2) + "\n", encoding="utf-8")

    def record(self, beads_id: str, github_number: int, beads_status: str, github_state: str) -> None:
        self.links[beads_id] = SyncLink(
            github_number=github_number,
            beads_status=beads_status,
            github_state=github_state,
        )

"""Beads workspace detection and initialisation (``/es-beads-init``)."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from edgestack.lib.beads import client as beads
from edgestack.lib.github import client as github
from edgestack.tracker.state import SyncState

logger = logging.getLogger("tracker.workspace")

BEADS_DIR = ".beads"
DEFAULT_STATE_FILE = "github-sync.json"
MAX_PARENT_SEARCH = 10


def find_workspace_root(start: Path | None = None) -> Path:
    """Walk up from start (default: cwd) until a .beads/ directory is found.

    Raises:
        FileNotFoundError: If .beads/ is not found within MAX_PARENT_SEARCH levels.
    """
    current = (start or Path.cwd()).resolve()

    for _ in range(MAX_PARENT_SEARCH):
        if (current / BEADS_DIR).is_dir():
            return current
        parent = current.parent
        if parent == current:
            break
        current = parent

    raise FileNotFoundError(
        f"Not in a Beads workspace: {BEADS_DIR}/ not found within "
        f"{MAX_PARENT_SEARCH} parent directories of {start or Path.cwd()}. "
        "Run 'es beads init' first."
    )


def sync_state_path(root: Path, state_file: Path | None = None) -> Path:
    """Location of the GitHub sync state file for the workspace at *root*.

    A relative *state_file* is taken relative to *root*.
    """
    if state_file is None:
        return root / BEADS_DIR / DEFAULT_STATE_FILE
    return state_file if state_file.is_absolute() else root / state_file


@dataclass
class InitResult:
    """Outcome of initialising a workspace."""

    root: Path
    prefix: str
    state_file: Path
    gh_available: bool
    gh_authenticated: bool


def init_workspace(root: Path, prefix: str, *, force: bool = False, state_file: Path | None = None) -> InitResult:
    """Create a Beads database in *root* and an empty sync state.

    Raises:
        RuntimeError: If bd is not on PATH.
        FileExistsError: If .beads/ already exists and force is False.
    """
    if shutil.which("bd") is None:
        raise RuntimeError(
            "Beads CLI (bd) not found on PATH. "
            "Install Beads: https://github.com/steveyegge/beads"
        )
    if (root / BEADS_DIR).exists() and not force:
        raise FileExistsError(f"{root / BEADS_DIR} already exists (use --force to re-initialise)")

    beads.init(prefix, workspace=root)
    state_path = sync_state_path(root, state_file)
    if not state_path.exists():
        SyncState().save(state_path)

    gh_available = shutil.which("gh") is not None
    gh_authenticated = gh_available and github.check_auth(cwd=root)
    if not gh_authenticated:
        logger.warning("gh is %s; GitHub import and sync will be unavailable",
                       "not authenticated" if gh_available else "not installed")

    logger.info("Initialised Beads workspace at %s (prefix %s)", root, prefix)
    return InitResult(
        root=root,
        prefix=prefix,
        state_file=state_path,
        gh_available=gh_available,
        gh_authenticated=gh_authenticated,
    )

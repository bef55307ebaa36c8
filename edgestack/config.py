"""edge-stack configuration -- layered: CLI flags > env vars > workspace .env > defaults."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import dotenv_values

logger = logging.getLogger("config")

ENV_FILE = ".env"


def _load_workspace_env(start: Path | None = None) -> dict[str, str]:
    """Read the nearest ``.env`` file walking up from *start* (default: cwd).

    The values are NOT injected into ``os.environ`` -- callers decide which
    keys to honour.  The walk stops at the first directory that holds
    ``.git/`` or ``.beads/``.
    """
    cwd = (start or Path.cwd()).resolve()
    for parent in [cwd, *cwd.parents]:
        env_file = parent / ENV_FILE
        if env_file.is_file():
            pairs = {k: v for k, v in dotenv_values(env_file).items() if v is not None}
            logger.debug("Loaded %d vars from %s", len(pairs), env_file)
            return pairs
        if (parent / ".git").exists() or (parent / ".beads").exists():
            break
    return {}


# Module-level cache so the file is read at most once per process.
_workspace_env: dict[str, str] | None = None


def _get_workspace_env() -> dict[str, str]:
    global _workspace_env
    if _workspace_env is None:
        _workspace_env = _load_workspace_env()
    return _workspace_env


def _env(key: str, *fallback_keys: str, default: str = "") -> str:
    """Look up a config value: ES_* env var > .env keys > default."""
    val = os.environ.get(key)
    if val:
        return val
    dotenv = _get_workspace_env()
    for candidate in (key, *fallback_keys):
        val = dotenv.get(candidate)
        if val:
            return val
    return default


@dataclass
class EdgeStackConfig:
    """Configuration for the es command and the tracker workflows."""

    # Paths
    workspace: str = field(default_factory=lambda: _env("ES_WORKSPACE", default=os.getcwd()))
    plugin_root: str = field(default_factory=lambda: _env("ES_PLUGIN_ROOT", "CLAUDE_PLUGIN_ROOT"))
    # Empty means .beads/github-sync.json under the Beads workspace root.
    sync_state_file: str = field(default_factory=lambda: _env("ES_SYNC_STATE_FILE"))

    # GitHub / Beads
    github_repo: str = field(default_factory=lambda: _env("ES_GITHUB_REPO", "GH_REPO"))
    beads_prefix: str = field(default_factory=lambda: _env("ES_BEADS_PREFIX", default="es"))

    # Locks
    lock_ttl_minutes: int = field(
        default_factory=lambda: int(_env("ES_LOCK_TTL_MINUTES", default="30"))
    )

    # Logging
    log_level: str = field(default_factory=lambda: _env("ES_LOG_LEVEL", default="WARNING"))
    log_format: str = field(default_factory=lambda: _env("ES_LOG_FORMAT", default="text"))
    log_file: str | None = field(default_factory=lambda: os.environ.get("ES_LOG_FILE"))

    @property
    def workspace_path(self) -> Path:
        return Path(self.workspace)

    @property
    def sync_state_path(self) -> Path | None:
        """Configured sync state file, or None for the default location.

        A relative path is resolved against the Beads workspace root by the
        tracker, not against the current directory.
        """
        return Path(self.sync_state_file).expanduser() if self.sync_state_file else None


def load_config(workspace: str | None = None) -> EdgeStackConfig:
    """Build a config whose .env lookup starts at *workspace*.

    Without *workspace* the lookup starts at ES_WORKSPACE or the cwd.
    """
    global _workspace_env
    start = Path(workspace or os.environ.get("ES_WORKSPACE") or os.getcwd()).expanduser()
    _workspace_env = _load_workspace_env(start)
    config = EdgeStackConfig()
    if workspace:
        config.workspace = workspace
    return config


def reset_config() -> None:
    """Forget the cached .env values (for testing)."""
    global _workspace_env
    _workspace_env = None

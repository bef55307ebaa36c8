"""Delegation of the review/work/validate/worker commands to ``bin/*.sh`` scripts.

The scripts themselves belong to the plugin installation, not to this
package; this module only locates and runs them.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path

logger = logging.getLogger("scripts")

SCRIPTS = {
    "review": "es-review.sh",
    "work": "es-work.sh",
    "validate": "es-validate.sh",
    "worker": "es-worker.sh",
}

PREREQUISITES = ("gh", "bd", "wrangler", "jq")

BIN_DIR = "bin"
MAX_PARENT_SEARCH = 10


def find_plugin_root(plugin_root: str | Path | None = None, start: Path | None = None) -> Path | None:
    """Resolve the plugin root: explicit value, else nearest parent holding bin/."""
    if plugin_root:
        return Path(plugin_root)
    current = (start or Path.cwd()).resolve()
    for _ in range(MAX_PARENT_SEARCH):
        if (current / BIN_DIR).is_dir():
            return current
        if current.parent == current:
            break
        current = current.parent
    return None


def script_path(name: str, plugin_root: str | Path | None = None) -> Path:
    """Path of the script backing command *name*.

    Raises:
        KeyError: If *name* is not a delegated command.
        FileNotFoundError: If the script does not exist.
    """
    if name not in SCRIPTS:
        raise KeyError(f"Unknown command '{name}'. Valid: {sorted(SCRIPTS)}")

    root = find_plugin_root(plugin_root)
    if root is None:
        raise FileNotFoundError(
            f"Cannot locate {BIN_DIR}/{SCRIPTS[name]}: set ES_PLUGIN_ROOT to the plugin directory"
        )
    path = root / BIN_DIR / SCRIPTS[name]
    if not path.is_file():
        raise FileNotFoundError(f"Script not found: {path}")
    return path


def run_script(
    name: str,
    args: list[str] | tuple[str, ...] = (),
    *,
    plugin_root: str | Path | None = None,
    cwd: str | Path | None = None,
) -> int:
    """Run the script for command *name* with *args* and return its exit code.

    Output is not captured; it streams to the terminal.
    """
    path = script_path(name, plugin_root)
    cmd = ["bash", str(path), *args]
    env = {**os.environ, "ES_PLUGIN_ROOT": str(path.parent.parent)}
    logger.debug("Running: %s", " ".join(cmd))
    try:
        result = subprocess.run(cmd, cwd=str(cwd) if cwd else None, env=env, check=False)
    except FileNotFoundError:
        raise RuntimeError("bash not found on PATH") from None
    if result.returncode != 0:
        logger.warning("%s exited with status %d", path.name, result.returncode)
    return result.returncode


def check_prerequisites(tools: tuple[str, ...] = PREREQUISITES) -> dict[str, bool]:
    """Map each tool name to whether it is on PATH."""
    return {tool: shutil.which(tool) is not None for tool in tools}

"""Beads <-> GitHub tracker workflows behind the ``es beads`` commands."""

from edgestack.tracker.importer import ImportResult, import_issue
from edgestack.tracker.state import SyncLink, SyncState
from edgestack.tracker.status import StatusReport, collect_status
from edgestack.tracker.sync import SyncAction, SyncConflict, SyncReport, sync_issues
from edgestack.tracker.workspace import InitResult, find_workspace_root, init_workspace

__all__ = [
    "ImportResult",
    "import_issue",
    "SyncLink",
    "SyncState",
    "StatusReport",
    "collect_status",
    "SyncAction",
    "SyncConflict",
    "SyncReport",
    "sync_issues",
    "InitResult",
    "find_workspace_root",
    "init_workspace",
]

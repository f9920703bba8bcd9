"""reminders.py - Throttled, non-blocking session reminders.

Reminders ride along with a decision as notes. They never change the
verdict, and each one fires at most once per interval no matter how many
hook processes run in between.
"""

import fnmatch
import logging
from pathlib import PurePosixPath

from .config import get_setting
from .state import CLEANUP_TASK, SessionStore
from .types import Invocation

logger = logging.getLogger(__name__)

CHANGE_FREQUENCY_TASK = "change-frequency"

JUNK_PATTERNS = (
    "*_improved.*",
    "*_enhanced.*",
    "*_v2.*",
    "*_backup.*",
    "*.tmp",
    "*.log",
    ".DS_Store",
)

MINUTE_MS = 60 * 1000


def is_junk(path: str) -> bool:
    name = PurePosixPath(path.replace("\\", "/")).name
    return any(fnmatch.fnmatch(name, pattern) for pattern in JUNK_PATTERNS)


def _on_disk(store: SessionStore, path: str) -> bool:
    # Blocked writes are recorded too, but never created the file
    if store.project_root is None:
        return True
    return (store.project_root / path).exists()


def cleanup_reminder(store: SessionStore, interval_ms: int, window_ms: int):
    """Cleanup note, at most once per interval. None when throttled."""
    if not store.should_run_periodic_task(CLEANUP_TASK, interval_ms):
        return None
    junk = [p for p in store.recent_changes(window_ms) if is_junk(p) and _on_disk(store, p)]
    if junk:
        listed = ", ".join(junk[:5])
        more = f" (+{len(junk) - 5} more)" if len(junk) > 5 else ""
        return f"Leftover files from this session look like junk: {listed}{more}. Delete them or fold them into the originals."
    return "Periodic cleanup: remove temporary files and empty directories before committing."


def change_frequency_reminder(store: SessionStore, window_ms: int, max_files: int, interval_ms: int):
    """Note when too many distinct files changed recently. None otherwise."""
    recent = store.recent_changes(window_ms)
    if len(recent) <= max_files:
        return None
    if not store.should_run_periodic_task(CHANGE_FREQUENCY_TASK, interval_ms):
        return None
    minutes = window_ms // MINUTE_MS
    return (
        f"{len(recent)} files changed in the last {minutes} minutes. "
        "Consider splitting this work into smaller, reviewable changes."
    )


def collect_reminders(store: SessionStore, invocation: Invocation, config: dict) -> list[str]:
    """All reminders due for this invocation, in a stable order.

    Args:
        store: Session state store
        invocation: The invocation being evaluated (already recorded)
        config: Merged configuration

    Returns:
        Reminder lines, possibly empty
    """
    interval_ms = get_setting(config, "session", "cleanup_interval_minutes") * MINUTE_MS
    window_ms = get_setting(config, "session", "recent_window_minutes") * MINUTE_MS
    max_files = get_setting(config, "session", "max_recent_files")

    notes = []
    for note in (
        cleanup_reminder(store, interval_ms, window_ms),
        change_frequency_reminder(store, window_ms, max_files, interval_ms),
    ):
        if note:
            notes.append(note)
    if notes:
        logger.debug("%d reminder(s) for %s", len(notes), invocation.target_path)
    return notes

"""state.py - Best-effort session state shared by hook processes.

Every hook run is a fresh process, so anything a hook wants to remember
between runs (recently changed files, when a periodic reminder last fired)
lives in one small JSON file under the project's .warden directory.

The file is advisory. It is read whole, modified and rewritten whole with
no locking, so concurrent hooks may lose each other's updates. A missing or
corrupt file reads as an empty state.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from .config import PROJECT_DIR_NAME, get_project_root
from .path_utils import atomic_write

logger = logging.getLogger(__name__)

STATE_FILE_NAME = "state.json"
CLEANUP_TASK = "cleanup"
DEFAULT_MAX_TRACKED = 100

_KNOWN_KEYS = ("changedFiles", "lastCleanupMs", "periodicTasks")


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class ChangedFile:
    path: str
    timestamp_ms: int

    def to_dict(self) -> dict:
        return {"path": self.path, "timestampMs": self.timestamp_ms}


@dataclass
class SessionState:
    changed_files: list[ChangedFile] = field(default_factory=list)
    last_cleanup_ms: int = 0
    periodic_tasks: dict[str, int] = field(default_factory=dict)
    # Keys written by other tools are carried through untouched
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "SessionState":
        changed = []
        for entry in data.get("changedFiles") or []:
            if not isinstance(entry, dict):
                continue
            path = entry.get("path")
            # Older state files wrote "timestamp"
            stamp = entry.get("timestampMs", entry.get("timestamp"))
            if isinstance(path, str) and isinstance(stamp, (int, float)):
                changed.append(ChangedFile(path, int(stamp)))

        tasks = data.get("periodicTasks") or {}
        periodic = {
            str(k): int(v) for k, v in tasks.items()
            if isinstance(v, (int, float)) and not isinstance(v, bool)
        } if isinstance(tasks, dict) else {}

        last_cleanup = data.get("lastCleanupMs")
        if not isinstance(last_cleanup, (int, float)) or isinstance(last_cleanup, bool):
            last_cleanup = 0

        return cls(
            changed_files=changed,
            last_cleanup_ms=int(last_cleanup),
            periodic_tasks=periodic,
            extra={k: v for k, v in data.items() if k not in _KNOWN_KEYS},
        )

    def to_dict(self) -> dict:
        data = dict(self.extra)
        data.update({
            "changedFiles": [c.to_dict() for c in self.changed_files],
            "lastCleanupMs": self.last_cleanup_ms,
            "periodicTasks": dict(self.periodic_tasks),
        })
        return data


class SessionStore:
    """Read and write the session state file.

    Args:
        project_root: Project whose .warden/state.json is used; recorded
            paths are relative to it
        state_file: Explicit state file path (overrides project_root)
        clock: Returns the current time in milliseconds
        max_tracked: Changed-file entries kept, most recent first
    """

    def __init__(
        self,
        project_root: Optional[Path] = None,
        state_file: Optional[Path] = None,
        clock: Optional[Callable[[], int]] = None,
        max_tracked: int = DEFAULT_MAX_TRACKED,
    ):
        self.project_root = Path(project_root) if project_root else None
        if state_file is None:
            self.project_root = self.project_root or get_project_root()
            state_file = self.project_root / PROJECT_DIR_NAME / STATE_FILE_NAME
        self.path = Path(state_file)
        self.clock = clock or now_ms
        self.max_tracked = max_tracked

    def load(self) -> SessionState:
        """Current state; empty if the file is missing or unreadable."""
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return SessionState()
        except (OSError, ValueError) as e:
            logger.debug("Ignoring unreadable state file %s: %s", self.path, e)
            return SessionState()
        if not isinstance(data, dict):
            return SessionState()
        return SessionState.from_dict(data)

    def save(self, state: SessionState) -> None:
        with atomic_write(self.path) as f:
            json.dump(state.to_dict(), f, indent=2)

    def reset(self) -> SessionState:
        """Replace the state file with an empty state."""
        state = SessionState()
        self.save(state)
        return state

    def record_change(self, path: str) -> SessionState:
        """Move (or insert) path to the front of the changed-file list."""
        state = self.load()
        stamp = self.clock()
        others = [c for c in state.changed_files if c.path != path]
        state.changed_files = [ChangedFile(path, stamp)] + others[:self.max_tracked - 1]
        self.save(state)
        return state

    def should_run_periodic_task(self, key: str, interval_ms: int) -> bool:
        """True at most once per interval for a given key.

        A True answer is persisted immediately, so the next caller inside
        the interval sees False. The cleanup task also updates
        lastCleanupMs.
        """
        state = self.load()
        current = self.clock()
        last_run = state.periodic_tasks.get(key)
        if key == CLEANUP_TASK and last_run is None and state.last_cleanup_ms:
            last_run = state.last_cleanup_ms

        if last_run is not None and current - last_run < interval_ms:
            return False

        state.periodic_tasks[key] = current
        if key == CLEANUP_TASK:
            state.last_cleanup_ms = current
        self.save(state)
        return True

    def recent_changes(self, window_ms: int) -> list[str]:
        """Distinct paths changed within the window, most recent first."""
        cutoff = self.clock() - window_ms
        seen = []
        for entry in sorted(self.load().changed_files, key=lambda c: c.timestamp_ms, reverse=True):
            if entry.timestamp_ms < cutoff:
                break
            if entry.path not in seen:
                seen.append(entry.path)
        return seen

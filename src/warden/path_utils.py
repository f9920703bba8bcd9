"""Path utilities for the session state file.

atomic_write: whole-file rewrite via tmp + os.replace. Readers see either
the old file or the new one, never a torn write. There is no lock, so two
hooks saving at once can lose one update; the state is advisory.
"""

import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Union


@contextmanager
def atomic_write(filepath: Path, mode: str = "w"):
    """Write to a file atomically using tmp + os.replace pattern.

    Usage:
        with atomic_write(Path(".warden/state.json")) as f:
            f.write("{}")
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(
        dir=filepath.parent,
        prefix=f".{filepath.name}.",
        suffix=".tmp",
    )
    try:
        with os.fdopen(fd, mode) as f:
            yield f
        os.replace(tmp_path, filepath)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def relative_to_root(path: str, project_root: Optional[Union[str, Path]]) -> str:
    """Make an absolute path project-relative when it lies inside the root.

    Paths outside the root, and relative paths, come back unchanged apart
    from separators being normalized to '/'.
    """
    normalized = path.replace("\\", "/")
    if project_root is None or not os.path.isabs(path):
        return normalized
    try:
        relative = Path(path).resolve().relative_to(Path(project_root).resolve())
    except (ValueError, OSError):
        return normalized
    return relative.as_posix()

"""evaluator.py - Run one invocation against a set of pattern categories.

The evaluator is pure: no I/O, no state. It decides which parts of an
invocation each category sees and keeps one broken category from taking
the others down with it.
"""

import logging
import re
from collections.abc import Iterable
from pathlib import Path
from typing import Optional

from .patterns import PatternLibrary
from .path_utils import relative_to_root
from .types import Detection, Invocation, OperationKind

logger = logging.getLogger(__name__)

# Generated, vendored or tool-owned directories never evaluated
SKIP_DIRS = frozenset({
    "node_modules", ".git", "dist", "build", "coverage", ".next",
    "__pycache__", ".venv", "venv",
})

# Non-code files never evaluated
SKIP_EXTENSIONS = frozenset({
    ".png", ".jpg", ".jpeg", ".gif", ".webp", ".ico", ".bmp", ".svg",
    ".woff", ".woff2", ".ttf", ".otf", ".eot",
    ".zip", ".tar", ".gz", ".tgz", ".bz2", ".7z",
    ".pdf", ".mp3", ".mp4", ".mov",
    ".map", ".log",
})

SKIP_FILENAMES = frozenset({
    "package-lock.json", "yarn.lock", "pnpm-lock.yaml", "poetry.lock",
    "Cargo.lock", "Gemfile.lock", "composer.lock",
})


def is_skipped_path(path: Optional[str]) -> bool:
    """True for paths in generated directories or of non-code file types."""
    if not path:
        return False
    parts = [p for p in re.split(r"[\\/]", path) if p]
    if not parts:
        return False
    if any(part in SKIP_DIRS for part in parts[:-1]):
        return True
    name = parts[-1]
    if name in SKIP_FILENAMES:
        return True
    return Path(name).suffix.lower() in SKIP_EXTENSIONS


class RuleEvaluator:
    """Apply a pattern library (or a slice of it) to invocations.

    Args:
        library: Compiled pattern library
        categories: Category names to run, in order (None runs all)
        project_root: Absolute paths under this root are made relative
        development_mode: Drop the rules guarding warden's own source
    """

    def __init__(
        self,
        library: PatternLibrary,
        categories: Optional[Iterable[str]] = None,
        *,
        project_root: Optional[Path] = None,
        development_mode: bool = False,
    ):
        library = library.subset(categories)
        if development_mode:
            library = library.for_development()
        self.library = library
        self.project_root = project_root
        self.development_mode = development_mode

    @property
    def category_names(self) -> list[str]:
        return list(self.library)

    def _paths(self, paths) -> list[str]:
        return [relative_to_root(p, self.project_root) for p in paths if not is_skipped_path(p)]

    def evaluate(self, invocation: Invocation) -> list[Detection]:
        """Detections for one invocation, in category then rule order."""
        if not invocation.is_evaluable:
            return []

        path = invocation.target_path
        if path and is_skipped_path(path):
            if invocation.operation_kind != OperationKind.RUN_COMMAND:
                logger.debug("Skipping %s", path)
                return []
            # A command is still checked; only its skip-listed paths drop out
            path = None

        written = self._paths(invocation.written_paths)
        deleted = self._paths(invocation.delete_targets)
        if path:
            path, extra = written[0], written[1:]
        else:
            extra = written

        text = invocation.text
        detections: list[Detection] = []
        for category in self.library.values():
            try:
                found = category.detect(
                    text,
                    path,
                    intent=invocation.intent_text,
                    command=invocation.command_line,
                    extra_paths=extra,
                    deleted_paths=deleted,
                )
            except Exception as e:
                logger.warning("Category %s failed: %s", category.name, e)
                continue
            if found:
                logger.debug("%s: %d detection(s)", category.name, len(found))
            detections.extend(found)
        return detections

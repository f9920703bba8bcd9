"""Shared enforcement types.

Defines the contract between the normalizer (what is being attempted),
the pattern library (what a rule looks like and what it found) and the
formatter (what the hook answers). Every other module imports from here.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Tools:
    """Canonical host tool names."""
    EDIT = "Edit"
    WRITE = "Write"
    MULTI_EDIT = "MultiEdit"
    BASH = "Bash"


# Tools that modify files (used when wiring hooks into host settings)
FILE_MODIFY_TOOLS = {Tools.EDIT, Tools.WRITE, Tools.MULTI_EDIT}


class OperationKind(str, Enum):
    CREATE_FILE = "create-file"
    EDIT_FILE = "edit-file"
    MULTI_EDIT_FILE = "multi-edit-file"
    RUN_COMMAND = "run-command"


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.LOW: 1, Severity.MEDIUM: 2, Severity.HIGH: 3}


class Verdict(str, Enum):
    ALLOW = "allow"
    WARN = "warn"
    BLOCK = "block"


class RuleTarget(str, Enum):
    """Which part of an invocation a rule is matched against."""
    CONTENT = "content"
    PATH = "path"
    INTENT = "intent"
    COMMAND = "command"


@dataclass(frozen=True)
class Invocation:
    """One proposed operation submitted for review."""
    operation_kind: Optional[OperationKind] = None
    target_path: Optional[str] = None
    content: Optional[str] = None
    before_text: Optional[str] = None
    after_text: Optional[str] = None
    command_line: Optional[str] = None
    intent_text: Optional[str] = None
    tool_name: Optional[str] = None
    # Shell commands: every path written, and every path removed or moved away
    write_targets: tuple[str, ...] = ()
    delete_targets: tuple[str, ...] = ()

    @property
    def written_paths(self) -> tuple[str, ...]:
        """Target path first, then any other path a command writes."""
        paths = [self.target_path] if self.target_path else []
        paths.extend(p for p in self.write_targets if p not in paths)
        return tuple(paths)

    @property
    def text(self) -> Optional[str]:
        """Text that content rules scan.

        Edits only expose the proposed replacement; the existing text
        being replaced is never re-flagged.
        """
        if self.operation_kind == OperationKind.CREATE_FILE:
            return self.content
        if self.operation_kind in (OperationKind.EDIT_FILE, OperationKind.MULTI_EDIT_FILE):
            return self.after_text
        if self.operation_kind == OperationKind.RUN_COMMAND:
            return self.command_line
        return None

    @property
    def is_evaluable(self) -> bool:
        if self.operation_kind is None:
            return False
        return bool(self.target_path or self.text)


UNEVALUABLE = Invocation()


@dataclass(frozen=True)
class PatternRule:
    """A single regex-based detector.

    `patterns` are tried in order and the first one that matches wins.
    A match is discarded when any `unless` pattern matches the line it
    was found on.

    Path rules see written paths only, unless `include_deletes` is set.
    Rules marked `development_exempt` are dropped in development mode.
    """
    id: str
    category: str
    patterns: tuple[re.Pattern, ...]
    severity: Severity
    message: str
    suggestion: str
    target: RuleTarget = RuleTarget.CONTENT
    unless: tuple[re.Pattern, ...] = ()
    include_deletes: bool = False
    development_exempt: bool = False


@dataclass(frozen=True)
class Detection:
    """The result of one rule matching one invocation."""
    category: str
    severity: Severity
    matched_text: str
    message: str
    suggestion: str
    rule_id: Optional[str] = None
    count: int = 1

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "severity": self.severity.value,
            "matched_text": self.matched_text,
            "message": self.message,
            "suggestion": self.suggestion,
            "rule_id": self.rule_id,
            "count": self.count,
        }


@dataclass
class Decision:
    """What a hook answers for one invocation."""
    verdict: Verdict
    detections: list[Detection] = field(default_factory=list)
    formatted_message: str = ""
    notes: list[str] = field(default_factory=list)

    @property
    def allowed(self) -> bool:
        return self.verdict != Verdict.BLOCK

    def to_dict(self) -> dict:
        return {
            "verdict": self.verdict.value,
            "detections": [d.to_dict() for d in self.detections],
            "message": self.formatted_message,
            "notes": list(self.notes),
        }


def allow_decision() -> Decision:
    """Fresh allow decision with no detections."""
    return Decision(verdict=Verdict.ALLOW)

"""normalizer.py - Turn a raw hook request into a canonical Invocation.

Hosts describe the same operation with different shapes: a Write carries
``file_path`` + ``content``, an Edit ``old_string`` / ``new_string``, a
MultiEdit a list of edits, a Bash call a ``command``. Everything downstream
sees one Invocation instead.

The normalizer never raises. Input it cannot understand becomes an
unevaluable Invocation, which every evaluator allows.

Target extraction for shell commands only extracts WRITE TARGETS, never
mentions:
    echo "Fixed bug in enforcement.py" > notes.md
targets notes.md, not enforcement.py. Files a command deletes or moves
away are kept apart from the ones it writes.
"""

import json
import logging
import re
import shlex
from typing import Any, Mapping, Optional, Union

from .types import UNEVALUABLE, Invocation, OperationKind, Tools

logger = logging.getLogger(__name__)

# Host tool names and canonical names -> operation kind
KIND_ALIASES: dict[str, OperationKind] = {
    Tools.WRITE: OperationKind.CREATE_FILE,
    Tools.EDIT: OperationKind.EDIT_FILE,
    Tools.MULTI_EDIT: OperationKind.MULTI_EDIT_FILE,
    Tools.BASH: OperationKind.RUN_COMMAND,
    **{kind.value: kind for kind in OperationKind},
}

KIND_KEYS = ("operationKind", "operation_kind", "tool_name", "toolName", "tool")

PATH_ALIASES = ("file_path", "filePath", "targetPath", "target_path", "path", "notebook_path")
CONTENT_ALIASES = ("content", "new_content", "newContent", "file_text")
AFTER_ALIASES = ("new_string", "newString", "afterText", "after_text", "content")
BEFORE_ALIASES = ("old_string", "oldString", "beforeText", "before_text")
COMMAND_ALIASES = ("command", "commandLine", "command_line", "cmd")
INTENT_ALIASES = ("intentText", "intent_text", "intent", "description", "reasoning", "prompt")

# Per operation kind: Invocation field -> aliases, highest priority first.
# Adding an operation kind is an entry here plus one in KIND_ALIASES.
FIELD_ALIASES: list[tuple[OperationKind, dict[str, tuple[str, ...]]]] = [
    (OperationKind.CREATE_FILE, {
        "target_path": PATH_ALIASES,
        "content": CONTENT_ALIASES,
    }),
    (OperationKind.EDIT_FILE, {
        "target_path": PATH_ALIASES,
        "before_text": BEFORE_ALIASES,
        "after_text": AFTER_ALIASES,
    }),
    (OperationKind.MULTI_EDIT_FILE, {
        "target_path": PATH_ALIASES,
        "before_text": BEFORE_ALIASES,
        "after_text": AFTER_ALIASES,
    }),
    (OperationKind.RUN_COMMAND, {
        "target_path": PATH_ALIASES,
        "command_line": COMMAND_ALIASES,
    }),
]

_FIELDS_BY_KIND = dict(FIELD_ALIASES)


def first_present(data: Mapping[str, Any], aliases: tuple[str, ...]) -> Optional[str]:
    """First alias whose value is a non-empty string."""
    for key in aliases:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def resolve_kind(data: Mapping[str, Any]) -> Optional[OperationKind]:
    """Operation kind from the first recognized kind key, or None."""
    name = first_present(data, KIND_KEYS)
    if name is None:
        return None
    return KIND_ALIASES.get(name.strip())


def _flatten(payload: Mapping[str, Any]) -> dict:
    """Flatten nested tool_input fields over the top level."""
    tool_input = payload.get("tool_input") or payload.get("toolInput")
    flattened = dict(payload)
    if isinstance(tool_input, Mapping):
        flattened.update(tool_input)
    return flattened


def _join_edits(edits: Any, key_aliases: tuple[str, ...]) -> Optional[str]:
    if not isinstance(edits, list):
        return None
    parts = [
        text for text in (
            first_present(edit, key_aliases) for edit in edits if isinstance(edit, Mapping)
        )
        if text is not None
    ]
    return "\n".join(parts) if parts else None


def normalize_payload(payload: Any) -> Invocation:
    """Build an Invocation from an already-decoded request object."""
    if not isinstance(payload, Mapping):
        return UNEVALUABLE

    data = _flatten(payload)
    kind = resolve_kind(data)
    if kind is None:
        return UNEVALUABLE

    fields: dict[str, Optional[str]] = {
        name: first_present(data, aliases)
        for name, aliases in _FIELDS_BY_KIND[kind].items()
    }

    if kind == OperationKind.MULTI_EDIT_FILE:
        edits = data.get("edits")
        fields["after_text"] = _join_edits(edits, AFTER_ALIASES) or fields.get("after_text")
        fields["before_text"] = _join_edits(edits, BEFORE_ALIASES) or fields.get("before_text")

    writes: tuple[str, ...] = ()
    deletes: tuple[str, ...] = ()
    if kind == OperationKind.RUN_COMMAND:
        command = fields.get("command_line")
        if command:
            writes = tuple(extract_write_targets(command))
            deletes = tuple(extract_delete_targets(command))
        if writes and not fields.get("target_path"):
            fields["target_path"] = writes[0]

    tool_name = first_present(data, ("tool_name", "toolName", "tool"))
    return Invocation(
        operation_kind=kind,
        intent_text=first_present(data, INTENT_ALIASES),
        tool_name=tool_name,
        write_targets=writes,
        delete_targets=deletes,
        **fields,
    )


def parse_invocation(raw: Union[str, bytes, None]) -> Invocation:
    """Parse the JSON request a hook receives on stdin.

    Args:
        raw: Request text (may be empty, partial or not JSON at all)

    Returns:
        The canonical Invocation; unevaluable if the request is unusable
    """
    if raw is None:
        return UNEVALUABLE
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    raw = raw.strip()
    if not raw:
        return UNEVALUABLE

    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, RecursionError) as e:
        logger.debug("Unparseable hook input: %s", e)
        return UNEVALUABLE

    return normalize_payload(payload)


DELETE_PROGRAMS = ("rm", "rmdir", "unlink", "shred")


def _split_words(segment: str) -> list[str]:
    try:
        return shlex.split(segment)
    except ValueError:
        return segment.split()


def _segments(command: str):
    # Split on command separators (rough segmentation)
    for segment in re.split(r"&&|\|\||[;|\n]", command):
        segment = segment.strip()
        if segment:
            yield segment


def _real_paths(targets: list[str]) -> list[str]:
    return [t for t in targets if t and t not in ("/dev/null", "-") and not t.startswith("/dev/")]


def extract_write_targets(command: str) -> list[str]:
    """Extract file paths being written to from a shell command.

    Returns list of file paths that are write targets.
    Returns empty list if no write targets detected (read-only command).

    'echo "notes" > notes.md' returns ['notes.md']
    'sed -i s/x/y/ app.ts' returns ['app.ts']
    'cp a.ts a_improved.ts' returns ['a_improved.ts']
    'rm a_improved.ts' returns []
    'cat app.ts' returns []
    """
    targets = []

    for segment in _segments(command):
        # Redirect operators: > >> (but not 2>&1 style fd duplication)
        for target in re.findall(r"(?<![0-9&])>{1,2}\s*([^\s&|;<>]+)", segment):
            targets.append(target.strip("'\""))

        words = _split_words(segment)
        if not words:
            continue
        program = words[0]
        args = [w for w in words[1:] if not w.startswith("-")]

        if program == "tee" and args:
            targets.extend(args)
        elif program == "sed" and any(w.startswith("-i") or w == "--in-place" for w in words[1:]):
            if len(args) >= 2:
                targets.append(args[-1])
        elif program in ("cp", "mv", "install", "ln") and len(args) >= 2:
            targets.append(args[-1])
        elif program in ("touch", "truncate", "mkdir") and args:
            targets.extend(args)

    return _real_paths(targets)


def extract_delete_targets(command: str) -> list[str]:
    """Extract file paths a shell command removes or moves away.

    'rm -f lib/a_improved.ts' returns ['lib/a_improved.ts']
    'mv src/app.ts /tmp/' returns ['src/app.ts']
    """
    targets = []
    for segment in _segments(command):
        words = _split_words(segment)
        if not words:
            continue
        args = [w for w in words[1:] if not w.startswith("-")]
        if words[0] in DELETE_PROGRAMS:
            targets.extend(args)
        elif words[0] == "mv" and len(args) >= 2:
            targets.extend(args[:-1])
    return _real_paths(targets)

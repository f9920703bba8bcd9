"""formatter.py - Turn detections into a verdict and a readable message.

The message is what the assistant sees on stderr. It has to say what was
found, why it matters and what to do instead, without drowning the reader
when one file trips a dozen rules.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Optional

from .config import get_setting, positive_int
from .types import Decision, Detection, Severity, Verdict

FALLBACK_SUGGESTION = "Rewrite the change so it no longer matches this rule."

ELLIPSIS = "..."


@dataclass
class Policy:
    """How detections map to a verdict and how much of them is shown."""
    block_severities: frozenset = field(default_factory=lambda: frozenset({Severity.HIGH}))
    preview_length: int = 80
    max_categories_shown: int = 5

    def blocks(self, detection: Detection) -> bool:
        return detection.severity in self.block_severities


def policy_from_config(config: dict) -> Policy:
    """Build a Policy from the [policy] config section.

    Raises:
        ConfigError: If a numeric setting is not a positive integer
    """
    severities = frozenset(
        Severity(str(s).lower())
        for s in get_setting(config, "policy", "block_severities")
        if str(s).lower() in {v.value for v in Severity}
    )
    return Policy(
        block_severities=severities,
        preview_length=positive_int(config, "policy", "preview_length"),
        max_categories_shown=positive_int(config, "policy", "max_categories_shown"),
    )


def decide(detections: list[Detection], policy: Policy) -> Verdict:
    if any(policy.blocks(d) for d in detections):
        return Verdict.BLOCK
    if detections:
        return Verdict.WARN
    return Verdict.ALLOW


def preview(text: str, length: int) -> str:
    """Single-line preview of matched text, truncated with an ellipsis."""
    flat = " ".join(text.split())
    if len(flat) <= length:
        return flat
    return flat[:length].rstrip() + ELLIPSIS


def group_by_category(detections: Iterable[Detection]) -> dict[str, list[Detection]]:
    """Group detections by category, preserving first-seen order."""
    groups: dict[str, list[Detection]] = {}
    for detection in detections:
        groups.setdefault(detection.category, []).append(detection)
    return groups


def _format_group(category: str, group: list[Detection], policy: Policy) -> list[str]:
    # max() keeps the first of equal-severity detections, so rule order decides ties
    top = max(group, key=lambda d: d.severity.rank)
    remaining = sum(d.count for d in group) - 1

    lines = [
        f"{category} ({top.severity.value}): {top.message}",
        f"  Found: {preview(top.matched_text, policy.preview_length)}",
        f"  Fix: {top.suggestion or FALLBACK_SUGGESTION}",
    ]
    if remaining > 0:
        lines.append(f"  (and {remaining} more)")
    return lines


def format_message(
    verdict: Verdict,
    detections: list[Detection],
    policy: Policy,
    notes: Iterable[str] = (),
    hook_name: Optional[str] = None,
) -> str:
    """Render the stderr message for a verdict."""
    notes = list(notes)
    if verdict == Verdict.ALLOW and not notes:
        return ""

    lines: list[str] = []
    if verdict != Verdict.ALLOW:
        title = "BLOCKED" if verdict == Verdict.BLOCK else "REVIEW SUGGESTED"
        lines.append(f"{title} by {hook_name}" if hook_name else title)
        lines.append("")

        groups = group_by_category(detections)
        shown = list(groups.items())[:policy.max_categories_shown]
        for category, group in shown:
            lines.extend(_format_group(category, group, policy))
            lines.append("")
        hidden = len(groups) - len(shown)
        if hidden > 0:
            lines.append(f"... and {hidden} more categor{'y' if hidden == 1 else 'ies'}")
            lines.append("")

    if notes:
        lines.append("Notes:")
        lines.extend(f"  - {note}" for note in notes)

    return "\n".join(lines).rstrip() + "\n"


def format_decision(
    detections: list[Detection],
    policy: Optional[Policy] = None,
    *,
    notes: Iterable[str] = (),
    hook_name: Optional[str] = None,
) -> Decision:
    """Decide the verdict for a set of detections and render its message.

    Args:
        detections: Everything the evaluator found
        policy: Verdict and display policy (defaults to block-on-high)
        notes: Reminder lines appended to the message
        hook_name: Name shown in the message header

    Returns:
        Decision with verdict, detections, message and notes
    """
    policy = policy or Policy()
    detections = list(detections)
    notes = list(notes)
    verdict = decide(detections, policy)
    return Decision(
        verdict=verdict,
        detections=detections,
        formatted_message=format_message(verdict, detections, policy, notes, hook_name),
        notes=notes,
    )

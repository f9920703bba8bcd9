"""Rule commands: rules, check."""

import sys
from pathlib import Path

from . import format_output


def _load_library():
    from ..config import get_config, get_setting
    from ..patterns import PatternLibrary

    config = get_config()
    return config, PatternLibrary.load(
        get_setting(config, "rules", "extra_catalogs"),
        get_setting(config, "rules", "disabled_categories"),
    )


def cmd_rules(args):
    """List loaded rules."""
    _, library = _load_library()
    library = library.subset([args.category] if args.category else None)

    if args.json:
        print(format_output({
            name: [
                {
                    "id": r.id,
                    "severity": r.severity.value,
                    "target": r.target.value,
                    "patterns": [p.pattern for p in r.patterns],
                    "message": r.message,
                    "suggestion": r.suggestion,
                }
                for r in category.rules
            ]
            for name, category in library.items()
        }, as_json=True))
        return

    if not library:
        print(f"No such category: {args.category}")
        return 1

    for name, category in library.items():
        print(f"{name} ({len(category.rules)} rules)")
        if category.description:
            print(f"  {category.description}")
        for rule in category.rules:
            print(f"  [{rule.severity.value:<6}] {rule.id} ({rule.target.value}): {rule.message}")
        print()


def cmd_check(args):
    """Evaluate a file on disk as if it were being created."""
    from ..evaluator import RuleEvaluator
    from ..formatter import format_decision, policy_from_config
    from ..hooks import HOOK_PROFILES, exit_code_for
    from ..types import Invocation, OperationKind

    profile = HOOK_PROFILES.get(args.profile)
    if profile is None:
        print(f"Unknown hook profile: {args.profile}", file=sys.stderr)
        return 1

    path = Path(args.file)
    try:
        content = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        print(f"Cannot read {path}: {e}", file=sys.stderr)
        return 1

    config, library = _load_library()
    invocation = Invocation(
        operation_kind=OperationKind.CREATE_FILE,
        target_path=args.file,
        content=content,
        intent_text=args.intent,
    )
    evaluator = RuleEvaluator(library, profile.categories, project_root=Path.cwd())
    decision = format_decision(
        evaluator.evaluate(invocation),
        policy_from_config(config),
        hook_name=profile.name,
    )

    if args.json:
        print(format_output(decision.to_dict(), as_json=True))
    elif decision.formatted_message:
        print(decision.formatted_message, end="")
    else:
        print("ALLOWED")
    return exit_code_for(decision.verdict)


def register(subparsers):
    """Register rule commands."""
    p = subparsers.add_parser("rules", help="List loaded rules")
    p.add_argument("--category", "-c", help="Only this category")
    p.add_argument("--json", action="store_true", help="Output as JSON")
    p.set_defaults(func=cmd_rules)

    p = subparsers.add_parser("check", help="Check a file against the rules")
    p.add_argument("file", help="File to check")
    p.add_argument("--profile", "-p", default="all", help="Hook profile (default: all)")
    p.add_argument("--intent", help="Intent text to check as well")
    p.add_argument("--json", action="store_true", help="Output as JSON")
    p.set_defaults(func=cmd_check)

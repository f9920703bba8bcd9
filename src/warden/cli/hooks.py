"""Hook commands: hook, hooks, settings."""

import json
import sys

from . import format_output


def cmd_hook(args):
    """Run one hook profile over a request on stdin."""
    from ..hooks import run_hook
    return run_hook(args.profile)


def cmd_hooks(args):
    """List hook profiles."""
    from ..hooks import HOOK_PROFILES

    if args.json:
        print(format_output({
            name: {
                "categories": list(p.categories) if p.categories is not None else "all",
                "timeout_ms": p.timeout_ms,
                "reminders": p.reminders,
                "matcher": p.matcher,
                "event": p.event,
                "description": p.description,
            }
            for name, p in HOOK_PROFILES.items()
        }, as_json=True))
        return

    for name, profile in HOOK_PROFILES.items():
        if profile.categories is None:
            categories = "(all categories)"
        elif not profile.categories:
            categories = "(reminders only)"
        else:
            categories = ", ".join(profile.categories)
        print(f"{name} [{profile.timeout_ms}ms]")
        print(f"  {profile.description}")
        print(f"  Categories: {categories}")
        print(f"  Disable with: {profile.switch_var}=0")


def cmd_settings(args):
    """Print a Claude Code hooks settings snippet."""
    from ..hooks import DEFAULT_SETTINGS_PROFILES, HOOK_PROFILES, settings_snippet

    profiles = args.profile or list(DEFAULT_SETTINGS_PROFILES)
    unknown = [p for p in profiles if p not in HOOK_PROFILES]
    if unknown:
        print(f"Unknown hook profile(s): {', '.join(unknown)}", file=sys.stderr)
        return 1
    print(json.dumps(settings_snippet(profiles, command=args.command_name), indent=2))


def register(subparsers):
    """Register hook commands."""
    p = subparsers.add_parser("hook", help="Run a hook profile (reads JSON on stdin)")
    p.add_argument("profile", help="Hook profile name")
    p.set_defaults(func=cmd_hook)

    p = subparsers.add_parser("hooks", help="List hook profiles")
    p.add_argument("--json", action="store_true", help="Output as JSON")
    p.set_defaults(func=cmd_hooks)

    p = subparsers.add_parser("settings", help="Print a hooks settings snippet")
    p.add_argument("--profile", action="append", help="Profile to include (repeatable)")
    p.add_argument("--command-name", default="warden-hook", help="Hook executable")
    p.set_defaults(func=cmd_settings)

"""Command-line interface for Warden.

Each command category lives in its own module with a register(subparsers)
function; main() wires them together.
"""

import argparse
import json
import sys


def format_output(data, as_json: bool = False) -> str:
    """Format output as JSON or human-readable text.

    Args:
        data: Dict or string to format
        as_json: If True, output JSON; otherwise return as-is

    Returns:
        Formatted string
    """
    if as_json:
        return json.dumps(data, indent=2, default=str)
    if isinstance(data, dict):
        return "\n".join(f"{k}: {v}" for k, v in data.items())
    return str(data)


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Warden - pattern-based guard hooks for coding assistants",
        prog="warden",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Import and register all command categories (lazy to avoid circular imports)
    from . import hooks, rules, state

    hooks.register(subparsers)
    rules.register(subparsers)
    state.register(subparsers)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    from ..exceptions import WardenError

    try:
        result = args.func(args)
    except WardenError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    if isinstance(result, int) and result:
        sys.exit(result)


if __name__ == "__main__":
    main()

"""Session state commands: state."""

from datetime import datetime

from . import format_output


def _when(ms: int) -> str:
    if not ms:
        return "never"
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


def cmd_state(args):
    """Show or reset the session state."""
    from ..state import SessionStore

    store = SessionStore()
    if args.reset:
        store.reset()
        print(f"Session state reset: {store.path}")
        return

    state = store.load()
    if args.json:
        print(format_output(state.to_dict(), as_json=True))
        return

    print(f"State file: {store.path}")
    print(f"Last cleanup: {_when(state.last_cleanup_ms)}")
    print(f"Tracked files: {len(state.changed_files)}")
    for entry in state.changed_files[:10]:
        print(f"  {_when(entry.timestamp_ms)}  {entry.path}")
    if state.periodic_tasks:
        print("Periodic tasks:")
        for key, last_run in state.periodic_tasks.items():
            print(f"  {key}: {_when(last_run)}")


def register(subparsers):
    """Register state commands."""
    p = subparsers.add_parser("state", help="Show or reset session state")
    p.add_argument("--reset", action="store_true", help="Clear the session state")
    p.add_argument("--json", action="store_true", help="Output as JSON")
    p.set_defaults(func=cmd_state)

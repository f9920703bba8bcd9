"""Hook process contract for Claude Code integration.

One hook run is one short-lived process: read a JSON request on stdin,
evaluate it, write a message on stderr, exit. Exit 0 lets the operation
through (with a warning if there is one), exit 2 blocks it.

Every failure mode resolves to "allow": unreadable input, a crash anywhere
in the pipeline, or running out of time. A broken guard must never stop
the assistant from working.
"""

import argparse
import logging
import os
import sys
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import IO, Mapping, Optional, Union

from .config import (
    DEVELOPMENT_VARS,
    DISABLE_VARS,
    VERBOSE_VARS,
    env_disabled,
    env_flag,
    get_config,
    get_project_root,
    get_setting,
    positive_int,
)
from .evaluator import RuleEvaluator
from .formatter import decide, format_decision, policy_from_config
from .normalizer import parse_invocation
from .path_utils import relative_to_root
from .patterns import PatternLibrary, get_default_library
from .reminders import collect_reminders
from .state import SessionStore
from .types import Decision, Invocation, Verdict, allow_decision

logger = logging.getLogger(__name__)

EXIT_ALLOW = 0
EXIT_BLOCK = 2

FILE_TOOLS = "Write|Edit|MultiEdit"
FILE_AND_SHELL_TOOLS = "Write|Edit|MultiEdit|Bash"

SECURITY_CATEGORIES = (
    "secret-exposure",
    "code-injection",
    "unsafe-dom",
    "sql-injection",
    "insecure-storage",
    "weak-crypto",
    "url-injection",
)


class HookState(str, Enum):
    IDLE = "idle"
    READING_INPUT = "reading-input"
    EVALUATING = "evaluating"
    EMITTING = "emitting"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class HookProfile:
    """One evaluator: which categories it runs and how long it may take.

    categories=None runs every loaded category; an empty tuple runs none.
    """
    name: str
    categories: Optional[tuple[str, ...]]
    timeout_ms: int
    description: str
    reminders: bool = False
    matcher: str = FILE_TOOLS
    event: str = "PreToolUse"

    @property
    def switch_var(self) -> str:
        """Environment variable that turns this profile off when falsy."""
        return "WARDEN_HOOK_" + self.name.upper().replace("-", "_")


HOOK_PROFILES: dict[str, HookProfile] = {p.name: p for p in (
    HookProfile(
        "security-scan", SECURITY_CATEGORIES, 3000,
        "Secrets, injection sinks and weak crypto in written code",
    ),
    HookProfile(
        "prevent-improved-files", ("naming-hygiene",), 1500,
        "Versioned and backup copies instead of editing the original",
        matcher=FILE_AND_SHELL_TOOLS,
    ),
    HookProfile(
        "enterprise-antibody", ("architectural-scope", "production-endpoint"), 2000,
        "Enterprise features and production endpoints in a local project",
    ),
    HookProfile(
        "architecture-checker", ("project-structure",), 250,
        "Files created in the wrong place",
    ),
    HookProfile(
        "performance-guardian", ("performance-antipattern",), 2000,
        "Common performance anti-patterns",
    ),
    HookProfile(
        "scope-limiter", ("scope-creep",), 1500,
        "Stated intent that widens the task",
    ),
    HookProfile(
        "meta-project-guardian", ("self-protection",), 1500,
        "Changes to the guard itself and its settings",
        matcher=FILE_AND_SHELL_TOOLS,
    ),
    HookProfile(
        "command-guardian", ("dangerous-command",), 1000,
        "Destructive or enforcement-bypassing shell commands",
        matcher="Bash",
    ),
    HookProfile(
        "ai-integration-validator", ("hallucinated-api",), 2000,
        "Invented or misused APIs in generated code",
    ),
    HookProfile(
        "vector-db-hygiene", ("vector-hygiene",), 2000,
        "Embedding storage and similarity query anti-patterns",
    ),
    HookProfile(
        "session-cleanup", (), 1000,
        "Periodic cleanup and change-frequency reminders",
        reminders=True, event="PostToolUse",
    ),
    HookProfile(
        "all", None, 3000,
        "Every category plus reminders in one process",
        reminders=True, matcher=FILE_AND_SHELL_TOOLS,
    ),
)}

# Profiles wired into host settings; "all" would duplicate the others
DEFAULT_SETTINGS_PROFILES = tuple(n for n in HOOK_PROFILES if n != "all")


def exit_code_for(verdict: Verdict) -> int:
    return EXIT_BLOCK if verdict == Verdict.BLOCK else EXIT_ALLOW


_HANDLER_FLAG = "_warden_handler"


def configure_logging(verbose: bool, stream: Optional[IO] = None) -> None:
    """Route warden logs to stderr in verbose mode, nowhere otherwise.

    Without a handler Python's last-resort handler would print warnings on
    stderr, which the host reads as part of the hook's answer.
    """
    package_logger = logging.getLogger("warden")
    for handler in list(package_logger.handlers):
        if getattr(handler, _HANDLER_FLAG, False):
            package_logger.removeHandler(handler)

    if verbose:
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(logging.Formatter("[warden] %(levelname)s %(name)s: %(message)s"))
        package_logger.setLevel(logging.DEBUG)
    else:
        handler = logging.NullHandler()
    setattr(handler, _HANDLER_FLAG, True)
    package_logger.addHandler(handler)


class HookRunner:
    """Run one hook profile over one request.

    Args:
        profile: HookProfile or profile name
        env: Environment mapping (defaults to os.environ)
        config: Merged configuration (loaded lazily if None)
        library: Pattern library (bundled catalogs if None)
        project_root: Project root (from the environment if None)
        store: Session state store (created lazily if None)
    """

    def __init__(
        self,
        profile: Union[HookProfile, str],
        *,
        env: Optional[Mapping[str, str]] = None,
        config: Optional[dict] = None,
        library: Optional[PatternLibrary] = None,
        project_root: Optional[Path] = None,
        store: Optional[SessionStore] = None,
    ):
        self.profile = profile if isinstance(profile, HookProfile) else HOOK_PROFILES[profile]
        self.env = os.environ if env is None else env
        self.project_root = Path(project_root) if project_root else get_project_root(self.env)
        self._config = config
        self._library = library
        self._store = store
        self.state = HookState.IDLE
        self.history = [HookState.IDLE]

    def _transition(self, state: HookState) -> None:
        # A worker that outlives the timeout must not move a finished run
        if self.state == HookState.TERMINATED:
            return
        logger.debug("%s: %s -> %s", self.profile.name, self.state.value, state.value)
        self.state = state
        self.history.append(state)

    @property
    def disabled(self) -> bool:
        return env_flag(DISABLE_VARS, self.env) or env_disabled(self.profile.switch_var, self.env)

    @property
    def verbose(self) -> bool:
        return env_flag(VERBOSE_VARS, self.env)

    @property
    def development_mode(self) -> bool:
        return env_flag(DEVELOPMENT_VARS, self.env)

    @property
    def config(self) -> dict:
        if self._config is None:
            self._config = get_config(self.project_root, self.env)
        return self._config

    @property
    def library(self) -> PatternLibrary:
        if self._library is None and self.profile.categories == ():
            # Reminder-only profiles never match anything
            self._library = PatternLibrary()
        if self._library is None:
            extra = get_setting(self.config, "rules", "extra_catalogs")
            disabled = get_setting(self.config, "rules", "disabled_categories")
            if extra or disabled:
                self._library = PatternLibrary.load(extra, disabled)
            else:
                self._library = get_default_library()
        return self._library

    @property
    def store(self) -> SessionStore:
        if self._store is None:
            self._store = SessionStore(
                self.project_root,
                max_tracked=positive_int(self.config, "session", "max_tracked_files"),
            )
        return self._store

    def _record_changes(self, invocation: Invocation) -> None:
        for written in invocation.written_paths:
            path = relative_to_root(written, self.project_root)
            try:
                self.store.record_change(path)
            except Exception as e:
                logger.warning("Could not record change to %s: %s", path, e)
                return

    def _reminders(self, invocation: Invocation) -> list[str]:
        try:
            return collect_reminders(self.store, invocation, self.config)
        except Exception as e:
            logger.warning("Reminders skipped: %s", e)
            return []

    def evaluate_payload(self, raw: Union[str, bytes, None]) -> Decision:
        """Normalize, evaluate and format one raw request.

        Unevaluable requests are allowed without touching session state.
        Every evaluated request that writes a path is recorded, whatever
        the verdict; reminders only ride along when nothing is blocked.
        """
        invocation = parse_invocation(raw)
        if not invocation.is_evaluable:
            logger.debug("%s: nothing to evaluate", self.profile.name)
            return allow_decision()

        self._transition(HookState.EVALUATING)
        policy = policy_from_config(self.config)
        evaluator = RuleEvaluator(
            self.library,
            self.profile.categories,
            project_root=self.project_root,
            development_mode=self.development_mode,
        )
        detections = evaluator.evaluate(invocation)

        notes: list[str] = []
        if invocation.written_paths:
            self._record_changes(invocation)
            if self.profile.reminders and decide(detections, policy) != Verdict.BLOCK:
                notes = self._reminders(invocation)

        return format_decision(detections, policy, notes=notes, hook_name=self.profile.name)

    def run(self, stdin: Optional[IO] = None, stderr: Optional[IO] = None) -> int:
        """Run the full hook contract and return the exit status."""
        stdin = stdin if stdin is not None else sys.stdin
        stderr = stderr if stderr is not None else sys.stderr

        if self.disabled:
            logger.debug("%s disabled by environment", self.profile.name)
            self._transition(HookState.TERMINATED)
            return EXIT_ALLOW

        # Compiling catalogs is a fixed start-up cost, kept off the request clock
        try:
            self.library
        except Exception as e:
            logger.debug("%s failed open while loading: %s", self.profile.name, e, exc_info=True)
            self._transition(HookState.TERMINATED)
            return EXIT_ALLOW

        outcome: dict[str, Decision] = {}

        def work():
            try:
                self._transition(HookState.READING_INPUT)
                raw = stdin.read()
                outcome["decision"] = self.evaluate_payload(raw)
            except Exception as e:
                logger.debug("%s failed open: %s", self.profile.name, e, exc_info=True)

        worker = threading.Thread(target=work, name=f"warden-{self.profile.name}", daemon=True)
        worker.start()
        worker.join(self.profile.timeout_ms / 1000)

        if worker.is_alive():
            logger.debug("%s timed out after %dms", self.profile.name, self.profile.timeout_ms)
            self._transition(HookState.TERMINATED)
            return EXIT_ALLOW

        decision = outcome.get("decision")
        if decision is None:
            self._transition(HookState.TERMINATED)
            return EXIT_ALLOW

        self._transition(HookState.EMITTING)
        if decision.formatted_message:
            try:
                stderr.write(decision.formatted_message)
                stderr.flush()
            except (OSError, ValueError) as e:
                logger.debug("Could not write hook message: %s", e)
        self._transition(HookState.TERMINATED)
        logger.debug("%s: %s", self.profile.name, decision.verdict.value)
        return exit_code_for(decision.verdict)


def settings_snippet(profiles=DEFAULT_SETTINGS_PROFILES, command: str = "warden-hook") -> dict:
    """Claude Code settings wiring each profile to its host tools."""
    events: dict[str, list] = {}
    for name in profiles:
        profile = HOOK_PROFILES[name]
        events.setdefault(profile.event, []).append({
            "matcher": profile.matcher,
            "hooks": [{"type": "command", "command": f"{command} {profile.name}"}],
        })
    return {"hooks": events}


def run_hook(
    name: str,
    stdin: Optional[IO] = None,
    stderr: Optional[IO] = None,
    env: Optional[Mapping[str, str]] = None,
) -> int:
    """Run a hook profile by name. Unknown profiles allow."""
    env = os.environ if env is None else env
    configure_logging(env_flag(VERBOSE_VARS, env))
    profile = HOOK_PROFILES.get(name)
    if profile is None:
        logger.warning("Unknown hook profile %r; allowing", name)
        return EXIT_ALLOW
    return HookRunner(profile, env=env).run(stdin, stderr)


def main(argv=None) -> None:
    """warden-hook <profile>: entry point for host hook settings."""
    parser = argparse.ArgumentParser(
        prog="warden-hook",
        description="Evaluate one hook request from stdin",
    )
    parser.add_argument("profile", nargs="?", default="all", help="Hook profile name")
    args, _ = parser.parse_known_args(argv)
    sys.exit(run_hook(args.profile))

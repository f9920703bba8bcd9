"""Pytest fixtures for warden tests."""

import io
import json

import pytest
from unittest.mock import patch

import warden.config as config_mod
from warden.hooks import HookRunner
from warden.patterns import PatternLibrary, get_default_library
from warden.state import SessionStore


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture(autouse=True)
def isolated_user_config(tmp_path):
    """Never read the developer's ~/.warden/warden.toml."""
    with patch.object(config_mod, "USER_CONFIG_PATH", tmp_path / "user-home" / "warden.toml"):
        yield


@pytest.fixture(scope="session")
def library():
    """The bundled catalogs, compiled once for the whole run."""
    return get_default_library()


@pytest.fixture
def small_library():
    """Two tiny categories for evaluator and formatter tests."""
    return PatternLibrary.from_mapping({
        "categories": [
            {
                "name": "alpha",
                "rules": [
                    {"id": "alpha-high", "pattern": "DANGER", "severity": "high",
                     "message": "Danger word", "suggestion": "Remove it"},
                    {"id": "alpha-low", "pattern": "meh", "severity": "low",
                     "message": "Meh word"},
                ],
            },
            {
                "name": "beta",
                "exempt_paths": ["^vendor/"],
                "rules": [
                    {"id": "beta-path", "target": "path", "pattern": r"_copy\.", "severity": "medium",
                     "message": "Copy file", "suggestion": "Edit the original"},
                ],
            },
        ],
    }, source="<test>")


@pytest.fixture
def project(tmp_path):
    """An empty project root."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(project, clock):
    return SessionStore(project, clock=clock)


@pytest.fixture
def env(project):
    """Minimal hook environment pointing at the test project."""
    return {"CLAUDE_PROJECT_DIR": str(project)}


@pytest.fixture
def make_runner(env, project, library, store):
    """Build a HookRunner wired to the test project."""
    def _make(profile="all", **overrides):
        kwargs = dict(env=env, library=library, project_root=project, store=store)
        kwargs.update(overrides)
        return HookRunner(profile, **kwargs)
    return _make


def stdin_for(payload) -> io.StringIO:
    """stdin carrying a JSON payload (or raw text)."""
    if isinstance(payload, str):
        return io.StringIO(payload)
    return io.StringIO(json.dumps(payload))


@pytest.fixture
def run_hook_with(make_runner):
    """Run a profile over a payload; returns (exit code, stderr text, runner)."""
    def _run(payload, profile="all", **overrides):
        runner = make_runner(profile, **overrides)
        stderr = io.StringIO()
        code = runner.run(stdin_for(payload), stderr)
        return code, stderr.getvalue(), runner
    return _run

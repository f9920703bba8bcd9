"""Tests for config loading and environment switches."""

from pathlib import Path
from unittest.mock import patch

import pytest

import warden.config as config_mod
from warden.config import (
    DISABLE_VARS,
    config_search_path,
    ensure_config,
    env_disabled,
    env_flag,
    get_config,
    get_project_root,
    get_setting,
    positive_int,
)
from warden.exceptions import ConfigError


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


class TestEnvironment:
    """Environment flag parsing."""

    @pytest.mark.parametrize("value", ["1", "true", "TRUE", "yes", "on", " true "])
    def test_truthy(self, value):
        assert env_flag(DISABLE_VARS, {"HOOKS_DISABLED": value})

    @pytest.mark.parametrize("value", ["", "0", "false", "nope"])
    def test_not_truthy(self, value):
        assert not env_flag(DISABLE_VARS, {"WARDEN_DISABLED": value})

    def test_explicitly_disabled(self):
        assert env_disabled("WARDEN_HOOK_SECURITY_SCAN", {"WARDEN_HOOK_SECURITY_SCAN": "off"})
        assert not env_disabled("WARDEN_HOOK_SECURITY_SCAN", {})
        assert not env_disabled("WARDEN_HOOK_SECURITY_SCAN", {"WARDEN_HOOK_SECURITY_SCAN": "1"})

    def test_project_root_from_env(self, tmp_path):
        assert get_project_root({"CLAUDE_PROJECT_DIR": str(tmp_path)}) == tmp_path

    def test_project_root_defaults_to_cwd(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert get_project_root({}).resolve() == tmp_path.resolve()


class TestGetConfig:
    """warden.toml discovery and merging."""

    def test_defaults_without_files(self, project):
        config = get_config(project, env={})
        assert config["policy"]["block_severities"] == ["high"]
        assert config["session"]["max_recent_files"] == 15

    def test_search_order(self, project):
        paths = config_search_path(project, env={"WARDEN_CONFIG": "/etc/w.toml"})
        assert paths[0] == Path("/etc/w.toml")
        assert paths[1] == project / ".warden" / "warden.toml"
        assert paths[2] == config_mod.USER_CONFIG_PATH

    def test_project_file_deep_merged(self, project):
        _write(project / ".warden" / "warden.toml", "[policy]\npreview_length = 40\n")
        config = get_config(project, env={})
        assert config["policy"]["preview_length"] == 40
        assert config["policy"]["max_categories_shown"] == 5

    def test_priority(self, project, tmp_path):
        """$WARDEN_CONFIG beats the project file, which beats the user file."""
        user = _write(tmp_path / "user" / "warden.toml",
                      "[policy]\npreview_length = 10\nmax_categories_shown = 2\n")
        _write(project / ".warden" / "warden.toml", "[policy]\npreview_length = 20\n")
        explicit = _write(tmp_path / "explicit.toml", "[session]\nmax_recent_files = 3\n")

        with patch.object(config_mod, "USER_CONFIG_PATH", user):
            config = get_config(project, env={"WARDEN_CONFIG": str(explicit)})

        assert config["policy"]["preview_length"] == 20
        assert config["policy"]["max_categories_shown"] == 2
        assert config["session"]["max_recent_files"] == 3

    def test_unreadable_file_ignored(self, project, caplog):
        _write(project / ".warden" / "warden.toml", "[policy\nbroken")
        config = get_config(project, env={})
        assert config["policy"]["preview_length"] == 80
        assert "Ignoring unreadable config" in caplog.text

    def test_defaults_not_mutated(self, project):
        _write(project / ".warden" / "warden.toml", "[rules]\ndisabled_categories = ['scope-creep']\n")
        get_config(project, env={})
        assert get_config(Path("/nonexistent"), env={})["rules"]["disabled_categories"] == []


class TestSettings:
    """get_setting / positive_int."""

    def test_missing_falls_back_to_default(self):
        assert get_setting({}, "session", "cleanup_interval_minutes") == 30

    def test_positive_int(self):
        assert positive_int({"session": {"max_tracked_files": 7}}, "session", "max_tracked_files") == 7

    @pytest.mark.parametrize("value", [0, -1, "5", True, 1.5])
    def test_positive_int_rejects(self, value):
        with pytest.raises(ConfigError):
            positive_int({"session": {"max_tracked_files": value}}, "session", "max_tracked_files")


class TestEnsureConfig:

    def test_creates_default_file(self, project):
        path = ensure_config(project)
        assert path == project / ".warden" / "warden.toml"
        config = get_config(project, env={})
        assert config["session"]["max_tracked_files"] == 100

    def test_keeps_existing_file(self, project):
        existing = _write(project / ".warden" / "warden.toml", "[policy]\npreview_length = 9\n")
        ensure_config(project)
        assert existing.read_text() == "[policy]\npreview_length = 9\n"

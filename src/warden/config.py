"""config.py - Configuration loading from warden.toml and the environment."""

import copy
import logging
import os
from pathlib import Path
from typing import Mapping, Optional

try:
    import tomllib
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

WARDEN_HOME = Path.home() / ".warden"
USER_CONFIG_PATH = WARDEN_HOME / "warden.toml"
PROJECT_DIR_NAME = ".warden"
CONFIG_FILE_NAME = "warden.toml"

# Environment switches. The HOOK*/HOOKS_* names are accepted so existing
# hook settings keep working.
DISABLE_VARS = ("WARDEN_DISABLED", "HOOKS_DISABLED", "HOOKS_TESTING_MODE")
VERBOSE_VARS = ("WARDEN_VERBOSE", "HOOK_VERBOSE")
DEVELOPMENT_VARS = ("WARDEN_DEVELOPMENT", "HOOK_DEVELOPMENT")
CONFIG_VAR = "WARDEN_CONFIG"
PROJECT_DIR_VAR = "CLAUDE_PROJECT_DIR"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}

_DEFAULTS = {
    "policy": {
        "block_severities": ["high"],
        "preview_length": 80,
        "max_categories_shown": 5,
    },
    "rules": {
        "disabled_categories": [],
        "extra_catalogs": [],
    },
    "session": {
        "cleanup_interval_minutes": 30,
        "recent_window_minutes": 30,
        "max_recent_files": 15,
        "max_tracked_files": 100,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Merge override into base, recursing into nested dicts."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def env_flag(names, env: Optional[Mapping[str, str]] = None) -> bool:
    """True if any of the named variables holds a truthy value."""
    env = os.environ if env is None else env
    return any(env.get(name, "").strip().lower() in _TRUTHY for name in names)


def env_disabled(name: str, env: Optional[Mapping[str, str]] = None) -> bool:
    """True if the variable is explicitly set to a falsy value."""
    env = os.environ if env is None else env
    return env.get(name, "").strip().lower() in _FALSY


def get_project_root(env: Optional[Mapping[str, str]] = None) -> Path:
    """Project root: $CLAUDE_PROJECT_DIR if set, else the working directory."""
    env = os.environ if env is None else env
    configured = env.get(PROJECT_DIR_VAR)
    if configured:
        return Path(configured)
    return Path.cwd()


def config_search_path(
    project_root: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> list[Path]:
    """Config files in priority order, highest first."""
    env = os.environ if env is None else env
    paths = []
    if env.get(CONFIG_VAR):
        paths.append(Path(env[CONFIG_VAR]))
    root = project_root or get_project_root(env)
    paths.append(root / PROJECT_DIR_NAME / CONFIG_FILE_NAME)
    paths.append(USER_CONFIG_PATH)
    return paths


def get_config(
    project_root: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> dict:
    """Load config from warden.toml files, merged over defaults.

    Lower-priority files are applied first so the explicit $WARDEN_CONFIG
    wins over the project file, which wins over the user file. Files that
    cannot be parsed are skipped.
    """
    config = copy.deepcopy(_DEFAULTS)
    for path in reversed(config_search_path(project_root, env)):
        if not path.is_file():
            continue
        try:
            with open(path, "rb") as f:
                user_config = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning("Ignoring unreadable config %s: %s", path, e)
            continue
        config = _deep_merge(config, user_config)
    return config


def get_setting(config: dict, section: str, key: str):
    """Read one setting, falling back to the built-in default."""
    value = config.get(section, {}).get(key)
    if value is None:
        return _DEFAULTS[section][key]
    return value


def positive_int(config: dict, section: str, key: str) -> int:
    """Read an integer setting that must be positive."""
    value = get_setting(config, section, key)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"[{section}] {key} must be a positive integer, got {value!r}")
    return value


def ensure_config(project_root: Optional[Path] = None) -> Path:
    """Create a default project warden.toml if it doesn't exist."""
    root = project_root or get_project_root()
    path = root / PROJECT_DIR_NAME / CONFIG_FILE_NAME
    if path.exists():
        return path

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        "[policy]\n"
        'block_severities = ["high"]\n'
        "preview_length = 80\n"
        "max_categories_shown = 5\n\n"
        "[rules]\n"
        "disabled_categories = []\n"
        "extra_catalogs = []\n\n"
        "[session]\n"
        "cleanup_interval_minutes = 30\n"
        "recent_window_minutes = 30\n"
        "max_recent_files = 15\n"
        "max_tracked_files = 100\n"
    )
    return path

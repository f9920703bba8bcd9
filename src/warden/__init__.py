"""Warden - pattern-based guard hooks for AI coding assistants."""

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Lazy-loading setup
# ---------------------------------------------------------------------------
# A hook process has a timeout measured in milliseconds. `import warden`
# must not compile rule catalogs or read config; submodules and public
# names are imported on first access through module-level __getattr__.
# ---------------------------------------------------------------------------

_LAZY_SUBMODULES: dict[str, str] = {
    "config": "warden.config",
    "evaluator": "warden.evaluator",
    "exceptions": "warden.exceptions",
    "formatter": "warden.formatter",
    "hooks": "warden.hooks",
    "normalizer": "warden.normalizer",
    "patterns": "warden.patterns",
    "reminders": "warden.reminders",
    "state": "warden.state",
    "types": "warden.types",
}

# Maps public name -> (module_path, attribute_name_in_that_module)
_LAZY_ATTRS: dict[str, tuple[str, str]] = {
    # Types
    "Invocation": ("warden.types", "Invocation"),
    "OperationKind": ("warden.types", "OperationKind"),
    "Severity": ("warden.types", "Severity"),
    "Verdict": ("warden.types", "Verdict"),
    "PatternRule": ("warden.types", "PatternRule"),
    "Detection": ("warden.types", "Detection"),
    "Decision": ("warden.types", "Decision"),
    # Errors
    "WardenError": ("warden.exceptions", "WardenError"),
    "CatalogError": ("warden.exceptions", "CatalogError"),
    "ConfigError": ("warden.exceptions", "ConfigError"),
    # Pattern library
    "PatternCategory": ("warden.patterns", "PatternCategory"),
    "PatternLibrary": ("warden.patterns", "PatternLibrary"),
    "get_default_library": ("warden.patterns", "get_default_library"),
    "detect": ("warden.patterns", "detect"),
    "would_match": ("warden.patterns", "would_match"),
    # Pipeline
    "parse_invocation": ("warden.normalizer", "parse_invocation"),
    "normalize_payload": ("warden.normalizer", "normalize_payload"),
    "RuleEvaluator": ("warden.evaluator", "RuleEvaluator"),
    "Policy": ("warden.formatter", "Policy"),
    "format_decision": ("warden.formatter", "format_decision"),
    # Hooks
    "HookProfile": ("warden.hooks", "HookProfile"),
    "HookRunner": ("warden.hooks", "HookRunner"),
    "HOOK_PROFILES": ("warden.hooks", "HOOK_PROFILES"),
    "run_hook": ("warden.hooks", "run_hook"),
    # Session state
    "SessionState": ("warden.state", "SessionState"),
    "SessionStore": ("warden.state", "SessionStore"),
    "collect_reminders": ("warden.reminders", "collect_reminders"),
    # Config
    "get_config": ("warden.config", "get_config"),
}


def __getattr__(name: str):
    import importlib

    # Submodule access: warden.patterns, warden.hooks, etc.
    if name in _LAZY_SUBMODULES:
        module = importlib.import_module(_LAZY_SUBMODULES[name])
        globals()[name] = module
        return module

    # Individual attribute access: from warden import HookRunner, etc.
    if name in _LAZY_ATTRS:
        module_path, attr_name = _LAZY_ATTRS[name]
        module = importlib.import_module(module_path)
        attr = getattr(module, attr_name)
        globals()[name] = attr
        return attr

    raise AttributeError(f"module 'warden' has no attribute {name!r}")


def __dir__():
    normal = list(globals().keys())
    return normal + list(_LAZY_SUBMODULES.keys()) + list(_LAZY_ATTRS.keys())


__all__ = ["__version__", *_LAZY_ATTRS]

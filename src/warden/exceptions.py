"""Warden exception hierarchy.

None of these ever escape a hook run; the hook runner fails open.
They surface from the CLI and from library callers.
"""


class WardenError(Exception):
    """Base class for warden errors."""


class CatalogError(WardenError):
    """A rule catalog could not be loaded or compiled."""

    def __init__(self, message: str, source: str = ""):
        self.source = source
        super().__init__(f"{source}: {message}" if source else message)


class ConfigError(WardenError):
    """A configuration value is invalid."""

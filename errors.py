"""Exceptions raised by query-gguf.

Lookup misses (a field or mode that is not in the config) are not errors;
those come back as empty results.
"""


class QueryGGUFError(Exception):
    """Base class for all query-gguf errors."""


class PathError(QueryGGUFError):
    """A path could not be normalized or does not point where it should."""


class ConfigError(QueryGGUFError):
    """The configuration file could not be read or written."""


class ModeFormatError(QueryGGUFError, ValueError):
    """A mode entry is malformed, or a value cannot be stored in one."""


class LaunchError(QueryGGUFError):
    """llama-cli could not be started in a new terminal."""

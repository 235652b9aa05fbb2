"""Configuration file support for query-gguf.

The config lives at ~/query_gguf/query_gguf_config.toml. It looks like TOML
but only a small line-oriented subset is understood: ``key = value`` or
``key = "value"`` on one line, ``#`` comments, blank lines. Nothing here
parses general TOML.

Reads never raise. A missing file, an unreadable file or a missing key all
come back as an empty result, and callers decide what that means.
"""

import logging
import re

from errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULTS = {
    "llama_cli_path": "",
    "logging_enabled": False,
    "log_directory_path": "",
    "gguf_model_directories": [],
    "prompt_directory": "prompts",
    "default_mode": None,
}

_INDEX_RE = re.compile(r"[0-9]+")


def parse_line(line):
    """Split one config line into ``(key, value)``.

    Returns None for blank lines, comments and lines without ``=``. The
    value is trimmed and loses one layer of surrounding double quotes.
    """
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None
    key, sep, value = stripped.partition("=")
    if not sep:
        logger.debug("Skipping malformed config line (missing '='): %s", line)
        return None
    value = value.strip()
    if value.startswith('"'):
        value = value[1:]
    if value.endswith('"'):
        value = value[:-1]
    return key.strip(), value.strip()


def _read_lines(config_file):
    try:
        with open(config_file, encoding="utf-8") as f:
            return f.read().splitlines()
    except OSError as e:
        logger.warning("Failed to read config file %s: %s", config_file, e)
    except UnicodeDecodeError as e:
        logger.warning("Config file %s is not valid UTF-8: %s", config_file, e)
    return []


def read_field(config_file, field_name):
    """Return the value of ``field_name``, or "" if it is not set.

    The key must match exactly; ``mode`` does not match ``mode_1``. The
    first matching line wins, and an empty value counts as not set.
    """
    if not field_name:
        logger.warning("read_field called with an empty field name")
        return ""

    for line in _read_lines(config_file):
        parsed = parse_line(line)
        if parsed is None:
            continue
        key, value = parsed
        if key != field_name:
            continue
        if not value:
            logger.warning("Empty value for field '%s'", field_name)
        return value

    logger.debug("Field '%s' not found in %s", field_name, config_file)
    return ""


def read_indexed_fields(config_file, base_name):
    """Return ``(number, value)`` pairs for keys ``<base_name>_<number>``.

    Pairs are sorted by number, not by where they appear in the file, so
    a hand-edited config with ``mode_3`` above ``mode_1`` still reads in
    order. Entries sharing a number keep file order.
    """
    if not base_name:
        logger.warning("read_indexed_fields called with an empty base name")
        return []

    prefix = f"{base_name}_"
    numbered = []
    for line in _read_lines(config_file):
        parsed = parse_line(line)
        if parsed is None:
            continue
        key, value = parsed
        if not key.startswith(prefix):
            continue
        suffix = key[len(prefix) :]
        if not _INDEX_RE.fullmatch(suffix) or not value:
            continue
        numbered.append((int(suffix), value))

    numbered.sort(key=lambda pair: pair[0])
    return numbered


def read_basename_fields(config_file, base_name):
    """Return the values of ``<base_name>_<N>`` keys ordered by ``N``."""
    return [value for _, value in read_indexed_fields(config_file, base_name)]


def parse_bool(value):
    """Parse ``true``/``false``. Returns None for anything else."""
    if value == "true":
        return True
    if value == "false":
        return False
    return None


def parse_int(value):
    """Parse a non-negative decimal integer. Returns None on failure."""
    value = value.strip()
    if not _INDEX_RE.fullmatch(value):
        return None
    return int(value)


def load_config(paths):
    """Load settings from the config file, merged with defaults.

    Returns a dict with every key in DEFAULTS present.
    """
    config = dict(DEFAULTS)
    config["gguf_model_directories"] = []
    config_file = paths.config_file
    if not config_file.exists():
        return config

    for key in ("llama_cli_path", "log_directory_path", "prompt_directory"):
        value = read_field(config_file, key)
        if value:
            config[key] = value

    logging_enabled = parse_bool(read_field(config_file, "logging_enabled"))
    if logging_enabled is not None:
        config["logging_enabled"] = logging_enabled

    config["default_mode"] = parse_int(read_field(config_file, "default_mode"))
    config["gguf_model_directories"] = read_basename_fields(
        config_file, "gguf_model_directory"
    )
    return config


def read_document(config_file):
    """Return the full text of the config file.

    Raises:
        ConfigError: If the file cannot be read.
    """
    try:
        with open(config_file, encoding="utf-8") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Failed to read config at {config_file}: {e}") from e


def write_document(config_file, text):
    """Replace the config file with ``text``.

    The whole file is rewritten and nothing is locked: if two instances
    save at the same time, the last write wins.

    Raises:
        ConfigError: If the file cannot be written.
    """
    try:
        with open(config_file, "w", encoding="utf-8") as f:
            f.write(text)
    except OSError as e:
        raise ConfigError(f"Failed to write config to {config_file}: {e}") from e
    logger.debug("Wrote config file %s", config_file)

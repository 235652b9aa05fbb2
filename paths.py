"""Path handling for query-gguf.

Two kinds of resolution live here. ``normalize_path`` is strict and is used
for directories the user types in: the target must exist. The
``resolve_*_path`` helpers are used for paths already stored in the config
file and never touch the filesystem, so a model that is temporarily missing
does not stop the mode list from loading.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from errors import PathError

APP_DIR_NAME = "query_gguf"
CONFIG_FILE_NAME = "query_gguf_config.toml"
PROMPTS_DIR_NAME = "prompts"
BLANK_PROMPT_NAME = "blankprompt.txt"
HISTORY_FILE_NAME = "history"


def expand_home(path, home=None):
    """Replace a leading ``~`` with the home directory."""
    if not path.startswith("~"):
        return path
    home = str(home) if home is not None else str(Path.home())
    return home + path[1:]


def normalize_path(path):
    """Return the absolute, canonical form of a user-entered path.

    Raises:
        PathError: If the home directory cannot be expanded, the target
            does not exist, or the path contains characters the OS rejects.
    """
    path = path.strip()
    try:
        expanded = expand_home(path)
    except RuntimeError as e:
        raise PathError(f"Could not expand home directory (~): {e}") from e

    candidate = Path(expanded)
    if not candidate.is_absolute():
        try:
            candidate = Path.cwd() / candidate
        except OSError as e:
            raise PathError(f"Failed to get current directory: {e}") from e

    try:
        return str(candidate.resolve(strict=True))
    except FileNotFoundError as e:
        raise PathError(f"Path does not exist: {candidate}") from e
    except (OSError, ValueError) as e:
        raise PathError(f"Failed to normalize path '{path}': {e}") from e


def resolve_model_path(raw, home):
    """Resolve a stored model path: absolute as-is, else relative to home."""
    raw = expand_home(raw, home)
    if os.path.isabs(raw):
        return raw
    return str(Path(home) / raw.lstrip("/"))


def resolve_prompt_path(raw, prompts_dir):
    """Resolve a stored prompt path against the prompts directory.

    Leading ``prompts/`` segments are dropped so that ``prompts/x.txt``
    lands at ``<prompts_dir>/x.txt`` and not ``<prompts_dir>/prompts/x.txt``.
    """
    if os.path.isabs(raw):
        return raw
    clean = raw
    while clean.startswith(f"{PROMPTS_DIR_NAME}/"):
        clean = clean[len(PROMPTS_DIR_NAME) + 1 :]
    clean = clean.lstrip("/")
    return str(Path(prompts_dir) / clean)


@dataclass(frozen=True)
class AppPaths:
    """Where query-gguf keeps its files.

    Built once at startup and handed to everything that reads or writes
    the config, instead of each function working out the location itself.
    """

    home: Path
    base_dir: Path

    @classmethod
    def default(cls):
        home = Path.home()
        return cls(home=home, base_dir=home / APP_DIR_NAME)

    @classmethod
    def from_base_dir(cls, base_dir, home=None):
        home = Path(home) if home is not None else Path.home()
        return cls(home=home, base_dir=Path(base_dir).expanduser())

    @property
    def config_file(self):
        return self.base_dir / CONFIG_FILE_NAME

    @property
    def prompts_dir(self):
        return self.base_dir / PROMPTS_DIR_NAME

    @property
    def blank_prompt(self):
        return self.prompts_dir / BLANK_PROMPT_NAME

    @property
    def history_file(self):
        return self.base_dir / HISTORY_FILE_NAME

    def config_exists(self):
        return self.config_file.exists()

    def ensure_dirs(self):
        """Create the base and prompts directories if missing."""
        try:
            self.prompts_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PathError(
                f"Failed to create application directory {self.prompts_dir}: {e}"
            ) from e

"""Find model and prompt files in the configured directories."""

import logging
from dataclasses import dataclass
from pathlib import Path

from errors import PathError
from paths import resolve_model_path

logger = logging.getLogger(__name__)

MODEL_SUFFIX = ".gguf"


@dataclass
class ModelFile:
    full_path: str
    display_name: str


def _walk_files(directory):
    """Yield every file under ``directory``, skipping unreadable subdirectories."""
    try:
        entries = list(directory.iterdir())
    except OSError as e:
        logger.warning("Failed to read directory %s: %s", directory, e)
        return
    for entry in entries:
        if entry.is_dir():
            yield from _walk_files(entry)
        else:
            yield entry


def find_gguf_models(directories, home):
    """Return every ``.gguf`` file under ``directories``, sorted by file name.

    Relative directories are taken relative to ``home``.

    Raises:
        PathError: If a configured directory does not exist.
    """
    models = []
    for raw in directories:
        base = Path(resolve_model_path(raw, home))
        if not base.is_dir():
            raise PathError(f"Directory does not exist: {base}")
        logger.info("Searching for models in %s", base)
        for path in _walk_files(base):
            if path.suffix == MODEL_SUFFIX:
                logger.debug("Found model %s", path)
                models.append(ModelFile(full_path=str(path), display_name=path.name))

    models.sort(key=lambda m: m.display_name)
    logger.info("Found %d model files", len(models))
    return models


def find_prompt_files(prompts_dir):
    """Return the absolute paths of all files under ``prompts_dir``, sorted.

    A missing prompts directory is created, and then holds nothing.

    Raises:
        PathError: If the directory cannot be created.
    """
    prompts_dir = Path(prompts_dir)
    if not prompts_dir.exists():
        try:
            prompts_dir.mkdir(parents=True)
        except OSError as e:
            raise PathError(f"Failed to create directory {prompts_dir}: {e}") from e
        logger.info("Created prompts directory %s", prompts_dir)
        return []

    prompts = []
    for path in _walk_files(prompts_dir):
        try:
            prompts.append(str(path.resolve(strict=True)))
        except OSError as e:
            logger.warning("Could not resolve path %s: %s", path, e)
    prompts.sort()
    return prompts

"""First-run setup: ask for paths and write the initial config file."""

import logging
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path

from config import write_document
from errors import PathError
from paths import normalize_path
from ui import console, display_error, display_info, get_user_input, prompt_yes_no

logger = logging.getLogger(__name__)

LLAMA_CLI_NAME = "llama-cli"
DEFAULT_LOG_DIR = "query_gguf/chatlogs"


@dataclass
class SetupResult:
    llama_cli_path: str = ""
    model_directories: list = field(default_factory=list)
    prompt_directory: str = "prompts"
    logging_enabled: bool = True
    log_directory_path: str = ""


def locate_llama_cli(path):
    """Return the llama-cli executable at ``path`` or inside it.

    Raises:
        PathError: If no llama-cli is found there.
    """
    normalized = Path(normalize_path(path))
    if normalized.is_file() and LLAMA_CLI_NAME in normalized.name:
        return str(normalized)
    if normalized.is_dir():
        candidate = normalized / LLAMA_CLI_NAME
        if candidate.is_file():
            return str(candidate)
    raise PathError(f"Could not find llama-cli executable at or in: {path}")


def generate_config_text(result):
    """Render the initial config file for ``result``."""
    lines = ["# QueryGGUF Configuration File", ""]
    lines.append(f'llama_cli_path = "{result.llama_cli_path}"')
    lines.append("")
    lines.append(f"logging_enabled = {'true' if result.logging_enabled else 'false'}")
    if result.logging_enabled:
        lines.append(f'log_directory_path = "{result.log_directory_path}"')
    lines.append("")
    for i, path in enumerate(result.model_directories, start=1):
        lines.append(f'gguf_model_directory_{i} = "{path}"')
    lines.append("")
    lines.append(f'prompt_directory = "{result.prompt_directory}"')
    lines.append("")
    lines += [
        "# Configuration Examples:",
        "# Additional model directories can be added as:",
        '# gguf_model_directory_2 = "/path/to/more/models"',
        '# gguf_model_directory_3 = "/another/path/to/models"',
        "",
        "# example llama.cpp llama-cli path:",
        '# llama_cli_path = "/home/user/llama.cpp/build/bin/llama-cli"',
        "",
        "# Saved modes will appear as:",
        '# mode_1 = "model_path|prompt_path|temp=0.8|top_k=40|top_p=0.9'
        '|ctx_size=2000|threads=7|gpu_layers=0|interactive_first=true|name|description"',
        "",
    ]
    return "\n".join(lines)


def validate_setup(result):
    """Check the directories in ``result`` before anything is saved.

    Raises:
        PathError: If a directory is missing or the log directory is not
            writable.
    """
    for path in result.model_directories:
        directory = Path(path)
        if not directory.is_dir():
            raise PathError(f"Invalid model directory path: {path}")
        try:
            has_gguf = any(p.suffix == ".gguf" for p in directory.iterdir())
        except OSError as e:
            raise PathError(f"Failed to read directory {path}: {e}") from e
        if not has_gguf:
            logger.warning("No .gguf files found in directory: %s", path)

    if result.logging_enabled:
        log_dir = Path(result.log_directory_path)
        if not log_dir.is_dir():
            raise PathError(
                f"Invalid log directory path: {result.log_directory_path}"
            )
        test_file = log_dir / "query_gguf_write_test.tmp"
        try:
            test_file.write_text("")
            test_file.unlink()
        except OSError as e:
            raise PathError(f"Cannot write to log directory: {e}") from e


def backup_existing_config(paths):
    """Copy the current config to a timestamped .bak file next to it.

    Returns the backup path, or None if there was nothing to back up.
    """
    if not paths.config_exists():
        return None
    backup = paths.config_file.with_name(
        f"query_gguf_config_{int(time.time())}.toml.bak"
    )
    try:
        shutil.copyfile(paths.config_file, backup)
    except OSError as e:
        raise PathError(f"Failed to create backup: {e}") from e
    return backup


def create_blank_prompt(paths):
    """Write the blank prompt used by modes without a prompt file."""
    paths.ensure_dirs()
    try:
        paths.blank_prompt.write_text("# Blank prompt file\n", encoding="utf-8")
    except OSError as e:
        raise PathError(f"Failed to create blank prompt file: {e}") from e
    return paths.blank_prompt


def prompt_for_directory(question):
    """Ask for an existing directory. Returns "done", a path, or None on EOF."""
    while True:
        answer = get_user_input(f"{question}: ")
        if answer is None:
            return None
        if answer.lower() == "done":
            return "done"
        try:
            path = normalize_path(answer)
        except PathError as e:
            display_error(f"{e}. Please try again.")
            continue
        if not Path(path).is_dir():
            display_error(f"Path is not a directory: {path}")
            continue
        return path


def _ask_llama_cli():
    console.print("\n[bold]llama.cpp setup[/bold]")
    console.print("Enter the path to the llama-cli executable or its directory")
    console.print("(e.g. /path/to/llama.cpp/build/bin/llama-cli or /path/to/llama.cpp/build/bin)")
    while True:
        answer = get_user_input("Path to llama-cli: ")
        if answer is None:
            return None
        try:
            return locate_llama_cli(answer)
        except PathError as e:
            display_error(str(e))


def _ask_model_directories():
    directories = []
    while True:
        path = prompt_for_directory(
            "Enter path to GGUF models directory (or 'done' to finish)"
        )
        if path is None:
            return None
        if path == "done":
            if directories:
                return directories
            display_error("At least one model directory is required.")
            continue
        directories.append(path)


def _ask_prompt_directory(paths):
    console.print("\n[bold]Prompt directory[/bold]")
    console.print("Prompts are text files used to start conversations with llama-cli.")
    console.print(f"New prompt files can go in {paths.prompts_dir}")
    if prompt_yes_no("Do you already have a directory containing prompt files?"):
        path = prompt_for_directory("Enter the path to your existing prompts directory")
        if path and path != "done":
            return path
    return "prompts"


def _ask_log_directory(paths):
    default_dir = paths.home / DEFAULT_LOG_DIR
    console.print(f"\nLogs will be saved in: {default_dir}/")
    if prompt_yes_no("Would you like to use a different directory for logs?"):
        path = prompt_for_directory("Enter custom path for log files")
        if path and path != "done":
            return path
    try:
        default_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise PathError(f"Failed to create log directory: {e}") from e
    return str(default_dir)


def run_setup(paths):
    """Interactively build and save a config file.

    Returns True if a config was written, False if the user kept the
    existing one or cancelled.

    Raises:
        PathError: If a directory cannot be created or validated.
        ConfigError: If the config cannot be written.
    """
    if paths.config_exists():
        display_info("Existing Query-GGUF configuration found.")
        if not prompt_yes_no("Do you want to create a new configuration?"):
            display_info("Keeping existing configuration.")
            return False
        backup = backup_existing_config(paths)
        display_info(f"Created backup of existing config: {backup}")

    console.print("\n[bold]=== Query-GGUF Setup Wizard ===[/bold]")
    create_blank_prompt(paths)

    result = SetupResult()
    llama_cli_path = _ask_llama_cli()
    if llama_cli_path is None:
        return False
    result.llama_cli_path = llama_cli_path

    directories = _ask_model_directories()
    if directories is None:
        return False
    result.model_directories = directories

    result.prompt_directory = _ask_prompt_directory(paths)

    result.logging_enabled = prompt_yes_no("Enable logging?")
    if result.logging_enabled:
        result.log_directory_path = _ask_log_directory(paths)

    validate_setup(result)
    write_document(paths.config_file, generate_config_text(result))
    display_info(f"Configuration saved to: {paths.config_file}")
    return True

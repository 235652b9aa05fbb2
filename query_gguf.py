#!/usr/bin/env python3
"""Query-GGUF: pick a saved chat mode and start llama-cli in a new terminal."""

import argparse
import dataclasses
import os
import shlex
import subprocess
import sys
from pathlib import Path

from config import load_config
from dir2prompt import create_combined_prompt
from errors import ModeFormatError, PathError, QueryGGUFError
from launcher import launch_mode
from modes import (
    ModeRecord,
    ModeStore,
    SamplingParameters,
    check_encodable,
    validate_thread_count,
)
from paths import AppPaths, normalize_path
from scanner import find_gguf_models, find_prompt_files
from setup_wizard import run_setup
from ui import (
    console,
    display_command,
    display_error,
    display_info,
    display_mode,
    display_modes,
    display_numbered,
    display_parameters,
    get_user_input,
    init_readline,
    print_help,
    print_welcome,
    prompt_number,
    prompt_parameters,
    prompt_yes_no,
    save_readline_history,
    setup_logging,
)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Launch llama.cpp's llama-cli with a saved chat mode"
    )
    parser.add_argument(
        "selection",
        nargs="?",
        help="Mode number, 'manual'/'make' or 'dir'/'directory' (default: menu)",
    )
    parser.add_argument(
        "--base-dir",
        default=None,
        help="Directory holding the config and prompts (default: ~/query_gguf)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show debug logging",
    )
    return parser.parse_args(argv)


def prompt_search_dirs(paths, config):
    """Directories to look for prompt files in, application prompts first."""
    dirs = [paths.prompts_dir]
    configured = Path(config.get("prompt_directory") or "prompts").expanduser()
    if not configured.is_absolute():
        configured = paths.base_dir / configured
    if configured != paths.prompts_dir:
        dirs.append(configured)
    return dirs


def launch(mode, state):
    """Show ``mode`` and start it. Raises QueryGGUFError on failure."""
    display_mode(mode)
    command = launch_mode(state["config"], mode)
    display_command(command)
    display_info("llama-cli launched in a new terminal window.")


def run_saved_mode(number, state):
    mode = state["store"].get(number)
    if mode is None:
        raise QueryGGUFError(f"Invalid mode selection: {number}")
    launch(mode, state)


def run_default_mode(state):
    """Launch the default mode. Returns False if none is set."""
    store = state["store"]
    number = store.get_default_index()
    if number is None:
        display_info("No default mode set. Please make a selection.")
        return False
    mode = store.get_by_number(number)
    if mode is None:
        raise QueryGGUFError(f"Default mode_{number} is missing or invalid")
    launch(mode, state)
    return True


def choose_prompt(state):
    """Let the user pick a prompt file. Returns None to use the blank prompt."""
    if not prompt_yes_no("Would you like to use a prompt file?"):
        return None
    prompts = []
    for directory in prompt_search_dirs(state["paths"], state["config"]):
        prompts.extend(find_prompt_files(directory))
    if not prompts:
        display_info("No prompt files found, using the blank prompt.")
        return None
    display_numbered("Available Prompts", [(Path(p).name, p) for p in prompts])
    number = prompt_number("Select prompt number", len(prompts))
    if number is None:
        return None
    return prompts[number - 1]


def offer_to_save(mode, store):
    """Ask whether to save ``mode`` under a name. Returns the saved record or None."""
    if not prompt_yes_no("Would you like to save this configuration as a named mode?"):
        return None
    # Path problems can't be fixed by retyping the name.
    try:
        check_encodable(mode)
    except ModeFormatError as e:
        display_error(f"Cannot save this mode: {e}")
        return None
    while True:
        name = get_user_input("Enter a name for this mode: ")
        if name is None:
            return None
        if not name:
            display_error("Mode name cannot be empty.")
            continue
        description = get_user_input("Enter a brief description for this mode: ") or ""
        candidate = dataclasses.replace(mode, name=name, description=description)
        make_default = prompt_yes_no("Would you like to make this the default mode?")
        try:
            number = store.append(candidate, make_default=make_default)
        except ModeFormatError as e:
            display_error(f"{e}. Please try again.")
            continue
        display_info(f"Mode '{name}' saved as mode_{number}.")
        return candidate


def run_manual_mode(state):
    """Build a mode by hand, offer to save it, then launch it."""
    paths, config = state["paths"], state["config"]
    console.print("\n[bold]=== Manual Mode Setup ===[/bold]")

    models = find_gguf_models(config["gguf_model_directories"], paths.home)
    if not models:
        raise QueryGGUFError("No GGUF models found in configured directories")
    display_numbered("Available Models", [(m.display_name, m.full_path) for m in models])
    number = prompt_number("Select model number", len(models))
    if number is None:
        return False

    prompt_path = choose_prompt(state) or str(paths.blank_prompt)

    params = SamplingParameters()
    if prompt_yes_no("Would you like to modify default parameters?"):
        prompt_parameters(params)
        params.thread_count = validate_thread_count(params.thread_count)
    console.print("\nParameters:")
    display_parameters(params)

    mode = ModeRecord(
        model_path=models[number - 1].full_path,
        prompt_path=prompt_path,
        parameters=params,
    )
    mode = offer_to_save(mode, state["store"]) or mode
    launch(mode, state)
    return True


def run_directory_mode(state):
    """Launch a saved mode with a directory's files appended to its prompt."""
    console.print("\n[bold]Directory Mode Setup[/bold]")
    answer = get_user_input("Enter directory path to scan: ")
    if not answer:
        return False
    directory = normalize_path(answer)

    modes = state["store"].list_all()
    if not modes:
        raise QueryGGUFError("No saved modes to use")
    display_modes(modes)
    number = prompt_number("Enter mode number to use", len(modes))
    if number is None:
        return False

    mode = modes[number - 1]
    combined = create_combined_prompt(
        mode.prompt_path, directory, state["paths"].prompts_dir
    )
    launch(dataclasses.replace(mode, prompt_path=combined), state)
    return True


def set_default_mode(arg, state):
    store = state["store"]
    try:
        number = int(arg)
    except ValueError:
        display_error("Usage: default <mode number>")
        return
    key = store.number_at(number)
    if key is None:
        count = len(store.list_all())
        display_error(f"Mode number must be between 1 and {count}.")
        return
    store.set_default_index(key)
    display_info(f"Default mode set to {number}.")


def open_config_in_editor(paths):
    """Open the config file in $EDITOR (nano, or notepad on Windows)."""
    if not paths.config_exists():
        raise QueryGGUFError(f"Configuration file not found at: {paths.config_file}")
    default_editor = "notepad" if sys.platform.startswith("win") else "nano"
    editor = os.environ.get("EDITOR") or default_editor
    display_info(f"Opening {paths.config_file} with {editor}")
    try:
        result = subprocess.run(shlex.split(editor) + [str(paths.config_file)])
    except OSError as e:
        raise QueryGGUFError(f"Failed to launch editor '{editor}': {e}") from e
    if result.returncode != 0:
        raise QueryGGUFError(f"Editor '{editor}' exited with status {result.returncode}")


def handle_selection(choice, state):
    """Act on a mode number or command. Returns True once llama-cli is launched.

    Raises:
        QueryGGUFError: If the selection is invalid or the launch fails.
    """
    choice = choice.strip().lower()
    if choice in ("make", "manual"):
        return run_manual_mode(state)
    if choice in ("dir", "directory"):
        return run_directory_mode(state)
    try:
        number = int(choice)
    except ValueError:
        raise QueryGGUFError(f"Invalid selection: {choice}") from None
    run_saved_mode(number, state)
    return True


def menu_loop(state):
    """Show the menu until a mode is launched or the user quits."""
    while True:
        store = state["store"]
        default = store.get_default_index()
        display_modes(
            store.list_all(),
            None if default is None else store.position_of(default),
        )
        text = get_user_input("Enter selection (? for help): ")
        if text is None:
            return
        parts = text.lower().split(None, 1)
        cmd = parts[0] if parts else ""
        arg = parts[1] if len(parts) > 1 else ""

        try:
            if cmd in ("quit", "q", "exit"):
                return
            elif cmd in ("?", "help"):
                print_help()
            elif cmd == "":
                if run_default_mode(state):
                    return
            elif cmd == "config":
                open_config_in_editor(state["paths"])
                state["config"] = load_config(state["paths"])
            elif cmd == "default":
                set_default_mode(arg, state)
            elif handle_selection(cmd, state):
                return
        except QueryGGUFError as e:
            display_error(str(e))
        console.print()


def main(argv=None):
    args = parse_args(argv)
    setup_logging(verbose=args.verbose)

    try:
        if args.base_dir:
            paths = AppPaths.from_base_dir(args.base_dir)
        else:
            paths = AppPaths.default()
        paths.ensure_dirs()
    except (RuntimeError, PathError) as e:
        display_error(f"Could not determine application directory: {e}")
        return 1

    print_welcome()
    try:
        if not paths.config_exists():
            display_info("No configuration found. Starting setup...")
            if not run_setup(paths):
                display_error("Setup was not completed.")
                return 1
    except QueryGGUFError as e:
        display_error(f"Setup failed: {e}")
        return 1

    config = load_config(paths)
    if config["logging_enabled"] and config["log_directory_path"]:
        setup_logging(verbose=args.verbose, log_directory=config["log_directory_path"])

    state = {
        "paths": paths,
        "config": config,
        "store": ModeStore(paths),
    }

    if args.selection:
        try:
            handle_selection(args.selection, state)
        except QueryGGUFError as e:
            display_error(str(e))
            return 1
        return 0

    init_readline(paths.history_file)
    try:
        menu_loop(state)
    finally:
        save_readline_history(paths.history_file)
    display_info("Goodbye!")
    return 0


if __name__ == "__main__":
    sys.exit(main())

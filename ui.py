import logging
import readline
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

HISTORY_MAX = 1000
LOG_FILE_NAME = "query_gguf.log"

COMMANDS = [
    "config",
    "default",
    "dir",
    "directory",
    "exit",
    "make",
    "manual",
    "quit",
]

theme = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "mode_name": "bold blue",
    }
)

console = Console(theme=theme)
err_console = Console(theme=theme, stderr=True)


def setup_logging(verbose=False, log_directory=None):
    """Send log records to stderr through rich, and optionally to a file.

    Warnings and above are shown by default; ``verbose`` lowers that to
    DEBUG. With ``log_directory`` every record at INFO or above is also
    appended to query_gguf.log in that directory.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    rich_handler = RichHandler(console=err_console, show_path=False)
    rich_handler.setLevel(level)
    root.addHandler(rich_handler)

    if log_directory:
        log_path = Path(log_directory).expanduser() / LOG_FILE_NAME
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path, encoding="utf-8")
        except OSError as e:
            display_warning(f"Logging to {log_path} disabled: {e}")
        else:
            file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
            file_handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
            root.addHandler(file_handler)


def print_welcome():
    console.print()
    console.print("[bold]Query-GGUF[/bold] (llama.cpp llama-cli)", style="info")


def print_help():
    table = Table(title="Commands", show_header=True, header_style="bold")
    table.add_column("Command", style="bold cyan")
    table.add_column("Description")
    table.add_row("<number>", "Launch a saved mode")
    table.add_row("(enter)", "Launch the default mode")
    table.add_row("make, manual", "Pick a model and parameters, optionally save")
    table.add_row("dir, directory", "Launch a mode with a directory in the prompt")
    table.add_row("default <number>", "Set the default mode")
    table.add_row("config", "Open the config file in an editor")
    table.add_row("quit, q, exit", "Quit")
    console.print(table)


def display_modes(modes, default_index=None):
    if not modes:
        console.print("[info]No saved modes. Type 'make' to create one.[/info]")
        return
    table = Table(title="Available Modes", show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Name", style="mode_name")
    table.add_column("Description")
    table.add_column("Default")
    for number, mode in enumerate(modes, start=1):
        marker = "*" if number == default_index else ""
        table.add_row(str(number), mode.name, mode.description, marker)
    console.print(table)


def display_parameters(params):
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Parameter", style="bold cyan")
    table.add_column("Value")
    table.add_row("Temperature", str(params.temperature))
    table.add_row("Top-K", str(params.top_k))
    table.add_row("Top-P", str(params.top_p))
    table.add_row("Context Size", str(params.context_size))
    table.add_row("Threads", str(params.thread_count))
    table.add_row("GPU Layers", str(params.gpu_layers))
    table.add_row("Interactive First", str(params.interactive_first).lower())
    console.print(table)


def display_mode(mode):
    name = escape(mode.name or "(unnamed)")
    console.print(f"\nSelected mode: [mode_name]{name}[/mode_name]")
    console.print(f"Model: {escape(mode.model_path)}")
    console.print(f"Prompt: {escape(mode.prompt_path)}")
    console.print("Parameters:")
    display_parameters(mode.parameters)


def display_numbered(title, items):
    """Print ``items`` as a 1-based numbered table."""
    table = Table(title=title, show_header=False, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Name", style="bold cyan")
    table.add_column("Path", style="dim")
    for number, (name, path) in enumerate(items, start=1):
        table.add_row(str(number), name, str(path))
    console.print(table)


def display_command(command):
    console.print(f"[dim]Command: {escape(command)}[/dim]")


def display_info(msg):
    console.print(f"[info]{escape(msg)}[/info]")


def display_warning(msg):
    console.print(f"[warning]Warning: {escape(msg)}[/warning]")


def display_error(msg):
    err_console.print(f"[error]Error: {escape(msg)}[/error]")


def _command_completer(text, state):
    """Readline completer for menu commands."""
    matches = [c for c in COMMANDS if c.startswith(text)]
    if state < len(matches):
        return matches[state]
    return None


def init_readline(history_file):
    """Load readline history from disk and configure tab-completion."""
    history_file = Path(history_file)
    try:
        history_file.parent.mkdir(parents=True, exist_ok=True)
        readline.read_history_file(history_file)
    except FileNotFoundError:
        pass
    except OSError as e:
        logging.getLogger(__name__).debug("Could not load history: %s", e)
    readline.set_history_length(HISTORY_MAX)
    readline.set_completer(_command_completer)
    readline.set_completer_delims(" ")
    readline.parse_and_bind("tab: complete")


def save_readline_history(history_file):
    """Save readline history to disk."""
    try:
        readline.write_history_file(history_file)
    except OSError:
        pass


def get_user_input(prompt):
    """Read one line from the user. Returns None on EOF or Ctrl-C."""
    # ANSI codes wrapped in \x01/\x02 so readline computes the visible width.
    rl_prompt = f"\x01\033[1;32m\x02{prompt}\x01\033[0m\x02"
    try:
        return input(rl_prompt).strip()
    except (EOFError, KeyboardInterrupt):
        console.print()
        return None


def prompt_yes_no(question):
    """Ask until the user answers y/n. EOF counts as no."""
    while True:
        answer = get_user_input(f"{question} (y/n): ")
        if answer is None:
            return False
        answer = answer.lower()
        if answer in ("y", "yes"):
            return True
        if answer in ("n", "no"):
            return False
        display_info("Please enter 'y' or 'n'")


def prompt_number(question, maximum):
    """Ask for a number between 1 and ``maximum``. Returns None if cancelled."""
    while True:
        answer = get_user_input(f"{question} (1-{maximum}): ")
        if not answer:
            return None
        try:
            number = int(answer)
        except ValueError:
            display_error("Please enter a valid number.")
            continue
        if 1 <= number <= maximum:
            return number
        display_error(f"Please enter a number between 1 and {maximum}.")


def prompt_value(label, default, convert):
    """Ask for one value, keeping ``default`` on empty input.

    Re-prompts until ``convert`` accepts the input.
    """
    while True:
        answer = get_user_input(f"{label} (default {default}): ")
        if not answer:
            return default
        try:
            return convert(answer)
        except ValueError:
            expected = "a number" if convert is float else "a whole number"
            display_error(f"{label} must be {expected}.")


def prompt_parameters(params):
    """Walk the user through every sampling parameter, editing in place."""
    console.print("\nEnter new values (or press Enter to keep default):")
    params.temperature = prompt_value("Temperature", params.temperature, float)
    params.top_k = prompt_value("Top-K sampling", params.top_k, int)
    params.top_p = prompt_value("Top-P sampling", params.top_p, float)
    params.context_size = prompt_value(
        "Context window size", params.context_size, int
    )
    params.thread_count = prompt_value(
        "Thread count [CPU count - 1]", params.thread_count, int
    )
    params.gpu_layers = prompt_value(
        "Number of GPU layers, 0 for CPU-only", params.gpu_layers, int
    )
    params.interactive_first = prompt_yes_no("Enable interactive-first mode?")
    return params

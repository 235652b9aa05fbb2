import logging
import os
import shlex
import shutil
import subprocess
import sys

from errors import LaunchError

logger = logging.getLogger(__name__)

LINUX_TERMINALS = ["xterm", "gnome-terminal", "konsole", "xfce4-terminal"]
PAUSE = "read -p 'Press Enter to close...'"


def build_command(llama_cli_path, mode):
    """Return the llama-cli argv for ``mode``."""
    params = mode.parameters
    argv = [
        llama_cli_path,
        "-m", mode.model_path,
        "--file", mode.prompt_path,
        "--temp", str(params.temperature),
        "--top-k", str(params.top_k),
        "--top-p", str(params.top_p),
        "--ctx-size", str(params.context_size),
        "--threads", str(params.thread_count),
    ]
    if params.gpu_layers > 0:
        argv += ["--n-gpu-layers", str(params.gpu_layers)]
    if params.interactive_first:
        argv.append("--interactive-first")
    argv.append("--no-display-prompt")
    return argv


def format_command(argv, platform=None):
    """Quote ``argv`` into one command string for the target shell."""
    platform = platform or sys.platform
    if platform.startswith("win"):
        return subprocess.list2cmdline(argv)
    return shlex.join(argv)


def _applescript_string(text):
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def terminal_command(command, platform=None, which=shutil.which):
    """Return the argv that runs ``command`` in a new terminal window.

    On Linux the first installed terminal from LINUX_TERMINALS is used,
    and the window waits for Enter after llama-cli exits.

    Raises:
        LaunchError: If no terminal is available or the OS is unsupported.
    """
    platform = platform or sys.platform
    if platform.startswith("win"):
        return ["cmd", "/C", "start", "cmd", "/K", command]
    if platform == "darwin":
        script = f"tell application \"Terminal\" to do script {_applescript_string(command)}"
        return ["osascript", "-e", script]
    if platform.startswith("linux"):
        script = f"{command}; {PAUSE}"
        for terminal in LINUX_TERMINALS:
            if which(terminal) is None:
                continue
            if terminal == "gnome-terminal":
                return [terminal, "--", "bash", "-c", script]
            if terminal == "xfce4-terminal":
                return [terminal, "-x", "bash", "-c", script]
            return [terminal, "-e", "bash", "-c", script]
        raise LaunchError(
            f"No terminal emulator found (tried {', '.join(LINUX_TERMINALS)})"
        )
    raise LaunchError(f"Unsupported operating system: {platform}")


def launch_in_terminal(command):
    """Start ``command`` in a new terminal window and return immediately.

    The terminal runs in its own session; nothing waits for it or reads
    its output.

    Raises:
        LaunchError: If the terminal could not be started.
    """
    argv = terminal_command(command)
    logger.debug("Spawning terminal: %s", argv)
    kwargs = {
        "stdin": subprocess.DEVNULL,
        "stdout": subprocess.DEVNULL,
        "stderr": subprocess.DEVNULL,
    }
    if os.name == "nt":
        kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
    else:
        kwargs["start_new_session"] = True
    try:
        subprocess.Popen(argv, **kwargs)
    except OSError as e:
        raise LaunchError(f"Failed to launch {argv[0]}: {e}") from e


def launch_mode(config, mode):
    """Launch llama-cli for ``mode`` in a new terminal.

    Returns the command string that was run.

    Raises:
        LaunchError: If llama_cli_path is not configured or the launch fails.
    """
    llama_cli_path = config.get("llama_cli_path")
    if not llama_cli_path:
        raise LaunchError("llama_cli_path not found in configuration")
    command = format_command(build_command(llama_cli_path, mode))
    launch_in_terminal(command)
    logger.info("Launched %s", command)
    return command

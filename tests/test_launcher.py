import subprocess
from unittest import mock

import pytest

import launcher
from errors import LaunchError
from launcher import build_command, format_command, launch_in_terminal, launch_mode, terminal_command
from modes import ModeRecord, SamplingParameters


def make_mode(**params):
    return ModeRecord(
        model_path="/models/my model.gguf",
        prompt_path="/prompts/x.txt",
        parameters=SamplingParameters(**params),
        name="Fast",
        description="quick",
    )


class TestBuildCommand:
    def test_cpu_only_interactive(self):
        argv = build_command("/opt/llama-cli", make_mode(thread_count=4))
        assert argv == [
            "/opt/llama-cli",
            "-m", "/models/my model.gguf",
            "--file", "/prompts/x.txt",
            "--temp", "0.8",
            "--top-k", "40",
            "--top-p", "0.9",
            "--ctx-size", "2000",
            "--threads", "4",
            "--interactive-first",
            "--no-display-prompt",
        ]

    def test_gpu_layers_and_no_interactive_first(self):
        argv = build_command("llama-cli", make_mode(gpu_layers=33, interactive_first=False))
        assert argv[argv.index("--n-gpu-layers") + 1] == "33"
        assert "--interactive-first" not in argv
        assert argv[-1] == "--no-display-prompt"

    def test_format_command_quotes_spaces(self):
        assert format_command(["a b", "c"], platform="linux") == "'a b' c"
        assert format_command(["a b", "c"], platform="win32") == '"a b" c'


class TestTerminalCommand:
    def test_linux_uses_first_installed_terminal(self):
        installed = {"konsole", "xfce4-terminal"}
        argv = terminal_command(
            "llama-cli -m x", platform="linux",
            which=lambda name: name if name in installed else None,
        )
        assert argv[:4] == ["konsole", "-e", "bash", "-c"]
        assert argv[4].startswith("llama-cli -m x; read -p")

    def test_gnome_terminal_form(self):
        argv = terminal_command(
            "cmd", platform="linux",
            which=lambda name: name if name == "gnome-terminal" else None,
        )
        assert argv[:4] == ["gnome-terminal", "--", "bash", "-c"]

    def test_no_terminal_found(self):
        with pytest.raises(LaunchError, match="No terminal emulator"):
            terminal_command("cmd", platform="linux", which=lambda name: None)

    def test_macos_escapes_quotes(self):
        argv = terminal_command('"/opt/llama cli" -m x', platform="darwin")
        assert argv[:2] == ["osascript", "-e"]
        assert argv[2] == (
            'tell application "Terminal" to do script "\\"/opt/llama cli\\" -m x"'
        )

    def test_windows(self):
        assert terminal_command("cmd", platform="win32") == [
            "cmd", "/C", "start", "cmd", "/K", "cmd",
        ]

    def test_unsupported_platform(self):
        with pytest.raises(LaunchError, match="Unsupported"):
            terminal_command("cmd", platform="sunos5")


class TestLaunch:
    def test_spawns_detached(self, monkeypatch):
        monkeypatch.setattr(launcher, "terminal_command", lambda command: ["xterm", command])
        with mock.patch.object(launcher.subprocess, "Popen") as popen:
            launch_in_terminal("llama-cli")
        args, kwargs = popen.call_args
        assert args[0] == ["xterm", "llama-cli"]
        assert kwargs["start_new_session"] is True
        assert kwargs["stdout"] is subprocess.DEVNULL
        popen.return_value.wait.assert_not_called()

    def test_spawn_failure(self, monkeypatch):
        monkeypatch.setattr(launcher, "terminal_command", lambda command: ["xterm", command])
        with mock.patch.object(launcher.subprocess, "Popen", side_effect=FileNotFoundError("xterm")):
            with pytest.raises(LaunchError, match="Failed to launch xterm"):
                launch_in_terminal("llama-cli")

    def test_launch_mode_requires_llama_cli_path(self):
        with pytest.raises(LaunchError, match="llama_cli_path"):
            launch_mode({"llama_cli_path": ""}, make_mode())

    def test_launch_mode_runs_formatted_command(self, monkeypatch):
        launched = []
        monkeypatch.setattr(launcher, "launch_in_terminal", launched.append)
        monkeypatch.setattr(launcher.sys, "platform", "linux")
        command = launch_mode({"llama_cli_path": "/opt/llama-cli"}, make_mode())
        assert launched == [command]
        assert command.startswith("/opt/llama-cli -m '/models/my model.gguf' --file")

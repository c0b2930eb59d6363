"""Core utility functions: console output, logging, command execution."""

import os
import shutil
import subprocess

from rich.console import Console

console = Console()

LOG_DIR_ENV = "LOUSY_AGENTS_LOG_DIR"


def resolve_logs_dir() -> str | None:
    """Return the log directory from LOUSY_AGENTS_LOG_DIR, creating it if needed.

    Returns None when file logging is not enabled.
    """
    logs_dir = os.environ.get(LOG_DIR_ENV, "")
    if not logs_dir:
        return None
    os.makedirs(logs_dir, exist_ok=True)
    return logs_dir


def log(component: str, message: str, style: str = "") -> None:
    """Write a message to the console (with optional style) and the component log file."""
    if style:
        console.print(message, style=style)
    else:
        console.print(message)

    try:
        logs_dir = resolve_logs_dir()
        if logs_dir is None:
            return
        log_file = os.path.join(logs_dir, f"{component}.log")
        with open(log_file, "a", encoding="utf-8") as f:
            f.write(message + "\n")
    except Exception:
        pass  # Never break a command over logging


def check_command(name: str) -> bool:
    """Check if a command is available on PATH."""
    return shutil.which(name) is not None


def run_cmd(
    args: list[str], capture: bool = False, quiet: bool = False, cwd: str | None = None,
    input_text: str | None = None,
) -> subprocess.CompletedProcess:
    """Run a command, optionally capturing output.

    A missing executable is reported as a failed CompletedProcess (exit 127)
    rather than an exception, so callers only ever check returncode.
    """
    kwargs = {}
    if capture or quiet:
        kwargs["stdout"] = subprocess.PIPE
        kwargs["stderr"] = subprocess.PIPE
        kwargs["text"] = True
    if input_text is not None:
        kwargs["input"] = input_text
        kwargs["text"] = True
    try:
        return subprocess.run(args, cwd=cwd, **kwargs)
    except FileNotFoundError:
        return subprocess.CompletedProcess(args, 127, stdout="", stderr=f"{args[0]}: command not found")


def read_text_if_exists(path: str) -> str | None:
    """Read a UTF-8 text file as-is (line endings untouched). Returns None if it is missing or unreadable."""
    if not os.path.isfile(path):
        return None
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            return f.read()
    except (OSError, UnicodeDecodeError):
        return None

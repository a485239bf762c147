"""Utility functions for the bootstrapper."""
import os
import shutil
import socket
import sys
from datetime import datetime
from typing import Optional, Sequence, Union
from pathlib import Path

import sh


# Shell convention for "command not found".
COMMAND_NOT_FOUND = 127

_verbose = False


def command_exists(command: str) -> bool:
    """Check if a command exists in the system PATH."""
    return shutil.which(command) is not None


def is_root() -> bool:
    """Check if the script is running as root."""
    return os.geteuid() == 0


def get_host_label() -> str:
    """Get the hostname used in key comments, or 'unknown'."""
    try:
        label = socket.gethostname().strip()
    except OSError:
        return "unknown"
    return label or "unknown"


def timestamp() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def _log_line(level: str, message: str, stream=None) -> None:
    print(f"{timestamp()} [{level}] {message}", file=stream or sys.stdout)


def log_info(message: str) -> None:
    """Log an informational message."""
    _log_line("INFO", message)


def log_warn(message: str) -> None:
    """Log a warning."""
    _log_line("WARN", message)


def log_error(message: str) -> None:
    """Log an error to stderr."""
    _log_line("ERROR", message, sys.stderr)


def log_dry_run(message: str) -> None:
    """Log an action that would have been performed."""
    _log_line("DRY-RUN", message)


def log_debug(message: str) -> None:
    """Log a message only when verbose output is enabled."""
    if _verbose:
        _log_line("DEBUG", message)


def log_action(message: str) -> None:
    """Log an action being performed."""
    print(f"  -> {message}")


def setup_logging(verbose: bool = False) -> None:
    """Enable or disable debug output."""
    global _verbose
    _verbose = verbose


def run_command(argv: Sequence[str], cwd: Optional[Union[str, Path]] = None) -> int:
    """Run a command in the foreground and return its exit code."""
    log_debug(f"+ {' '.join(str(arg) for arg in argv)}")
    try:
        command = sh.Command(str(argv[0]))
    except sh.CommandNotFound:
        log_error(f"{argv[0]}: command not found")
        return COMMAND_NOT_FOUND
    try:
        command(*[str(arg) for arg in argv[1:]], _cwd=str(cwd) if cwd else None, _fg=True)
    except sh.ErrorReturnCode as e:
        return e.exit_code
    return 0


def run_privileged(argv: Sequence[str], cwd: Optional[Union[str, Path]] = None) -> int:
    """Run a command as root, through sudo when we are not root already."""
    if is_root() or not command_exists("sudo"):
        return run_command(argv, cwd=cwd)
    return run_command(["sudo", *argv], cwd=cwd)

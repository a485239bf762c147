"""Run configuration for a single bootstrapper invocation."""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple


DEFAULT_BRANCH = "main"
DEFAULT_SCRIPT_PATH = "bootstrap.sh"
DEFAULT_KEY_NAME = "bootstrapper"
TARGET_DIR_NAME = "setup-private"


class InstallMode(str, Enum):
    """How missing tools are handled."""
    PROMPT = "prompt"
    AUTO = "auto"
    DENY = "deny"


def default_public_key_path() -> Path:
    return Path.home() / ".ssh" / f"{DEFAULT_KEY_NAME}.pub"


def default_target_dir() -> Path:
    return Path.home() / TARGET_DIR_NAME


def private_key_from_pub(public_path: Path) -> Path:
    """Strip a trailing ``.pub``; paths without it are returned unchanged."""
    if public_path.name.endswith(".pub"):
        return public_path.with_name(public_path.name[:-len(".pub")])
    return public_path


@dataclass(frozen=True)
class RunConfiguration:
    """Resolved options, built once by the CLI and passed to every step."""
    repo_url: str
    branch: str = DEFAULT_BRANCH
    tag: Optional[str] = None
    script_path: str = DEFAULT_SCRIPT_PATH
    script_args: Tuple[str, ...] = ()
    ssh_pub_key_path: Path = field(default_factory=default_public_key_path)
    target_dir: Path = field(default_factory=default_target_dir)
    install_mode: InstallMode = InstallMode.PROMPT
    dry_run: bool = False
    unattended: bool = False
    verbose: bool = False
    sudo_script: bool = False

    @property
    def private_key_path(self) -> Path:
        return private_key_from_pub(self.ssh_pub_key_path)

    @property
    def uses_default_key_path(self) -> bool:
        return self.ssh_pub_key_path.expanduser() == default_public_key_path()

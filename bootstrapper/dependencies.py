"""Detection and installation of the tools the bootstrapper needs."""
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import typer

from bootstrapper.config import InstallMode
from bootstrapper.errors import DependencyError
from bootstrapper.utils import (
    command_exists, log_info, log_action, log_warn, log_error, log_dry_run, run_command, run_privileged,
)


REQUIRED_TOOLS = ("git", "ssh-keygen")
OPTIONAL_TOOLS = ("qrencode",)


@dataclass(frozen=True)
class PackageManager:
    """One supported package manager and how tools map to its packages."""
    name: str
    binary: str
    install_args: Tuple[str, ...]
    packages: Dict[str, str] = field(default_factory=dict)
    refresh_args: Optional[Tuple[str, ...]] = None
    privileged: bool = True

    def package_for(self, tool: str) -> Optional[str]:
        return self.packages.get(tool)

    def install_command(self, package: str) -> List[str]:
        return [*self.install_args, package]


APT = PackageManager(
    name="apt",
    binary="apt-get",
    install_args=("apt-get", "install", "-y"),
    refresh_args=("apt-get", "update"),
    packages={"ssh-keygen": "openssh-client", "qrencode": "qrencode", "git": "git"},
)
DNF = PackageManager(
    name="dnf",
    binary="dnf",
    install_args=("dnf", "install", "-y"),
    packages={"ssh-keygen": "openssh-clients", "qrencode": "qrencode", "git": "git"},
)
YUM = PackageManager(
    name="yum",
    binary="yum",
    install_args=("yum", "install", "-y"),
    packages={"ssh-keygen": "openssh-clients", "qrencode": "qrencode", "git": "git"},
)
PACMAN = PackageManager(
    name="pacman",
    binary="pacman",
    install_args=("pacman", "-Sy", "--noconfirm"),
    packages={"ssh-keygen": "openssh", "qrencode": "qrencode", "git": "git"},
)
ZYPPER = PackageManager(
    name="zypper",
    binary="zypper",
    install_args=("zypper", "--non-interactive", "install"),
    packages={"ssh-keygen": "openssh", "qrencode": "qrencode", "git": "git"},
)
BREW = PackageManager(
    name="brew",
    binary="brew",
    install_args=("brew", "install"),
    packages={"ssh-keygen": "openssh", "qrencode": "qrencode", "git": "git"},
    privileged=False,
)

# Detection order
PACKAGE_MANAGERS = (APT, DNF, YUM, PACMAN, ZYPPER, BREW)


def detect_package_manager() -> Optional[PackageManager]:
    """Return the first supported package manager found on PATH."""
    for manager in PACKAGE_MANAGERS:
        if command_exists(manager.binary):
            return manager
    return None


def collect_missing(tools: Sequence[str]) -> List[str]:
    """Return the tools that are not on PATH, in the given order."""
    return [tool for tool in tools if not command_exists(tool)]


def install_tools(
    tools: Sequence[str],
    manager: PackageManager,
    dry_run: bool = False,
    run_privileged: Callable[..., int] = run_privileged,
) -> bool:
    """Install tools with the given package manager. Returns False on the first failure."""
    refreshed = False
    for tool in tools:
        package = manager.package_for(tool)
        if package is None:
            log_error(f"No {manager.name} package known for {tool}.")
            return False

        if dry_run:
            if manager.refresh_args and not refreshed:
                log_dry_run(f"Would run {' '.join(manager.refresh_args)}")
                refreshed = True
            log_dry_run(f"Would install {tool} via {manager.name} ({package})")
            continue

        runner = run_privileged if manager.privileged else run_command
        if manager.refresh_args and not refreshed:
            if runner(list(manager.refresh_args)) != 0:
                return False
            refreshed = True

        log_action(f"Installing {tool} via {manager.name} ({package})")
        if runner(manager.install_command(package)) != 0:
            log_error(f"Failed to install {package}.")
            return False
    return True


def _manual_guidance(missing: Sequence[str]) -> str:
    manager = detect_package_manager()
    if manager is None:
        return "Install the tools listed above and run this script again."
    packages = [manager.package_for(tool) or tool for tool in missing]
    return (
        "Install the tools listed above and run this script again, e.g.: "
        + " ".join([*manager.install_args, *packages])
    )


def _fail_missing(required_missing: Sequence[str], optional_missing: Sequence[str]) -> None:
    if required_missing:
        log_error("Missing required tools:")
        for tool in required_missing:
            print(f"  - {tool}")
    if optional_missing:
        log_warn("Missing optional tools (recommended):")
        for tool in optional_missing:
            print(f"  - {tool}")
    message = _manual_guidance([*required_missing, *optional_missing])
    raise DependencyError(message, missing=required_missing or optional_missing)


def ensure_tools(
    required: Sequence[str] = REQUIRED_TOOLS,
    optional: Sequence[str] = OPTIONAL_TOOLS,
    mode: InstallMode = InstallMode.PROMPT,
    dry_run: bool = False,
    unattended: bool = False,
    run_privileged: Callable[..., int] = run_privileged,
) -> None:
    """Make sure required tools exist, installing missing ones according to ``mode``.

    Missing optional tools only produce a warning. Raises DependencyError when a
    required tool is still missing or installation was refused.
    """
    required_missing = collect_missing(required)
    optional_missing = collect_missing(optional)
    if not required_missing and not optional_missing:
        log_info("All required tools are available.")
        return

    if mode is InstallMode.PROMPT and dry_run:
        log_dry_run(f"Would prompt before installing: {' '.join(required_missing + optional_missing)}")
        return

    if mode is InstallMode.PROMPT and unattended:
        log_warn("Unattended mode: not prompting to install missing packages.")
        mode = InstallMode.DENY

    if mode is InstallMode.PROMPT:
        if typer.confirm("Allow this script to install missing packages automatically?", default=False):
            mode = InstallMode.AUTO
        else:
            mode = InstallMode.DENY

    if mode is InstallMode.DENY:
        if not required_missing:
            log_warn(f"Optional tooling missing (QR output skipped): {' '.join(optional_missing)}")
            return
        if dry_run:
            log_dry_run(f"Would abort due to missing tools: {' '.join(required_missing)}")
        _fail_missing(required_missing, optional_missing)

    manager = detect_package_manager()
    if manager is None:
        raise DependencyError(
            "Automatic installation requested, but no supported package manager was detected.",
            missing=required_missing + optional_missing,
        )

    if not install_tools(required_missing + optional_missing, manager, dry_run=dry_run,
                         run_privileged=run_privileged):
        _fail_missing(collect_missing(required), collect_missing(optional))

    if dry_run:
        return

    still_required = collect_missing(required)
    if still_required:
        _fail_missing(still_required, collect_missing(optional))

    still_optional = collect_missing(optional)
    if still_optional:
        log_warn(f"Optional tooling missing (QR output skipped): {' '.join(still_optional)}")

"""Execution of the provisioning script from the checkout."""
import os
from pathlib import Path
from typing import Callable, List

from bootstrapper.config import RunConfiguration
from bootstrapper.errors import ScriptNotFoundError
from bootstrapper.utils import log_info, log_dry_run, run_command, run_privileged


def resolve_script_path(config: RunConfiguration) -> Path:
    """Absolute script paths are used as-is, relative ones live in the checkout."""
    script = Path(config.script_path)
    if script.is_absolute():
        return script
    return config.target_dir / script


def script_command(config: RunConfiguration) -> List[str]:
    script = resolve_script_path(config)
    if os.access(script, os.X_OK):
        return [str(script), *config.script_args]
    return ["sh", str(script), *config.script_args]


def run_provisioning_script(
    config: RunConfiguration,
    run_privileged: Callable[..., int] = run_privileged,
) -> int:
    """Run the provisioning script and return its exit code unchanged."""
    script = resolve_script_path(config)
    if config.dry_run:
        log_dry_run(f"Would run target script {script}")
        return 0

    if not script.is_file():
        raise ScriptNotFoundError(f"Target script {script} not found.")

    command = script_command(config)
    # Relative scripts run from the checkout root
    cwd = None if Path(config.script_path).is_absolute() else config.target_dir
    log_info(f"Running {script}" + (" with sudo" if config.sudo_script else ""))
    if config.sudo_script:
        return run_privileged(command, cwd=cwd)
    return run_command(command, cwd=cwd)

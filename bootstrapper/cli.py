"""CLI interface for the bootstrapper."""
from pathlib import Path
from typing import List, Optional

import typer
from typer.core import TyperCommand

from . import utils
from . import steps
from .config import DEFAULT_BRANCH, DEFAULT_SCRIPT_PATH, InstallMode, RunConfiguration, default_public_key_path
from .errors import BootstrapError


FORWARDED_ARGS = "forwarded_args"


class ForwardingCommand(TyperCommand):
    """Everything after the first ``--`` goes to the provisioning script.

    Click would otherwise use those tokens to fill the optional BRANCH and
    SCRIPT_PATH slots, so ``URL -- --flag`` would check out branch ``--flag``.
    """

    def parse_args(self, ctx, args):
        if "--" in args:
            split = args.index("--")
            ctx.meta[FORWARDED_ARGS] = list(args[split + 1:])
            args = args[:split]
        return super().parse_args(ctx, args)


def resolve_install_mode(auto_install: bool, no_install: bool) -> InstallMode:
    if auto_install and no_install:
        raise typer.BadParameter("--auto-install and --no-install are mutually exclusive.")
    if auto_install:
        return InstallMode.AUTO
    if no_install:
        return InstallMode.DENY
    return InstallMode.PROMPT


def bootstrap(
    ctx: typer.Context,
    repo_url: str = typer.Argument(..., help="SSH URL of the private provisioning repository"),
    branch: str = typer.Argument(DEFAULT_BRANCH, help="Branch to check out"),
    script_path: str = typer.Argument(DEFAULT_SCRIPT_PATH, help="Script to run, relative to the checkout"),
    script_args: Optional[List[str]] = typer.Argument(None, help="Arguments forwarded to the script (after --)"),
    tag: Optional[str] = typer.Option(None, "--tag", help="Check out this tag instead of the branch"),
    ssh_pub_key: Optional[str] = typer.Option(
        None, "--ssh-pub-key", help="Path to the SSH public key (default: ~/.ssh/bootstrapper.pub)"
    ),
    auto_install: bool = typer.Option(False, "--auto-install", help="Automatically install missing dependencies"),
    no_install: bool = typer.Option(False, "--no-install", help="Never install dependencies (fail if missing)"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Describe actions without making changes"),
    unattended: bool = typer.Option(
        False, "--unattended", help="Skip all interactive confirmations (required for orphaned key fallback)"
    ),
    sudo_script: bool = typer.Option(False, "--sudo-script", help="Run the provisioning script with sudo"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
):
    """Provision an SSH key, sync the private setup repository and run its bootstrap script."""
    utils.setup_logging(verbose)

    if not repo_url.strip():
        raise typer.BadParameter("Repository URL cannot be empty.", param_hint="REPO_URL")
    if ssh_pub_key is not None and not ssh_pub_key.strip():
        raise typer.BadParameter("SSH public key path cannot be empty.", param_hint="--ssh-pub-key")

    config = RunConfiguration(
        repo_url=repo_url,
        branch=branch,
        tag=tag or None,
        script_path=script_path,
        script_args=tuple(script_args or ()) + tuple(ctx.meta.get(FORWARDED_ARGS, ())),
        ssh_pub_key_path=Path(ssh_pub_key).expanduser() if ssh_pub_key else default_public_key_path(),
        install_mode=resolve_install_mode(auto_install, no_install),
        dry_run=dry_run,
        unattended=unattended,
        verbose=verbose,
        sudo_script=sudo_script,
    )

    try:
        exit_code = steps.bootstrap_machine(config)
    except BootstrapError as e:
        utils.log_error(str(e))
        raise typer.Exit(e.exit_code)

    if config.dry_run:
        typer.echo("✅ Dry run complete, no changes made.")
    elif exit_code == 0:
        typer.echo("✅ Bootstrap complete!")
    raise typer.Exit(exit_code)


app = typer.Typer(
    name="bootstrapper",
    help="Bootstrap a fresh machine from a private provisioning repository.",
    add_completion=False,
)
app.command(
    cls=ForwardingCommand,
    help="Provision an SSH key, sync the private setup repository and run its bootstrap script.",
    epilog="Example: bootstrapper --auto-install git@github.com:user/setup-private.git main scripts/setup.sh -- --flag value",
)(bootstrap)


if __name__ == "__main__":
    app()

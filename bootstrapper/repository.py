"""Idempotent clone/update of the provisioning repository."""
import os
import shlex
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import sh

from bootstrapper.config import RunConfiguration
from bootstrapper.errors import NotARepositoryError, OriginMismatchError, RepositorySyncError
from bootstrapper.keys import KeyPair
from bootstrapper.utils import log_info, log_action, log_dry_run, log_debug


# accept-new records unknown host keys but still rejects changed ones
HOST_KEY_OPTIONS = ("-o", "StrictHostKeyChecking=accept-new")


@dataclass(frozen=True)
class RepositoryState:
    """The on-disk provisioning checkout and the ref it should end up at."""
    target_dir: Path
    remote_url: str
    branch: str
    tag: Optional[str] = None

    @property
    def exists(self) -> bool:
        return self.target_dir.exists()

    @property
    def pinned_ref(self) -> str:
        if self.tag:
            return f"tag {self.tag}"
        return f"branch {self.branch}"

    @classmethod
    def from_config(cls, config: RunConfiguration) -> "RepositoryState":
        return cls(
            target_dir=config.target_dir,
            remote_url=config.repo_url,
            branch=config.branch,
            tag=config.tag,
        )


def git(*args, **kwargs):
    log_debug(f"+ git {' '.join(str(arg) for arg in args)}")
    try:
        return sh.git(*args, **kwargs)
    except sh.CommandNotFound as e:
        raise RepositorySyncError("git not found on PATH; install git and run again.") from e


def _stderr(error: sh.ErrorReturnCode) -> str:
    return error.stderr.decode(errors="replace").strip()


def ambient_ssh_command() -> str:
    return shlex.join(["ssh", "-o", "BatchMode=yes", *HOST_KEY_OPTIONS])


def identity_ssh_command(private_key: Path) -> str:
    """ssh invocation that only offers the bootstrapper key."""
    return shlex.join(["ssh", "-i", str(private_key), "-o", "IdentitiesOnly=yes", *HOST_KEY_OPTIONS])


def git_env(ssh_command: str) -> Dict[str, str]:
    env = dict(os.environ)
    env["GIT_SSH_COMMAND"] = ssh_command
    env["GIT_TERMINAL_PROMPT"] = "0"
    return env


def select_ssh_command(state: RepositoryState, key: KeyPair) -> str:
    """Prefer the caller's own SSH setup when it can already reach the remote."""
    try:
        git("ls-remote", "--heads", state.remote_url, _env=git_env(ambient_ssh_command()))
    except sh.ErrorReturnCode:
        log_info(f"Using bootstrapper key {key.private_path} for {state.remote_url}.")
        return identity_ssh_command(key.private_path)
    log_info(f"Existing SSH configuration can reach {state.remote_url}; using it.")
    return ambient_ssh_command()


def clone_commands(state: RepositoryState, destination: Path) -> List[List[str]]:
    """git argument lists that produce a fresh checkout at ``destination``."""
    if state.tag:
        return [
            ["clone", "--depth", "1", state.remote_url, str(destination)],
            ["-C", str(destination), "fetch", "--depth", "1", "origin",
             f"+refs/tags/{state.tag}:refs/tags/{state.tag}"],
            ["-C", str(destination), "checkout", "--force", "--detach", state.tag],
        ]
    return [["clone", "--depth", "1", "--branch", state.branch, state.remote_url, str(destination)]]


def update_commands(state: RepositoryState) -> List[List[str]]:
    """git argument lists that converge an existing checkout onto the requested ref."""
    target = str(state.target_dir)
    if state.tag:
        return [
            ["-C", target, "fetch", "--depth", "1", "--force", "origin",
             f"+refs/tags/{state.tag}:refs/tags/{state.tag}"],
            ["-C", target, "checkout", "--force", "--detach", state.tag],
        ]
    remote_ref = f"origin/{state.branch}"
    return [
        ["-C", target, "fetch", "--depth", "1", "origin",
         f"+refs/heads/{state.branch}:refs/remotes/{remote_ref}"],
        ["-C", target, "checkout", "--force", "-B", state.branch, remote_ref],
        ["-C", target, "reset", "--hard", remote_ref],
    ]


def _run_git_commands(commands: Sequence[Sequence[str]], env: Dict[str, str]) -> None:
    for args in commands:
        try:
            git(*args, _env=env)
        except sh.ErrorReturnCode as e:
            raise RepositorySyncError(f"git {' '.join(args)} failed: {_stderr(e)}") from e


def verify_checkout(state: RepositoryState) -> None:
    """Check the target is a checkout of our remote. Read-only."""
    target = str(state.target_dir)
    try:
        toplevel = str(git("-C", target, "rev-parse", "--show-toplevel")).strip()
    except sh.ErrorReturnCode as e:
        raise NotARepositoryError(f"{target} exists but is not a git repository: {_stderr(e)}") from e
    if Path(toplevel).resolve() != state.target_dir.resolve():
        raise NotARepositoryError(f"{target} exists but is not the root of a git repository (found {toplevel}).")

    try:
        origin = str(git("-C", target, "remote", "get-url", "origin")).strip()
    except sh.ErrorReturnCode as e:
        raise NotARepositoryError(f"{target} has no origin remote: {_stderr(e)}") from e
    if origin != state.remote_url:
        raise OriginMismatchError(
            f"{target} tracks {origin}, not {state.remote_url}. "
            f"Move it out of the way or use the matching repository URL."
        )


def simulate_clone(state: RepositoryState) -> None:
    """Describe a clone, planned against a throwaway directory.

    Dry runs make no network calls, so nothing is cloned. The planned git
    commands are rendered against the scratch path instead of the real target,
    which stays untouched, and the scratch directory is removed on return.
    """
    with tempfile.TemporaryDirectory(prefix="bootstrapper-dry-run-") as scratch:
        destination = Path(scratch) / state.target_dir.name
        log_dry_run(
            f"Would clone {state.remote_url} ({state.pinned_ref}) into {state.target_dir} "
            f"(simulated in {scratch})"
        )
        for args in clone_commands(state, destination):
            log_dry_run(f"Would run: git {' '.join(args)}")


def sync_repository(config: RunConfiguration, key: KeyPair) -> RepositoryState:
    """Clone the provisioning repository or bring an existing checkout to the requested ref."""
    state = RepositoryState.from_config(config)

    if not state.exists:
        if config.dry_run:
            simulate_clone(state)
            return state
        env = git_env(select_ssh_command(state, key))
        log_action(f"Cloning {state.remote_url} ({state.pinned_ref}) into {state.target_dir}")
        _run_git_commands(clone_commands(state, state.target_dir), env)
        return state

    verify_checkout(state)
    log_info(f"Directory {state.target_dir} already exists; updating to {state.pinned_ref}.")
    if config.dry_run:
        for args in update_commands(state):
            log_dry_run(f"Would run: git {' '.join(args)}")
        return state

    env = git_env(select_ssh_command(state, key))
    _run_git_commands(update_commands(state), env)
    return state

"""SSH keypair lifecycle: detection, derivation, generation and orphan recovery.

The key is resolved once per run. ``ensure_ssh_key`` looks at which halves of
the pair exist and returns a ``KeyPair`` describing the usable identity:

    (private, public)  -> reuse as-is
    (private, -)       -> derive the public key from the private key
    (-, public)        -> orphaned public key, see ``recover_orphaned_key``
    (-, -)             -> generate a new ed25519 pair

An orphaned public key is never deleted. Only an unattended run that uses the
default key path moves on to a fresh timestamped pair; everything else stops
so an accidentally deleted private key is not silently replaced.
"""
import os
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Optional

import sh
import typer

from bootstrapper.config import DEFAULT_KEY_NAME, RunConfiguration, private_key_from_pub
from bootstrapper.errors import KeyGenerationError, OrphanedKeyError
from bootstrapper.utils import command_exists, get_host_label, log_info, log_warn, log_dry_run, log_debug


KEY_TYPE = "ed25519"
CONFIRMATION_MESSAGE = "Once you added the key to the remote host, press ENTER to continue..."


@dataclass(frozen=True)
class KeyPair:
    """The SSH identity used for this run."""
    public_path: Path
    private_path: Path
    preexisting: bool = False
    comment: str = ""


def ssh_keygen(*args, **kwargs):
    log_debug(f"+ ssh-keygen {' '.join(str(arg) for arg in args)}")
    try:
        command = sh.Command("ssh-keygen")
    except sh.CommandNotFound as e:
        raise KeyGenerationError("ssh-keygen not found on PATH; install openssh and run again.") from e
    return command(*args, **kwargs)


def qrencode(*args, **kwargs):
    return sh.Command("qrencode")(*args, **kwargs)


def key_comment(host_label: Optional[str] = None) -> str:
    return f"bootstrap-{host_label or get_host_label()}"


def timestamped_public_key_path(directory: Path, now: Optional[datetime] = None) -> Path:
    """Return ``<directory>/bootstrapper_<YYYYMMDDTHHMMSS>.pub``."""
    stamp = (now or datetime.now()).strftime("%Y%m%dT%H%M%S")
    return directory / f"{DEFAULT_KEY_NAME}_{stamp}.pub"


def _ensure_key_dir(directory: Path) -> None:
    if str(directory) in (".", "/"):
        return
    directory.mkdir(parents=True, exist_ok=True)
    os.chmod(directory, 0o700)


def derive_public_key(key: KeyPair, dry_run: bool = False) -> KeyPair:
    """Write the public half of an existing private key."""
    if dry_run:
        log_dry_run(f"Would derive public key {key.public_path} from existing private key {key.private_path}.")
        return replace(key, preexisting=True)

    log_info(f"Deriving missing public key {key.public_path} from {key.private_path}.")
    _ensure_key_dir(key.public_path.parent)
    try:
        ssh_keygen("-y", "-f", str(key.private_path), _out=str(key.public_path))
    except sh.ErrorReturnCode as e:
        raise KeyGenerationError(
            f"Could not derive public key from {key.private_path}: {e.stderr.decode(errors='replace').strip()}"
        ) from e
    os.chmod(key.public_path, 0o644)
    return replace(key, preexisting=True)


def generate_key(key: KeyPair, dry_run: bool = False) -> KeyPair:
    """Generate a new passphrase-less ed25519 keypair."""
    if dry_run:
        log_dry_run(f"Would generate SSH key at {key.private_path} (public {key.public_path})")
        return replace(key, preexisting=False)

    log_info(f"Generating new SSH key at {key.private_path} (public {key.public_path})...")
    _ensure_key_dir(key.private_path.parent)
    try:
        ssh_keygen("-t", KEY_TYPE, "-f", str(key.private_path), "-N", "", "-C", key.comment)
    except sh.ErrorReturnCode as e:
        raise KeyGenerationError(
            f"ssh-keygen failed for {key.private_path}: {e.stderr.decode(errors='replace').strip()}"
        ) from e
    if key.public_path.exists():
        os.chmod(key.public_path, 0o644)
    return replace(key, preexisting=False)


def recover_orphaned_key(key: KeyPair, config: RunConfiguration, now: Optional[datetime] = None) -> KeyPair:
    """Return a fresh timestamped KeyPair, or raise if recovery is not allowed."""
    if not (config.uses_default_key_path and config.unattended):
        raise OrphanedKeyError(
            f"Found orphaned public key at {key.public_path} without private key {key.private_path}. "
            f"Remove it manually or rerun with --unattended to create {DEFAULT_KEY_NAME}_<timestamp>."
        )

    public_path = timestamped_public_key_path(key.public_path.parent, now)
    redirected = replace(key, public_path=public_path, private_path=private_key_from_pub(public_path))
    log_warn(
        f"Detected orphaned bootstrapper public key; switching to {redirected.private_path} "
        f"(public {redirected.public_path})."
    )
    return redirected


def ensure_ssh_key(config: RunConfiguration, now: Optional[datetime] = None) -> KeyPair:
    """Make sure a usable keypair exists and return it."""
    key = KeyPair(
        public_path=config.ssh_pub_key_path,
        private_path=config.private_key_path,
        comment=key_comment(),
    )
    private_exists = key.private_path.is_file()
    public_exists = key.public_path.is_file()

    if private_exists and public_exists:
        log_info(f"SSH key pair ({key.private_path} / {key.public_path}) already exists.")
        return replace(key, preexisting=True)

    if private_exists:
        return derive_public_key(key, dry_run=config.dry_run)

    if public_exists:
        key = recover_orphaned_key(key, config, now)

    return generate_key(key, dry_run=config.dry_run)


def _should_skip_interaction(key: KeyPair, config: RunConfiguration) -> bool:
    return config.unattended and key.preexisting


def show_public_key(key: KeyPair, config: RunConfiguration) -> None:
    """Print the public key and a QR code of it for registration."""
    if _should_skip_interaction(key, config):
        log_info("Skipping public key display in unattended mode (key already present).")
        return

    if not key.public_path.is_file():
        if config.dry_run:
            log_dry_run(f"Would display SSH public key at {key.public_path}")
        return

    public_key = key.public_path.read_text()
    log_info(f"Public SSH key (add this to the remote host from {key.public_path}):")
    print(public_key.strip())

    log_info("QR code representation:")
    if not command_exists("qrencode"):
        log_warn("qrencode not available; install it for QR output.")
        return
    if config.dry_run:
        log_dry_run("Would render QR code via qrencode")
        return
    try:
        print(str(qrencode("-t", "ANSIUTF8", _in=public_key)))
    except sh.ErrorReturnCode as e:
        log_warn(f"qrencode failed: {e.stderr.decode(errors='replace').strip()}")


def wait_for_confirmation(key: KeyPair, config: RunConfiguration, message: str = CONFIRMATION_MESSAGE) -> None:
    """Block until the operator confirms the key has been registered."""
    if config.unattended:
        if key.preexisting:
            log_info("Skipping confirmation prompt in unattended mode (key already present).")
        else:
            log_info("Skipping confirmation prompt in unattended mode.")
        return
    if config.dry_run:
        log_dry_run(f"Would prompt: {message}")
        return
    typer.prompt(message, default="", show_default=False, prompt_suffix="")

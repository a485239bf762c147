"""Bootstrap workflow steps."""
from bootstrapper.config import RunConfiguration
from bootstrapper.keys import KeyPair
from bootstrapper.utils import log_info


def install_dependencies(config: RunConfiguration) -> None:
    """Make sure git, ssh-keygen and (optionally) qrencode are available."""
    log_info("Checking required tools...")

    from bootstrapper.dependencies import ensure_tools, REQUIRED_TOOLS, OPTIONAL_TOOLS
    ensure_tools(
        REQUIRED_TOOLS,
        OPTIONAL_TOOLS,
        config.install_mode,
        dry_run=config.dry_run,
        unattended=config.unattended,
    )


def prepare_ssh_key(config: RunConfiguration) -> KeyPair:
    """Resolve the bootstrapper SSH key."""
    from bootstrapper.keys import ensure_ssh_key
    return ensure_ssh_key(config)


def register_key(key: KeyPair, config: RunConfiguration) -> None:
    """Show the key and wait until the operator has registered it."""
    from bootstrapper.keys import show_public_key, wait_for_confirmation
    show_public_key(key, config)
    wait_for_confirmation(key, config)


def sync_checkout(key: KeyPair, config: RunConfiguration) -> None:
    """Clone or update the provisioning repository."""
    from bootstrapper.repository import sync_repository
    sync_repository(config, key)


def run_script(config: RunConfiguration) -> int:
    """Run the provisioning entry point."""
    from bootstrapper.runner import run_provisioning_script
    return run_provisioning_script(config)


def bootstrap_machine(config: RunConfiguration) -> int:
    """Main bootstrap workflow. Returns the provisioning script's exit code."""
    # Phase 1: Tooling
    install_dependencies(config)

    # Phase 2: SSH key
    key = prepare_ssh_key(config)
    register_key(key, config)

    # Phase 3: Provisioning repository
    sync_checkout(key, config)

    # Phase 4: Provisioning script
    return run_script(config)

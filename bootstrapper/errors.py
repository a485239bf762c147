"""Exceptions raised by the bootstrapper."""


class BootstrapError(Exception):
    """Base exception class."""
    exit_code = 1


class DependencyError(BootstrapError):
    """Required tooling is missing and could not be installed."""

    def __init__(self, message: str, missing=()):
        super().__init__(message)
        self.missing = list(missing)


class KeyStateError(BootstrapError):
    """The SSH key material is in a state that cannot be used safely."""
    pass


class OrphanedKeyError(KeyStateError):
    """A public key exists without its private key."""
    pass


class KeyGenerationError(KeyStateError):
    """ssh-keygen failed."""
    pass


class RepositoryError(BootstrapError):
    """Base class for provisioning repository failures."""
    pass


class NotARepositoryError(RepositoryError):
    """The target directory exists but is not a git checkout."""
    pass


class OriginMismatchError(RepositoryError):
    """The checkout's origin points somewhere else."""
    pass


class RepositorySyncError(RepositoryError):
    """A git command failed while cloning or updating."""
    pass


class ScriptNotFoundError(BootstrapError):
    """The provisioning script is not present in the checkout."""
    pass

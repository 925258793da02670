"""Exceptions raised by the image installer.

Hierarchy:
    InstallerError (base, RuntimeError)
        ├── CommandError
        ├── InstallRootError
        ├── MountError
        │   └── UnmountError
        ├── PackageInstallError
        ├── FstabWriteError
        ├── ConfigUpdateError
        ├── RepositoryGenerationError
        ├── SecurityConfigError
        ├── UKIBuildError
        ├── SigningError
        │   ├── SigningPrerequisiteMissing
        │   └── SigningExecutionError
        └── InstallationError

Secure boot material that is simply not configured is not an error; the
signer reports it by returning False.
"""

from __future__ import annotations

from typing import Sequence


class InstallerError(RuntimeError):
    """Base exception for all installer failures."""


class CommandError(InstallerError):
    """An external command exited non-zero."""

    def __init__(self, argv: Sequence[str], returncode: int, output: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.output = output
        msg = f"Command failed ({returncode}): {' '.join(self.argv)}"
        if output.strip():
            msg += f"\n{output.strip()}"
        super().__init__(msg)


class InstallRootError(InstallerError):
    """The install root could not be prepared."""


class MountError(InstallerError):
    """A partition or virtual filesystem could not be mounted."""


class UnmountError(MountError):
    """One or more mount points could not be unmounted."""

    def __init__(self, failures: Sequence[tuple[str, str]]):
        self.failures = list(failures)
        details = "; ".join(f"{path}: {reason}" for path, reason in self.failures)
        super().__init__(f"Failed to unmount {len(self.failures)} path(s): {details}")


class PackageInstallError(InstallerError):
    """A package could not be installed into the install root."""

    def __init__(self, package: str, reason: str):
        self.package = package
        super().__init__(f"Failed to install package {package}: {reason}")


class FstabWriteError(InstallerError):
    """The image fstab could not be generated."""


class ConfigUpdateError(InstallerError):
    """Hostname, network or additional file configuration failed."""


class RepositoryGenerationError(InstallerError):
    """Apt sources or preferences files could not be generated."""


class SecurityConfigError(InstallerError):
    """The read-only rootfs configuration could not be applied."""


class UKIBuildError(InstallerError):
    """The unified kernel image could not be built."""


class SigningError(InstallerError):
    """Base exception for secure boot signing."""


class SigningPrerequisiteMissing(SigningError):
    """Signing material is configured but a file does not exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"secure boot key or certificate file not found: {path}")


class SigningExecutionError(SigningError):
    """An artifact could not be signed or replaced."""


class InstallationError(InstallerError):
    """A pipeline stage failed; the stage error is chained as __cause__."""

    def __init__(self, step_id: str, reason: str):
        self.step_id = step_id
        super().__init__(f"image OS installation failed at {step_id}: {reason}")

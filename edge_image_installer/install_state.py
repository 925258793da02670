from __future__ import annotations

from enum import Enum


class InstallState(str, Enum):
    """Progress of one image OS installation, in the order it is reached."""

    INIT = "INIT"
    ROOT_INITIALIZED = "ROOT_INITIALIZED"
    MOUNTED = "MOUNTED"
    PRE_INSTALLED = "PRE_INSTALLED"
    PACKAGES_INSTALLED = "PACKAGES_INSTALLED"
    CONFIG_UPDATED = "CONFIG_UPDATED"
    BOOT_INSTALLED = "BOOT_INSTALLED"
    SECURITY_CONFIGURED = "SECURITY_CONFIGURED"
    UKI_BUILT = "UKI_BUILT"
    SIGNED = "SIGNED"
    POST_INSTALLED = "POST_INSTALLED"
    UNMOUNTED = "UNMOUNTED"

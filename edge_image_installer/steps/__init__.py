from .step_10_pre_install import PreInstallStep
from .step_20_install_packages import InstallPackagesStep
from .step_30_update_config import UpdateConfigStep
from .step_40_install_bootloader import InstallBootloaderStep
from .step_50_configure_security import ConfigureSecurityStep
from .step_60_build_uki import BuildUKIStep
from .step_70_sign_image import SignImageStep
from .step_80_post_install import PostInstallStep

__all__ = [
    "PreInstallStep",
    "InstallPackagesStep",
    "UpdateConfigStep",
    "InstallBootloaderStep",
    "ConfigureSecurityStep",
    "BuildUKIStep",
    "SignImageStep",
    "PostInstallStep",
]

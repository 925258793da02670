from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from .build_config import GlobalConfig
from .lib.mounts import DiskPathIds, MountPointInfo
from .template import ImageTemplate


@dataclass
class InstallationContext:
    """Everything one in-flight installation owns.

    Passed explicitly to every step; nothing about the active chroot or the
    package database lives in module globals.
    """

    template: ImageTemplate
    config: GlobalConfig
    install_root: str
    disk_path_ids: DiskPathIds = field(default_factory=dict)
    mount_points: List[MountPointInfo] = field(default_factory=list)
    boot_installer: Optional[Callable[["InstallationContext"], None]] = None

    @property
    def sudo(self) -> bool:
        return self.config.use_sudo

    @property
    def dry_run(self) -> bool:
        return self.config.dry_run

    @property
    def pkg_family(self) -> str:
        return "deb" if self.template.is_debian_family else "rpm"

    @property
    def image_build_dir(self) -> Path:
        return Path(self.config.image_build_dir(self.template.provider_id)) / self.template.system_config.name

"""Image template data model.

The template arrives already validated; ``load_template`` only maps the YAML
document onto these dataclasses. Field names follow the YAML keys
(``mountPoint``, ``fsType``, ``additionalFiles`` ...).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

DEBIAN_FAMILY_OS = frozenset({"ubuntu", "debian", "elxr", "madani"})

DEFAULT_REPO_PRIORITY = 500


@dataclass
class TargetInfo:
    os: str = ""
    dist: str = ""
    arch: str = ""


@dataclass(frozen=True)
class Partition:
    id: str
    mount_point: str = ""
    fs_type: str = ""
    mount_options: str = ""
    type: str = ""
    name: str = ""


@dataclass
class DiskConfig:
    name: str = ""
    partitions: List[Partition] = field(default_factory=list)


@dataclass
class AdditionalFileInfo:
    local: str
    final: str


@dataclass(frozen=True)
class PackageRepository:
    codename: str
    url: str
    pkey: str = ""
    id: str = ""
    priority: Optional[int] = None
    component: str = ""

    @property
    def effective_priority(self) -> int:
        return self.priority if self.priority else DEFAULT_REPO_PRIORITY


@dataclass
class Immutability:
    enabled: bool = False
    secure_boot_db_key: str = ""
    secure_boot_db_crt: str = ""
    secure_boot_db_cer: str = ""


@dataclass
class KernelConfig:
    version: str = ""
    cmdline: str = ""
    packages: List[str] = field(default_factory=list)


@dataclass
class HookScripts:
    pre_install: List[str] = field(default_factory=list)
    post_install: List[str] = field(default_factory=list)


@dataclass
class SystemConfig:
    name: str = ""
    hostname: str = ""
    packages: List[str] = field(default_factory=list)
    additional_files: List[AdditionalFileInfo] = field(default_factory=list)
    immutability: Immutability = field(default_factory=Immutability)
    kernel: KernelConfig = field(default_factory=KernelConfig)
    hook_scripts: HookScripts = field(default_factory=HookScripts)


@dataclass
class ImageTemplate:
    image_name: str = ""
    image_version: str = ""
    target: TargetInfo = field(default_factory=TargetInfo)
    disk: DiskConfig = field(default_factory=DiskConfig)
    system_config: SystemConfig = field(default_factory=SystemConfig)
    package_repositories: List[PackageRepository] = field(default_factory=list)
    base_dir: str = "."

    @property
    def is_debian_family(self) -> bool:
        return self.target.os.strip().lower() in DEBIAN_FAMILY_OS

    @property
    def provider_id(self) -> str:
        return f"{self.target.os}-{self.target.dist}-{self.target.arch}"

    @property
    def immutability_enabled(self) -> bool:
        return bool(self.system_config.immutability.enabled)

    def resolve_local(self, local: str) -> Path:
        p = Path(local)
        return p if p.is_absolute() else Path(self.base_dir) / p

    @classmethod
    def from_dict(cls, raw: Dict[str, Any], *, base_dir: str = ".") -> "ImageTemplate":
        image = raw.get("image") or {}
        target = raw.get("target") or {}
        disk = raw.get("disk") or {}
        sc = raw.get("systemConfig") or {}
        imm = sc.get("immutability") or {}
        kernel = sc.get("kernel") or {}
        hooks = sc.get("hookScripts") or {}

        return cls(
            image_name=str(image.get("name") or ""),
            image_version=str(image.get("version") or ""),
            target=TargetInfo(
                os=str(target.get("os") or ""),
                dist=str(target.get("dist") or ""),
                arch=str(target.get("arch") or ""),
            ),
            disk=DiskConfig(
                name=str(disk.get("name") or ""),
                partitions=[
                    Partition(
                        id=str(p.get("id") or ""),
                        mount_point=str(p.get("mountPoint") or ""),
                        fs_type=str(p.get("fsType") or ""),
                        mount_options=str(p.get("mountOptions") or ""),
                        type=str(p.get("type") or ""),
                        name=str(p.get("name") or ""),
                    )
                    for p in disk.get("partitions") or []
                ],
            ),
            system_config=SystemConfig(
                name=str(sc.get("name") or ""),
                hostname=str(sc.get("hostname") or ""),
                packages=[str(p) for p in sc.get("packages") or []],
                additional_files=[
                    AdditionalFileInfo(local=str(f.get("local") or ""), final=str(f.get("final") or ""))
                    for f in sc.get("additionalFiles") or []
                ],
                immutability=Immutability(
                    enabled=bool(imm.get("enabled", False)),
                    secure_boot_db_key=str(imm.get("secureBootDBKey") or ""),
                    secure_boot_db_crt=str(imm.get("secureBootDBCrt") or ""),
                    secure_boot_db_cer=str(imm.get("secureBootDBCer") or ""),
                ),
                kernel=KernelConfig(
                    version=str(kernel.get("version") or ""),
                    cmdline=str(kernel.get("cmdline") or ""),
                    packages=[str(p) for p in kernel.get("packages") or []],
                ),
                hook_scripts=HookScripts(
                    pre_install=[str(s) for s in hooks.get("preInstall") or []],
                    post_install=[str(s) for s in hooks.get("postInstall") or []],
                ),
            ),
            package_repositories=[
                PackageRepository(
                    codename=str(r.get("codename") or ""),
                    url=str(r.get("url") or ""),
                    pkey=str(r.get("pkey") or ""),
                    id=str(r.get("id") or ""),
                    priority=int(r["priority"]) if r.get("priority") is not None else None,
                    component=str(r.get("component") or ""),
                )
                for r in raw.get("packageRepositories") or []
            ],
            base_dir=base_dir,
        )


def load_template(path: str) -> ImageTemplate:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Image template must contain a mapping/object: {p}")

    return ImageTemplate.from_dict(raw, base_dir=str(p.resolve().parent))

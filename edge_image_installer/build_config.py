from __future__ import annotations

import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml

MOUNT_ORDERS = {"lexical", "depth"}


@dataclass(frozen=True)
class GlobalConfig:
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def work_dir(self) -> str:
        return str(Path(str(self.raw.get("work_dir") or "workspace")).absolute())

    @property
    def temp_dir(self) -> str:
        return str(self.raw.get("temp_dir") or tempfile.gettempdir())

    @property
    def log_level(self) -> str:
        return str((self.raw.get("logging") or {}).get("level") or "info")

    @property
    def mount_order(self) -> str:
        order = str(self.raw.get("mount_order") or "lexical").strip().lower()
        if order not in MOUNT_ORDERS:
            raise ValueError(f"mount_order must be one of {sorted(MOUNT_ORDERS)}, got {order!r}")
        return order

    @property
    def use_sudo(self) -> bool:
        return bool(self.raw.get("use_sudo", True))

    @property
    def dry_run(self) -> bool:
        return bool(self.raw.get("dry_run", False))

    def chroot_build_dir(self, provider_id: str) -> str:
        configured = self.raw.get("chroot_build_dir")
        if configured:
            return str(configured)
        return str(Path(self.work_dir) / provider_id / "chrootenv" / "workspace" / "imagebuild")

    def image_build_dir(self, provider_id: str) -> str:
        return str(Path(self.work_dir) / provider_id / "imagebuild")


def load_global_config(path: str | None) -> GlobalConfig:
    if path is None:
        return GlobalConfig()

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ValueError("global config must be YAML")

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError("global config must contain a mapping/object")

    return GlobalConfig(raw=raw)

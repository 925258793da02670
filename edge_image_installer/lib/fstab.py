from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List

from ..errors import FstabWriteError, InstallerError
from ..template import ImageTemplate, Partition
from .block import get_partuuid
from .mounts import SWAP_FS_TYPE, DiskPathIds, resolve_partition_pairs

logger = logging.getLogger(__name__)

ROOTFS_MOUNT_POINT = "/"
DEFAULT_OPTIONS = "defaults"
SWAP_OPTIONS = "sw"
SWAP_MOUNT_POINT = "none"
DEFAULT_DUMP = 0
ROOT_PASS = 1
DISABLE_PASS = 0
DEFAULT_PASS = 2


@dataclass(frozen=True)
class FstabEntry:
    spec: str
    mountpoint: str
    fstype: str
    options: str
    dump: int = DEFAULT_DUMP
    passno: int = DEFAULT_PASS

    def render(self) -> str:
        return f"{self.spec} {self.mountpoint} {self.fstype} {self.options} {self.dump} {self.passno}\n"


def fstab_entry(partition: Partition, partuuid: str) -> FstabEntry:
    fstype = "vfat" if partition.fs_type in {"fat16", "fat32"} else partition.fs_type
    options = partition.mount_options or DEFAULT_OPTIONS
    mountpoint = partition.mount_point
    passno = ROOT_PASS if mountpoint == ROOTFS_MOUNT_POINT else DEFAULT_PASS

    if fstype == SWAP_FS_TYPE:
        mountpoint = SWAP_MOUNT_POINT
        options = SWAP_OPTIONS
        passno = DISABLE_PASS

    return FstabEntry(
        spec=f"PARTUUID={partuuid}",
        mountpoint=mountpoint,
        fstype=fstype,
        options=options,
        dump=DEFAULT_DUMP,
        passno=passno,
    )


def update_fstab(
    install_root: str,
    disk_path_ids: DiskPathIds,
    template: ImageTemplate,
    *,
    resolve_uuid: Callable[[str], str] = get_partuuid,
    dry_run: bool = False,
) -> List[FstabEntry]:
    """Append one PARTUUID line per paired partition to <root>/etc/fstab.

    Lines follow the template partition order.
    """

    fstab_path = Path(install_root) / "etc" / "fstab"
    entries: List[FstabEntry] = []

    for partition, device in resolve_partition_pairs(disk_path_ids, template.disk.partitions):
        try:
            partuuid = resolve_uuid(device)
        except InstallerError as e:
            raise FstabWriteError(f"Failed to get partition UUID for {device}: {e}") from e

        entry = fstab_entry(partition, partuuid)
        logger.debug("Adding fstab entry: %s", entry.render().strip())
        entries.append(entry)

        if dry_run:
            logger.info("Would append to %s: %s", str(fstab_path), entry.render().strip())
            continue

        try:
            fstab_path.parent.mkdir(parents=True, exist_ok=True)
            with fstab_path.open("a", encoding="utf-8") as f:
                f.write(entry.render())
        except OSError as e:
            raise FstabWriteError(f"Failed to append fstab entry for {partition.mount_point}: {e}") from e

    logger.info("Wrote %d fstab entries to %s", len(entries), str(fstab_path))
    return entries

"""Mount the image partitions under the install root and tear them down again.

Mount order defaults to sorting the absolute mount points as plain strings.
That puts ``/`` before ``/boot`` before ``/boot/efi`` but it is only an
approximation of tree order (``/data`` vs ``/data-archive/x``). The ``depth``
order sorts by path segment count first and is opt-in through
``mount_order: depth`` in the global config.
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Mapping, Sequence, Tuple, Union

from ..errors import InstallerError, MountError, UnmountError
from ..template import Partition
from .chroot import mount_chroot_sysfs, umount_chroot_sysfs
from .command import run_cmd

logger = logging.getLogger(__name__)

EFI_MOUNT_POINT = "/boot/efi"
SWAP_FS_TYPE = "swap"

DiskPathIds = Union[Mapping[str, str], Sequence[Tuple[str, str]]]


@dataclass(frozen=True)
class MountPointInfo:
    partition_id: str
    device_path: str
    mount_point: str
    flags: str

    @property
    def flag_args(self) -> List[str]:
        return shlex.split(self.flags)


def _pairs(disk_path_ids: DiskPathIds) -> List[Tuple[str, str]]:
    if isinstance(disk_path_ids, Mapping):
        return list(disk_path_ids.items())
    return [(str(k), str(v)) for k, v in disk_path_ids]


def resolve_partition_pairs(
    disk_path_ids: DiskPathIds, partitions: Iterable[Partition]
) -> List[Tuple[Partition, str]]:
    """Pair template partitions with their device paths.

    The result follows the template's partition order, not the iteration
    order of the mapping, so mount and fstab output are reproducible.
    Device IDs with no matching partition are ignored.
    """

    devices = dict(_pairs(disk_path_ids))
    return [(p, devices[p.id]) for p in partitions if p.id in devices]


def mountable(partition: Partition) -> bool:
    """Swap and partitions without a mount point are never mounted."""

    mount_point = partition.mount_point.strip()
    return partition.fs_type != SWAP_FS_TYPE and mount_point not in {"", "none"}


def mount_flags(partition: Partition) -> str:
    fs_type = partition.fs_type
    if partition.mount_point == EFI_MOUNT_POINT:
        if fs_type in {"fat16", "fat32"}:
            fs_type = "vfat"
        return f"-t {fs_type} -o umask=0077"
    return f"-t {fs_type}"


def absolute_mount_point(install_root: str, mount_point: str) -> str:
    return str(Path(install_root) / mount_point.lstrip("/"))


def sort_mount_points(infos: Iterable[MountPointInfo], order: str = "lexical") -> List[MountPointInfo]:
    if order == "depth":
        return sorted(infos, key=lambda i: (len(Path(i.mount_point).parts), i.mount_point))
    if order == "lexical":
        return sorted(infos, key=lambda i: i.mount_point)
    raise ValueError(f"Unknown mount order: {order!r}")


def build_mount_points(
    install_root: str,
    pairs: Sequence[Tuple[Partition, str]],
    *,
    order: str = "lexical",
) -> List[MountPointInfo]:
    infos = [
        MountPointInfo(
            partition_id=partition.id,
            device_path=device,
            mount_point=absolute_mount_point(install_root, partition.mount_point),
            flags=mount_flags(partition),
        )
        for partition, device in pairs
        if mountable(partition)
    ]
    return sort_mount_points(infos, order)


def mount_path(info: MountPointInfo, *, sudo: bool = True, dry_run: bool = False) -> None:
    run_cmd(["mkdir", "-p", info.mount_point], sudo=sudo, dry_run=dry_run)
    run_cmd(["mount", *info.flag_args, info.device_path, info.mount_point], sudo=sudo, dry_run=dry_run)


def umount_path(mount_point: str, *, sudo: bool = True, dry_run: bool = False) -> None:
    run_cmd(["umount", mount_point], sudo=sudo, dry_run=dry_run)


def mount_all(
    install_root: str,
    disk_path_ids: DiskPathIds,
    partitions: Iterable[Partition],
    *,
    order: str = "lexical",
    sudo: bool = True,
    dry_run: bool = False,
) -> List[MountPointInfo]:
    """Mount every paired partition, parents first, then sysfs.

    On a failed mount the mounts made so far are released again before the
    MountError propagates.
    """

    pairs = resolve_partition_pairs(disk_path_ids, partitions)
    if not pairs:
        raise MountError("No mount points found for the provided disk path mapping")

    infos = build_mount_points(install_root, pairs, order=order)
    if not infos:
        raise MountError("No mountable partitions found for the provided disk path mapping")

    mounted: List[MountPointInfo] = []
    for info in infos:
        try:
            mount_path(info, sudo=sudo, dry_run=dry_run)
        except InstallerError as e:
            _release(mounted, sudo=sudo, dry_run=dry_run)
            raise MountError(
                f"Failed to mount {info.device_path} to {info.mount_point} with flags {info.flags}: {e}"
            ) from e
        logger.info("Mounted %s at %s (%s)", info.device_path, info.mount_point, info.flags)
        mounted.append(info)

    try:
        mount_chroot_sysfs(install_root, sudo=sudo, dry_run=dry_run)
    except InstallerError as e:
        _release(mounted, sudo=sudo, dry_run=dry_run)
        raise MountError(f"Failed to mount sysfs into image rootfs {install_root}: {e}") from e

    return mounted


def _release(mounted: Sequence[MountPointInfo], *, sudo: bool, dry_run: bool) -> None:
    for info in reversed(mounted):
        try:
            umount_path(info.mount_point, sudo=sudo, dry_run=dry_run)
        except InstallerError as e:
            logger.error("Failed to release %s after mount failure: %s", info.mount_point, e)


def unmount_all(
    install_root: str,
    mount_points: Sequence[MountPointInfo],
    *,
    sudo: bool = True,
    dry_run: bool = False,
) -> None:
    """Unmount sysfs, then every mount point from last-mounted to first.

    Each unmount is attempted exactly once; failures are collected and raised
    together once every path has been tried.
    """

    failures: List[Tuple[str, str]] = []

    try:
        umount_chroot_sysfs(install_root, sudo=sudo, dry_run=dry_run)
    except InstallerError as e:
        failures.append((str(Path(install_root) / "sys"), str(e)))

    for info in reversed(list(mount_points)):
        try:
            umount_path(info.mount_point, sudo=sudo, dry_run=dry_run)
        except InstallerError as e:
            failures.append((info.mount_point, str(e)))
        else:
            logger.info("Unmounted %s", info.mount_point)

    if failures:
        raise UnmountError(failures)

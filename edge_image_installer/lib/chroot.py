from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from .command import CmdResult, run_cmd

logger = logging.getLogger(__name__)


def chroot_cmd(
    target_root: str,
    argv: Sequence[str],
    *,
    stream: bool = False,
    dry_run: bool = False,
) -> CmdResult:
    """Run a command inside target root."""

    logger.debug("Chroot %s exec: %s", Path(target_root).name, " ".join(argv))
    return run_cmd(argv, chroot=target_root, stream=stream, dry_run=dry_run)


def sysfs_path(target_root: str) -> str:
    return str(Path(target_root) / "sys")


def mount_chroot_sysfs(target_root: str, *, sudo: bool = True, dry_run: bool = False) -> None:
    # update-initramfs and ukify probe /sys inside the image
    target = sysfs_path(target_root)
    run_cmd(["mkdir", "-p", target], sudo=sudo, dry_run=dry_run)
    run_cmd(["mount", "-t", "sysfs", "sysfs", target], sudo=sudo, dry_run=dry_run)


def umount_chroot_sysfs(target_root: str, *, sudo: bool = True, dry_run: bool = False) -> None:
    run_cmd(["umount", sysfs_path(target_root)], sudo=sudo, dry_run=dry_run)

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from ..errors import SecurityConfigError
from ..template import ImageTemplate, Partition

logger = logging.getLogger(__name__)

ROOT_PARTITION_TYPE = "linux-root-amd64"
ROOT_PARTITION_ID = "rootfs"


def find_root_partition(partitions: Iterable[Partition]) -> Optional[Partition]:
    found = None
    for p in partitions:
        if p.type == ROOT_PARTITION_TYPE or p.id == ROOT_PARTITION_ID or p.name == ROOT_PARTITION_ID:
            found = p
    return found


def split_options(options: str) -> List[str]:
    return [o.strip() for o in options.split(",") if o.strip()]


def wants_readonly_rootfs(template: ImageTemplate) -> bool:
    root = find_root_partition(template.disk.partitions)
    return root is not None and "ro" in split_options(root.mount_options)


def readonly_fstab(content: str) -> Tuple[str, bool]:
    """Return fstab content with the / entry switched to ro, and whether it changed.

    Comments, blank lines and short entries pass through untouched.
    """

    out: List[str] = []
    changed = False
    for line in content.splitlines():
        fields = line.split()
        if not fields or fields[0].startswith("#") or len(fields) < 4:
            out.append(line)
            continue

        if fields[1] == "/":
            opts = split_options(fields[3])
            if "ro" not in opts:
                opts = [o for o in opts if o != "rw"] + ["ro"]
                fields[3] = ",".join(opts)
                changed = True
                logger.debug("Root filesystem options now %s", fields[3])

        dump = fields[4] if len(fields) > 4 else "0"
        passno = fields[5] if len(fields) > 5 else "0"
        out.append(" ".join([*fields[:4], dump, passno]))

    return "\n".join(out) + "\n", changed


def make_rootfs_readonly(install_root: str, *, dry_run: bool = False) -> bool:
    fstab = Path(install_root) / "etc" / "fstab"
    try:
        content = fstab.read_text(encoding="utf-8")
    except OSError as e:
        raise SecurityConfigError(f"Failed to read fstab file {fstab}: {e}") from e

    if not content.strip():
        raise SecurityConfigError(f"fstab file {fstab} is empty")

    new_content, changed = readonly_fstab(content)
    if not changed:
        logger.warning("No root filesystem entry found in %s or it was already read-only", str(fstab))
        return False

    if dry_run:
        logger.info("Would rewrite %s with read-only rootfs", str(fstab))
        return True

    tmp = fstab.with_name(fstab.name + ".tmp")
    try:
        tmp.write_text(new_content, encoding="utf-8")
        os.replace(tmp, fstab)
    except OSError as e:
        raise SecurityConfigError(f"Failed to update fstab file {fstab}: {e}") from e
    return True


def configure_image_security(install_root: str, template: ImageTemplate, *, dry_run: bool = False) -> bool:
    """Make the root filesystem read-only when its partition asks for ``ro``."""

    if not wants_readonly_rootfs(template):
        logger.debug("Read-only rootfs not requested")
        return False

    changed = make_rootfs_readonly(install_root, dry_run=dry_run)
    logger.info("Root filesystem configured read-only")
    return changed

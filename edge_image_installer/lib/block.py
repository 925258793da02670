from __future__ import annotations

import logging

from ..errors import InstallerError
from .command import run_cmd

logger = logging.getLogger(__name__)


def get_partuuid(dev: str, *, sudo: bool = True, dry_run: bool = False) -> str:
    """Return the partition UUID (PARTUUID) of a block device."""

    r = run_cmd(["blkid", "-s", "PARTUUID", "-o", "value", dev], sudo=sudo, dry_run=dry_run)
    partuuid = (r.stdout or "").strip()
    if not partuuid and not dry_run:
        raise InstallerError(f"Unable to determine PARTUUID for {dev}")
    return partuuid

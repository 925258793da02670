from __future__ import annotations

import logging

from ..context import InstallationContext
from ..install_state import InstallState

logger = logging.getLogger(__name__)


class InstallBootloaderStep:
    step_id = "40_install_bootloader"
    reaches = InstallState.BOOT_INSTALLED

    def run(self, ctx: InstallationContext) -> None:
        if ctx.boot_installer is None:
            logger.info("No boot installer configured; skipping bootloader installation")
            return
        ctx.boot_installer(ctx)
        logger.info("Bootloader installed")

from __future__ import annotations

import logging

from ..context import InstallationContext
from ..install_state import InstallState
from ..lib.pkg import install_packages

logger = logging.getLogger(__name__)


class InstallPackagesStep:
    step_id = "20_install_packages"
    reaches = InstallState.PACKAGES_INSTALLED

    def run(self, ctx: InstallationContext) -> None:
        installed = install_packages(ctx)
        logger.info("Installed %d package(s) into %s", len(installed), ctx.install_root)

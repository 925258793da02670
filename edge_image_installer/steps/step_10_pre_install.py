from __future__ import annotations

import logging

from ..context import InstallationContext
from ..install_state import InstallState
from ..lib.sysconfig import run_hook_scripts

logger = logging.getLogger(__name__)


class PreInstallStep:
    step_id = "10_pre_install"
    reaches = InstallState.PRE_INSTALLED

    def run(self, ctx: InstallationContext) -> None:
        scripts = ctx.template.system_config.hook_scripts.pre_install
        ran = run_hook_scripts(ctx, scripts, phase="pre-install")
        logger.info("Pre-install done (%d hook script(s))", ran)

from __future__ import annotations

import logging

from ..context import InstallationContext
from ..install_state import InstallState
from ..lib.sysconfig import run_hook_scripts

logger = logging.getLogger(__name__)


class PostInstallStep:
    step_id = "80_post_install"
    reaches = InstallState.POST_INSTALLED

    def run(self, ctx: InstallationContext) -> None:
        scripts = ctx.template.system_config.hook_scripts.post_install
        ran = run_hook_scripts(ctx, scripts, phase="post-install")
        logger.info("Post-install done (%d hook script(s))", ran)

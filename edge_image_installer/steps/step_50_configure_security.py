from __future__ import annotations

from ..context import InstallationContext
from ..install_state import InstallState
from ..lib.secure import configure_image_security


class ConfigureSecurityStep:
    step_id = "50_configure_security"
    reaches = InstallState.SECURITY_CONFIGURED

    def run(self, ctx: InstallationContext) -> None:
        configure_image_security(ctx.install_root, ctx.template, dry_run=ctx.dry_run)

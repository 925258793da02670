from __future__ import annotations

from ..context import InstallationContext
from ..install_state import InstallState
from ..lib.uki import build_image_uki


class BuildUKIStep:
    step_id = "60_build_uki"
    reaches = InstallState.UKI_BUILT

    def run(self, ctx: InstallationContext) -> None:
        build_image_uki(ctx)

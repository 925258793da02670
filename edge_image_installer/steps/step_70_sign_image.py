from __future__ import annotations

import logging

from ..context import InstallationContext
from ..install_state import InstallState
from ..lib.signing import sign_image

logger = logging.getLogger(__name__)


class SignImageStep:
    step_id = "70_sign_image"
    reaches = InstallState.SIGNED

    def run(self, ctx: InstallationContext) -> None:
        if not sign_image(ctx):
            logger.info("Image left unsigned")

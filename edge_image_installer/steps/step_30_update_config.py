from __future__ import annotations

import logging

from ..context import InstallationContext
from ..install_state import InstallState
from ..lib.apt_repo import generate_apt_sources_from_repositories
from ..lib.fstab import update_fstab
from ..lib.sysconfig import configure_hostname, copy_additional_files

logger = logging.getLogger(__name__)


class UpdateConfigStep:
    """Repositories, hostname, additional files, then fstab.

    Repository files are generated first because they are installed through
    the additional-file copy.
    """

    step_id = "30_update_config"
    reaches = InstallState.CONFIG_UPDATED

    def run(self, ctx: InstallationContext) -> None:
        tpl = ctx.template

        generate_apt_sources_from_repositories(tpl, temp_dir=ctx.config.temp_dir)
        configure_hostname(ctx.install_root, tpl.system_config.hostname, dry_run=ctx.dry_run)
        copied = copy_additional_files(ctx)
        entries = update_fstab(ctx.install_root, ctx.disk_path_ids, tpl, dry_run=ctx.dry_run)

        logger.info(
            "Image config updated (additional_files=%d, fstab_entries=%d)",
            len(copied),
            len(entries),
        )

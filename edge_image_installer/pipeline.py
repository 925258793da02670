from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Protocol, Sequence

from .build_config import GlobalConfig
from .context import InstallationContext
from .errors import InstallationError, InstallerError, InstallRootError, UnmountError
from .install_state import InstallState
from .lib.command import run_cmd
from .lib.mounts import DiskPathIds, MountPointInfo, mount_all, unmount_all
from .steps import (
    BuildUKIStep,
    ConfigureSecurityStep,
    InstallBootloaderStep,
    InstallPackagesStep,
    PostInstallStep,
    PreInstallStep,
    SignImageStep,
    UpdateConfigStep,
)
from .template import ImageTemplate

logger = logging.getLogger(__name__)


class Step(Protocol):
    """A single installation stage run against a mounted install root."""

    step_id: str
    reaches: InstallState

    def run(self, ctx: InstallationContext) -> None:
        ...


@dataclass
class PipelineResult:
    install_root: str = ""
    states: List[InstallState] = field(default_factory=lambda: [InstallState.INIT])
    ran_steps: List[str] = field(default_factory=list)
    failed_step: Optional[str] = None

    @property
    def state(self) -> InstallState:
        return self.states[-1]

    def reach(self, state: InstallState) -> None:
        logger.debug("Installation state -> %s", state.value)
        self.states.append(state)


def default_steps() -> List[Step]:
    return [
        PreInstallStep(),
        InstallPackagesStep(),
        UpdateConfigStep(),
        InstallBootloaderStep(),
        ConfigureSecurityStep(),
        BuildUKIStep(),
        SignImageStep(),
        PostInstallStep(),
    ]


def init_install_root(template: ImageTemplate, config: GlobalConfig) -> str:
    build_dir = Path(config.chroot_build_dir(template.provider_id))
    if not build_dir.is_dir():
        raise InstallRootError(f"chroot image build directory does not exist: {build_dir}")

    install_root = str(build_dir / template.system_config.name)
    try:
        run_cmd(["mkdir", "-p", install_root], sudo=config.use_sudo, dry_run=config.dry_run)
    except InstallerError as e:
        raise InstallRootError(f"Failed to create directory {install_root}: {e}") from e
    return install_root


@contextmanager
def mounted(ctx: InstallationContext) -> Iterator[List[MountPointInfo]]:
    """Mount the image partitions for the duration of the block.

    Unmounting always runs on the way out. If the block raised, an unmount
    failure is only logged so the original error reaches the caller.
    """

    ctx.mount_points = mount_all(
        ctx.install_root,
        ctx.disk_path_ids,
        ctx.template.disk.partitions,
        order=ctx.config.mount_order,
        sudo=ctx.sudo,
        dry_run=ctx.dry_run,
    )
    try:
        yield ctx.mount_points
    except BaseException:
        try:
            unmount_all(ctx.install_root, ctx.mount_points, sudo=ctx.sudo, dry_run=ctx.dry_run)
        except UnmountError as e:
            logger.error("Failed to unmount disk from chroot after error: %s", e)
        else:
            ctx.mount_points = []
        raise
    unmount_all(ctx.install_root, ctx.mount_points, sudo=ctx.sudo, dry_run=ctx.dry_run)
    ctx.mount_points = []


def run_steps(ctx: InstallationContext, steps: Sequence[Step], result: PipelineResult) -> PipelineResult:
    for step in steps:
        logger.info("Running step %s", step.step_id)
        try:
            step.run(ctx)
        except (InstallerError, OSError) as e:
            result.failed_step = step.step_id
            raise InstallationError(step.step_id, str(e)) from e
        result.ran_steps.append(step.step_id)
        result.reach(step.reaches)
    return result


def install_image_os(
    disk_path_ids: DiskPathIds,
    template: ImageTemplate,
    *,
    config: Optional[GlobalConfig] = None,
    boot_installer: Optional[Callable[[InstallationContext], None]] = None,
    steps: Optional[Sequence[Step]] = None,
    result: Optional[PipelineResult] = None,
) -> PipelineResult:
    """Install the image OS onto already-partitioned devices.

    The install root must live inside an existing chroot build directory.
    Once the partitions are mounted they are unmounted again on every exit
    path. Stage failures surface as InstallationError with the stage error
    chained as ``__cause__``.
    """

    config = config or GlobalConfig()
    result = result if result is not None else PipelineResult()
    logger.info("Installing OS for image: %s %s", template.image_name, template.image_version)

    install_root = init_install_root(template, config)
    result.install_root = install_root
    result.reach(InstallState.ROOT_INITIALIZED)

    ctx = InstallationContext(
        template=template,
        config=config,
        install_root=install_root,
        disk_path_ids=disk_path_ids,
        boot_installer=boot_installer,
    )

    try:
        with mounted(ctx):
            result.reach(InstallState.MOUNTED)
            run_steps(ctx, default_steps() if steps is None else steps, result)
    finally:
        # mount_points is emptied only by a teardown that released everything
        if InstallState.MOUNTED in result.states and not ctx.mount_points:
            result.reach(InstallState.UNMOUNTED)

    logger.info("Image OS installation complete: %s", install_root)
    return result

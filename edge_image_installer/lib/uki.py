"""Unified kernel image assembly inside the install root."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from ..errors import InstallerError, UKIBuildError
from .chroot import chroot_cmd

if TYPE_CHECKING:
    from ..context import InstallationContext

logger = logging.getLogger(__name__)

DEFAULT_CMDLINE = "root=LABEL=ROOT rw quiet console=ttyS0 rd.shell"
UKI_DIR = "/boot/efi/EFI/Linux"
UKI_NAME = "linux.efi"
KERNEL_PREFIX = "vmlinuz-"


def uki_path(install_root: str) -> Path:
    return Path(install_root) / UKI_DIR.lstrip("/") / UKI_NAME


def find_kernel_version(install_root: str, preferred: str = "") -> str:
    """Return the version of the first vmlinuz-* in sorted order.

    With a preferred version, the first kernel whose version starts with it
    wins; otherwise any kernel is taken.
    """

    boot = Path(install_root) / "boot"
    try:
        names = sorted(p.name for p in boot.iterdir())
    except OSError as e:
        raise UKIBuildError(f"Failed to list kernels in {boot}: {e}") from e

    versions = [n[len(KERNEL_PREFIX):] for n in names if n.startswith(KERNEL_PREFIX) and len(n) > len(KERNEL_PREFIX)]
    if preferred:
        for v in versions:
            if v.startswith(preferred):
                return v
        logger.warning("No kernel matching version %s in %s; using first found", preferred, str(boot))
    if versions:
        return versions[0]
    raise UKIBuildError(f"No kernel (vmlinuz-*) found in {boot}")


def initrd_name(version: str, *, debian: bool) -> str:
    return f"initrd.img-{version}" if debian else f"initramfs-{version}.img"


def initramfs_argv(version: str, *, debian: bool) -> list[str]:
    if debian:
        return ["update-initramfs", "-c", "-k", version]
    return ["dracut", "--force", "--kver", version, f"/boot/{initrd_name(version, debian=False)}"]


def ukify_argv(kernel: str, initrd: str, cmdline: str, output: str) -> list[str]:
    return [
        "ukify",
        "build",
        "--linux",
        kernel,
        "--initrd",
        initrd,
        "--cmdline",
        cmdline,
        "--output",
        output,
    ]


def build_image_uki(ctx: "InstallationContext") -> Path:
    """Regenerate the initramfs and bundle kernel, initrd and cmdline with ukify.

    ukify writes to a temporary name inside the ESP; the final ``linux.efi``
    only appears once the build succeeded. Returns the host path of the UKI.
    """

    root = ctx.install_root
    debian = ctx.template.is_debian_family
    version = find_kernel_version(root, ctx.template.system_config.kernel.version.strip())
    cmdline = ctx.template.system_config.kernel.cmdline.strip() or DEFAULT_CMDLINE
    logger.info("Building UKI for kernel %s", version)

    kernel = f"/boot/{KERNEL_PREFIX}{version}"
    initrd = f"/boot/{initrd_name(version, debian=debian)}"
    tmp_out = f"{UKI_DIR}/{UKI_NAME}.tmp"
    final_out = f"{UKI_DIR}/{UKI_NAME}"

    try:
        chroot_cmd(root, initramfs_argv(version, debian=debian), stream=True, dry_run=ctx.dry_run)
    except InstallerError as e:
        raise UKIBuildError(f"initramfs generation for kernel {version} failed: {e}") from e

    try:
        chroot_cmd(root, ["mkdir", "-p", UKI_DIR], dry_run=ctx.dry_run)
        chroot_cmd(root, ukify_argv(kernel, initrd, cmdline, tmp_out), stream=True, dry_run=ctx.dry_run)
    except InstallerError as e:
        raise UKIBuildError(f"ukify build of {final_out} failed: {e}") from e

    try:
        chroot_cmd(root, ["mv", tmp_out, final_out], dry_run=ctx.dry_run)
    except InstallerError as e:
        raise UKIBuildError(f"Failed to move {tmp_out} to {final_out}: {e}") from e

    out = uki_path(root)
    logger.info("UKI written to %s", str(out))
    return out

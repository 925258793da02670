"""Secure boot signing of the UKI and the EFI bootloader.

Signing is skipped, not failed, when immutability is off or when the key,
certificate and DER certificate are not all configured. Once all three are
configured every one of them has to exist.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, List

from ..errors import InstallerError, SigningExecutionError, SigningPrerequisiteMissing
from .command import run_cmd
from .uki import uki_path

if TYPE_CHECKING:
    from ..context import InstallationContext

logger = logging.getLogger(__name__)

BOOTLOADER_REL = "boot/efi/EFI/BOOT/BOOTX64.EFI"
EXPORTED_CERT_NAME = "DB.cer"


def bootloader_path(install_root: str) -> Path:
    return Path(install_root) / BOOTLOADER_REL


def signed_path(artifact: Path) -> Path:
    return artifact.with_name(artifact.name + ".signed")


def sign_artifact(
    artifact: Path,
    key: str,
    cert: str,
    *,
    sudo: bool = True,
    dry_run: bool = False,
) -> None:
    """sbsign into <artifact>.signed, then move it over the original."""

    out = signed_path(artifact)
    try:
        run_cmd(
            ["sbsign", "--key", key, "--cert", cert, "--output", str(out), str(artifact)],
            sudo=sudo,
            dry_run=dry_run,
        )
    except InstallerError as e:
        if out.exists():
            run_cmd(["rm", "-f", str(out)], sudo=sudo, check=False, dry_run=dry_run)
        raise SigningExecutionError(f"Failed to sign {artifact}: {e}") from e

    try:
        run_cmd(["mv", str(out), str(artifact)], sudo=sudo, dry_run=dry_run)
    except InstallerError as e:
        raise SigningExecutionError(f"Failed to replace {artifact} with signed version: {e}") from e

    logger.info("Signed %s", str(artifact))


def sign_image(ctx: "InstallationContext") -> bool:
    imm = ctx.template.system_config.immutability
    if not ctx.template.immutability_enabled:
        logger.info("Immutability disabled; skipping secure boot signing")
        return False

    key, crt, cer = imm.secure_boot_db_key, imm.secure_boot_db_crt, imm.secure_boot_db_cer
    if not key or not crt or not cer:
        logger.info("Secure boot key material not configured; skipping signing")
        return False

    for path in (key, crt, cer):
        if not Path(path).exists():
            raise SigningPrerequisiteMissing(path)

    artifacts: List[Path] = [uki_path(ctx.install_root), bootloader_path(ctx.install_root)]
    if not ctx.dry_run:
        missing = [str(a) for a in artifacts if not a.exists()]
        if missing:
            raise SigningExecutionError(f"Cannot sign, artifact(s) not found: {', '.join(missing)}")

    for artifact in artifacts:
        sign_artifact(artifact, key, crt, sudo=ctx.sudo, dry_run=ctx.dry_run)

    out_dir = ctx.image_build_dir
    try:
        run_cmd(["mkdir", "-p", str(out_dir)], sudo=ctx.sudo, dry_run=ctx.dry_run)
        run_cmd(["cp", cer, str(out_dir / EXPORTED_CERT_NAME)], sudo=ctx.sudo, dry_run=ctx.dry_run)
    except InstallerError as e:
        raise SigningExecutionError(f"Failed to copy certificate file {cer}: {e}") from e

    logger.info("Exported secure boot certificate to %s", str(out_dir / EXPORTED_CERT_NAME))
    return True

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import TYPE_CHECKING, List, Sequence

from ..errors import ConfigUpdateError, InstallerError
from .command import run_cmd

if TYPE_CHECKING:
    from ..context import InstallationContext

logger = logging.getLogger(__name__)


def target_path(root: str, rel: str) -> Path:
    return Path(root) / rel.lstrip("/")


def write_file(root: str, rel: str, contents: str, *, dry_run: bool = False) -> None:
    p = target_path(root, rel)
    if dry_run:
        logger.info("Would write %s", str(p))
        return
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(contents, encoding="utf-8")
    except OSError as e:
        raise ConfigUpdateError(f"Failed to write {p}: {e}") from e


def hosts_content(hostname: str) -> str:
    return "\n".join(
        [
            "127.0.0.1\tlocalhost",
            f"127.0.1.1\t{hostname}",
            "",
            "# IPv6",
            "::1\tlocalhost ip6-localhost ip6-loopback",
            "ff02::1\tip6-allnodes",
            "ff02::2\tip6-allrouters",
            "",
        ]
    )


def configure_hostname(root: str, hostname: str, *, dry_run: bool = False) -> bool:
    hostname = hostname.strip()
    if not hostname:
        logger.info("No hostname configured; keeping image default")
        return False
    write_file(root, "/etc/hostname", hostname + "\n", dry_run=dry_run)
    write_file(root, "/etc/hosts", hosts_content(hostname), dry_run=dry_run)
    logger.info("Configured hostname %s", hostname)
    return True


def copy_tree(src: Path, dst: Path) -> None:
    dst.mkdir(parents=True, exist_ok=True)
    for item in src.rglob("*"):
        out = dst / item.relative_to(src)
        if item.is_dir():
            out.mkdir(parents=True, exist_ok=True)
        else:
            out.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(item, out)


def copy_additional_files(ctx: "InstallationContext") -> List[Path]:
    """Copy every additional file (or directory) to its final path in the image."""

    copied: List[Path] = []
    for info in ctx.template.system_config.additional_files:
        if not info.local or not info.final:
            raise ConfigUpdateError(f"Additional file entry needs both local and final: {info}")

        src = ctx.template.resolve_local(info.local)
        dst = target_path(ctx.install_root, info.final)
        if not src.exists():
            raise ConfigUpdateError(f"Additional file source not found: {src}")

        if ctx.dry_run:
            logger.info("Would copy %s -> %s", str(src), str(dst))
            copied.append(dst)
            continue

        try:
            if src.is_dir():
                copy_tree(src, dst)
            else:
                dst.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(src, dst)
        except OSError as e:
            raise ConfigUpdateError(f"Failed to copy {src} to {dst}: {e}") from e

        logger.info("Copied additional file %s -> %s", str(src), info.final)
        copied.append(dst)

    return copied


def run_hook_scripts(ctx: "InstallationContext", scripts: Sequence[str], *, phase: str) -> int:
    """Run host-side hook scripts with TARGET_ROOTFS pointing at the install root."""

    if not scripts:
        logger.debug("No %s hook scripts configured", phase)
        return 0

    for script in scripts:
        path = ctx.template.resolve_local(script)
        if not ctx.dry_run and not path.exists():
            raise ConfigUpdateError(f"{phase} hook script not found: {path}")
        logger.info("Running %s hook %s", phase, str(path))
        try:
            run_cmd(
                ["env", f"TARGET_ROOTFS={ctx.install_root}", "bash", str(path)],
                sudo=ctx.sudo,
                stream=True,
                dry_run=ctx.dry_run,
            )
        except InstallerError as e:
            raise ConfigUpdateError(f"{phase} hook script {path} failed: {e}") from e

    return len(scripts)

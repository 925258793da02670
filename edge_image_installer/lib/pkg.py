from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, List, Sequence

from ..errors import InstallerError, PackageInstallError
from .command import run_cmd

if TYPE_CHECKING:
    from ..context import InstallationContext

logger = logging.getLogger(__name__)

HEAD_PREFIX = "filesystem"
TAIL_PREFIX = "initramfs"

# RPM targets install from the pre-populated local cache only.
CACHE_REPO_IDS = ("cache-repo",)

DPKG_ADMIN_DIRS = ("info", "updates", "triggers")
DPKG_ADMIN_FILES = ("status", "available")
APT_STATE_DIRS = (
    "var/lib/apt/lists/partial",
    "var/cache/apt/archives/partial",
    "var/log/apt",
    "etc/apt/apt.conf.d",
    "etc/apt/preferences.d",
)


def order_packages(packages: Iterable[str]) -> List[str]:
    """filesystem* first, initramfs* last, everything else in between.

    Each group keeps its original relative order.
    """

    head: List[str] = []
    middle: List[str] = []
    tail: List[str] = []
    for pkg in packages:
        if pkg.startswith(HEAD_PREFIX):
            head.append(pkg)
        elif pkg.startswith(TAIL_PREFIX):
            tail.append(pkg)
        else:
            middle.append(pkg)
    return head + middle + tail


def rpm_db_path(target_root: str) -> Path:
    return Path(target_root) / "var" / "lib" / "rpm"


def init_rpm_db(target_root: str, *, sudo: bool = True, dry_run: bool = False) -> bool:
    """Initialize the RPM database if absent. Returns True when created."""

    db = rpm_db_path(target_root)
    if db.exists():
        logger.debug("RPM database already present at %s", str(db))
        return False

    logger.info("Initializing RPM database in %s", target_root)
    run_cmd(["mkdir", "-p", str(db)], sudo=sudo, dry_run=dry_run)
    run_cmd(["rpm", "--root", target_root, "--initdb"], sudo=sudo, dry_run=dry_run)
    return True


def dpkg_admindir(target_root: str) -> Path:
    return Path(target_root) / "var" / "lib" / "dpkg"


def init_dpkg_db(target_root: str, *, dry_run: bool = False) -> bool:
    """Lay out an empty dpkg admin directory and apt state dirs if absent.

    Returns True when created.
    """

    admin = dpkg_admindir(target_root)
    if (admin / "status").exists():
        logger.debug("dpkg database already present at %s", str(admin))
        return False

    logger.info("Initializing dpkg database in %s", target_root)
    if dry_run:
        return True

    for d in DPKG_ADMIN_DIRS:
        (admin / d).mkdir(parents=True, exist_ok=True)
    for f in DPKG_ADMIN_FILES:
        (admin / f).touch()
    for d in APT_STATE_DIRS:
        (Path(target_root) / d).mkdir(parents=True, exist_ok=True)
    return True


def tdnf_install(
    target_root: str,
    package: str,
    *,
    repo_ids: Sequence[str] = CACHE_REPO_IDS,
    sudo: bool = True,
    dry_run: bool = False,
) -> None:
    argv = [
        "tdnf",
        "install",
        "-y",
        "--installroot",
        target_root,
        "--disablerepo=*",
    ]
    argv += [f"--enablerepo={r}" for r in repo_ids]
    run_cmd([*argv, package], sudo=sudo, stream=True, dry_run=dry_run)


def apt_options(target_root: str) -> List[str]:
    """apt-get options that install into target_root from the host.

    Sources and trusted keys come from the host, as the RPM cache repo does;
    downloaded indexes, the dpkg database and unpacked files stay in the
    target. Maintainer scripts run without chroot since the target may not
    have a shell yet.
    """

    admin = str(dpkg_admindir(target_root))
    settings = [
        ("Dir", target_root),
        ("Dir::Etc::SourceList", "/etc/apt/sources.list"),
        ("Dir::Etc::SourceParts", "/etc/apt/sources.list.d"),
        ("Dir::Etc::Trusted", "/etc/apt/trusted.gpg"),
        ("Dir::Etc::TrustedParts", "/etc/apt/trusted.gpg.d"),
        ("Dir::State::status", f"{admin}/status"),
        ("DPkg::Options::", f"--root={target_root}"),
        ("DPkg::Options::", f"--admindir={admin}"),
        ("DPkg::Options::", "--force-script-chrootless"),
        ("APT::Sandbox::User", "root"),
    ]
    argv: List[str] = []
    for key, value in settings:
        argv += ["-o", f"{key}={value}"]
    return argv


def apt_update(target_root: str, *, sudo: bool = True, dry_run: bool = False) -> None:
    run_cmd(["apt-get", *apt_options(target_root), "update"], sudo=sudo, stream=True, dry_run=dry_run)


def apt_install(target_root: str, package: str, *, sudo: bool = True, dry_run: bool = False) -> None:
    run_cmd(
        ["apt-get", *apt_options(target_root), "install", "-y", "--no-install-recommends", package],
        sudo=sudo,
        stream=True,
        dry_run=dry_run,
    )


def install_package_list(
    target_root: str,
    packages: Iterable[str],
    *,
    family: str,
    sudo: bool = True,
    dry_run: bool = False,
) -> List[str]:
    """Install packages one at a time in dependency-friendly order.

    The first failure aborts; already installed packages stay installed.
    Returns the install order.
    """

    if family not in {"rpm", "deb"}:
        raise ValueError(f"Unsupported package family: {family!r}")

    ordered = order_packages(packages)

    try:
        if family == "rpm":
            init_rpm_db(target_root, sudo=sudo, dry_run=dry_run)
        else:
            init_dpkg_db(target_root, dry_run=dry_run)
            apt_update(target_root, sudo=sudo, dry_run=dry_run)
    except (InstallerError, OSError) as e:
        raise PackageInstallError("<package database>", str(e)) from e

    total = len(ordered)
    for i, pkg in enumerate(ordered, start=1):
        logger.info("Installing package %d/%d: %s", i, total, pkg)
        try:
            if family == "rpm":
                tdnf_install(target_root, pkg, sudo=sudo, dry_run=dry_run)
            else:
                apt_install(target_root, pkg, sudo=sudo, dry_run=dry_run)
        except InstallerError as e:
            raise PackageInstallError(pkg, str(e)) from e

    return ordered


def install_packages(ctx: "InstallationContext") -> List[str]:
    """Install the system packages plus any kernel packages not already listed."""

    sc = ctx.template.system_config
    packages = list(sc.packages) + [p for p in sc.kernel.packages if p not in sc.packages]
    if not packages:
        logger.info("No packages configured for %s", sc.name)
        return []
    return install_package_list(
        ctx.install_root,
        packages,
        family=ctx.pkg_family,
        sudo=ctx.sudo,
        dry_run=ctx.dry_run,
    )

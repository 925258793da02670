"""Apt sources and pinning preferences for Debian-family images.

Generated files are written to temporary paths on the host and registered as
additional files of the template, so the regular additional-file copy puts
them into the image.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path, PurePosixPath
from typing import List, Optional
from urllib.parse import urlparse

from ..errors import RepositoryGenerationError
from ..template import DEFAULT_REPO_PRIORITY, AdditionalFileInfo, ImageTemplate, PackageRepository

logger = logging.getLogger(__name__)

SOURCES_LIST_PATH = "/etc/apt/sources.list.d/package-repositories.list"
PREFERENCES_DIR = "/etc/apt/preferences.d"
KEYRINGS_DIR = "/usr/share/keyrings"
SOURCES_HEADER = "# Package repositories generated from image template configuration"
DEFAULT_COMPONENT = "main"
TEMP_PREFIXES = ("package-repositories-", "apt-preferences-")


def keyring_name(pkey: str) -> str:
    base = PurePosixPath(urlparse(pkey).path or pkey).name
    return base if base.endswith(".gpg") else f"{base}.gpg"


def sources_line(repo: PackageRepository) -> str:
    component = repo.component or DEFAULT_COMPONENT
    return f"deb [signed-by={KEYRINGS_DIR}/{keyring_name(repo.pkey)}] {repo.url} {repo.codename} {component}"


def render_sources(repos: List[PackageRepository]) -> str:
    lines = [SOURCES_HEADER] + [sources_line(r) for r in repos]
    return "\n".join(lines) + "\n"


def render_preferences(repo: PackageRepository) -> str:
    priority = repo.effective_priority
    if priority == DEFAULT_REPO_PRIORITY:
        phrase = "Default"
    else:
        phrase = "Install even if version is lower than installed"
    host = urlparse(repo.url).hostname or ""
    return (
        f"# Priority {priority}: {phrase}\n"
        "Package: *\n"
        f"Pin: origin {host}\n"
        f"Pin-Priority: {priority}\n"
    )


def preferences_path(repo: PackageRepository) -> str:
    return f"{PREFERENCES_DIR}/{repo.id or repo.codename}"


def _write_temp(content: str, *, prefix: str, temp_dir: Optional[str]) -> str:
    try:
        if temp_dir:
            os.makedirs(temp_dir, exist_ok=True)
        fd, path = tempfile.mkstemp(prefix=prefix, dir=temp_dir)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
    except OSError as e:
        raise RepositoryGenerationError(f"Failed to write temporary file in {temp_dir or tempfile.gettempdir()}: {e}") from e
    return path


def _upsert(files: List[AdditionalFileInfo], local: str, final: str) -> Optional[str]:
    """Point final at local. Returns the replaced local path, if any."""

    for f in files:
        if f.final == final:
            logger.debug("Replacing additional file source for %s: %s -> %s", final, f.local, local)
            old, f.local = f.local, local
            return old
    files.append(AdditionalFileInfo(local=local, final=final))
    return None


def _remove_stale(old: Optional[str], new: str, temp_dir: Optional[str]) -> None:
    """Delete a replaced file if it is one of our own earlier temp files."""

    if not old or old == new:
        return
    path = Path(old)
    own_dir = Path(temp_dir or tempfile.gettempdir()).resolve()
    if path.parent.resolve() != own_dir or not path.name.startswith(TEMP_PREFIXES):
        return
    try:
        path.unlink()
    except FileNotFoundError:
        return
    except OSError as e:
        logger.warning("Failed to remove stale generated file %s: %s", old, e)
        return
    logger.debug("Removed stale generated file %s", old)


def generate_apt_sources_from_repositories(
    template: ImageTemplate,
    *,
    temp_dir: Optional[str] = None,
) -> List[AdditionalFileInfo]:
    """Write the sources list and one preferences file per repository.

    Mutates ``template.system_config.additional_files`` in place and returns
    the entries that were added or replaced. Non-Debian targets and templates
    without repositories are left untouched.
    """

    repos = template.package_repositories
    if not template.is_debian_family:
        logger.debug("Skipping apt repository generation for %s", template.target.os)
        return []
    if not repos:
        logger.debug("No package repositories configured")
        return []

    files = template.system_config.additional_files
    generated: List[AdditionalFileInfo] = []

    local = _write_temp(render_sources(repos), prefix=TEMP_PREFIXES[0], temp_dir=temp_dir)
    _remove_stale(_upsert(files, local, SOURCES_LIST_PATH), local, temp_dir)
    generated.append(AdditionalFileInfo(local=local, final=SOURCES_LIST_PATH))
    logger.info("Generated apt sources for %d repositories: %s", len(repos), local)

    for repo in repos:
        final = preferences_path(repo)
        local = _write_temp(render_preferences(repo), prefix=TEMP_PREFIXES[1], temp_dir=temp_dir)
        _remove_stale(_upsert(files, local, final), local, temp_dir)
        generated.append(AdditionalFileInfo(local=local, final=final))
        logger.info("Generated apt preferences %s (priority %d)", final, repo.effective_priority)

    return generated

"""
Pytest configuration and shared fixtures for edge-image-installer tests.

External commands never run for real. ``fake_system`` replaces subprocess
execution in ``lib.command`` with an in-process fake that keeps track of
mounts and performs simple file operations (mkdir, mv, cp, rm) under the
test's tmp_path.
"""

import shutil
import subprocess
from pathlib import Path
from typing import Callable, List, Optional

import pytest

from edge_image_installer.build_config import GlobalConfig
from edge_image_installer.lib import command
from edge_image_installer.lib.command import CmdResult
from edge_image_installer.template import ImageTemplate


# ==============================================================================
# Fake command execution
# ==============================================================================


class FakeSystem:
    """Records commands and simulates the few that tests care about."""

    def __init__(self):
        self.calls: List[List[str]] = []
        self.mounted: List[str] = []
        self.partuuids = {}
        self._failures: List[Callable[[List[str]], bool]] = []

    def fail_when(self, predicate: Callable[[List[str]], bool]) -> None:
        self._failures.append(predicate)

    @staticmethod
    def split(argv: List[str]):
        """Return (chroot_root, command argv) with sudo, env and chroot stripped."""
        args = list(argv)
        root = None
        if args[:1] == ["sudo"]:
            args = args[1:]
            while args and "=" in args[0] and not args[0].startswith("-"):
                args = args[1:]
        if args[:1] == ["chroot"]:
            root, args = args[1], args[2:]
        return root, args

    def commands(self, name: str) -> List[List[str]]:
        out = []
        for call in self.calls:
            _, args = self.split(call)
            if args[:1] == [name]:
                out.append(args)
        return out

    def _path(self, root: Optional[str], p: str) -> Path:
        return Path(root) / p.lstrip("/") if root else Path(p)

    def execute(self, argv: List[str]) -> CmdResult:
        self.calls.append(list(argv))
        root, args = self.split(argv)

        for predicate in self._failures:
            if predicate(args):
                return CmdResult(argv=list(argv), returncode=1, stdout="", stderr="simulated failure\n")

        stdout = ""
        name = args[0]
        if name == "mount":
            self.mounted.append(args[-1])
        elif name == "umount":
            if args[-1] in self.mounted:
                self.mounted.remove(args[-1])
        elif name == "blkid":
            stdout = self.partuuids.get(args[-1], f"uuid-{Path(args[-1]).name}") + "\n"
        elif name == "mkdir":
            self._path(root, args[-1]).mkdir(parents=True, exist_ok=True)
        elif name == "mv":
            self._path(root, args[1]).replace(self._path(root, args[2]))
        elif name == "cp":
            shutil.copy(self._path(root, args[1]), self._path(root, args[2]))
        elif name == "rm":
            self._path(root, args[-1]).unlink(missing_ok=True)
        elif name == "sbsign":
            out = args[args.index("--output") + 1]
            shutil.copy(self._path(root, args[-1]), self._path(root, out))
        elif name == "ukify":
            out = self._path(root, args[args.index("--output") + 1])
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_bytes(b"MZ-uki")

        return CmdResult(argv=list(argv), returncode=0, stdout=stdout, stderr="")

    def subprocess_run(self, argv, **kwargs):
        r = self.execute(argv)
        return subprocess.CompletedProcess(argv, r.returncode, r.stdout, r.stderr)


@pytest.fixture
def fake_system(monkeypatch) -> FakeSystem:
    fake = FakeSystem()
    monkeypatch.setattr(command.subprocess, "run", fake.subprocess_run)
    monkeypatch.setattr(command, "_run_streaming", lambda argv_list, *, env, cwd: fake.execute(argv_list))
    monkeypatch.delenv("http_proxy", raising=False)
    monkeypatch.delenv("https_proxy", raising=False)
    monkeypatch.delenv("HTTP_PROXY", raising=False)
    monkeypatch.delenv("HTTPS_PROXY", raising=False)
    monkeypatch.delenv("no_proxy", raising=False)
    monkeypatch.delenv("NO_PROXY", raising=False)
    return fake


# ==============================================================================
# Template and config fixtures
# ==============================================================================


def template_dict(os_name: str = "ubuntu") -> dict:
    return {
        "image": {"name": "edge-minimal", "version": "1.0.0"},
        "target": {"os": os_name, "dist": "ubuntu24", "arch": "x86_64", "imageType": "raw"},
        "disk": {
            "name": "default",
            "partitions": [
                {"id": "boot", "mountPoint": "/boot/efi", "fsType": "fat32", "type": "esp"},
                {
                    "id": "rootfs",
                    "mountPoint": "/",
                    "fsType": "ext4",
                    "type": "linux-root-amd64",
                },
                {"id": "bootfs", "mountPoint": "/boot", "fsType": "ext4"},
            ],
        },
        "systemConfig": {
            "name": "minimal",
            "hostname": "edge-node",
            "packages": ["systemd", "initramfs-tools", "filesystem", "openssh-server"],
            "kernel": {"version": "6.8"},
        },
    }


@pytest.fixture
def make_template(tmp_path) -> Callable[..., ImageTemplate]:
    def _make(os_name: str = "ubuntu", **system_config) -> ImageTemplate:
        raw = template_dict(os_name)
        raw["systemConfig"].update(system_config)
        return ImageTemplate.from_dict(raw, base_dir=str(tmp_path))

    return _make


@pytest.fixture
def debian_template(make_template) -> ImageTemplate:
    return make_template("ubuntu")


@pytest.fixture
def rpm_template(make_template) -> ImageTemplate:
    return make_template("azl")


@pytest.fixture
def disk_path_ids():
    return {"rootfs": "/dev/loop0p2", "boot": "/dev/loop0p1", "bootfs": "/dev/loop0p3"}


@pytest.fixture
def global_config(tmp_path) -> GlobalConfig:
    return GlobalConfig(
        raw={
            "work_dir": str(tmp_path / "work"),
            "temp_dir": str(tmp_path / "tmp"),
            "chroot_build_dir": str(tmp_path / "chrootbuild"),
        }
    )


@pytest.fixture
def install_root(tmp_path) -> Path:
    root = tmp_path / "chrootbuild" / "minimal"
    root.mkdir(parents=True)
    return root

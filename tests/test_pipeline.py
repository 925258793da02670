"""Tests for pipeline.py - stage sequencing and the teardown guarantee."""

import pytest

from edge_image_installer.build_config import GlobalConfig
from edge_image_installer.errors import (
    InstallationError,
    InstallerError,
    InstallRootError,
    PackageInstallError,
    UnmountError,
)
from edge_image_installer.install_state import InstallState
from edge_image_installer.pipeline import PipelineResult, default_steps, install_image_os


class RecordingStep:
    """Step double that records the mounts it saw and optionally fails."""

    def __init__(self, step_id, reaches, fake, error=None):
        self.step_id = step_id
        self.reaches = reaches
        self.fake = fake
        self.error = error
        self.seen_mounts = None

    def run(self, ctx):
        self.seen_mounts = list(self.fake.mounted)
        if self.error is not None:
            raise self.error


def _kernel(install_root):
    boot = install_root / "boot"
    boot.mkdir(parents=True, exist_ok=True)
    (boot / "vmlinuz-6.8.0-1").write_bytes(b"")


class TestInstallImageOs:
    """End-to-end runs over the fake command layer."""

    def test_full_run_reaches_unmounted(self, fake_system, debian_template, disk_path_ids, global_config, install_root):
        _kernel(install_root)

        result = install_image_os(disk_path_ids, debian_template, config=global_config)

        assert result.state == InstallState.UNMOUNTED
        assert result.states == list(InstallState)
        assert result.ran_steps == [s.step_id for s in default_steps()]
        assert result.install_root == str(install_root)
        assert fake_system.mounted == []
        assert (install_root / "etc" / "hostname").read_text(encoding="utf-8") == "edge-node\n"
        assert "PARTUUID=uuid-loop0p2 / ext4 defaults 0 1" in (install_root / "etc" / "fstab").read_text(
            encoding="utf-8"
        )

    def test_boot_installer_is_called_while_mounted(
        self, fake_system, debian_template, disk_path_ids, global_config, install_root
    ):
        _kernel(install_root)
        seen = []

        install_image_os(
            disk_path_ids,
            debian_template,
            config=global_config,
            boot_installer=lambda ctx: seen.append(list(fake_system.mounted)),
        )

        assert len(seen) == 1
        assert f"{install_root}/boot/efi" in seen[0]

    def test_missing_chroot_build_dir(self, fake_system, debian_template, disk_path_ids, tmp_path):
        config = GlobalConfig(raw={"chroot_build_dir": str(tmp_path / "absent")})

        with pytest.raises(InstallRootError, match="does not exist"):
            install_image_os(disk_path_ids, debian_template, config=config)

        assert fake_system.commands("mount") == []


class TestTeardownGuarantee:
    """Whatever fails after mounting, nothing stays mounted."""

    @pytest.mark.parametrize("failing_index", range(8))
    def test_failure_in_any_stage_unmounts(
        self, fake_system, debian_template, disk_path_ids, global_config, install_root, failing_index
    ):
        steps = [
            RecordingStep(
                s.step_id,
                s.reaches,
                fake_system,
                error=PackageInstallError("pkg", "boom") if i == failing_index else None,
            )
            for i, s in enumerate(default_steps())
        ]
        result = PipelineResult()

        with pytest.raises(InstallationError) as exc:
            install_image_os(disk_path_ids, debian_template, config=global_config, steps=steps, result=result)

        assert fake_system.mounted == []
        assert isinstance(exc.value.__cause__, PackageInstallError)
        assert exc.value.step_id == steps[failing_index].step_id
        assert result.failed_step == steps[failing_index].step_id
        assert len(steps[failing_index].seen_mounts) == 4
        assert result.state == InstallState.UNMOUNTED
        assert InstallState.MOUNTED in result.states

    def test_teardown_failure_after_stage_failure_keeps_stage_error(
        self, fake_system, debian_template, disk_path_ids, global_config, install_root
    ):
        fake_system.fail_when(lambda args: args == ["umount", f"{install_root}/boot"])
        steps = [RecordingStep("20_install_packages", InstallState.PACKAGES_INSTALLED, fake_system, InstallerError("x"))]
        result = PipelineResult()

        with pytest.raises(InstallationError) as exc:
            install_image_os(disk_path_ids, debian_template, config=global_config, steps=steps, result=result)

        assert exc.value.step_id == "20_install_packages"
        assert result.state == InstallState.MOUNTED
        assert fake_system.mounted == [f"{install_root}/boot"]

    def test_teardown_failure_after_success_is_raised(
        self, fake_system, debian_template, disk_path_ids, global_config, install_root
    ):
        fake_system.fail_when(lambda args: args == ["umount", f"{install_root}/sys"])
        steps = [RecordingStep("10_pre_install", InstallState.PRE_INSTALLED, fake_system)]

        with pytest.raises(UnmountError):
            install_image_os(disk_path_ids, debian_template, config=global_config, steps=steps)

        assert fake_system.mounted == [f"{install_root}/sys"]

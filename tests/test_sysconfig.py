"""Tests for lib/sysconfig.py - hostname, additional files and hook scripts."""

import pytest

from edge_image_installer.context import InstallationContext
from edge_image_installer.errors import ConfigUpdateError
from edge_image_installer.lib.sysconfig import configure_hostname, copy_additional_files, run_hook_scripts
from edge_image_installer.template import AdditionalFileInfo


class TestConfigureHostname:
    """Tests for configure_hostname()."""

    def test_writes_hostname_and_hosts(self, install_root):
        assert configure_hostname(str(install_root), "edge-node") is True

        assert (install_root / "etc" / "hostname").read_text(encoding="utf-8") == "edge-node\n"
        assert "127.0.1.1\tedge-node" in (install_root / "etc" / "hosts").read_text(encoding="utf-8")

    def test_empty_hostname_is_skipped(self, install_root):
        assert configure_hostname(str(install_root), "  ") is False
        assert not (install_root / "etc" / "hostname").exists()


class TestCopyAdditionalFiles:
    """Tests for copy_additional_files()."""

    def test_copies_relative_to_template(self, debian_template, global_config, install_root, tmp_path):
        (tmp_path / "files").mkdir()
        (tmp_path / "files" / "dhcp.network").write_text("[Match]\n", encoding="utf-8")
        debian_template.system_config.additional_files = [
            AdditionalFileInfo(local="files/dhcp.network", final="/etc/systemd/network/dhcp.network")
        ]
        ctx = InstallationContext(template=debian_template, config=global_config, install_root=str(install_root))

        copied = copy_additional_files(ctx)

        target = install_root / "etc" / "systemd" / "network" / "dhcp.network"
        assert copied == [target]
        assert target.read_text(encoding="utf-8") == "[Match]\n"

    def test_copies_directories(self, debian_template, global_config, install_root, tmp_path):
        (tmp_path / "overlay" / "sub").mkdir(parents=True)
        (tmp_path / "overlay" / "sub" / "a.conf").write_text("a", encoding="utf-8")
        debian_template.system_config.additional_files = [AdditionalFileInfo(local="overlay", final="/opt/app")]
        ctx = InstallationContext(template=debian_template, config=global_config, install_root=str(install_root))

        copy_additional_files(ctx)

        assert (install_root / "opt" / "app" / "sub" / "a.conf").read_text(encoding="utf-8") == "a"

    def test_missing_source(self, debian_template, global_config, install_root):
        debian_template.system_config.additional_files = [AdditionalFileInfo(local="nope", final="/etc/nope")]
        ctx = InstallationContext(template=debian_template, config=global_config, install_root=str(install_root))

        with pytest.raises(ConfigUpdateError, match="not found"):
            copy_additional_files(ctx)


class TestRunHookScripts:
    """Tests for run_hook_scripts()."""

    def test_runs_with_target_rootfs(self, fake_system, debian_template, global_config, install_root, tmp_path):
        (tmp_path / "post_rootfs.sh").write_text("#!/bin/bash\n", encoding="utf-8")
        ctx = InstallationContext(template=debian_template, config=global_config, install_root=str(install_root))

        assert run_hook_scripts(ctx, ["post_rootfs.sh"], phase="post-install") == 1

        assert fake_system.commands("env") == [
            ["env", f"TARGET_ROOTFS={install_root}", "bash", str(tmp_path / "post_rootfs.sh")]
        ]

    def test_no_scripts(self, fake_system, debian_template, global_config, install_root):
        ctx = InstallationContext(template=debian_template, config=global_config, install_root=str(install_root))

        assert run_hook_scripts(ctx, [], phase="pre-install") == 0
        assert fake_system.calls == []

    def test_failing_script(self, fake_system, debian_template, global_config, install_root, tmp_path):
        (tmp_path / "bad.sh").write_text("exit 1\n", encoding="utf-8")
        fake_system.fail_when(lambda args: args[-1].endswith("bad.sh"))
        ctx = InstallationContext(template=debian_template, config=global_config, install_root=str(install_root))

        with pytest.raises(ConfigUpdateError, match="bad.sh"):
            run_hook_scripts(ctx, ["bad.sh"], phase="pre-install")

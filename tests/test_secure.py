"""Tests for lib/secure.py - read-only root filesystem configuration."""

import pytest

from edge_image_installer.errors import SecurityConfigError
from edge_image_installer.lib.secure import configure_image_security, readonly_fstab
from edge_image_installer.template import Partition

FSTAB = (
    "# generated\n"
    "PARTUUID=a /boot/efi vfat defaults 0 2\n"
    "PARTUUID=b / ext4 rw,noatime 0 1\n"
)


def _ro_template(template, options="ro"):
    template.disk.partitions = [
        Partition(id="rootfs", mount_point="/", fs_type="ext4", mount_options=options, type="linux-root-amd64")
    ]
    return template


class TestReadonlyFstab:
    """Tests for readonly_fstab()."""

    def test_root_rw_becomes_ro(self):
        content, changed = readonly_fstab(FSTAB)

        assert changed is True
        assert content.splitlines() == [
            "# generated",
            "PARTUUID=a /boot/efi vfat defaults 0 2",
            "PARTUUID=b / ext4 noatime,ro 0 1",
        ]

    def test_already_ro(self):
        _, changed = readonly_fstab("PARTUUID=b / ext4 ro 0 1\n")
        assert changed is False

    def test_option_containing_ro_substring_is_not_ro(self):
        content, changed = readonly_fstab("PARTUUID=b / ext4 errors=remount-ro 0 1\n")
        assert changed is True
        assert "errors=remount-ro,ro" in content


class TestConfigureImageSecurity:
    """Tests for configure_image_security()."""

    def test_not_requested(self, debian_template, install_root):
        assert configure_image_security(str(install_root), debian_template) is False

    def test_rewrites_fstab(self, debian_template, install_root):
        fstab = install_root / "etc" / "fstab"
        fstab.parent.mkdir(parents=True)
        fstab.write_text(FSTAB, encoding="utf-8")

        assert configure_image_security(str(install_root), _ro_template(debian_template, "defaults,ro")) is True

        assert "PARTUUID=b / ext4 noatime,ro 0 1" in fstab.read_text(encoding="utf-8")
        assert not (install_root / "etc" / "fstab.tmp").exists()

    def test_missing_fstab(self, debian_template, install_root):
        with pytest.raises(SecurityConfigError, match="fstab"):
            configure_image_security(str(install_root), _ro_template(debian_template))

    def test_empty_fstab(self, debian_template, install_root):
        fstab = install_root / "etc" / "fstab"
        fstab.parent.mkdir(parents=True)
        fstab.write_text("\n", encoding="utf-8")

        with pytest.raises(SecurityConfigError, match="empty"):
            configure_image_security(str(install_root), _ro_template(debian_template))

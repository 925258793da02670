"""Edge image OS installer.

Installs a templated operating system into already-partitioned image disks:
- Mounts partitions under a per-image install root and always tears them down
- Installs packages into the root (RPM or Debian family targets)
- Writes apt repositories, hostname, additional files and fstab
- Builds and secure-boot signs a unified kernel image
"""

__all__ = []

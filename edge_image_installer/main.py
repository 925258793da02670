from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional, Tuple

from .build_config import GlobalConfig, load_global_config
from .build_report import REPORT_NAME, build_report, save_report
from .errors import InstallerError
from .logging_utils import DEFAULT_LOG_PATH, configure_logging
from .pipeline import PipelineResult, install_image_os
from .template import load_template

logger = logging.getLogger(__name__)


def parse_disk_arg(value: str) -> Tuple[str, str]:
    part_id, sep, device = value.partition("=")
    if not sep or not part_id.strip() or not device.strip():
        raise argparse.ArgumentTypeError(f"expected PARTITION_ID=DEVICE, got {value!r}")
    return part_id.strip(), device.strip()


def default_report_path(config: GlobalConfig, provider_id: str, sysconfig_name: str) -> str:
    return str(Path(config.image_build_dir(provider_id)) / sysconfig_name / REPORT_NAME)


def run(
    *,
    template_path: str,
    disks: List[Tuple[str, str]],
    config_path: Optional[str] = None,
    log_path: str = DEFAULT_LOG_PATH,
    report_path: Optional[str] = None,
    dry_run: bool = False,
) -> PipelineResult:
    """Install the image OS described by a template and write a build report."""

    config = load_global_config(config_path)
    if dry_run:
        config = GlobalConfig(raw={**config.raw, "dry_run": True})

    actual_log_path = configure_logging(log_path=log_path, level=config.log_level)

    template = load_template(template_path)
    report_path = report_path or default_report_path(
        config, template.provider_id, template.system_config.name
    )

    result = PipelineResult()
    error: Optional[BaseException] = None
    try:
        return install_image_os(disks, template, config=config, result=result)
    except InstallerError as e:
        logger.exception("Image installation failed")
        error = e
        raise
    finally:
        save_report(
            report_path,
            build_report(
                result,
                image_name=template.image_name,
                image_version=template.image_version,
                error=error,
                log_path=actual_log_path,
            ),
        )


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="edge-image-installer")
    p.add_argument("--template", required=True, help="Path to the image template (yaml)")
    p.add_argument(
        "--disk",
        dest="disks",
        action="append",
        type=parse_disk_arg,
        default=[],
        metavar="ID=DEVICE",
        help="Partition ID to device path mapping, repeatable (e.g. rootfs=/dev/loop0p2)",
    )
    p.add_argument("--config", default=None, help="Path to global config (yaml)")
    p.add_argument("--log", default=DEFAULT_LOG_PATH, help="Path to installer log")
    p.add_argument("--report", default=None, help="Path to the JSON build report")
    p.add_argument("--dry-run", action="store_true", help="Log commands without running them")

    args = p.parse_args(argv)
    if not args.disks:
        p.error("at least one --disk ID=DEVICE is required")

    try:
        run(
            template_path=args.template,
            disks=args.disks,
            config_path=args.config,
            log_path=args.log,
            report_path=args.report,
            dry_run=bool(args.dry_run),
        )
    except InstallerError:
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

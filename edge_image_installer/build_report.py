from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .pipeline import PipelineResult

logger = logging.getLogger(__name__)

REPORT_NAME = "install-report.json"


def build_report(
    result: PipelineResult,
    *,
    image_name: str,
    image_version: str = "",
    error: Optional[BaseException] = None,
    log_path: Optional[str] = None,
) -> Dict[str, Any]:
    report: Dict[str, Any] = {
        "image": image_name,
        "version": image_version,
        "finished_at": datetime.now(timezone.utc).isoformat(),
        "install_root": result.install_root,
        "final_state": result.state.value,
        "states": [s.value for s in result.states],
        "ran_steps": list(result.ran_steps),
        "failed_step": result.failed_step,
        "errors": [],
    }
    if log_path:
        report["log_path"] = log_path
    if error is not None:
        entry = {"type": type(error).__name__, "error": str(error)}
        cause = error.__cause__
        if cause is not None:
            entry["cause"] = {"type": type(cause).__name__, "error": str(cause)}
        report["errors"].append(entry)
    return report


def save_report(path: str, report: Dict[str, Any]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(report, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    logger.info("Wrote build report %s", str(p))


from __future__ import annotations

import json
import os
from typing import Any, Dict, List

from hostkernel.core.modules.models import InitializedModuleInfo, ModuleSetupReport


def modules_status_lines(report: ModuleSetupReport) -> List[str]:
    """
    Columns: module | stage | success | detail
    """
    lines = ["module | stage | success | detail"]
    for m in report.module_details:
        if isinstance(m, InitializedModuleInfo):
            detail = f"{m.init_time_ms:.1f} ms"
        elif not m.success:
            detail = str(getattr(m, "error", ""))
        else:
            detail = ""
        lines.append(f"{m.name} | {m.stage.value} | {str(bool(m.success)).lower()} | {detail}")
    return lines


def to_human(report: ModuleSetupReport) -> str:
    lines = []
    lines.append(
        f"Module setup: {report.initialized}/{report.discovered} initialized, "
        f"{report.failed} failed ({report.setup_time_ms:.1f} ms)"
    )
    lines.append(
        f"- discovered={report.discovered} validated={report.validated} "
        f"loaded={report.loaded} initialized={report.initialized}"
    )
    if report.module_details:
        lines.append("Modules:")
        for row in modules_status_lines(report)[1:]:
            lines.append(f"- {row}")
    if report.errors:
        lines.append("Errors:")
        for e in report.errors:
            cause = f" ({e.to_dict()['cause']})" if e.cause is not None else ""
            lines.append(f"- [{e.stage.value}] {e}{cause}")
    return "\n".join(lines)


def to_json_dict(report: ModuleSetupReport) -> Dict[str, Any]:
    return report.to_dict()


def write_report(report: ModuleSetupReport, path: str) -> str:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    tmp = path + ".tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(to_json_dict(report), f, indent=2, ensure_ascii=False, default=str)
        f.write("\n")
    os.replace(tmp, path)
    return path

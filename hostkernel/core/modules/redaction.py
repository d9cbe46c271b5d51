from __future__ import annotations

"""
Payload shaping for module setup ops log lines.

Ops log lines carry the outcome of each module, never manifest contents or
arbitrary module-provided text beyond the error summary.
"""

from typing import Any, Dict

from hostkernel.core.modules.models import InitializedModuleInfo, ModuleInfo


def redact_module_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Keep only safe, non-sensitive fields.
    """
    p = payload or {}
    allow = {
        "module",
        "stage",
        "success",
        "error_code",
        "error",
        "init_time_ms",
        "discovered",
        "initialized",
        "failed",
        "setup_time_ms",
    }
    out: Dict[str, Any] = {}
    for k in allow:
        if k in p:
            out[k] = p.get(k)
    if isinstance(out.get("error"), str):
        out["error"] = out["error"][:200]
    return out


def module_status_payload(info: ModuleInfo) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "module": info.name,
        "stage": info.stage.value,
        "success": bool(info.success),
        "manifest": getattr(info, "manifest", None),
    }
    error = getattr(info, "error", None)
    if error is not None:
        payload["error_code"] = error.code
        payload["error"] = str(error)
    if isinstance(info, InitializedModuleInfo):
        payload["init_time_ms"] = round(info.init_time_ms, 3)
    return redact_module_payload(payload)

from __future__ import annotations

"""
Module bootstrap pipeline.

The host calls setup() once at process start. Modules are discovered under the
configured modules root, validated against their manifest contract, loaded and
initialized in lexicographic order. The functions below operate on one
process-wide ModuleSetup built from config/modules.json; construct ModuleSetup
directly for independent pipelines.
"""

import threading
from typing import Optional, Tuple

from hostkernel.core.config_loader import ModulesSettings, load_settings
from hostkernel.core.modules.models import ModuleInfo, ModuleManifest, ModuleSetupReport
from hostkernel.core.modules.setup import ModuleSetup
from hostkernel.core.ops_log import OpsLogger

__all__ = [
    "ModuleSetup",
    "configure",
    "default_setup",
    "get_load_order",
    "get_manifests",
    "get_module_info",
    "get_report",
    "is_module_set_up",
    "reset_state",
    "setup",
]

_default: Optional[ModuleSetup] = None
_default_lock = threading.Lock()


def default_setup() -> ModuleSetup:
    global _default
    with _default_lock:
        if _default is None:
            settings = load_settings()
            _default = ModuleSetup(settings=settings, ops=OpsLogger(path=settings.ops_log_path))
        return _default


def configure(settings: ModulesSettings, *, ops: Optional[OpsLogger] = None) -> ModuleSetup:
    """
    Replace the process-wide pipeline. Only allowed before setup() has run.
    """
    global _default
    with _default_lock:
        if _default is not None and (_default.in_progress or _default.complete):
            raise RuntimeError("Module setup has already run; configure() must be called before setup().")
        _default = ModuleSetup(settings=settings, ops=ops if ops is not None else OpsLogger(path=settings.ops_log_path))
        return _default


def setup() -> None:
    default_setup().setup()


def get_manifests() -> Tuple[ModuleManifest, ...]:
    return default_setup().get_manifests()


def get_report() -> ModuleSetupReport:
    return default_setup().get_report()


def get_load_order() -> Tuple[str, ...]:
    return default_setup().get_load_order()


def is_module_set_up(name: str) -> bool:
    return default_setup().is_module_set_up(name)


def get_module_info(name: str) -> Optional[ModuleInfo]:
    return default_setup().get_module_info(name)


def reset_state() -> None:
    default_setup().reset_state()

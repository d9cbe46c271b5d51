from __future__ import annotations

"""
Diagnostics registry for module setup.

Holds the current status record of every discovered module, the load order of
initialized modules and the duration of the last setup run. Written only by the
pipeline stages; everything else reads derived views.
"""

from typing import Dict, List, Optional, Tuple

from hostkernel.core.errors import StateTransitionError
from hostkernel.core.modules.errors import ModuleSetupError
from hostkernel.core.modules.models import (
    InitializedModuleInfo,
    ModuleInfo,
    ModuleManifest,
    ModuleSetupReport,
    ModuleSetupStage,
)


class ModuleDiagnostics:
    def __init__(self) -> None:
        self._modules: Dict[str, ModuleInfo] = {}
        self._load_order: List[str] = []
        self.setup_time_ms: float = 0.0

    # ---- writes (pipeline only) ----
    def record(self, info: ModuleInfo) -> None:
        prev = self._modules.get(info.name)
        if prev is not None:
            self._check_transition(prev, info)
        self._modules[info.name] = info

    @staticmethod
    def _check_transition(prev: ModuleInfo, nxt: ModuleInfo) -> None:
        # a module moves forward one stage at a time, and only from a success
        if nxt.stage.order != prev.stage.order + 1 or not prev.success:
            raise StateTransitionError(
                f'Illegal status transition for module "{nxt.name}"',
                module=nxt.name,
                from_stage=prev.stage.value,
                from_success=prev.success,
                to_stage=nxt.stage.value,
            )

    def mark_initialized(self, name: str) -> None:
        self._load_order.append(name)

    def clear(self) -> None:
        self._modules.clear()
        self._load_order.clear()
        self.setup_time_ms = 0.0

    # ---- reads ----
    def get(self, name: str) -> Optional[ModuleInfo]:
        return self._modules.get(name)

    def records(self) -> Tuple[ModuleInfo, ...]:
        return tuple(self._modules.values())

    def load_order(self) -> Tuple[str, ...]:
        return tuple(self._load_order)

    def manifests(self) -> Tuple[ModuleManifest, ...]:
        return tuple(m.manifest for m in self._modules.values() if isinstance(m, InitializedModuleInfo))

    def is_set_up(self, name: str) -> bool:
        return isinstance(self._modules.get(name), InitializedModuleInfo)

    def errors(self) -> Tuple[ModuleSetupError, ...]:
        return tuple(m.error for m in self._modules.values() if not m.success)

    def count_reached(self, stage: ModuleSetupStage) -> int:
        """
        Number of modules that passed `stage`: a success record at that stage,
        or any record at a later stage.
        """
        n = 0
        for m in self._modules.values():
            if m.stage.order > stage.order or (m.stage == stage and m.success):
                n += 1
        return n

    def report(self) -> ModuleSetupReport:
        records = self.records()
        errors = self.errors()
        return ModuleSetupReport(
            discovered=len(records),
            validated=self.count_reached(ModuleSetupStage.VALIDATION),
            loaded=self.count_reached(ModuleSetupStage.LOADING),
            initialized=self.count_reached(ModuleSetupStage.INITIALIZATION),
            failed=len(errors),
            setup_time_ms=self.setup_time_ms,
            errors=errors,
            module_details=records,
        )

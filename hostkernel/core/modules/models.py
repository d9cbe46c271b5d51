from __future__ import annotations

"""
Module setup data model: manifest contract, per-module status records and the
aggregated setup report.

Status records form a closed set of variants keyed by (stage, success). The
fields available on a record depend on both, so each combination is its own
frozen dataclass and `ModuleInfo` is their union.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Literal, Tuple, Union

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from hostkernel.core.modules.errors import ModuleSetupError


MANIFEST_FILENAME = "manifest.json"
SOURCE_EXTENSIONS: Tuple[str, ...] = (".py",)


class ModuleSetupStage(str, Enum):
    DISCOVERY = "discovery"
    VALIDATION = "validation"
    LOADING = "loading"
    INITIALIZATION = "initialization"

    @property
    def order(self) -> int:
        return _STAGE_ORDER[self]


_STAGE_ORDER = {
    ModuleSetupStage.DISCOVERY: 0,
    ModuleSetupStage.VALIDATION: 1,
    ModuleSetupStage.LOADING: 2,
    ModuleSetupStage.INITIALIZATION: 3,
}


class ModuleManifest(BaseModel):
    """
    Validated manifest. Unknown keys (displayName, description, ...) are kept
    verbatim as extra fields.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    name: str
    entry: str

    @property
    def metadata(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


# ---- status records ----
@dataclass(frozen=True)
class DiscoveryFailedModuleInfo:
    name: str
    error: ModuleSetupError
    stage: Literal[ModuleSetupStage.DISCOVERY] = field(default=ModuleSetupStage.DISCOVERY, init=False)
    success: Literal[False] = field(default=False, init=False)


@dataclass(frozen=True)
class DiscoveredModuleInfo:
    name: str
    manifest: Dict[str, Any]
    stage: Literal[ModuleSetupStage.DISCOVERY] = field(default=ModuleSetupStage.DISCOVERY, init=False)
    success: Literal[True] = field(default=True, init=False)


@dataclass(frozen=True)
class ValidationFailedModuleInfo:
    name: str
    error: ModuleSetupError
    manifest: Dict[str, Any]
    stage: Literal[ModuleSetupStage.VALIDATION] = field(default=ModuleSetupStage.VALIDATION, init=False)
    success: Literal[False] = field(default=False, init=False)


@dataclass(frozen=True)
class ValidatedModuleInfo:
    name: str
    manifest: ModuleManifest
    stage: Literal[ModuleSetupStage.VALIDATION] = field(default=ModuleSetupStage.VALIDATION, init=False)
    success: Literal[True] = field(default=True, init=False)


@dataclass(frozen=True)
class LoadFailedModuleInfo:
    name: str
    error: ModuleSetupError
    manifest: ModuleManifest
    stage: Literal[ModuleSetupStage.LOADING] = field(default=ModuleSetupStage.LOADING, init=False)
    success: Literal[False] = field(default=False, init=False)


@dataclass(frozen=True)
class LoadedModuleInfo:
    name: str
    manifest: ModuleManifest
    stage: Literal[ModuleSetupStage.LOADING] = field(default=ModuleSetupStage.LOADING, init=False)
    success: Literal[True] = field(default=True, init=False)


@dataclass(frozen=True)
class InitializationFailedModuleInfo:
    name: str
    error: ModuleSetupError
    manifest: ModuleManifest
    stage: Literal[ModuleSetupStage.INITIALIZATION] = field(default=ModuleSetupStage.INITIALIZATION, init=False)
    success: Literal[False] = field(default=False, init=False)


@dataclass(frozen=True)
class InitializedModuleInfo:
    name: str
    manifest: ModuleManifest
    init_time_ms: float
    stage: Literal[ModuleSetupStage.INITIALIZATION] = field(default=ModuleSetupStage.INITIALIZATION, init=False)
    success: Literal[True] = field(default=True, init=False)


ModuleInfo = Union[
    DiscoveryFailedModuleInfo,
    DiscoveredModuleInfo,
    ValidationFailedModuleInfo,
    ValidatedModuleInfo,
    LoadFailedModuleInfo,
    LoadedModuleInfo,
    InitializationFailedModuleInfo,
    InitializedModuleInfo,
]


def module_info_to_dict(info: ModuleInfo) -> Dict[str, Any]:
    out: Dict[str, Any] = {"name": info.name, "stage": info.stage.value, "success": bool(info.success)}
    manifest = getattr(info, "manifest", None)
    if isinstance(manifest, ModuleManifest):
        out["manifest"] = manifest.to_dict()
    elif isinstance(manifest, dict):
        out["manifest"] = dict(manifest)
    error = getattr(info, "error", None)
    if error is not None:
        out["error"] = error.to_dict()
    if isinstance(info, InitializedModuleInfo):
        out["init_time_ms"] = round(info.init_time_ms, 3)
    return out


@dataclass(frozen=True)
class ModuleSetupReport:
    discovered: int
    validated: int
    loaded: int
    initialized: int
    failed: int
    setup_time_ms: float
    errors: Tuple[ModuleSetupError, ...] = ()
    module_details: Tuple[ModuleInfo, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "discovered": self.discovered,
            "validated": self.validated,
            "loaded": self.loaded,
            "initialized": self.initialized,
            "failed": self.failed,
            "setup_time_ms": round(self.setup_time_ms, 3),
            "errors": [e.to_dict() for e in self.errors],
            "module_details": [module_info_to_dict(m) for m in self.module_details],
        }

from __future__ import annotations

"""
Module setup error taxonomy.

One error kind per pipeline stage, plus specializations for the validation and
loading stages. Errors are stored in the diagnostics registry by the stage that
produced them; the pipeline never raises them.
"""

from typing import Any, Dict, Optional

from hostkernel.core.errors import KernelError, Severity
from hostkernel.core.modules.models import ModuleSetupStage


class ModuleSetupError(KernelError):
    def __init__(
        self,
        message: str,
        module: str,
        stage: ModuleSetupStage,
        cause: Optional[BaseException] = None,
        *,
        code: str = "module_setup_error",
    ):
        super().__init__(
            code,
            message,
            severity=Severity.ERROR,
            recoverable=False,
            context={"module": module, "stage": stage.value},
        )
        self.module = module
        self.stage = stage
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        out["error_type"] = type(self).__name__
        out["module"] = self.module
        out["stage"] = self.stage.value
        out["cause"] = _describe(self.cause)
        return out


def _describe(cause: Optional[BaseException]) -> Optional[str]:
    if cause is None:
        return None
    text = str(cause)
    name = type(cause).__name__
    return f"{name}: {text}"[:300] if text else name


class ModuleDiscoveryError(ModuleSetupError):
    def __init__(self, module: str, cause: Optional[BaseException] = None):
        super().__init__(
            f'Failed to discover module "{module}"',
            module,
            ModuleSetupStage.DISCOVERY,
            cause,
            code="module_discovery_error",
        )


class ModuleValidationError(ModuleSetupError):
    def __init__(self, message: str, module: str, cause: Optional[BaseException] = None, *, code: str = "module_validation_error"):
        super().__init__(message, module, ModuleSetupStage.VALIDATION, cause, code=code)


class ManifestMissingFieldError(ModuleValidationError):
    def __init__(self, module: str, field: str):
        super().__init__(
            f'Manifest for module "{module}" is missing required field "{field}"',
            module,
            code="manifest_missing_field",
        )
        self.field = field


class ManifestNameMismatchError(ModuleValidationError):
    def __init__(self, dir_name: str, manifest_name: str):
        super().__init__(
            f'Manifest name "{manifest_name}" does not match folder name "{dir_name}"',
            dir_name,
            code="manifest_name_mismatch",
        )
        self.manifest_name = manifest_name


class ManifestEntryExtensionError(ModuleValidationError):
    def __init__(self, module: str, entry: str):
        super().__init__(
            f'Manifest entry "{entry}" for module "{module}" must be a recognized source file',
            module,
            code="manifest_entry_extension",
        )
        self.entry = entry


class ManifestEntryNotFoundError(ModuleValidationError):
    def __init__(self, module: str, entry: str):
        super().__init__(
            f'Manifest entry file "{entry}" not found for module "{module}"',
            module,
            code="manifest_entry_not_found",
        )
        self.entry = entry


class ModuleLoadError(ModuleSetupError):
    def __init__(self, module: str, cause: Optional[BaseException] = None, *, message: str = "", code: str = "module_load_error"):
        super().__init__(
            message or f'Failed to load module "{module}"',
            module,
            ModuleSetupStage.LOADING,
            cause,
            code=code,
        )


class EntryPointMissingInitError(ModuleLoadError):
    def __init__(self, module: str):
        super().__init__(
            module,
            message=f"Entry point for module \"{module}\" does not export an 'init' function",
            code="entry_point_missing_init",
        )


class ModuleInitializationError(ModuleSetupError):
    def __init__(self, module: str, cause: Optional[BaseException] = None):
        super().__init__(
            f'Initialization failed for module "{module}"',
            module,
            ModuleSetupStage.INITIALIZATION,
            cause,
            code="module_initialization_error",
        )

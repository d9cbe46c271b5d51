from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional, Sequence, Tuple

from hostkernel.core.modules.diagnostics import ModuleDiagnostics
from hostkernel.core.modules.errors import (
    ManifestEntryExtensionError,
    ManifestEntryNotFoundError,
    ManifestMissingFieldError,
    ManifestNameMismatchError,
    ModuleValidationError,
)
from hostkernel.core.modules.models import (
    SOURCE_EXTENSIONS,
    ModuleManifest,
    ValidatedModuleInfo,
    ValidationFailedModuleInfo,
)

logger = logging.getLogger(__name__)


def check_manifest(
    dir_name: str,
    raw: Dict[str, Any],
    *,
    module_dir: str,
    extensions: Sequence[str] = SOURCE_EXTENSIONS,
) -> Tuple[Optional[ModuleManifest], Optional[ModuleValidationError]]:
    """
    Decide whether `raw` is a valid manifest for the module in `dir_name`.
    Returns (manifest, None) on success and (None, error) otherwise; the first
    failing check wins.

    Only the final entry existence check touches the filesystem.
    """
    name = raw.get("name")
    entry = raw.get("entry")

    if not isinstance(name, str) or not name:
        return None, ManifestMissingFieldError(dir_name, "name")
    if not isinstance(entry, str) or not entry:
        return None, ManifestMissingFieldError(dir_name, "entry")
    if name != dir_name:
        return None, ManifestNameMismatchError(dir_name, name)
    if not entry.endswith(tuple(extensions)):
        return None, ManifestEntryExtensionError(dir_name, entry)
    if not os.path.isfile(os.path.join(module_dir, entry)):
        return None, ManifestEntryNotFoundError(dir_name, entry)

    return ModuleManifest.model_validate(raw), None


class ManifestValidator:
    def __init__(self, *, modules_root: str, diagnostics: ModuleDiagnostics):
        self.modules_root = str(modules_root)
        self.diagnostics = diagnostics

    def validate(self, dir_name: str, raw: Dict[str, Any]) -> Optional[ModuleManifest]:
        manifest, error = check_manifest(dir_name, raw, module_dir=os.path.join(self.modules_root, dir_name))
        if error is not None:
            logger.warning("Module %s failed validation: %s", dir_name, error)
            self.diagnostics.record(ValidationFailedModuleInfo(name=dir_name, error=error, manifest=raw))
            return None
        self.diagnostics.record(ValidatedModuleInfo(name=dir_name, manifest=manifest))
        return manifest

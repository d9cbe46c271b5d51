from __future__ import annotations

"""
Entry point loading.

Imports a validated module's entry file by path and resolves its `init`
callable. Import-time failures and a missing/non-callable `init` are recorded
as distinct load errors; `init` itself is never called here.
"""

import hashlib
import importlib.util
import logging
import os
import re
import sys
from types import ModuleType
from typing import Any, Awaitable, Callable, Optional, Union

from hostkernel.core.modules.diagnostics import ModuleDiagnostics
from hostkernel.core.modules.errors import EntryPointMissingInitError, ModuleLoadError
from hostkernel.core.modules.models import LoadedModuleInfo, LoadFailedModuleInfo, ModuleManifest

logger = logging.getLogger(__name__)

INIT_EXPORT = "init"

ModuleInit = Callable[[], Union[None, Awaitable[Any]]]


def synthetic_module_name(name: str) -> str:
    """
    sys.modules key for a module directory. The digest keeps names that
    sanitize alike (`a-b`, `a_b`) apart.
    """
    digest = hashlib.sha1(name.encode("utf-8")).hexdigest()[:8]
    safe = re.sub(r"\W", "_", name)
    return f"hostkernel_module_{safe}_{digest}"


def import_entry_file(module_name: str, path: str) -> ModuleType:
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot create import spec for {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(module_name, None)
        raise
    return module


class EntryPointLoader:
    def __init__(self, *, modules_root: str, diagnostics: ModuleDiagnostics):
        self.modules_root = str(modules_root)
        self.diagnostics = diagnostics

    def entry_path(self, manifest: ModuleManifest) -> str:
        return os.path.abspath(os.path.join(self.modules_root, manifest.name, manifest.entry))

    def load(self, manifest: ModuleManifest) -> Optional[ModuleInit]:
        path = self.entry_path(manifest)
        try:
            module = import_entry_file(synthetic_module_name(manifest.name), path)
        except KeyboardInterrupt:
            raise
        except BaseException as e:  # noqa: BLE001
            logger.warning("Module %s failed to load from %s: %s", manifest.name, path, e)
            self.diagnostics.record(LoadFailedModuleInfo(name=manifest.name, error=ModuleLoadError(manifest.name, e), manifest=manifest))
            return None

        init = getattr(module, INIT_EXPORT, None)
        if not callable(init):
            logger.warning("Module %s does not export a callable %s()", manifest.name, INIT_EXPORT)
            self.diagnostics.record(LoadFailedModuleInfo(name=manifest.name, error=EntryPointMissingInitError(manifest.name), manifest=manifest))
            return None

        self.diagnostics.record(LoadedModuleInfo(name=manifest.name, manifest=manifest))
        return init

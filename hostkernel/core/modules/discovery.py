from __future__ import annotations

"""
Module discovery (manifest scanning).

Lists the immediate subdirectories of the modules root in lexicographic order
and reads each one's manifest. Discovery never imports module code; it only
reads manifest text.
"""

import json
import logging
import os
from typing import Any, Dict, List

from hostkernel.core.modules.diagnostics import ModuleDiagnostics
from hostkernel.core.modules.errors import ModuleDiscoveryError
from hostkernel.core.modules.models import MANIFEST_FILENAME, DiscoveredModuleInfo, DiscoveryFailedModuleInfo

logger = logging.getLogger(__name__)


class ModuleDiscovery:
    def __init__(self, *, modules_root: str, diagnostics: ModuleDiagnostics):
        self.modules_root = str(modules_root)
        self.diagnostics = diagnostics

    def list_module_dirs(self) -> List[str]:
        if not os.path.isdir(self.modules_root):
            logger.warning("Modules root %s does not exist; nothing to discover.", self.modules_root)
            return []
        try:
            entries = os.listdir(self.modules_root)
        except OSError as e:
            logger.error("Cannot list modules root %s: %s", self.modules_root, e)
            return []
        names = [n for n in entries if os.path.isdir(os.path.join(self.modules_root, n))]
        return sorted(names)

    def read_manifest(self, name: str) -> Dict[str, Any]:
        manifest_path = os.path.join(self.modules_root, name, MANIFEST_FILENAME)
        with open(manifest_path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        if not isinstance(raw, dict):
            raise ValueError("manifest JSON must be an object")
        return raw

    def scan(self) -> Dict[str, Dict[str, Any]]:
        out: Dict[str, Dict[str, Any]] = {}
        for name in self.list_module_dirs():
            try:
                out[name] = self.read_manifest(name)
            except Exception as e:  # noqa: BLE001
                logger.warning("Module %s failed discovery: %s", name, e)
                self.diagnostics.record(DiscoveryFailedModuleInfo(name=name, error=ModuleDiscoveryError(name, e)))
                continue
            self.diagnostics.record(DiscoveredModuleInfo(name=name, manifest=out[name]))
        return out

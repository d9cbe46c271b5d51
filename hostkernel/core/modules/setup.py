from __future__ import annotations

"""
ModuleSetup: the startup pipeline that turns the modules directory into a set
of initialized modules.

Stages run in order over every module: discovery -> validation -> loading ->
initialization. A failure at any stage is recorded in the diagnostics registry
and only stops that module. setup() runs at most once per instance and never
raises for module-level failures.
"""

import logging
import os
import threading
import time
from typing import Dict, Optional, Tuple

from hostkernel.core.config_loader import ModulesSettings
from hostkernel.core.modules.diagnostics import ModuleDiagnostics
from hostkernel.core.modules.discovery import ModuleDiscovery
from hostkernel.core.modules.initializer import ModuleInitializer
from hostkernel.core.modules.loader import EntryPointLoader, ModuleInit
from hostkernel.core.modules.models import ModuleInfo, ModuleManifest, ModuleSetupReport
from hostkernel.core.modules.redaction import module_status_payload, redact_module_payload
from hostkernel.core.modules.reporting import write_report
from hostkernel.core.modules.validation import ManifestValidator
from hostkernel.core.ops_log import OpsLogger

logger = logging.getLogger(__name__)

TRACE_ID = "modules.setup"


def in_test_context() -> bool:
    return bool(os.environ.get("PYTEST_CURRENT_TEST"))


class ModuleSetup:
    def __init__(self, *, settings: ModulesSettings, ops: Optional[OpsLogger] = None):
        self.settings = settings
        self.ops = ops
        self.diagnostics = ModuleDiagnostics()
        self._gate = threading.Lock()
        self._in_progress = False
        self._complete = False

    @property
    def modules_root(self) -> str:
        return self.settings.modules_root

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    @property
    def complete(self) -> bool:
        return self._complete

    # ---- pipeline ----
    def setup(self) -> None:
        """
        Discover, validate, load and initialize all modules under the modules
        root. Only the first call does anything; later or concurrent calls
        return immediately. Use get_report() for the outcome.
        """
        with self._gate:
            if self._complete or self._in_progress:
                return
            self._in_progress = True

        self._ops_log("modules.setup.begin", "start", {})
        started = time.perf_counter()
        try:
            self._run_stages()
        except KeyboardInterrupt:
            raise
        except BaseException:  # noqa: BLE001
            logger.exception("Module setup stopped unexpectedly; remaining modules were skipped.")
        finally:
            self.diagnostics.setup_time_ms = (time.perf_counter() - started) * 1000.0
            with self._gate:
                self._in_progress = False
                self._complete = True

        self._publish()

    def _run_stages(self) -> None:
        root = self.modules_root
        discovered = ModuleDiscovery(modules_root=root, diagnostics=self.diagnostics).scan()

        validator = ManifestValidator(modules_root=root, diagnostics=self.diagnostics)
        manifests: Dict[str, ModuleManifest] = {}
        for name, raw in discovered.items():
            manifest = validator.validate(name, raw)
            if manifest is not None:
                manifests[name] = manifest

        loader = EntryPointLoader(modules_root=root, diagnostics=self.diagnostics)
        inits: Dict[str, Tuple[ModuleManifest, ModuleInit]] = {}
        for name, manifest in manifests.items():
            init = loader.load(manifest)
            if init is not None:
                inits[name] = (manifest, init)

        initializer = ModuleInitializer(diagnostics=self.diagnostics)
        for manifest, init in inits.values():
            initializer.initialize(manifest, init)

    def _publish(self) -> None:
        report = self.diagnostics.report()
        for info in report.module_details:
            self._ops_log("modules.setup.module", "ok" if info.success else "failed", module_status_payload(info))
        self._ops_log(
            "modules.setup.complete",
            "ok" if report.failed == 0 else "degraded",
            redact_module_payload(
                {
                    "discovered": report.discovered,
                    "initialized": report.initialized,
                    "failed": report.failed,
                    "setup_time_ms": round(report.setup_time_ms, 3),
                }
            ),
        )
        logger.info(
            "Module setup complete: %d/%d initialized, %d failed in %.1f ms",
            report.initialized,
            report.discovered,
            report.failed,
            report.setup_time_ms,
        )
        if self.settings.persist_report:
            try:
                write_report(report, self.settings.report_path)
            except OSError as e:
                logger.warning("Could not write module setup report to %s: %s", self.settings.report_path, e)

    def _ops_log(self, event: str, outcome: str, details: Dict) -> None:
        if self.ops is None:
            return
        try:
            self.ops.log(trace_id=TRACE_ID, event=event, outcome=outcome, details=details)
        except OSError as e:
            logger.warning("Ops log write failed (%s): %s", event, e)

    # ---- queries ----
    def get_manifests(self) -> Tuple[ModuleManifest, ...]:
        return self.diagnostics.manifests()

    def get_report(self) -> ModuleSetupReport:
        return self.diagnostics.report()

    def get_load_order(self) -> Tuple[str, ...]:
        return self.diagnostics.load_order()

    def is_module_set_up(self, name: str) -> bool:
        return self.diagnostics.is_set_up(name)

    def get_module_info(self, name: str) -> Optional[ModuleInfo]:
        return self.diagnostics.get(name)

    def reset_state(self) -> None:
        """
        Clear all pipeline state so setup() can run again. Test-only.

        Raises RuntimeError outside a pytest run.
        """
        if not in_test_context():
            raise RuntimeError("Not in a testing environment!")
        with self._gate:
            self.diagnostics.clear()
            self._in_progress = False
            self._complete = False

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Awaitable

from hostkernel.core.modules.diagnostics import ModuleDiagnostics
from hostkernel.core.modules.errors import ModuleInitializationError
from hostkernel.core.modules.loader import ModuleInit
from hostkernel.core.modules.models import InitializationFailedModuleInfo, InitializedModuleInfo, ModuleManifest

logger = logging.getLogger(__name__)


async def _drain(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


def run_to_completion(result: Any) -> Any:
    """
    Wait for an init() result. Plain values are returned as-is; awaitables are
    driven to completion on a private event loop. If this thread already runs a
    loop, the awaitable runs on a single worker thread so that the caller still
    blocks until it finishes.

    The loop is closed when init() returns, so tasks it spawned are cancelled
    then. Background work must not outlive init().
    """
    if not inspect.isawaitable(result):
        return result
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(_drain(result))
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="hostkernel-init") as pool:
        return pool.submit(asyncio.run, _drain(result)).result()


class ModuleInitializer:
    def __init__(self, *, diagnostics: ModuleDiagnostics):
        self.diagnostics = diagnostics

    def initialize(self, manifest: ModuleManifest, init: ModuleInit) -> bool:
        name = manifest.name
        try:
            started = time.perf_counter()
            run_to_completion(init())
            init_time_ms = (time.perf_counter() - started) * 1000.0
        except KeyboardInterrupt:
            raise
        except BaseException as e:  # noqa: BLE001
            logger.error("Module %s failed to initialize: %s", name, e)
            self.diagnostics.record(
                InitializationFailedModuleInfo(name=name, error=ModuleInitializationError(name, e), manifest=manifest)
            )
            return False

        self.diagnostics.mark_initialized(name)
        self.diagnostics.record(InitializedModuleInfo(name=name, manifest=manifest, init_time_ms=init_time_ms))
        logger.info("Module %s initialized in %.1f ms", name, init_time_ms)
        return True

from __future__ import annotations

import os

import pytest

from hostkernel.core.config_loader import ModulesSettings
from hostkernel.core.modules.setup import ModuleSetup
from hostkernel.core.ops_log import OpsLogger
from tests.helpers import recorder


@pytest.fixture(autouse=True)
def _clear_recorder():
    recorder.clear()
    yield
    recorder.clear()


@pytest.fixture
def modules_root(tmp_path):
    """
    Provides an empty modules root under tmp_path.
    """
    root = tmp_path / "modules"
    os.makedirs(root, exist_ok=True)
    return str(root)


@pytest.fixture
def settings(tmp_path, modules_root):
    logs = tmp_path / "logs"
    return ModulesSettings(
        modules_root=modules_root,
        log_dir=str(logs),
        ops_log_path=str(logs / "ops.jsonl"),
        report_path=str(logs / "modules_report.json"),
        persist_report=True,
    )


@pytest.fixture
def pipeline(settings):
    return ModuleSetup(settings=settings, ops=OpsLogger(path=settings.ops_log_path))

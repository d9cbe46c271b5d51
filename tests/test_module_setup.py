from __future__ import annotations

import json
import os
import threading

import pytest

from hostkernel.core.modules.errors import (
    EntryPointMissingInitError,
    ManifestEntryNotFoundError,
    ManifestMissingFieldError,
    ManifestNameMismatchError,
    ModuleDiscoveryError,
    ModuleInitializationError,
    ModuleLoadError,
    ModuleValidationError,
)
from hostkernel.core.modules.models import InitializedModuleInfo, ModuleSetupStage
from hostkernel.core.modules.setup import ModuleSetup
from tests.helpers import recorder
from tests.helpers.module_factory import (
    create_module,
    create_normal_manifest,
    create_normal_modules,
    recording_init,
    write_manifest,
)


def test_initializes_all_modules(modules_root, pipeline):
    names = create_normal_modules(modules_root, 50)

    pipeline.setup()

    assert len(pipeline.get_manifests()) == 50
    assert len(recorder.INITIALIZED) == 50
    assert list(pipeline.get_load_order()) == sorted(names)
    assert pipeline.get_report().failed == 0
    assert pipeline.complete is True
    assert pipeline.in_progress is False


def test_empty_modules_directory(pipeline):
    pipeline.setup()

    r = pipeline.get_report()
    assert (r.discovered, r.validated, r.loaded, r.initialized, r.failed) == (0, 0, 0, 0, 0)
    assert r.errors == ()
    assert pipeline.get_load_order() == ()
    assert pipeline.get_manifests() == ()


def test_load_order_is_lexicographic_not_creation_order(modules_root, pipeline):
    for name in ["zeta", "alpha", "mu", "Beta", "alpha-2"]:
        create_module(modules_root, name, {"name": name, "entry": "main.py"}, recording_init(name))

    pipeline.setup()

    expected = ("Beta", "alpha", "alpha-2", "mu", "zeta")
    assert pipeline.get_load_order() == expected
    assert tuple(recorder.INITIALIZED) == expected


def test_mixed_valid_and_invalid_modules(modules_root, pipeline):
    create_normal_modules(modules_root, 5)
    create_module(modules_root, "invalid-1", {"name": ""})
    create_module(modules_root, "invalid-2")
    create_module(modules_root, "invalid-3", {"name": "invalid-3", "entry": "../bad.py"})
    create_module(
        modules_root,
        "throws-error",
        {"name": "throws-error", "description": "Test", "displayName": "Test", "entry": "index.py"},
        "raise RuntimeError('i threw')",
    )

    pipeline.setup()

    assert len(recorder.INITIALIZED) == 5
    assert len(pipeline.get_manifests()) == 5
    assert pipeline.get_report().failed == 4


def test_each_failure_stage_is_isolated(modules_root, pipeline):
    create_normal_modules(modules_root, 10)
    create_module(modules_root, "no-manifest")
    create_module(modules_root, "missing-field", {"name": "missing-field"})
    create_module(modules_root, "no-init-export", {"name": "no-init-export", "entry": "index.py"}, "def not_init():\n    pass\n", exact_code=True)
    create_module(modules_root, "init-throws", {"name": "init-throws", "entry": "index.py"}, "raise RuntimeError()")

    pipeline.setup()

    r = pipeline.get_report()
    assert r.discovered == 14
    assert r.validated == 12
    assert r.loaded == 11
    assert r.initialized == 10
    assert r.failed == 4
    assert len(r.errors) == 4

    expected = {
        "no-manifest": (ModuleDiscoveryError, ModuleSetupStage.DISCOVERY),
        "missing-field": (ModuleValidationError, ModuleSetupStage.VALIDATION),
        "no-init-export": (ModuleLoadError, ModuleSetupStage.LOADING),
        "init-throws": (ModuleInitializationError, ModuleSetupStage.INITIALIZATION),
    }
    for name, (err_type, stage) in expected.items():
        info = pipeline.get_module_info(name)
        assert info is not None and info.success is False
        assert isinstance(info.error, err_type)
        assert info.stage == stage
        assert info.error.stage == stage
        assert pipeline.is_module_set_up(name) is False


def test_validation_failures_detail(modules_root, pipeline):
    create_module(modules_root, "missing-field", {"name": "missing-field"})
    create_module(modules_root, "name-mismatch", {"name": "different-name", "entry": "index.py"})
    create_module(modules_root, "non-existing-entry", {"name": "non-existing-entry", "entry": "index.py"})
    create_module(modules_root, "wrong-field-type")
    write_manifest(modules_root, "wrong-field-type", '{"name": 123, "entry": ["bla bla"]}')

    pipeline.setup()

    assert pipeline.get_manifests() == ()
    assert isinstance(pipeline.get_module_info("missing-field").error, ManifestMissingFieldError)
    assert isinstance(pipeline.get_module_info("name-mismatch").error, ManifestNameMismatchError)
    assert isinstance(pipeline.get_module_info("non-existing-entry").error, ManifestEntryNotFoundError)
    assert isinstance(pipeline.get_module_info("wrong-field-type").error, ManifestMissingFieldError)


def test_invalid_json_is_discovered_but_not_validated(modules_root, pipeline):
    create_module(modules_root, "invalid-json")
    write_manifest(modules_root, "invalid-json", '{"badJSON": // bla bla }}')

    pipeline.setup()

    info = pipeline.get_module_info("invalid-json")
    assert info.stage == ModuleSetupStage.DISCOVERY and info.success is False
    assert isinstance(info.error, ModuleDiscoveryError)
    r = pipeline.get_report()
    assert r.discovered == 1
    assert r.validated == 0


def test_exit_and_cancellation_do_not_stop_setup(modules_root, pipeline):
    create_module(modules_root, "a-exit", {"name": "a-exit", "entry": "index.py"}, "raise SystemExit(3)")
    create_module(modules_root, "a-exit-on-import", {"name": "a-exit-on-import", "entry": "index.py"}, "import sys\nsys.exit(1)\n", exact_code=True)
    create_module(
        modules_root,
        "a-cancelled",
        {"name": "a-cancelled", "entry": "index.py"},
        "import asyncio\nasync def init():\n    raise asyncio.CancelledError()\n",
        exact_code=True,
    )
    create_normal_modules(modules_root, 1)

    pipeline.setup()

    assert pipeline.complete is True
    assert pipeline.get_load_order() == ("test-module-0",)
    assert recorder.INITIALIZED == ["test-module-0"]
    assert isinstance(pipeline.get_module_info("a-exit").error, ModuleInitializationError)
    assert isinstance(pipeline.get_module_info("a-cancelled").error, ModuleInitializationError)
    assert type(pipeline.get_module_info("a-exit-on-import").error) is ModuleLoadError
    assert pipeline.get_report().failed == 3


def test_missing_init_load_failure(modules_root, pipeline):
    create_module(modules_root, "init-not-a-function", {"name": "init-not-a-function", "entry": "index.py"}, "init = 123\n", exact_code=True)

    pipeline.setup()

    assert isinstance(pipeline.get_module_info("init-not-a-function").error, EntryPointMissingInitError)


def test_setup_is_idempotent(modules_root, pipeline):
    create_normal_modules(modules_root, 3)

    pipeline.setup()
    first = (pipeline.get_report(), pipeline.get_load_order())
    create_normal_modules(modules_root, 5)
    pipeline.setup()
    second = (pipeline.get_report(), pipeline.get_load_order())

    assert len(recorder.INITIALIZED) == 3
    assert first[1] == second[1]
    assert (first[0].discovered, first[0].initialized, first[0].failed) == (second[0].discovered, second[0].initialized, second[0].failed)
    assert first[0].setup_time_ms == second[0].setup_time_ms


def test_concurrent_setup_returns_immediately(modules_root, pipeline):
    release = threading.Event()
    entered = threading.Event()
    create_module(
        modules_root,
        "blocker",
        {"name": "blocker", "entry": "index.py"},
        "from tests.helpers import recorder\n"
        "def init():\n"
        "    recorder.record('blocker')\n"
        "    recorder.HOOKS['entered'].set()\n"
        "    recorder.HOOKS['release'].wait(10)\n",
        exact_code=True,
    )
    recorder.HOOKS.update(entered=entered, release=release)
    try:
        t = threading.Thread(target=pipeline.setup)
        t.start()
        assert entered.wait(10)

        assert pipeline.in_progress is True
        pipeline.setup()  # must not block or re-run stages
        assert pipeline.in_progress is True
        assert recorder.INITIALIZED == ["blocker"]

        release.set()
        t.join(10)
    finally:
        release.set()

    assert pipeline.complete is True
    assert pipeline.get_load_order() == ("blocker",)
    assert recorder.INITIALIZED == ["blocker"]


def test_long_async_init_is_timed(modules_root, pipeline):
    create_module(
        modules_root,
        "long-init",
        {"name": "long-init", "entry": "index.py"},
        "import asyncio\n"
        "from tests.helpers import recorder\n"
        "async def init():\n"
        "    await asyncio.sleep(3)\n"
        "    recorder.record('long-init')\n",
        exact_code=True,
    )

    pipeline.setup()

    info = pipeline.get_module_info("long-init")
    assert isinstance(info, InitializedModuleInfo)
    assert info.init_time_ms >= 2900
    assert pipeline.get_load_order() == ("long-init",)
    assert recorder.INITIALIZED == ["long-init"]
    assert pipeline.get_report().setup_time_ms >= info.init_time_ms


def test_report_details_carry_manifests(modules_root, pipeline):
    create_normal_modules(modules_root, 10)

    pipeline.setup()

    r = pipeline.get_report()
    assert (r.discovered, r.validated, r.loaded, r.initialized, r.failed) == (10, 10, 10, 10, 0)
    for i, info in enumerate(r.module_details):
        assert info.name == f"test-module-{i}"
        assert info.success is True
        assert info.stage == ModuleSetupStage.INITIALIZATION
        assert info.manifest.to_dict() == create_normal_manifest(i)


def test_setup_writes_report_and_ops_log(modules_root, pipeline, settings):
    create_normal_modules(modules_root, 2)
    create_module(modules_root, "zz-broken")

    pipeline.setup()

    with open(settings.report_path, "r", encoding="utf-8") as f:
        persisted = json.load(f)
    assert persisted["initialized"] == 2
    assert persisted["failed"] == 1
    assert persisted["errors"][0]["error_type"] == "ModuleDiscoveryError"
    assert persisted["errors"][0]["cause"].startswith("FileNotFoundError")

    with open(settings.ops_log_path, "r", encoding="utf-8") as f:
        lines = [json.loads(x) for x in f if x.strip()]
    events = [ln["event"] for ln in lines]
    assert events[0] == "modules.setup.begin"
    assert events[-1] == "modules.setup.complete"
    assert events.count("modules.setup.module") == 3
    assert lines[-1]["outcome"] == "degraded"
    per_module = [ln for ln in lines if ln["event"] == "modules.setup.module"]
    assert all("manifest" not in ln["details"] for ln in per_module)


def test_setup_without_persistence_or_ops(tmp_path, settings):
    pipeline = ModuleSetup(settings=settings.model_copy(update={"persist_report": False}), ops=None)
    pipeline.setup()
    assert not os.path.exists(settings.report_path)
    assert not os.path.exists(settings.ops_log_path)


def test_reset_state_allows_rerun_in_tests(modules_root, pipeline):
    create_normal_modules(modules_root, 2)
    pipeline.setup()
    assert len(recorder.INITIALIZED) == 2

    pipeline.reset_state()
    assert pipeline.get_report().discovered == 0
    assert pipeline.complete is False

    pipeline.setup()
    assert len(recorder.INITIALIZED) == 4
    assert pipeline.get_load_order() == ("test-module-0", "test-module-1")


def test_reset_state_refused_outside_tests(monkeypatch, pipeline):
    monkeypatch.delenv("PYTEST_CURRENT_TEST", raising=False)
    with pytest.raises(RuntimeError):
        pipeline.reset_state()


def test_independent_pipelines_do_not_share_state(tmp_path, settings):
    other_root = tmp_path / "other"
    create_module(str(other_root), "solo", {"name": "solo", "entry": "index.py"}, recording_init("solo"))
    a = ModuleSetup(settings=settings.model_copy(update={"persist_report": False}))
    b = ModuleSetup(settings=settings.model_copy(update={"modules_root": str(other_root), "persist_report": False}))

    a.setup()
    b.setup()

    assert a.get_load_order() == ()
    assert b.get_load_order() == ("solo",)

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from hostkernel.core.errors import ConfigError

MODULES_ROOT_ENV = "HOSTKERNEL_MODULES_ROOT"


def _read_json(path: str) -> Dict[str, Any]:
    if not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


@dataclass(frozen=True)
class ConfigPaths:
    config_dir: str = "config"

    @property
    def modules(self) -> str:
        return os.path.join(self.config_dir, "modules.json")


class ModulesSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    modules_root: str = "modules"
    log_dir: str = "logs"
    ops_log_path: str = os.path.join("logs", "ops.jsonl")
    report_path: str = os.path.join("logs", "modules_report.json")
    persist_report: bool = True


def load_settings(paths: Optional[ConfigPaths] = None, *, env: Optional[Dict[str, str]] = None) -> ModulesSettings:
    paths = paths or ConfigPaths()
    env = os.environ if env is None else env
    try:
        raw = _read_json(paths.modules)
    except (OSError, ValueError) as e:
        raise ConfigError("modules.json could not be read.", path=paths.modules, reason=str(e)[:200]) from e
    if not isinstance(raw, dict):
        raise ConfigError("modules.json must contain a JSON object.", path=paths.modules)

    override = str(env.get(MODULES_ROOT_ENV) or "").strip()
    if override:
        raw = dict(raw)
        raw["modules_root"] = override

    try:
        return ModulesSettings.model_validate(raw)
    except ValidationError as e:
        raise ConfigError("modules.json is invalid.", path=paths.modules, reason=str(e)[:300]) from e

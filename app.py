from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import List, Optional

from hostkernel.core.config_loader import ConfigPaths, load_settings
from hostkernel.core.errors import ConfigError
from hostkernel.core.modules import configure
from hostkernel.core.modules.reporting import to_human, to_json_dict


def configure_logging(log_dir: str, *, verbose: bool = False) -> logging.Logger:
    """
    Route the hostkernel logger to logs/hostkernel.log and warnings to stderr.
    Safe to call more than once.
    """
    os.makedirs(log_dir, exist_ok=True)
    log = logging.getLogger("hostkernel")
    log.setLevel(logging.DEBUG if verbose else logging.INFO)
    log.propagate = False

    if not any(isinstance(h, RotatingFileHandler) for h in log.handlers):
        fh = RotatingFileHandler(os.path.join(log_dir, "hostkernel.log"), maxBytes=1_000_000, backupCount=5, encoding="utf-8")
        fh.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
        log.addHandler(fh)
    if not any(type(h) is logging.StreamHandler for h in log.handlers):
        sh = logging.StreamHandler()
        sh.setLevel(logging.WARNING)
        sh.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        log.addHandler(sh)
    return log


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="hostkernel: discover, load and initialize modules")
    ap.add_argument("--config-dir", default="config", help="Directory holding modules.json.")
    ap.add_argument("--modules-root", default="", help="Override the configured modules root.")
    ap.add_argument("--json", action="store_true", help="Print the setup report as JSON.")
    ap.add_argument("--strict", action="store_true", help="Exit non-zero if any module failed.")
    ap.add_argument("--verbose", action="store_true", help="Write debug records to the log file.")
    args = ap.parse_args(argv)

    try:
        settings = load_settings(ConfigPaths(config_dir=args.config_dir))
    except ConfigError as e:
        print(f"Configuration error: {e} {e.context}", file=sys.stderr)
        return 2
    if args.modules_root:
        settings = settings.model_copy(update={"modules_root": args.modules_root})

    configure_logging(settings.log_dir, verbose=args.verbose)
    pipeline = configure(settings)
    pipeline.setup()

    report = pipeline.get_report()
    if args.json:
        print(json.dumps(to_json_dict(report), indent=2, ensure_ascii=False, default=str))
    else:
        print(to_human(report))
    if args.strict and report.failed:
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

from hoardd_client.backend.client import SearchClient
from hoardd_client.config import Config, existing_config_layer_paths, load_config, query_mode, validate_config
from hoardd_client.errors import BackendError
from hoardd_client.paths import resolve_output_paths


@dataclass
class CheckResult:
    id: str
    status: str  # pass|warn|fail
    message: str
    details: dict[str, Any]


def _check_config_source(layers: list[Path]) -> CheckResult:
    if not layers:
        return CheckResult(
            id="config_source",
            status="warn",
            message="No config file found; using built-in defaults.",
            details={"config_layers": []},
        )
    return CheckResult(
        id="config_source",
        status="pass",
        message=f"Using config layers: {', '.join(str(p) for p in layers)}",
        details={"config_layers": [str(p) for p in layers]},
    )


def _check_config_valid(cfg: Config) -> CheckResult:
    details = {
        "url": cfg.backend.url,
        "index": cfg.backend.index,
        "username_set": bool(cfg.backend.username),
        "password_set": bool(cfg.backend.password),
    }
    try:
        validate_config(cfg)
    except ValueError as exc:
        return CheckResult(id="config_valid", status="fail", message=str(exc), details=details)
    details["query_mode"] = query_mode(cfg)
    if cfg.export.limit == 0:
        return CheckResult(
            id="config_valid",
            status="warn",
            message="Config is valid but no limit is defined; exports may take a LONG time.",
            details=details,
        )
    return CheckResult(id="config_valid", status="pass", message="Config is valid.", details=details)


def _check_output_paths(cfg: Config) -> CheckResult:
    paths = resolve_output_paths(cfg)
    targets = [paths.outfile] + ([paths.dumpfile] if paths.dumpfile is not None else [])
    details: dict[str, Any] = {"outfile": str(paths.outfile), "dumpfile": str(paths.dumpfile or "")}
    for target in targets:
        parent = target.expanduser().resolve().parent
        if not parent.exists():
            return CheckResult(
                id="output_paths",
                status="warn",
                message=f"Output directory does not exist yet and will be created: {parent}",
                details=details,
            )
        if not os.access(parent, os.W_OK):
            return CheckResult(
                id="output_paths",
                status="fail",
                message=f"Output directory is not writable: {parent}",
                details=details,
            )
    if paths.dumpfile is not None and paths.dumpfile.exists() and cfg.output.dump_mode == "append":
        return CheckResult(
            id="output_paths",
            status="warn",
            message="Dump file exists and will be appended to; repeated runs can duplicate documents.",
            details=details,
        )
    return CheckResult(id="output_paths", status="pass", message="Output paths are writable.", details=details)


def _check_backend(cfg: Config, connect: Callable[[Config], SearchClient]) -> CheckResult:
    details: dict[str, Any] = {"url": cfg.backend.url, "index": cfg.backend.index}
    if not cfg.backend.url:
        return CheckResult(
            id="backend",
            status="fail",
            message="No backend url configured.",
            details=details,
        )
    try:
        client = connect(cfg)
        status = client.cluster_health(cfg.backend.index)
    except BackendError as exc:
        details["error"] = str(exc)
        return CheckResult(id="backend", status="fail", message="Backend is unreachable.", details=details)
    details["cluster_health"] = status
    if status == "red":
        return CheckResult(
            id="backend",
            status="fail",
            message="Cluster health is red; exports will be refused.",
            details=details,
        )
    if status == "yellow":
        return CheckResult(
            id="backend",
            status="warn",
            message="Cluster health is yellow.",
            details=details,
        )
    return CheckResult(id="backend", status="pass", message=f"Cluster health is {status}.", details=details)


def _connect_once(cfg: Config) -> SearchClient:
    client = SearchClient(cfg.backend)
    client.ping()
    return client


def run_doctor(
    config_path: Optional[Path | str] = None,
    connect: Callable[[Config], SearchClient] = _connect_once,
) -> dict[str, Any]:
    layers = existing_config_layer_paths(config_path)
    cfg = load_config(config_path)
    checks = [
        _check_config_source(layers),
        _check_config_valid(cfg),
        _check_output_paths(cfg),
        _check_backend(cfg, connect),
    ]
    counts = {"pass": 0, "warn": 0, "fail": 0}
    for check in checks:
        counts[check.status] = counts.get(check.status, 0) + 1
    overall = "fail" if counts["fail"] else ("warn" if counts["warn"] else "pass")
    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "overall": overall,
        "counts": counts,
        "checks": [asdict(c) for c in checks],
    }


def exit_code_from_report(report: dict[str, Any]) -> int:
    return 1 if report.get("counts", {}).get("fail", 0) else 0


def print_human_report(report: dict[str, Any]) -> None:
    status_order = {"fail": 0, "warn": 1, "pass": 2}
    checks = sorted(report.get("checks", []), key=lambda c: status_order.get(c["status"], 99))
    for check in checks:
        print(f"[{check['status'].upper()}] {check['id']}: {check['message']}")
    counts = report.get("counts", {})
    print(
        "Summary: "
        f"pass={counts.get('pass', 0)} "
        f"warn={counts.get('warn', 0)} "
        f"fail={counts.get('fail', 0)} "
        f"overall={report.get('overall', 'unknown')}"
    )


def main(json_output: bool = False, config_path: Optional[str] = None) -> int:
    report = run_doctor(config_path=config_path)
    if json_output:
        print(json.dumps(report, indent=2))
    else:
        print_human_report(report)
    return exit_code_from_report(report)

from __future__ import annotations

import argparse
from typing import Any, Dict

from hoardd_client.config import load_config, merge_config
from hoardd_client.doctor import main as doctor_main
from hoardd_client.errors import HoarddError
from hoardd_client.export.types import RunStatus
from hoardd_client.log import configure_logging, level_for
from hoardd_client.runner import run_export

_FLAG_TARGETS = {
    "url": ("backend", "url"),
    "index": ("backend", "index"),
    "username": ("backend", "username"),
    "password": ("backend", "password"),
    "outfile": ("output", "outfile"),
    "dumpfile": ("output", "dumpfile"),
    "limit": ("export", "limit"),
    "workers": ("export", "workers"),
    "page_size": ("export", "page_size"),
}
_QUERY_FLAGS = {"email": "email", "domain": "domain", "search_pass": "password", "raw": "raw"}


def overrides_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    """
    Translate only the flags that were actually passed into config overrides.
    """
    overrides: Dict[str, Any] = {}
    for flag, (section, key) in _FLAG_TARGETS.items():
        value = getattr(args, flag, None)
        if value is not None:
            overrides.setdefault(section, {})[key] = value

    query = {key: getattr(args, flag) for flag, key in _QUERY_FLAGS.items() if getattr(args, flag, None)}
    if query:
        # a lookup given on the command line replaces whatever the config files selected
        overrides["query"] = {"email": "", "domain": "", "password": "", "raw": "", **query}

    if getattr(args, "no_health_check", False):
        overrides.setdefault("backend", {})["health_check"] = False
    if getattr(args, "no_progress", False):
        overrides.setdefault("export", {})["progress"] = False
    for flag in ("verbose", "debug"):
        if getattr(args, flag, None):
            overrides[flag] = True
    return overrides


def _cmd_export(args: argparse.Namespace) -> None:
    try:
        config = merge_config(load_config(args.config), overrides_from_args(args))
        configure_logging(level=level_for(verbose=config.verbose, debug=config.debug))
        result = run_export(config)
    except KeyboardInterrupt:
        print("[hoardd] Interrupted.")
        raise SystemExit(130)
    except (HoarddError, ValueError) as exc:
        print(f"[hoardd] Error: {exc}")
        raise SystemExit(1)

    print(f"[hoardd] Export {result.describe()}")
    if result.status is RunStatus.CANCELLED:
        raise SystemExit(130)
    if not result.ok:
        raise SystemExit(1)
    print("[hoardd] Done")


def _cmd_doctor(args: argparse.Namespace) -> None:
    raise SystemExit(doctor_main(json_output=args.json, config_path=args.config))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hoardd")
    subparsers = parser.add_subparsers(dest="command", required=True)

    export_parser = subparsers.add_parser("export", help="Export matching records to CSV (and optionally JSON Lines).")
    export_parser.add_argument("--config", default=None, help="Path to a YAML config file.")
    export_parser.add_argument("--url", default=None, help="URL of the search backend endpoint.")
    export_parser.add_argument("--index", default=None, help="Index name or pattern, e.g. leak_linkedin (default: leak_*).")
    export_parser.add_argument("--username", default=None, help="Backend username.")
    export_parser.add_argument("--password", default=None, help="Backend password (or set HOARDD_PASSWORD).")
    export_parser.add_argument(
        "--outfile",
        default=None,
        help="CSV output filename. Only email, password, and breach_name are written.",
    )
    export_parser.add_argument(
        "--dumpfile",
        default=None,
        help="JSON Lines output filename. Every raw document is appended to it.",
    )
    lookup = export_parser.add_mutually_exclusive_group()
    lookup.add_argument("--email", default=None, help="Email address to search.")
    lookup.add_argument("--domain", default=None, help="Email domain to search.")
    lookup.add_argument("--pass", dest="search_pass", default=None, help="Password to search.")
    lookup.add_argument("--raw", default=None, help="Raw JSON query.")
    export_parser.add_argument("--limit", type=int, default=None, help="Maximum number of results; 0 for no limit.")
    export_parser.add_argument("--workers", type=int, default=None, help="Number of concurrent writer workers.")
    export_parser.add_argument("--page-size", dest="page_size", type=int, default=None, help="Records per scroll page.")
    export_parser.add_argument("--no-health-check", action="store_true", help="Skip the cluster health check.")
    export_parser.add_argument("--no-progress", action="store_true", help="Hide the progress bar.")
    export_parser.add_argument("--verbose", action="store_true", default=None, help="Enable verbose output.")
    export_parser.add_argument("--debug", action="store_true", default=None, help="Enable debug output.")
    export_parser.set_defaults(func=_cmd_export)

    doctor_parser = subparsers.add_parser("doctor", help="Run preflight diagnostics.")
    doctor_parser.add_argument("--json", action="store_true", help="Print machine-readable JSON output.")
    doctor_parser.add_argument("--config", default=None, help="Optional config file path override.")
    doctor_parser.set_defaults(func=_cmd_doctor)
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()

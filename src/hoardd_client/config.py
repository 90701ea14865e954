from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import yaml

PASSWORD_ENV = "HOARDD_PASSWORD"
_SECTIONS = ("backend", "query", "output", "export")
_TOP_LEVEL_FLAGS = ("verbose", "debug")
_SENSITIVE_KEYS = ("password", "secret", "token", "authorization")


@dataclass
class BackendConfig:
    url: str = ""
    index: str = "leak_*"
    username: str = ""
    password: str = field(default_factory=lambda: os.environ.get(PASSWORD_ENV, ""))
    timeout: float = 60.0
    verify_tls: bool = True
    connect_attempts: int = 3
    connect_retry_delay: float = 30.0
    health_check: bool = True


@dataclass
class QueryConfig:
    email: str = ""
    domain: str = ""
    password: str = ""
    raw: str = ""


@dataclass
class OutputConfig:
    outfile: str = ""
    dumpfile: str = ""
    dump_mode: str = "append"  # append|truncate
    flush_every: int = 1000


@dataclass
class ExportConfig:
    workers: int = 10
    page_size: int = 1000
    keep_alive: str = "2m"
    limit: int = 0
    identifier_field: str = "email"
    secret_field: str = "password"
    origin_prefix: str = "leak_"
    origin_column: str = "breach_name"
    progress: bool = True


@dataclass
class Config:
    backend: BackendConfig = field(default_factory=BackendConfig)
    query: QueryConfig = field(default_factory=QueryConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    verbose: bool = False
    debug: bool = False


def _read_layer(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file must contain a YAML mapping: {path}")
    _validate_override_keys(raw, source=path)
    return raw


def _validate_override_keys(overrides: Dict[str, Any], source: Optional[Path] = None) -> None:
    allowed = set(_SECTIONS) | set(_TOP_LEVEL_FLAGS)
    unknown = sorted(str(key) for key in overrides if key not in allowed)
    if not unknown:
        return
    where = f" in {source}" if source is not None else ""
    raise ValueError(f"Unsupported config keys{where}: {', '.join(unknown)}.")


def merge_config(base: Config, overrides: Dict[str, Any]) -> Config:
    """
    Merge dictionary overrides into a Config instance, returning a new instance.
    """
    _validate_override_keys(overrides)
    cfg_dict: Dict[str, Any] = asdict(base)

    def deep_update(target: Dict[str, Any], incoming: Dict[str, Any]) -> Dict[str, Any]:
        for key, value in incoming.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                target[key] = deep_update(target.get(key, {}), value)
            else:
                target[key] = value
        return target

    merged = deep_update(cfg_dict, overrides)
    try:
        return Config(
            backend=BackendConfig(**merged["backend"]),
            query=QueryConfig(**merged["query"]),
            output=OutputConfig(**merged["output"]),
            export=ExportConfig(**merged["export"]),
            verbose=bool(merged["verbose"]),
            debug=bool(merged["debug"]),
        )
    except TypeError as exc:
        raise ValueError(f"Invalid config section: {exc}") from exc


def _repo_root() -> Path:
    root_override = os.environ.get("HOARDD_ROOT")
    if root_override:
        return Path(root_override).expanduser()
    return Path(__file__).resolve().parents[2]


def config_layer_paths(config_path: Optional[Path | str] = None) -> list[Path]:
    """
    Return config layer candidates in merge order (lowest -> highest precedence).
    """
    repo_root = _repo_root()
    env_override = os.environ.get("HOARDD_CONFIG")
    layers: list[Path] = [repo_root / "config.yaml", repo_root / "config.local.yaml"]
    if env_override:
        layers.append(Path(env_override).expanduser())
    if config_path is not None:
        layers.append(Path(config_path).expanduser())

    deduped: list[Path] = []
    seen: set[str] = set()
    for layer in layers:
        key = str(layer.resolve()) if layer.exists() else str(layer)
        if key in seen:
            continue
        seen.add(key)
        deduped.append(layer)
    return deduped


def existing_config_layer_paths(config_path: Optional[Path | str] = None) -> list[Path]:
    return [p.resolve() for p in config_layer_paths(config_path) if p.exists()]


def load_config(config_path: Optional[Path | str] = None) -> Config:
    cfg = Config()
    for layer in config_layer_paths(config_path):
        if not layer.exists():
            continue
        cfg = merge_config(cfg, _read_layer(layer))
    return cfg


def query_mode(cfg: Config) -> Optional[str]:
    """Return the single configured lookup mode, or None when none is set."""
    modes = [name for name, value in asdict(cfg.query).items() if (value or "").strip()]
    if len(modes) == 1:
        return modes[0]
    if not modes:
        return None
    raise ValueError(
        "email, domain, password, and raw query parameters are mutually exclusive, "
        f"i.e. only one can receive a value (got: {', '.join(modes)})"
    )


def validate_config(cfg: Config) -> None:
    if query_mode(cfg) is None:
        raise ValueError(
            "an argument for one of the following parameters must be supplied: "
            "email, domain, password, or raw"
        )
    backend = cfg.backend
    if not backend.url:
        raise ValueError("Missing required url parameter")
    parsed = urlparse(backend.url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(f"Error parsing url parameter: {backend.url}")
    for name in ("index", "username", "password"):
        if not getattr(backend, name):
            raise ValueError(f"Missing required {name} parameter")
    if backend.connect_attempts < 1:
        raise ValueError("backend.connect_attempts must be >= 1")
    if cfg.export.workers < 1:
        raise ValueError("export.workers must be >= 1")
    if cfg.export.page_size < 1:
        raise ValueError("export.page_size must be >= 1")
    if cfg.export.limit < 0:
        raise ValueError("export.limit must be >= 0 (0 disables the limit)")
    if cfg.output.dump_mode not in {"append", "truncate"}:
        raise ValueError(f"output.dump_mode must be 'append' or 'truncate', got {cfg.output.dump_mode!r}")
    if cfg.output.flush_every < 1:
        raise ValueError("output.flush_every must be >= 1")


def _redact_value(value: Any) -> Any:
    if isinstance(value, dict):
        redacted: dict[str, Any] = {}
        for key, item in value.items():
            if any(marker in str(key).lower() for marker in _SENSITIVE_KEYS) and item:
                redacted[str(key)] = "<redacted>"
            else:
                redacted[str(key)] = _redact_value(item)
        return redacted
    return value


def redacted_config(cfg: Config) -> Dict[str, Any]:
    """
    Dump the effective configuration with credentials replaced, safe for logs.
    """
    return _redact_value(asdict(cfg))

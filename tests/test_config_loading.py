from pathlib import Path

import pytest

import hoardd_client.config as config_mod


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _valid_config(**query) -> config_mod.Config:
    cfg = config_mod.Config()
    cfg.backend.url = "https://search.example.com:9200"
    cfg.backend.username = "analyst"
    cfg.backend.password = "hunter2"
    for key, value in (query or {"domain": "example.com"}).items():
        setattr(cfg.query, key, value)
    return cfg


def test_load_config_defaults_without_layers():
    cfg = config_mod.load_config()
    assert cfg.backend.index == "leak_*"
    assert cfg.export.workers == 10
    assert cfg.export.page_size == 1000
    assert cfg.export.limit == 0
    assert cfg.output.dump_mode == "append"


def test_load_config_merges_repo_base_and_local(tmp_path: Path):
    _write(
        tmp_path / "config.yaml",
        """
backend:
  url: "https://search.example.com"
  index: "leak_linkedin"
export:
  workers: 4
""".strip()
        + "\n",
    )
    _write(tmp_path / "config.local.yaml", "export:\n  workers: 6\nbackend:\n  password: \"s3cret\"\n")

    cfg = config_mod.load_config()
    assert cfg.backend.url == "https://search.example.com"
    assert cfg.backend.index == "leak_linkedin"
    assert cfg.backend.password == "s3cret"
    assert cfg.export.workers == 6
    assert cfg.export.page_size == 1000


def test_load_config_env_override_applies_after_local(monkeypatch, tmp_path: Path):
    _write(tmp_path / "config.yaml", "export:\n  limit: 10\n")
    _write(tmp_path / "config.local.yaml", "export:\n  limit: 20\n")
    env_cfg = tmp_path / "env.yaml"
    _write(env_cfg, "export:\n  limit: 30\n")
    monkeypatch.setenv("HOARDD_CONFIG", str(env_cfg))

    cfg = config_mod.load_config()
    assert cfg.export.limit == 30


def test_load_config_explicit_path_has_highest_precedence(monkeypatch, tmp_path: Path):
    _write(tmp_path / "config.yaml", "export:\n  limit: 10\n")
    env_cfg = tmp_path / "env.yaml"
    explicit_cfg = tmp_path / "explicit.yaml"
    _write(env_cfg, "export:\n  limit: 30\n")
    _write(explicit_cfg, "export:\n  limit: 40\n")
    monkeypatch.setenv("HOARDD_CONFIG", str(env_cfg))

    cfg = config_mod.load_config(explicit_cfg)
    assert cfg.export.limit == 40


def test_load_config_rejects_unknown_keys(tmp_path: Path):
    _write(tmp_path / "config.yaml", "sniff: true\n")

    with pytest.raises(ValueError, match="Unsupported config keys"):
        config_mod.load_config()


def test_load_config_rejects_unknown_section_fields(tmp_path: Path):
    _write(tmp_path / "config.yaml", "export:\n  threads: 4\n")

    with pytest.raises(ValueError, match="Invalid config section"):
        config_mod.load_config()


def test_load_config_requires_mapping(tmp_path: Path):
    _write(tmp_path / "config.yaml", "- just\n- a list\n")

    with pytest.raises(ValueError, match="YAML mapping"):
        config_mod.load_config()


def test_password_falls_back_to_environment(monkeypatch):
    monkeypatch.setenv("HOARDD_PASSWORD", "from-env")
    cfg = config_mod.load_config()
    assert cfg.backend.password == "from-env"


def test_validate_config_accepts_complete_config():
    config_mod.validate_config(_valid_config())


def test_validate_config_requires_a_lookup():
    cfg = _valid_config()
    cfg.query.domain = ""
    with pytest.raises(ValueError, match="must be supplied"):
        config_mod.validate_config(cfg)


def test_validate_config_rejects_multiple_lookups():
    cfg = _valid_config(domain="example.com", email="a@example.com")
    with pytest.raises(ValueError, match="mutually exclusive"):
        config_mod.validate_config(cfg)


@pytest.mark.parametrize(
    "attr, value, message",
    [
        ("url", "", "Missing required url"),
        ("url", "not a url", "Error parsing url"),
        ("username", "", "Missing required username"),
        ("password", "", "Missing required password"),
    ],
)
def test_validate_config_backend_fields(attr, value, message):
    cfg = _valid_config()
    setattr(cfg.backend, attr, value)
    with pytest.raises(ValueError, match=message):
        config_mod.validate_config(cfg)


def test_validate_config_export_bounds():
    cfg = _valid_config()
    cfg.export.workers = 0
    with pytest.raises(ValueError, match="workers"):
        config_mod.validate_config(cfg)
    cfg.export.workers = 2
    cfg.export.limit = -1
    with pytest.raises(ValueError, match="limit"):
        config_mod.validate_config(cfg)


def test_redacted_config_hides_credentials():
    cfg = _valid_config(password="letmein")
    cfg.query.domain = ""
    dumped = config_mod.redacted_config(cfg)
    assert dumped["backend"]["password"] == "<redacted>"
    assert dumped["query"]["password"] == "<redacted>"
    assert dumped["backend"]["username"] == "analyst"
    assert cfg.backend.password == "hunter2"

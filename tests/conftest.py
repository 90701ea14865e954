import pytest


@pytest.fixture(autouse=True)
def _isolated_config_env(monkeypatch, tmp_path):
    monkeypatch.setenv("HOARDD_ROOT", str(tmp_path))
    monkeypatch.delenv("HOARDD_CONFIG", raising=False)
    monkeypatch.delenv("HOARDD_PASSWORD", raising=False)

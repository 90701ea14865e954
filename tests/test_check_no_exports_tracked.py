import importlib.util
from pathlib import Path

import pytest

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "check_no_exports_tracked.py"


@pytest.fixture(scope="module")
def checker():
    module_spec = importlib.util.spec_from_file_location("check_no_exports_tracked", SCRIPT)
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


@pytest.mark.parametrize(
    "path",
    [
        "config.local.yaml",
        "deploy/.env",
        "output_1700000000.csv",
        "exports/run1/x.csv",
        "data/example.com_1700000000.csv",
        "raw/dump.jsonl",
    ],
)
def test_blocked_paths(checker, path):
    assert checker._is_blocked(path)


@pytest.mark.parametrize("path", ["config.yaml", "src/hoardd_client/cli.py", "tests/fixtures/sample.csv"])
def test_allowed_paths(checker, path):
    assert not checker._is_blocked(path)


def test_main_lists_blocked_files(checker, monkeypatch, capsys):
    monkeypatch.setattr(checker, "_git_ls_files", lambda: ["config.yaml", "output_1.csv"])
    assert checker.main() == 1
    assert "output_1.csv" in capsys.readouterr().out
    monkeypatch.setattr(checker, "_git_ls_files", lambda: ["config.yaml"])
    assert checker.main() == 0

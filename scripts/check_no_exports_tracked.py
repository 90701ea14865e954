from __future__ import annotations

import subprocess


BLOCKED_SUFFIXES = (".csv", ".jsonl")
BLOCKED_NAMES = ("config.local.yaml", ".env")
BLOCKED_PREFIXES = ("output_", "exports/")


def _git_ls_files() -> list[str]:
    result = subprocess.run(
        ["git", "ls-files"],
        check=True,
        capture_output=True,
        text=True,
    )
    return [line.strip().replace("\\", "/") for line in result.stdout.splitlines() if line.strip()]


def _is_blocked(path: str) -> bool:
    name = path.rsplit("/", 1)[-1]
    if name in BLOCKED_NAMES:
        return True
    if path.startswith(BLOCKED_PREFIXES) or name.startswith("output_"):
        return True
    if path.endswith(BLOCKED_SUFFIXES) and not path.startswith("tests/"):
        return True
    return False


def main() -> int:
    tracked = _git_ls_files()
    blocked = [p for p in tracked if _is_blocked(p)]
    if blocked:
        print("Export output or local credentials detected in git index:")
        for p in blocked:
            print(f"  - {p}")
        print("Exports contain credentials; keep them and config.local.yaml untracked.")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

#!/usr/bin/env python3
"""Run formatters, linters and the test suite in one go.

Steps (each runs even if an earlier one failed):
1. black --check
2. isort --check-only
3. ruff check
4. pylint on the application packages
5. pytest

Pass `--fix` to let black/isort/ruff rewrite files instead of only checking.
"""

from pathlib import Path
import subprocess
import sys

ROOT = Path(__file__).parent
PACKAGES = ["app", "core", "infrastructure", "main.py"]


def build_steps(fix: bool) -> list[tuple[list[str], str]]:
    py = sys.executable
    black = [py, "-m", "black", "."] + ([] if fix else ["--check"])
    isort = [py, "-m", "isort", "."] + ([] if fix else ["--check-only"])
    ruff = [py, "-m", "ruff", "check", "."] + (["--fix"] if fix else [])
    return [
        (black, "black"),
        (isort, "isort"),
        (ruff, "ruff"),
        ([py, "-m", "pylint", *PACKAGES], "pylint"),
        ([py, "-m", "pytest", "-q"], "pytest"),
    ]


def run_step(cmd: list[str], name: str) -> bool:
    print(f"\n--- {name}: {' '.join(cmd[2:])}")
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=False, cwd=ROOT)
    except OSError as e:
        print(f"could not start {name}: {e}")
        return False
    output = (result.stdout + result.stderr).strip()
    if output:
        print(output)
    return result.returncode == 0


def main() -> None:
    fix = "--fix" in sys.argv[1:]
    outcome = [(name, run_step(cmd, name)) for cmd, name in build_steps(fix)]

    print("\n=== summary")
    for name, ok in outcome:
        print(f"{name:<8} {'ok' if ok else 'FAILED'}")
    sys.exit(0 if all(ok for _, ok in outcome) else 1)


if __name__ == "__main__":
    main()

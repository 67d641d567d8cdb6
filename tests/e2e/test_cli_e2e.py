from __future__ import annotations

"""
End-to-End (E2E) CLI Tests.

Verifies the application's external behavior by invoking the package entry
point via subprocess. These tests validate argument parsing, exit codes,
stream output (stdout/stderr) and the repository side effects of a full
feature/product/derivation session.
"""

import json
import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
SRC_DIR = PROJECT_ROOT / "src"


def run_cli(args: List[str], home: Path, cwd: Optional[Path] = None) -> subprocess.CompletedProcess:
    """
    Helper to execute the CLI in a separate process.

    Injects the 'src' directory into PYTHONPATH to ensure the package
    is resolvable without being installed in site-packages, and points
    the user data directory to a temporary location.

    Args:
        args: List of command line arguments (excluding 'python -m tangl').
        home: Directory used as TANGL_HOME.
        cwd: Optional working directory for the subprocess.

    Returns:
        subprocess.CompletedProcess: The result object containing returncode, stdout, and stderr.
    """
    env = os.environ.copy()
    env["PYTHONPATH"] = str(SRC_DIR) + os.pathsep + env.get("PYTHONPATH", "")
    env["TANGL_HOME"] = str(home)

    return subprocess.run(
        [sys.executable, "-m", "tangl"] + args,
        cwd=cwd,
        env=env,
        capture_output=True,
        text=True,
        encoding="utf-8",
    )


@pytest.fixture
def home(tmp_path: Path) -> Path:
    return tmp_path / "home"


def test_e2e_help_and_usage_errors(home: Path, tmp_path: Path) -> None:
    """Help exits 0; missing or unknown commands exit 2."""
    result = run_cli(["--help"], home)
    assert result.returncode == 0
    assert "derive" in result.stdout

    result = run_cli([], home, cwd=tmp_path)
    assert result.returncode == 2

    result = run_cli(["frobnicate"], home)
    assert result.returncode == 2


def test_e2e_init_creates_main_area(home: Path, tmp_path: Path) -> None:
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    repo = tmp_path / "fresh"
    result = run_cli(["--repo", str(repo), "init"], home)

    assert result.returncode == 0, result.stderr
    assert (repo / ".git").is_dir()


def test_e2e_full_derivation_session(home: Path, git_repo) -> None:
    """Create a feature and a product, derive, then inspect the result."""
    repo = str(git_repo.path)

    assert run_cli(["--repo", repo, "feature", "c"], home).returncode == 0
    assert run_cli(["--repo", repo, "product", "p"], home).returncode == 0
    assert run_cli(["--repo", repo, "checkout", "product/p"], home).returncode == 0

    # Work on the feature directly with git
    git_repo.git("checkout", "-q", "_main/_feature/c")
    git_repo.commit_file("c.txt", "feature c\n", "Add feature c")
    git_repo.git("checkout", "-q", "_main/_product/p")

    result = run_cli(["--repo", repo, "--json", "derive", "c"], home)
    assert result.returncode == 0, result.stderr
    payload = json.loads(result.stdout)
    assert payload["metadata"]["state"] == "finished"
    assert (git_repo.path / "c.txt").exists()

    result = run_cli(["--repo", repo, "tree"], home)
    assert result.returncode == 0
    assert result.stdout.strip() == "p"


def test_e2e_runs_in_current_directory(home: Path, git_repo) -> None:
    result = run_cli(["tree"], home, cwd=git_repo.path)
    assert result.returncode == 0, result.stderr
    assert result.stdout.strip() == "main"


def test_e2e_dump_config_reads_saved_file(home: Path) -> None:
    home.mkdir(parents=True)
    (home / "config.json").write_text(json.dumps({"optimize_merge_order": False}), encoding="utf-8")

    result = run_cli(["--dump-config"], home)
    assert json.loads(result.stdout)["optimize_merge_order"] is False

    result = run_cli(["--use-defaults", "--dump-config"], home)
    assert json.loads(result.stdout)["optimize_merge_order"] is True

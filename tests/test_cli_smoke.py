"""Smoke tests for git-source CLI."""
import subprocess


def test_cli_help_returns_zero_exit_code():
    """Execute git-source --help and verify it returns exit code 0."""
    result = subprocess.run(
        ["git-source", "--help"],
        capture_output=True,
        text=True,
    )
    assert result.returncode == 0

"""Pytest fixtures for git-source tests."""
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import pytest

from git_source.core.errors import CommandFailedError
from git_source.proxy import CommandResult, CommandRunner

Response = Union[CommandResult, Exception]


def git(repo_path: Path, *args: str) -> str:
    """Run git in repo_path for fixture setup and return stripped stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=repo_path,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def commit_file(repo_path: Path, name: str, content: str, message: str) -> str:
    """Write a file, commit it, and return the new HEAD SHA."""
    (repo_path / name).write_text(content)
    git(repo_path, "add", name)
    git(repo_path, "commit", "-m", message)
    return git(repo_path, "rev-parse", "HEAD")


@pytest.fixture
def git_repo_fixture(tmp_path: Path) -> Dict[str, any]:
    """Create a minimal git repository with tag and branch.

    main holds A.h; dev adds B.h on top. HEAD is left on main.

    Returns dict with:
        - path: Path to repo
        - tag_sha: SHA of v0.1 tag
        - dev_sha: SHA of dev branch
        - main_sha: SHA of main branch
    """
    repo_path = tmp_path / "test_repo"
    repo_path.mkdir()

    git(repo_path, "init", "--quiet")
    git(repo_path, "symbolic-ref", "HEAD", "refs/heads/main")
    git(repo_path, "config", "user.email", "test@example.com")
    git(repo_path, "config", "user.name", "Test User")

    main_sha = commit_file(repo_path, "A.h", "#include <iostream>\n", "Initial commit")
    git(repo_path, "tag", "v0.1")

    git(repo_path, "checkout", "--quiet", "-b", "dev")
    dev_sha = commit_file(repo_path, "B.h", "#include <vector>\n", "Add B.h on dev")

    git(repo_path, "checkout", "--quiet", "main")

    return {
        "path": repo_path,
        "tag_sha": main_sha,
        "dev_sha": dev_sha,
        "main_sha": main_sha,
    }


class FakeRunner(CommandRunner):
    """CommandRunner that records calls and answers from canned responses.

    Responses are keyed by command prefix; a list of responses is consumed
    one per call, the last one repeating. Unmatched commands succeed with
    empty output.
    """

    def __init__(self, available: bool = True):
        super().__init__("git")
        self.available = available
        self.calls: List[Tuple[str, Optional[Path]]] = []
        self._responses: List[Tuple[str, List[Response]]] = []

    def respond(self, prefix: str, *responses: Union[Response, str, int]) -> None:
        normalized = []
        for response in responses:
            if isinstance(response, str):
                response = CommandResult(command=prefix, output=response, returncode=0)
            elif isinstance(response, int):
                response = CommandResult(command=prefix, returncode=response)
            normalized.append(response)
        self._responses.append((prefix, normalized))

    def tool_available(self) -> bool:
        return self.available

    def commands(self, prefix: str = "") -> List[str]:
        return [command for command, _ in self.calls if command.startswith(prefix)]

    def run(self, command, cwd=None, check=True, error_msg=None, cache_path=None):
        self.calls.append((command, Path(cwd) if cwd is not None else None))
        response: Response = CommandResult(command=command, returncode=0)
        for prefix, queue in self._responses:
            if command.startswith(prefix):
                response = queue.pop(0) if len(queue) > 1 else queue[0]
                break

        if isinstance(response, Exception):
            raise response
        result = response.model_copy(update={"command": command})
        if check and not result.success:
            raise CommandFailedError(command, path=cache_path, extra_info=error_msg, cwd=cwd)
        return result


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    """An existing (empty) cache directory, standing in for a bare mirror."""
    path = tmp_path / "cache" / "foo"
    path.mkdir(parents=True)
    return path

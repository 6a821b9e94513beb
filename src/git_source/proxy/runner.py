"""Execution of git subcommands as child processes."""
import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

from pydantic import BaseModel, Field

from git_source.core.errors import CommandFailedError
from git_source.core.redaction import filter_credentials

logger = logging.getLogger(__name__)

# Variables that point git at another repository or inject configuration;
# see `git rev-parse --local-env-vars`.
GIT_LOCAL_ENV_VARS = frozenset(
    {
        "GIT_ALTERNATE_OBJECT_DIRECTORIES",
        "GIT_COMMON_DIR",
        "GIT_CONFIG",
        "GIT_CONFIG_COUNT",
        "GIT_CONFIG_PARAMETERS",
        "GIT_DIR",
        "GIT_GRAFT_FILE",
        "GIT_IMPLICIT_WORK_TREE",
        "GIT_INDEX_FILE",
        "GIT_NO_REPLACE_OBJECTS",
        "GIT_OBJECT_DIRECTORY",
        "GIT_PREFIX",
        "GIT_REPLACE_REF_BASE",
        "GIT_SHALLOW_FILE",
        "GIT_WORK_TREE",
    }
)


class CommandResult(BaseModel):
    """Outcome of a single git invocation."""

    command: str = Field(..., description="Subcommand text, without the executable")
    output: str = Field(default="", description="Captured standard output")
    stderr: str = Field(default="", description="Captured standard error")
    returncode: int = Field(..., description="Process exit status")

    @property
    def success(self) -> bool:
        return self.returncode == 0


def clean_git_env(environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Copy of environ without variables that redirect git's behavior."""
    environ = os.environ if environ is None else environ
    return {
        key: value
        for key, value in environ.items()
        if key not in GIT_LOCAL_ENV_VARS
        and not key.startswith(("GIT_CONFIG_KEY_", "GIT_CONFIG_VALUE_"))
    }


class CommandRunner:
    """Run ``git <subcommand>`` strings through the shell.

    The subcommand is interpolated as-is, so any value coming from outside
    (URIs, paths, refs) must already be quoted with
    :func:`git_source.proxy.escaping.shell_quote`.
    """

    def __init__(self, executable: str = "git"):
        self.executable = executable

    def tool_available(self) -> bool:
        """Check if the git executable can be found on PATH."""
        return shutil.which(self.executable) is not None

    def run(
        self,
        command: str,
        cwd: Optional[Union[str, Path]] = None,
        check: bool = True,
        error_msg: Optional[str] = None,
        cache_path: Optional[Union[str, Path]] = None,
    ) -> CommandResult:
        """Run a git subcommand and capture its output.

        Args:
            command: Subcommand and arguments, e.g. ``rev-parse --verify 'main'``
            cwd: Working directory (defaults to the current one)
            check: Raise on non-zero exit status
            error_msg: Extra diagnostic text for the raised error
            cache_path: Cache directory named in the error as a removal hint

        Returns:
            CommandResult with captured stdout, stderr and exit status

        Raises:
            CommandFailedError: If the command exits non-zero (and check is set),
                or if the process cannot be started at all
        """
        logger.debug(f"Running `{self.executable} {filter_credentials(command)}` in {cwd or Path.cwd()}")
        try:
            completed = subprocess.run(
                f"{self.executable} {command}",
                shell=True,
                cwd=str(cwd) if cwd is not None else None,
                env=clean_git_env(),
                capture_output=True,
                text=True,
            )
        except OSError as e:
            raise CommandFailedError(
                command,
                path=cache_path,
                extra_info=error_msg or str(e),
                cwd=cwd,
            ) from e

        result = CommandResult(
            command=command,
            output=completed.stdout or "",
            stderr=completed.stderr or "",
            returncode=completed.returncode,
        )

        if result.stderr:
            logger.debug(f"git stderr: {filter_credentials(result.stderr.strip())}")

        if check and not result.success:
            raise CommandFailedError(
                command,
                path=cache_path,
                extra_info=error_msg,
                cwd=cwd,
                stderr=result.stderr,
            )

        return result

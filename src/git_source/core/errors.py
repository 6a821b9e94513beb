"""Core exception types for git-source."""
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from git_source.core.redaction import filter_credentials


class ErrorKind(str, Enum):
    """Tag carried by every git-source error, for callers that dispatch on kind."""

    TOOL_NOT_INSTALLED = "tool_not_installed"
    NOT_PERMITTED = "not_permitted"
    COMMAND_FAILED = "command_failed"
    REFERENCE_NOT_FOUND = "reference_not_found"
    PRECONDITION = "precondition"
    DESTINATION_COLLISION = "destination_collision"
    CONFIG = "config"


class GitSourceError(Exception):
    """Base exception for all git-source errors."""

    kind: ErrorKind


class ToolNotInstalledError(GitSourceError):
    """Raised when git is needed but cannot be found on PATH."""

    kind = ErrorKind.TOOL_NOT_INSTALLED

    def __init__(self, executable: str = "git"):
        self.executable = executable
        super().__init__(
            f"You need to install {executable} to be able to use packages from git repositories. "
            "For help installing git, please refer to https://git-scm.com/downloads"
        )


class OperationNotPermittedError(GitSourceError):
    """Raised when a mutating git command is attempted while git operations are disabled."""

    kind = ErrorKind.NOT_PERMITTED

    def __init__(self, command: str):
        self.command = filter_credentials(command)
        super().__init__(
            f"Tried to run `git {self.command}` while git operations are disabled. "
            "You probably need to run the install step first."
        )


class CommandFailedError(GitSourceError):
    """Raised when a git command runs but exits with a non-zero status."""

    kind = ErrorKind.COMMAND_FAILED

    def __init__(
        self,
        command: str,
        path: Optional[Union[str, Path]] = None,
        extra_info: Optional[str] = None,
        cwd: Optional[Union[str, Path]] = None,
        stderr: str = "",
    ):
        self.command = filter_credentials(command)
        self.path = Path(path) if path is not None else None
        self.extra_info = extra_info
        self.cwd = Path(cwd) if cwd is not None else Path.cwd()
        self.stderr = filter_credentials(stderr)

        msg = f"Git error: command `git {self.command}` in directory {self.cwd} has failed."
        if extra_info:
            msg += f"\n{extra_info}"
        if self.path is not None and self.path.exists():
            msg += f"\nIf this error persists you could try removing the cache directory '{self.path}'"
        super().__init__(msg)


class ReferenceNotFoundError(CommandFailedError):
    """Raised when a ref cannot be resolved to a revision."""

    kind = ErrorKind.REFERENCE_NOT_FOUND

    def __init__(self, ref: str, command: str, path=None, cwd=None, stderr: str = ""):
        self.ref = ref
        super().__init__(
            command,
            path=path,
            extra_info=f"Ref '{ref}' was not found. Perhaps you misspelled it?",
            cwd=cwd,
            stderr=stderr,
        )


class PreconditionError(GitSourceError):
    """Raised when the cache is needed, absent, and git operations are disabled."""

    kind = ErrorKind.PRECONDITION

    def __init__(self, uri: str):
        self.uri = filter_credentials(uri)
        super().__init__(
            f"The git source {self.uri} is not yet checked out. "
            "Please run the install step before trying to use it."
        )


class DestinationCollisionError(GitSourceError):
    """Raised when a plain file sits where a checkout directory must be created."""

    kind = ErrorKind.DESTINATION_COLLISION

    def __init__(self, file_path: Union[str, Path]):
        self.file_path = Path(file_path)
        super().__init__(
            "Could not check out the git source because a directory needs to be "
            f"created, but a file exists - {self.file_path}. "
            "Please delete this file and try again."
        )


class ConfigError(GitSourceError):
    """Raised when the settings file cannot be read or validated."""

    kind = ErrorKind.CONFIG

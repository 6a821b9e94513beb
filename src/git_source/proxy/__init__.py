"""Git source proxy: mirror cache management, ref resolution, and checkouts."""
from git_source.proxy.cache import cache_path_for
from git_source.proxy.escaping import Platform, configured_uri_for, escape_uri, shell_quote
from git_source.proxy.repository import RepositoryProxy
from git_source.proxy.retry import RetryPolicy
from git_source.proxy.runner import CommandResult, CommandRunner
from git_source.core.errors import (
    CommandFailedError,
    OperationNotPermittedError,
    PreconditionError,
    ReferenceNotFoundError,
)

__all__ = [
    "CommandFailedError",
    "CommandResult",
    "CommandRunner",
    "OperationNotPermittedError",
    "Platform",
    "PreconditionError",
    "ReferenceNotFoundError",
    "RepositoryProxy",
    "RetryPolicy",
    "cache_path_for",
    "configured_uri_for",
    "escape_uri",
    "shell_quote",
]

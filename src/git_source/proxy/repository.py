"""Repository proxy: resolve refs, maintain the mirror cache, and check out revisions.

The cache at ``path`` moves through three states:

    Absent -> Cloned (bare mirror) -> Synced (pinned revision present)

``checkout`` drives the transitions; once the pinned revision is present in
the cache, further checkouts make no network contact.
"""
import logging
import os
import re
import shutil
import stat
import tempfile
from pathlib import Path
from typing import Callable, Optional, Union

from git_source.core.errors import (
    CommandFailedError,
    DestinationCollisionError,
    OperationNotPermittedError,
    PreconditionError,
    ReferenceNotFoundError,
    ToolNotInstalledError,
)
from git_source.core.redaction import filter_credentials
from git_source.proxy.escaping import CredentialLookup, Platform, escape_uri, shell_quote
from git_source.proxy.retry import RetryPolicy
from git_source.proxy.runner import CommandResult, CommandRunner

logger = logging.getLogger(__name__)

_CURRENT_BRANCH = re.compile(r"^\* (.*)$", re.MULTILINE)
_UNSET = object()


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


def _normalize_permissions(path: Path) -> None:
    """Make path group/other readable, as far as the umask allows."""
    mode = (stat.S_IMODE(path.stat().st_mode) | 0o777) & ~_current_umask()
    os.chmod(path, mode)


class RepositoryProxy:
    """Interact with one git source: a remote, its local mirror, and a ref.

    Args:
        path: Local cache directory holding the bare mirror
        uri: Remote location (URL, scp-style locator, or local path)
        ref: Branch, tag, or commit to resolve
        revision: Already known revision, pinned without resolving
        allow_git_ops: False forbids every command that mutates a repository
        credentials: Lookup returning ``user:password`` for a URI or host
        runner: Command runner (defaults to a runner for ``git``)
        retry: Retry policy for network-sensitive commands
        platform: Shell quoting strategy (defaults to the current OS)

    Raises:
        ToolNotInstalledError: If git ops are allowed but git is missing
    """

    def __init__(
        self,
        path: Union[str, Path],
        uri: str,
        ref: str,
        revision: Optional[str] = None,
        *,
        allow_git_ops: bool = True,
        credentials: Optional[CredentialLookup] = None,
        runner: Optional[CommandRunner] = None,
        retry: Optional[RetryPolicy] = None,
        platform: Optional[Platform] = None,
    ):
        self.path = Path(path)
        self.uri = uri
        self._ref = ref
        self._revision = revision
        self._branch = _UNSET
        self.allow_git_ops = allow_git_ops
        self.credentials = credentials
        self.runner = runner or CommandRunner()
        self.retry = retry or RetryPolicy()
        self.platform = platform or Platform.current()

        if self.allow_git_ops and not self.runner.tool_available():
            raise ToolNotInstalledError(self.runner.executable)

    def __repr__(self) -> str:
        return (
            f"RepositoryProxy(path={str(self.path)!r}, uri={filter_credentials(self.uri)!r}, "
            f"ref={self._ref!r}, revision={self._revision!r})"
        )

    @property
    def ref(self) -> str:
        return self._ref

    @ref.setter
    def ref(self, value: str) -> None:
        # A new ref must never be answered from the old ref's resolution
        if value != self._ref:
            self._revision = None
            self._branch = _UNSET
        self._ref = value

    @property
    def pinned_revision(self) -> Optional[str]:
        """Revision known so far, without resolving anything."""
        return self._revision

    def pin_revision(self, revision: Optional[str]) -> None:
        self._revision = revision

    def revision(self) -> str:
        """Resolve ref to an immutable revision, once.

        Raises:
            ReferenceNotFoundError: If ref does not exist in the cache
        """
        if self._revision is None:
            command = f"rev-parse --verify {self._quote(self._ref)}"
            self._ensure_cache()
            try:
                result = self._git(command, cwd=self.path)
            except CommandFailedError as e:
                raise ReferenceNotFoundError(
                    self._ref, command, path=self.path, cwd=self.path, stderr=e.stderr
                ) from e
            self._revision = result.output.strip()
            logger.debug(f"Resolved {self._ref} -> {self._revision[:12]}")
        return self._revision

    def branch(self) -> Optional[str]:
        """Name of the branch HEAD points at in the cache, or None if detached."""
        if self._branch is _UNSET:
            self._ensure_cache()
            output = self._git("branch", cwd=self.path).output
            match = _CURRENT_BRANCH.search(output)
            name = match.group(1).strip() if match else None
            # "(HEAD detached at 1a2b3c)" / "(no branch)"
            self._branch = None if not name or name.startswith("(") else name
        return self._branch

    def contains(self, commit: str) -> bool:
        """Check if commit is reachable from the current branch of the cache."""
        self._ensure_cache()
        result = self._git(
            f"branch --contains {self._quote(commit)}", cwd=self.path, check=False
        )
        return result.success and _CURRENT_BRANCH.search(result.output) is not None

    def version(self) -> str:
        """Version string reported by the installed git."""
        output = self.runner.run("--version").output
        return output.replace("git version", "", 1).strip()

    def checkout(self) -> None:
        """Create or refresh the bare mirror cache from the remote.

        Raises:
            PreconditionError: If git ops are disabled and the cache is absent
            OperationNotPermittedError: If git ops are disabled and a fetch is needed
        """
        if self.path.exists():
            if self._has_revision_cached():
                logger.info(f"Using cached {filter_credentials(self.uri)} at {self._revision[:12]}")
                return
            logger.info(f"Fetching {filter_credentials(self.uri)}")
            refspec = self._quote("refs/heads/*:refs/heads/*")
            self._git_retry(
                f"fetch --force --quiet --tags {self._escaped_uri()} {refspec}",
                cwd=self.path,
                label=f"git fetch {self.uri}",
            )
        else:
            if not self.allow_git_ops:
                raise PreconditionError(self.uri)
            logger.info(f"Fetching {filter_credentials(self.uri)}")
            self._clone_cache()

    def copy_to(self, destination: Union[str, Path], with_submodules: bool = False) -> None:
        """Check out the pinned revision into a working tree at destination.

        Raises:
            DestinationCollisionError: If a file blocks creating destination
        """
        destination = Path(destination)
        revision = self.revision()

        if not (destination / ".git").exists():
            if not self.allow_git_ops:
                raise OperationNotPermittedError(
                    f"clone --no-checkout --quiet {self.path} {destination}"
                )
            try:
                destination.parent.mkdir(parents=True, exist_ok=True)
                if destination.is_dir() and not destination.is_symlink():
                    shutil.rmtree(destination)
                elif destination.exists() or destination.is_symlink():
                    destination.unlink()
            except (FileExistsError, NotADirectoryError) as e:
                raise DestinationCollisionError(e.filename or destination.parent) from e

            self._git_retry(
                f"clone --no-checkout --quiet {self._quote(str(self.path))} "
                f"{self._quote(str(destination))}"
            )
            _normalize_permissions(destination)

        self._git_retry(
            f"fetch --force --quiet --tags {self._quote(str(self.path))}", cwd=destination
        )
        self._git(f"reset --hard {self._quote(revision)}", cwd=destination, mutating=True)

        if with_submodules:
            self._git_retry("submodule update --init --recursive", cwd=destination)

    def _clone_cache(self) -> None:
        # Clone beside the final location and move into place on success, so
        # an interrupted clone never leaves a partial mirror at path.
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(
            prefix=f".{self.path.name}-", dir=self.path.parent
        ) as tmpdir:
            staging = Path(tmpdir) / "mirror"

            def _discard_partial() -> None:
                shutil.rmtree(staging, ignore_errors=True)

            self._git_retry(
                f"clone {self._escaped_uri()} {self._quote(str(staging))} "
                "--bare --no-hardlinks --quiet",
                label=f"git clone {self.uri}",
                before_attempt=_discard_partial,
            )
            logger.debug(f"Moving mirror into {self.path}")
            shutil.move(str(staging), str(self.path))

    def _has_revision_cached(self) -> bool:
        if not self._revision:
            return False
        try:
            self._git(f"cat-file -e {self._quote(self._revision)}", cwd=self.path)
        except CommandFailedError:
            return False
        return True

    def _ensure_cache(self) -> None:
        if self.path.exists():
            return
        if not self.allow_git_ops:
            raise PreconditionError(self.uri)
        self.checkout()

    def _escaped_uri(self) -> str:
        return escape_uri(self.uri, self.credentials, self.platform)

    def _quote(self, value: str) -> str:
        return shell_quote(value, self.platform)

    def _git(
        self,
        command: str,
        cwd: Optional[Path] = None,
        check: bool = True,
        mutating: bool = False,
    ) -> CommandResult:
        if mutating and not self.allow_git_ops:
            raise OperationNotPermittedError(command)
        return self.runner.run(command, cwd=cwd, check=check, cache_path=self.path)

    def _git_retry(
        self,
        command: str,
        cwd: Optional[Path] = None,
        label: Optional[str] = None,
        before_attempt: Optional[Callable[[], None]] = None,
    ) -> CommandResult:
        def _attempt() -> CommandResult:
            if before_attempt is not None:
                before_attempt()
            return self._git(command, cwd=cwd, mutating=True)

        return self.retry.run(label or f"git {command}", _attempt)

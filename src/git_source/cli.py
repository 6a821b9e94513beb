"""git-source CLI - Command line interface for git-source."""
import functools
import logging
import sys
from pathlib import Path

import click

from git_source.core.config import Settings
from git_source.core.errors import (
    ConfigError,
    DestinationCollisionError,
    GitSourceError,
    OperationNotPermittedError,
    PreconditionError,
    ReferenceNotFoundError,
    ToolNotInstalledError,
)
from git_source.core.redaction import filter_credentials
from git_source.proxy import CommandRunner, RepositoryProxy, cache_path_for

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(name)s: %(message)s",
)
logger = logging.getLogger("git_source")

DEFAULT_CACHE_DIR = Path.home() / ".cache" / "git-source"

EXIT_CODES = (
    (ReferenceNotFoundError, 3),
    (OperationNotPermittedError, 4),
    (PreconditionError, 4),
    (ToolNotInstalledError, 5),
    (DestinationCollisionError, 6),
    (ConfigError, 7),
)


def _exit_code_for(error: Exception) -> int:
    for error_type, code in EXIT_CODES:
        if isinstance(error, error_type):
            return code
    return 1


def source_options(func):
    """Options shared by every command that works on a git source."""

    @click.option("--uri", required=True, help="Remote repository URI or local path")
    @click.option("--ref", default="main", show_default=True, help="Branch, tag, or commit")
    @click.option("--revision", default=None, help="Already resolved revision to pin")
    @click.option(
        "--cache-dir",
        type=click.Path(file_okay=False, path_type=Path),
        default=DEFAULT_CACHE_DIR,
        show_default=True,
        help="Directory holding mirror caches",
    )
    @click.option(
        "--cache-path",
        type=click.Path(file_okay=False, path_type=Path),
        default=None,
        help="Exact mirror cache directory (overrides --cache-dir)",
    )
    @click.option("--frozen", is_flag=True, help="Forbid git commands that modify repositories")
    @click.option(
        "--config",
        type=click.Path(dir_okay=False, path_type=Path),
        default=None,
        help="JSON settings file (credentials, retry, git executable)",
    )
    @functools.wraps(func)
    def wrapper(uri, ref, revision, cache_dir, cache_path, frozen, config, **kwargs):
        try:
            settings = Settings.load(config) if config else Settings()
            if frozen:
                settings.allow_git_ops = False
            proxy = settings.build_proxy(
                cache_path or cache_path_for(cache_dir, uri), uri, ref, revision
            )
            func(proxy, **kwargs)
        except GitSourceError as e:
            logger.error(str(e))
            sys.exit(_exit_code_for(e))
        except Exception as e:
            logger.error(f"Command failed: {filter_credentials(str(e))}")
            sys.exit(1)
        sys.exit(0)

    return wrapper


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show debug output, including git commands")
def main(verbose: bool):
    """git-source - Mirror, resolve, and check out git sources."""
    if verbose:
        logger.setLevel(logging.DEBUG)


@main.command()
@click.option("--git", "git_executable", default="git", help="git executable to query")
def version(git_executable: str):
    """Print the installed git version.

    Exit codes:
        0: Success
        1: git could not be run
    """
    # Querying the version needs neither a remote nor a cache
    proxy = RepositoryProxy(
        Path.cwd(), "", "HEAD", allow_git_ops=False, runner=CommandRunner(git_executable)
    )
    try:
        click.echo(proxy.version())
    except GitSourceError as e:
        logger.error(str(e))
        sys.exit(1)


@main.command()
@source_options
def checkout(proxy: RepositoryProxy):
    """Create or refresh the mirror cache for a source.

    Examples:
        git-source checkout --uri https://github.com/org/project.git
        git-source checkout --uri ../project --cache-path /tmp/project-cache

    Exit codes:
        0: Success
        1: Generic runtime failure
        4: Git operations disabled (--frozen) and the cache is missing
        5: git is not installed
        7: Configuration file error
    """
    proxy.checkout()
    click.echo(f"[OK] Cache ready: {proxy.path}")


@main.command()
@source_options
def revision(proxy: RepositoryProxy):
    """Resolve the ref to a revision and print it.

    Exit codes:
        0: Success
        1: Generic runtime failure
        3: Requested ref not found
        4: Git operations disabled and the cache is missing
    """
    click.echo(proxy.revision())


@main.command()
@source_options
def branch(proxy: RepositoryProxy):
    """Print the current branch of the mirror cache (empty when detached)."""
    click.echo(proxy.branch() or "")


@main.command()
@click.argument("commit")
@source_options
def contains(proxy: RepositoryProxy, commit: str):
    """Report whether COMMIT is reachable from the cache's current branch.

    Prints "yes" or "no"; the exit code is 0 either way.
    """
    click.echo("yes" if proxy.contains(commit) else "no")


@main.command()
@click.argument("destination", type=click.Path(path_type=Path))
@click.option("--submodules", is_flag=True, help="Also initialize and update submodules")
@source_options
def copy(proxy: RepositoryProxy, destination: Path, submodules: bool):
    """Check out the resolved revision into DESTINATION.

    Examples:
        git-source copy vendor/project --uri https://github.com/org/project.git --ref v1.2.0

    Exit codes:
        0: Success
        1: Generic runtime failure
        3: Requested ref not found
        4: Git operations disabled
        6: A file blocks creating DESTINATION
        7: Configuration file error
    """
    proxy.checkout()
    proxy.copy_to(destination, with_submodules=submodules)
    click.echo(f"[OK] Checked out {proxy.ref}")
    click.echo(f"  Revision: {proxy.revision()[:12]}")
    click.echo(f"  Path: {destination}")


if __name__ == "__main__":
    main()

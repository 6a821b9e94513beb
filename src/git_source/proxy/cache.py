"""Cache directory naming for git sources."""
import hashlib
import re
from pathlib import Path
from urllib.parse import urlsplit

from git_source.core.redaction import filter_credentials

# user@host:path/to/repo.git
_SCP_LIKE = re.compile(r"^(?:[^@/]+@)?[^/:]+:(?P<path>.+)$")


def base_name(uri: str) -> str:
    """Extract the repository name from a remote location.

    Examples:
        https://github.com/org/project.git -> project
        git@github.com:org/project.git -> project
        /local/path/to/repo -> repo
    """
    clean = uri.rstrip("/\\")
    parsed = urlsplit(clean)
    if parsed.scheme and parsed.netloc:
        path = parsed.path
    else:
        match = _SCP_LIKE.match(clean)
        # A Windows drive letter ("C:\\...") also matches the scp form
        path = match.group("path") if match and len(clean.split(":", 1)[0]) > 1 else clean

    name = re.split(r"[/\\]", path.rstrip("/\\"))[-1]
    if name.endswith(".git"):
        name = name[:-4]
    return name or "repo"


def uri_hash(uri: str) -> str:
    """Short stable digest of uri, ignoring embedded credentials."""
    return hashlib.sha1(filter_credentials(uri).encode("utf-8")).hexdigest()[:12]


def cache_path_for(cache_root: Path, uri: str) -> Path:
    """Return the bare-mirror cache directory for uri under cache_root."""
    return Path(cache_root) / f"{base_name(uri)}-{uri_hash(uri)}"

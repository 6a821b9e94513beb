"""URI escaping for git command lines.

Injects configured credentials into http(s) remotes and quotes the result so
it can be interpolated into a shell command string.
"""
import logging
import os
import re
from enum import Enum
from typing import Callable, Optional
from urllib.parse import quote, urlsplit, urlunsplit

from git_source.core.redaction import filter_credentials

logger = logging.getLogger(__name__)

CredentialLookup = Callable[[str], Optional[str]]

# RFC 3986 userinfo characters, minus the shell quote "'"; "%" is only kept
# when it starts a percent-escape
_USERINFO_SAFE = "!$&()*+,;=:%"
_BARE_PERCENT = re.compile(r"%(?![0-9A-Fa-f]{2})")


class Platform(str, Enum):
    """Shell quoting strategy."""

    POSIX = "posix"
    WINDOWS = "windows"

    @classmethod
    def current(cls) -> "Platform":
        return cls.WINDOWS if os.name == "nt" else cls.POSIX


def configured_uri_for(uri: str, credentials: Optional[CredentialLookup] = None) -> str:
    """Return uri with configured credentials injected as userinfo.

    Only http and https remotes are touched. Credentials are looked up by the
    exact URI first, then by host. A URI that already carries userinfo is
    returned unchanged.

    A ``%`` followed by two hex digits is taken as an existing percent-escape
    and passed through; any other ``%`` is encoded as ``%25``.
    """
    parts = urlsplit(uri)
    if parts.scheme.lower() not in ("http", "https") or not parts.hostname:
        return uri
    if credentials is None or parts.username is not None:
        return uri

    auth = credentials(uri) or credentials(parts.hostname)
    if not auth:
        return uri

    logger.debug(f"Using configured credentials for {parts.hostname}")
    userinfo = quote(_BARE_PERCENT.sub("%25", auth), safe=_USERINFO_SAFE)
    return urlunsplit(parts._replace(netloc=f"{userinfo}@{parts.netloc}"))


def shell_quote(value: str, platform: Optional[Platform] = None) -> str:
    """Quote value for interpolation into a shell command line.

    Windows (cmd.exe) only understands double quotes, with embedded double
    quotes escaped by doubling them. POSIX shells get single quotes; an
    embedded single quote closes the string, adds an escaped quote and
    reopens it.
    """
    platform = platform or Platform.current()
    if platform is Platform.WINDOWS:
        return '"' + value.replace('"', '""') + '"'
    return "'" + value.replace("'", "'\\''") + "'"


def escape_uri(
    uri: str,
    credentials: Optional[CredentialLookup] = None,
    platform: Optional[Platform] = None,
) -> str:
    """Inject configured credentials into uri and shell-quote the result."""
    return shell_quote(configured_uri_for(uri, credentials), platform)


__all__ = [
    "CredentialLookup",
    "Platform",
    "configured_uri_for",
    "escape_uri",
    "filter_credentials",
    "shell_quote",
]

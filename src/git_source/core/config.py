"""Settings model: git executable, retry bounds, mode flag, and credentials."""
from pathlib import Path
from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from git_source.core.errors import ConfigError
from git_source.proxy.escaping import Platform
from git_source.proxy.repository import RepositoryProxy
from git_source.proxy.retry import RetryPolicy
from git_source.proxy.runner import CommandRunner


class Settings(BaseModel):
    """Settings for git sources, loadable from a JSON file.

    Credentials are keyed either by a full remote URI or by a bare host name;
    values are ``user:password`` or a single access token.
    """

    git_executable: str = Field(default="git", description="git executable name or path")
    retry: int = Field(default=2, ge=0, description="Extra attempts for network commands")
    retry_wait_seconds: float = Field(default=0.0, ge=0, description="Pause between attempts")
    allow_git_ops: bool = Field(default=True, description="False forbids mutating git commands")
    platform: Optional[Platform] = Field(default=None, description="Shell quoting strategy")
    credentials: Dict[str, str] = Field(default_factory=dict)

    @field_validator("credentials")
    @classmethod
    def validate_credentials(cls, v: Dict[str, str]) -> Dict[str, str]:
        """Reject empty keys or values; they would match nothing or inject nothing."""
        for key, value in v.items():
            if not key.strip() or not value:
                raise ValueError(f"credentials entries must be non-empty; got {key!r}")
        return v

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "git_executable": "git",
                "retry": 2,
                "retry_wait_seconds": 0.0,
                "allow_git_ops": True,
                "platform": None,
                "credentials": {
                    "github.com": "x-access-token:ghp_example",
                    "https://git.example.com/private/repo.git": "deploy:secret",
                },
            }
        }
    )

    def save(self, path: Path) -> None:
        """Write settings to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2))

    @classmethod
    def load(cls, path: Union[str, Path]) -> "Settings":
        """Load settings from a JSON file.

        Raises:
            ConfigError: If the file is missing, not JSON, or fails validation
        """
        path = Path(path)
        try:
            return cls.model_validate_json(path.read_text())
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        except ValidationError as e:
            raise ConfigError(f"Invalid config file {path}: {e}") from e

    def credential_for(self, key: str) -> Optional[str]:
        """Credential configured for a URI or host, if any."""
        return self.credentials.get(key) or self.credentials.get(key.rstrip("/"))

    def build_proxy(
        self,
        path: Union[str, Path],
        uri: str,
        ref: str,
        revision: Optional[str] = None,
    ) -> RepositoryProxy:
        """Construct a RepositoryProxy wired with these settings."""
        return RepositoryProxy(
            path,
            uri,
            ref,
            revision,
            allow_git_ops=self.allow_git_ops,
            credentials=self.credential_for,
            runner=CommandRunner(self.git_executable),
            retry=RetryPolicy(attempts=self.retry, wait_seconds=self.retry_wait_seconds),
            platform=self.platform,
        )

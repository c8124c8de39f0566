"""Settings for the Deploy Sync service."""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # GitHub credentials: a static token wins over App credentials
    github_token: Optional[str] = Field(default=None)
    github_app_id: Optional[str] = Field(default=None)
    github_app_private_key: Optional[str] = Field(
        default=None,
        description="PEM encoded App private key. Literal '\\n' sequences are expanded.",
    )
    github_api_url: str = Field(default="https://api.github.com")
    github_host: str = Field(
        default="github.com",
        description="Host a commit URL must point at to be attributed to a repository",
    )
    http_timeout_seconds: float = Field(default=10.0)

    # Netlify webhook
    netlify_jws_secret: Optional[str] = Field(
        default=None,
        description="JWS secret configured on the Netlify deploy notification. Verification is skipped when unset.",
    )
    preview_context: str = Field(
        default="deploy-preview",
        description="Deploy context that is never mirrored to GitHub",
    )
    skip_unparseable_commit_url: bool = Field(
        default=False,
        description="If True, a commit URL that does not point at a repository is a skip (200) instead of a client error (400).",
    )

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    log_level: str = Field(default="INFO")

    class Config:
        env_prefix = "DEPLOY_SYNC_"
        case_sensitive = False

    @property
    def signature_required(self) -> bool:
        return bool(self.netlify_jws_secret)

    @property
    def app_private_key(self) -> Optional[str]:
        if not self.github_app_private_key:
            return None
        return self.github_app_private_key.replace("\\n", "\n")


settings = Settings()

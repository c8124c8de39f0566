"""Build an authorized GitHub client from explicit settings."""

from __future__ import annotations

import logging
import time
from typing import Optional

import jwt

from .config import Settings
from .errors import ConfigError
from .github_api import GitHubClient
from .models import RepoIdentity

logger = logging.getLogger(__name__)

# GitHub caps App JWTs at ten minutes; iat is backdated for clock drift
APP_JWT_TTL_SECONDS = 9 * 60
APP_JWT_BACKDATE_SECONDS = 60


class ClientFactory:
    def __init__(self, config: Settings):
        self._config = config

    def obtain(self, repo: Optional[RepoIdentity] = None) -> GitHubClient:
        config = self._config
        if config.github_token:
            return self._client(config.github_token)

        if config.github_app_id and config.app_private_key:
            if repo is None:
                raise ConfigError("GitHub App credentials need a repository to resolve an installation")
            return self._client(self._installation_token(repo))

        raise ConfigError(
            "No GitHub credentials configured: set DEPLOY_SYNC_GITHUB_TOKEN "
            "or DEPLOY_SYNC_GITHUB_APP_ID and DEPLOY_SYNC_GITHUB_APP_PRIVATE_KEY"
        )

    def _client(self, token: str) -> GitHubClient:
        return GitHubClient(
            token,
            api_url=self._config.github_api_url,
            timeout=self._config.http_timeout_seconds,
        )

    def app_jwt(self, now: Optional[int] = None) -> str:
        issued = int(now if now is not None else time.time())
        claims = {
            "iat": issued - APP_JWT_BACKDATE_SECONDS,
            "exp": issued + APP_JWT_TTL_SECONDS,
            "iss": str(self._config.github_app_id),
        }
        return jwt.encode(claims, self._config.app_private_key, algorithm="RS256")

    def _installation_token(self, repo: RepoIdentity) -> str:
        with self._client(self.app_jwt()) as app_client:
            installation_id = app_client.get_installation_id(repo)
            logger.debug(f"Resolved App installation {installation_id} for {repo}")
            return app_client.create_installation_token(installation_id)

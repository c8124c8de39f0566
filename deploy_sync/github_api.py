"""Thin GitHub REST client for commit statuses and deployments."""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests
from prometheus_client import Counter
from pydantic import ValidationError

from .errors import UpstreamError
from .models import CommitStatus, Deployment, DeploymentStatus, RepoIdentity

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
API_VERSION = "2022-11-28"
STATUS_PAGE_SIZE = 100

REMOTE_WRITES = Counter(
    'deploy_sync_remote_writes_total',
    'Records written to the GitHub API',
    ['kind']  # commit_status, deployment, deployment_status
)


class GitHubClient:
    def __init__(
        self,
        token: str,
        *,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
            }
        )

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(self, method: str, path: str, *, expected: tuple[int, ...] = (200,), **kwargs) -> Any:
        url = f"{self._api_url}{path}"
        logger.debug(f"GitHub {method} {path}")
        try:
            response = self._session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.RequestException as exc:
            raise UpstreamError(f"GitHub {method} {path} failed: {exc}") from exc

        if response.status_code not in expected:
            raise UpstreamError(
                f"GitHub {method} {path} returned {response.status_code}",
                remote_status=response.status_code,
                body=response.text[:500],
            )

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(f"GitHub {method} {path} returned a non-JSON body") from exc

    @staticmethod
    def _parse(model, data: Any, what: str):
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise UpstreamError(f"Unexpected {what} payload from GitHub: {exc}") from exc

    # Commit statuses

    def get_commit_status(self, repo: RepoIdentity, sha: str, context: str) -> Optional[CommitStatus]:
        """Latest status for ``context`` on ``sha``, or None if there is none.

        The combined status endpoint already collapses the history to the most
        recent status per context, but paginates the contexts.
        """
        page = 1
        while True:
            data = self._request(
                "GET",
                f"/repos/{repo.owner}/{repo.repo}/commits/{sha}/status",
                params={"per_page": STATUS_PAGE_SIZE, "page": page},
            )
            statuses = data.get("statuses") if isinstance(data, dict) else None
            if not isinstance(statuses, list):
                raise UpstreamError("Combined status response has no 'statuses' list")
            for item in statuses:
                if isinstance(item, dict) and item.get("context") == context:
                    return self._parse(CommitStatus, item, "commit status")
            if len(statuses) < STATUS_PAGE_SIZE:
                return None
            page += 1

    def create_commit_status(
        self,
        repo: RepoIdentity,
        sha: str,
        *,
        state: str,
        context: str,
        description: str,
        target_url: Optional[str] = None,
    ) -> CommitStatus:
        payload = {"state": state, "context": context, "description": description}
        if target_url:
            payload["target_url"] = target_url
        data = self._request(
            "POST", f"/repos/{repo.owner}/{repo.repo}/statuses/{sha}", expected=(201,), json=payload
        )
        REMOTE_WRITES.labels(kind="commit_status").inc()
        return self._parse(CommitStatus, data, "commit status")

    # Deployments

    def find_deployment(self, repo: RepoIdentity, *, task: str, environment: str) -> Optional[Deployment]:
        data = self._request(
            "GET",
            f"/repos/{repo.owner}/{repo.repo}/deployments",
            params={"task": task, "environment": environment, "per_page": 1},
        )
        if not isinstance(data, list):
            raise UpstreamError("Deployment list response is not a list")
        if not data:
            return None
        return self._parse(Deployment, data[0], "deployment")

    def create_deployment(
        self,
        repo: RepoIdentity,
        *,
        ref: str,
        task: str,
        environment: str,
        description: Optional[str] = None,
    ) -> Deployment:
        payload = {
            "ref": ref,
            "task": task,
            "environment": environment,
            "auto_merge": False,
            "required_contexts": [],
        }
        if description:
            payload["description"] = description
        # 202 means GitHub merged the default branch instead of creating anything
        data = self._request(
            "POST", f"/repos/{repo.owner}/{repo.repo}/deployments", expected=(201,), json=payload
        )
        if not isinstance(data, dict) or data.get("id") is None:
            raise UpstreamError("Deployment creation returned no id")
        REMOTE_WRITES.labels(kind="deployment").inc()
        return self._parse(Deployment, data, "deployment")

    def create_deployment_status(
        self,
        repo: RepoIdentity,
        deployment_id: int,
        *,
        state: str,
        description: str,
        log_url: Optional[str] = None,
        environment_url: Optional[str] = None,
    ) -> DeploymentStatus:
        payload = {"state": state, "description": description}
        if log_url:
            payload["log_url"] = log_url
        if environment_url:
            payload["environment_url"] = environment_url
        data = self._request(
            "POST",
            f"/repos/{repo.owner}/{repo.repo}/deployments/{deployment_id}/statuses",
            expected=(201,),
            json=payload,
        )
        REMOTE_WRITES.labels(kind="deployment_status").inc()
        return self._parse(DeploymentStatus, data, "deployment status")

    # App installation auth

    def get_installation_id(self, repo: RepoIdentity) -> int:
        data = self._request("GET", f"/repos/{repo.owner}/{repo.repo}/installation")
        if not isinstance(data, dict) or not isinstance(data.get("id"), int):
            raise UpstreamError(f"No App installation found for {repo}")
        return data["id"]

    def create_installation_token(self, installation_id: int) -> str:
        data = self._request(
            "POST", f"/app/installations/{installation_id}/access_tokens", expected=(201,)
        )
        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            raise UpstreamError("Installation token response has no token")
        return token

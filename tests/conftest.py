import hashlib
import json
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from unittest.mock import MagicMock

from deploy_sync.config import Settings
from deploy_sync.models import CommitStatus, Deployment, DeploymentStatus
from deploy_sync.processor import NotificationProcessor

JWS_SECRET = "test-netlify-jws-secret-0123456789abcdef"

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeGitHub:
    """In-memory stand-in for GitHubClient.

    Records are append-only like on GitHub and stamped with ``self.now``;
    writing a deployment status moves the deployment's updated_at forward.
    """

    def __init__(self, now=NOW):
        self.now = now
        self.commit_statuses = []  # (repo, sha, CommitStatus)
        self.deployments = []  # (repo, Deployment)
        self.deployment_statuses = []  # (deployment_id, DeploymentStatus)
        self.calls = []

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return None

    def close(self):
        pass

    def tick(self, seconds=1):
        self.now = self.now + timedelta(seconds=seconds)

    @property
    def writes(self):
        return [name for name in self.calls if name.startswith("create_")]

    def get_commit_status(self, repo, sha, context):
        self.calls.append("get_commit_status")
        matches = [s for r, h, s in self.commit_statuses if r == repo and h == sha and s.context == context]
        return max(matches, key=lambda s: s.created_at) if matches else None

    def create_commit_status(self, repo, sha, *, state, context, description, target_url=None):
        self.calls.append("create_commit_status")
        status = CommitStatus(
            id=len(self.commit_statuses) + 1,
            state=state,
            context=context,
            description=description,
            target_url=target_url,
            created_at=self.now,
        )
        self.commit_statuses.append((repo, sha, status))
        return status

    def find_deployment(self, repo, *, task, environment):
        self.calls.append("find_deployment")
        matches = [d for r, d in self.deployments if r == repo and d.task == task and d.environment == environment]
        return matches[-1].model_copy() if matches else None

    def create_deployment(self, repo, *, ref, task, environment, description=None):
        self.calls.append("create_deployment")
        deployment = Deployment(
            id=1000 + len(self.deployments),
            ref=ref,
            sha=ref,
            task=task,
            environment=environment,
            created_at=self.now,
            updated_at=self.now,
        )
        self.deployments.append((repo, deployment))
        return deployment.model_copy()

    def create_deployment_status(self, repo, deployment_id, *, state, description, log_url=None, environment_url=None):
        self.calls.append("create_deployment_status")
        status = DeploymentStatus(
            id=len(self.deployment_statuses) + 1,
            state=state,
            description=description,
            log_url=log_url,
            environment_url=environment_url,
            created_at=self.now,
        )
        self.deployment_statuses.append((deployment_id, status))
        for _, deployment in self.deployments:
            if deployment.id == deployment_id:
                deployment.updated_at = self.now
        return status

    def latest_commit_status(self):
        return max((s for _, _, s in self.commit_statuses), key=lambda s: s.created_at)


def make_payload(**overrides):
    payload = {
        "id": "6650a1b2c3d4e5f6a7b8c9d0",
        "site_id": "site-123",
        "state": "building",
        "name": "site",
        "branch": "main",
        "context": "production",
        "commit_ref": "abc123",
        "commit_url": "https://github.com/o/r/commit/abc123",
        "error_message": None,
        "url": "http://site.netlify.app",
        "ssl_url": "https://site.netlify.app",
        "deploy_ssl_url": "https://6650a1b2c3d4e5f6a7b8c9d0--site.netlify.app",
        "admin_url": "https://app.netlify.com/sites/site",
        "updated_at": (NOW - timedelta(minutes=1)).isoformat(),
    }
    payload.update(overrides)
    return payload


def encode(payload):
    return json.dumps(payload).encode()


def sign(body, secret=JWS_SECRET, issuer="netlify"):
    claims = {"iss": issuer, "sha256": hashlib.sha256(body).hexdigest()}
    return jwt.encode(claims, secret, algorithm="HS256")


@pytest.fixture
def config():
    return Settings(github_token="ghp_test", netlify_jws_secret=None)


@pytest.fixture
def signed_config():
    return Settings(github_token="ghp_test", netlify_jws_secret=JWS_SECRET)


@pytest.fixture
def github():
    return FakeGitHub()


@pytest.fixture
def client_factory(github):
    factory = MagicMock()
    factory.obtain.return_value = github
    return factory


@pytest.fixture
def processor(config, client_factory):
    return NotificationProcessor(config, client_factory)

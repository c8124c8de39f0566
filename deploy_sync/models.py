"""Core models shared across components."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# GitHub rejects status descriptions longer than this
MAX_DESCRIPTION_LENGTH = 140


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CommitState(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"
    ERROR = "error"


class DeploymentState(str, Enum):
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILURE = "failure"
    ERROR = "error"


class ReconcileDecision(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


class Outcome(str, Enum):
    SUCCESS = "success"
    SKIP = "skip"
    ERROR = "error"


class DeployNotification(BaseModel):
    """Deploy event as posted by a Netlify outgoing webhook.

    Netlify sends the full deploy object; only the fields used to mirror the
    deploy onto GitHub are modelled, everything else is ignored.
    """

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    site_id: Optional[str] = None
    state: Optional[str] = None
    name: Optional[str] = None
    branch: Optional[str] = None
    context: Optional[str] = None
    commit_ref: Optional[str] = None
    commit_url: Optional[str] = None
    error_message: Optional[str] = None
    title: Optional[str] = None
    url: Optional[str] = None
    ssl_url: Optional[str] = None
    deploy_url: Optional[str] = None
    deploy_ssl_url: Optional[str] = None
    admin_url: Optional[str] = None
    updated_at: datetime = Field(default=EPOCH)

    @field_validator("updated_at", mode="before")
    @classmethod
    def _missing_timestamp_is_epoch(cls, value: Any) -> Any:
        if value is None or value == "":
            return EPOCH
        return value

    @field_validator("updated_at")
    @classmethod
    def _timestamp_is_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @property
    def environment(self) -> str:
        return f"{self.branch} - {self.name}"

    @property
    def status_context(self) -> str:
        return f"Netlify ({self.environment})"

    @property
    def environment_url(self) -> Optional[str]:
        # Public site URL, falling back to the deploy permalink
        return self.url or self.deploy_ssl_url

    @property
    def log_url(self) -> str:
        if self.admin_url:
            return f"{self.admin_url.rstrip('/')}/deploys/{self.id}"
        return f"https://app.netlify.com/sites/{self.name}/deploys/{self.id}"

    def missing_commit_fields(self) -> list[str]:
        required = {
            "state": self.state,
            "commit_ref": self.commit_ref,
            "commit_url": self.commit_url,
            "branch": self.branch,
            "name": self.name,
        }
        return [key for key, value in required.items() if value is None]


class RepoIdentity(BaseModel):
    model_config = ConfigDict(frozen=True)

    owner: str
    repo: str

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}"


class _GitHubRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    @field_validator("created_at", "updated_at", check_fields=False)
    @classmethod
    def _timestamps_are_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value) if value is not None else None


class CommitStatus(_GitHubRecord):
    id: Optional[int] = None
    state: str
    context: str
    description: Optional[str] = None
    target_url: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class Deployment(_GitHubRecord):
    id: int
    ref: Optional[str] = None
    sha: Optional[str] = None
    task: Optional[str] = None
    environment: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class DeploymentStatus(_GitHubRecord):
    id: int
    state: str
    description: Optional[str] = None
    log_url: Optional[str] = None
    environment_url: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class ProcessResult(BaseModel):
    """Terminal outcome of one deploy notification."""

    outcome: Outcome
    detail: str
    status_code: int = 200
    deploy_id: Optional[str] = None
    repository: Optional[str] = None
    commit_status: Optional[ReconcileDecision] = None
    deployment_id: Optional[int] = None
    deployment_created: Optional[bool] = None
    deployment_status: Optional[ReconcileDecision] = None

    @classmethod
    def skip(cls, detail: str, **kwargs: Any) -> "ProcessResult":
        return cls(outcome=Outcome.SKIP, detail=detail, status_code=200, **kwargs)

    @classmethod
    def failure(cls, detail: str, status_code: int, **kwargs: Any) -> "ProcessResult":
        return cls(outcome=Outcome.ERROR, detail=detail, status_code=status_code, **kwargs)

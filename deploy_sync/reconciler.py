"""Idempotent projection of a deploy notification onto GitHub records.

Both commit statuses and deployment statuses are append-only on GitHub, so
"updating" one means writing a newer record. A write only happens when the
record it would supersede is not newer than the notification; that keeps
replays and out-of-order deliveries from regressing what GitHub shows.

There is no locking. Two overlapping invocations for the same deploy can both
miss the deployment lookup and create two deployments.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional, TypeVar

from prometheus_client import Counter

from .github_api import GitHubClient
from .models import (
    CommitState,
    Deployment,
    DeploymentState,
    ReconcileDecision,
    RepoIdentity,
)

logger = logging.getLogger(__name__)

RECONCILE_DECISIONS = Counter(
    'deploy_sync_reconcile_decisions_total',
    'Last-write-wins decisions taken per record kind',
    ['record', 'decision']
)

R = TypeVar("R")

TASK_PREFIX = "deploy:netlify-"


def last_write_wins(
    *,
    lookup: Callable[[], Optional[R]],
    timestamp_of: Callable[[R], datetime],
    write: Callable[[], Any],
    incoming: datetime,
    record: str,
) -> ReconcileDecision:
    """Write unless the existing record is strictly newer than ``incoming``.

    Ties write, so a notification is never dropped against a record carrying
    the very same timestamp.
    """
    existing = lookup()
    if existing is None:
        decision = ReconcileDecision.CREATED
    elif timestamp_of(existing) <= incoming:
        decision = ReconcileDecision.UPDATED
    else:
        logger.info(
            f"Skipping stale {record}: existing record from {timestamp_of(existing).isoformat()} "
            f"is newer than notification from {incoming.isoformat()}"
        )
        RECONCILE_DECISIONS.labels(record=record, decision="skip").inc()
        return ReconcileDecision.SKIPPED

    write()
    RECONCILE_DECISIONS.labels(record=record, decision="write").inc()
    return decision


def reconcile_commit_status(
    client: GitHubClient,
    repo: RepoIdentity,
    sha: str,
    context: str,
    state: CommitState,
    description: str,
    target_url: Optional[str],
    incoming: datetime,
) -> ReconcileDecision:
    return last_write_wins(
        lookup=lambda: client.get_commit_status(repo, sha, context),
        timestamp_of=lambda status: status.created_at,
        write=lambda: client.create_commit_status(
            repo,
            sha,
            state=state.value,
            context=context,
            description=description,
            target_url=target_url,
        ),
        incoming=incoming,
        record="commit_status",
    )


@dataclass
class DeploymentHandle:
    deployment: Deployment
    created: bool
    status: ReconcileDecision

    @property
    def id(self) -> int:
        return self.deployment.id


def deployment_task(external_deploy_id: str) -> str:
    return f"{TASK_PREFIX}{external_deploy_id}"


def reconcile_deployment(
    client: GitHubClient,
    repo: RepoIdentity,
    external_deploy_id: str,
    sha: str,
    environment: str,
    state: DeploymentState,
    log_url: Optional[str],
    environment_url: Optional[str],
    description: str,
    incoming: datetime,
) -> DeploymentHandle:
    task = deployment_task(external_deploy_id)

    existing = client.find_deployment(repo, task=task, environment=environment)
    if existing is None:
        deployment = client.create_deployment(
            repo, ref=sha, task=task, environment=environment, description=description
        )
        logger.info(f"Created deployment {deployment.id} for {task} in {environment!r}")
    else:
        deployment = existing
        logger.debug(f"Reusing deployment {deployment.id} for {task} in {environment!r}")

    # Individual deployment statuses are not fetched; the deployment's own
    # updated_at moves forward with every status written to it.
    status = last_write_wins(
        lookup=lambda: existing,
        timestamp_of=lambda found: found.updated_at,
        write=lambda: client.create_deployment_status(
            repo,
            deployment.id,
            state=state.value,
            description=description,
            log_url=log_url,
            environment_url=environment_url,
        ),
        incoming=incoming,
        record="deployment_status",
    )
    return DeploymentHandle(deployment=deployment, created=existing is None, status=status)

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from deploy_sync.errors import UpstreamError
from deploy_sync.models import CommitState, DeploymentState, ReconcileDecision, RepoIdentity
from deploy_sync.reconciler import (
    deployment_task,
    last_write_wins,
    reconcile_commit_status,
    reconcile_deployment,
)
from conftest import NOW, FakeGitHub

REPO = RepoIdentity(owner="o", repo="r")
SHA = "abc123"
CONTEXT = "Netlify (main - site)"
ENVIRONMENT = "main - site"


def _status(github, state=CommitState.PENDING, at=NOW - timedelta(minutes=1), description="Deploying to production..."):
    return reconcile_commit_status(
        github, REPO, SHA, CONTEXT, state, description, "https://site.netlify.app", at
    )


def _deploy(github, deploy_id="d1", state=DeploymentState.IN_PROGRESS, at=NOW - timedelta(minutes=1), environment=ENVIRONMENT):
    return reconcile_deployment(
        github,
        REPO,
        deploy_id,
        SHA,
        environment,
        state,
        "https://app.netlify.com/sites/site/deploys/d1",
        "https://site.netlify.app",
        "Deploying to production...",
        at,
    )


def test_last_write_wins_ties_write():
    write = MagicMock()
    decision = last_write_wins(
        lookup=lambda: NOW,
        timestamp_of=lambda found: found,
        write=write,
        incoming=NOW,
        record="test",
    )
    assert decision == ReconcileDecision.UPDATED
    write.assert_called_once()


def test_last_write_wins_skips_newer_record():
    write = MagicMock()
    decision = last_write_wins(
        lookup=lambda: NOW + timedelta(seconds=1),
        timestamp_of=lambda found: found,
        write=write,
        incoming=NOW,
        record="test",
    )
    assert decision == ReconcileDecision.SKIPPED
    write.assert_not_called()


def test_commit_status_created_when_none_exists(github):
    assert _status(github) == ReconcileDecision.CREATED
    _, sha, status = github.commit_statuses[0]
    assert sha == SHA
    assert status.state == "pending"
    assert status.context == CONTEXT
    assert status.target_url == "https://site.netlify.app"


def test_commit_status_updated_when_existing_is_older(github):
    _status(github)
    github.tick(120)
    decision = _status(github, state=CommitState.SUCCESS, at=github.now - timedelta(seconds=10))
    assert decision == ReconcileDecision.UPDATED
    assert len(github.commit_statuses) == 2
    assert github.latest_commit_status().state == "success"


def test_replaying_a_notification_skips_the_second_write(github):
    assert _status(github) == ReconcileDecision.CREATED
    github.tick()
    assert _status(github) == ReconcileDecision.SKIPPED
    assert len(github.commit_statuses) == 1


def test_older_notification_never_regresses_status(github):
    t1 = NOW - timedelta(minutes=5)
    t2 = NOW - timedelta(minutes=1)
    assert _status(github, state=CommitState.SUCCESS, at=t2) == ReconcileDecision.CREATED
    github.tick()
    assert _status(github, state=CommitState.PENDING, at=t1) == ReconcileDecision.SKIPPED
    assert github.latest_commit_status().state == "success"


def test_commit_status_per_context(github):
    _status(github)
    other = reconcile_commit_status(
        github, REPO, SHA, "Netlify (main - docs)", CommitState.PENDING, "x", None, NOW - timedelta(minutes=1)
    )
    assert other == ReconcileDecision.CREATED
    assert len(github.commit_statuses) == 2


def test_deployment_task_token():
    assert deployment_task("6650a1b2") == "deploy:netlify-6650a1b2"


def test_new_deployment_gets_a_status(github):
    handle = _deploy(github)
    assert handle.created is True
    assert handle.status == ReconcileDecision.CREATED
    _, deployment = github.deployments[0]
    assert deployment.task == "deploy:netlify-d1"
    assert deployment.environment == ENVIRONMENT
    assert deployment.ref == SHA
    deployment_id, status = github.deployment_statuses[0]
    assert deployment_id == handle.id
    assert status.state == "in_progress"
    assert status.log_url == "https://app.netlify.com/sites/site/deploys/d1"
    assert status.environment_url == "https://site.netlify.app"


def test_second_notification_reuses_deployment(github):
    first = _deploy(github)
    github.tick(300)
    second = _deploy(github, state=DeploymentState.SUCCESS, at=github.now - timedelta(seconds=5))
    assert second.created is False
    assert second.id == first.id
    assert second.status == ReconcileDecision.UPDATED
    assert len(github.deployments) == 1
    assert [s.state for _, s in github.deployment_statuses] == ["in_progress", "success"]


def test_replayed_deploy_status_is_skipped(github):
    _deploy(github)
    github.tick()
    handle = _deploy(github)
    assert handle.created is False
    assert handle.status == ReconcileDecision.SKIPPED
    assert len(github.deployments) == 1
    assert len(github.deployment_statuses) == 1


def test_stale_deploy_status_is_skipped(github):
    _deploy(github, state=DeploymentState.SUCCESS, at=NOW - timedelta(minutes=1))
    github.tick()
    handle = _deploy(github, state=DeploymentState.IN_PROGRESS, at=NOW - timedelta(minutes=10))
    assert handle.status == ReconcileDecision.SKIPPED
    assert [s.state for _, s in github.deployment_statuses] == ["success"]


def test_distinct_environment_gets_its_own_deployment(github):
    _deploy(github)
    handle = _deploy(github, environment="staging - site")
    assert handle.created is True
    assert len(github.deployments) == 2


def test_deploy_without_timestamp_only_applies_to_new_deployments():
    from deploy_sync.models import EPOCH

    github = FakeGitHub()
    handle = _deploy(github, at=EPOCH)
    assert handle.status == ReconcileDecision.CREATED
    github.tick()
    assert _deploy(github, at=EPOCH).status == ReconcileDecision.SKIPPED


def test_failed_deployment_creation_writes_no_status():
    github = MagicMock()
    github.find_deployment.return_value = None
    github.create_deployment.side_effect = UpstreamError("GitHub POST returned 422", remote_status=422)
    with pytest.raises(UpstreamError):
        _deploy(github)
    github.create_deployment_status.assert_not_called()

"""Map Netlify deploy states onto GitHub's status enums."""

from __future__ import annotations

from typing import Optional

from .models import MAX_DESCRIPTION_LENGTH, CommitState, DeploymentState

BUILDING = "building"
READY = "ready"

_COMMIT_STATES = {
    BUILDING: CommitState.PENDING,
    READY: CommitState.SUCCESS,
}

_DEPLOYMENT_STATES = {
    BUILDING: DeploymentState.IN_PROGRESS,
    READY: DeploymentState.SUCCESS,
}


def commit_state(state: Optional[str]) -> CommitState:
    # Unknown states count as failures, never as success
    return _COMMIT_STATES.get(state or "", CommitState.FAILURE)


def deployment_state(state: Optional[str]) -> DeploymentState:
    return _DEPLOYMENT_STATES.get(state or "", DeploymentState.ERROR)


def describe(state: Optional[str], context: Optional[str], error_message: Optional[str] = None) -> str:
    target = context or "Netlify"
    if state == BUILDING:
        text = f"Deploying to {target}..."
    elif state == READY:
        text = f"Deployment to {target} successful!"
    elif error_message:
        text = f"Deployment to {target} failed: {error_message}"
    else:
        text = f"Deployment to {target} failed."
    return truncate(text)


def truncate(text: str, limit: int = MAX_DESCRIPTION_LENGTH) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."

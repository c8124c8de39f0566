"""Sequence one deploy notification from raw body to terminal result."""

from __future__ import annotations

import json
import logging
from typing import Callable, Optional

from pydantic import ValidationError

from . import mapping
from .auth import ClientFactory
from .config import Settings
from .errors import AuthError, ClientError, DeploySyncError, UnparseableIdentityError
from .identity import resolve_identity
from .models import DeployNotification, Outcome, ProcessResult
from .reconciler import reconcile_commit_status, reconcile_deployment
from .signature import verify_signature

logger = logging.getLogger(__name__)

Verifier = Callable[[Optional[str], Optional[str], bytes], bool]


def parse_notification(raw_body: bytes) -> DeployNotification:
    try:
        payload = json.loads(raw_body)
    except ValueError as exc:
        raise ClientError(f"Invalid JSON body: {exc}") from exc
    if not isinstance(payload, dict):
        raise ClientError("Deploy notification must be a JSON object")
    try:
        return DeployNotification.model_validate(payload)
    except ValidationError as exc:
        raise ClientError("Malformed deploy notification", {"errors": exc.errors(include_url=False)}) from exc


class NotificationProcessor:
    def __init__(
        self,
        config: Settings,
        client_factory: ClientFactory,
        verifier: Verifier = verify_signature,
    ):
        self._config = config
        self._client_factory = client_factory
        self._verifier = verifier

    def process(
        self,
        raw_body: Optional[bytes],
        signature: Optional[str] = None,
        *,
        correlation_id: str = "-",
    ) -> ProcessResult:
        try:
            return self._process(raw_body, signature, correlation_id)
        except DeploySyncError as exc:
            return ProcessResult.failure(exc.message, exc.status_code)

    def _process(self, raw_body: Optional[bytes], signature: Optional[str], cid: str) -> ProcessResult:
        if not raw_body:
            raise ClientError("Missing request body")

        if self._config.signature_required:
            if not signature:
                raise AuthError("Missing webhook signature")
            if not self._verifier(signature, self._config.netlify_jws_secret, raw_body):
                raise AuthError("Invalid webhook signature")

        deploy = parse_notification(raw_body)
        if not deploy.id:
            raise ClientError("Deploy notification has no id")

        missing = deploy.missing_commit_fields()
        if missing:
            logger.info(f"[{cid}] Deploy {deploy.id} has no commit reference (missing {', '.join(missing)})")
            return ProcessResult.skip("no commit reference", deploy_id=deploy.id)

        if deploy.context == self._config.preview_context:
            logger.info(f"[{cid}] Deploy {deploy.id} is a {deploy.context}, not mirrored")
            return ProcessResult.skip(f"{deploy.context} deploys are not mirrored", deploy_id=deploy.id)

        try:
            repo = resolve_identity(deploy.commit_url, host=self._config.github_host)
        except UnparseableIdentityError as exc:
            if self._config.skip_unparseable_commit_url:
                logger.info(f"[{cid}] {exc.message}")
                return ProcessResult.skip("commit URL does not point at a repository", deploy_id=deploy.id)
            raise

        commit_state = mapping.commit_state(deploy.state)
        deployment_state = mapping.deployment_state(deploy.state)
        description = mapping.describe(deploy.state, deploy.context, deploy.error_message)
        logger.info(
            f"[{cid}] Deploy {deploy.id} is {deploy.state!r} for {repo}@{deploy.commit_ref} "
            f"({deploy.environment})"
        )

        with self._client_factory.obtain(repo) as client:
            commit_status = reconcile_commit_status(
                client,
                repo,
                deploy.commit_ref,
                deploy.status_context,
                commit_state,
                description,
                deploy.environment_url,
                deploy.updated_at,
            )
            handle = reconcile_deployment(
                client,
                repo,
                deploy.id,
                deploy.commit_ref,
                deploy.environment,
                deployment_state,
                deploy.log_url,
                deploy.environment_url,
                description,
                deploy.updated_at,
            )

        return ProcessResult(
            outcome=Outcome.SUCCESS,
            detail=description,
            deploy_id=deploy.id,
            repository=str(repo),
            commit_status=commit_status,
            deployment_id=handle.id,
            deployment_created=handle.created,
            deployment_status=handle.status,
        )

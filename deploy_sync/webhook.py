from fastapi import APIRouter, Header, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from prometheus_client import Counter
from typing import Optional
from uuid import uuid4
import logging

from .auth import ClientFactory
from .config import Settings, settings
from .models import Outcome, ProcessResult
from .processor import NotificationProcessor, Verifier
from .signature import verify_signature

logger = logging.getLogger(__name__)

router = APIRouter()

NOTIFICATIONS = Counter(
    'deploy_sync_notifications_total',
    'Deploy notifications received, by terminal outcome',
    ['outcome']  # success, skip, error
)


def get_settings() -> Settings:
    return settings


def get_verifier() -> Verifier:
    return verify_signature


def get_client_factory(config: Settings = Depends(get_settings)) -> ClientFactory:
    # Fresh per request; no client or credential outlives an invocation
    return ClientFactory(config)


def get_processor(
    config: Settings = Depends(get_settings),
    client_factory: ClientFactory = Depends(get_client_factory),
    verifier: Verifier = Depends(get_verifier),
) -> NotificationProcessor:
    return NotificationProcessor(config, client_factory, verifier)


@router.post("/webhook/netlify")
async def receive_deploy(
    request: Request,
    x_webhook_signature: Optional[str] = Header(None, alias="X-Webhook-Signature"),
    x_request_id: Optional[str] = Header(None, alias="X-Request-Id"),
    x_nf_request_id: Optional[str] = Header(None, alias="X-Nf-Request-Id"),
    processor: NotificationProcessor = Depends(get_processor),
):
    correlation_id = x_request_id or x_nf_request_id or uuid4().hex
    body = await request.body()

    try:
        result = await run_in_threadpool(
            processor.process, body, x_webhook_signature, correlation_id=correlation_id
        )
    except Exception:
        logger.exception(f"[{correlation_id}] Unhandled error while processing deploy notification")
        result = ProcessResult.failure("Internal error", 500)

    if result.outcome == Outcome.ERROR:
        logger.error(f"[{correlation_id}] Deploy notification failed ({result.status_code}): {result.detail}")
    elif result.outcome == Outcome.SKIP:
        logger.info(f"[{correlation_id}] Deploy notification skipped: {result.detail}")
    else:
        logger.info(
            f"[{correlation_id}] Deploy {result.deploy_id} mirrored to {result.repository}: "
            f"commit status {result.commit_status.value}, deployment {result.deployment_id} "
            f"status {result.deployment_status.value}"
        )
    NOTIFICATIONS.labels(outcome=result.outcome.value).inc()

    return JSONResponse(
        status_code=result.status_code,
        content=result.model_dump(mode="json", exclude_none=True),
        headers={"X-Request-Id": correlation_id},
    )

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.api.deps import get_entitlement_service
from app.core.config import settings
from app.core.errors import InvalidSignature, Misconfigured, PersistenceFailure
from app.db.session import get_db
from app.integrations.stripe_webhooks import SIGNATURE_HEADER, verify_event
from app.schemas.entitlement import WebhookAck
from app.services.entitlement_query import EntitlementQueryService
from app.services.entitlement_store import apply_event

logger = logging.getLogger(__name__)

router = APIRouter(tags=["stripe"])


@router.post("/webhook-handler", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    entitlements: EntitlementQueryService = Depends(get_entitlement_service),
):
    # exact bytes; parsing first would break the signature
    body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)

    try:
        event = verify_event(
            body,
            signature,
            settings.stripe_webhook_secret,
            tolerance=settings.stripe_webhook_tolerance_seconds,
        )
    except InvalidSignature as e:
        logger.warning("Rejected webhook: %s", e.message)
        raise HTTPException(status_code=400, detail=e.public_message)
    except Misconfigured as e:
        logger.error("Webhook verification unavailable: %s", e.message)
        raise HTTPException(status_code=500, detail=e.public_message)

    try:
        result = await run_in_threadpool(apply_event, db, event)
    except PersistenceFailure as e:
        # non-200 so Stripe redelivers
        raise HTTPException(status_code=e.status_code, detail=e.public_message)

    if result.user_id and result.outcome == "applied":
        entitlements.invalidate(result.user_id)

    return WebhookAck(received=True)

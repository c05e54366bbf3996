import logging

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from dependencies import get_lifecycle
from errors import InvalidSignature, NotFound
from lifecycle import BookingLifecycle

from .signature import SIGNATURE_HEADER, authenticate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post("/payments/webhook")
async def paystack_webhook(request: Request, lifecycle: BookingLifecycle = Depends(get_lifecycle)):
    """
    Provider callback. Answers 200 for anything authentic and well-formed,
    including events we ignore and payments that are already settled, so
    the provider stops redelivering. 400 only for bad signatures or bodies.
    """
    payload = await request.body()
    try:
        event = authenticate(payload, request.headers.get(SIGNATURE_HEADER), lifecycle.gateway.secret_key)
    except InvalidSignature:
        client = request.client.host if request.client else "unknown"
        logger.warning("SECURITY: rejected webhook with invalid signature from %s", client)
        raise

    try:
        result = await run_in_threadpool(lifecycle.handle_webhook, event)
    except NotFound as exc:
        logger.warning("Webhook %s for %s ignored: %s", event.event_type, event.gateway_reference, exc.message)
        return JSONResponse(content={"received": True})

    if result is None:
        return JSONResponse(content={"received": True})
    return JSONResponse(content={"received": True, "applied": result.applied, "status": result.payment.status})

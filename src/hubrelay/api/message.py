"""Message — broadcast a raw text payload to every hub subscriber.

Learn: The whole request body is the payload. It is passed through
untouched as the single argument of the broadcast; the only check is
that it is not blank. Submission is single-shot: if the provider
rejects it, the message is dropped and the caller gets a 502.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response

from hubrelay.config import Settings, get_settings
from hubrelay.realtime.provider import MessagingProvider, ProviderError, get_provider
from hubrelay.schemas.hub import BroadcastMessage

logger = structlog.get_logger()
router = APIRouter()

EMPTY_PAYLOAD_DETAIL = "Please pass a payload to broadcast in the request body."


@router.post("/message", status_code=200, response_class=Response)
async def message(
    request: Request,
    settings: Settings = Depends(get_settings),
    provider: MessagingProvider = Depends(get_provider),
):
    """Broadcast the request body to the configured hub."""
    body = (await request.body()).decode("utf-8", errors="replace")
    logger.info("relay.message_received", hub=settings.hub_name, body=body)

    if not body.strip():
        raise HTTPException(status_code=400, detail=EMPTY_PAYLOAD_DETAIL)

    broadcast = BroadcastMessage(target=settings.broadcast_target, arguments=[body])
    try:
        await provider.submit_message(settings.hub_name, broadcast)
    except ProviderError as e:
        logger.error("relay.message_dropped", hub=settings.hub_name, error=str(e))
        raise HTTPException(status_code=502, detail="Failed to submit message to hub.")

    logger.info("relay.message_submitted", hub=settings.hub_name, target=broadcast.target)
    return Response(status_code=200)

"""Negotiate — hand a client the connection info for the hub.

The hub is fixed by configuration; nothing on the request can change it.
"""

from fastapi import APIRouter, Depends, HTTPException

from hubrelay.config import Settings, get_settings
from hubrelay.realtime.provider import (
    MessagingProvider,
    ProviderUnavailableError,
    get_provider,
)
from hubrelay.schemas.hub import ConnectionInfo

router = APIRouter()


@router.api_route("/negotiate", methods=["GET", "POST"], response_model=ConnectionInfo)
async def negotiate(
    settings: Settings = Depends(get_settings),
    provider: MessagingProvider = Depends(get_provider),
):
    """Return url + accessToken for the configured hub."""
    try:
        info = await provider.issue_connection_info(settings.hub_name)
    except ProviderUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Hub unavailable: {e}")
    if info is None:
        raise HTTPException(status_code=404, detail="Failed to load hub connection info.")
    return info

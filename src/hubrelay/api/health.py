"""Health check endpoint.

Learn: Simple GET endpoint that verifies the server is running and
the hub broker is reachable.
"""

from fastapi import APIRouter, Depends

from hubrelay import __version__
from hubrelay.config import Settings, get_settings
from hubrelay.realtime.provider import HubProvider, MessagingProvider, get_provider

router = APIRouter()


@router.get("/health")
async def health_check(
    settings: Settings = Depends(get_settings),
    provider: MessagingProvider = Depends(get_provider),
):
    """Check server health and broker connectivity."""
    checks = {"server": "ok", "version": __version__, "hub": settings.hub_name}

    if isinstance(provider, HubProvider):
        checks["broker"] = "ok" if provider.broker.connected else "disconnected"
    else:
        checks["broker"] = "external"

    status = "healthy" if checks["broker"] != "disconnected" else "degraded"
    return {"status": status, **checks}

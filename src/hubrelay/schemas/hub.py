"""Hub wire models — what negotiate returns and what subscribers receive."""

from datetime import datetime

from pydantic import BaseModel, Field


class ConnectionInfo(BaseModel):
    """Endpoint + token a client uses to subscribe to a hub.

    Serialized with camelCase keys (url, accessToken, expiresAt) so existing
    hub clients can consume the negotiate response unchanged.
    """

    url: str
    access_token: str = Field(alias="accessToken")
    expires_at: datetime = Field(alias="expiresAt")

    model_config = {"populate_by_name": True}


class BroadcastMessage(BaseModel):
    """One fan-out message: an event name and its positional arguments."""

    target: str
    arguments: list[str]

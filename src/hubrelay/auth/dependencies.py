"""FastAPI auth dependencies.

The broadcast endpoint takes a shared function key, either in the
x-functions-key header or the ?code= query parameter. In development
with no key configured the endpoint is open.
"""

import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, Query

from hubrelay.config import Settings, get_settings


async def require_function_key(
    x_functions_key: Optional[str] = Header(None),
    code: Optional[str] = Query(None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Reject the request with 401 unless it carries the function key."""
    expected = settings.function_key
    if not expected and settings.environment == "development":
        return

    supplied = x_functions_key or code
    if not supplied or not expected or not secrets.compare_digest(supplied, expected):
        raise HTTPException(
            status_code=401,
            detail="Invalid or missing function key",
        )

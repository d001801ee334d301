"""
Device identity for report submission.

Each browser gets a random identifier persisted client-side (a cookie).
It is a soft moderation key for cooldown and blocking ONLY: it is trivially
spoofable and must never be treated as authentication.
"""

import logging
import uuid
from typing import MutableMapping

from fastapi import Request, Response

from app.core.settings import settings

logger = logging.getLogger(__name__)


def get_or_create_device_id(storage: MutableMapping[str, str], key: str = "deviceId") -> str:
    """
    Return the identifier persisted in storage, creating it on first use.

    Args:
        storage: Client-side key/value storage for this browser
        key: Storage key holding the identifier

    Returns:
        The same identifier on every call for the same storage
    """
    device_id = storage.get(key)
    if not device_id:
        device_id = str(uuid.uuid4())
        storage[key] = device_id
    return device_id


def get_device_id(request: Request, response: Response) -> str:
    """
    FastAPI dependency: device identifier from the device cookie.
    Issues a new cookie when the browser does not have one yet.
    """
    cookie_name = settings.DEVICE_COOKIE_NAME
    storage = dict(request.cookies)
    device_id = get_or_create_device_id(storage, cookie_name)

    if request.cookies.get(cookie_name) != device_id:
        response.set_cookie(
            key=cookie_name,
            value=device_id,
            max_age=settings.DEVICE_COOKIE_MAX_AGE_DAYS * 24 * 60 * 60,
            httponly=True,
            samesite="lax",
        )
        logger.info(f"Issued new device id {device_id}")

    return device_id

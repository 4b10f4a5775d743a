"""
Shared guard for calls into the row store.

Every call is bounded by ``STORAGE_TIMEOUT_SECONDS``. Timeouts and driver
errors (any ``DBAPIError`` except ``IntegrityError``) surface as
``StorageUnavailable`` so the caller can decide whether a retry is safe.
Nothing is retried here.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from portal.core.config import settings
from portal.core.errors import StorageUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def storage_call(awaitable: Awaitable[T], what: str) -> T:
    try:
        return await asyncio.wait_for(awaitable, timeout=settings.STORAGE_TIMEOUT_SECONDS)
    except asyncio.TimeoutError as exc:
        logger.error("Storage call timed out after %.1fs: %s", settings.STORAGE_TIMEOUT_SECONDS, what)
        raise StorageUnavailable() from exc
    except IntegrityError:
        # constraint outcomes belong to the caller
        raise
    except (DBAPIError, PoolTimeoutError) as exc:
        logger.error("Storage call failed: %s (%s)", what, exc.__class__.__name__)
        raise StorageUnavailable() from exc

"""Shared route dependencies: acting user resolution and error mapping."""

from __future__ import annotations

import logging
from typing import Any, NoReturn
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status

from fundbridge.models.user import UserProfile
from fundbridge.services.errors import FundBridgeError
from fundbridge.services.funding.users import UserDirectory, get_user_directory

logger = logging.getLogger(__name__)

_STATUS_BY_CODE = {
    "422_INVALID_INPUT": 422,
    "403_FORBIDDEN": status.HTTP_403_FORBIDDEN,
    "404_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "409_INVALID_STATE_TRANSITION": status.HTTP_409_CONFLICT,
    "409_CONFLICT": status.HTTP_409_CONFLICT,
    "400_PAYMENT_VALIDATION_FAILED": status.HTTP_400_BAD_REQUEST,
    "502_PAYMENT_GATEWAY": status.HTTP_502_BAD_GATEWAY,
}


def map_error_code(code: str) -> int:
    return _STATUS_BY_CODE.get(code, status.HTTP_500_INTERNAL_SERVER_ERROR)


def raise_api_error(exc: FundBridgeError, event: str, **context: Any) -> NoReturn:
    """Log a structured ``*.api_error`` event and convert to an HTTPException."""
    logger.error(event, extra={**{key: str(value) for key, value in context.items()}, "code": exc.code})
    raise HTTPException(status_code=map_error_code(exc.code), detail=str(exc)) from exc


def get_current_user(
    x_user_id: UUID | None = Header(default=None, alias="X-User-Id"),
    users: UserDirectory = Depends(get_user_directory),
) -> UserProfile:
    """Resolve the acting user from the ``X-User-Id`` header."""
    if x_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="X-User-Id header is required")
    profile = users.get(x_user_id)
    if profile is None:
        logger.warning("auth.unknown_user", extra={"user_id": str(x_user_id)})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")
    return profile

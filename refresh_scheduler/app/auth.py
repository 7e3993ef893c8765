"""크론 트리거 인증(Cron trigger authentication)."""
from __future__ import annotations

import secrets
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from common_lib.config import Settings, get_settings
from common_lib.errors import Unauthorized
from common_lib.logger import get_logger

logger = get_logger(__name__)

security = HTTPBearer(
    description="Shared secret for the scheduled refresh trigger",
    auto_error=False,
)


async def verify_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
) -> None:
    """Bearer 비밀 검증(Verify the bearer secret when one is configured).

    Raises:
        Unauthorized: if a secret is configured and the request does not carry it
    """

    expected = settings.cron_secret
    if not expected:
        return
    provided = credentials.credentials.strip() if credentials is not None else ""
    if not provided or not secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("Cron trigger rejected: missing or invalid bearer secret")
        raise Unauthorized()

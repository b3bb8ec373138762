"""Link token provisioning and public token exchange."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from bankconnect.core.connect.engine import EngineClient
from bankconnect.core.connect.errors import ExchangeError, ProvisioningError

logger = logging.getLogger(__name__)


class LinkTokenProvisioner:
    """Obtains a fresh link token for providers that need one to launch.

    Tokens are short-lived and are never cached: every launch attempt asks
    for a new one, so retrying is always safe.
    """

    def __init__(self, engine: Optional[EngineClient] = None):
        self.engine = engine or EngineClient()

    async def provision_token(self) -> str:
        """Request a link token.

        Returns:
            Opaque link token

        Raises:
            ProvisioningError: If no token could be obtained
        """
        try:
            body = await self.engine.post("/link/plaid/token")
        except (httpx.HTTPError, ValueError) as e:
            raise ProvisioningError(f"Failed to create link token: {e}") from e

        token = body.get("link_token") if isinstance(body, dict) else None
        if not token:
            raise ProvisioningError("Link token missing from response")
        return token


class TokenExchanger:
    """Exchanges a provider public token for an access credential."""

    def __init__(self, engine: Optional[EngineClient] = None):
        self.engine = engine or EngineClient()

    async def exchange(self, public_token: str) -> str:
        """Exchange a public token.

        Args:
            public_token: Token from the provider's success callback

        Returns:
            Access token

        Raises:
            ExchangeError: If the exchange failed
        """
        try:
            body = await self.engine.post("/link/exchange", json={"public_token": public_token})
        except (httpx.HTTPError, ValueError) as e:
            raise ExchangeError(f"Failed to exchange public token: {e}") from e

        access_token = body.get("access_token") if isinstance(body, dict) else None
        if not access_token:
            raise ExchangeError("Access token missing from exchange response")
        return access_token

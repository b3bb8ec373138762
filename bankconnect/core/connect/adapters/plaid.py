"""Plaid Link adapter.

Plaid Link needs a link token issued by our backend before it can open.
On success it hands back a public token, which is exchanged server-side
for the access token the account step consumes.

Setup:
1. Create a Plaid account at https://dashboard.plaid.com/
2. Configure the engine API with your Plaid client_id and secret
3. Set PLAID_ENV (sandbox, development, production)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from bankconnect.config import get_settings
from bankconnect.core.connect.adapters.base import LaunchCallbacks, ProviderAdapter
from bankconnect.core.connect.adapters.widgets import WidgetFactory, WidgetHandlers
from bankconnect.core.connect.errors import ExchangeError
from bankconnect.core.connect.models import Authorization, ProviderType, Selection
from bankconnect.core.connect.tokens import LinkTokenProvisioner, TokenExchanger

logger = logging.getLogger(__name__)
settings = get_settings()


class PlaidAdapter(ProviderAdapter):
    """Plaid Link integration."""

    requires_link_token = True

    def __init__(
        self,
        widget_factory: WidgetFactory,
        provisioner: Optional[LinkTokenProvisioner] = None,
        exchanger: Optional[TokenExchanger] = None,
        env: Optional[str] = None,
        client_name: Optional[str] = None,
        products: Optional[List[str]] = None,
    ):
        super().__init__(widget_factory)
        self.provisioner = provisioner or LinkTokenProvisioner()
        self.exchanger = exchanger or TokenExchanger()
        self.env = env or settings.plaid_env
        self.client_name = client_name or settings.plaid_client_name
        self.products = products or settings.plaid_product_list

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.PLAID

    @property
    def display_name(self) -> str:
        return "Plaid"

    async def provision(self, selection: Selection) -> str:
        """Create a fresh Plaid Link token for this launch."""
        return await self.provisioner.provision_token()

    async def launch(
        self,
        selection: Selection,
        credential: Optional[str],
        callbacks: LaunchCallbacks,
    ) -> None:
        if not credential:
            raise ValueError("Plaid Link requires a link token")

        config = {
            "token": credential,
            "env": self.env,
            "clientName": self.client_name,
            "product": list(self.products),
            "institutionId": selection.institution_id,
        }

        async def on_success(payload: Dict[str, Any]) -> None:
            public_token = payload.get("public_token")
            if not public_token:
                logger.warning("Plaid success callback without a public token")
                callbacks.failure("missing public token")
                return

            try:
                access_token = await self.exchanger.exchange(public_token)
            except ExchangeError as e:
                logger.warning(f"Plaid token exchange failed: {e}")
                callbacks.failure(str(e))
                return

            institution = (payload.get("metadata") or {}).get("institution") or {}
            callbacks.success(
                Authorization(
                    access_token=access_token,
                    institution_id=institution.get("institution_id"),
                )
            )

        def on_exit(payload: Dict[str, Any]) -> None:
            # Plaid reports SDK errors through onExit
            error = payload.get("error")
            if error:
                callbacks.failure(str(error))
            else:
                callbacks.exit()

        def on_failure(payload: Dict[str, Any]) -> None:
            callbacks.failure(payload.get("error"))

        widget = self.create_widget(
            config,
            WidgetHandlers(on_success=on_success, on_exit=on_exit, on_failure=on_failure),
        )
        widget.open()
        logger.info(f"Plaid Link opened for institution {selection.institution_id} (env={self.env})")

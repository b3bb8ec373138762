"""GoCardless adapter placeholder.

GoCardless institutions show up in search, but there is no embedded
authorization surface for them yet. The adapter is registered so dispatch
recognises the provider; it never launches anything.
"""

from __future__ import annotations

import logging
from typing import Optional

from bankconnect.core.connect.adapters.base import LaunchCallbacks, ProviderAdapter
from bankconnect.core.connect.models import ProviderType, Selection

logger = logging.getLogger(__name__)


class GoCardlessAdapter(ProviderAdapter):
    """Recognised provider without a launch path."""

    supports_launch = False

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.GOCARDLESS

    @property
    def display_name(self) -> str:
        return "GoCardless"

    def is_configured(self) -> bool:
        return False

    async def launch(
        self,
        selection: Selection,
        credential: Optional[str],
        callbacks: LaunchCallbacks,
    ) -> None:
        logger.info(f"GoCardless linking is not available (institution {selection.institution_id})")

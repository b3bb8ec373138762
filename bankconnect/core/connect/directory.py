"""Institution directory search."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from bankconnect.core.connect.engine import EngineClient
from bankconnect.core.connect.errors import SearchError
from bankconnect.core.connect.models import Institution

logger = logging.getLogger(__name__)


class InstitutionDirectoryClient(ABC):
    """Searches the institution directory.

    Implementations do no debouncing; the caller decides when to search.
    """

    @abstractmethod
    async def search(self, country_code: str, query: Optional[str] = None) -> List[Institution]:
        """Search institutions.

        Args:
            country_code: ISO country filter
            query: Optional free-text filter

        Returns:
            Institutions in directory order

        Raises:
            SearchError: If the directory could not be queried
        """
        ...


def parse_available_history(value: Any) -> int:
    """Months of history a provider offers; 0 when unknown."""
    try:
        months = int(value)
    except (TypeError, ValueError):
        return 0
    return max(months, 0)


def parse_institution(item: Dict[str, Any], country_code: str) -> Optional[Institution]:
    """Build an Institution from a directory record, or None if malformed."""
    institution_id = item.get("id")
    name = item.get("name")
    provider = item.get("provider")
    if not institution_id or not name or not provider:
        return None

    return Institution(
        id=str(institution_id),
        name=str(name),
        provider=str(provider).lower(),
        country_code=item.get("country_code") or item.get("countryCode") or country_code,
        logo=item.get("logo") or None,
        available_history=parse_available_history(
            item.get("available_history", item.get("availableHistory"))
        ),
    )


class HttpInstitutionDirectory(InstitutionDirectoryClient):
    """Directory client backed by the engine ``/institutions`` endpoint."""

    def __init__(self, engine: Optional[EngineClient] = None):
        self.engine = engine or EngineClient()

    async def search(self, country_code: str, query: Optional[str] = None) -> List[Institution]:
        params = {"countryCode": country_code}
        if query:
            params["q"] = query

        try:
            body = await self.engine.get("/institutions", params=params)
        except httpx.HTTPError as e:
            raise SearchError(f"Institution search failed: {e}") from e
        except ValueError as e:
            raise SearchError(f"Invalid institution search response: {e}") from e

        items = body.get("data", []) if isinstance(body, dict) else body
        if not isinstance(items, list):
            raise SearchError("Invalid institution search response: expected a list")

        institutions = []
        for item in items:
            institution = parse_institution(item, country_code) if isinstance(item, dict) else None
            if institution is None:
                logger.warning(f"Skipping malformed institution record: {item!r}")
                continue
            institutions.append(institution)

        logger.debug(
            f"Directory search country={country_code} q={query!r} -> {len(institutions)} result(s)"
        )
        return institutions

from __future__ import annotations

from typing import Any, Dict, List, Optional
import logging

from ..config import get_settings
from ..exceptions import ApiError
from ..models import Indicator, IndicatorPoint
from ..services.rate_limiter import SlidingWindowRateLimiter
from ..utils.retry import RetryConfig
from .base import BaseProvider

logger = logging.getLogger(__name__)


class WorldBankProvider(BaseProvider):
    """World Bank indicators API (v2) provider.

    Every list endpoint answers with a two-element ``[page_metadata, rows]``
    array. ``rows`` is ``null`` when the query matched nothing, which is an
    empty result rather than a failure. A failed query instead answers with a
    one-element array holding ``{"message": [{"id", "key", "value"}]}``.
    """

    DATA_PAGE_SIZE = 1000
    INDICATOR_PAGE_SIZE = 50
    COUNTRY_PAGE_SIZE = 500

    def __init__(
        self,
        rate_limiter: SlidingWindowRateLimiter,
        base_url: Optional[str] = None,
        retry_config: Optional[RetryConfig] = None,
        timeout: float = BaseProvider.DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(
            base_url or get_settings().worldbank_base_url,
            rate_limiter,
            retry_config=retry_config,
            timeout=timeout,
        )

    @property
    def provider_name(self) -> str:
        return "World Bank"

    @property
    def source_id(self) -> str:
        return "worldbank"

    async def get_indicator_data(
        self,
        country_code: str,
        indicator_code: str,
        start_year: Optional[int] = None,
        end_year: Optional[int] = None,
    ) -> List[IndicatorPoint]:
        """Fetch one indicator for one country (or a ``;``-joined list)."""
        params: Dict[str, Any] = {"format": "json", "per_page": self.DATA_PAGE_SIZE}
        # The date range is only sent when both bounds are known
        if start_year and end_year:
            params["date"] = f"{start_year}:{end_year}"

        payload = await self._request_json(
            f"/country/{country_code}/indicator/{indicator_code}", params
        )
        rows = self._unwrap(payload)

        points = [self._parse_point(row) for row in rows if isinstance(row, dict)]
        logger.info(
            f"World Bank {indicator_code} for {country_code}: {len(points)} observations"
        )
        return points

    async def get_indicators(self, search: Optional[str] = None) -> List[Indicator]:
        """List indicators, optionally filtered by a case-insensitive match on name or id."""
        payload = await self._request_json(
            "/indicator", {"format": "json", "per_page": self.INDICATOR_PAGE_SIZE}
        )
        indicators = [
            Indicator(
                id=str(row.get("id", "")),
                name=row.get("name") or "",
                sourceNote=row.get("sourceNote") or "",
                sourceOrganization=row.get("sourceOrganization") or "",
            )
            for row in self._unwrap(payload)
            if isinstance(row, dict)
        ]

        if search:
            needle = search.lower()
            indicators = [
                ind for ind in indicators
                if needle in ind.name.lower() or needle in ind.id.lower()
            ]
        return indicators

    async def get_countries(self) -> List[Dict[str, Any]]:
        """Return the raw country catalogue."""
        payload = await self._request_json(
            "/country", {"format": "json", "per_page": self.COUNTRY_PAGE_SIZE}
        )
        return [row for row in self._unwrap(payload) if isinstance(row, dict)]

    def _unwrap(self, payload: Any) -> List[Any]:
        """Return the data half of a ``[metadata, data]`` envelope."""
        if not isinstance(payload, list):
            raise self._malformed(f"expected a JSON array, got {type(payload).__name__}", payload)

        if len(payload) == 1 and isinstance(payload[0], dict) and "message" in payload[0]:
            messages = self._as_list(payload[0].get("message"))
            text = "; ".join(
                str(item.get("value") or item.get("key") or item)
                for item in messages
                if isinstance(item, dict)
            ) or "request rejected"
            raise ApiError(
                self.provider_name,
                f"{self.provider_name} API error: {text}",
                response_data=payload[0],
            )

        if len(payload) != 2:
            raise self._malformed(f"expected [metadata, data], got {len(payload)} elements", payload)

        rows = payload[1]
        if rows is None:
            return []
        if not isinstance(rows, list):
            raise self._malformed("data element is not an array", rows)
        return rows

    @staticmethod
    def _parse_point(row: Dict[str, Any]) -> IndicatorPoint:
        country = row.get("country") or {}
        indicator = row.get("indicator") or {}
        value = row.get("value")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            value = None

        return IndicatorPoint(
            countryCode=str(row.get("countryiso3code") or country.get("id") or ""),
            countryName=str(country.get("value") or ""),
            date=str(row.get("date") or ""),
            value=value,
            indicatorId=str(indicator.get("id") or ""),
            indicatorName=str(indicator.get("value") or ""),
        )

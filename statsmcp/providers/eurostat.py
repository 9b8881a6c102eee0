from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import quote
import logging

from ..config import get_settings
from ..services.rate_limiter import SlidingWindowRateLimiter
from ..utils.retry import RetryConfig
from .base import BaseProvider

logger = logging.getLogger(__name__)


class EurostatProvider(BaseProvider):
    """Eurostat dissemination API provider (JSON-stat 2.0 responses)."""

    # Eurostat has no dataset catalogue endpoint, so well-known codes are listed here
    COMMON_DATASETS: Dict[str, str] = {
        "nama_10_gdp": "GDP and main components",
        "une_rt_m": "Unemployment by sex and age - monthly data",
        "prc_hicp_midx": "HICP - monthly data (index)",
        "demo_pjan": "Population on 1 January by age and sex",
        "lfsi_emp_a": "Employment and activity - annual data",
        "gov_10dd_edpt1": "Government deficit/surplus, debt and associated data",
    }

    def __init__(
        self,
        rate_limiter: SlidingWindowRateLimiter,
        base_url: Optional[str] = None,
        retry_config: Optional[RetryConfig] = None,
        timeout: float = BaseProvider.DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(
            base_url or get_settings().eurostat_base_url,
            rate_limiter,
            retry_config=retry_config,
            timeout=timeout,
        )

    @property
    def provider_name(self) -> str:
        return "Eurostat"

    @property
    def source_id(self) -> str:
        return "eurostat"

    async def get_data(
        self,
        dataset_code: str,
        filters: Optional[Dict[str, str]] = None,
        lang: str = "EN",
    ) -> Dict[str, Any]:
        """Fetch a JSON-stat document; ``filters`` become dimension query parameters."""
        # Response format and language always win over same-named filters
        params: Dict[str, Any] = dict(filters or {})
        params.update({"format": "JSON", "lang": lang or "EN"})

        payload = await self._request_json(f"/data/{quote(dataset_code, safe='')}", params)
        document = self._require_mapping(payload, "dataset", "dimension")
        logger.info(f"Eurostat dataset {dataset_code} received ({len(filters or {})} filters)")
        return document

    async def get_metadata(self, dataset_code: str) -> Dict[str, Any]:
        """Return the dimension description of a dataset without its values."""
        document = await self.get_data(dataset_code)
        return {
            "dimensions": document.get("dimension") or {},
            "size": document.get("size") or [],
            "updated": document.get("updated"),
            "source": document.get("source"),
        }

    @classmethod
    def common_datasets(cls) -> List[str]:
        return list(cls.COMMON_DATASETS)

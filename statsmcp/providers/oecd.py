from __future__ import annotations

from typing import Any, Dict, Optional
from urllib.parse import quote
import logging

from ..config import get_settings
from ..services.rate_limiter import SlidingWindowRateLimiter
from ..utils.retry import RetryConfig
from .base import BaseProvider

logger = logging.getLogger(__name__)

SDMX_DATA_ACCEPT = "application/vnd.sdmx.data+json;version=1.0.0-wd"
SDMX_STRUCTURE_ACCEPT = "application/vnd.sdmx.structure+json;version=1.0.0"

# Characters with meaning inside SDMX dataflow references and key expressions
_PATH_SAFE = ",@+."


class OECDProvider(BaseProvider):
    """OECD SDMX REST provider.

    Data is requested with ``dimensionAtObservation=AllDimensions`` so each
    observation carries its full key; decoding the SDMX-JSON document into
    rows is left to :mod:`statsmcp.services.normalizer`.
    """

    def __init__(
        self,
        rate_limiter: SlidingWindowRateLimiter,
        base_url: Optional[str] = None,
        retry_config: Optional[RetryConfig] = None,
        timeout: float = BaseProvider.DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(
            base_url or get_settings().oecd_base_url,
            rate_limiter,
            retry_config=retry_config,
            timeout=timeout,
        )

    @property
    def provider_name(self) -> str:
        return "OECD"

    @property
    def source_id(self) -> str:
        return "oecd"

    @staticmethod
    def _path_segment(value: str) -> str:
        return quote(value, safe=_PATH_SAFE)

    async def get_data(
        self,
        dataset_id: str,
        filter: Optional[str] = None,
        start_period: Optional[str] = None,
        end_period: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Fetch an SDMX-JSON data message for ``dataset_id``."""
        path = f"/data/{self._path_segment(dataset_id)}/{self._path_segment(filter or 'all')}"
        params = {
            "startPeriod": start_period,
            "endPeriod": end_period,
            "dimensionAtObservation": "AllDimensions",
        }
        payload = await self._request_json(path, params, headers={"Accept": SDMX_DATA_ACCEPT})

        # SDMX-JSON 1.0 uses top-level dataSets/structure; 2.0 nests both under "data"
        document = self._require_mapping(payload, "data", "dataSets", "structure")
        logger.info(f"OECD data message received for {dataset_id} (filter={filter or 'all'})")
        return document

    async def get_dataflows(self) -> Dict[str, Any]:
        """List the dataflows published by the OECD agency."""
        payload = await self._request_json(
            "/dataflow/OECD/all", headers={"Accept": SDMX_STRUCTURE_ACCEPT}
        )
        return self._require_mapping(payload, "data", "structure", "dataflows")

    async def get_data_structure(self, dataset_id: str) -> Dict[str, Any]:
        """Fetch the data structure definition (DSD) of ``dataset_id``."""
        payload = await self._request_json(
            f"/datastructure/OECD/{self._path_segment(dataset_id)}",
            headers={"Accept": SDMX_STRUCTURE_ACCEPT},
        )
        return self._require_mapping(payload, "data", "structure", "dataStructures")

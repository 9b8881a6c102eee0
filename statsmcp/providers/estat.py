"""e-Stat (Japanese government statistics portal) provider.

e-Stat's JSON API is a mechanical translation of its XML API: attributes are
prefixed with ``@``, element text lives under ``$`` and single-element
arrays collapse into plain objects. Responses are decoded here into
:class:`~statsmcp.models.StatsData` so nothing downstream probes that shape.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..config import get_settings
from ..exceptions import ApiError
from ..models import ClassObject, StatsData, StatsRecord, StatsTable
from ..services.rate_limiter import SlidingWindowRateLimiter
from ..utils.retry import RetryConfig
from ..utils.values import parse_stat_value
from .base import BaseProvider

logger = logging.getLogger(__name__)

# RESULT.STATUS: 0 = success, 1 = success but no matching data, 2 = partial,
# 100 and above = request error
STATUS_NO_DATA = 1
STATUS_ERROR_THRESHOLD = 100


class EStatProvider(BaseProvider):
    """e-Stat API v3 client."""

    def __init__(
        self,
        app_id: str,
        rate_limiter: SlidingWindowRateLimiter,
        base_url: Optional[str] = None,
        retry_config: Optional[RetryConfig] = None,
        timeout: float = BaseProvider.DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(
            base_url or get_settings().estat_base_url,
            rate_limiter,
            retry_config=retry_config,
            timeout=timeout,
        )
        self.app_id = app_id

    @property
    def provider_name(self) -> str:
        return "e-Stat"

    @property
    def source_id(self) -> str:
        return "estat"

    async def get_stats_list(self, search_word: Optional[str] = None, limit: int = 10) -> List[StatsTable]:
        """Search statistical tables by keyword."""
        params = {"appId": self.app_id, "searchWord": search_word or None, "limit": limit}
        payload = await self._request_json("/app/json/getStatsList", params)

        envelope = self._envelope(payload, "GET_STATS_LIST")
        datalist = envelope.get("DATALIST_INF") or {}
        tables = [
            self._parse_table(node)
            for node in self._as_list(datalist.get("TABLE_INF"))
            if isinstance(node, dict)
        ]
        logger.info(f"e-Stat search '{search_word or ''}' returned {len(tables)} tables")
        return tables

    async def get_statistical_data(self, stats_data_id: str, limit: int = 100) -> Optional[Dict[str, Any]]:
        """Fetch the undecoded ``STATISTICAL_DATA`` object (``None`` when nothing matched)."""
        params = {"appId": self.app_id, "statsDataId": stats_data_id, "limit": limit}
        payload = await self._request_json("/app/json/getStatsData", params)

        envelope = self._envelope(payload, "GET_STATS_DATA")
        statistical_data = envelope.get("STATISTICAL_DATA")
        if statistical_data is not None and not isinstance(statistical_data, dict):
            raise self._malformed("STATISTICAL_DATA is not an object", statistical_data)
        return statistical_data

    async def get_stats_data(self, stats_data_id: str, limit: int = 100) -> StatsData:
        """Fetch the classification metadata and observations of one table."""
        statistical_data = await self.get_statistical_data(stats_data_id, limit)
        if statistical_data is None:
            return StatsData()

        data = self.decode_statistical_data(statistical_data)
        logger.info(
            f"e-Stat table {stats_data_id}: {len(data.records)} observations, "
            f"{len(data.classes)} classifications"
        )
        return data

    async def get_meta_info(self, stats_data_id: str) -> List[ClassObject]:
        """Fetch only the classification metadata of one table."""
        params = {"appId": self.app_id, "statsDataId": stats_data_id}
        payload = await self._request_json("/app/json/getMetaInfo", params)

        envelope = self._envelope(payload, "GET_META_INFO")
        metadata = envelope.get("METADATA_INF") or {}
        return self._parse_classes(metadata.get("CLASS_INF"))

    @classmethod
    def decode_statistical_data(cls, statistical_data: Dict[str, Any]) -> StatsData:
        """Decode a ``STATISTICAL_DATA`` object (also used for saved dumps)."""
        table_node = statistical_data.get("TABLE_INF")
        result_inf = statistical_data.get("RESULT_INF") or {}
        data_inf = statistical_data.get("DATA_INF") or {}

        return StatsData(
            table=cls._parse_table(table_node) if isinstance(table_node, dict) else None,
            classes=cls._parse_classes(statistical_data.get("CLASS_INF")),
            records=[
                cls._parse_record(node)
                for node in cls._as_list(data_inf.get("VALUE") if isinstance(data_inf, dict) else None)
            ],
            totalNumber=cls._int_or_none(result_inf.get("TOTAL_NUMBER")) if isinstance(result_inf, dict) else None,
        )

    def _envelope(self, payload: Any, key: str) -> Dict[str, Any]:
        """Unwrap the top-level envelope and surface e-Stat's in-band errors."""
        envelope = self._require_mapping(payload, key)[key]
        if not isinstance(envelope, dict):
            raise self._malformed(f"{key} is not an object", envelope)

        result = envelope.get("RESULT") or {}
        status = self._int_or_none(result.get("STATUS")) if isinstance(result, dict) else None
        if status is not None and status >= STATUS_ERROR_THRESHOLD:
            message = result.get("ERROR_MSG") or "request rejected"
            raise ApiError(
                self.provider_name,
                f"e-Stat API error: {status} - {message}",
                status_code=status,
                response_data=result,
            )
        if status == STATUS_NO_DATA:
            logger.info(f"e-Stat returned no matching data: {result.get('ERROR_MSG', '')}")
        return envelope

    @staticmethod
    def _text(node: Any) -> Optional[str]:
        """Element text of ``node``: plain scalars, or the ``$`` of an object."""
        if node is None:
            return None
        if isinstance(node, dict):
            node = node.get("$")
            if node is None:
                return None
        return str(node)

    @staticmethod
    def _int_or_none(value: Any) -> Optional[int]:
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    @classmethod
    def _parse_table(cls, node: Dict[str, Any]) -> StatsTable:
        return StatsTable(
            id=str(node.get("@id", "")),
            title=cls._text(node.get("TITLE")) or "",
            statName=cls._text(node.get("STAT_NAME")),
            govOrg=cls._text(node.get("GOV_ORG")),
            statisticsName=cls._text(node.get("STATISTICS_NAME")),
            surveyDate=cls._text(node.get("SURVEY_DATE")),
            openDate=cls._text(node.get("OPEN_DATE")),
            overallTotalNumber=cls._int_or_none(node.get("OVERALL_TOTAL_NUMBER")),
        )

    @classmethod
    def _parse_classes(cls, class_inf: Any) -> List[ClassObject]:
        if not isinstance(class_inf, dict):
            return []

        classes: List[ClassObject] = []
        for obj in cls._as_list(class_inf.get("CLASS_OBJ")):
            if not isinstance(obj, dict) or "@id" not in obj:
                continue
            codes: Dict[str, str] = {}
            for item in cls._as_list(obj.get("CLASS")):
                if not isinstance(item, dict) or "@code" not in item:
                    continue
                code = str(item["@code"])
                codes[code] = str(item.get("@name") or item.get("$") or code)
            classes.append(ClassObject(id=str(obj["@id"]), name=str(obj.get("@name", "")), codes=codes))
        return classes

    @classmethod
    def _parse_record(cls, node: Any) -> StatsRecord:
        # VALUE entries are either {"@cat01": ..., "$": "1,234"} or a bare value
        if not isinstance(node, dict):
            return StatsRecord(value=parse_stat_value(node))

        def attr(name: str) -> Optional[str]:
            value = node.get(f"@{name}")
            return None if value is None else str(value)

        return StatsRecord(
            tab=attr("tab"),
            cat01=attr("cat01"),
            cat02=attr("cat02"),
            cat03=attr("cat03"),
            cat04=attr("cat04"),
            area=attr("area"),
            time=attr("time"),
            unit=attr("unit"),
            value=parse_stat_value(node.get("$")),
        )

from __future__ import annotations

import csv
import io
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Union

from ..models import DataSource, ExportDataResponse, ExportFormat, ExportMetadata
from .normalizer import Row, columns_of


class ExportService:
    def generate_csv(self, rows: Sequence[Row]) -> str:
        """Header from the first row's keys, one line per row, ``None`` as an empty field."""
        if not rows:
            return ""

        buffer = io.StringIO()
        writer = csv.DictWriter(
            buffer,
            fieldnames=columns_of(rows),
            restval="",
            extrasaction="ignore",
            quoting=csv.QUOTE_MINIMAL,
            lineterminator="\n",
        )
        writer.writeheader()
        for row in rows:
            writer.writerow({key: "" if value is None else value for key, value in row.items()})

        # No trailing newline after the last record
        return buffer.getvalue().rstrip("\n")

    def generate_json(self, rows: Sequence[Row]) -> List[Row]:
        return [dict(row) for row in rows]

    def generate_structured_json(self, rows: Sequence[Row], metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return {
            "metadata": metadata or {},
            "data": self.generate_json(rows),
            "count": len(rows),
            "columns": columns_of(rows),
        }

    def build_metadata(self, source: Union[DataSource, str], rows: Sequence[Row]) -> ExportMetadata:
        source_id = source.value if isinstance(source, DataSource) else str(source)
        return ExportMetadata(source=source_id, columns=columns_of(rows), rowCount=len(rows))

    def export(
        self,
        rows: Sequence[Row],
        file_format: Union[ExportFormat, str],
        source: Union[DataSource, str],
    ) -> ExportDataResponse:
        file_format = ExportFormat(file_format)
        metadata = self.build_metadata(source, rows)

        if file_format == ExportFormat.CSV:
            data: Any = self.generate_csv(rows)
        elif file_format == ExportFormat.JSON:
            data = self.generate_json(rows)
        else:
            data = self.generate_structured_json(
                rows,
                {"source": metadata.source, "exportedAt": datetime.now(timezone.utc).isoformat()},
            )

        return ExportDataResponse(format=file_format.value, data=data, metadata=metadata)

    def dumps(self, payload: Any) -> str:
        return json.dumps(payload, indent=2, ensure_ascii=False)

    def generate_filename(self, prefix: Optional[str], identifier: Optional[str], file_format: str) -> str:
        if not prefix and not identifier:
            return f"export_{int(datetime.now(timezone.utc).timestamp())}.{file_format}"

        parts = [part for part in (self._slug(prefix, limit=30), self._slug(identifier, limit=30)) if part]
        if not parts:
            parts.insert(0, "export")
        return f"{'-'.join(parts)}.{file_format}"

    @staticmethod
    def _slug(value: Optional[str], limit: Optional[int] = None) -> str:
        if not value:
            return ""
        slug = "".join(ch if ch.isalnum() or ch == "-" else "_" for ch in value).strip("_")
        if limit:
            return slug[:limit]
        return slug


export_service = ExportService()

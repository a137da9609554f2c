from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any

from ..exceptions import ExporterError
from ..helpers import get_path
from .base import BaseExporter, result_to_dict


def _cell(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value


class CSVExporter(BaseExporter):
    """CSV rows of dotted-path ``fields`` such as ``response.status``."""

    def __init__(
        self,
        file: str | Path | None = None,
        encoding: str = "utf-8",
        fields: list[str] | None = None,
        separator: str = ",",
    ) -> None:
        if not fields:
            raise ExporterError("Fields must be defined!")
        self.fields = list(fields)
        self.separator = separator or ","
        super().__init__(file, encoding)

    def write_header(self) -> None:
        self._write_row(self.fields)

    def write_line(self, result: Any) -> None:
        data = result_to_dict(result)
        self._write_row([_cell(get_path(data, field)) for field in self.fields])

    def _write_row(self, values: list[Any]) -> None:
        writer = csv.writer(self._stream, delimiter=self.separator, lineterminator="\n")
        writer.writerow(values)
        self._stream.flush()

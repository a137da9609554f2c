from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .base import BaseExporter, result_to_dict


class JSONLineExporter(BaseExporter):
    """One JSON object per line, optionally limited to top-level ``fields``."""

    def __init__(
        self,
        file: str | Path | None = None,
        encoding: str = "utf-8",
        fields: list[str] | None = None,
    ) -> None:
        self.fields = fields
        super().__init__(file, encoding)

    def write_line(self, result: Any) -> None:
        data = result_to_dict(result)
        if self.fields:
            data = {name: data[name] for name in self.fields if name in data}
        self._write(json.dumps(data, ensure_ascii=False, default=str) + "\n")

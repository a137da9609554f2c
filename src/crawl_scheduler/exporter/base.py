"""Result exporters writing one line per successful request."""
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from ..exceptions import ExporterError


def result_to_dict(result: Any) -> dict[str, Any]:
    if hasattr(result, "model_dump"):
        return result.model_dump(mode="json")
    return dict(result)


class BaseExporter(ABC):
    """Owns the output file for the lifetime of a crawl.

    The header is written on construction. ``end()`` closes the file and
    releases anyone waiting in ``on_end()``.
    """

    def __init__(self, file: str | Path | None = None, encoding: str = "utf-8") -> None:
        if not file:
            raise ExporterError("File must be defined!")
        self.path = Path(file)
        self._stream = open(self.path, "w", encoding=encoding, newline="")
        self._ended = asyncio.Event()
        self.write_header()

    @abstractmethod
    def write_line(self, result: Any) -> None:
        """Write one crawl result."""

    def write_header(self) -> None:
        return None

    def write_footer(self) -> None:
        return None

    def end(self) -> None:
        if not self._stream.closed:
            self._stream.close()
        self._ended.set()

    async def on_end(self) -> None:
        await self._ended.wait()

    def _write(self, text: str) -> None:
        self._stream.write(text)
        self._stream.flush()

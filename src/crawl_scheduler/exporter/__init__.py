from .base import BaseExporter
from .csv import CSVExporter
from .json_line import JSONLineExporter

__all__ = ["BaseExporter", "CSVExporter", "JSONLineExporter"]

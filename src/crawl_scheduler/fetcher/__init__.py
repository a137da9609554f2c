from .base import FetchBackend, Fetcher
from .http import HttpFetchBackend, HttpFetcher, default_extract

__all__ = ["FetchBackend", "Fetcher", "HttpFetchBackend", "HttpFetcher", "default_extract"]

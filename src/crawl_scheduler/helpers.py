"""URL, fingerprint and matching helpers shared by the scheduler components.

Fingerprints are order-independent: the picked fields are serialized with
``sort_keys=True`` so nested header dicts hash the same regardless of the
order callers built them in.
"""
from __future__ import annotations

import fnmatch
import hashlib
import inspect
import json
from collections.abc import Callable, Iterable, Mapping
from typing import Any
from urllib.parse import urldefrag, urljoin, urlsplit, urlunsplit

FINGERPRINT_FIELDS = ("url", "device", "user_agent", "extra_headers")
FINGERPRINT_LENGTH = 16

SKIPPED_LINK_EXTENSIONS = (".pdf", ".xlsx", ".xls", ".zip", ".xlsm")


def generate_key(options: Mapping[str, Any] | Any) -> str:
    """Dedup fingerprint for a request descriptor.

    Only the fields that change what the server returns take part:
    url, device, user agent and extra headers.
    """
    if not isinstance(options, Mapping):
        options = options.model_dump(mode="json")
    picked = {name: options[name] for name in FINGERPRINT_FIELDS if name in options}
    canonical = json.dumps(picked, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def normalize_url(url: str) -> str:
    """Lower-case scheme/host and give bare hosts a ``/`` path."""
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    netloc = parts.netloc.lower()
    path = parts.path or ("/" if netloc else "")
    return urlunsplit((scheme, netloc, path, parts.query, parts.fragment))


def resolve_url(href: str | None, base_url: str) -> str | None:
    """Resolve a discovered link to an absolute, fragment-free http(s) URL.

    Returns None for empty hrefs, in-page anchors, non-http schemes and
    download links.
    """
    href = (href or "").strip()
    if not href or href.startswith("#"):
        return None
    lowered = href.lower()
    if any(lowered.endswith(ext) or f"{ext}/" in lowered for ext in SKIPPED_LINK_EXTENSIONS):
        return None
    try:
        absolute, _ = urldefrag(urljoin(base_url, href))
        scheme = urlsplit(absolute).scheme
    except ValueError:
        return None
    if scheme not in ("http", "https"):
        return None
    return absolute


def unique_links(hrefs: Iterable[str | None], base_url: str) -> list[str]:
    """Resolve hrefs against ``base_url`` keeping first-seen order."""
    seen: set[str] = set()
    links: list[str] = []
    for href in hrefs:
        url = resolve_url(href, base_url)
        if url is None or url in seen:
            continue
        seen.add(url)
        links.append(url)
    return links


def get_robots_url(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, "/robots.txt", "", ""))


def get_hostname(url: str) -> str:
    return urlsplit(url).hostname or ""


def check_domain_match(domains: Iterable[str], hostname: str) -> bool:
    """True if ``hostname`` equals any entry or matches it as a glob."""
    hostname = hostname.lower()
    for domain in domains:
        pattern = domain.lower()
        if pattern == hostname or fnmatch.fnmatchcase(hostname, pattern):
            return True
    return False


def get_path(data: Any, dotted: str) -> Any:
    """Look up ``a.b.c`` in nested mappings/objects, None when missing."""
    current = data
    for part in dotted.split("."):
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(part)
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            current = current[index] if index < len(current) else None
        else:
            current = getattr(current, part, None)
    return current


async def call_hook(hook: Callable[..., Any], *args: Any) -> Any:
    """Call a sync or async user hook and return its result."""
    result = hook(*args)
    if inspect.isawaitable(result):
        result = await result
    return result

"""Helpers for consistent Redis TLS configuration (broker, locks, event stream)."""
from __future__ import annotations

import ssl
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from alertproc.core.config import settings


def _add_query_param(url: str, key: str, value: str | None) -> str:
    parsed = urlparse(url)
    query = parse_qs(parsed.query, keep_blank_values=True)
    if value is None:
        query.pop(key, None)
    else:
        query[key] = [value]
    new_query = urlencode(query, doseq=True)
    return urlunparse(parsed._replace(query=new_query))


def prepare_redis_url(url: str | None) -> str | None:
    """Append ``ssl_cert_reqs`` to ``rediss://`` URLs unless already present."""
    if not url:
        return url
    if url.startswith("rediss://") and "ssl_cert_reqs" not in url:
        url = _add_query_param(url, "ssl_cert_reqs", "required")
    return url


def get_ssl_options() -> dict[str, Any] | None:
    """Return the ssl options dict Kombu/Celery expect when Redis uses TLS."""
    url = settings.REDIS_URL
    if not url or not url.startswith("rediss://"):
        return None
    return {"ssl_cert_reqs": ssl.CERT_REQUIRED}

from __future__ import annotations

import os
import ipaddress
from typing import Any, Iterable, Mapping
from urllib.parse import urlparse

import requests

DEFAULT_TIMEOUT_S = 10.0


class OutboundDomainError(RuntimeError):
    """Raised when a URL falls outside the configured outbound allow-list."""


def parse_allowlist(spec: str | None = None) -> set[str]:
    raw = spec if spec is not None else os.getenv("OUTBOUND_ALLOWLIST", "")
    return {item.strip().lower() for item in raw.split(",") if item.strip()}


def _is_ip(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def host_allowed(host: str, allowed: Iterable[str]) -> bool:
    """Exact match for IPs; for names the entry itself or any of its subdomains."""
    host_lc = host.lower()
    if _is_ip(host_lc):
        return host_lc in allowed
    return any(host_lc == entry or host_lc.endswith(f".{entry}") for entry in allowed)


def safe_get(
    url: str,
    *,
    params: Mapping[str, Any] | None = None,
    allowlist: Iterable[str] | None = None,
    headers: Mapping[str, str] | None = None,
    timeout: float = DEFAULT_TIMEOUT_S,
    **kwargs: Any,
) -> requests.Response:
    """GET `url` after checking it against the outbound allow-list.

    `allowlist` overrides `OUTBOUND_ALLOWLIST`; an empty allow-list permits
    every host. Redirects are never followed and a timeout is always sent,
    so a slow upstream cannot hold a worker thread forever.
    """

    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"}:
        raise ValueError(f"Unsupported URL scheme: {parsed.scheme!r}")

    if kwargs.pop("allow_redirects", False):
        raise ValueError("safe_get does not follow redirects")

    allowed = (
        {item.strip().lower() for item in allowlist if item.strip()}
        if allowlist is not None
        else parse_allowlist()
    )
    host = parsed.hostname or ""
    if allowed and not host_allowed(host, allowed):
        raise OutboundDomainError(
            f"Host '{host}' is not permitted (allowed: {', '.join(sorted(allowed))})"
        )

    return requests.get(
        url,
        params=params,
        headers=headers,
        timeout=timeout,
        allow_redirects=False,
        **kwargs,
    )


__all__ = ["OutboundDomainError", "parse_allowlist", "host_allowed", "safe_get"]

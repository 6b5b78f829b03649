"""Wrapper de httpx.

Reglas:
- Estandariza timeouts, headers y redirects para descargas de documentos.
- Facilita testeo: se puede pasar un `transport` (p.ej. `httpx.MockTransport`).
"""

from __future__ import annotations

import httpx

from core.config import AppSettings, get_settings


def build_client(
    settings: AppSettings | None = None,
    *,
    extra_headers: dict[str, str] | None = None,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """Crea un `httpx.Client` con defaults seguros."""

    settings = settings or get_settings()
    headers: dict[str, str] = {
        "User-Agent": settings.user_agent,
        "Accept": "application/json, application/yaml, text/yaml;q=0.9, */*;q=0.5",
    }
    if extra_headers:
        headers.update(extra_headers)
    return httpx.Client(
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        follow_redirects=True,
        headers=headers,
        transport=transport,
    )


def is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def fetch_text(
    url: str,
    *,
    settings: AppSettings | None = None,
    transport: httpx.BaseTransport | None = None,
) -> tuple[str, str | None]:
    """Descarga `url` y devuelve `(texto, content-type)`."""

    with build_client(settings, transport=transport) as client:
        resp = client.get(url)
        resp.raise_for_status()
        return resp.text, resp.headers.get("content-type")

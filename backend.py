"""
Synchronous client for the hosted backend (Supabase-compatible REST).

Covers the two collaborators the audio core hands its results to: object
storage for audio files and the record store for beats, notes and voice
recordings. Every failure is raised as ``UpstreamFailureError`` carrying the
upstream message unchanged; nothing is retried.
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from errors import UpstreamFailureError

logger = logging.getLogger(__name__)


class BackendClient:
    """Thin wrapper around ``httpx.Client`` for storage and table calls."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        access_token: str = "",
        timeout_s: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        """Initialize the HTTP client.

        Args:
            base_url: Project URL, e.g. ``https://xyz.supabase.co``.
            api_key: Public (anon) API key sent as ``apikey``.
            access_token: Signed-in user's JWT; falls back to ``api_key``.
            timeout_s: Per-request timeout.
            http_client: Pre-built client, used by tests.
        """
        self._base_url = base_url.rstrip("/")
        headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
        }
        self._client = http_client or httpx.Client(
            base_url=self._base_url, headers=headers, timeout=timeout_s
        )
        if http_client is not None:
            self._client.headers.update(headers)

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Execute a request, mapping every transport/HTTP error to UpstreamFailureError."""
        try:
            resp = self._client.request(method, path, **kwargs)
            resp.raise_for_status()
            return resp
        except httpx.HTTPStatusError as exc:
            try:
                body = exc.response.json()
                detail = body.get("message") or body.get("error") or exc.response.text
            except Exception:
                detail = exc.response.text or str(exc)
            logger.warning("%s %s -> %s: %s", method, path, exc.response.status_code, detail)
            raise UpstreamFailureError(str(detail)) from exc
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise UpstreamFailureError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        """Upload ``data`` to ``bucket/path`` and return its public URL."""
        self._request(
            "POST",
            f"/storage/v1/object/{bucket}/{quote(path)}",
            content=data,
            headers={
                "Content-Type": content_type,
                "Cache-Control": "max-age=3600",
                "x-upsert": "false",
            },
        )
        return self.public_url(bucket, path)

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self._base_url}/storage/v1/object/public/{bucket}/{quote(path)}"

    # ------------------------------------------------------------------
    # Record store
    # ------------------------------------------------------------------

    def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order: Optional[str] = None,
        descending: bool = True,
    ) -> list[dict[str, Any]]:
        params = {"select": "*", **_eq(filters)}
        if order:
            params["order"] = f"{order}.{'desc' if descending else 'asc'}"
        data = self._request("GET", f"/rest/v1/{table}", params=params).json()
        return data if isinstance(data, list) else []

    def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        resp = self._request(
            "POST",
            f"/rest/v1/{table}",
            json=row,
            headers={"Prefer": "return=representation"},
        )
        return _first(resp.json())

    def upsert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        resp = self._request(
            "POST",
            f"/rest/v1/{table}",
            json=row,
            headers={"Prefer": "resolution=merge-duplicates,return=representation"},
        )
        return _first(resp.json())

    def update(self, table: str, filters: dict[str, Any], values: dict[str, Any]) -> None:
        self._request("PATCH", f"/rest/v1/{table}", params=_eq(filters), json=values)

    def delete(self, table: str, filters: dict[str, Any]) -> None:
        if not filters:
            raise ValueError("refusing to delete without filters")
        self._request("DELETE", f"/rest/v1/{table}", params=_eq(filters))


def _eq(filters: Optional[dict[str, Any]]) -> dict[str, str]:
    return {key: f"eq.{value}" for key, value in (filters or {}).items()}


def _first(payload: Any) -> dict[str, Any]:
    if isinstance(payload, list):
        return payload[0] if payload else {}
    return payload if isinstance(payload, dict) else {}

"""
Async client for the remote multi-tenant table API.

Speaks a PostgREST-style protocol under <remote_url>/rest/v1:

    HEAD   /                                   reachability probe
    POST   /<table>                            create (full record body)
    PATCH  /<table>?id=eq.<id>                 patch by id
    DELETE /<table>?id=eq.<id>                 delete by id
    GET    /<table>?company_id=eq.<scope>
                  &updated_at=gt.<watermark>
                  &order=updated_at.asc        list by scope

Every request carries the service identity header (apikey) and, when the
session holds one, a bearer token. Non-2xx responses raise
RemoteRequestError with the body text; transport failures raise it with
status_code=None. Transient failures are retried per RetryPolicy.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from bizsync.errors import ConnectivityError, RemoteRequestError
from bizsync.remote.retry import RetryPolicy, is_retryable

logger = logging.getLogger(__name__)

API_PREFIX = "/rest/v1"


class RemoteClient:
    """Thin async wrapper over httpx.AsyncClient for table calls."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        session,
        *,
        timeout: float = 30.0,
        retry: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Service root, e.g. "https://<project>.example.co".
            api_key: Service identity sent as the apikey header.
            session: SyncSession; its auth_token is read on every request.
            timeout: Per-request timeout in seconds.
            retry: Backoff policy for transient failures. Defaults to RetryPolicy().
            transport: Optional httpx transport (tests pass httpx.MockTransport).
        """
        self._api_key = api_key
        self._session = session
        self._retry = retry or RetryPolicy()
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + API_PREFIX,
            timeout=timeout,
            transport=transport,
        )

    def _headers(self) -> Dict[str, str]:
        headers = {
            "apikey": self._api_key,
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }
        if self._session.auth_token:
            headers["Authorization"] = f"Bearer {self._session.auth_token}"
        return headers

    async def probe(self) -> None:
        """Bodyless reachability check against the API root. Never retried.

        Raises:
            ConnectivityError: on any transport error or non-success status.
        """
        try:
            response = await self._http.head("/", headers={"apikey": self._api_key})
        except httpx.HTTPError as exc:
            raise ConnectivityError(f"Remote unreachable: {exc}") from exc
        if not response.is_success:
            raise ConnectivityError(f"Remote probe returned HTTP {response.status_code}")

    async def create(self, table: str, record: Dict[str, Any]) -> Any:
        return await self._request("POST", f"/{table}", json=record)

    async def patch(self, table: str, record_id: str, fields: Dict[str, Any]) -> Any:
        return await self._request(
            "PATCH", f"/{table}", params={"id": f"eq.{record_id}"}, json=fields
        )

    async def delete(self, table: str, record_id: str) -> Any:
        return await self._request("DELETE", f"/{table}", params={"id": f"eq.{record_id}"})

    async def list(
        self,
        table: str,
        scope_column: str,
        scope: str,
        *,
        updated_after: Optional[str] = None,
        order: str = "updated_at.asc",
    ) -> List[Dict[str, Any]]:
        """Rows of one company, optionally only those changed after a watermark."""
        params = {scope_column: f"eq.{scope}"}
        if updated_after:
            params["updated_at"] = f"gt.{updated_after}"
        params["order"] = order
        rows = await self._request("GET", f"/{table}", params=params)
        return rows or []

    async def aclose(self) -> None:
        await self._http.aclose()

    # ─── Internal helpers ─────────────────────────────────────────────────────

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        """Send one logical request, retrying transient failures."""
        attempts = max(self._retry.max_attempts, 1)
        for attempt in range(attempts):
            try:
                return await self._send(method, path, **kwargs)
            except RemoteRequestError as exc:
                last_attempt = attempt + 1 >= attempts
                if last_attempt or not is_retryable(exc.status_code):
                    raise
                delay = self._retry.delay_for(attempt)
                logger.debug(
                    "%s %s failed (%s), retrying in %.2fs", method, path, exc, delay
                )
                await asyncio.sleep(delay)

    async def _send(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._http.request(method, path, headers=self._headers(), **kwargs)
        except httpx.HTTPError as exc:
            raise RemoteRequestError(f"{method} {path} failed: {exc}") from exc

        if not response.is_success:
            body = response.text
            raise RemoteRequestError(
                f"{method} {path} returned HTTP {response.status_code}: {body}",
                status_code=response.status_code,
                body=body,
            )

        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type and response.content:
            return response.json()
        return None

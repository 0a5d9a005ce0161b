"""Supabase row store over the PostgREST HTTP API.

Requests are blocking (``requests``), so every call runs in a worker thread to
keep the event loop responsive. Row-level security on the server scopes
queries to the signed-in user; the explicit ``user_id`` filter mirrors it.
"""

from __future__ import annotations

import asyncio
import logging

import requests

from ..exceptions import RemoteStoreError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10


class SupabaseRowStore:
    """RowStore for a Supabase project's ``/rest/v1`` endpoint."""

    def __init__(
        self,
        url: str,
        api_key: str,
        access_token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ):
        self.base_url = url.rstrip("/") + "/rest/v1"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
            "Content-Type": "application/json",
        })

    def _request(self, operation: str, method: str, table: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}/{table}"
        logger.debug("%s %s %s", method, url, kwargs.get("params", ""))
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise RemoteStoreError(operation, f"{table}: {e}") from e
        if not response.ok:
            try:
                detail = response.json().get("message", response.text)
            except ValueError:
                detail = response.text
            raise RemoteStoreError(operation, f"{table}: {detail}", status_code=response.status_code)
        return response

    def _select(self, table: str, user_id: str, order_by: str | None) -> list[dict]:
        params = {"select": "*", "user_id": f"eq.{user_id}"}
        if order_by is not None:
            params["order"] = f"{order_by}.asc"
        response = self._request("select", "GET", table, params=params)
        try:
            rows = response.json()
        except ValueError as e:
            raise RemoteStoreError("select", f"{table}: invalid JSON response") from e
        if not isinstance(rows, list):
            raise RemoteStoreError("select", f"{table}: expected a list of rows")
        return rows

    async def select(self, table: str, user_id: str, order_by: str | None = None) -> list[dict]:
        return await asyncio.to_thread(self._select, table, user_id, order_by)

    async def insert(self, table: str, row: dict) -> None:
        await asyncio.to_thread(
            self._request,
            "insert",
            "POST",
            table,
            json=row,
            headers={"Prefer": "return=minimal"},
        )

    async def update(self, table: str, row_id: str, values: dict) -> None:
        await asyncio.to_thread(
            self._request,
            "update",
            "PATCH",
            table,
            params={"id": f"eq.{row_id}"},
            json=values,
            headers={"Prefer": "return=minimal"},
        )

    async def delete(self, table: str, row_id: str) -> None:
        await asyncio.to_thread(
            self._request,
            "delete",
            "DELETE",
            table,
            params={"id": f"eq.{row_id}"},
        )

from __future__ import annotations

import asyncio
import uuid
from typing import Any

import requests

_TIMEOUT = 15.0


class RecordsError(RuntimeError):
    """A records API request failed."""


class RecordsClient:
    """
    Minimal client for the dashboard's PostgREST-style records API.

    Filters use PostgREST operators, e.g. {"status": "eq.active"} or
    {"or": "(name.ilike.*acme*,email.ilike.*acme*)"}.

    The blocking `select`/`insert` calls have `aselect`/`ainsert` counterparts
    that run in a worker thread so tool handlers never block the event loop.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        *,
        timeout: float = _TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("Records API URL is required")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

        # Keep standard headers
        self.session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
        })
        if api_key:
            self.session.headers.update({"apikey": api_key, "Authorization": f"Bearer {api_key}"})

    def _url(self, table: str) -> str:
        return f"{self.base_url}/{table}"

    def select(
        self,
        table: str,
        *,
        filters: dict[str, str] | None = None,
        columns: str = "*",
        order: str | None = None,
        limit: int | None = None,
        count: bool = False,
    ) -> tuple[list[dict[str, Any]], int | None]:
        """
        Select rows from a table.

        Args:
            table (str): Table or view name.
            filters (dict[str, str] | None): PostgREST filter expressions keyed by column.
            columns (str): Column selection.
            order (str | None): Ordering, e.g. "created_at.desc".
            limit (int | None): Maximum rows to return.
            count (bool): Ask the API for the exact total row count.

        Returns:
            tuple[list[dict[str, Any]], int | None]: Rows and the total count when requested.

        Raises:
            RecordsError: If the request fails or returns a non-list body.
        """
        params: dict[str, Any] = {"select": columns, **(filters or {})}
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = limit

        headers = {"X-Request-ID": str(uuid.uuid4())}
        if count:
            headers["Prefer"] = "count=exact"

        try:
            resp = self.session.get(self._url(table), params=params, headers=headers, timeout=self.timeout)
            resp.raise_for_status()
            rows = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise RecordsError(f"Records request failed ({table}): {e}") from e

        if not isinstance(rows, list):
            raise RecordsError(f"Records API returned unexpected payload for {table}")

        total = _total_from_content_range(resp.headers.get("Content-Range")) if count else None
        return rows, total

    def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        """
        Insert one row and return it as stored.

        Raises:
            RecordsError: If the request fails or nothing is returned.
        """
        headers = {"X-Request-ID": str(uuid.uuid4()), "Prefer": "return=representation"}
        try:
            resp = self.session.post(self._url(table), json=row, headers=headers, timeout=self.timeout)
            resp.raise_for_status()
            created = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise RecordsError(f"Records insert failed ({table}): {e}") from e

        if isinstance(created, list) and created:
            created = created[0]
        if not isinstance(created, dict):
            raise RecordsError(f"Records API returned no row for {table}")
        return created

    async def aselect(self, table: str, **kwargs: Any) -> tuple[list[dict[str, Any]], int | None]:
        return await asyncio.to_thread(self.select, table, **kwargs)

    async def ainsert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        return await asyncio.to_thread(self.insert, table, row)


def _total_from_content_range(header: str | None) -> int | None:
    # e.g. "0-19/134" or "*/0"
    if not header or "/" not in header:
        return None
    total = header.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else None

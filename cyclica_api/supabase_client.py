"""Async PostgREST client for the Supabase tables and similarity RPC."""

import itertools
from datetime import datetime, timezone
from typing import Any

import httpx
import structlog

from cyclica_api.config import get_settings
from cyclica_api.observability import get_trace_id

logger = structlog.get_logger()

MOCK_SIMILARITY = 0.82

# Sample research excerpts served when MOCK_SUPABASE=true
MOCK_DOCUMENTS = [
    {
        "filename": "menstrual-cycle-and-work.pdf",
        "content": (
            "Participants described energy levels that shift across the cycle and "
            "reported that flexible scheduling reduced presenteeism and improved focus."
        ),
    },
    {
        "filename": "menstrual-cycle-and-work.pdf",
        "content": (
            "Access to rest spaces and period products at work was linked to a stronger "
            "sense of psychological safety among employees."
        ),
    },
    {
        "filename": "sustainable-productivity-review.pdf",
        "content": (
            "Sustainable productivity frames output over longer horizons, treating "
            "recovery and well-being as inputs rather than costs."
        ),
    },
]


class SupabaseError(Exception):
    """Base exception for Supabase client errors."""

    pass


class SupabaseConnectionError(SupabaseError):
    """Raised when the Supabase project is unreachable or not configured."""

    pass


class SupabaseQueryError(SupabaseError):
    """Raised when a select, insert, or RPC call fails."""

    pass


def _as_text(value: Any) -> str:
    """Render a value the way PostgREST compares it in an eq filter."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class SupabaseClient:
    """Async client for Supabase's PostgREST interface."""

    def __init__(
        self,
        rest_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
    ):
        """Initialize the Supabase client.

        Args:
            rest_url: PostgREST base URL. Defaults to config value.
            api_key: Supabase anon key. Defaults to config value.
            timeout: Request timeout in seconds. Defaults to config value.
        """
        settings = get_settings()
        self._rest_url = rest_url or (settings.supabase_rest_url if settings.supabase_url else "")
        self._api_key = api_key or settings.supabase_anon_key
        self._timeout = timeout or settings.supabase_timeout_seconds
        self._client: httpx.AsyncClient | None = None
        self._mock_tables: dict[str, list[dict[str, Any]]] = {}
        self._mock_ids = itertools.count(1)

    async def connect(self) -> None:
        """Create the HTTP client, or seed in-memory tables in mock mode."""
        settings = get_settings()
        if settings.mock_supabase:
            self._mock_tables.setdefault(settings.interactions_table, [])
            self._mock_tables.setdefault(
                settings.embeddings_table,
                [dict(doc, id=next(self._mock_ids)) for doc in MOCK_DOCUMENTS],
            )
            logger.info("MOCK_SUPABASE=true: Using in-memory tables")
            return

        if not self.is_configured:
            error_msg = (
                "FATAL: Supabase not configured with MOCK_SUPABASE=false. "
                "Either set SUPABASE_URL and SUPABASE_ANON_KEY or set MOCK_SUPABASE=true for testing."
            )
            logger.error(error_msg)
            raise SupabaseConnectionError(error_msg)

        self._client = httpx.AsyncClient(
            base_url=self._rest_url,
            headers={
                "apikey": self._api_key,
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(self._timeout, connect=5.0),
        )
        logger.info("Connected to Supabase", url=self._rest_url)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Closed Supabase connection")

    @property
    def is_configured(self) -> bool:
        """Check if URL and key are both present."""
        return bool(self._rest_url and self._api_key)

    @property
    def is_mock(self) -> bool:
        return get_settings().mock_supabase

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Issue a PostgREST request and decode the JSON body."""
        if not self._client:
            await self.connect()
        try:
            response = await self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "supabase_error",
                trace_id=get_trace_id(),
                path=path,
                status=e.response.status_code,
                detail=e.response.text[:200],
            )
            raise SupabaseQueryError(
                f"Supabase request failed ({e.response.status_code}): {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            logger.error("supabase_unreachable", trace_id=get_trace_id(), path=path, error=str(e))
            raise SupabaseConnectionError(f"Supabase unreachable: {e}") from e

        if not response.content:
            return []
        return response.json()

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        """Insert one row and return it as stored.

        Raises:
            SupabaseError: If the insert fails.
        """
        if self.is_mock:
            return self._mock_insert(table, row)

        data = await self._request(
            "POST",
            f"/{table}",
            json=row,
            headers={"Prefer": "return=representation"},
        )
        logger.debug("supabase_insert", table=table)
        return data[0] if data else row

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        order: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Select rows matching equality filters.

        Args:
            table: Table name.
            columns: PostgREST select list.
            filters: Column (or ``column->>key`` JSON path) to value, compared with eq.
            order: Optional column to order by.
            descending: Order direction.
            limit: Optional row limit.

        Raises:
            SupabaseError: If the select fails.
        """
        if self.is_mock:
            return self._mock_select(table, columns, filters, order, descending, limit)

        params: dict[str, str] = {"select": columns}
        for key, value in (filters or {}).items():
            params[key] = f"eq.{_as_text(value)}"
        if order:
            params["order"] = f"{order}.{'desc' if descending else 'asc'}"
        if limit is not None:
            params["limit"] = str(limit)

        return await self._request("GET", f"/{table}", params=params)

    async def rpc(self, function: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Call a Postgres function exposed through PostgREST.

        Raises:
            SupabaseError: If the call fails.
        """
        if self.is_mock:
            return self._mock_rpc(function, params)

        data = await self._request("POST", f"/rpc/{function}", json=params)
        return data or []

    # -------------------------------------------------------------------------
    # In-memory tables (MOCK_SUPABASE=true)
    # -------------------------------------------------------------------------

    def _table(self, table: str) -> list[dict[str, Any]]:
        return self._mock_tables.setdefault(table, [])

    def _mock_insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        stored = dict(row)
        stored["id"] = next(self._mock_ids)
        stored.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        self._table(table).append(stored)
        return dict(stored)

    def _mock_select(
        self,
        table: str,
        columns: str,
        filters: dict[str, Any] | None,
        order: str | None,
        descending: bool,
        limit: int | None,
    ) -> list[dict[str, Any]]:
        rows = [row for row in self._table(table) if self._matches(row, filters or {})]
        if order:
            rows.sort(key=lambda r: (r.get(order) or "", r["id"]), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        if columns == "*":
            return [dict(row) for row in rows]
        wanted = [c.strip() for c in columns.split(",")]
        return [{c: row.get(c) for c in wanted} for row in rows]

    @staticmethod
    def _matches(row: dict[str, Any], filters: dict[str, Any]) -> bool:
        for key, expected in filters.items():
            if "->>" in key:
                column, field = key.split("->>", 1)
                actual = (row.get(column) or {}).get(field)
            else:
                actual = row.get(key)
            if actual is None or _as_text(actual) != _as_text(expected):
                return False
        return True

    def _mock_rpc(self, function: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        settings = get_settings()
        if function != settings.match_function:
            raise SupabaseQueryError(f"Unknown RPC function in mock mode: {function}")

        threshold = params.get("match_threshold", settings.match_threshold)
        count = params.get("match_count", settings.match_count)
        if MOCK_SIMILARITY < threshold:
            return []
        return [
            {
                "filename": row["filename"],
                "content": row["content"],
                "similarity": MOCK_SIMILARITY,
            }
            for row in self._table(settings.embeddings_table)[:count]
        ]


# Global client instance
_supabase_client: SupabaseClient | None = None


async def get_supabase_client() -> SupabaseClient:
    """Get or create the global Supabase client instance."""
    global _supabase_client
    if _supabase_client is None:
        client = SupabaseClient()
        await client.connect()
        _supabase_client = client
    return _supabase_client


async def close_supabase_client() -> None:
    """Close the global Supabase client."""
    global _supabase_client
    if _supabase_client:
        await _supabase_client.close()
        _supabase_client = None


def reset_supabase_client() -> None:
    """Reset the global Supabase client (for testing)."""
    global _supabase_client
    _supabase_client = None

"""
Supabase-backed content store.

Talks to the Supabase REST surface directly over ``httpx``:

1. **PostgREST** for table rows (``library_items``, ``agent_os``, ``visits``).
   ``{url}/rest/v1/{table}``

2. **Storage** public object URLs for image assets.
   ``{url}/storage/v1/object/public/{bucket}/{path}``

Each request opens a short-lived ``httpx.AsyncClient``; pass *transport* to
route requests through an ``httpx.MockTransport`` in tests.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import httpx

from mixingdesk.storage.base import ContentStoreError, VisitNotFoundError

logger = logging.getLogger(__name__)

# ``*`` is the PostgREST like-wildcard; braces delimit array literals and
# cannot be escaped inside ``cs.{...}``.
_UNQUOTABLE = re.compile(r"[*{}]")


def _filter_term(query: str) -> str:
    """Drop the characters a quoted PostgREST value cannot carry literally."""
    return _UNQUOTABLE.sub("", query).strip()


def _quote(value: str) -> str:
    """Double-quote *value* for a PostgREST filter, escaping ``\\`` and ``"``."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SupabaseContentStore:
    """``ContentStore`` implementation for a Supabase project.

    Attributes:
        url: Project URL, e.g. ``https://abc.supabase.co``.
        image_bucket: Storage bucket holding display images.
        timeout: HTTP request timeout in seconds.
    """

    def __init__(
        self,
        url: str,
        anon_key: str,
        image_bucket: str = "test-images",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.image_bucket = image_bucket
        self.timeout = timeout
        self._anon_key = anon_key
        self._transport = transport

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    async def asset_url(self, path: str) -> str:
        """Return the public URL of *path* in the image bucket.

        No request is made; a missing object still yields a URL and the
        broken link surfaces in the client.
        """
        object_path = quote(path.lstrip("/"))
        return f"{self.url}/storage/v1/object/public/{self.image_bucket}/{object_path}"

    # ------------------------------------------------------------------
    # Library
    # ------------------------------------------------------------------

    async def search_library(self, query: str) -> list[dict[str, Any]]:
        """Find library items by title substring or topic membership.

        Title matching uses ``ilike``. Topic containment is case-sensitive in
        PostgREST, so the query is tried both as given and lowercased.

        Raises:
            ContentStoreError: If Supabase returns an error response.
        """
        term = _filter_term(query)
        if not term:
            return []

        # Quoting keeps commas and parentheses in the query from ending the
        # ``or=(...)`` clause early.
        clauses = [f"title.ilike.{_quote(f'*{term}*')}", f"topics.cs.{{{_quote(term)}}}"]
        if term.lower() != term:
            clauses.append(f"topics.cs.{{{_quote(term.lower())}}}")

        rows = await self._request(
            "GET",
            "library_items",
            params={"select": "*", "or": f"({','.join(clauses)})"},
        )
        logger.debug("Library search %r matched %d item(s)", query, len(rows))
        return rows

    # ------------------------------------------------------------------
    # Agent OS
    # ------------------------------------------------------------------

    async def get_agent_os(self, agent_name: str) -> dict[str, Any] | None:
        rows = await self._request(
            "GET",
            "agent_os",
            params={
                "select": "*",
                "agent_name": f"eq.{agent_name}",
                "is_active": "eq.true",
                "limit": "1",
            },
        )
        return rows[0] if rows else None

    # ------------------------------------------------------------------
    # Visits
    # ------------------------------------------------------------------

    async def get_visit(self, visit_id: str) -> dict[str, Any] | None:
        rows = await self._request(
            "GET", "visits", params={"select": "*", "id": f"eq.{visit_id}"}
        )
        return rows[0] if rows else None

    async def create_visit(
        self, visitor_name: str | None = None, initial_note: str | None = None
    ) -> dict[str, Any]:
        """Insert a visit in ``checking_in`` status, optionally seeded with a note."""
        notes: list[dict[str, Any]] = []
        if initial_note:
            notes.append(
                {"timestamp": _utc_now(), "source": "checkin", "content": initial_note}
            )
        rows = await self._request(
            "POST",
            "visits",
            json={"visitor_name": visitor_name, "status": "checking_in", "notes": notes},
            returning=True,
        )
        return rows[0]

    async def add_visit_note(
        self, visit_id: str, source: str, content: str
    ) -> dict[str, Any]:
        """Append a note to a visit (read-modify-write on the ``notes`` column).

        Raises:
            VisitNotFoundError: If the visit does not exist.
        """
        visit = await self.get_visit(visit_id)
        if visit is None:
            raise VisitNotFoundError(f"Visit not found: {visit_id}", status_code=404)

        now = _utc_now()
        notes = list(visit.get("notes") or [])
        notes.append({"timestamp": now, "source": source, "content": content})
        return await self._update_visit(visit_id, {"notes": notes, "updated_at": now})

    async def update_visit_status(self, visit_id: str, status: str) -> dict[str, Any]:
        return await self._update_visit(
            visit_id, {"status": status, "updated_at": _utc_now()}
        )

    async def _update_visit(
        self, visit_id: str, changes: dict[str, Any]
    ) -> dict[str, Any]:
        rows = await self._request(
            "PATCH",
            "visits",
            params={"id": f"eq.{visit_id}"},
            json=changes,
            returning=True,
        )
        if not rows:
            raise VisitNotFoundError(f"Visit not found: {visit_id}", status_code=404)
        return rows[0]

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        table: str,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
        returning: bool = False,
    ) -> list[dict[str, Any]]:
        """Issue a PostgREST request and return the decoded row list.

        Raises:
            ContentStoreError: On transport failure or an error response.
        """
        headers = {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {self._anon_key}",
        }
        if returning:
            headers["Prefer"] = "return=representation"

        endpoint = f"{self.url}/rest/v1/{table}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                resp = await client.request(
                    method, endpoint, params=params, json=json, headers=headers
                )
        except httpx.HTTPError as exc:
            logger.error("Supabase %s %s failed: %s", method, table, exc)
            raise ContentStoreError(f"Content store unreachable: {exc}") from exc

        if resp.status_code >= 400:
            raise ContentStoreError(_error_message(resp), status_code=resp.status_code)

        if not resp.content:
            return []
        try:
            data = resp.json()
        except ValueError as exc:
            logger.error("Supabase %s %s returned a malformed body: %s", method, table, exc)
            raise ContentStoreError(
                f"Malformed response from content store: {exc}",
                status_code=resp.status_code,
            ) from exc
        return data if isinstance(data, list) else [data]


def _error_message(resp: httpx.Response) -> str:
    """Pull PostgREST's ``message`` field out of an error body when present."""
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"HTTP {resp.status_code}"

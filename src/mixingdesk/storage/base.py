"""
Content store interface consumed by the tools and the HTTP layer.

The kiosk's library items, agent OS records, visits and image assets live in
an external store. Everything in ``mixingdesk`` reaches it through the
``ContentStore`` Protocol so tests can substitute a double.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


class ContentStoreError(Exception):
    """Raised when the backing store rejects or fails a request.

    Attributes:
        status_code: HTTP status returned by the store, if any.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class VisitNotFoundError(ContentStoreError):
    """Raised when a visit id does not match any record."""


@runtime_checkable
class ContentStore(Protocol):
    """Key-based lookup and blob-URL resolution for kiosk content."""

    async def asset_url(self, path: str) -> str:
        """Return a public URL for an image asset."""
        ...

    async def search_library(self, query: str) -> list[dict[str, Any]]:
        """Return library items whose title or topics match *query*."""
        ...

    async def get_agent_os(self, agent_name: str) -> dict[str, Any] | None:
        """Return the active agent OS record named *agent_name*, if any."""
        ...

    async def get_visit(self, visit_id: str) -> dict[str, Any] | None:
        ...

    async def create_visit(
        self, visitor_name: str | None = None, initial_note: str | None = None
    ) -> dict[str, Any]:
        ...

    async def add_visit_note(
        self, visit_id: str, source: str, content: str
    ) -> dict[str, Any]:
        ...

    async def update_visit_status(self, visit_id: str, status: str) -> dict[str, Any]:
        ...

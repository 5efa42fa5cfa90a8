"""Content storage collaborators (library, agent OS, visits, image assets)."""

from mixingdesk.storage.base import ContentStore, ContentStoreError, VisitNotFoundError
from mixingdesk.storage.supabase import SupabaseContentStore

__all__ = [
    "ContentStore",
    "ContentStoreError",
    "SupabaseContentStore",
    "VisitNotFoundError",
]

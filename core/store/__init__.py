# =============================================================================
# core/store/ - Persistence Layer
# =============================================================================
# EarningsStore is the only way services touch storage:
# - base.py: abstract contract
# - supabase_store.py: Supabase (PostgREST) implementation
# =============================================================================

from core.store.base import EarningsStore
from core.store.supabase_store import SupabaseEarningsStore

__all__ = [
    "EarningsStore",
    "SupabaseEarningsStore",
]

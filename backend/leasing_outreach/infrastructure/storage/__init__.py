"""
Storage Package
Supabase-backed task store
"""
from .supabase_store import SupabaseOutreachStore, get_supabase_store

__all__ = [
    "SupabaseOutreachStore",
    "get_supabase_store",
]

"""Storage layer."""

from storage.seed import seed_defaults
from storage.store import VettingStore, get_storage, reset_storage

__all__ = ["VettingStore", "get_storage", "reset_storage", "seed_defaults"]

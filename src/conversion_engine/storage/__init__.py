"""Profile persistence."""

from .kv import KeyValueStore, MemoryKeyValueStore, FileKeyValueStore
from .models import Attribution, EngagementActivity, LeadPredictions, LeadProfile, StatusTransition
from .profile_store import ProfileStore

__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "FileKeyValueStore",
    "Attribution",
    "EngagementActivity",
    "LeadPredictions",
    "LeadProfile",
    "StatusTransition",
    "ProfileStore",
]

"""Durable profile storage with eviction and a degraded write path."""

import json
import logging
from typing import Dict, List, Optional, Tuple

from ..core.errors import StorageError, StorageQuotaExceeded
from .kv import KeyValueStore
from .models import LeadProfile

logger = logging.getLogger(__name__)

PROFILE_PREFIX = "profile:"
SUMMARY_KEYS = ("visitor_status", "engagement_score", "conversion_readiness")


class ProfileStore:
    """Reads and writes lead profiles in a namespaced key/value area.

    Every profile lives under ``<namespace>profile:<session_id>``. The active
    profile's status, score and readiness are mirrored under summary keys so
    lightweight readers do not have to parse the full record.

    When the area is full the store evicts stale profiles, then retries once
    with a minimal record. A write that still fails is logged and dropped;
    the caller's in-memory profile stays authoritative.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        namespace: str = "lead_engine:",
        persisted_activity_cap: int = 50,
        retention_count: int = 5,
        minimal_activity_tail: int = 5,
    ):
        self.kv = kv
        self.namespace = namespace
        self.persisted_activity_cap = persisted_activity_cap
        self.retention_count = retention_count
        self.minimal_activity_tail = minimal_activity_tail

    def profile_key(self, session_id: str) -> str:
        return f"{self.namespace}{PROFILE_PREFIX}{session_id}"

    def summary_key(self, name: str) -> str:
        return f"{self.namespace}{name}"

    def _session_id_from_key(self, key: str) -> Optional[str]:
        prefix = self.namespace + PROFILE_PREFIX
        if key.startswith(prefix):
            return key[len(prefix):]
        return None

    def save(self, session_id: str, profile: LeadProfile) -> bool:
        """Persist a profile. Returns False when the write had to be dropped."""
        record = profile.to_dict(activity_limit=self.persisted_activity_cap)

        try:
            self._write(session_id, record)
        except StorageQuotaExceeded as e:
            logger.warning(f"Storage quota exceeded saving {session_id}, evicting stale profiles: {e}")
        except StorageError as e:
            logger.error(f"Error saving profile {session_id}: {e}")
            return False
        except (TypeError, ValueError) as e:
            logger.error(f"Could not serialize profile {session_id}: {e}")
            return False
        else:
            self._write_summary(session_id, profile)
            return True

        try:
            self.evict(session_id)
        except StorageError as e:
            logger.error(f"Eviction failed while saving {session_id}: {e}")

        minimal = profile.to_dict(activity_limit=self.minimal_activity_tail, minimal=True)
        try:
            self._write(session_id, minimal)
        except (StorageError, TypeError, ValueError) as e:
            logger.error(f"Dropped profile write for {session_id}: {e}")
            return False
        logger.warning(f"Saved minimal record for {session_id} after eviction")
        self._write_summary(session_id, profile)
        return True

    def _write(self, session_id: str, record: Dict):
        # Free-form metadata values such as datetimes are stored as their str()
        self.kv.set(self.profile_key(session_id), json.dumps(record, default=str))

    def _write_summary(self, session_id: str, profile: LeadProfile):
        """Mirror the summary keys. The full record is already stored, so failures only log."""
        try:
            self.kv.set(self.summary_key("visitor_status"), profile.status.value)
            self.kv.set(self.summary_key("engagement_score"), str(profile.engagement_score))
            self.kv.set(self.summary_key("conversion_readiness"), str(profile.conversion_readiness))
        except StorageError as e:
            logger.warning(f"Profile {session_id} saved but summary keys are stale: {e}")

    def load(self, session_id: str) -> Optional[LeadProfile]:
        """Load a profile, or None if it is missing or unreadable."""
        try:
            raw = self.kv.get(self.profile_key(session_id))
        except StorageError as e:
            logger.error(f"Error reading profile {session_id}: {e}")
            return None

        if raw is None:
            return None

        profile = self._parse(raw)
        if profile is None:
            logger.error(f"Discarding corrupt profile record for {session_id}")
        return profile

    def _parse(self, raw: str) -> Optional[LeadProfile]:
        try:
            return LeadProfile.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError, AttributeError):
            return None

    def list_profiles(self) -> List[LeadProfile]:
        """All readable profiles in the namespace."""
        profiles = []
        for session_id, profile in self._scan():
            if profile is not None:
                profiles.append(profile)
        return profiles

    def _scan(self) -> List[Tuple[str, Optional[LeadProfile]]]:
        results = []
        try:
            keys = self.kv.keys()
        except StorageError as e:
            logger.error(f"Error listing stored profiles: {e}")
            return results

        for key in keys:
            session_id = self._session_id_from_key(key)
            if session_id is None:
                continue
            try:
                raw = self.kv.get(key)
            except StorageError as e:
                logger.error(f"Error reading {key}: {e}")
                continue
            if raw is None:
                continue
            results.append((session_id, self._parse(raw)))
        return results

    def evict(self, active_session_id: str) -> List[str]:
        """Free space in the namespace.

        Keeps the active profile and the ``retention_count`` most recently
        touched others. Removes every other profile, every unparseable profile
        record and every unrecognized key inside the namespace. Keys outside
        the namespace are never touched. Returns the removed keys.
        """
        removed: List[str] = []
        summary = {self.summary_key(name) for name in SUMMARY_KEYS}

        for key in self.kv.keys():
            if not key.startswith(self.namespace):
                continue
            if key in summary or self._session_id_from_key(key) is not None:
                continue
            self.kv.remove(key)
            removed.append(key)

        candidates = []
        for session_id, profile in self._scan():
            if session_id == active_session_id:
                continue
            if profile is None:
                key = self.profile_key(session_id)
                self.kv.remove(key)
                removed.append(key)
                continue
            candidates.append(profile)

        candidates.sort(key=lambda p: p.last_activity, reverse=True)
        for profile in candidates[self.retention_count:]:
            key = self.profile_key(profile.id)
            self.kv.remove(key)
            removed.append(key)

        purged = self.kv.purge_temporary()

        if removed or purged:
            logger.info(f"Evicted {len(removed)} keys and {purged} temporary files")
        return removed

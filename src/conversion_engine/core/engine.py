"""Lead scoring engine - turns visitor triggers into a scored, classified profile.

The engine keeps one profile per session in memory and writes it through to a
``ProfileStore`` after every mutation. Reads go to memory first and fall back
to the store. Callers always receive deep copies; mutating a returned profile
never changes engine state.
"""

import copy
import logging
import math
import secrets
import threading
import time
import weakref
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional, Union

from .catalog import Category, EngagementAction, TriggerKind, points_for, resolve_trigger
from .config import EngineConfig
from .metadata import ManualOverrideMeta, TriggerMetadata, parse_metadata
from .predictions import calculate_conversion_readiness, generate_predictions
from .status import (
    STATUS_FLOW,
    VisitorStatus,
    derive_status,
    next_status,
    nurturing_sequences,
    progress_to_next,
    recommendations,
    threshold_for,
)
from ..storage.kv import MemoryKeyValueStore
from ..storage.models import EngagementActivity, LeadProfile, StatusTransition
from ..storage.profile_store import ProfileStore
from ..tracking.attribution import PageContext, capture_attribution
from ..tracking.telemetry import TelemetryEmitter

logger = logging.getLogger(__name__)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def new_session_id() -> str:
    """Generate a browsing-session id: ``session_<epoch ms>_<9 base36 chars>``."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"session_{int(time.time() * 1000)}_{suffix}"


class LeadScoringEngine:
    """Applies engagement triggers to lead profiles and keeps them persisted."""

    def __init__(
        self,
        store: Optional[ProfileStore] = None,
        telemetry: Optional[TelemetryEmitter] = None,
        config: Optional[EngineConfig] = None,
        page_context: Optional[PageContext] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config or EngineConfig()
        self.store = store or ProfileStore(
            MemoryKeyValueStore(max_bytes=self.config.storage_quota_bytes),
            namespace=self.config.namespace,
            persisted_activity_cap=self.config.persisted_activity_cap,
            retention_count=self.config.retention_count,
            minimal_activity_tail=self.config.minimal_activity_tail,
        )
        self.telemetry = telemetry or TelemetryEmitter(None)
        self.page_context = page_context or PageContext()
        self.clock = clock

        self._profiles: Dict[str, LeadProfile] = {}
        # Entries vanish once no caller holds the lock
        self._locks = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _lock_for(self, session_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[session_id] = lock
            return lock

    # === Cache / store tiers ===

    def _lookup(self, session_id: str) -> Optional[LeadProfile]:
        """Read-through: memory first, then the durable store."""
        profile = self._profiles.get(session_id)
        if profile is None:
            profile = self.store.load(session_id)
            if profile is not None:
                self._profiles[session_id] = profile
        return profile

    def _create(self, session_id: str) -> LeadProfile:
        now = self.clock()
        source, attribution = capture_attribution(self.page_context)
        profile = LeadProfile(
            id=session_id,
            created_at=now,
            last_activity=now,
            source=source,
            attribution=attribution,
        )
        profile.conversion_readiness = calculate_conversion_readiness(profile, now)
        profile.predictions = generate_predictions(profile, now)
        self._profiles[session_id] = profile
        logger.info(f"Created lead profile {session_id} (source: {source})")
        return profile

    def _load_or_create(self, session_id: str) -> LeadProfile:
        profile = self._lookup(session_id)
        if profile is None:
            profile = self._create(session_id)
        return profile

    # === Mutation ===

    def _record(
        self,
        profile: LeadProfile,
        action: EngagementAction,
        points: float,
        metadata: TriggerMetadata,
        now: datetime,
    ) -> EngagementActivity:
        """Add points to the accumulators and append the activity."""
        profile.engagement_score += points
        if action.category == Category.BEHAVIORAL:
            profile.behavioral_score += points
        elif action.category == Category.DEMOGRAPHIC:
            profile.demographic_score += points
        elif action.category == Category.ENGAGEMENT:
            profile.behavioral_score += math.floor(points / 2)

        activity = EngagementActivity(
            timestamp=now,
            trigger=action.trigger,
            points=points,
            page_url=metadata.page_url or self.page_context.url,
            metadata=metadata,
        )
        profile.activities.append(activity)
        overflow = len(profile.activities) - self.config.activity_cap
        if overflow > 0:
            del profile.activities[:overflow]

        key = action.trigger.value
        profile.trigger_counts[key] = profile.trigger_counts.get(key, 0) + 1
        profile.last_activity = now
        return activity

    def _transition(
        self,
        profile: LeadProfile,
        previous: VisitorStatus,
        trigger: Optional[TriggerKind],
        now: datetime,
        manual: bool = False,
    ):
        profile.status_history.append(StatusTransition(
            from_status=previous,
            to_status=profile.status,
            trigger=trigger,
            timestamp=now,
            manual=manual,
        ))
        overflow = len(profile.status_history) - self.config.status_history_cap
        if overflow > 0:
            del profile.status_history[:overflow]
        logger.info(
            f"Lead {profile.id} moved {previous.value} -> {profile.status.value}"
            f"{' (manual)' if manual else ''}"
        )

    def _refresh(self, profile: LeadProfile, now: datetime):
        profile.conversion_readiness = calculate_conversion_readiness(profile, now)
        profile.predictions = generate_predictions(profile, now)

    def _publish(
        self,
        snapshot: LeadProfile,
        previous: VisitorStatus,
        activity: EngagementActivity,
    ):
        if snapshot.status != previous:
            self.telemetry.emit_status_progression(
                snapshot,
                previous,
                activity.trigger,
                nurturing_sequences(previous, snapshot.status),
                page_url=activity.page_url,
                timestamp=activity.timestamp,
            )
        self.telemetry.emit_engagement_action(snapshot, activity)

    def apply_trigger(
        self,
        session_id: str,
        trigger: Union[TriggerKind, str],
        metadata: Optional[Union[TriggerMetadata, Mapping[str, Any]]] = None,
    ) -> LeadProfile:
        """Score one visitor action and return the updated profile.

        Raises UnknownTrigger for anything outside the catalog and ValueError
        for a negative or non-finite multiplier. Neither touches stored or
        cached state. Storage and telemetry failures are contained and never
        raised here.
        """
        action = points_for(resolve_trigger(trigger))
        meta = parse_metadata(action.trigger, metadata)
        multiplier = meta.effective_multiplier()
        if not math.isfinite(multiplier):
            raise ValueError(f"Multiplier must be a finite number, got {multiplier}")
        if multiplier < 0:
            raise ValueError(f"Multiplier must not be negative, got {multiplier}")

        with self._lock_for(session_id):
            profile = self._load_or_create(session_id)
            previous = profile.status
            now = self.clock()

            activity = self._record(profile, action, action.points * multiplier, meta, now)

            derived = derive_status(profile.engagement_score, profile.trigger_counts)
            profile.status = max(previous, derived)
            if profile.status != previous:
                self._transition(profile, previous, action.trigger, now)

            self._refresh(profile, now)
            self.store.save(session_id, profile)
            snapshot = copy.deepcopy(profile)

        self._publish(snapshot, previous, copy.deepcopy(activity))
        return snapshot

    def manual_status_override(
        self,
        session_id: str,
        target_status: Union[VisitorStatus, str],
    ) -> LeadProfile:
        """Force a profile into a status, up or down.

        Injects a synthetic high-engagement trigger worth the distance to the
        target's score floor (zero when already past it) so the accumulators
        stay consistent with the activity log.
        """
        target = VisitorStatus(target_status)
        action = points_for(TriggerKind.HIGH_ENGAGEMENT)
        meta = ManualOverrideMeta(target_status=target.value)

        with self._lock_for(session_id):
            profile = self._load_or_create(session_id)
            previous = profile.status
            now = self.clock()

            points = max(threshold_for(target).min_score - profile.engagement_score, 0)
            activity = self._record(profile, action, points, meta, now)

            profile.status = target
            if target != previous:
                self._transition(profile, previous, action.trigger, now, manual=True)
            logger.info(f"Manual override of {session_id} to {target.value} (+{points} points)")

            self._refresh(profile, now)
            self.store.save(session_id, profile)
            snapshot = copy.deepcopy(profile)

        self._publish(snapshot, previous, copy.deepcopy(activity))
        return snapshot

    # === Reads ===

    def get_current_profile(self, session_id: str) -> Optional[LeadProfile]:
        """Snapshot of a session's profile, or None if it has none yet."""
        with self._lock_for(session_id):
            profile = self._lookup(session_id)
            if profile is None:
                return None
            return copy.deepcopy(profile)

    def get_or_create_profile(self, session_id: str) -> LeadProfile:
        """Snapshot of a session's profile, creating and persisting it if needed."""
        with self._lock_for(session_id):
            profile = self._lookup(session_id)
            if profile is None:
                profile = self._create(session_id)
                self.store.save(session_id, profile)
            return copy.deepcopy(profile)

    def get_status_distribution(self) -> Dict[VisitorStatus, int]:
        """Profiles per status across memory and the durable store."""
        distribution = {status: 0 for status in STATUS_FLOW}
        cached = dict(self._profiles)

        for profile in cached.values():
            distribution[profile.status] += 1
        for profile in self.store.list_profiles():
            if profile.id not in cached:
                distribution[profile.status] += 1

        return distribution

    def get_conversion_funnel(self) -> Dict[str, float]:
        """Stage-to-stage conversion ratios derived from the distribution."""
        distribution = self.get_status_distribution()
        total = sum(distribution.values())

        # Profiles that reached each stage or beyond
        reached = {}
        running = 0
        for status in reversed(STATUS_FLOW):
            running += distribution[status]
            reached[status] = running

        def ratio(numerator: int, denominator: int) -> float:
            return round(numerator / denominator, 3) if denominator else 0.0

        return {
            "visitor_to_cold_lead": ratio(reached[VisitorStatus.COLD_LEAD], total),
            "cold_lead_to_candidate": ratio(reached[VisitorStatus.CANDIDATE], reached[VisitorStatus.COLD_LEAD]),
            "candidate_to_hot_lead": ratio(reached[VisitorStatus.HOT_LEAD], reached[VisitorStatus.CANDIDATE]),
            "overall_conversion": ratio(reached[VisitorStatus.HOT_LEAD], total),
        }

    def get_status_insights(self, session_id: str) -> Dict[str, Any]:
        """Where a session stands and what it should do next.

        Sessions without a profile get visitor defaults; nothing is created.
        """
        profile = self.get_current_profile(session_id)
        if profile is None:
            profile = LeadProfile(id=session_id)

        upcoming = next_status(profile.status)
        return {
            "session_id": session_id,
            "current_status": profile.status,
            "next_status": upcoming,
            "engagement_score": profile.engagement_score,
            "conversion_readiness": profile.conversion_readiness,
            "progress_to_next": progress_to_next(profile.status, profile.engagement_score),
            "recommendations": recommendations(profile),
            "conversion_probability": profile.predictions.conversion_probability,
            "time_to_conversion": profile.predictions.time_to_conversion,
            "next_best_action": profile.predictions.next_best_action,
        }

    new_session_id = staticmethod(new_session_id)

"""Status policy - maps accumulated score and trigger history to a visitor status."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

from .catalog import TriggerKind


class VisitorStatus(Enum):
    """Classification tier of a visitor, ordered by conversion likelihood."""

    VISITOR = "visitor"
    COLD_LEAD = "cold_lead"
    CANDIDATE = "candidate"
    HOT_LEAD = "hot_lead"

    @property
    def rank(self) -> int:
        return STATUS_FLOW.index(self)

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()

    def __lt__(self, other):
        if not isinstance(other, VisitorStatus):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, VisitorStatus):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, VisitorStatus):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, VisitorStatus):
            return NotImplemented
        return self.rank >= other.rank


STATUS_FLOW: List[VisitorStatus] = [
    VisitorStatus.VISITOR,
    VisitorStatus.COLD_LEAD,
    VisitorStatus.CANDIDATE,
    VisitorStatus.HOT_LEAD,
]


@dataclass(frozen=True)
class StatusThreshold:
    """Score window and promotion rules for one status.

    Two rules can promote a profile into the status. The qualified rule needs
    one of ``qualifying_triggers`` to have fired at least once and the score
    to reach ``qualified_min_score``. The score-only fallback needs nothing
    but ``fallback_min_score``. A ``None`` minimum disables that rule.
    """

    status: VisitorStatus
    min_score: float
    max_score: Optional[float]
    qualifying_triggers: Tuple[TriggerKind, ...] = ()
    qualified_min_score: Optional[float] = None
    fallback_min_score: Optional[float] = None
    description: str = ""

    def qualifies(self, score: float, trigger_counts: Mapping[str, int]) -> bool:
        return self.matched_rule(score, trigger_counts) is not None

    def matched_rule(self, score: float, trigger_counts: Mapping[str, int]) -> Optional[str]:
        """Name of the rule that admits the profile ("qualified" or "score")."""
        if self.qualified_min_score is not None and score >= self.qualified_min_score:
            if any(trigger_counts.get(t.value, 0) > 0 for t in self.qualifying_triggers):
                return "qualified"
        if self.fallback_min_score is not None and score >= self.fallback_min_score:
            return "score"
        return None

    @property
    def window(self) -> float:
        """Width of the score window. Open-ended windows are treated as 100 wide."""
        if self.max_score is None:
            return 100.0
        return self.max_score + 1 - self.min_score


# Ascending order
STATUS_THRESHOLDS: List[StatusThreshold] = [
    StatusThreshold(
        status=VisitorStatus.VISITOR,
        min_score=0,
        max_score=14,
        fallback_min_score=0,
        description="Initial visitor - exploring content",
    ),
    StatusThreshold(
        status=VisitorStatus.COLD_LEAD,
        min_score=15,
        max_score=74,
        qualifying_triggers=(TriggerKind.TOOL_USAGE,),
        qualified_min_score=0,
        fallback_min_score=15,
        description="Engaged visitor - showing interest",
    ),
    StatusThreshold(
        status=VisitorStatus.CANDIDATE,
        min_score=75,
        max_score=149,
        qualifying_triggers=(TriggerKind.EMAIL_VERIFIED, TriggerKind.REGISTRATION_COMPLETE),
        qualified_min_score=75,
        description="Qualified prospect - provided contact info",
    ),
    StatusThreshold(
        status=VisitorStatus.HOT_LEAD,
        min_score=150,
        max_score=None,
        qualifying_triggers=(TriggerKind.WEBINAR_REGISTERED,),
        qualified_min_score=100,
        fallback_min_score=150,
        description="Sales-ready lead - high conversion probability",
    ),
]

_THRESHOLDS_BY_STATUS: Dict[VisitorStatus, StatusThreshold] = {t.status: t for t in STATUS_THRESHOLDS}


def threshold_for(status: VisitorStatus) -> StatusThreshold:
    return _THRESHOLDS_BY_STATUS[status]


def derive_status(score: float, trigger_counts: Mapping[str, int]) -> VisitorStatus:
    """Highest status whose qualified rule or score-only fallback is met."""
    for threshold in reversed(STATUS_THRESHOLDS):
        if threshold.qualifies(score, trigger_counts):
            return threshold.status
    return VisitorStatus.VISITOR


def next_status(status: VisitorStatus) -> Optional[VisitorStatus]:
    """The status after this one, or None at the top of the funnel."""
    index = STATUS_FLOW.index(status)
    if index < len(STATUS_FLOW) - 1:
        return STATUS_FLOW[index + 1]
    return None


def progress_to_next(status: VisitorStatus, score: float) -> float:
    """Percent of the way from this status's floor to the next status's floor."""
    upcoming = next_status(status)
    if upcoming is None:
        return 100.0
    floor = threshold_for(status).min_score
    target = threshold_for(upcoming).min_score
    progress = (score - floor) / (target - floor) * 100
    return round(min(max(progress, 0.0), 100.0), 1)


# Nurture sequences started when a profile enters a status
NURTURING_SEQUENCES: Dict[VisitorStatus, List[str]] = {
    VisitorStatus.VISITOR: [],
    VisitorStatus.COLD_LEAD: ["engaged_visitor_welcome", "tool_user_series_14_day"],
    VisitorStatus.CANDIDATE: ["soft_member_welcome", "advanced_content_access", "office_visit_invitation"],
    VisitorStatus.HOT_LEAD: ["personalized_consultation_offer"],
}


def nurturing_sequences(previous: VisitorStatus, new: VisitorStatus) -> List[str]:
    """Sequences for every status entered on the way from previous to new."""
    if new <= previous:
        return []
    sequences: List[str] = []
    for status in STATUS_FLOW[previous.rank + 1:new.rank + 1]:
        sequences.extend(NURTURING_SEQUENCES[status])
    return sequences


def recommendations(profile) -> List[str]:
    """Curated next steps for a profile, skipping steps it already took."""
    status = profile.status
    recs: List[str] = []

    if status == VisitorStatus.VISITOR:
        if not profile.has_fired(TriggerKind.TOOL_USAGE):
            recs.append("Take an assessment tool to discover insights about yourself")
        if profile.engagement_score < 10:
            recs.append("Explore our content library to learn more")
        recs.append("Sign up for our newsletter to stay updated")

    elif status == VisitorStatus.COLD_LEAD:
        if not profile.has_fired(TriggerKind.EMAIL_VERIFIED):
            recs.append("Create an account to unlock more tools and features")
        recs.append("Complete your profile to get personalized recommendations")
        recs.append("Join our community to connect with like-minded individuals")

    elif status == VisitorStatus.CANDIDATE:
        if not profile.has_fired(TriggerKind.WEBINAR_REGISTERED):
            recs.append("Register for our transformation webinar")
        recs.append("Book a free strategy session with our experts")
        recs.append("Explore our premium programs and courses")

    elif status == VisitorStatus.HOT_LEAD:
        recs.append("Schedule a consultation to discuss your transformation journey")
        recs.append("Join our VIP program for exclusive access and support")
        recs.append("Become a transformation success story")

    return recs

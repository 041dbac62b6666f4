"""Conversion readiness and forward-looking predictions for a lead profile."""

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from .status import VisitorStatus, threshold_for
from ..storage.models import LeadPredictions

# (ceiling score, max points) for each readiness term
READINESS_ENGAGEMENT = (200, 40)
READINESS_DEMOGRAPHIC = (100, 25)
READINESS_BEHAVIORAL = (150, 20)
READINESS_RECENCY_POINTS = 3  # per activity in the window
READINESS_RECENCY_MAX = 15
RECENCY_WINDOW = timedelta(hours=24)

# Probability sub-range owned by each status
PROBABILITY_BANDS: Dict[VisitorStatus, Tuple[float, float]] = {
    VisitorStatus.VISITOR: (0.0, 0.15),
    VisitorStatus.COLD_LEAD: (0.25, 0.5),
    VisitorStatus.CANDIDATE: (0.5, 0.8),
    VisitorStatus.HOT_LEAD: (0.8, 0.95),
}

# (probability above, days) checked in order
TIME_TO_CONVERSION_BUCKETS: List[Tuple[float, int]] = [
    (0.7, 3),
    (0.5, 7),
    (0.3, 14),
    (0.15, 21),
]
DEFAULT_TIME_TO_CONVERSION = 30

CHURN_HORIZON_DAYS = 7

CONVERSION_PATHS: Dict[VisitorStatus, List[str]] = {
    VisitorStatus.VISITOR: ["tool_usage", "content_consumption", "form_interaction"],
    VisitorStatus.COLD_LEAD: ["email_verified", "registration_complete", "content_consumption"],
    VisitorStatus.CANDIDATE: ["webinar_registered", "high_engagement", "social_share"],
    VisitorStatus.HOT_LEAD: ["direct_contact", "consultation_booking", "program_enrollment"],
}

NEXT_BEST_ACTIONS: Dict[VisitorStatus, str] = {
    VisitorStatus.VISITOR: "Use an assessment tool to discover insights about yourself",
    VisitorStatus.COLD_LEAD: "Register to unlock more tools and personalized content",
    VisitorStatus.CANDIDATE: "Register for our transformation webinar",
    VisitorStatus.HOT_LEAD: "Book a personal transformation consultation",
}


def _capped_ratio(value: float, ceiling: float, max_points: float) -> float:
    return min(value / ceiling * max_points, max_points)


def calculate_conversion_readiness(profile, now: Optional[datetime] = None) -> int:
    """Blend engagement, demographic, behavioral and recency into 0-100."""
    now = now or datetime.now()

    readiness = 0.0
    readiness += _capped_ratio(profile.engagement_score, *READINESS_ENGAGEMENT)
    readiness += _capped_ratio(profile.demographic_score, *READINESS_DEMOGRAPHIC)
    readiness += _capped_ratio(profile.behavioral_score, *READINESS_BEHAVIORAL)

    recent = [a for a in profile.activities if now - a.timestamp < RECENCY_WINDOW]
    readiness += min(len(recent) * READINESS_RECENCY_POINTS, READINESS_RECENCY_MAX)

    return min(int(round(readiness)), 100)


def conversion_probability(status: VisitorStatus, score: float) -> float:
    """Interpolate inside the status's probability band by position in its score window."""
    low, high = PROBABILITY_BANDS[status]
    threshold = threshold_for(status)
    position = (score - threshold.min_score) / threshold.window
    position = min(max(position, 0.0), 1.0)
    return round(low + (high - low) * position, 2)


def time_to_conversion(probability: float) -> int:
    """Estimated days until conversion, stepping down as probability rises."""
    for above, days in TIME_TO_CONVERSION_BUCKETS:
        if probability > above:
            return days
    return DEFAULT_TIME_TO_CONVERSION


def risk_of_churn(last_activity: datetime, now: Optional[datetime] = None) -> float:
    """Linear ramp to certainty after a week of silence."""
    now = now or datetime.now()
    days_since = max((now - last_activity).total_seconds(), 0) / 86400
    return round(min(days_since / CHURN_HORIZON_DAYS, 1.0), 2)


def generate_predictions(profile, now: Optional[datetime] = None) -> LeadPredictions:
    """Recompute the whole prediction block from status, score and activity."""
    probability = conversion_probability(profile.status, profile.engagement_score)
    return LeadPredictions(
        conversion_probability=probability,
        time_to_conversion=time_to_conversion(probability),
        best_conversion_path=list(CONVERSION_PATHS[profile.status]),
        next_best_action=NEXT_BEST_ACTIONS[profile.status],
        risk_of_churn=risk_of_churn(profile.last_activity, now),
    )

"""Tests for readiness and prediction heuristics."""

from datetime import datetime, timedelta

from conversion_engine.core.catalog import TriggerKind
from conversion_engine.core.predictions import (
    CONVERSION_PATHS,
    NEXT_BEST_ACTIONS,
    calculate_conversion_readiness,
    conversion_probability,
    generate_predictions,
    risk_of_churn,
    time_to_conversion,
)
from conversion_engine.core.status import VisitorStatus
from conversion_engine.storage.models import EngagementActivity, LeadProfile

NOW = datetime(2024, 6, 1, 12, 0, 0)


def _activities(count, age):
    return [
        EngagementActivity(timestamp=NOW - age, trigger=TriggerKind.CONTENT_CONSUMPTION, points=5)
        for _ in range(count)
    ]


class TestConversionReadiness:
    """Tests for the readiness blend."""

    def test_empty_profile(self):
        assert calculate_conversion_readiness(LeadProfile(id="s1"), NOW) == 0

    def test_every_term_capped(self):
        profile = LeadProfile(
            id="s1",
            engagement_score=400,
            demographic_score=200,
            behavioral_score=300,
            activities=_activities(10, timedelta(minutes=5)),
        )
        assert calculate_conversion_readiness(profile, NOW) == 100

    def test_old_activity_earns_no_recency(self):
        profile = LeadProfile(id="s1", activities=_activities(4, timedelta(days=2)))
        assert calculate_conversion_readiness(profile, NOW) == 0

    def test_partial_terms(self):
        # 20/200*40 + 10/150*20 + 1*3 = 8.33
        profile = LeadProfile(
            id="s1",
            engagement_score=20,
            behavioral_score=10,
            activities=_activities(1, timedelta(0)),
        )
        assert calculate_conversion_readiness(profile, NOW) == 8


class TestPredictions:
    """Tests for probability, timing and churn."""

    def test_probability_at_window_floor(self):
        assert conversion_probability(VisitorStatus.VISITOR, 0) == 0.0
        assert conversion_probability(VisitorStatus.CANDIDATE, 75) == 0.5

    def test_probability_interpolates(self):
        assert conversion_probability(VisitorStatus.VISITOR, 14) == 0.14
        assert conversion_probability(VisitorStatus.CANDIDATE, 112.5) == 0.65

    def test_probability_clamped_to_band(self):
        assert conversion_probability(VisitorStatus.HOT_LEAD, 1000) == 0.95
        # Forced status below its floor stays at the band's low end
        assert conversion_probability(VisitorStatus.HOT_LEAD, 20) == 0.8

    def test_time_to_conversion_buckets(self):
        assert time_to_conversion(0.9) == 3
        assert time_to_conversion(0.7) == 7
        assert time_to_conversion(0.6) == 7
        assert time_to_conversion(0.4) == 14
        assert time_to_conversion(0.2) == 21
        assert time_to_conversion(0.1) == 30

    def test_risk_of_churn(self):
        assert risk_of_churn(NOW, NOW) == 0.0
        assert risk_of_churn(NOW - timedelta(days=3, hours=12), NOW) == 0.5
        assert risk_of_churn(NOW - timedelta(days=30), NOW) == 1.0

    def test_generate_predictions(self):
        profile = LeadProfile(
            id="s1",
            status=VisitorStatus.HOT_LEAD,
            engagement_score=190,
            last_activity=NOW,
        )
        predictions = generate_predictions(profile, NOW)
        assert predictions.conversion_probability == 0.86
        assert predictions.time_to_conversion == 3
        assert predictions.best_conversion_path == CONVERSION_PATHS[VisitorStatus.HOT_LEAD]
        assert predictions.next_best_action == NEXT_BEST_ACTIONS[VisitorStatus.HOT_LEAD]
        assert predictions.risk_of_churn == 0.0

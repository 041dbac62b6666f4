"""Data models for lead profiles."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any

from ..core.catalog import TriggerKind
from ..core.metadata import TriggerMetadata, GenericMeta, parse_metadata
from ..core.status import VisitorStatus


def _parse_dt(value: Optional[str], default: Optional[datetime] = None) -> Optional[datetime]:
    if not value:
        return default
    return datetime.fromisoformat(value)


@dataclass
class Attribution:
    """Referring context captured once when a profile is created."""

    content_id: Optional[str] = None
    member_id: Optional[str] = None
    platform: Optional[str] = None
    referrer: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    landing_page: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v is not None}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Attribution":
        data = data or {}
        return cls(**{k: data.get(k) for k in cls.__dataclass_fields__})


@dataclass
class EngagementActivity:
    """One applied trigger in a profile's activity log."""

    timestamp: datetime
    trigger: TriggerKind
    points: float
    page_url: str = ""
    metadata: TriggerMetadata = field(default_factory=GenericMeta)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "trigger": self.trigger.value,
            "points": self.points,
            "page_url": self.page_url,
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngagementActivity":
        trigger = TriggerKind(data["trigger"])
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            trigger=trigger,
            points=data.get("points", 0),
            page_url=data.get("page_url", ""),
            metadata=parse_metadata(trigger, data.get("metadata")),
        )


@dataclass
class LeadPredictions:
    """Forecast derived from status, score and activity. Never hand-edited."""

    conversion_probability: float = 0.1
    time_to_conversion: int = 30  # days
    best_conversion_path: List[str] = field(default_factory=lambda: [
        "tool_usage", "email_verified", "webinar_registered",
    ])
    next_best_action: str = "Use assessment tool"
    risk_of_churn: float = 0.8

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conversion_probability": self.conversion_probability,
            "time_to_conversion": self.time_to_conversion,
            "best_conversion_path": list(self.best_conversion_path),
            "next_best_action": self.next_best_action,
            "risk_of_churn": self.risk_of_churn,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "LeadPredictions":
        if not data:
            return cls()
        default = cls()
        return cls(
            conversion_probability=data.get("conversion_probability", default.conversion_probability),
            time_to_conversion=data.get("time_to_conversion", default.time_to_conversion),
            best_conversion_path=data.get("best_conversion_path", default.best_conversion_path),
            next_best_action=data.get("next_best_action", default.next_best_action),
            risk_of_churn=data.get("risk_of_churn", default.risk_of_churn),
        )


@dataclass
class StatusTransition:
    """Record of a status change."""

    from_status: VisitorStatus
    to_status: VisitorStatus
    trigger: Optional[TriggerKind]
    timestamp: datetime
    manual: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from_status": self.from_status.value,
            "to_status": self.to_status.value,
            "trigger": self.trigger.value if self.trigger else None,
            "timestamp": self.timestamp.isoformat(),
            "manual": self.manual,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StatusTransition":
        return cls(
            from_status=VisitorStatus(data["from_status"]),
            to_status=VisitorStatus(data["to_status"]),
            trigger=TriggerKind(data["trigger"]) if data.get("trigger") else None,
            timestamp=datetime.fromisoformat(data["timestamp"]),
            manual=data.get("manual", False),
        )


@dataclass
class LeadProfile:
    """Everything the engine knows about one browsing session."""

    id: str
    status: VisitorStatus = VisitorStatus.VISITOR

    # Accumulators
    engagement_score: float = 0
    behavioral_score: float = 0
    demographic_score: float = 0
    conversion_readiness: int = 0

    # Timestamps
    created_at: datetime = field(default_factory=datetime.now)
    last_activity: datetime = field(default_factory=datetime.now)

    # Attribution
    source: str = "direct"
    attribution: Attribution = field(default_factory=Attribution)

    # History
    activities: List[EngagementActivity] = field(default_factory=list)
    trigger_counts: Dict[str, int] = field(default_factory=dict)
    status_history: List[StatusTransition] = field(default_factory=list)

    predictions: LeadPredictions = field(default_factory=LeadPredictions)

    def has_fired(self, trigger: TriggerKind) -> bool:
        """Whether a trigger was ever applied, including truncated history."""
        return self.trigger_counts.get(trigger.value, 0) > 0

    @property
    def retained_points(self) -> float:
        """Sum of points over the retained activity window."""
        return sum(a.points for a in self.activities)

    def to_dict(self, activity_limit: Optional[int] = None, minimal: bool = False) -> Dict[str, Any]:
        """Serialize for storage.

        ``activity_limit`` keeps only the newest entries of the log.
        ``minimal`` drops attribution, predictions and status history.
        """
        activities = self.activities
        if activity_limit is not None:
            activities = activities[-activity_limit:] if activity_limit > 0 else []

        data = {
            "id": self.id,
            "status": self.status.value,
            "engagement_score": self.engagement_score,
            "behavioral_score": self.behavioral_score,
            "demographic_score": self.demographic_score,
            "conversion_readiness": self.conversion_readiness,
            "created_at": self.created_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
            "trigger_counts": dict(self.trigger_counts),
            "activities": [a.to_dict() for a in activities],
        }
        if minimal:
            data["minimal"] = True
            return data

        data.update({
            "source": self.source,
            "attribution": self.attribution.to_dict(),
            "status_history": [t.to_dict() for t in self.status_history],
            "predictions": self.predictions.to_dict(),
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LeadProfile":
        now = datetime.now()
        return cls(
            id=data["id"],
            status=VisitorStatus(data.get("status", "visitor")),
            engagement_score=data.get("engagement_score", 0),
            behavioral_score=data.get("behavioral_score", 0),
            demographic_score=data.get("demographic_score", 0),
            conversion_readiness=data.get("conversion_readiness", 0),
            created_at=_parse_dt(data.get("created_at"), now),
            last_activity=_parse_dt(data.get("last_activity"), now),
            source=data.get("source", "direct"),
            attribution=Attribution.from_dict(data.get("attribution")),
            activities=[EngagementActivity.from_dict(a) for a in data.get("activities", [])],
            trigger_counts=dict(data.get("trigger_counts", {})),
            status_history=[StatusTransition.from_dict(t) for t in data.get("status_history", [])],
            predictions=LeadPredictions.from_dict(data.get("predictions")),
        )

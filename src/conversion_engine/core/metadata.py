"""Typed metadata attached to a trigger.

Each trigger kind has a small dataclass describing the fields callers send
with it. Anything the shape does not name is kept in ``extra`` so newer
callers can attach fields without breaking older engines. The only field the
engine itself reads is the point multiplier.
"""

from dataclasses import dataclass, field, fields
from typing import Any, ClassVar, Dict, Mapping, Optional, Type, Union

from .catalog import TriggerKind, resolve_trigger


@dataclass
class TriggerMetadata:
    """Fields common to every trigger."""

    kind: ClassVar[str] = "generic"

    multiplier: Optional[float] = None
    page_url: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def effective_multiplier(self) -> float:
        """Multiplier applied to the catalog's base points."""
        if self.multiplier is None:
            return 1.0
        return float(self.multiplier)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "extra":
                if value:
                    data["extra"] = dict(value)
            elif value is not None:
                data[f.name] = value
        return data


@dataclass
class GenericMeta(TriggerMetadata):
    """Fallback bag for triggers without a dedicated shape."""
    kind: ClassVar[str] = "generic"


@dataclass
class TimeOnSiteMeta(TriggerMetadata):
    """Minutes spent on site. Minutes double as the multiplier."""
    kind: ClassVar[str] = "time_on_site"

    minutes: Optional[float] = None
    initial_visit: bool = False

    def effective_multiplier(self) -> float:
        if self.multiplier is not None:
            return float(self.multiplier)
        if self.minutes:
            return float(self.minutes)
        return 1.0


@dataclass
class ToolUsageMeta(TriggerMetadata):
    kind: ClassVar[str] = "tool_usage"

    tool_id: Optional[str] = None
    tool_name: Optional[str] = None


@dataclass
class FormInteractionMeta(TriggerMetadata):
    kind: ClassVar[str] = "form_interaction"

    form_type: Optional[str] = None


@dataclass
class ContentConsumptionMeta(TriggerMetadata):
    kind: ClassVar[str] = "content_consumption"

    content_type: Optional[str] = None
    content_id: Optional[str] = None


@dataclass
class WebinarMeta(TriggerMetadata):
    kind: ClassVar[str] = "webinar_registered"

    webinar_id: Optional[str] = None


@dataclass
class HighEngagementMeta(TriggerMetadata):
    kind: ClassVar[str] = "high_engagement"

    engagement_type: Optional[str] = None


@dataclass
class ReferralClickMeta(TriggerMetadata):
    kind: ClassVar[str] = "referral_click"

    referral_source: Optional[str] = None


@dataclass
class SocialShareMeta(TriggerMetadata):
    kind: ClassVar[str] = "social_share"

    platform: Optional[str] = None
    shared_url: Optional[str] = None


@dataclass
class ManualOverrideMeta(TriggerMetadata):
    """Marks the synthetic trigger injected by an administrative override."""
    kind: ClassVar[str] = "manual_override"

    target_status: str = ""


METADATA_TYPES: Dict[TriggerKind, Type[TriggerMetadata]] = {
    TriggerKind.TIME_ON_SITE: TimeOnSiteMeta,
    TriggerKind.TOOL_USAGE: ToolUsageMeta,
    TriggerKind.FORM_INTERACTION: FormInteractionMeta,
    TriggerKind.CONTENT_CONSUMPTION: ContentConsumptionMeta,
    TriggerKind.WEBINAR_REGISTERED: WebinarMeta,
    TriggerKind.HIGH_ENGAGEMENT: HighEngagementMeta,
    TriggerKind.REFERRAL_CLICK: ReferralClickMeta,
    TriggerKind.SOCIAL_SHARE: SocialShareMeta,
}

# Field names older front-end callers send
FIELD_ALIASES = {
    "time_spent_minutes": "minutes",
    "session_duration": "minutes",
    "manual_update": "target_status",
}

_NUMERIC_FIELDS = {"multiplier", "minutes"}


def parse_metadata(
    trigger: Union[TriggerKind, str],
    raw: Optional[Union[TriggerMetadata, Mapping[str, Any]]] = None,
) -> TriggerMetadata:
    """Build the typed metadata shape for a trigger from a plain mapping."""
    if isinstance(raw, TriggerMetadata):
        return raw

    kind = resolve_trigger(trigger)
    data = dict(raw or {})
    tag = data.pop("kind", None)

    if tag == ManualOverrideMeta.kind or "manual_update" in data:
        cls: Type[TriggerMetadata] = ManualOverrideMeta
    else:
        cls = METADATA_TYPES.get(kind, GenericMeta)

    known = {f.name for f in fields(cls)}
    kwargs: Dict[str, Any] = {}
    extra: Dict[str, Any] = dict(data.pop("extra", None) or {})

    for key, value in data.items():
        name = FIELD_ALIASES.get(key, key)
        if name in known and name != "extra":
            if name in _NUMERIC_FIELDS and value is not None:
                try:
                    value = float(value)
                except (TypeError, ValueError):
                    raise ValueError(f"Metadata field {key!r} must be numeric, got {value!r}")
            # First writer wins when an alias and the real name both appear
            kwargs.setdefault(name, value)
        else:
            extra[key] = value

    return cls(extra=extra, **kwargs)

"""Engagement catalog - point values for every recognized visitor action."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Union

from .errors import UnknownTrigger


class TriggerKind(Enum):
    """Visitor actions the engine knows how to score."""

    TIME_ON_SITE = "time_on_site"
    TOOL_USAGE = "tool_usage"
    FORM_INTERACTION = "form_interaction"
    CONTENT_CONSUMPTION = "content_consumption"
    EMAIL_VERIFIED = "email_verified"
    REGISTRATION_COMPLETE = "registration_complete"
    WEBINAR_REGISTERED = "webinar_registered"
    HIGH_ENGAGEMENT = "high_engagement"
    REFERRAL_CLICK = "referral_click"
    SOCIAL_SHARE = "social_share"


class Category(Enum):
    """Which accumulator an action feeds."""

    BEHAVIORAL = "behavioral"
    DEMOGRAPHIC = "demographic"
    FIRMOGRAPHIC = "firmographic"
    ENGAGEMENT = "engagement"


@dataclass(frozen=True)
class EngagementAction:
    """A catalog entry: base points, weight and category for one trigger."""

    trigger: TriggerKind
    points: int
    weight: float
    category: Category
    description: str = ""


ENGAGEMENT_ACTIONS: Dict[TriggerKind, EngagementAction] = {
    TriggerKind.TIME_ON_SITE: EngagementAction(
        TriggerKind.TIME_ON_SITE, 1, 1.0, Category.BEHAVIORAL, "Time spent on site (per minute)"),
    TriggerKind.TOOL_USAGE: EngagementAction(
        TriggerKind.TOOL_USAGE, 20, 2.5, Category.ENGAGEMENT, "Used assessment tool"),
    TriggerKind.FORM_INTERACTION: EngagementAction(
        TriggerKind.FORM_INTERACTION, 15, 2.0, Category.ENGAGEMENT, "Interacted with form"),
    TriggerKind.CONTENT_CONSUMPTION: EngagementAction(
        TriggerKind.CONTENT_CONSUMPTION, 5, 1.2, Category.BEHAVIORAL, "Consumed content"),
    TriggerKind.EMAIL_VERIFIED: EngagementAction(
        TriggerKind.EMAIL_VERIFIED, 50, 3.0, Category.DEMOGRAPHIC, "Verified email address"),
    TriggerKind.REGISTRATION_COMPLETE: EngagementAction(
        TriggerKind.REGISTRATION_COMPLETE, 75, 4.0, Category.DEMOGRAPHIC, "Completed registration"),
    TriggerKind.WEBINAR_REGISTERED: EngagementAction(
        TriggerKind.WEBINAR_REGISTERED, 100, 5.0, Category.ENGAGEMENT, "Registered for webinar"),
    TriggerKind.HIGH_ENGAGEMENT: EngagementAction(
        TriggerKind.HIGH_ENGAGEMENT, 30, 2.0, Category.BEHAVIORAL, "High engagement session"),
    TriggerKind.REFERRAL_CLICK: EngagementAction(
        TriggerKind.REFERRAL_CLICK, 10, 1.5, Category.BEHAVIORAL, "Clicked referral link"),
    TriggerKind.SOCIAL_SHARE: EngagementAction(
        TriggerKind.SOCIAL_SHARE, 25, 2.0, Category.ENGAGEMENT, "Shared content socially"),
}


def resolve_trigger(trigger: Union[TriggerKind, str]) -> TriggerKind:
    """Coerce a trigger name into a TriggerKind or raise UnknownTrigger."""
    if isinstance(trigger, TriggerKind):
        return trigger
    try:
        return TriggerKind(trigger)
    except ValueError:
        raise UnknownTrigger(trigger) from None


def points_for(trigger: Union[TriggerKind, str]) -> EngagementAction:
    """Look up the catalog entry for a trigger."""
    kind = resolve_trigger(trigger)
    action = ENGAGEMENT_ACTIONS.get(kind)
    if action is None:
        raise UnknownTrigger(trigger)
    return action


def get_actions_by_category(category: Category) -> List[EngagementAction]:
    """Get all catalog entries for a specific category."""
    return [a for a in ENGAGEMENT_ACTIONS.values() if a.category == category]

"""Capture where a visitor came from when their profile is created."""

from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import parse_qs, urlparse

from ..storage.models import Attribution

# Short query parameters used by shared content links
CONTENT_PARAM = "c"
MEMBER_PARAM = "m"
PLATFORM_PARAM = "p"


@dataclass
class PageContext:
    """The page a visitor is on and the page that sent them there."""

    url: str = ""
    referrer: str = ""


def parse_source(referrer: Optional[str]) -> str:
    """Parse traffic source from referrer."""
    if not referrer:
        return 'direct'

    referrer = referrer.lower()
    if 'google' in referrer:
        return 'google'
    elif 'facebook' in referrer or 'fb.com' in referrer:
        return 'facebook'
    elif 'instagram' in referrer:
        return 'instagram'
    elif 'linkedin' in referrer or 'lnkd.in' in referrer:
        return 'linkedin'
    elif 'twitter' in referrer or 't.co/' in referrer:
        return 'twitter'
    elif 'bing' in referrer:
        return 'bing'

    return 'referral'


def parse_medium(referrer: Optional[str]) -> str:
    """Parse traffic medium from referrer."""
    if not referrer:
        return 'direct'

    source = parse_source(referrer)
    if source in ['google', 'bing']:
        return 'organic'
    elif source in ['facebook', 'instagram', 'linkedin', 'twitter']:
        return 'social'

    return 'referral'


def _first(params, name: str) -> Optional[str]:
    values = params.get(name)
    if values:
        return values[0]
    return None


def capture_attribution(context: Optional[PageContext]) -> Tuple[str, Attribution]:
    """Return the profile source and attribution for a page context.

    Explicit ``utm_source`` wins over the referrer. Shared-content links
    carry content, member and platform ids in ``c``, ``m`` and ``p``.
    """
    if context is None:
        return 'direct', Attribution()

    params = parse_qs(urlparse(context.url).query) if context.url else {}
    referrer = context.referrer or None

    attribution = Attribution(
        content_id=_first(params, CONTENT_PARAM),
        member_id=_first(params, MEMBER_PARAM),
        platform=_first(params, PLATFORM_PARAM),
        referrer=referrer,
        utm_source=_first(params, "utm_source"),
        utm_medium=_first(params, "utm_medium") or (parse_medium(referrer) if referrer else None),
        utm_campaign=_first(params, "utm_campaign"),
        landing_page=context.url or None,
    )

    source = attribution.utm_source or attribution.platform or parse_source(referrer)
    return source, attribution

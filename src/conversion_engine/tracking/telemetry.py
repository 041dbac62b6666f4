"""Best-effort delivery of scoring events to an analytics collector."""

import json
import logging
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests

from ..core.errors import TelemetryTransportFailure

logger = logging.getLogger(__name__)

STATUS_PROGRESSION = "status_progression"
ENGAGEMENT_ACTION = "engagement_action"


def json_safe(value: Any) -> Any:
    """Copy of value with anything JSON cannot encode turned into its str()."""
    return json.loads(json.dumps(value, default=str))


class TelemetryEmitter:
    """Posts scoring events as JSON, detached from the caller.

    Failures are logged and never reach the engine. With no endpoint
    configured the emitter is disabled and every emit is a no-op.
    """

    def __init__(
        self,
        endpoint_url: Optional[str] = None,
        timeout: float = 5.0,
        async_delivery: bool = True,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint_url = endpoint_url
        self.timeout = timeout
        self.async_delivery = async_delivery
        self.session = session or requests.Session()
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return bool(self.endpoint_url)

    def emit(self, event_type: str, event_data: Dict[str, Any], session_id: str, page_url: str = ""):
        """Queue one event for delivery."""
        if not self.enabled:
            logger.debug(f"Telemetry disabled, skipping {event_type} for {session_id}")
            return

        payload = {
            "event_type": event_type,
            "event_data": event_data,
            "session_id": session_id,
            "page_url": page_url,
        }

        if self.async_delivery:
            thread = threading.Thread(target=self._deliver, args=(payload,))
            thread.daemon = True
            with self._lock:
                self._threads = [t for t in self._threads if t.is_alive()]
                self._threads.append(thread)
            thread.start()
        else:
            self._deliver(payload)

    def _deliver(self, payload: Dict[str, Any]):
        try:
            response = self.session.post(self.endpoint_url, json=json_safe(payload), timeout=self.timeout)
            if not 200 <= response.status_code < 300:
                raise TelemetryTransportFailure(
                    f"{payload['event_type']} rejected with status {response.status_code}"
                )
            logger.debug(f"Telemetry delivered: {payload['event_type']} for {payload['session_id']}")
        except TelemetryTransportFailure as e:
            logger.error(f"Telemetry failure: {e}")
        except requests.RequestException as e:
            logger.error(f"Telemetry error sending {payload['event_type']}: {e}")
        except (TypeError, ValueError) as e:
            logger.error(f"Telemetry payload for {payload['event_type']} could not be encoded: {e}")

    def wait(self, timeout: Optional[float] = None):
        """Block until outstanding deliveries finish."""
        with self._lock:
            threads = list(self._threads)
            self._threads = []
        for thread in threads:
            thread.join(timeout)

    def emit_status_progression(
        self,
        profile,
        previous_status,
        trigger,
        nurturing_sequences: List[str],
        page_url: str = "",
        timestamp: Optional[datetime] = None,
    ):
        """A profile moved to a different status."""
        timestamp = timestamp or datetime.now()
        self.emit(STATUS_PROGRESSION, {
            "previous_status": previous_status.value,
            "new_status": profile.status.value,
            "trigger": trigger.value if trigger else None,
            "engagement_score": profile.engagement_score,
            "behavioral_score": profile.behavioral_score,
            "demographic_score": profile.demographic_score,
            "conversion_readiness": profile.conversion_readiness,
            "conversion_probability": profile.predictions.conversion_probability,
            "nurturing_sequences": list(nurturing_sequences),
            "timestamp": timestamp.isoformat(),
        }, profile.id, page_url)

    def emit_engagement_action(self, profile, activity):
        """A trigger was applied to a profile."""
        self.emit(ENGAGEMENT_ACTION, {
            "trigger": activity.trigger.value,
            "points_awarded": activity.points,
            "total_score": profile.engagement_score,
            "behavioral_score": profile.behavioral_score,
            "demographic_score": profile.demographic_score,
            "status": profile.status.value,
            "conversion_readiness": profile.conversion_readiness,
            "timestamp": activity.timestamp.isoformat(),
            "metadata": activity.metadata.to_dict(),
        }, profile.id, activity.page_url)

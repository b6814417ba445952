"""
Notification dispatch for weather alerts

The engine only needs dispatch(alert) → DispatchResult. Delivery channels
(push, SMS for critical alerts) are the notification backend's business.
"""

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from models import WeatherAlert

# Set up logging
logger = logging.getLogger(__name__)


NOTIFICATION_API_URL = os.environ.get('NOTIFICATION_API_URL', 'http://localhost:3000/api')
REQUEST_TIMEOUT = 10  # seconds


@dataclass(frozen=True)
class DispatchResult:
    success: bool
    error: Optional[str] = None


def alert_to_dict(alert: WeatherAlert) -> Dict[str, Any]:
    """Convert WeatherAlert to dictionary for JSON payloads."""
    return {
        "id": alert.id,
        "timestamp": alert.created_at.isoformat(),
        "type": alert.kind.value,
        "severity": alert.severity.value,
        "location": {"latitude": alert.location.lat, "longitude": alert.location.lng},
        "distance": round(alert.distance_nm, 1),
        "message": alert.message,
        "recommendation": alert.recommendation,
    }


class NotificationDispatcher(ABC):

    @abstractmethod
    async def dispatch(self, alert: WeatherAlert) -> DispatchResult:
        """Deliver one alert; failures come back as a result, not an exception"""


class HttpNotificationDispatcher(NotificationDispatcher):
    """Posts alerts to the notification backend's weather-alert endpoint"""

    def __init__(self, auth_token: Optional[str] = None, base_url: str = NOTIFICATION_API_URL,
                 session: Optional[requests.Session] = None):
        self.auth_token = auth_token
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()

    def set_auth_token(self, token: str):
        self.auth_token = token

    def clear_auth_token(self):
        self.auth_token = None

    async def dispatch(self, alert: WeatherAlert) -> DispatchResult:
        return await asyncio.to_thread(self.send, alert)

    def send(self, alert: WeatherAlert) -> DispatchResult:
        """Blocking send; use dispatch() from async code"""
        if not self.auth_token:
            logger.warning("No auth token set for weather alerts")
            return DispatchResult(success=False, error="Not authenticated")

        try:
            response = self.session.post(
                f"{self.base_url}/notifications/weather-alert",
                json={"alert": alert_to_dict(alert)},
                headers={
                    "Authorization": f"Bearer {self.auth_token}",
                    "Content-Type": "application/json",
                },
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning(f"Failed to send weather alert {alert.id}: {e}")
            return DispatchResult(success=False, error=str(e))

        return DispatchResult(success=True)

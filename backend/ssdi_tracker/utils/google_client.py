"""Calendar and Gmail calls made on behalf of a connected Google account."""

from __future__ import annotations

import base64
import logging
import mimetypes
from datetime import datetime, timedelta
from email.message import EmailMessage
from typing import Any, Iterable, Optional, Tuple

import httpx

from ..config import settings
from ..errors import IntegrationError
from .. import models
from .clock import Clock, as_utc, utc_now
from .token_cipher import decrypt_token

CALENDAR_EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/primary/events"
GMAIL_SEND_URL = "https://gmail.googleapis.com/gmail/v1/users/me/messages/send"
REMINDER_DURATION = timedelta(hours=1)

_LOGGER = logging.getLogger("ssdi_tracker.google")


class GoogleClient:
    """Thin wrapper over the two Google REST endpoints the tracker uses.

    Token refresh belongs to the OAuth exchange and is not done here: an
    expired access token is reported as an `IntegrationError`.
    """

    def __init__(
        self,
        *,
        timeout: Optional[float] = None,
        time_zone: Optional[str] = None,
        http_client: httpx.Client | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._time_zone = time_zone or settings.CALENDAR_TIME_ZONE
        self._client = http_client or httpx.Client(timeout=timeout or settings.GOOGLE_API_TIMEOUT_SECONDS)
        self._owns_client = http_client is None
        self._clock = clock

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _headers(self, integration: models.GoogleIntegration) -> dict[str, str]:
        if as_utc(integration.expiry_date) <= as_utc(self._clock()):
            raise IntegrationError("Google access token expired; reconnect the account")
        return {"Authorization": f"Bearer {decrypt_token(integration.access_token)}"}

    def _post(self, url: str, integration: models.GoogleIntegration, payload: dict[str, Any]) -> dict[str, Any]:
        headers = self._headers(integration)
        try:
            response = self._client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise IntegrationError(f"Google API request failed: {exc}") from exc
        if response.status_code >= 400:
            _LOGGER.warning("google_api_error status=%s url=%s body=%s", response.status_code, url, response.text[:500])
            raise IntegrationError(f"Google API returned {response.status_code}")
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            _LOGGER.warning("google_api_bad_body status=%s url=%s body=%s", response.status_code, url, response.text[:200])
            raise IntegrationError("Google API returned a non-JSON body") from exc

    def create_calendar_event(
        self,
        integration: models.GoogleIntegration,
        *,
        summary: str,
        description: str,
        start: datetime,
    ) -> dict[str, Any]:
        """Create a one-hour event on the account's primary calendar."""
        start = as_utc(start)
        event = {
            "summary": summary,
            "description": description,
            "start": {"dateTime": start.isoformat(), "timeZone": self._time_zone},
            "end": {"dateTime": (start + REMINDER_DURATION).isoformat(), "timeZone": self._time_zone},
        }
        return self._post(CALENDAR_EVENTS_URL, integration, event)

    def send_email(
        self,
        integration: models.GoogleIntegration,
        *,
        to: str,
        subject: str,
        body: str,
        attachments: Iterable[Tuple[str, bytes]] = (),
    ) -> dict[str, Any]:
        """Send an HTML email from the connected address.

        `attachments` are `(file name, content)` pairs.
        """
        message = EmailMessage()
        message["From"] = integration.email
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body, subtype="html")
        for filename, content in attachments:
            mime_type, _ = mimetypes.guess_type(filename)
            maintype, subtype = (mime_type or "application/octet-stream").split("/", 1)
            message.add_attachment(content, maintype=maintype, subtype=subtype, filename=filename)
        raw = base64.urlsafe_b64encode(message.as_bytes()).decode("ascii")
        return self._post(GMAIL_SEND_URL, integration, {"raw": raw})

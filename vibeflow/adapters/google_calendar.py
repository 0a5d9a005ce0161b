"""Read-only Google Calendar integration.

The OAuth consent page runs in the user's browser. This module builds its URL
and reads the token grant back from the redirect URL; a token obtained some
other way can be stored directly with its lifetime.
Tokens are cached with an absolute expiry and dropped once expired, after
which the user has to consent again.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlencode, urlsplit

import requests

from ..exceptions import CalendarAuthError, RemoteStoreError, StorageError
from ..persistence.interface import KeyValueStorage

logger = logging.getLogger(__name__)

TOKEN_STORAGE_KEY = "vibeflow-gcal-token"
SCOPES = "https://www.googleapis.com/auth/calendar.readonly"
API_BASE = "https://www.googleapis.com/calendar/v3"
AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
REVOKE_URL = "https://oauth2.googleapis.com/revoke"
DEFAULT_REDIRECT_URI = "http://localhost:8765/"
WINDOW_DAYS = 30
MAX_RESULTS = 100


@dataclass
class GoogleCalendarEvent:
    id: str
    summary: str
    start: str  # ISO date for all-day events, ISO datetime otherwise
    end: str
    is_all_day: bool
    description: str | None = None

    @property
    def date(self) -> str:
        return self.start.split("T")[0]


@dataclass
class CalendarListing:
    calendar_name: str
    events: list[GoogleCalendarEvent] = field(default_factory=list)


def auth_error(kind: str, origin: str) -> CalendarAuthError | None:
    """Classify an error reported by the consent popup or redirect.

    A consent window the user closed or declined is not an error and yields
    ``None``.
    """
    if kind in ("popup_closed", "access_denied"):
        return None
    if kind == "popup_failed_to_open":
        return CalendarAuthError(
            kind, "Popup was blocked. Please allow popups for this site and try again."
        )
    return CalendarAuthError(
        kind,
        f'Google sign-in failed: {kind}. Make sure "{origin}" is added as an '
        "Authorized JavaScript Origin in your Google Cloud Console OAuth client settings.",
    )


def authorization_url(client_id: str, redirect_uri: str = DEFAULT_REDIRECT_URI) -> str:
    """Consent page URL for the implicit token grant with read-only scope."""
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "token",
        "scope": SCOPES,
        "include_granted_scopes": "true",
    }
    return f"{AUTH_URL}?{urlencode(params)}"


def _origin(uri: str) -> str:
    parts = urlsplit(uri)
    return f"{parts.scheme}://{parts.netloc}"


def parse_redirect(url: str, redirect_uri: str = DEFAULT_REDIRECT_URI) -> tuple[str, int] | None:
    """Read ``(access_token, expires_in)`` from the URL the consent page redirected to.

    Returns ``None`` when the user closed or declined the consent window and
    raises ``CalendarAuthError`` for any other reported error.
    """
    parts = urlsplit(url)
    values = parse_qs(parts.fragment or parts.query)
    if "error" in values:
        error = auth_error(values["error"][0], _origin(redirect_uri))
        if error is None:
            return None
        raise error
    token = values.get("access_token", [""])[0]
    if not token:
        raise CalendarAuthError("invalid_response", "The redirect URL carries no access token.")
    try:
        expires_in = int(values.get("expires_in", ["3600"])[0])
    except ValueError:
        expires_in = 3600
    return token, expires_in


def parse_event(item: dict) -> GoogleCalendarEvent:
    start = item.get("start") or {}
    end = item.get("end") or {}
    return GoogleCalendarEvent(
        id=item.get("id", ""),
        summary=item.get("summary") or "(No title)",
        description=item.get("description"),
        start=start.get("dateTime") or start.get("date") or "",
        end=end.get("dateTime") or end.get("date") or "",
        is_all_day=not start.get("dateTime"),
    )


def events_by_date(events: list[GoogleCalendarEvent]) -> dict[str, list[GoogleCalendarEvent]]:
    grouped: dict[str, list[GoogleCalendarEvent]] = {}
    for event in events:
        grouped.setdefault(event.date, []).append(event)
    return grouped


class TokenCache:
    """Access token plus absolute expiry (epoch millis) in key/value storage."""

    def __init__(self, storage: KeyValueStorage, key: str = TOKEN_STORAGE_KEY):
        self.storage = storage
        self.key = key

    def store(self, token: str, expires_in: int, now: float | None = None) -> None:
        now = time.time() if now is None else now
        payload = {"token": token, "expiry": int((now + expires_in) * 1000)}
        try:
            self.storage.set(self.key, json.dumps(payload))
        except StorageError:
            logger.warning("Could not cache the Google Calendar token", exc_info=True)

    def load(self, now: float | None = None) -> str | None:
        now = time.time() if now is None else now
        try:
            raw = self.storage.get(self.key)
        except StorageError:
            logger.warning("Could not read the Google Calendar token", exc_info=True)
            return None
        if raw is None:
            return None
        try:
            payload = json.loads(raw)
            token, expiry = payload["token"], payload["expiry"]
        except (ValueError, KeyError, TypeError):
            self.clear()
            return None
        if not isinstance(expiry, (int, float)) or not math.isfinite(expiry) or expiry <= now * 1000:
            self.clear()
            return None
        return token

    def clear(self) -> None:
        try:
            self.storage.remove(self.key)
        except StorageError:
            logger.warning("Could not remove the Google Calendar token", exc_info=True)


class GoogleCalendarClient:
    """Lists the next 30 days of events from the user's primary calendar."""

    def __init__(
        self,
        storage: KeyValueStorage,
        session: requests.Session | None = None,
        timeout: float = 10,
        client_id: str | None = None,
        redirect_uri: str = DEFAULT_REDIRECT_URI,
    ):
        self.tokens = TokenCache(storage)
        self.session = session or requests.Session()
        self.timeout = timeout
        self.client_id = client_id
        self.redirect_uri = redirect_uri

    @property
    def is_connected(self) -> bool:
        return self.tokens.load() is not None

    def authorization_url(self) -> str:
        if not self.client_id:
            raise CalendarAuthError(
                "not_configured", "Set GOOGLE_CLIENT_ID to connect Google Calendar."
            )
        return authorization_url(self.client_id, self.redirect_uri)

    def connect(self, access_token: str, expires_in: int) -> None:
        self.tokens.store(access_token, expires_in)

    def connect_from_redirect(self, url: str) -> bool:
        """Store the token carried by a consent redirect. False if the user declined."""
        grant = parse_redirect(url, self.redirect_uri)
        if grant is None:
            return False
        self.connect(*grant)
        return True

    def disconnect(self) -> None:
        token = self.tokens.load()
        if token is not None:
            try:
                self.session.post(REVOKE_URL, params={"token": token}, timeout=self.timeout)
            except requests.RequestException:
                logger.info("Token revocation failed; dropping the token anyway")
        self.tokens.clear()

    def _get(self, token: str, path: str, params: dict | None = None) -> dict:
        try:
            response = self.session.get(
                f"{API_BASE}{path}",
                params=params,
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RemoteStoreError("calendar", str(e)) from e
        if response.status_code == 401:
            self.tokens.clear()
            raise CalendarAuthError("token_expired", "Google Calendar access expired. Please reconnect.")
        if not response.ok:
            raise RemoteStoreError(
                "calendar", f"{path}: HTTP {response.status_code}", status_code=response.status_code
            )
        return response.json()

    def list_events(self, now: datetime | None = None) -> CalendarListing:
        token = self.tokens.load()
        if token is None:
            raise CalendarAuthError("not_connected", "Google Calendar is not connected.")
        now = now or datetime.now(timezone.utc)

        calendars = self._get(token, "/users/me/calendarList").get("items") or []
        primary = next((c for c in calendars if c.get("primary")), None)

        result = self._get(
            token,
            "/calendars/primary/events",
            params={
                "timeMin": now.isoformat(),
                "timeMax": (now + timedelta(days=WINDOW_DAYS)).isoformat(),
                "showDeleted": "false",
                "singleEvents": "true",
                "maxResults": MAX_RESULTS,
                "orderBy": "startTime",
            },
        )
        events = [parse_event(item) for item in result.get("items") or []]
        name = (primary or {}).get("summary") or "Google Calendar"
        return CalendarListing(calendar_name=name, events=events)

    async def fetch_events(self, now: datetime | None = None) -> CalendarListing:
        return await asyncio.to_thread(self.list_events, now)

"""Tests for the Google Calendar integration with a mocked HTTP session."""

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlsplit

import pytest
import requests

from vibeflow.adapters.google_calendar import (
    AUTH_URL,
    REVOKE_URL,
    SCOPES,
    TOKEN_STORAGE_KEY,
    GoogleCalendarClient,
    TokenCache,
    auth_error,
    authorization_url,
    events_by_date,
    parse_event,
    parse_redirect,
)
from vibeflow.exceptions import CalendarAuthError, RemoteStoreError

NOW = datetime(2026, 5, 1, 9, 0, tzinfo=timezone.utc)


def _response(status=200, payload=None):
    response = MagicMock()
    response.status_code = status
    response.ok = status < 400
    response.json.return_value = payload or {}
    return response


@pytest.fixture
def http():
    return MagicMock()


@pytest.fixture
def client(storage, http):
    client = GoogleCalendarClient(storage, session=http)
    client.connect("tok", 3600)
    return client


class TestAuthError:
    def test_closed_popup_is_not_an_error(self):
        assert auth_error("popup_closed", "http://localhost") is None

    def test_blocked_popup(self):
        error = auth_error("popup_failed_to_open", "http://localhost")
        assert error.kind == "popup_failed_to_open"
        assert "allow popups" in error.message

    def test_other_errors_mention_origin(self):
        error = auth_error("idpiframe_initialization_failed", "http://localhost:5173")
        assert "http://localhost:5173" in str(error)


class TestParsing:
    def test_timed_event(self):
        event = parse_event({
            "id": "e1",
            "summary": "Standup",
            "start": {"dateTime": "2026-05-02T10:00:00Z"},
            "end": {"dateTime": "2026-05-02T10:15:00Z"},
        })
        assert not event.is_all_day
        assert event.date == "2026-05-02"

    def test_all_day_event_without_title(self):
        event = parse_event({"id": "e2", "start": {"date": "2026-05-03"}, "end": {"date": "2026-05-04"}})
        assert event.is_all_day
        assert event.summary == "(No title)"
        assert event.date == "2026-05-03"

    def test_events_by_date(self):
        events = [
            parse_event({"id": "a", "start": {"date": "2026-05-03"}}),
            parse_event({"id": "b", "start": {"dateTime": "2026-05-03T08:00:00Z"}}),
            parse_event({"id": "c", "start": {"date": "2026-05-04"}}),
        ]
        grouped = events_by_date(events)
        assert [e.id for e in grouped["2026-05-03"]] == ["a", "b"]
        assert [e.id for e in grouped["2026-05-04"]] == ["c"]


class TestTokenCache:
    def test_token_until_expiry(self, storage):
        cache = TokenCache(storage)
        cache.store("tok", 60, now=1000)
        assert cache.load(now=1059) == "tok"
        assert cache.load(now=1060) is None
        assert TOKEN_STORAGE_KEY not in storage.data

    def test_expiry_is_epoch_millis(self, storage):
        TokenCache(storage).store("tok", 60, now=1000)
        assert json.loads(storage.data[TOKEN_STORAGE_KEY])["expiry"] == 1060000

    def test_corrupt_entry_is_dropped(self, storage):
        storage.data[TOKEN_STORAGE_KEY] = "{not json"
        assert TokenCache(storage).load() is None
        assert TOKEN_STORAGE_KEY not in storage.data


class TestGoogleCalendarClient:
    def test_not_connected(self, storage, http):
        client = GoogleCalendarClient(storage, session=http)
        assert not client.is_connected
        with pytest.raises(CalendarAuthError) as exc_info:
            client.list_events(NOW)
        assert exc_info.value.kind == "not_connected"
        http.get.assert_not_called()

    def test_list_events(self, client, http):
        http.get.side_effect = [
            _response(payload={"items": [{"summary": "Work", "primary": True}]}),
            _response(payload={"items": [{"id": "e1", "summary": "Demo", "start": {"date": "2026-05-05"}}]}),
        ]
        listing = client.list_events(NOW)

        assert listing.calendar_name == "Work"
        assert [e.id for e in listing.events] == ["e1"]
        params = http.get.call_args.kwargs["params"]
        assert params["timeMin"] == "2026-05-01T09:00:00+00:00"
        assert params["timeMax"] == "2026-05-31T09:00:00+00:00"
        assert params["singleEvents"] == "true"
        assert params["maxResults"] == 100
        assert http.get.call_args.kwargs["headers"]["Authorization"] == "Bearer tok"

    def test_calendar_name_fallback(self, client, http):
        http.get.side_effect = [_response(payload={"items": []}), _response(payload={})]
        assert client.list_events(NOW).calendar_name == "Google Calendar"

    def test_unauthorized_clears_token(self, client, http):
        http.get.return_value = _response(status=401)
        with pytest.raises(CalendarAuthError) as exc_info:
            client.list_events(NOW)
        assert exc_info.value.kind == "token_expired"
        assert not client.is_connected

    def test_server_error(self, client, http):
        http.get.return_value = _response(status=503)
        with pytest.raises(RemoteStoreError) as exc_info:
            client.list_events(NOW)
        assert exc_info.value.status_code == 503
        assert client.is_connected

    def test_disconnect_revokes_and_clears(self, client, http):
        client.disconnect()
        http.post.assert_called_once()
        assert http.post.call_args.args == (REVOKE_URL,)
        assert not client.is_connected

    def test_disconnect_survives_revoke_failure(self, client, http):
        http.post.side_effect = requests.ConnectionError("offline")
        client.disconnect()
        assert not client.is_connected

    @pytest.mark.asyncio
    async def test_fetch_events_runs_in_thread(self, client, http):
        http.get.side_effect = [_response(payload={"items": []}), _response(payload={"items": []})]
        listing = await client.fetch_events(NOW)
        assert listing.events == []


class TestConsentFlow:
    def test_authorization_url(self):
        url = authorization_url("client-1", "http://localhost:8765/")
        parts = urlsplit(url)
        assert url.startswith(AUTH_URL)
        params = parse_qs(parts.query)
        assert params["client_id"] == ["client-1"]
        assert params["response_type"] == ["token"]
        assert params["scope"] == [SCOPES]

    def test_redirect_with_token(self):
        grant = parse_redirect("http://localhost:8765/#access_token=tok&token_type=Bearer&expires_in=1800")
        assert grant == ("tok", 1800)

    def test_declined_consent_is_not_an_error(self):
        assert parse_redirect("http://localhost:8765/#error=access_denied") is None

    def test_redirect_error_names_origin(self):
        with pytest.raises(CalendarAuthError) as exc_info:
            parse_redirect("http://localhost:8765/?error=redirect_uri_mismatch")
        assert exc_info.value.kind == "redirect_uri_mismatch"
        assert '"http://localhost:8765"' in exc_info.value.message

    def test_redirect_without_token(self):
        with pytest.raises(CalendarAuthError) as exc_info:
            parse_redirect("http://localhost:8765/#state=x")
        assert exc_info.value.kind == "invalid_response"

    def test_client_requires_client_id(self, storage, http):
        client = GoogleCalendarClient(storage, session=http)
        with pytest.raises(CalendarAuthError) as exc_info:
            client.authorization_url()
        assert exc_info.value.kind == "not_configured"

    def test_client_connects_from_redirect(self, storage, http):
        client = GoogleCalendarClient(storage, session=http, client_id="client-1")
        assert "client_id=client-1" in client.authorization_url()
        assert client.connect_from_redirect("http://localhost:8765/#access_token=tok&expires_in=60")
        assert client.is_connected

    def test_client_declined_redirect(self, storage, http):
        client = GoogleCalendarClient(storage, session=http, client_id="client-1")
        assert not client.connect_from_redirect("http://localhost:8765/#error=popup_closed")
        assert not client.is_connected


@pytest.mark.parametrize("expiry", ["soon", float("inf"), float("nan")])
def test_unusable_expiry_is_dropped(storage, expiry):
    storage.data[TOKEN_STORAGE_KEY] = json.dumps({"token": "tok", "expiry": expiry})
    assert TokenCache(storage).load() is None
    assert TOKEN_STORAGE_KEY not in storage.data

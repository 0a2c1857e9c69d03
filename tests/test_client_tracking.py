import threading

import pytest
import requests

from permitdesk.client import ApiError, PermitDeskClient
from permitdesk.tracking import LocationTracker, TrackingHandle


class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body
        self.reason = "Error" if status_code >= 400 else "OK"

    def json(self):
        return self._body


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        return self.responses.pop(0)

    def close(self):
        pass


def test_login_stores_tokens_and_sends_bearer():
    session = FakeSession(
        FakeResponse(200, {"access_token": "acc", "refresh_token": "ref", "user": {"id": "u1"}}),
        FakeResponse(200, {"message": "ok", "isLocationSharingEnabled": True}),
    )
    client = PermitDeskClient("http://api.test/", session=session)
    client.login("a@example.com", "secret1")
    assert client.token == "acc"
    assert client.refresh_token == "ref"

    assert client.toggle_sharing(True) is True
    method, url, kwargs = session.calls[1]
    assert (method, url) == ("POST", "http://api.test/api/location/toggle")
    assert kwargs["headers"]["Authorization"] == "Bearer acc"
    assert kwargs["json"] == {"enabled": True}


def test_error_response_raises_api_error():
    session = FakeSession(FakeResponse(409, {"detail": "WP Number already exists"}))
    client = PermitDeskClient("http://api.test", token="acc", session=session)
    with pytest.raises(ApiError) as info:
        client.create_permit({"wpNumber": "1234"})
    assert info.value.status_code == 409
    assert info.value.detail == "WP Number already exists"


class RecordingClient:
    def __init__(self, fail_with=None):
        self.updates = []
        self.sharing = []
        self.fail_with = fail_with
        self.reported = threading.Event()

    def update_location(self, latitude, longitude):
        self.reported.set()
        if self.fail_with:
            raise self.fail_with
        self.updates.append((latitude, longitude))
        return {"latitude": latitude, "longitude": longitude}

    def toggle_sharing(self, enabled=None):
        self.sharing.append(enabled)
        return bool(enabled)


def test_tracker_reports_until_stopped():
    client = RecordingClient()
    tracker = LocationTracker(client, interval=0.01)
    handle = tracker.start(lambda: (1.0, 2.0))
    assert isinstance(handle, TrackingHandle)
    assert client.reported.wait(2)
    tracker.stop(handle, unshare=True)

    assert not handle.active
    assert handle.reports >= 1
    assert client.updates[0] == (1.0, 2.0)
    assert client.sharing == [True, False]
    count = len(client.updates)
    assert handle.wait(0)
    assert len(client.updates) == count


def test_handles_are_independent():
    client = RecordingClient()
    tracker = LocationTracker(client, interval=0.01)
    first = tracker.start(lambda: (1.0, 1.0), share=False)
    second = tracker.start(lambda: (2.0, 2.0), share=False)
    first.cancel()
    assert not first.active
    assert second.active
    second.cancel()
    assert client.sharing == []


def test_tracker_skips_missing_positions():
    client = RecordingClient()
    tracker = LocationTracker(client, interval=0.01)
    handle = tracker.start(lambda: None, share=False)
    assert not handle.wait(0.05)
    handle.cancel()
    assert client.updates == []
    assert handle.reports == 0


def test_tracker_stops_itself_on_auth_failure():
    client = RecordingClient(fail_with=ApiError(401, "Unauthorized"))
    tracker = LocationTracker(client, interval=0.01)
    handle = tracker.start(lambda: (1.0, 2.0), share=False)
    assert handle.wait(2)
    assert isinstance(handle.last_error, ApiError)
    assert handle.reports == 0


class FlakyClient(RecordingClient):
    def __init__(self, failures):
        super().__init__()
        self.failures = list(failures)

    def update_location(self, latitude, longitude):
        if self.failures:
            raise self.failures.pop(0)
        self.updates.append((latitude, longitude))
        if len(self.updates) >= 2:
            self.reported.set()
        return {"latitude": latitude, "longitude": longitude}


@pytest.mark.parametrize(
    "failure",
    [requests.ConnectionError("connection reset"), ApiError(503, "Service Unavailable")],
)
def test_tracker_keeps_reporting_after_transient_failure(failure):
    client = FlakyClient([failure])
    tracker = LocationTracker(client, interval=0.01)
    handle = tracker.start(lambda: (1.0, 2.0), share=False)
    assert client.reported.wait(2)
    assert handle.active
    assert handle.last_error is failure
    assert handle.reports >= 2
    handle.cancel()


def test_tracker_survives_position_source_errors():
    client = FlakyClient([])
    calls = []

    def source():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("gps unavailable")
        return (3.0, 4.0)

    tracker = LocationTracker(client, interval=0.01)
    handle = tracker.start(source, share=False)
    assert client.reported.wait(2)
    assert handle.active
    assert isinstance(handle.last_error, RuntimeError)
    assert client.updates[0] == (3.0, 4.0)
    handle.cancel()

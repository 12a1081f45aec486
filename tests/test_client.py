from __future__ import annotations

from typing import Any, Dict, List

import pytest
import requests

from sheet_bridge.client import SheetClient, is_valid_answer
from sheet_bridge.config import ClientConfig
from sheet_bridge.errors import ConfigurationError, NetworkError, RemoteError
from sheet_bridge.models import LogEntry

URL = "http://localhost:4000/sheet"


class _FakeResponse:
    def __init__(self, payload: Any = None, status_code: int = 200, reason: str = "OK") -> None:
        self._payload = payload
        self.status_code = status_code
        self.reason = reason

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class _FakeSession:
    def __init__(self, *responses: Any) -> None:
        self._responses = list(responses)
        self.requests: List[Dict[str, Any]] = []

    def post(self, url: str, json: Dict[str, Any], timeout: float) -> _FakeResponse:
        self.requests.append({"url": url, "json": json, "timeout": timeout})
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def test_fetch_state_normalizes_response() -> None:
    session = _FakeSession(
        _FakeResponse(
            {
                "success": True,
                "data": {"A2": "RUN", "imageUrl": "abc", "logs": [{"row": 2, "text": "hi"}]},
            }
        )
    )
    client = SheetClient(URL, timeout=3, session=session)

    state = client.fetch_state()

    assert state.action == "RUN"
    assert state.image_url == "abc"
    assert state.logs == [LogEntry(2, "hi")]
    assert session.requests == [{"url": URL, "json": {"action": "get-state"}, "timeout": 3}]


def test_fetch_state_accepts_envelope_without_data() -> None:
    session = _FakeSession(_FakeResponse({"A2": "DONE", "E2": "legacy"}))

    state = SheetClient(URL, session=session).fetch_state()

    assert state.action == "DONE"
    assert state.logs == [LogEntry(2, "legacy")]


def test_trigger_run_writes_run_to_a2() -> None:
    session = _FakeSession(_FakeResponse({"success": True}))

    SheetClient(URL, session=session).trigger_run()

    assert session.requests[0]["json"] == {"action": "update-cell", "cell": "A2", "value": "RUN"}


def test_submit_answer_writes_without_validating() -> None:
    # Validation is the caller's job; the client forwards whatever it is given.
    session = _FakeSession(_FakeResponse({"success": True}))

    SheetClient(URL, session=session).submit_answer("12a4")

    assert session.requests[0]["json"] == {"action": "update-cell", "cell": "D2", "value": "12a4"}


def test_missing_base_url_fails_before_any_request() -> None:
    session = _FakeSession()
    client = SheetClient.from_config(ClientConfig(), session=session)

    with pytest.raises(ConfigurationError, match="SHEET_API_URL"):
        client.fetch_state()
    assert session.requests == []


def test_non_2xx_status_is_a_network_error() -> None:
    session = _FakeSession(_FakeResponse({"success": False, "error": "nope"}, 500, "Internal Server Error"))

    with pytest.raises(NetworkError) as excinfo:
        SheetClient(URL, session=session).fetch_state()

    assert excinfo.value.status_code == 500
    assert "500 Internal Server Error" in str(excinfo.value)


def test_transport_failure_is_a_network_error() -> None:
    session = _FakeSession(requests.ConnectionError("refused"))

    with pytest.raises(NetworkError):
        SheetClient(URL, session=session).trigger_run()


def test_logical_failure_is_a_remote_error() -> None:
    session = _FakeSession(
        _FakeResponse({"success": False, "error": "Missing GOOGLE_SHEET_ID on server"}),
        _FakeResponse({"success": False}),
    )
    client = SheetClient(URL, session=session)

    with pytest.raises(RemoteError) as excinfo:
        client.fetch_state()
    assert excinfo.value.message == "Missing GOOGLE_SHEET_ID on server"

    with pytest.raises(RemoteError, match="Sheet request returned an error."):
        client.fetch_state()


def test_undecodable_body_is_treated_as_empty() -> None:
    session = _FakeSession(_FakeResponse(ValueError("no json")))

    state = SheetClient(URL, session=session).fetch_state()

    assert state.action is None
    assert state.logs == []


@pytest.mark.parametrize(
    "answer, valid",
    [("123", True), ("000", True), ("12", False), ("1234", False), ("12a", False), ("١٢٣", False)],
)
def test_is_valid_answer(answer: str, valid: bool) -> None:
    assert is_valid_answer(answer) is valid

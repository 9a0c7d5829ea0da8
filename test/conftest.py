"""Shared fixtures: fake transport, fake HTTP session, recording sinks.

Invariants:
    - No test touches the network: HTTP goes through FakeHttpSession and the
      relay through FakeTransport
    - Every SerialExecutor created by a fixture is stopped on teardown
    - Recording sinks are thread-safe; tests wait on them instead of sleeping
"""

import json
import threading
from typing import Any, Callable, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest

from rtc_signaling.shared import SerialExecutor

WAIT_TIMEOUT = 5.0


# --- HTTP --------------------------------------------------------------------

def make_response(status_code: int = 200, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    return response


class FakeHttpSession:
    """requests.Session stand-in: routes by (method, url substring)."""

    def __init__(self):
        self.routes: List[Tuple[str, str, Any]] = []
        self.calls: List[dict] = []
        self._cond = threading.Condition()

    def route(self, method: str, url_part: str, result: Any) -> None:
        """result is a response mock or an exception instance to raise."""
        self.routes.append((method, url_part, result))

    def request(self, method, url, data=None, headers=None, timeout=None):
        with self._cond:
            self.calls.append({
                "method": method,
                "url": url,
                "data": data.decode("utf-8") if data else None,
                "headers": headers,
                "timeout": timeout,
            })
            self._cond.notify_all()
        for route_method, url_part, result in self.routes:
            if route_method == method and url_part in url:
                if isinstance(result, Exception):
                    raise result
                return result
        return make_response(200, json.dumps({"result": "SUCCESS"}))

    def calls_to(self, method: str, url_part: str = "") -> List[dict]:
        with self._cond:
            return [c for c in self.calls if c["method"] == method and url_part in c["url"]]

    def wait_for_call(self, method: str, url_part: str = "", count: int = 1,
                      timeout: float = WAIT_TIMEOUT) -> List[dict]:
        with self._cond:
            self._cond.wait_for(
                lambda: len([c for c in self.calls
                             if c["method"] == method and url_part in c["url"]]) >= count,
                timeout=timeout,
            )
        return self.calls_to(method, url_part)


# --- Relay transport -----------------------------------------------------------

class FakeTransport:
    """WebSocketTransport stand-in driven by the test."""

    def __init__(self, listener, auto_close: bool = True):
        self.listener = listener
        self.auto_close = auto_close
        self.url: Optional[str] = None
        self.sent: List[str] = []
        self.closed = False

    def connect(self, url: str) -> None:
        self.url = url

    def send_text(self, text: str) -> None:
        self.sent.append(text)

    def close(self) -> None:
        self.closed = True
        if self.auto_close:
            self.listener.on_close(1000, "")

    @property
    def sent_json(self) -> List[dict]:
        return [json.loads(frame) for frame in self.sent]

    # Simulated remote side (called from the test thread, like the reader thread)
    def open(self) -> None:
        self.listener.on_open()

    def receive(self, text: str) -> None:
        self.listener.on_text(text)

    def fail(self, description: str) -> None:
        self.listener.on_error(description)

    def remote_close(self, code: int = 1000, reason: str = "") -> None:
        self.listener.on_close(code, reason)


class FakeTransportFactory:
    def __init__(self, auto_close: bool = True):
        self.auto_close = auto_close
        self.transports: List[FakeTransport] = []

    def __call__(self, listener) -> FakeTransport:
        transport = FakeTransport(listener, auto_close=self.auto_close)
        self.transports.append(transport)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.transports[-1]


# --- Recording sinks -----------------------------------------------------------

class Recorder:
    """Thread-safe list of (name, args) calls."""

    def __init__(self):
        self.calls: List[Tuple[str, tuple]] = []
        self._cond = threading.Condition()

    def _record(self, name: str, *args) -> None:
        with self._cond:
            self.calls.append((name, args))
            self._cond.notify_all()

    def names(self) -> List[str]:
        with self._cond:
            return [name for name, _ in self.calls]

    def args_of(self, name: str) -> List[tuple]:
        with self._cond:
            return [args for n, args in self.calls if n == name]

    def wait_for(self, name: str, count: int = 1, timeout: float = WAIT_TIMEOUT) -> bool:
        with self._cond:
            return self._cond.wait_for(
                lambda: sum(1 for n, _ in self.calls if n == name) >= count,
                timeout=timeout,
            )


class RecordingEvents(Recorder):
    """SignalingEvents sink."""

    def on_connected_to_room(self, params):
        self._record("on_connected_to_room", params)

    def on_remote_description(self, sdp):
        self._record("on_remote_description", sdp)

    def on_remote_ice_candidate(self, candidate):
        self._record("on_remote_ice_candidate", candidate)

    def on_channel_closed(self):
        self._record("on_channel_closed")

    def on_channel_error(self, description):
        self._record("on_channel_error", description)


class RecordingChannelEvents(Recorder):
    """SignalChannelEvents sink."""

    def on_message(self, payload):
        self._record("on_message", payload)

    def on_close(self):
        self._record("on_close")

    def on_error(self, description):
        self._record("on_error", description)


class RecordingEngine(Recorder):
    """NegotiationEngine stand-in."""

    def create_offer(self):
        self._record("create_offer")

    def create_answer(self):
        self._record("create_answer")

    def set_remote_description(self, sdp):
        self._record("set_remote_description", sdp)

    def add_ice_candidate(self, candidate):
        self._record("add_ice_candidate", candidate)


# --- Executor helpers ----------------------------------------------------------

def run_on(executor: SerialExecutor, fn: Callable, *args, **kwargs):
    """Run fn on the executor thread and return its result (re-raises)."""
    future = executor.submit(fn, *args, **kwargs)
    return future.result(timeout=WAIT_TIMEOUT)


# --- Fixtures ------------------------------------------------------------------

@pytest.fixture
def executor():
    executor = SerialExecutor("test")
    executor.request_start()
    yield executor
    executor.request_stop()


@pytest.fixture
def http_session():
    return FakeHttpSession()


@pytest.fixture
def transport_factory():
    return FakeTransportFactory()


@pytest.fixture
def signaling_events():
    return RecordingEvents()


@pytest.fixture
def channel_events():
    return RecordingChannelEvents()


@pytest.fixture
def engine():
    return RecordingEngine()

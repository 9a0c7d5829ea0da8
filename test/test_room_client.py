"""RoomClient: join response parsing, TURN lookup and failure funnelling."""

import json
import threading

import requests

from rtc_signaling.room import AsyncHttpRequest, RoomClient
from rtc_signaling.shared import (
    HttpStatusError,
    IceCandidate,
    MediaConstraints,
    NetworkError,
    SdpType,
)

from conftest import WAIT_TIMEOUT, FakeHttpSession, make_response

JOIN_URL = "https://rooms.test/join/room1"
TURN_URL = "https://turn.test/turn?username=u"


def _params(**overrides) -> dict:
    params = {
        "room_id": "room1",
        "client_id": "client1",
        "wss_url": "wss://relay.test/ws",
        "wss_post_url": "https://relay.test",
        "is_initiator": "true",
        "messages": [],
        "pc_config": json.dumps({"iceServers": [
            {"urls": "turn:turn.test:3478", "username": "u", "credential": "p"},
        ]}),
        "pc_constraints": json.dumps({"optional": [{"DtlsSrtpKeyAgreement": True}]}),
        "media_constraints": json.dumps({"audio": True, "video": True}),
        "turn_url": TURN_URL,
    }
    params.update(overrides)
    return params


def _join_body(params: dict, result: str = "SUCCESS") -> str:
    return json.dumps({"result": result, "params": params})


class _Outcome:
    def __init__(self):
        self.done = threading.Event()
        self.ready = []
        self.errors = []

    def on_ready(self, params):
        self.ready.append(params)
        self.done.set()

    def on_error(self, description):
        self.errors.append(description)
        self.done.set()


def _fetch(session: FakeHttpSession) -> _Outcome:
    outcome = _Outcome()
    client = RoomClient(outcome.on_ready, outcome.on_error, session=session)
    client.fetch(JOIN_URL)
    assert outcome.done.wait(WAIT_TIMEOUT)
    return outcome


# --- Success paths -------------------------------------------------------------

def test_initiator_join_builds_parameters(http_session):
    http_session.route("POST", "/join/", make_response(200, _join_body(_params())))

    outcome = _fetch(http_session)

    assert outcome.errors == []
    params = outcome.ready[0]
    assert params.initiator is True
    assert params.client_id == "client1"
    assert params.wss_url == "wss://relay.test/ws"
    assert params.wss_post_url == "https://relay.test"
    assert params.offer_sdp is None
    assert params.ice_candidates is None
    assert [s.uri for s in params.ice_servers] == ["turn:turn.test:3478"]
    assert params.pc_constraints.optional == [("DtlsSrtpKeyAgreement", "true")]
    assert params.audio_constraints == MediaConstraints()
    assert params.video_constraints == MediaConstraints()
    assert http_session.calls_to("GET") == []


def test_join_request_headers_and_timeout(http_session):
    http_session.route("POST", "/join/", make_response(200, _join_body(_params())))

    _fetch(http_session)

    call = http_session.calls_to("POST", "/join/")[0]
    assert call["url"] == JOIN_URL
    assert call["headers"]["origin"] == "https://appr.tc"
    assert call["headers"]["content-type"] == "text/plain; charset=utf-8"
    assert call["timeout"] == 8.0


def test_receiver_join_collects_offer_and_candidates(http_session):
    messages = [
        json.dumps({"type": "offer", "sdp": "v=0 first"}),
        json.dumps({"type": "candidate", "label": 0, "id": "audio", "candidate": "candidate:1"}),
        json.dumps({"type": "bogus"}),
        json.dumps({"type": "offer", "sdp": "v=0 second"}),
        json.dumps({"type": "candidate", "label": 1, "id": "video", "candidate": "candidate:2"}),
    ]
    params = _params(is_initiator="false", messages=messages)
    http_session.route("POST", "/join/", make_response(200, _join_body(params)))

    outcome = _fetch(http_session)

    signaling = outcome.ready[0]
    assert signaling.initiator is False
    assert signaling.offer_sdp.type == SdpType.OFFER
    assert signaling.offer_sdp.sdp == "v=0 second"
    assert signaling.ice_candidates == [
        IceCandidate("audio", 0, "candidate:1"),
        IceCandidate("video", 1, "candidate:2"),
    ]


def test_params_may_arrive_as_json_string(http_session):
    body = json.dumps({"result": "SUCCESS", "params": json.dumps(_params())})
    http_session.route("POST", "/join/", make_response(200, body))

    outcome = _fetch(http_session)

    assert outcome.ready[0].client_id == "client1"


def test_missing_turn_server_triggers_turn_lookup(http_session):
    pc_config = {"iceServers": [{"urls": ["stun:stun.test:19302"]}]}
    http_session.route("POST", "/join/", make_response(200, _join_body(_params(pc_config=pc_config))))
    http_session.route("GET", "turn.test", make_response(200, json.dumps({
        "username": "tu", "password": "tp",
        "uris": ["turn:turn.test:3478?transport=udp", "turn:turn.test:3478?transport=tcp"],
    })))

    outcome = _fetch(http_session)

    servers = outcome.ready[0].ice_servers
    assert [s.uri for s in servers] == [
        "stun:stun.test:19302",
        "turn:turn.test:3478?transport=udp",
        "turn:turn.test:3478?transport=tcp",
    ]
    assert servers[1].username == "tu" and servers[1].credential == "tp"
    assert http_session.calls_to("GET")[0]["timeout"] == 5.0


def test_media_constraints_three_cases(http_session):
    media = {"audio": False, "video": {"mandatory": {"maxWidth": 1280}, "optional": []}}
    http_session.route("POST", "/join/", make_response(200, _join_body(_params(media_constraints=media))))

    outcome = _fetch(http_session)

    params = outcome.ready[0]
    assert params.audio_constraints is None
    assert params.video_constraints.mandatory == [("maxWidth", "1280")]


def test_missing_pc_constraints_gives_empty_constraints(http_session):
    params = _params()
    del params["pc_constraints"]
    http_session.route("POST", "/join/", make_response(200, _join_body(params)))

    outcome = _fetch(http_session)

    assert outcome.ready[0].pc_constraints == MediaConstraints()


# --- Failure paths -------------------------------------------------------------

def test_room_full_is_reported(http_session):
    http_session.route("POST", "/join/", make_response(200, json.dumps({"result": "FULL"})))

    outcome = _fetch(http_session)

    assert outcome.ready == []
    assert outcome.errors == ["Room response error: FULL"]


def test_non_200_is_reported(http_session):
    http_session.route("POST", "/join/", make_response(503, "unavailable"))

    outcome = _fetch(http_session)

    assert outcome.errors == [f"Non-200 response to POST to URL: {JOIN_URL} : 503"]


def test_timeout_is_reported(http_session):
    http_session.route("POST", "/join/", requests.exceptions.Timeout("slow"))

    outcome = _fetch(http_session)

    assert outcome.errors == [f"HTTP POST to {JOIN_URL} timeout"]


def test_malformed_json_is_reported(http_session):
    http_session.route("POST", "/join/", make_response(200, "{not json"))

    outcome = _fetch(http_session)

    assert len(outcome.errors) == 1
    assert "JSON parsing error" in outcome.errors[0]


def test_missing_required_field_is_reported(http_session):
    params = _params()
    del params["client_id"]
    http_session.route("POST", "/join/", make_response(200, _join_body(params)))

    outcome = _fetch(http_session)

    assert outcome.ready == []
    assert "JSON parsing error" in outcome.errors[0]


def test_non_string_ice_server_url_is_reported(http_session):
    pc_config = {"iceServers": [{"urls": ["turn:turn.test:3478", 42]}]}
    http_session.route("POST", "/join/", make_response(200, _join_body(_params(pc_config=pc_config))))

    outcome = _fetch(http_session)

    assert outcome.ready == []
    assert outcome.errors == ["Room JSON parsing error: iceServers urls must be strings"]


def test_turn_failure_is_reported(http_session):
    pc_config = {"iceServers": []}
    http_session.route("POST", "/join/", make_response(200, _join_body(_params(pc_config=pc_config))))
    http_session.route("GET", "turn.test", make_response(500, ""))

    outcome = _fetch(http_session)

    assert outcome.ready == []
    assert outcome.errors[0].startswith("Non-200 response to GET")


# --- AsyncHttpRequest ----------------------------------------------------------

def test_http_request_maps_connection_error(http_session):
    http_session.route("DELETE", "relay.test", requests.exceptions.ConnectionError("refused"))
    request = AsyncHttpRequest("DELETE", "https://relay.test/room1/client1", "",
                               on_complete=lambda _: None, on_error=lambda _: None,
                               session=http_session)

    try:
        request.execute()
    except NetworkError as e:
        assert e.message.startswith("HTTP DELETE to https://relay.test/room1/client1 error:")
    else:
        raise AssertionError("NetworkError not raised")


def test_http_request_status_error_carries_status(http_session):
    http_session.route("POST", "rooms.test", make_response(404, ""))
    errors = []
    done = threading.Event()

    def on_error(error):
        errors.append(error)
        done.set()

    AsyncHttpRequest("POST", JOIN_URL, None, on_complete=lambda _: None,
                     on_error=on_error, session=http_session).send()

    assert done.wait(WAIT_TIMEOUT)
    assert isinstance(errors[0], HttpStatusError)
    assert errors[0].status_code == 404
    assert errors[0].url == JOIN_URL

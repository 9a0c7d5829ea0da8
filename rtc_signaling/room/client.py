"""룸 서버 클라이언트.

POST {room_url}/join/{room_id} 응답을 SignalingParameters로 변환합니다.
pc_config에 TURN 서버가 없으면 turn_url에서 추가로 조회합니다.

Examples:
    >>> client = RoomClient(on_ready=print, on_error=print)
    >>> client.fetch("https://appr.tc/join/room1")
"""

import logging
import threading
from typing import Callable, List, Optional

import requests

from ..shared.dto import IceServer, SignalingParameters
from ..shared.errors import ProtocolError, SignalingError
from .http import HTTP_ORIGIN, HTTP_TIMEOUT_MS, AsyncHttpRequest
from .schemas import (
    parse_av_constraints,
    parse_constraints,
    parse_ice_servers,
    parse_join_response,
    parse_room_messages,
    parse_turn_servers,
)

logger = logging.getLogger(__name__)

TURN_TIMEOUT_MS = 5000


class RoomClient:
    """룸 파라미터 조회기.

    fetch() 한 번마다 on_ready(SignalingParameters) 또는 on_error(description)
    중 정확히 하나만 호출됩니다. 콜백은 HTTP 워커 스레드에서 호출됩니다.

    Attributes:
        on_ready (Callable[[SignalingParameters], None]): 성공 콜백
        on_error (Callable[[str], None]): 실패 콜백 (사람이 읽을 수 있는 설명)
    """

    def __init__(
        self,
        on_ready: Callable[[SignalingParameters], None],
        on_error: Callable[[str], None],
        session: Optional[requests.Session] = None,
        timeout_ms: int = HTTP_TIMEOUT_MS,
        turn_timeout_ms: int = TURN_TIMEOUT_MS,
        origin: str = HTTP_ORIGIN,
    ):
        self.on_ready = on_ready
        self.on_error = on_error
        self.session = session
        self.timeout_ms = timeout_ms
        self.turn_timeout_ms = turn_timeout_ms
        self.origin = origin

        self._lock = threading.Lock()
        self._completed = False

    def fetch(self, join_url: str, join_message: Optional[str] = None) -> None:
        """룸 입장 요청을 비동기로 보냅니다."""
        with self._lock:
            self._completed = False
        logger.info(f"[Room] Connecting to room: {join_url}")
        AsyncHttpRequest(
            "POST",
            join_url,
            join_message,
            on_complete=self._on_join_response,
            on_error=self._on_http_error,
            session=self.session,
            timeout_ms=self.timeout_ms,
            origin=self.origin,
        ).send()

    def _on_http_error(self, error: SignalingError) -> None:
        logger.error(f"[Room] Room connection error: {error.message}")
        self._finish_error(error.message)

    def _on_join_response(self, response: str) -> None:
        logger.debug(f"[Room] Room response: {response}")
        try:
            params = self._parse_join_response(response)
        except SignalingError as e:
            logger.error(f"[Room] {e.code}: {e.message}")
            self._finish_error(e.message)
            return
        self._finish_ready(params)

    def _parse_join_response(self, response: str) -> SignalingParameters:
        result, room = parse_join_response(response)
        if room is None:
            raise ProtocolError(f"Room response error: {result}")

        offer_sdp = None
        ice_candidates = None
        if not room.is_initiator:
            offer_sdp, ice_candidates = parse_room_messages(room.messages)

        logger.debug(f"[Room] RoomId: {room.room_id}. ClientId: {room.client_id}")
        logger.debug(f"[Room] Initiator: {room.is_initiator}")
        logger.debug(f"[Room] WSS url: {room.wss_url}")
        logger.debug(f"[Room] WSS POST url: {room.wss_post_url}")

        ice_servers = parse_ice_servers(room.pc_config)
        if not any(server.uri.startswith("turn:") for server in ice_servers):
            if room.turn_url:
                ice_servers.extend(self._request_turn_servers(room.turn_url))
            else:
                logger.warning("[Room] No TURN server in pc_config and no turn_url")

        pc_constraints = parse_constraints(room.pc_constraints)
        video_constraints = parse_av_constraints("video", room.media_constraints)
        audio_constraints = parse_av_constraints("audio", room.media_constraints)
        logger.debug(f"[Room] pcConstraints: {pc_constraints}")
        logger.debug(f"[Room] videoConstraints: {video_constraints}")
        logger.debug(f"[Room] audioConstraints: {audio_constraints}")

        return SignalingParameters(
            ice_servers=ice_servers,
            initiator=room.is_initiator,
            pc_constraints=pc_constraints,
            video_constraints=video_constraints,
            audio_constraints=audio_constraints,
            client_id=room.client_id,
            wss_url=room.wss_url,
            wss_post_url=room.wss_post_url,
            offer_sdp=offer_sdp,
            ice_candidates=ice_candidates,
        )

    def _request_turn_servers(self, turn_url: str) -> List[IceServer]:
        # 이미 HTTP 워커 스레드이므로 동기 호출
        logger.debug(f"[Room] Request TURN from: {turn_url}")
        response = AsyncHttpRequest(
            "GET",
            turn_url,
            None,
            on_complete=lambda _: None,
            on_error=lambda _: None,
            session=self.session,
            timeout_ms=self.turn_timeout_ms,
            origin=self.origin,
        ).execute()
        logger.debug(f"[Room] TURN response: {response}")
        servers = parse_turn_servers(response)
        for server in servers:
            logger.debug(f"[Room] TurnServer: {server.uri}")
        return servers

    def _claim_completion(self) -> bool:
        with self._lock:
            if self._completed:
                return False
            self._completed = True
            return True

    def _finish_ready(self, params: SignalingParameters) -> None:
        if self._claim_completion():
            self.on_ready(params)

    def _finish_error(self, description: str) -> None:
        if self._claim_completion():
            self.on_error(description)

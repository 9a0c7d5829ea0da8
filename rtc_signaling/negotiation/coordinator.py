"""시그널링 / 협상 코디네이터.

룸 입장(HTTP) → 릴레이 채널 연결/등록 → SDP·ICE candidate 교환 순서를
하나의 직렬 실행기에서 관리합니다. HTTP 응답, 릴레이 메시지, 협상 엔진
콜백처럼 서로 다른 스레드에서 완료되는 이벤트는 모두 실행기로 게시된 뒤
처리되므로 RoomState와 채널 상태에 락이 필요 없습니다.

라우팅 규칙:
    - initiator: offer와 로컬 candidate를 룸 서버 message URL로 POST
    - receiver: answer와 로컬 candidate를 릴레이 채널로 전송
    - loopback: offer를 answer로 바꿔 자기 자신에게 되돌림 (네트워크 호출 없음)

Examples:
    >>> coordinator = NegotiationCoordinator(events, engine=engine)
    >>> coordinator.connect_to_room(
    ...     RoomConnectionParameters("https://appr.tc", "room1")
    ... )
    >>> coordinator.disconnect_from_room()
"""

import json
import logging
from typing import Any, Callable, Optional, Union

import requests

from ..channel.signal_channel import CLOSE_TIMEOUT_MS, SignalChannel
from ..room.client import TURN_TIMEOUT_MS, RoomClient
from ..room.http import HTTP_ORIGIN, HTTP_TIMEOUT_MS, AsyncHttpRequest
from ..shared.dto import (
    ChannelState,
    IceCandidate,
    RoomConnectionParameters,
    RoomState,
    SdpType,
    SessionDescription,
    SignalingParameters,
)
from ..shared.errors import ParseError, ProtocolError, SignalingError, StateError
from ..shared.executor import SerialExecutor
from .candidates import IceCandidateQueue
from .interfaces import NegotiationEngine, SignalingEvents
from .sdp import MediaPreferences, apply_media_preferences

logger = logging.getLogger(__name__)

ROOM_JOIN = "join"
ROOM_MESSAGE = "message"
ROOM_LEAVE = "leave"


class NegotiationCoordinator:
    """룸 연결과 협상 메시지 순서를 관리하는 액터.

    Attributes:
        events (SignalingEvents): 상위 계층 이벤트 수신자
        engine (Optional[NegotiationEngine]): 협상 엔진 (없으면 시그널링만 수행)
        media_preferences (MediaPreferences): 협상 라운드마다 적용할 SDP 재작성 설정
        executor (SerialExecutor): 코디네이터와 SignalChannel이 공유하는 직렬 실행기
        room_state (RoomState): 현재 룸 연결 상태

    Note:
        - 공개 메서드는 어느 스레드에서 호출해도 되며, 실제 작업은 실행기에서 수행
        - 세션 실패는 ERROR 상태로 한 번만 전이하고 on_channel_error도 한 번만 호출
        - 자동 재시도는 하지 않음
    """

    def __init__(
        self,
        events: SignalingEvents,
        engine: Optional[NegotiationEngine] = None,
        media_preferences: Optional[MediaPreferences] = None,
        executor: Optional[SerialExecutor] = None,
        room_client_factory: Optional[Callable[..., Any]] = None,
        channel_factory: Optional[Callable[..., SignalChannel]] = None,
        session: Optional[requests.Session] = None,
        http_timeout_ms: int = HTTP_TIMEOUT_MS,
        turn_timeout_ms: int = TURN_TIMEOUT_MS,
        close_timeout_ms: int = CLOSE_TIMEOUT_MS,
        origin: str = HTTP_ORIGIN,
    ):
        self.events = events
        self.engine = engine
        self.media_preferences = media_preferences or MediaPreferences()
        self.executor = executor or SerialExecutor("coordinator")
        self.session = session
        self.http_timeout_ms = http_timeout_ms
        self.turn_timeout_ms = turn_timeout_ms
        self.close_timeout_ms = close_timeout_ms
        self.origin = origin

        self.room_client_factory = room_client_factory or self._create_room_client
        self.channel_factory = channel_factory or self._create_channel

        self.room_state = RoomState.NEW
        self.initiator = False
        self.channel: Optional[SignalChannel] = None
        self.connection_parameters: Optional[RoomConnectionParameters] = None
        self.message_url: Optional[str] = None
        self.leave_url: Optional[str] = None
        self.candidates = IceCandidateQueue(self._apply_remote_candidate)

        self._attempt = 0
        self.executor.request_start()

    @classmethod
    def from_settings(
        cls,
        events: SignalingEvents,
        engine: Optional[NegotiationEngine] = None,
        settings=None,
        **kwargs,
    ) -> "NegotiationCoordinator":
        """SignalingSettings 값으로 코디네이터를 생성합니다.

        Args:
            events (SignalingEvents): 이벤트 수신자
            engine (Optional[NegotiationEngine]): 협상 엔진
            settings: SignalingSettings (None이면 get_signaling_settings())
            **kwargs: 생성자에 그대로 전달 (executor, session 등)
        """
        if settings is None:
            from ..config import get_signaling_settings
            settings = get_signaling_settings()
        return cls(
            events,
            engine=engine,
            media_preferences=settings.media_preferences,
            http_timeout_ms=settings.HTTP_TIMEOUT_MS,
            turn_timeout_ms=settings.TURN_TIMEOUT_MS,
            close_timeout_ms=settings.CLOSE_TIMEOUT_MS,
            origin=settings.HTTP_ORIGIN,
            **kwargs,
        )

    # =========================================================================
    # 공개 API (어느 스레드에서나 호출 가능)
    # =========================================================================

    def connect_to_room(self, params: RoomConnectionParameters) -> None:
        """룸 입장을 시작합니다. 결과는 on_connected_to_room / on_channel_error."""
        self.executor.execute(self._connect_to_room_internal, params)

    def disconnect_from_room(self) -> None:
        """룸에서 나가고 채널을 닫은 뒤 실행기를 멈춥니다."""
        self.executor.execute(self._disconnect_from_room_internal)
        self.executor.request_stop()

    def send_offer_sdp(self, sdp: str) -> None:
        self.executor.execute(self._send_offer_sdp_internal, sdp)

    def send_answer_sdp(self, sdp: str) -> None:
        self.executor.execute(self._send_answer_sdp_internal, sdp)

    def send_local_ice_candidate(self, candidate: IceCandidate) -> None:
        self.executor.execute(self._send_local_ice_candidate_internal, candidate)

    # -------------------------------------------------------------------------
    # 협상 엔진 이벤트
    # -------------------------------------------------------------------------

    def on_local_description_ready(self, sdp: SessionDescription) -> None:
        """엔진이 로컬 SDP를 만들었을 때 호출합니다."""
        self.executor.execute(self._handle_local_description, sdp)

    def on_local_ice_candidate(self, candidate: IceCandidate) -> None:
        self.executor.execute(self._send_local_ice_candidate_internal, candidate)

    def on_both_descriptions_set(self) -> None:
        """로컬/원격 SDP가 모두 설정되었을 때 호출합니다 (대기 candidate 적용)."""
        self.executor.execute(self._drain_remote_candidates)

    # =========================================================================
    # 룸 연결
    # =========================================================================

    def _join_url(self, params: RoomConnectionParameters) -> str:
        return f"{params.room_url}/{ROOM_JOIN}/{params.room_id}"

    def _connect_to_room_internal(self, params: RoomConnectionParameters) -> None:
        self._attempt += 1
        attempt = self._attempt
        self.connection_parameters = params
        self.room_state = RoomState.NEW
        self.candidates.reset()
        self.channel = self.channel_factory(self.executor, self)

        join_url = self._join_url(params)
        logger.info(f"[Coordinator] Connect to room: {join_url}")

        room_client = self.room_client_factory(
            lambda signaling: self.executor.execute(
                self._signaling_parameters_ready, attempt, signaling
            ),
            lambda description: self.executor.execute(
                self._signaling_parameters_error, attempt, description
            ),
        )
        room_client.fetch(join_url)

    def _is_current_attempt(self, attempt: int) -> bool:
        if attempt != self._attempt or self.room_state != RoomState.NEW:
            logger.debug(
                f"[Coordinator] Discard late room response "
                f"(attempt={attempt}, state={self.room_state.value})"
            )
            return False
        return True

    def _signaling_parameters_error(self, attempt: int, description: str) -> None:
        if self._is_current_attempt(attempt):
            self._report_error(description)

    def _signaling_parameters_ready(self, attempt: int, signaling: SignalingParameters) -> None:
        if not self._is_current_attempt(attempt):
            return
        params = self.connection_parameters
        logger.info("[Coordinator] Room connection completed.")

        if params.loopback and (not signaling.initiator or signaling.offer_sdp is not None):
            self._report_error(ProtocolError("Loopback room is busy."))
            return
        if not params.loopback and not signaling.initiator and signaling.offer_sdp is None:
            logger.warning("[Coordinator] No offer SDP in room response.")

        self.initiator = signaling.initiator
        self.message_url = (
            f"{params.room_url}/{ROOM_MESSAGE}/{params.room_id}/{signaling.client_id}"
        )
        self.leave_url = (
            f"{params.room_url}/{ROOM_LEAVE}/{params.room_id}/{signaling.client_id}"
        )
        logger.debug(f"[Coordinator] Message URL: {self.message_url}")
        logger.debug(f"[Coordinator] Leave URL: {self.leave_url}")
        self.room_state = RoomState.CONNECTED

        self.events.on_connected_to_room(signaling)
        if self.engine is not None:
            self._start_negotiation(signaling)

        self.channel.connect(signaling.wss_url, signaling.wss_post_url)
        self.channel.register(params.room_id, signaling.client_id)

    def _start_negotiation(self, signaling: SignalingParameters) -> None:
        self.candidates.start()
        if signaling.initiator:
            logger.info("[Coordinator] Creating OFFER...")
            self.engine.create_offer()
            return

        if signaling.offer_sdp is not None:
            self._set_remote_description(signaling.offer_sdp)
            for candidate in signaling.ice_candidates or []:
                self.candidates.add(candidate)
            logger.info("[Coordinator] Creating ANSWER...")
            self.engine.create_answer()

    def _disconnect_from_room_internal(self) -> None:
        logger.info(f"[Coordinator] Disconnect. Room state: {self.room_state.value}")
        if self.room_state == RoomState.CONNECTED:
            logger.debug("[Coordinator] Closing room.")
            self._send_post_message(self.leave_url, None, check_result=False)
        self.room_state = RoomState.CLOSED
        self.candidates.reset()
        if self.channel is not None:
            self.channel.disconnect(True)

    # =========================================================================
    # 로컬 → 원격
    # =========================================================================

    def _handle_local_description(self, sdp: SessionDescription) -> None:
        rewritten = apply_media_preferences(sdp.sdp, self.media_preferences, remote=False)
        logger.debug(f"[Coordinator] Local {sdp.type.value} ready ({len(rewritten)} bytes)")
        if sdp.type == SdpType.OFFER:
            self._send_offer_sdp_internal(rewritten)
        else:
            self._send_answer_sdp_internal(rewritten)

    def _send_offer_sdp_internal(self, sdp: str) -> None:
        if self.room_state != RoomState.CONNECTED:
            self._report_state_error(StateError("Sending offer SDP in non connected state."))
            return
        if self.connection_parameters.loopback:
            # offer를 answer로 바꿔 되돌림
            logger.debug("[Coordinator] Loopback offer routed back as answer")
            self._on_remote_description(SessionDescription(SdpType.ANSWER, sdp))
            return
        message = json.dumps({"sdp": sdp, "type": SdpType.OFFER.value})
        self._send_post_message(self.message_url, message)

    def _send_answer_sdp_internal(self, sdp: str) -> None:
        if self.room_state != RoomState.CONNECTED:
            self._report_state_error(StateError("Sending answer SDP in non connected state."))
            return
        if self.connection_parameters.loopback:
            logger.error("[Coordinator] Sending answer in loopback mode.")
            return
        message = json.dumps({"sdp": sdp, "type": SdpType.ANSWER.value})
        self.channel.send(message)

    def _send_local_ice_candidate_internal(self, candidate: IceCandidate) -> None:
        message = json.dumps(candidate.to_message())
        if self.initiator:
            # initiator는 룸 서버로 POST
            if self.room_state != RoomState.CONNECTED:
                self._report_state_error(
                    StateError("Sending ICE candidate in non connected state.")
                )
                return
            self._send_post_message(self.message_url, message)
            if self.connection_parameters.loopback:
                self._on_remote_ice_candidate(candidate)
        else:
            # receiver는 릴레이 채널로 전송
            if self.channel is None:
                logger.warning("[Coordinator] No channel, drop local candidate")
                return
            self.channel.send(message)

    def _send_post_message(self, url: str, message: Optional[str], check_result: bool = True) -> None:
        log_info = url if message is None else f"{url}. Message: {message}"
        logger.debug(f"[Coordinator] C->GAE: {log_info}")

        def on_complete(response: str) -> None:
            if check_result:
                self.executor.execute(self._check_post_response, response)

        def on_error(error: SignalingError) -> None:
            self._report_error(f"GAE POST error: {error.message}")

        AsyncHttpRequest(
            "POST",
            url,
            message,
            on_complete=on_complete,
            on_error=on_error,
            session=self.session,
            timeout_ms=self.http_timeout_ms,
            origin=self.origin,
        ).send()

    def _check_post_response(self, response: str) -> None:
        try:
            result = json.loads(response)["result"]
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            self._report_error(ParseError(f"GAE POST JSON error: {e}"))
            return
        if result != "SUCCESS":
            self._report_error(ProtocolError(f"GAE POST error: {result}"))

    # =========================================================================
    # 원격 → 로컬
    # =========================================================================

    def _on_remote_description(self, sdp: SessionDescription) -> None:
        self.events.on_remote_description(sdp)
        if self.engine is None:
            return
        self._set_remote_description(sdp)
        if not self.initiator and sdp.type == SdpType.OFFER:
            logger.info("[Coordinator] Creating ANSWER...")
            self.engine.create_answer()

    def _set_remote_description(self, sdp: SessionDescription) -> None:
        rewritten = apply_media_preferences(sdp.sdp, self.media_preferences, remote=True)
        self.engine.set_remote_description(SessionDescription(sdp.type, rewritten))

    def _on_remote_ice_candidate(self, candidate: IceCandidate) -> None:
        self.events.on_remote_ice_candidate(candidate)
        if self.engine is not None:
            self.candidates.add(candidate)

    def _apply_remote_candidate(self, candidate: IceCandidate) -> None:
        if self.engine is not None:
            self.engine.add_ice_candidate(candidate)

    def _drain_remote_candidates(self) -> None:
        count = self.candidates.drain()
        if count:
            logger.debug(f"[Coordinator] Applied {count} queued remote candidates")

    # -------------------------------------------------------------------------
    # SignalChannel 이벤트 (실행기에서 호출됨)
    # -------------------------------------------------------------------------

    def on_message(self, payload: str) -> None:
        """릴레이 메시지 처리.

        봉투 형식은 {"msg": "<json>"} 또는 {"error": "<text>"} 입니다.
        """
        if self.channel is None or self.channel.state != ChannelState.REGISTERED:
            logger.error("[Coordinator] Got WebSocket message in non registered state.")
            return
        try:
            envelope = json.loads(payload)
            msg_text = envelope.get("msg") or ""
            error_text = envelope.get("error") or ""
            if not msg_text:
                if error_text:
                    self._report_error(ProtocolError(f"WebSocket error message: {error_text}"))
                else:
                    self._report_error(ProtocolError(f"Unexpected WebSocket message: {payload}"))
                return

            message = json.loads(msg_text) if isinstance(msg_text, str) else msg_text
            message_type = message.get("type")
            candidate = None
            sdp = None
            if message_type == "candidate":
                candidate = IceCandidate.from_message(message)
            elif message_type in ("answer", "offer"):
                sdp = str(message["sdp"])
        except (json.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError) as e:
            self._report_error(ParseError(f"WebSocket message JSON parsing error: {e}"))
            return

        # 디코딩 이후의 이벤트 전달은 파싱 오류로 취급하지 않음
        if message_type == "candidate":
            self._on_remote_ice_candidate(candidate)
        elif message_type == "answer":
            if self.initiator:
                self._on_remote_description(SessionDescription(SdpType.ANSWER, sdp))
            else:
                self._report_error(
                    ProtocolError(f"Received answer for call initiator: {payload}")
                )
        elif message_type == "offer":
            if not self.initiator:
                self._on_remote_description(SessionDescription(SdpType.OFFER, sdp))
            else:
                self._report_error(
                    ProtocolError(f"Received offer for call receiver: {payload}")
                )
        elif message_type == "bye":
            self.events.on_channel_closed()
        else:
            self._report_error(ProtocolError(f"Unexpected WebSocket message: {payload}"))

    def on_close(self) -> None:
        self.events.on_channel_closed()

    def on_error(self, description: str) -> None:
        self._report_error(f"WebSocket error: {description}")

    # =========================================================================
    # 오류 처리
    # =========================================================================

    def _report_error(self, error: Union[SignalingError, str]) -> None:
        description = error.message if isinstance(error, SignalingError) else error
        logger.error(f"[Coordinator] {description}")
        self.executor.execute(self._handle_error, description)

    def _handle_error(self, description: str) -> None:
        if self.room_state != RoomState.ERROR:
            self.room_state = RoomState.ERROR
            self.events.on_channel_error(description)

    def _report_state_error(self, error: StateError) -> None:
        # RoomState는 그대로 두고 알리기만 함
        logger.error(f"[Coordinator] {error.code}: {error.message}")
        if self.room_state == RoomState.ERROR:
            return
        self.events.on_channel_error(error.message)

    def _create_room_client(self, on_ready, on_error) -> RoomClient:
        return RoomClient(
            on_ready,
            on_error,
            session=self.session,
            timeout_ms=self.http_timeout_ms,
            turn_timeout_ms=self.turn_timeout_ms,
            origin=self.origin,
        )

    def _create_channel(self, executor: SerialExecutor, events) -> SignalChannel:
        return SignalChannel(
            executor,
            events,
            session=self.session,
            http_timeout_ms=self.http_timeout_ms,
            origin=self.origin,
            close_timeout_ms=self.close_timeout_ms,
        )

"""릴레이(WebSocket) 시그널링 채널.

상태 전이:
    NEW -(open)-> CONNECTED -(register)-> REGISTERED -(leave)-> CONNECTED
    -(disconnect)-> CLOSED
    전송 계층 실패 -> ERROR (종료 상태)

등록 전에 send()된 메시지는 SendQueue에 쌓였다가 register() 시점에
하나씩 {"cmd": "send", "msg": ...} 프레임으로 전송됩니다.
모든 공개 메서드와 전송 계층 콜백은 채널의 직렬 실행기에서 실행됩니다.
"""

import json
import logging
import threading
from collections import deque
from typing import Callable, Deque, Optional, Protocol

import requests

from ..room.http import HTTP_ORIGIN, HTTP_TIMEOUT_MS, AsyncHttpRequest
from ..shared.dto import ChannelState
from ..shared.errors import SignalingError
from ..shared.executor import SerialExecutor
from .transport import TransportListener, WebSocketTransport

logger = logging.getLogger(__name__)

CLOSE_TIMEOUT_MS = 1000
BYE_MESSAGE = '{"type": "bye"}'


class SignalChannelEvents(Protocol):
    """SignalChannel 이벤트. 모두 채널 실행기에서 호출됩니다."""

    def on_message(self, payload: str) -> None: ...

    def on_close(self) -> None: ...

    def on_error(self, description: str) -> None: ...


class _TransportObserver:
    """전송 계층 콜백(리더 스레드)을 채널 실행기로 옮기는 어댑터."""

    def __init__(self, channel: "SignalChannel"):
        self.channel = channel

    def on_open(self) -> None:
        logger.debug(f"[Channel] WebSocket connection opened to: {self.channel.ws_url}")
        self.channel.executor.execute(self.channel._handle_open)

    def on_text(self, text: str) -> None:
        logger.debug(f"[Channel] WSS->C: {text}")
        self.channel.executor.execute(self.channel._handle_text, text)

    def on_close(self, code: int, reason: str) -> None:
        logger.debug(
            f"[Channel] WebSocket connection closed. Code: {code}. "
            f"Reason: {reason}. State: {self.channel.state.value}"
        )
        self.channel._close_event.set()
        self.channel.executor.execute(self.channel._handle_close)

    def on_error(self, description: str) -> None:
        self.channel._report_error(description)


class SignalChannel:
    """룸 릴레이 WebSocket 채널.

    Attributes:
        executor (SerialExecutor): 채널(과 소유 코디네이터)의 직렬 실행기
        events (SignalChannelEvents): 이벤트 수신자
        state (ChannelState): 현재 상태

    Note:
        - 공개 메서드는 실행기 스레드에서만 호출해야 함 (아니면 ExecutorThreadError)
        - CLOSED / ERROR 상태에서 send()된 메시지는 경고 로그와 함께 버려짐
        - on_close / on_error는 각각 최대 한 번만 전달됨

    Examples:
        >>> channel = SignalChannel(executor, events)
        >>> channel.connect("wss://example/ws", "https://example")
        >>> channel.register("room1", "client1")
        >>> channel.send('{"type": "answer", "sdp": "..."}')
    """

    def __init__(
        self,
        executor: SerialExecutor,
        events: SignalChannelEvents,
        transport_factory: Optional[Callable[[TransportListener], object]] = None,
        session: Optional[requests.Session] = None,
        http_timeout_ms: int = HTTP_TIMEOUT_MS,
        origin: str = HTTP_ORIGIN,
        close_timeout_ms: int = CLOSE_TIMEOUT_MS,
    ):
        self.executor = executor
        self.events = events
        self.transport_factory = transport_factory or (
            lambda listener: WebSocketTransport(
                listener, origin=origin, close_timeout=close_timeout_ms / 1000.0
            )
        )
        self.session = session
        self.http_timeout_ms = http_timeout_ms
        self.origin = origin
        self.close_timeout_ms = close_timeout_ms

        self.state = ChannelState.NEW
        self.ws_url: Optional[str] = None
        self.post_url: Optional[str] = None
        self.room_id: Optional[str] = None
        self.client_id: Optional[str] = None

        self._transport = None
        self._send_queue: Deque[str] = deque()
        self._close_event = threading.Event()

    @property
    def pending_messages(self) -> int:
        return len(self._send_queue)

    def connect(self, ws_url: str, post_url: str) -> None:
        """전송 계층 연결을 시작합니다. NEW 상태에서만 동작합니다."""
        self.executor.check_is_on_executor_thread()
        if self.state != ChannelState.NEW:
            logger.error(f"[Channel] WebSocket is already connected. State: {self.state.value}")
            return
        self.ws_url = ws_url
        self.post_url = post_url
        self._close_event.clear()

        logger.info(f"[Channel] Connecting WebSocket to: {ws_url}. Post URL: {post_url}")
        self._transport = self.transport_factory(_TransportObserver(self))
        try:
            self._transport.connect(ws_url)
        except Exception as e:
            self._report_error(f"WebSocket connection error: {e}")

    def register(self, room_id: str, client_id: str) -> None:
        """룸에 등록합니다. 아직 CONNECTED가 아니면 연결 후로 미룹니다."""
        self.executor.check_is_on_executor_thread()
        self.room_id = room_id
        self.client_id = client_id
        if self.state != ChannelState.CONNECTED:
            logger.debug(f"[Channel] WebSocket register() in state {self.state.value}")
            return

        logger.info(f"[Channel] Registering WebSocket for room {room_id}. ClientID: {client_id}")
        frame = json.dumps({"cmd": "register", "roomid": room_id, "clientid": client_id})
        logger.debug(f"[Channel] C->WSS: {frame}")
        self._transport.send_text(frame)
        self.state = ChannelState.REGISTERED

        while self._send_queue:
            self._send_frame(self._send_queue.popleft())

    def send(self, message: str) -> None:
        self.executor.check_is_on_executor_thread()
        if self.state in (ChannelState.NEW, ChannelState.CONNECTED):
            logger.debug(f"[Channel] WS ACC: {message}")
            self._send_queue.append(message)
        elif self.state in (ChannelState.CLOSED, ChannelState.ERROR):
            logger.warning(f"[Channel] WebSocket send() in {self.state.value} state : {message}")
        else:
            self._send_frame(message)

    def post(self, message: str) -> None:
        """릴레이 HTTP 엔드포인트로 메시지를 보냅니다 (소켓 연결 전에도 사용 가능)."""
        self.executor.check_is_on_executor_thread()
        self._send_wss_message("POST", message)

    def disconnect(self, wait_for_close: bool) -> None:
        """채널을 닫습니다.

        Args:
            wait_for_close (bool): True면 전송 계층의 종료 확인을
                close_timeout_ms 동안 기다림
        """
        self.executor.check_is_on_executor_thread()
        logger.debug(f"[Channel] Disconnect WebSocket. State: {self.state.value}")
        if self.state == ChannelState.REGISTERED:
            self.send(BYE_MESSAGE)
            self.state = ChannelState.CONNECTED

        if self.state in (ChannelState.CONNECTED, ChannelState.ERROR):
            if self._transport is not None:
                self._transport.close()
            self._send_wss_message("DELETE", "")
            self.state = ChannelState.CLOSED
            if wait_for_close:
                if not self._close_event.wait(self.close_timeout_ms / 1000.0):
                    logger.warning("[Channel] WebSocket close was not confirmed in time")
        elif self.state == ChannelState.NEW and self._transport is not None:
            # 연결이 열리기 전에 종료
            self._transport.close()
            self.state = ChannelState.CLOSED
        self._send_queue.clear()
        logger.debug("[Channel] Disconnecting WebSocket done.")

    def _send_frame(self, message: str) -> None:
        frame = json.dumps({"cmd": "send", "msg": message})
        logger.debug(f"[Channel] C->WSS: {frame}")
        self._transport.send_text(frame)

    def _send_wss_message(self, method: str, message: str) -> None:
        url = f"{self.post_url}/{self.room_id}/{self.client_id}"
        logger.debug(f"[Channel] WS {method} : {url} : {message}")

        def on_error(error: SignalingError) -> None:
            self._report_error(f"WS {method} error: {error.message}")

        AsyncHttpRequest(
            method,
            url,
            message,
            on_complete=lambda _: None,
            on_error=on_error,
            session=self.session,
            timeout_ms=self.http_timeout_ms,
            origin=self.origin,
        ).send()

    def _report_error(self, description: str) -> None:
        logger.error(f"[Channel] {description}")
        self.executor.execute(self._handle_error, description)

    def _handle_open(self) -> None:
        if self.state != ChannelState.NEW:
            logger.debug(f"[Channel] Ignore open in state {self.state.value}")
            return
        self.state = ChannelState.CONNECTED
        if self.room_id is not None and self.client_id is not None:
            self.register(self.room_id, self.client_id)

    def _handle_text(self, text: str) -> None:
        if self.state in (ChannelState.CONNECTED, ChannelState.REGISTERED):
            self.events.on_message(text)

    def _handle_close(self) -> None:
        if self.state != ChannelState.CLOSED:
            self.state = ChannelState.CLOSED
            self.events.on_close()

    def _handle_error(self, description: str) -> None:
        if self.state not in (ChannelState.ERROR, ChannelState.CLOSED):
            self.state = ChannelState.ERROR
            self.events.on_error(description)

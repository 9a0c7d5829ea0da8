"""룸 입장 점검 CLI.

협상 엔진 없이 룸에 입장해 서버가 준 시그널링 파라미터를 출력하고 나옵니다.

Usage:
    python -m rtc_signaling room1
    python -m rtc_signaling room1 --room-url https://appr.tc --loopback
    python -m rtc_signaling room1 --log-level DEBUG --timeout 15
"""

import argparse
import logging
import sys
import threading
from typing import Optional

from .config import get_signaling_settings
from .logging_config import setup_logging
from .negotiation import NegotiationCoordinator
from .shared import IceCandidate, RoomConnectionParameters, SessionDescription, SignalingParameters

logger = logging.getLogger(__name__)


class _JoinProbe:
    """첫 번째 연결 결과(성공/실패)를 기다리는 이벤트 수신자."""

    def __init__(self):
        self.done = threading.Event()
        self.params: Optional[SignalingParameters] = None
        self.error: Optional[str] = None

    def on_connected_to_room(self, params: SignalingParameters) -> None:
        self.params = params
        self.done.set()

    def on_remote_description(self, sdp: SessionDescription) -> None:
        logger.info(f"[CLI] Remote {sdp.type.value} received")

    def on_remote_ice_candidate(self, candidate: IceCandidate) -> None:
        logger.info(f"[CLI] Remote candidate: {candidate.candidate}")

    def on_channel_closed(self) -> None:
        logger.info("[CLI] Channel closed")

    def on_channel_error(self, description: str) -> None:
        if self.error is None:
            self.error = description
        self.done.set()


def print_parameters(params: SignalingParameters) -> None:
    print(f"client_id     : {params.client_id}")
    print(f"initiator     : {params.initiator}")
    print(f"wss_url       : {params.wss_url}")
    print(f"wss_post_url  : {params.wss_post_url}")
    for server in params.ice_servers:
        print(f"ice_server    : {server.uri} (username={server.username or '-'})")
    print(f"offer_sdp     : {'yes' if params.offer_sdp else 'no'}")
    print(f"candidates    : {len(params.ice_candidates or [])}")


def main(argv=None) -> int:
    settings = get_signaling_settings()
    parser = argparse.ArgumentParser(description="Join a signaling room and print its parameters")
    parser.add_argument("room_id", help="Room ID to join")
    parser.add_argument(
        "--room-url",
        default=settings.ROOM_SERVER_URL,
        help=f"Room server URL (default: {settings.ROOM_SERVER_URL})"
    )
    parser.add_argument(
        "--loopback",
        action="store_true",
        help="Join in loopback mode"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (default: settings.LOG_LEVEL)"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=10.0,
        help="Seconds to wait for the room response"
    )
    args = parser.parse_args(argv)

    setup_logging(level=args.log_level)

    probe = _JoinProbe()
    coordinator = NegotiationCoordinator.from_settings(probe, settings=settings)
    coordinator.connect_to_room(
        RoomConnectionParameters(args.room_url, args.room_id, loopback=args.loopback)
    )

    if not probe.done.wait(args.timeout):
        probe.error = f"No room response in {args.timeout} seconds"

    coordinator.disconnect_from_room()

    if probe.error is not None:
        logger.error(f"[CLI] {probe.error}")
        return 1
    print_parameters(probe.params)
    return 0


if __name__ == "__main__":
    sys.exit(main())

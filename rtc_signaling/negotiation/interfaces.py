"""외부 협력자 인터페이스.

협상 엔진(코덱, DTLS/SRTP, 실제 미디어 전송)과 상위 계층(UI 등)은 이 패키지
범위 밖에 있으며, 아래 Protocol로만 참조됩니다.
"""

from typing import Protocol

from ..shared.dto import IceCandidate, SessionDescription, SignalingParameters


class NegotiationEngine(Protocol):
    """코디네이터가 호출하는 협상 엔진 API.

    엔진은 결과를 NegotiationCoordinator의 on_local_description_ready /
    on_local_ice_candidate / on_both_descriptions_set 으로 알려야 합니다.
    """

    def create_offer(self) -> None: ...

    def create_answer(self) -> None: ...

    def set_remote_description(self, sdp: SessionDescription) -> None: ...

    def add_ice_candidate(self, candidate: IceCandidate) -> None: ...


class SignalingEvents(Protocol):
    """코디네이터가 상위 계층에 전달하는 이벤트.

    모든 콜백은 코디네이터의 실행 컨텍스트에서 호출됩니다.
    """

    def on_connected_to_room(self, params: SignalingParameters) -> None: ...

    def on_remote_description(self, sdp: SessionDescription) -> None: ...

    def on_remote_ice_candidate(self, candidate: IceCandidate) -> None: ...

    def on_channel_closed(self) -> None: ...

    def on_channel_error(self, description: str) -> None: ...

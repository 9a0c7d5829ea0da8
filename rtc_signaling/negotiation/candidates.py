"""원격 ICE candidate 대기열.

로컬/원격 SDP가 모두 설정되기 전에 도착한 원격 candidate를 보관했다가,
두 SDP가 설정되는 순간 도착 순서대로 협상 엔진에 전달합니다.
"""

import logging
from collections import deque
from typing import Callable, Deque, List, Optional

from ..shared.dto import IceCandidate

logger = logging.getLogger(__name__)


class IceCandidateQueue:
    """두 SDP가 모두 설정되기 전에는 원격 candidate를 적용하지 않는 버퍼.

    Attributes:
        sink (Callable[[IceCandidate], None]): candidate를 실제로 적용하는 함수
            (보통 NegotiationEngine.add_ice_candidate)

    Note:
        - 소유 액터의 실행 컨텍스트에서만 호출되어야 함 (락 없음)
        - start() 이전이나 drain() 이후에 들어온 candidate는 즉시 적용됨
    """

    def __init__(self, sink: Callable[[IceCandidate], None]):
        self.sink = sink
        self._queue: Optional[Deque[IceCandidate]] = None

    @property
    def is_queuing(self) -> bool:
        return self._queue is not None

    @property
    def pending(self) -> List[IceCandidate]:
        return list(self._queue) if self._queue is not None else []

    def start(self) -> None:
        """새 협상 라운드를 시작합니다 (빈 대기열 생성)."""
        self._queue = deque()

    def add(self, candidate: IceCandidate) -> None:
        if self._queue is not None:
            self._queue.append(candidate)
            return
        self.sink(candidate)

    def drain(self) -> int:
        """대기 중인 candidate를 FIFO 순서로 적용하고 대기열을 폐기합니다.

        Returns:
            int: 적용한 candidate 수
        """
        if self._queue is None:
            return 0
        queue, self._queue = self._queue, None
        logger.debug(f"[Candidates] Add {len(queue)} remote candidates")
        for candidate in queue:
            self.sink(candidate)
        return len(queue)

    def reset(self) -> None:
        """적용하지 않고 대기열을 버립니다 (연결 종료 시)."""
        self._queue = None

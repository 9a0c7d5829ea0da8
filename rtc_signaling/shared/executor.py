"""직렬 실행 컨텍스트.

각 액터(NegotiationCoordinator + SignalChannel)는 하나의 워커 스레드에서
모든 공개 작업과 콜백을 순서대로 실행합니다. 덕분에 액터 내부 상태
(RoomState, ChannelState, SendQueue, CandidateQueue)에 락이 필요 없습니다.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional

from .errors import ExecutorThreadError

logger = logging.getLogger(__name__)


class SerialExecutor:
    """단일 워커 스레드 기반 직렬 실행기.

    Attributes:
        name (str): 워커 스레드 이름 접두사

    Note:
        - execute()로 게시된 작업은 도착 순서대로 실행됨
        - request_stop() 이후 게시된 작업은 경고 로그와 함께 버려짐
        - 작업에서 발생한 예외는 로그로 남고 다음 작업은 계속 실행됨

    Examples:
        >>> executor = SerialExecutor("coordinator")
        >>> executor.request_start()
        >>> executor.execute(print, "hello")
        >>> executor.request_stop()
    """

    def __init__(self, name: str = "serial"):
        self.name = name
        self._pool: Optional[ThreadPoolExecutor] = None
        self._thread_id: Optional[int] = None
        self._started = threading.Event()
        self._lock = threading.Lock()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def _on_worker_start(self) -> None:
        self._thread_id = threading.get_ident()
        self._started.set()
        logger.debug(f"[Executor] {self.name} 워커 스레드 시작")

    def request_start(self) -> None:
        """워커 스레드를 시작합니다. 이미 실행 중이면 무시합니다."""
        with self._lock:
            if self._running:
                return
            self._started.clear()
            self._pool = ThreadPoolExecutor(
                max_workers=1,
                thread_name_prefix=self.name,
                initializer=self._on_worker_start,
            )
            self._running = True
        # 워커 스레드는 첫 작업에서 생성되므로 빈 작업으로 강제 기동
        self._pool.submit(lambda: None)
        self._started.wait()

    def request_stop(self) -> None:
        """이미 게시된 작업을 모두 실행한 뒤 워커를 종료합니다."""
        with self._lock:
            if not self._running:
                return
            self._running = False
            pool = self._pool
        pool.shutdown(wait=False)
        logger.debug(f"[Executor] {self.name} 종료 요청")

    def join(self, timeout: Optional[float] = None) -> bool:
        """게시된 작업이 모두 끝날 때까지 기다립니다 (테스트/CLI용)."""
        if self.is_on_executor_thread():
            raise ExecutorThreadError("join() called on executor thread")
        future = self.submit(lambda: None)
        if future is None:
            return True
        future.result(timeout=timeout)
        return True

    def is_on_executor_thread(self) -> bool:
        return self._thread_id is not None and threading.get_ident() == self._thread_id

    def check_is_on_executor_thread(self) -> None:
        if not self.is_on_executor_thread():
            raise ExecutorThreadError(
                f"{self.name}: method is not called on executor thread"
            )

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Optional[Future]:
        """작업을 게시하고 Future를 반환합니다. 실행기가 멈춰 있으면 None."""
        with self._lock:
            if not self._running:
                logger.warning(f"[Executor] {self.name} 실행기가 시작되지 않아 작업을 버림")
                return None
            try:
                return self._pool.submit(self._run, fn, args, kwargs)
            except RuntimeError:
                logger.warning(f"[Executor] {self.name} 종료된 실행기에 작업 게시 시도")
                return None

    def execute(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        self.submit(fn, *args, **kwargs)

    def _run(self, fn: Callable[..., Any], args: tuple, kwargs: dict) -> Any:
        try:
            return fn(*args, **kwargs)
        except Exception:
            logger.exception(f"[Executor] {self.name} 작업 실행 중 예외: {getattr(fn, '__name__', fn)}")
            raise

"""
===========================================
로깅 설정 모듈
===========================================

시그널링 클라이언트의 로그 메시지는 `[Room]`, `[Channel]`, `[Coordinator]`
같은 컴포넌트 태그로 시작합니다. 이 모듈은 그 태그를 별도 컬럼으로 옮겨
출력하고, 패키지 로거와 외부 라이브러리 로거의 레벨을 SignalingSettings
값으로 나눠 설정합니다.

출력 예시:
    2024-05-01 12:00:00 | INFO     | Room        | Room connected: initiator=True

사용 예시:
    from rtc_signaling.logging_config import setup_logging

    setup_logging()                  # settings.LOG_LEVEL / LOG_FILE_PATH
    setup_logging(level="DEBUG")     # CLI 옵션으로 덮어쓰기
"""

import logging
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .config import SignalingSettings, get_signaling_settings

PACKAGE_LOGGER = "rtc_signaling"

# 요청/소켓 단위 로그가 많은 라이브러리
LIBRARY_LOGGERS = ("urllib3", "websockets")

LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(component)-11s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

_TAG_PATTERN = re.compile(r"^\[(?P<component>[A-Za-z]+)\]\s*")


class ComponentTagFilter(logging.Filter):
    """메시지 앞의 컴포넌트 태그를 record.component 로 옮기는 필터.

    태그가 없는 레코드(외부 라이브러리 등)는 로거 이름의 마지막 부분을
    컴포넌트로 씁니다. 핸들러가 여러 개여도 한 번만 처리합니다.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "component", None) is not None:
            return True
        component = record.name.rsplit(".", 1)[-1]
        if isinstance(record.msg, str):
            match = _TAG_PATTERN.match(record.msg)
            if match:
                component = match.group("component")
                record.msg = record.msg[match.end():]
        record.component = component
        return True


def _level_of(name: str, default: int) -> int:
    return getattr(logging, name.upper(), default) if name else default


def _build_handler(handler: logging.Handler, formatter: logging.Formatter) -> logging.Handler:
    handler.setFormatter(formatter)
    handler.addFilter(ComponentTagFilter())
    return handler


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    settings: Optional[SignalingSettings] = None,
) -> logging.Logger:
    """
    로깅 설정 초기화

    Args:
        level: 패키지 로그 레벨 (기본: settings.LOG_LEVEL)
        log_file: 로그 파일 경로 (기본: settings.LOG_FILE_PATH)
        settings: 설정 객체 (기본: get_signaling_settings())

    Returns:
        logging.Logger: rtc_signaling 패키지 로거

    Note:
        루트 로거의 기존 핸들러를 교체하므로 시작 시 한 번만 호출합니다.
    """
    settings = settings or get_signaling_settings()
    level = (level or settings.LOG_LEVEL).upper()
    log_file = log_file or settings.LOG_FILE_PATH

    package_level = _level_of(level, logging.INFO)
    library_level = _level_of(settings.LIBRARY_LOG_LEVEL, logging.WARNING)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(package_level)
    root_logger.handlers.clear()
    root_logger.addHandler(_build_handler(logging.StreamHandler(sys.stdout), formatter))

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        # 10MB마다 새 파일, 최대 5개 백업 유지
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding='utf-8'
        )
        root_logger.addHandler(_build_handler(file_handler, formatter))

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(package_level)
    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    package_logger.info(
        f"[Logging] level={level}, library_level={logging.getLevelName(library_level)}, "
        f"file={log_file or 'None'}"
    )
    return package_logger

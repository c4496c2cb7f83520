"""로깅 설정

콘솔 + 파일 로깅을 구성한다.
콘솔 형식: color(기본) | plain | json
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path


# ANSI 컬러 코드
_COLORS = {
    "DEBUG": "\033[36m",     # Cyan
    "INFO": "\033[32m",      # Green
    "WARNING": "\033[33m",   # Yellow
    "ERROR": "\033[31m",     # Red
    "CRITICAL": "\033[35m",  # Magenta
    "RESET": "\033[0m",
}

LOG_FORMATS = ("color", "plain", "json")

_CONSOLE_FMT = "%(asctime)s %(levelname)s %(name)s │ %(message)s"
_FILE_FMT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class ColorFormatter(logging.Formatter):
    """컬러 로그 포매터"""

    def format(self, record: logging.LogRecord) -> str:
        color = _COLORS.get(record.levelname, "")
        reset = _COLORS["RESET"]
        original = record.levelname
        record.levelname = f"{color}{record.levelname:<8}{reset}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


class JsonFormatter(logging.Formatter):
    """한 줄 JSON 로그 포매터 (로그 수집기용)"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def setup_logging(
    level: str = "INFO",
    log_file: str | Path | None = None,
    fmt: str = "color",
) -> None:
    """로깅 초기화

    Args:
        level: 로그 레벨 (DEBUG, INFO, WARNING, ERROR)
        log_file: 로그 파일 경로 (None이면 콘솔만)
        fmt: 콘솔 형식 (color, plain, json)
    """
    if fmt not in LOG_FORMATS:
        raise ValueError(f"지원하지 않는 로그 형식: {fmt} ({', '.join(LOG_FORMATS)})")

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # 기존 핸들러 제거
    root.handlers.clear()

    # 콘솔 핸들러
    console = logging.StreamHandler(sys.stdout)
    if fmt == "json":
        console.setFormatter(JsonFormatter())
    elif fmt == "color":
        console.setFormatter(ColorFormatter(fmt=_CONSOLE_FMT, datefmt="%H:%M:%S"))
    else:
        console.setFormatter(logging.Formatter(fmt=_CONSOLE_FMT, datefmt="%H:%M:%S"))
    root.addHandler(console)

    # 파일 핸들러 (선택)
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(path, encoding="utf-8")
        if fmt == "json":
            fh.setFormatter(JsonFormatter())
        else:
            fh.setFormatter(logging.Formatter(fmt=_FILE_FMT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(fh)

    # 라이브러리 내부 로그 레벨 조정
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)

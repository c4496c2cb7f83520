"""에이전트 오류 분류

모든 오류는 AgentError를 상속하며, 와이어 오류 디스크립터
{kind, message, retryable}로 변환될 수 있다.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """와이어 오류 종류"""

    CONNECTION_ERROR = "connection_error"
    TIMEOUT = "timeout"
    HANDLER_TIMEOUT = "handler_timeout"
    UNKNOWN_TYPE = "unknown_type"
    INVALID_PAYLOAD = "invalid_payload"
    SESSION_NOT_FOUND = "session_not_found"
    SESSION_EXPIRED = "session_expired"
    HANDLER_FAILURE = "handler_failure"
    CONFIGURATION = "configuration"


class AgentError(Exception):
    """에이전트 기본 오류"""

    kind: ErrorKind = ErrorKind.HANDLER_FAILURE
    retryable: bool = False

    def __init__(self, message: str, retryable: bool | None = None) -> None:
        super().__init__(message)
        self.message = message
        if retryable is not None:
            self.retryable = retryable

    def descriptor(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "retryable": self.retryable,
        }


class BusConnectionError(AgentError):
    """버스 연결 불가 (재시도 대상, 프로세스 치명 오류 아님)"""

    kind = ErrorKind.CONNECTION_ERROR
    retryable = True


class BusDrainingError(BusConnectionError):
    """DRAINING 중 새 구독/요청 거부"""

    retryable = False


class RequestTimeout(AgentError):
    """request-reply 응답 시간 초과"""

    kind = ErrorKind.TIMEOUT
    retryable = True


class HandlerTimeout(AgentError):
    """핸들러 실행 시간 초과 (결과 폐기)"""

    kind = ErrorKind.HANDLER_TIMEOUT
    retryable = True


class UnknownType(AgentError):
    kind = ErrorKind.UNKNOWN_TYPE


class InvalidPayload(AgentError):
    kind = ErrorKind.INVALID_PAYLOAD


class SessionError(AgentError):
    """세션 오류 기본 클래스"""

    def __init__(self, session_id: str, message: str) -> None:
        super().__init__(message)
        self.session_id = session_id


class SessionNotFound(SessionError):
    kind = ErrorKind.SESSION_NOT_FOUND

    def __init__(self, session_id: str) -> None:
        super().__init__(session_id, f"세션을 찾을 수 없습니다: {session_id}")


class SessionExpired(SessionError):
    kind = ErrorKind.SESSION_EXPIRED

    def __init__(self, session_id: str) -> None:
        super().__init__(session_id, f"세션이 만료되었습니다: {session_id}")


class HandlerFailure(AgentError):
    """역량 핸들러가 보고한 도메인 오류. retryable은 핸들러가 분류한다."""

    kind = ErrorKind.HANDLER_FAILURE


class ModelProviderError(HandlerFailure):
    """언어 모델 HTTP 서비스 오류"""

    retryable = True


class ConfigurationError(AgentError):
    kind = ErrorKind.CONFIGURATION

"""버스 연결 상태 머신

상태 전이 규칙을 정의하고 검증한다.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class ConnectionState(Enum):
    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()
    DRAINING = auto()


@dataclass(frozen=True, slots=True)
class BusStatus:
    """관측 가능한 연결 상태. attempt는 CONNECTING일 때만 의미가 있다."""

    state: ConnectionState
    attempt: int = 0

    @property
    def is_connected(self) -> bool:
        return self.state in (ConnectionState.CONNECTED, ConnectionState.DRAINING)

    def label(self) -> str:
        if self.state is ConnectionState.CONNECTING:
            return f"connecting({self.attempt})"
        return self.state.name.lower()


# 허용된 상태 전이 맵: {현재상태: {허용되는 다음 상태들}}
_VALID_TRANSITIONS: dict[ConnectionState, frozenset[ConnectionState]] = {
    ConnectionState.DISCONNECTED: frozenset({
        ConnectionState.CONNECTING, ConnectionState.DRAINING,
    }),
    ConnectionState.CONNECTING: frozenset({
        ConnectionState.CONNECTING,  # 다음 시도
        ConnectionState.CONNECTED,
        ConnectionState.DISCONNECTED,
        ConnectionState.DRAINING,
    }),
    ConnectionState.CONNECTED: frozenset({
        ConnectionState.DISCONNECTED, ConnectionState.DRAINING,
    }),
    ConnectionState.DRAINING: frozenset({
        ConnectionState.DISCONNECTED,
    }),
}


def validate_transition(current: ConnectionState, target: ConnectionState) -> bool:
    """상태 전이가 유효한지 검증"""
    allowed = _VALID_TRANSITIONS.get(current, frozenset())
    return target in allowed

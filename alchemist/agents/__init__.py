"""에이전트 패키지

구성:
  AgentService      - 총괄 조율
  BusGateway        - 버스 연결/구독/발행/request-reply
  Dispatcher        - 메시지 → 핸들러 라우팅
  HealthAgent       - 상태 집계
  SessionSweepAgent - 만료 세션 정리
"""

from alchemist.agents.base import BaseAgent, AgentLifecycle
from alchemist.agents.bus_gateway import BusGateway, Subscription
from alchemist.agents.dispatcher import Dispatcher, DispatchOutcome
from alchemist.agents.health_agent import HealthAgent
from alchemist.agents.orchestrator import AgentService, ServiceState
from alchemist.agents.sweeper import SessionSweepAgent

__all__ = [
    "BaseAgent",
    "AgentLifecycle",
    "AgentService",
    "ServiceState",
    "BusGateway",
    "Subscription",
    "Dispatcher",
    "DispatchOutcome",
    "HealthAgent",
    "SessionSweepAgent",
]

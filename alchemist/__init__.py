"""Alchemist 에이전트

메시지 버스 위에서 명령/쿼리를 받아 역량 핸들러로 라우팅하고,
대화 세션과 상태(health)를 관리하는 장기 실행 에이전트.
"""

__version__ = "0.3.0"
NAME = "alchemist"

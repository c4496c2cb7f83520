"""Alchemist 에이전트 - CLI 진입점

사용 예시:
    alchemist --config config.yaml
    alchemist --bus redis://localhost:6379/0 --log-level DEBUG

    alchemist --query list_concepts
    alchemist --query find_similar_concepts --params '{"concept": "Event Sourcing"}'
    alchemist --health
"""

from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys
from typing import Any, Optional

from alchemist import __version__
from alchemist.agents.orchestrator import AgentService
from alchemist.client import AgentClient
from alchemist.models.config import AgentConfig
from alchemist.models.envelope import Response
from alchemist.models.errors import AgentError
from alchemist.utils.config_loader import load_config
from alchemist.utils.logging_config import LOG_FORMATS, setup_logging


BANNER = rf"""
  ╔══════════════════════════════════════════════╗
  ║   Alchemist Agent v{__version__:<26}║
  ║   CIM Architecture Assistant                 ║
  ╚══════════════════════════════════════════════╝
"""


def parse_params(s: str) -> dict[str, Any]:
    """JSON 객체 문자열 파싱"""
    try:
        value = json.loads(s)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"JSON 형식이 올바르지 않습니다: {e}") from e
    if not isinstance(value, dict):
        raise argparse.ArgumentTypeError("파라미터는 JSON 객체여야 합니다")
    return value


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="alchemist",
        description="Alchemist CIM 에이전트",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "예시:\n"
            "  alchemist --config config.yaml\n"
            "  alchemist --query list_concepts\n"
            "  alchemist --health"
        ),
    )
    p.add_argument("-c", "--config", default=None, help="YAML 설정 파일 경로")
    p.add_argument(
        "--bus",
        action="append",
        default=None,
        help="버스 서버 URL (반복 지정 가능, 설정 파일보다 우선)",
    )
    p.add_argument("--prefix", default=None, help="주제 접두사")
    p.add_argument("--model", default=None, help="언어 모델 이름")
    p.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    p.add_argument("--log-file", default=None, help="로그 파일 경로")
    p.add_argument("--log-format", default=None, choices=list(LOG_FORMATS))

    mode = p.add_mutually_exclusive_group()
    mode.add_argument("--query", metavar="TYPE", help="쿼리 1건을 보내고 응답 출력 후 종료")
    mode.add_argument("--command", metavar="TYPE", help="명령 1건을 보내고 결과 출력 후 종료")
    mode.add_argument("--health", action="store_true", help="상태 조회 후 종료")
    p.add_argument(
        "--params",
        type=parse_params,
        default=None,
        help="쿼리/명령 파라미터 (JSON 객체)",
    )
    p.add_argument("--timeout", type=float, default=10.0, help="응답 대기 초 (기본: 10)")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def build_config(args: argparse.Namespace) -> AgentConfig:
    """설정 파일 + 환경 변수 + CLI 인자 순으로 병합"""
    config = load_config(args.config)
    if args.bus:
        config.bus.servers = list(args.bus)
    if args.prefix:
        config.bus.subject_prefix = args.prefix
    if args.model:
        config.model.model = args.model
    if args.log_level:
        config.service.log_level = args.log_level
    if args.log_file:
        config.service.log_file = args.log_file
    if args.log_format:
        config.service.log_format = args.log_format
    return config


async def run(config: AgentConfig) -> None:
    """AgentService 실행 (SIGINT/SIGTERM 시 정상 종료)"""
    service = AgentService(config)

    loop = asyncio.get_running_loop()

    def _signal_handler() -> None:
        print("\n\n  종료 신호 감지 - 에이전트 중지 중...")
        service.stop()

    if sys.platform != "win32":
        loop.add_signal_handler(signal.SIGINT, _signal_handler)
        loop.add_signal_handler(signal.SIGTERM, _signal_handler)

    print("  중지하려면 Ctrl+C를 누르세요\n")

    try:
        metrics = await service.run()
        print(f"\n{metrics.summary()}")
    except KeyboardInterrupt:
        service.stop()


async def run_once(config: AgentConfig, args: argparse.Namespace) -> Response:
    """클라이언트 모드: 요청 1건 송신 후 응답 반환"""
    async with AgentClient(config.bus, timeout=args.timeout) as client:
        if args.health:
            return await client.health()
        if args.command:
            return await client.request_command(args.command, args.params)
        return await client.query(args.query, args.params)


def cli_entry() -> None:
    """CLI 진입점 (pyproject.toml scripts에서 호출)"""
    main()


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = build_config(args)
    except AgentError as e:
        parser.error(e.message)

    setup_logging(
        level=config.service.log_level,
        log_file=config.service.log_file or None,
        fmt=config.service.log_format,
    )

    if args.query or args.command or args.health:
        try:
            response = asyncio.run(run_once(config, args))
        except AgentError as e:
            print(json.dumps({"success": False, "error": e.descriptor()}, ensure_ascii=False))
            sys.exit(1)
        print(json.dumps(response.to_wire(), ensure_ascii=False, indent=2))
        sys.exit(0 if response.success else 1)

    print(BANNER)

    try:
        asyncio.run(run(config))
    except AgentError as e:
        print(f"  [오류] {e.message}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n  프로그램 종료")
        sys.exit(0)


if __name__ == "__main__":
    main()

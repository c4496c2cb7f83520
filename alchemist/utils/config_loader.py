"""설정 파일 로더

YAML 설정 파일 → AgentConfig. 구조:

    identity: {agent_id, name, description, version, organization}
    model:    {provider, base_url, model, timeout, temperature, max_tokens}
    bus:      {servers, subject_prefix, dialog_prefix, retry: {...}, dedup_window, ...}
    service:  {handler_timeout, health_check_interval, shutdown_timeout,
               logging: {level, format, file}}
    domains:  {dialog: {...}, graph: {...}, workflow: {...}}

시간 값은 숫자(초) 또는 "100ms" / "30s" / "5m" / "1h" 문자열.
환경 변수 ALCHEMIST_<섹션>_<필드> 가 파일 값보다 우선한다.
  예) ALCHEMIST_BUS_SERVERS=redis://a:6379/0,redis://b:6379/0
      ALCHEMIST_MODEL_BASE_URL=http://ollama:11434
      ALCHEMIST_BUS_RETRY_MAX_ATTEMPTS=8
"""

from __future__ import annotations

import dataclasses
import logging
import os
import re
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from alchemist.models.config import AgentConfig
from alchemist.models.errors import ConfigurationError

logger = logging.getLogger("alchemist.config")

ENV_PREFIX = "ALCHEMIST_"

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, None: 1.0}

# 시간 값으로 해석할 필드 이름
DURATION_FIELDS = frozenset({
    "timeout", "connect_timeout",
    "initial_delay", "max_delay",
    "dedup_window", "publish_timeout", "drain_grace",
    "session_timeout", "sweep_interval",
    "handler_timeout", "health_check_interval", "shutdown_timeout",
})

# YAML 섹션 경로 → AgentConfig 속성
_SECTIONS: dict[tuple[str, ...], str] = {
    ("identity",): "identity",
    ("model",): "model",
    ("bus",): "bus",
    ("service",): "service",
    ("domains", "dialog"): "dialog",
    ("domains", "graph"): "graph",
    ("domains", "workflow"): "workflow",
}

# service.logging.* → ServiceConfig 필드
_LOGGING_KEYS = {"level": "log_level", "format": "log_format", "file": "log_file"}


def parse_duration(value: Any) -> float:
    """숫자(초) 또는 단위 문자열 → 초"""
    if isinstance(value, bool):
        raise ConfigurationError(f"시간 값이 아닙니다: {value!r}")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ConfigurationError(f"시간 값은 음수일 수 없습니다: {value}")
        return float(value)
    if isinstance(value, str):
        m = _DURATION_RE.match(value.lower())
        if m:
            return float(m.group(1)) * _DURATION_UNITS[m.group(2)]
    raise ConfigurationError(f"시간 형식이 올바르지 않습니다: {value!r}")


def load_config(
    path: str | Path | None = None,
    env: Optional[Mapping[str, str]] = None,
) -> AgentConfig:
    """설정 파일 + 환경 변수 → AgentConfig

    path가 None이면 기본값에서 시작한다.
    """
    config = AgentConfig()
    if path is not None:
        raw = _read_yaml(Path(path))
        apply_mapping(config, raw)
    apply_env(config, os.environ if env is None else env)
    logger.debug("설정 로드 완료: %s", path or "(기본값)")
    return config


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"설정 파일을 읽을 수 없습니다: {path} ({e})") from e
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"설정 파일 YAML 오류: {path} ({e})") from e
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"설정 파일 최상위는 매핑이어야 합니다: {path}")
    return raw


def apply_mapping(config: AgentConfig, raw: Mapping[str, Any]) -> None:
    """YAML 매핑을 config에 반영"""
    for keys, attr in _SECTIONS.items():
        section = _dig(raw, keys)
        if section is None:
            continue
        section = dict(section)
        if attr == "service":
            logging_section = section.pop("logging", None) or {}
            if not isinstance(logging_section, Mapping):
                raise ConfigurationError("service.logging은 매핑이어야 합니다")
            for key, value in logging_section.items():
                if key in _LOGGING_KEYS:
                    section[_LOGGING_KEYS[key]] = value
        _apply_section(getattr(config, attr), section, ".".join(keys))

    known = {keys[0] for keys in _SECTIONS}
    for key in raw:
        if key not in known:
            logger.warning("알 수 없는 설정 섹션 무시: %s", key)


def _dig(raw: Mapping[str, Any], keys: tuple[str, ...]) -> Optional[Mapping[str, Any]]:
    node: Any = raw
    for key in keys:
        if not isinstance(node, Mapping) or key not in node:
            return None
        node = node[key]
    if node is None:
        return None
    if not isinstance(node, Mapping):
        raise ConfigurationError(f"{'.'.join(keys)}는 매핑이어야 합니다")
    return node


def _apply_section(target: Any, values: Mapping[str, Any], where: str) -> None:
    names = {f.name for f in dataclasses.fields(target)}
    for key, value in values.items():
        if key not in names:
            logger.warning("알 수 없는 설정 키 무시: %s.%s", where, key)
            continue
        current = getattr(target, key)
        if dataclasses.is_dataclass(current):
            if not isinstance(value, Mapping):
                raise ConfigurationError(f"{where}.{key}는 매핑이어야 합니다")
            _apply_section(current, value, f"{where}.{key}")
            continue
        setattr(target, key, _coerce(key, current, value, f"{where}.{key}"))


def _coerce(name: str, current: Any, value: Any, where: str) -> Any:
    """기존 기본값의 타입에 맞춰 변환"""
    if name in DURATION_FIELDS:
        return parse_duration(value)
    try:
        if isinstance(current, bool):
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "yes", "on")
            return bool(value)
        if isinstance(current, int):
            return int(value)
        if isinstance(current, float):
            return float(value)
        if isinstance(current, list):
            if isinstance(value, str):
                return [v.strip() for v in value.split(",") if v.strip()]
            return [str(v) for v in value]
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{where} 값이 올바르지 않습니다: {value!r}") from e
    return str(value)


def apply_env(config: AgentConfig, env: Mapping[str, str]) -> None:
    """ALCHEMIST_<섹션>_<필드> 환경 변수 반영"""
    for section in dataclasses.fields(config):
        _apply_env_to(getattr(config, section.name), f"{ENV_PREFIX}{section.name.upper()}_", env)


def _apply_env_to(target: Any, prefix: str, env: Mapping[str, str]) -> None:
    for f in dataclasses.fields(target):
        current = getattr(target, f.name)
        name = f"{prefix}{f.name.upper()}"
        if dataclasses.is_dataclass(current):
            _apply_env_to(current, f"{name}_", env)
            continue
        if name in env:
            setattr(target, f.name, _coerce(f.name, current, env[name], name))
            logger.debug("환경 변수 적용: %s", name)

"""설정 로더 테스트"""

from __future__ import annotations

import pytest

from alchemist.models.errors import ConfigurationError
from alchemist.utils.config_loader import load_config, parse_duration

SAMPLE_YAML = """
identity:
  agent_id: alchemist-prod
  name: Alchemist
model:
  provider: ollama
  base_url: http://ollama:11434
  model: llama3
  timeout: 45s
  temperature: 0.2
bus:
  servers:
    - redis://bus-1:6379/0
    - redis://bus-2:6379/0
  retry:
    max_attempts: 8
    initial_delay: 100ms
    max_delay: 1m
  dedup_window: 2m
service:
  handler_timeout: 20
  logging:
    level: DEBUG
    format: json
domains:
  dialog:
    max_history: 50
    session_timeout: 30m
  graph:
    auto_layout: false
  workflow:
    max_concurrent: 3
"""


class TestParseDuration:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (5, 5.0),
            (2.5, 2.5),
            ("30s", 30.0),
            ("100ms", 0.1),
            ("5m", 300.0),
            ("1h", 3600.0),
            ("12", 12.0),
            (" 1.5s ", 1.5),
        ],
    )
    def test_valid(self, raw, expected) -> None:
        assert parse_duration(raw) == pytest.approx(expected)

    @pytest.mark.parametrize("raw", ["soon", "-1s", -3, True, None, "5 days"])
    def test_invalid(self, raw) -> None:
        with pytest.raises(ConfigurationError):
            parse_duration(raw)


class TestLoadConfig:
    def test_defaults_without_file(self) -> None:
        config = load_config(env={})
        assert config.bus.subject_prefix == "cim.agent.alchemist"
        assert config.bus.retry.max_attempts == 5
        assert config.dialog.max_history == 100
        assert config.service.handler_timeout == 30.0

    def test_yaml_file(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(SAMPLE_YAML, encoding="utf-8")

        config = load_config(path, env={})

        assert config.identity.agent_id == "alchemist-prod"
        assert config.model.model == "llama3"
        assert config.model.timeout == 45.0
        assert config.model.temperature == 0.2
        assert config.bus.servers == ["redis://bus-1:6379/0", "redis://bus-2:6379/0"]
        assert config.bus.retry.max_attempts == 8
        assert config.bus.retry.initial_delay == pytest.approx(0.1)
        assert config.bus.retry.max_delay == 60.0
        assert config.bus.dedup_window == 120.0
        assert config.service.handler_timeout == 20.0
        assert config.service.log_level == "DEBUG"
        assert config.service.log_format == "json"
        assert config.dialog.max_history == 50
        assert config.dialog.session_timeout == 1800.0
        assert config.graph.auto_layout is False
        assert config.workflow.max_concurrent == 3

    def test_unknown_keys_are_ignored(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("bus:\n  flux_capacitor: 1\nextras:\n  a: 1\n", encoding="utf-8")

        config = load_config(path, env={})

        assert config.bus.servers == ["redis://localhost:6379/0"]

    def test_empty_file(self, tmp_path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path, env={}).model.provider == "ollama"

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(ConfigurationError, match="읽을 수 없습니다"):
            load_config(tmp_path / "nope.yaml", env={})

    def test_invalid_yaml(self, tmp_path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("bus: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="YAML"):
            load_config(path, env={})

    def test_top_level_must_be_mapping(self, tmp_path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config(path, env={})

    def test_section_must_be_mapping(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("bus: redis://x\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="bus"):
            load_config(path, env={})

    def test_bad_number(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("domains:\n  dialog:\n    max_history: lots\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="max_history"):
            load_config(path, env={})


class TestEnvOverrides:
    def test_env_wins_over_file(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(SAMPLE_YAML, encoding="utf-8")

        config = load_config(path, env={
            "ALCHEMIST_MODEL_MODEL": "mistral",
            "ALCHEMIST_BUS_SERVERS": "redis://a:6379/0, redis://b:6379/0",
            "ALCHEMIST_BUS_RETRY_MAX_ATTEMPTS": "2",
            "ALCHEMIST_SERVICE_HANDLER_TIMEOUT": "500ms",
            "ALCHEMIST_GRAPH_AUTO_LAYOUT": "yes",
        })

        assert config.model.model == "mistral"
        assert config.bus.servers == ["redis://a:6379/0", "redis://b:6379/0"]
        assert config.bus.retry.max_attempts == 2
        assert config.service.handler_timeout == pytest.approx(0.5)
        assert config.graph.auto_layout is True

    def test_unrelated_env_is_ignored(self) -> None:
        config = load_config(env={"HOME": "/root", "ALCHEMIST_NOPE": "x"})
        assert config.model.model == "vicuna"

    def test_bad_env_value(self) -> None:
        with pytest.raises(ConfigurationError, match="ALCHEMIST_DIALOG_MAX_HISTORY"):
            load_config(env={"ALCHEMIST_DIALOG_MAX_HISTORY": "many"})

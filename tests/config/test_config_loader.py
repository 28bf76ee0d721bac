from __future__ import annotations

import signal
from pathlib import Path

import pytest

# Config loading: YAML mapping in, validated AppConfig out, ConfigurationError otherwise.
from process_messaging.config.loader import load_app_config, load_yaml_config, parse_app_config
from process_messaging.config.models import AppConfig
from process_messaging.errors import ConfigurationError


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_app_config_happy_path(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        "\n".join(
            [
                "pool:",
                "  concurrency: 4",
                "  poll_interval: 0.05",
                "  stop:",
                "    timeout: 2",
                "    signal: TERM",
                "codec: json",
                "commands:",
                "  - argv: [python, worker.py]",
                "    tag: worker",
                "    replicas: 3",
                "    restart_on_failure: true",
                "    max_restarts: 1",
            ]
        ),
    )
    cfg = load_app_config(path)
    assert isinstance(cfg, AppConfig)
    assert cfg.pool.concurrency == 4
    assert cfg.pool.poll_interval == 0.05
    assert cfg.pool.stop.timeout == 2.0
    assert cfg.pool.stop.signal == int(signal.SIGTERM)
    assert cfg.codec == "json"
    [command] = cfg.commands
    assert command.argv == ["python", "worker.py"]
    assert command.replicas == 3
    assert command.restart_on_failure is True
    assert command.max_restarts == 1


def test_empty_file_yields_defaults(tmp_path: Path) -> None:
    cfg = load_app_config(_write(tmp_path, ""))
    assert cfg.pool.concurrency == 1
    assert cfg.pool.poll_interval == 0.3
    assert cfg.pool.stop.timeout == 10.0
    assert cfg.pool.stop.signal is None
    assert cfg.codec == "pickle"
    assert cfg.commands == []
    assert cfg.logging.exporters == []


def test_root_must_be_mapping(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        load_yaml_config(_write(tmp_path, "- just\n- a list\n"))


def test_invalid_yaml_is_configuration_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        load_yaml_config(_write(tmp_path, "pool: [unclosed\n"))


@pytest.mark.parametrize(
    "raw",
    [
        {"pool": {"concurrency": 0}},
        {"pool": {"poll_interval": 0}},
        {"pool": {"stop": {"timeout": -1}}},
        {"pool": {"stop": {"signal": "NOPE"}}},
        {"codec": "msgpack"},
        {"commands": [{"argv": []}]},
        {"commands": [{"argv": ["x"], "replicas": 0}]},
        {"unknown": True},
        {"logging": {"exporters": [{"kind": "syslog"}]}},
    ],
)
def test_invalid_values_are_rejected(raw: dict[str, object]) -> None:
    with pytest.raises(ConfigurationError):
        parse_app_config(raw)


@pytest.mark.parametrize("value", ["SIGKILL", "kill", 9])
def test_stop_signal_accepts_names_and_numbers(value: object) -> None:
    cfg = parse_app_config({"pool": {"stop": {"signal": value}}})
    assert cfg.pool.stop.signal == int(signal.SIGKILL)

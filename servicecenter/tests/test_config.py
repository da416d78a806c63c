from __future__ import annotations

from pathlib import Path

import pytest

from core.config import ConfigError, load_config

OVERRIDE_VARS = ("MASTER_WEBHOOK_URL", "N8N_BASE_URL", "STORAGE_URL", "API_PORT", "LOG_LEVEL", "REDIS_ENABLED")


def _write_config(tmp_path: Path, body: str) -> Path:
    config_dir = tmp_path / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    config_path = config_dir / "config.yaml"
    config_path.write_text(body.strip(), encoding="utf-8")
    return config_path


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for name in OVERRIDE_VARS:
        monkeypatch.delenv(name, raising=False)


def test_load_config_reads_yaml(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path,
        """
webhook:
  master_webhook_url: "https://hooks.example.test/master"
storage:
  database_url: "sqlite:///./data/test.db"
technicians:
  - id: tech1
    name: Anil Kumar
    pin: 1234
""",
    )
    cfg = load_config(config_path)

    assert cfg.webhook.master_webhook_url == "https://hooks.example.test/master"
    assert cfg.storage.database_url.startswith("sqlite:///")
    assert cfg.server.port == 3001
    assert cfg.session.role_codes == {"1111": "Admin", "2222": "Controller", "3333": "Coordinator"}
    assert [(tech.id, tech.pin) for tech in cfg.technicians] == [("tech1", "1234")]
    assert cfg.n8n.read_paths["read-technician"] == "/webhook/read-technician"


def test_env_overrides_yaml(tmp_path: Path, monkeypatch) -> None:
    config_path = _write_config(
        tmp_path,
        """
webhook:
  master_webhook_url: "https://yaml.example.test"
server:
  port: 8000
""",
    )
    monkeypatch.setenv("MASTER_WEBHOOK_URL", "https://env.example.test")
    monkeypatch.setenv("API_PORT", "9100")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    cfg = load_config(config_path)

    assert cfg.webhook.master_webhook_url == "https://env.example.test"
    assert cfg.server.port == 9100
    assert cfg.logging.level == "DEBUG"


def test_invalid_role_code_is_rejected(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path,
        """
session:
  role_codes:
    "12": Admin
""",
    )
    with pytest.raises(ConfigError):
        load_config(config_path)


def test_unknown_role_is_rejected(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path,
        """
session:
  role_codes:
    "4444": Technician
""",
    )
    with pytest.raises(ConfigError):
        load_config(config_path)


def test_missing_config_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path / "config" / "missing.yaml")

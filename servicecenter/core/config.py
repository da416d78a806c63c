from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

ELEVATED_ROLES = {"Admin", "Controller", "Coordinator"}


class ConfigError(RuntimeError):
    pass


@dataclass(slots=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 3001


@dataclass(slots=True)
class WebhookConfig:
    master_webhook_url: str = ""
    complaint_sheet_url: str = ""
    update_sheet_url: str = ""
    app_source: str = "Pandit-Glen-App-Secure"


@dataclass(slots=True)
class N8nConfig:
    base_url: str = "https://n8n.builderallindia.com"
    submit_path: str = "/webhook/PANDIT-GLEN-SERVICE-25-12-30"
    read_paths: dict[str, str] = field(
        default_factory=lambda: {
            "read-complaint": "/webhook/read-complaint",
            "read-technician": "/webhook/read-technician",
            "read-attendance": "/webhook/read-attendance",
            "read-job-completed": "/webhook/read-job-completed",
        }
    )


@dataclass(slots=True)
class StorageConfig:
    database_url: str = "sqlite:///./data/service_center.db"


@dataclass(slots=True)
class RedisConfig:
    enabled: bool = False
    url: str = "redis://localhost:6379/0"


@dataclass(slots=True)
class SyncConfig:
    key: str = "glen_sync_notification"
    staleness_seconds: float = 5.0
    poll_interval_seconds: float = 2.0
    refetch_on_signal: bool = False


@dataclass(slots=True)
class SessionConfig:
    storage_key: str = "currentUser"
    role_codes: dict[str, str] = field(
        default_factory=lambda: {"1111": "Admin", "2222": "Controller", "3333": "Coordinator"}
    )


@dataclass(slots=True)
class TicketConfig:
    id_prefix: str = "PG-"
    completion_points: int = 250
    online_window_minutes: int = 5


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    directory: str = "logs"
    file_name: str = "service_center.log"
    max_bytes: int = 10_000_000
    backup_count: int = 10
    json_console: bool = False
    webhook_file_name: str = "webhooks.log"


@dataclass(slots=True)
class TechnicianSeed:
    id: str
    name: str
    pin: str | None = None
    points: int = 0


@dataclass(slots=True)
class AppConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    webhook: WebhookConfig = field(default_factory=WebhookConfig)
    n8n: N8nConfig = field(default_factory=N8nConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    tickets: TicketConfig = field(default_factory=TicketConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    technicians: list[TechnicianSeed] = field(default_factory=list)


def _get_env_str(key: str, fallback: str | None = None) -> str | None:
    value = os.getenv(key)
    if value is None:
        return fallback
    cleaned = value.strip()
    return cleaned if cleaned else fallback


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _as_int(value: Any, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value: Any, default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _deep_get(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    node: Any = data
    for key in keys:
        if not isinstance(node, dict):
            return default
        node = node.get(key)
        if node is None:
            return default
    return node


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}")
    with path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a mapping")
    return raw


def _load_role_codes(raw_codes: Any) -> dict[str, str]:
    if raw_codes is None:
        return SessionConfig().role_codes
    if not isinstance(raw_codes, dict):
        raise ConfigError("session.role_codes must be a mapping of code to role")
    codes: dict[str, str] = {}
    for code, role in raw_codes.items():
        code_str = str(code).strip()
        if len(code_str) != 4 or not (code_str.isascii() and code_str.isdigit()):
            raise ConfigError(f"Role code must be exactly 4 digits: {code_str!r}")
        role_str = str(role).strip()
        if role_str not in ELEVATED_ROLES:
            raise ConfigError(f"Role code {code_str} maps to unknown role {role_str!r}")
        codes[code_str] = role_str
    return codes


def _load_technician_seeds(raw_rows: list[dict[str, Any]]) -> list[TechnicianSeed]:
    seeds: list[TechnicianSeed] = []
    for row in raw_rows:
        tech_id = str(row.get("id", "")).strip()
        if not tech_id:
            raise ConfigError("Every seeded technician needs an id")
        seeds.append(
            TechnicianSeed(
                id=tech_id,
                name=str(row.get("name", "")).strip() or "(Unnamed)",
                pin=str(row["pin"]) if row.get("pin") is not None else None,
                points=max(0, _as_int(row.get("points"), 0)),
            )
        )
    return seeds


def load_config(config_path: Path) -> AppConfig:
    env_path = config_path.parent.parent / ".env"
    load_dotenv(env_path)
    raw = _load_yaml(config_path)

    server_cfg = ServerConfig(
        host=str(_get_env_str("API_HOST", _deep_get(raw, "server", "host", default="0.0.0.0"))),
        port=_as_int(_get_env_str("API_PORT"), _as_int(_deep_get(raw, "server", "port"), 3001)),
    )

    webhook_cfg = WebhookConfig(
        master_webhook_url=str(
            _get_env_str("MASTER_WEBHOOK_URL", _deep_get(raw, "webhook", "master_webhook_url", default=""))
        ),
        complaint_sheet_url=str(
            _get_env_str("COMPLAINT_SHEET_URL", _deep_get(raw, "webhook", "complaint_sheet_url", default=""))
        ),
        update_sheet_url=str(
            _get_env_str("UPDATE_SHEET_URL", _deep_get(raw, "webhook", "update_sheet_url", default=""))
        ),
        app_source=str(_deep_get(raw, "webhook", "app_source", default="Pandit-Glen-App-Secure")),
    )

    default_n8n = N8nConfig()
    read_paths = dict(default_n8n.read_paths)
    read_paths.update({str(k): str(v) for k, v in dict(_deep_get(raw, "n8n", "read_paths", default={})).items()})
    n8n_cfg = N8nConfig(
        base_url=str(_get_env_str("N8N_BASE_URL", _deep_get(raw, "n8n", "base_url", default=default_n8n.base_url))),
        submit_path=str(_deep_get(raw, "n8n", "submit_path", default=default_n8n.submit_path)),
        read_paths=read_paths,
    )

    storage_cfg = StorageConfig(
        database_url=str(
            _get_env_str(
                "STORAGE_URL",
                _deep_get(raw, "storage", "database_url", default="sqlite:///./data/service_center.db"),
            )
        ),
    )

    redis_cfg = RedisConfig(
        enabled=_as_bool(_get_env_str("REDIS_ENABLED"), _as_bool(_deep_get(raw, "redis", "enabled"), False)),
        url=str(_get_env_str("REDIS_URL", _deep_get(raw, "redis", "url", default="redis://localhost:6379/0"))),
    )

    sync_cfg = SyncConfig(
        key=str(_deep_get(raw, "sync", "key", default="glen_sync_notification")),
        staleness_seconds=_as_float(_deep_get(raw, "sync", "staleness_seconds"), 5.0),
        poll_interval_seconds=_as_float(_deep_get(raw, "sync", "poll_interval_seconds"), 2.0),
        refetch_on_signal=_as_bool(_deep_get(raw, "sync", "refetch_on_signal"), False),
    )

    session_cfg = SessionConfig(
        storage_key=str(_deep_get(raw, "session", "storage_key", default="currentUser")),
        role_codes=_load_role_codes(_deep_get(raw, "session", "role_codes")),
    )

    ticket_cfg = TicketConfig(
        id_prefix=str(_deep_get(raw, "tickets", "id_prefix", default="PG-")),
        completion_points=_as_int(_deep_get(raw, "tickets", "completion_points"), 250),
        online_window_minutes=_as_int(_deep_get(raw, "tickets", "online_window_minutes"), 5),
    )

    logging_cfg = LoggingConfig(
        level=str(_get_env_str("LOG_LEVEL", _deep_get(raw, "logging", "level", default="INFO"))),
        directory=str(_deep_get(raw, "logging", "directory", default="logs")),
        file_name=str(_deep_get(raw, "logging", "file_name", default="service_center.log")),
        max_bytes=_as_int(_deep_get(raw, "logging", "max_bytes"), 10_000_000),
        backup_count=_as_int(_deep_get(raw, "logging", "backup_count"), 10),
        json_console=_as_bool(_deep_get(raw, "logging", "json_console"), False),
        webhook_file_name=str(_deep_get(raw, "logging", "webhook_file_name", default="webhooks.log")),
    )

    return AppConfig(
        server=server_cfg,
        webhook=webhook_cfg,
        n8n=n8n_cfg,
        storage=storage_cfg,
        redis=redis_cfg,
        sync=sync_cfg,
        session=session_cfg,
        tickets=ticket_cfg,
        logging=logging_cfg,
        technicians=_load_technician_seeds(list(_deep_get(raw, "technicians", default=[]))),
    )

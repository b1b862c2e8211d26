"""Configuration loading for the ordered collection sync service.

Rules:
- Primary source: `ordersync_config.json` at the project root.
- Overrides: text files under `config/`, then environment variables.
- Validation: Pydantic models enforce required fields and allowed values.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator


CONFIG_DIR = Path("config")
ROOT_CONFIG = Path("ordersync_config.json")
logger = logging.getLogger(__name__)


def _read_config_file(rel_path: str) -> Optional[str]:
    path = CONFIG_DIR / rel_path
    try:
        if path.exists():
            return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read override %s: %s", path, e)
    return None


def _env(key: str) -> Optional[str]:
    return os.environ.get(key)


def _as_bool(value: Any) -> bool:
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


class DatabaseConfig(BaseModel):
    dsn: str

    @field_validator("dsn")
    @classmethod
    def dsn_must_be_non_empty(cls, v: str) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("database.dsn must be a non-empty string")
        return v


class ReorderConfig(BaseModel):
    busy_policy: str = "reject"
    write_scope: str = "changed"
    refetch_on_ambiguous: bool = True
    error_message: str = "Error updating order, please try again"

    @field_validator("busy_policy")
    @classmethod
    def busy_policy_allowed(cls, v: str) -> str:
        allowed = {"reject", "queue"}
        if v not in allowed:
            raise ValueError(f"reorder.busy_policy must be one of {sorted(allowed)}")
        return v

    @field_validator("write_scope")
    @classmethod
    def write_scope_allowed(cls, v: str) -> str:
        allowed = {"changed", "all"}
        if v not in allowed:
            raise ValueError(f"reorder.write_scope must be one of {sorted(allowed)}")
        return v


class NotificationsConfig(BaseModel):
    max_visible: int = Field(default=3, gt=0)


class AppConfig(BaseModel):
    database: DatabaseConfig
    reorder: ReorderConfig = Field(default_factory=ReorderConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)


def _read_json_file(path: Path) -> dict:
    try:
        if path.exists():
            data = json.loads(path.read_text(encoding="utf-8"))
            return data if isinstance(data, dict) else {}
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Failed to read JSON config %s: %s", path, e)
    return {}


def load_config(root_config: Path | None = None) -> AppConfig:
    """Load configuration with validation.

    Precedence (highest first):
    1) Environment variables
    2) Text files in `config/`
    3) ordersync_config.json at project root
    4) Defaults for local development
    """
    base = _read_json_file(root_config or ROOT_CONFIG)

    def _base(path: str, default: Optional[str] = None) -> Optional[str]:
        cur: object = base
        for key in path.split("."):
            if not isinstance(cur, dict) or key not in cur:
                return default
            cur = cur[key]
        return str(cur) if cur is not None else default

    def _pick(env_key: str, file_key: str, json_key: str, default: Optional[str] = None) -> Optional[str]:
        return _env(env_key) or _read_config_file(file_key) or _base(json_key, default)

    dsn = _pick("DATABASE_URL", "database.url", "database.dsn", "sqlite+pysqlite:///:memory:")
    busy_policy = _pick("REORDER_BUSY_POLICY", "reorder.busy_policy", "reorder.busy_policy", "reject")
    write_scope = _pick("REORDER_WRITE_SCOPE", "reorder.write_scope", "reorder.write_scope", "changed")
    refetch = _pick("REORDER_REFETCH_ON_AMBIGUOUS", "reorder.refetch_on_ambiguous", "reorder.refetch_on_ambiguous", "true")
    error_message = _pick(
        "REORDER_ERROR_MESSAGE",
        "reorder.error_message",
        "reorder.error_message",
        "Error updating order, please try again",
    )
    max_visible = _pick("NOTIFICATIONS_MAX_VISIBLE", "notifications.max_visible", "notifications.max_visible", "3")

    try:
        return AppConfig(
            database=DatabaseConfig(dsn=dsn or ""),
            reorder=ReorderConfig(
                busy_policy=str(busy_policy).strip(),
                write_scope=str(write_scope).strip(),
                refetch_on_ambiguous=_as_bool(refetch),
                error_message=str(error_message),
            ),
            notifications=NotificationsConfig(max_visible=int(str(max_visible).strip())),
        )
    except (PydanticValidationError, ValueError) as e:
        logger.error("Invalid application configuration: %s", e)
        raise


__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "ReorderConfig",
    "NotificationsConfig",
    "load_config",
]

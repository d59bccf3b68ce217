"""YAML + env var config loading with pydantic-settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()

_DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


class ConfigError(ValueError):
    """A settings file exists but cannot be used."""


def _load_yaml_defaults(path: Path, *, explicit: bool = False) -> dict[str, Any]:
    """Load YAML config file. A missing file yields an empty dict."""
    if not path.exists():
        if explicit:
            logger.warning("config_file_missing", config_file=str(path))
        return {}
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"{path} is not valid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping of settings, got {type(data).__name__}")
    return data


class AuditSettings(BaseSettings):
    """Audit configuration loaded from YAML defaults, overridden by env vars."""

    model_config = SettingsConfigDict(
        env_prefix="CSP_AUDIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "info"
    log_json: bool = False
    config_file: str = str(_DEFAULTS_PATH)

    # Settle window: precision/latency trade-off for late page activity
    settle_ms: int = 6000

    # Justification snapshots
    snippet_length: int = 200

    # Emission filter: include directives still holding only their baseline
    emit_defaults: bool = False

    # Reporting endpoint (static, not derived from the scan)
    report_uri: str = "/report-csp-violation-endpoint"
    report_group: str = "csp-endpoint"
    report_max_age: int = 10886400
    report_endpoint_url: str = "/report-csp-violation-endpoint"

    # Page fetching
    fetch_timeout: float = 30.0
    user_agent: str = "csp-auditor/0.1"


_settings: AuditSettings | None = None


def get_settings() -> AuditSettings:
    """Get or create the singleton settings instance."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def load_settings(config_file: str | None = None) -> AuditSettings:
    """Load settings: env vars override YAML values, which override model defaults."""
    global _settings
    env_settings = AuditSettings()
    path = Path(config_file or env_settings.config_file)
    named_file = config_file is not None or "config_file" in env_settings.model_fields_set
    defaults = _load_yaml_defaults(path, explicit=named_file)

    explicit = env_settings.model_dump(include=env_settings.model_fields_set)
    layered = {
        key: value
        for key, value in defaults.items()
        if key in AuditSettings.model_fields
    }
    layered.update(explicit)
    if config_file:
        layered["config_file"] = config_file

    _settings = AuditSettings(**layered)
    logger.debug("config_loaded", config_file=str(path), settle_ms=_settings.settle_ms)
    return _settings

"""
Client configuration.

Values are resolved in order, later sources winning:
    defaults -> YAML file -> environment -> CLI options

The YAML file is LIVECHAT_CONFIG or ~/.livechat/config.yaml, e.g.

    server_ws_url: ws://chat.example.com:8000
    api_url: http://chat.example.com:8000
    inbound_queue_size: 512
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from chatshared.log import get_logger

logger = get_logger(__name__)

DEFAULT_HOME = Path.home() / ".livechat"

# env var -> config field
_ENV_OVERRIDES = {
    "LIVECHAT_SERVER": "server_ws_url",
    "LIVECHAT_API_URL": "api_url",
    "LIVECHAT_CREDENTIALS": "credentials_path",
}


class ConfigError(Exception):
    """Raised when the config file cannot be used."""
    pass


@dataclass
class ClientConfig:
    server_ws_url: str = "ws://localhost:8000"
    api_url: str = "http://localhost:8000"
    credentials_path: Path = field(default_factory=lambda: DEFAULT_HOME / "credentials.json")
    inbound_queue_size: int = 256
    ping_interval: Optional[float] = 15.0
    ping_timeout: Optional[float] = 45.0
    http_timeout: float = 10.0

    def with_overrides(self, **overrides: Any) -> ClientConfig:
        """Copy with every non-None override applied (CLI options)"""
        values = {k: v for k, v in overrides.items() if v is not None}
        if "credentials_path" in values:
            values["credentials_path"] = Path(values["credentials_path"]).expanduser()
        return replace(self, **values)


def default_config_path() -> Path:
    return Path(os.getenv("LIVECHAT_CONFIG", str(DEFAULT_HOME / "config.yaml"))).expanduser()


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.debug("No config file at %s; using defaults", path)
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot parse {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping, got {type(data).__name__}")
    return data


def load_config(path: Optional[Path] = None) -> ClientConfig:
    """Build a ClientConfig from defaults, the YAML file and the environment"""
    config = ClientConfig()
    known = {f.name for f in fields(ClientConfig)}

    values: Dict[str, Any] = {}
    for key, value in _read_yaml(path or default_config_path()).items():
        if key not in known:
            logger.warning("Ignoring unknown config key '%s'", key)
            continue
        values[key] = value

    for env_name, key in _ENV_OVERRIDES.items():
        env_value = os.getenv(env_name)
        if env_value:
            values[key] = env_value

    return config.with_overrides(**values)

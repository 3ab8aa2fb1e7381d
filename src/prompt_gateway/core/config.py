"""
Configuration loading for the AI gateway.
"""

import os
import logging
from typing import Dict, Any, Optional
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATHS = (
    Path("config/gateway.yaml"),
    Path.home() / ".config/prompt-gateway/gateway.yaml",
)


@dataclass
class TimeoutConfig:
    """Deadlines for outbound calls, in milliseconds."""
    request_ms: int = 60000
    catalog_ms: int = 30000
    connection_test_ms: int = 15000
    connection_list_models_ms: int = 10000


@dataclass
class CacheConfig:
    """Model catalog cache policy."""
    memory_ttl_seconds: float = 5 * 60
    persistent_ttl_seconds: float = 24 * 60 * 60
    stale_grace_seconds: float = 7 * 24 * 60 * 60
    retention_seconds: float = 7 * 24 * 60 * 60
    storage_path: Optional[str] = None
    max_storage_bytes: Optional[int] = None


@dataclass
class DefaultsConfig:
    """Request defaults and local validation limits."""
    temperature: float = 0.7
    max_tokens: int = 4000
    max_prompt_length: int = 100000


@dataclass
class CredentialsConfig:
    """Credential storage settings."""
    service_name: str = "prompt-constructor-ai"
    storage_path: Optional[str] = None


@dataclass
class GatewayConfig:
    """Complete gateway configuration."""
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)
    credentials: CredentialsConfig = field(default_factory=CredentialsConfig)
    base_urls: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "GatewayConfig":
        """Build a configuration from a parsed mapping."""
        return _parse_config(data or {})


def load_config(config_path: Optional[str] = None) -> GatewayConfig:
    """
    Load gateway configuration from YAML file.

    Args:
        config_path: Path to config file. If None, uses default location.

    Returns:
        Loaded configuration
    """
    if config_path is None:
        env_path = os.environ.get("PROMPT_GATEWAY_CONFIG")
        candidates = [Path(env_path)] if env_path else list(DEFAULT_CONFIG_PATHS)
        for p in candidates:
            if p.exists():
                config_path = str(p)
                break

    if config_path is None or not Path(config_path).exists():
        logger.warning("No gateway config file found, using defaults")
        return GatewayConfig()

    try:
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to load config from {config_path}: {e}")
        return GatewayConfig()

    logger.info(f"Loaded gateway config from {config_path}")
    return _parse_config(data or {})


def _expand(value: Any) -> Any:
    """Expand ${ENV_VAR} references in string values."""
    if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
        return os.environ.get(value[2:-1]) or None
    return value


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    return {k: _expand(v) for k, v in (data.get(name) or {}).items()}


def _parse_config(data: Dict[str, Any]) -> GatewayConfig:
    """Parse configuration dictionary."""
    timeouts = _section(data, "timeouts")
    cache = _section(data, "cache")
    defaults = _section(data, "defaults")
    credentials = _section(data, "credentials")

    base_urls = {}
    for provider_id, provider_data in (data.get("providers") or {}).items():
        base_url = _expand((provider_data or {}).get("base_url"))
        if base_url:
            base_urls[provider_id] = base_url.rstrip("/")

    return GatewayConfig(
        timeouts=TimeoutConfig(
            request_ms=int(timeouts.get("request_ms", 60000)),
            catalog_ms=int(timeouts.get("catalog_ms", 30000)),
            connection_test_ms=int(timeouts.get("connection_test_ms", 15000)),
            connection_list_models_ms=int(timeouts.get("connection_list_models_ms", 10000)),
        ),
        cache=CacheConfig(
            memory_ttl_seconds=float(cache.get("memory_ttl_seconds", 5 * 60)),
            persistent_ttl_seconds=float(cache.get("persistent_ttl_seconds", 24 * 60 * 60)),
            stale_grace_seconds=float(cache.get("stale_grace_seconds", 7 * 24 * 60 * 60)),
            retention_seconds=float(cache.get("retention_seconds", 7 * 24 * 60 * 60)),
            storage_path=cache.get("storage_path"),
            max_storage_bytes=(
                int(cache["max_storage_bytes"]) if cache.get("max_storage_bytes") is not None else None
            ),
        ),
        defaults=DefaultsConfig(
            temperature=float(defaults.get("temperature", 0.7)),
            max_tokens=int(defaults.get("max_tokens", 4000)),
            max_prompt_length=int(defaults.get("max_prompt_length", 100000)),
        ),
        credentials=CredentialsConfig(
            service_name=credentials.get("service_name") or "prompt-constructor-ai",
            storage_path=credentials.get("storage_path"),
        ),
        base_urls=base_urls,
    )

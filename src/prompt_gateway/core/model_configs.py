"""
Model configuration registry and its on-disk document.

A model configuration is a user-named profile (provider, model id,
temperature, max tokens). Exactly one profile is the default whenever the
registry is non-empty.
"""

import json
import logging
import os
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from ..models.configuration import ModelConfiguration
from ..models.provider import ProviderId
from .errors import GatewayInvalidRequestError, ModelConfigNotFoundError

logger = logging.getLogger(__name__)

CONFIG_VERSION = "1.0"

# Fields a caller may not change through update().
_IMMUTABLE_FIELDS = frozenset({"id", "created", "updated", "is_default"})


def generate_config_id() -> str:
    return f"config_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class ModelConfigRegistry:
    """
    In-memory registry of model configurations, in insertion order.

    Invariants:
        - the first configuration ever added becomes the default
        - removing the default promotes the first remaining configuration
        - set_default clears every other flag before it returns
    """

    def __init__(self):
        self._configs: Dict[str, ModelConfiguration] = {}
        self._current_model_id: Optional[str] = None

    @property
    def current_model_id(self) -> Optional[str]:
        return self._current_model_id

    def __len__(self) -> int:
        return len(self._configs)

    def __contains__(self, config_id: object) -> bool:
        return config_id in self._configs

    def get(self, config_id: str) -> ModelConfiguration:
        """
        Get a configuration by id.

        Raises:
            ModelConfigNotFoundError: If no configuration has this id
        """
        config = self._configs.get(config_id)
        if config is None:
            raise ModelConfigNotFoundError(config_id)
        return config

    def list(self) -> List[ModelConfiguration]:
        return list(self._configs.values())

    def get_default(self) -> Optional[ModelConfiguration]:
        if self._current_model_id is not None:
            return self._configs.get(self._current_model_id)
        return None

    def add(
        self,
        provider: Union[ProviderId, str],
        model_id: str,
        name: Optional[str] = None,
        custom_name: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 4000,
        is_default: bool = False,
    ) -> ModelConfiguration:
        """
        Add a configuration.

        Returns:
            The stored configuration with its generated id

        Raises:
            GatewayInvalidRequestError: If a field is out of range
        """
        try:
            config = ModelConfiguration(
                id=generate_config_id(),
                provider=provider,
                model_id=model_id,
                name=name,
                custom_name=custom_name or name,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except ValidationError as e:
            raise GatewayInvalidRequestError(f"Invalid model configuration: {e.error_count()} errors")

        self._configs[config.id] = config
        logger.info(f"Added model configuration {config.id} ({config.provider.value}/{config.model_id})")

        if is_default or self._current_model_id is None:
            self.set_default(config.id)
        return config

    def update(self, config_id: str, **updates: Any) -> ModelConfiguration:
        """
        Update fields of a configuration.

        Passing `is_default=True` makes it the default; `is_default=False`
        is ignored, since some configuration must stay the default.

        Raises:
            ModelConfigNotFoundError: If no configuration has this id
            GatewayInvalidRequestError: If a field is out of range
        """
        config = self.get(config_id)
        make_default = updates.get("is_default") is True

        data = config.model_dump()
        data.update({k: v for k, v in updates.items() if k not in _IMMUTABLE_FIELDS})
        data["updated"] = datetime.now(timezone.utc)
        try:
            updated = ModelConfiguration(**data)
        except ValidationError as e:
            raise GatewayInvalidRequestError(f"Invalid model configuration: {e.error_count()} errors")

        self._configs[config_id] = updated
        logger.info(f"Updated model configuration {config_id}")

        if make_default:
            self.set_default(config_id)
        return self._configs[config_id]

    def remove(self, config_id: str) -> ModelConfiguration:
        """
        Remove a configuration, promoting a new default if needed.

        Raises:
            ModelConfigNotFoundError: If no configuration has this id
        """
        removed = self.get(config_id)
        del self._configs[config_id]
        logger.info(f"Removed model configuration {config_id}")

        if self._current_model_id == config_id:
            self._current_model_id = None
            if self._configs:
                self.set_default(next(iter(self._configs)))
        return removed

    def set_default(self, config_id: str) -> ModelConfiguration:
        """
        Make a configuration the only default. Idempotent.

        Raises:
            ModelConfigNotFoundError: If no configuration has this id
        """
        # Look up first so that an unknown id leaves the flags untouched.
        self.get(config_id)

        for other_id, other in self._configs.items():
            if other.is_default and other_id != config_id:
                other.is_default = False
        self._configs[config_id].is_default = True
        self._current_model_id = config_id

        logger.info(f"Default model configuration is now {config_id}")
        return self._configs[config_id]

    def clear(self) -> None:
        self._configs.clear()
        self._current_model_id = None

    def get_usage_stats(self) -> Dict[str, Any]:
        """Counts per provider and the default configuration's name."""
        provider_stats: Dict[str, Dict[str, Any]] = {}
        for config in self._configs.values():
            entry = provider_stats.setdefault(config.provider.value, {"count": 0, "models": []})
            entry["count"] += 1
            entry["models"].append(config.display_name)

        default = self.get_default()
        return {
            "total_configs": len(self._configs),
            "provider_stats": provider_stats,
            "default_model": default.display_name if default else None,
        }

    def to_document(self) -> Dict[str, Any]:
        """Serializable document; never contains credentials."""
        return {
            "version": CONFIG_VERSION,
            "last_updated": datetime.now(timezone.utc).isoformat(),
            "selected_models": [config.model_dump(mode="json") for config in self._configs.values()],
            "current_model_id": self._current_model_id,
        }

    def load_document(self, document: Dict[str, Any]) -> None:
        """
        Replace the registry contents with a saved document.

        Raises:
            GatewayInvalidRequestError: If the document is malformed
        """
        if document.get("version") != CONFIG_VERSION:
            logger.warning(f"Model configuration document version {document.get('version')!r}, expected {CONFIG_VERSION}")

        try:
            configs = [ModelConfiguration(**item) for item in document.get("selected_models") or []]
        except (ValidationError, TypeError) as e:
            raise GatewayInvalidRequestError(f"Malformed model configuration document: {e}")

        self.clear()
        for config in configs:
            config.is_default = False
            self._configs[config.id] = config

        current = document.get("current_model_id")
        if current in self._configs:
            self.set_default(current)
        elif self._configs:
            self.set_default(next(iter(self._configs)))

        logger.info(f"Loaded {len(self._configs)} model configurations")


class AIConfigFile:
    """Reads and writes the model configuration document as JSON."""

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def save(self, registry: ModelConfigRegistry) -> bool:
        document = registry.to_document()
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w") as f:
                json.dump(document, f, indent=2)
            os.replace(tmp_path, self._path)
        except OSError as e:
            logger.error(f"Failed to save model configurations to {self._path}: {e}")
            return False

        logger.info(f"Saved {len(document['selected_models'])} model configurations to {self._path}")
        return True

    def load(self) -> Optional[Dict[str, Any]]:
        """Return the saved document, or None if it is missing or unreadable."""
        if not self._path.exists():
            return None
        try:
            with open(self._path, "r") as f:
                document = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load model configurations from {self._path}: {e}")
            return None

        if not isinstance(document, dict) or "selected_models" not in document:
            logger.warning(f"Ignoring malformed model configuration file {self._path}")
            return None
        return document

    def load_into(self, registry: ModelConfigRegistry) -> bool:
        document = self.load()
        if document is None:
            return False
        registry.load_document(document)
        return True

    def delete(self) -> bool:
        try:
            self._path.unlink()
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.error(f"Failed to delete {self._path}: {e}")
            return False
        return True

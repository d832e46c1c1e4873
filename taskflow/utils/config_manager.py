"""Configuration management utilities."""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..core.constants import CONFIG_FILE_NAME
from ..models.config import TaskflowConfig
from ..services.exceptions import TaskIOError, UsageError, ValidationError
from .fs import atomic_write_text

logger = logging.getLogger(__name__)


def parse_scalar(raw: str) -> Any:
    """Parse a command-line value as JSON when possible, else keep the string."""
    text = raw.strip()
    if text.lower() in ("true", "false"):
        return text.lower() == "true"
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return raw


class ConfigManager:
    """Manages project configuration."""

    def __init__(self, data_dir: Path):
        """Initialize config manager.

        Args:
            data_dir: The ``.taskflow`` directory
        """
        self.data_dir = data_dir
        self.config_file = data_dir / CONFIG_FILE_NAME

    def _read_raw(self) -> dict:
        if not self.config_file.exists():
            return {}
        try:
            data = json.loads(self.config_file.read_text(encoding="utf-8"))
        except OSError as e:
            raise TaskIOError(f"Cannot read {self.config_file}: {e}", path=str(self.config_file)) from e
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON in {self.config_file}: {e}") from e
        if not isinstance(data, dict):
            raise ValidationError(f"{self.config_file} must contain a JSON object")
        return data

    def _validate(self, data: dict) -> TaskflowConfig:
        try:
            return TaskflowConfig.model_validate(data)
        except PydanticValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise ValidationError(f"Invalid config {self.config_file}: {problems}") from e

    def load_config(self) -> TaskflowConfig:
        """Load project configuration, using defaults when no file exists.

        Raises:
            ValidationError: If the file is not valid configuration
        """
        return self._validate(self._read_raw())

    def save_config(self, config: TaskflowConfig) -> None:
        """Save project configuration."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        atomic_write_text(self.config_file, config.model_dump_json(indent=2) + "\n")
        logger.info(f"Saved config to {self.config_file}")

    def set_value(self, dotted_key: str, value: str) -> TaskflowConfig:
        """Set a single config value such as ``agents.approvals.require_plan``.

        Raises:
            UsageError: If the key does not name an existing setting
            ValidationError: If the resulting config is invalid
        """
        keys = [k for k in dotted_key.strip().split(".") if k]
        if not keys:
            raise UsageError("Config key is required")
        data = self.load_config().model_dump(mode="json")
        node = data
        for key in keys[:-1]:
            if not isinstance(node.get(key), dict):
                raise UsageError(f"Unknown config key: {dotted_key}")
            node = node[key]
        if keys[-1] not in node:
            raise UsageError(f"Unknown config key: {dotted_key}")
        node[keys[-1]] = parse_scalar(value)
        config = self._validate(data)
        self.save_config(config)
        return config

"""Configuration Management for CLI Settings"""

import os
from pathlib import Path
from typing import Any

import yaml
from rich.console import Console

console = Console()


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigManager:
    """Manage CLI configuration settings"""

    def __init__(self, config_dir: Path | None = None):
        self.config_dir = config_dir or Path.home() / ".parish-delivery"
        self.config_file = self.config_dir / "config.yaml"

    def _read_file(self) -> dict[str, Any]:
        if not self.config_file.exists():
            return {}

        try:
            with open(self.config_file) as f:
                return yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            console.print(f"[red]Error loading config: {e}[/red]")
            return {}

    def load_config(self) -> dict[str, Any]:
        """Load configuration from file, layered over the defaults"""
        return _merge(self.get_default_config(), self._read_file())

    def save_config(self, config: dict[str, Any]):
        """Save configuration to file"""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w") as f:
            yaml.safe_dump(config, f, default_flow_style=False)

    def get_default_config(self) -> dict[str, Any]:
        """Get default configuration"""
        return {
            "api": {
                "base_url": os.getenv(
                    "PARISH_DELIVERY_API_URL", "http://localhost:8000"
                ),
                "timeout": 30,
                "worker_token": os.getenv("PARISH_COMMUNICATIONS_WORKER_TOKEN"),
            },
            "jobs": {"page_size": 50},
        }

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'api.base_url')"""
        config = self.load_config()

        for k in key.split("."):
            if isinstance(config, dict) and k in config:
                config = config[k]
            else:
                return default

        return config

    def set(self, key: str, value: Any):
        """Set configuration value using dot notation"""
        # Only file values are written back; env-derived defaults stay in the env
        config = self._read_file()
        keys = key.split(".")

        current = config
        for k in keys[:-1]:
            if not isinstance(current.get(k), dict):
                current[k] = {}
            current = current[k]

        current[keys[-1]] = value
        self.save_config(config)

    def reset(self):
        """Remove the config file so only defaults apply"""
        if self.config_file.exists():
            self.config_file.unlink()


# Global config manager instance
config = ConfigManager()

"""
Configuration Management System

Handles loading, validation, and management of system parameters.
"""

import yaml
from typing import Dict, Any, Optional
from pathlib import Path


class ConfigManager:
    """Manages configuration parameters for the depth point cloud pipeline."""

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to configuration file. If None, uses default config.
        """
        self.config_path = config_path or self._get_default_config_path()
        self.config = self._load_config()
        self._validate_config()

    def _get_default_config_path(self) -> str:
        """Get path to default configuration file."""
        package_dir = Path(__file__).parent.parent
        return str(package_dir / "config" / "default_config.yaml")

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        try:
            with open(self.config_path, 'r') as file:
                config = yaml.safe_load(file)
            return config or {}
        except FileNotFoundError:
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
        except yaml.YAMLError as e:
            raise ValueError(f"Error parsing configuration file: {e}")

    def _validate_config(self) -> None:
        """Validate configuration parameters for consistency and feasibility."""
        # Validate reconstruction parameters
        rec = self.config.get('reconstruction', {})
        point_limit = rec.get('point_limit', 20000)
        if not isinstance(point_limit, int) or isinstance(point_limit, bool) or point_limit <= 0:
            raise ValueError("reconstruction.point_limit must be a positive integer")

        min_confidence = float(rec.get('min_confidence', 0.1))
        if not 0.0 <= min_confidence <= 1.0:
            raise ValueError("reconstruction.min_confidence must be within [0, 1]")

        units = float(rec.get('depth_units_per_meter', 1000.0))
        if units <= 0:
            raise ValueError("reconstruction.depth_units_per_meter must be positive")

        # Validate export naming
        export = self.config.get('export', {})
        prefix = export.get('file_prefix', 'pointcloud')
        if not isinstance(prefix, str) or not prefix or '/' in prefix:
            raise ValueError("export.file_prefix must be a non-empty file name prefix")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key (e.g., 'reconstruction.point_limit')
            default: Default value if key not found

        Returns:
            Configuration value
        """
        keys = key.split('.')
        value = self.config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set configuration value using dot notation.

        Args:
            key: Configuration key (e.g., 'reconstruction.min_confidence')
            value: Value to set
        """
        keys = key.split('.')
        config_ref = self.config

        for k in keys[:-1]:
            if k not in config_ref:
                config_ref[k] = {}
            config_ref = config_ref[k]

        previous = config_ref.get(keys[-1], _MISSING)
        config_ref[keys[-1]] = value
        try:
            self._validate_config()
        except ValueError:
            if previous is _MISSING:
                del config_ref[keys[-1]]
            else:
                config_ref[keys[-1]] = previous
            raise

    def save(self, output_path: Optional[str] = None) -> None:
        """
        Save current configuration to file.

        Args:
            output_path: Path to save configuration. If None, overwrites current file.
        """
        save_path = output_path or self.config_path

        with open(save_path, 'w') as file:
            yaml.dump(self.config, file, default_flow_style=False, indent=2)

    def get_reconstruction_params(self) -> Dict[str, Any]:
        """Get frame reconstruction parameters as a dictionary."""
        return self.config.get('reconstruction', {})

    def get_export_params(self) -> Dict[str, Any]:
        """Get point cloud export parameters as a dictionary."""
        return self.config.get('export', {})

    def get_capture_params(self) -> Dict[str, Any]:
        """Get recorded-frame naming parameters as a dictionary."""
        return self.config.get('capture', {})


_MISSING = object()

# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Configuration loading and validation for the host reconciler.

A configuration file looks like:

    connection:
      bmc:
        ip: 10.0.0.10
        username: admin
        password: secret
        port: 443
        protocol: https
        ssl_insecure: true
    settings:
      power_timeout: 300
      settings_apply_timeout: 1200
      oem_variant: auto

Everything under ``settings`` is optional and merged over DEFAULT_SETTINGS.
"""

import copy
import os
from typing import Any, Dict, List, Optional

import yaml

from IrmcControl.control_types import OemVariant, ResetType
from IrmcControl.RedfishFunctions.errors import ConfigurationError

DEFAULT_SETTINGS = {
    "redfish_timeout": 30,
    "power_timeout": 300,
    "settings_apply_timeout": 1200,
    "task_timeout": 600,
    "volume_delete_timeout": 300,
    "power_cycle_settle_seconds": 30,
    "system_id": "0",
    "oem_variant": "auto",
    "system_reset_type": "ForceRestart",
}

NUMERIC_SETTINGS = [
    "redfish_timeout",
    "power_timeout",
    "settings_apply_timeout",
    "task_timeout",
    "volume_delete_timeout",
    "power_cycle_settle_seconds",
]


class ConfigLoader:
    """
    Static helpers for loading, validating and merging YAML configurations.
    """

    @staticmethod
    def load_config(config_path: str) -> Dict[str, Any]:
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            Dict containing the loaded configuration

        Raises:
            FileNotFoundError: If the configuration file doesn't exist
            yaml.YAMLError: If the YAML file is invalid
        """
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, encoding="utf-8") as f:
            config = yaml.safe_load(f)

        # Empty file
        if config is None:
            config = {}

        return config

    @staticmethod
    def validate_nested_fields(config: Dict[str, Any], path: str, required_fields: List[str]) -> None:
        """
        Validate that required fields exist in a nested configuration path.

        Args:
            config: The configuration dictionary to validate
            path: Dot-separated path to the nested section (e.g., "connection.bmc")
            required_fields: List of required field names at that path

        Raises:
            ConfigurationError: If the path doesn't exist or required fields are missing
        """
        current = config
        path_parts = path.split(".")

        for i, part in enumerate(path_parts):
            if not isinstance(current, dict) or part not in current:
                raise ConfigurationError(f"Configuration path '{'.'.join(path_parts[:i+1])}' not found")
            current = current[part]

        missing_fields = [field for field in required_fields if not current.get(field)]

        if missing_fields:
            raise ConfigurationError(f"Missing required field(s) at '{path}': {', '.join(missing_fields)}")

    @staticmethod
    def merge_configs(base_config: Dict[str, Any], override_config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Deep merge two configuration dictionaries, override values win.

        Returns:
            A new dictionary with merged configuration
        """

        def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
            result = copy.deepcopy(base)

            for key, value in override.items():
                if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                    result[key] = deep_merge(result[key], value)
                else:
                    result[key] = copy.deepcopy(value)

            return result

        return deep_merge(base_config, override_config)


class ReconcilerConfig:
    """Validated configuration for one management controller."""

    def __init__(self, config_path: Optional[str] = None, config: Optional[Dict[str, Any]] = None):
        """
        Load and validate the configuration.

        Args:
            config_path (str): Path to a YAML configuration file
            config (dict): Already loaded configuration, used when no path is given

        Raises:
            ConfigurationError: If validation fails
        """
        if config_path is None and config is None:
            raise ConfigurationError("Either config_path or config must be provided")

        self.config_path = config_path
        raw = ConfigLoader.load_config(config_path) if config_path else copy.deepcopy(config)
        self.config = ConfigLoader.merge_configs({"settings": DEFAULT_SETTINGS}, raw)
        self._validate_config(self.config)

    def _validate_config(self, config: Dict[str, Any]) -> None:
        ConfigLoader.validate_nested_fields(config, "connection.bmc", ["ip", "username", "password"])
        self._validate_connection_fields(config["connection"]["bmc"], "connection.bmc")

        settings = config["settings"]
        for field in NUMERIC_SETTINGS:
            value = settings[field]
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigurationError(
                    f"Invalid type for '{field}' in settings. "
                    f"Expected numeric value, got {type(value).__name__}: {value}"
                )
            if value < 0:
                raise ConfigurationError(
                    f"Invalid value for '{field}' in settings. " f"Must be non-negative, got: {value}"
                )

        try:
            OemVariant.from_config(str(settings["oem_variant"]))
        except ValueError as e:
            raise ConfigurationError(f"Invalid 'oem_variant' in settings: {e}") from e

        try:
            ResetType.parse(settings["system_reset_type"])
        except ValueError as e:
            raise ConfigurationError(f"Invalid 'system_reset_type' in settings: {e}") from e

    def _validate_connection_fields(self, conn: Dict[str, Any], location: str) -> None:
        """Validate connection configuration fields."""
        for field in ["ip", "username", "password"]:
            if not isinstance(conn[field], str):
                raise ConfigurationError(
                    f"Invalid type for '{field}' in {location}. Expected string, got {type(conn[field]).__name__}"
                )

        if "port" in conn:
            port = conn["port"]
            if isinstance(port, bool) or not isinstance(port, int):
                raise ConfigurationError(
                    f"Invalid type for 'port' in {location}. " f"Expected int, got {type(port).__name__}: {port}"
                )
            if not 1 <= port <= 65535:
                raise ConfigurationError(
                    f"Invalid port number in {location}. " f"Must be between 1 and 65535, got: {port}"
                )

        protocol = conn.get("protocol", "https")
        if protocol not in ("http", "https"):
            raise ConfigurationError(f"Invalid protocol '{protocol}' in {location}. Must be http or https")

        if "ssl_insecure" in conn and not isinstance(conn["ssl_insecure"], bool):
            raise ConfigurationError(f"Invalid type for 'ssl_insecure' in {location}. Expected bool")

    @property
    def bmc(self) -> Dict[str, Any]:
        return self.config["connection"]["bmc"]

    @property
    def settings(self) -> Dict[str, Any]:
        return self.config["settings"]

    @property
    def endpoint(self) -> str:
        """Endpoint identity used for locking."""
        return self.bmc["ip"]

    @property
    def system_uri(self) -> str:
        return f"/redfish/v1/Systems/{self.settings['system_id']}"

    @property
    def oem_variant(self) -> Optional[OemVariant]:
        return OemVariant.from_config(str(self.settings["oem_variant"]))

    def get_timeout(self, name: str) -> float:
        return self.settings[name]

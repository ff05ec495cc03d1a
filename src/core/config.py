"""
Configuration Management System for SquadRelay

Handles loading configuration from environment variables and config files,
and provides validation and per-plugin option lookup.
"""

import os
import json
import yaml
import logging
from typing import Any, Dict, List, Optional, Callable
from pathlib import Path
from dataclasses import dataclass


@dataclass
class ConfigSource:
    """Configuration source definition"""
    name: str
    priority: int
    loader: Callable
    path: Optional[str] = None


class ConfigurationError(Exception):
    """Configuration-related errors"""
    pass


LOG_READER_MODES = ('tail', 'sftp')
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')

# Secrets and IDs are passed through as strings
STRING_ONLY_SUFFIXES = ('channelID', 'apiToken', 'password', 'token')


class ConfigurationManager:
    """
    Manages system configuration with support for multiple sources,
    validation, and runtime updates.
    """

    def __init__(self, config_dir: str = "config"):
        self.config_dir = Path(config_dir)
        self.config: Dict[str, Any] = {}
        self.sources: List[ConfigSource] = []
        self.logger = logging.getLogger(__name__)

        # Default configuration values
        self.defaults = {
            "app": {
                "name": "SquadRelay",
                "version": "1.0.0"
            },
            "server": {
                "log_reader_mode": "tail",
                "sftp": {
                    "host": "",
                    "port": 22,
                    "username": "",
                    "password": ""
                }
            },
            "connectors": {
                "discord": {
                    "token": ""
                }
            },
            "logging": {
                "level": "INFO",
                "file": "logs/squadrelay.log",
                "max_size": "10MB",
                "backup_count": 5,
                "console": True,
                "console_level": "INFO"
            },
            "plugins": {
                "enabled_plugins": [],
                "disabled_plugins": [],
                "discord_scoreboard": {
                    "enabled": False,
                    "discordClient": "discord",
                    "channelID": "",
                    "scoreboardPath": "/SquadGame/Saved/OSI_Scoreboards/",
                    "waitTime": 5000
                },
                "competification_link": {
                    "enabled": False,
                    "apiEndpoint": "https://squad.competification.com/api-squad/eoslink",
                    "apiToken": "",
                    "timeout": 5000,
                    "retryOnFailure": False,
                    "logSuccessful": False
                }
            }
        }

        self._setup_sources()

    def _setup_sources(self):
        """Set up configuration sources in priority order"""
        # Environment variables (highest priority = highest number)
        self.sources.append(ConfigSource(
            name="environment",
            priority=4,
            loader=self._load_from_env
        ))

        # Local config file
        local_config_path = str(self.config_dir / "config.yaml")
        self.sources.append(ConfigSource(
            name="local_config",
            priority=3,
            loader=lambda: self._load_from_file(local_config_path),
            path=local_config_path
        ))

        # Default config file
        default_config_path = str(self.config_dir / "default.yaml")
        self.sources.append(ConfigSource(
            name="default_config",
            priority=2,
            loader=lambda: self._load_from_file(default_config_path),
            path=default_config_path
        ))

        # Built-in defaults (lowest priority)
        self.sources.append(ConfigSource(
            name="defaults",
            priority=1,
            loader=lambda: self.defaults
        ))

    def load_config(self) -> None:
        """Load configuration from all sources"""
        self.logger.info("Loading configuration from all sources")

        # Start with empty config
        merged_config = {}

        # Load from each source (lowest priority first)
        for source in sorted(self.sources, key=lambda x: x.priority):
            try:
                source_config = source.loader()
                if source_config:
                    merged_config = self._deep_merge(merged_config, source_config)
                    self.logger.debug(f"Loaded configuration from {source.name}")
            except Exception as e:
                self.logger.warning(f"Failed to load config from {source.name}: {e}")

        self.config = merged_config
        self._validate_config()
        self.logger.info("Configuration loaded successfully")

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables"""
        config = {}

        # Map environment variables to config keys
        env_mappings = {
            "SQUADRELAY_LOG_LEVEL": "logging.level",
            "SQUADRELAY_LOG_READER_MODE": "server.log_reader_mode",
            "SQUADRELAY_SFTP_HOST": "server.sftp.host",
            "SQUADRELAY_SFTP_PORT": "server.sftp.port",
            "SQUADRELAY_SFTP_USERNAME": "server.sftp.username",
            "SQUADRELAY_SFTP_PASSWORD": "server.sftp.password",
            "SQUADRELAY_DISCORD_TOKEN": "connectors.discord.token",
            "SQUADRELAY_SCOREBOARD_CHANNEL_ID": "plugins.discord_scoreboard.channelID",
            "SQUADRELAY_COMPETIFICATION_TOKEN": "plugins.competification_link.apiToken",
            "SQUADRELAY_ENABLED_PLUGINS": "plugins.enabled_plugins"
        }

        for env_var, config_key in env_mappings.items():
            value = os.getenv(env_var)
            if value is not None:
                # Convert string values to appropriate types
                if config_key == "plugins.enabled_plugins":
                    # JSON array or comma-separated names
                    try:
                        value = json.loads(value)
                    except json.JSONDecodeError:
                        value = [name.strip() for name in value.split(',') if name.strip()]
                elif not config_key.endswith(STRING_ONLY_SUFFIXES):
                    if value.lower() in ('true', 'false'):
                        value = value.lower() == 'true'
                    elif value.isdigit():
                        value = int(value)

                self._set_nested_value(config, config_key, value)

        return config

    def _load_from_file(self, file_path: str) -> Dict[str, Any]:
        """Load configuration from YAML or JSON file"""
        path = Path(file_path)

        if not path.exists():
            return {}

        try:
            with open(path, 'r') as f:
                if path.suffix.lower() in ['.yaml', '.yml']:
                    return yaml.safe_load(f) or {}
                elif path.suffix.lower() == '.json':
                    return json.load(f)
                else:
                    self.logger.warning(f"Unsupported config file format: {path}")
                    return {}
        except Exception as e:
            self.logger.error(f"Error loading config file {path}: {e}")
            return {}

    def _deep_merge(self, base: Dict, override: Dict) -> Dict:
        """Deep merge two dictionaries"""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _set_nested_value(self, config: Dict, key_path: str, value: Any) -> None:
        """Set a nested configuration value using dot notation"""
        keys = key_path.split('.')
        current = config

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def _validate_config(self) -> None:
        """Validate configuration values"""
        errors = []

        # Validate required sections
        required_sections = ['app', 'server', 'plugins']
        for section in required_sections:
            if section not in self.config:
                errors.append(f"Missing required configuration section: {section}")

        # Validate log reader mode
        mode = self.get('server.log_reader_mode', 'tail')
        if mode not in LOG_READER_MODES:
            errors.append(f"Invalid log reader mode: {mode}")

        if mode == 'sftp' and not self.get('server.sftp.host'):
            errors.append("SFTP log reader mode requires server.sftp.host")

        # Validate SFTP port
        sftp_port = self.get('server.sftp.port')
        if sftp_port and (not isinstance(sftp_port, int) or sftp_port < 1 or sftp_port > 65535):
            errors.append(f"Invalid SFTP port: {sftp_port}")

        # Validate log levels
        for key in ('logging.level', 'logging.console_level'):
            log_level = self.get(key, 'INFO')
            if str(log_level).upper() not in LOG_LEVELS:
                errors.append(f"Invalid log level for {key}: {log_level}")

        if errors:
            raise ConfigurationError(f"Configuration validation failed: {'; '.join(errors)}")

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation"""
        keys = key.split('.')
        current = self.config

        try:
            for k in keys:
                current = current[k]
            return current
        except (KeyError, TypeError):
            return default

    def get_section(self, section: str) -> Dict[str, Any]:
        """Get entire configuration section"""
        return self.get(section, {})

    def get_server_options(self) -> Dict[str, Any]:
        """Get host server options (log reader mode, SFTP credentials)"""
        return self.get_section('server')

    def get_connector_config(self, connector: str) -> Dict[str, Any]:
        """Get configuration for a named connector"""
        return self.get(f'connectors.{connector}', {})

    def get_plugin_config(self, plugin_name: str) -> Dict[str, Any]:
        """Get the option block for a plugin"""
        return dict(self.get(f'plugins.{plugin_name}', {}) or {})

    def get_enabled_plugins(self) -> List[str]:
        """Get list of explicitly enabled plugins (empty = all)"""
        return self.get('plugins.enabled_plugins', [])

    def get_disabled_plugins(self) -> List[str]:
        """Get list of explicitly disabled plugins"""
        return self.get('plugins.disabled_plugins', [])

    def is_plugin_enabled(self, plugin_name: str) -> bool:
        """
        Check if a specific plugin is enabled.

        Logic:
        - If plugin is in disabled_plugins list, return False
        - If enabled_plugins list is not empty, return True only if plugin is in the list
        - Otherwise fall back to the plugin's own 'enabled' option
        """
        if plugin_name in self.get_disabled_plugins():
            return False

        enabled = self.get_enabled_plugins()
        if enabled:
            return plugin_name in enabled

        return bool(self.get(f'plugins.{plugin_name}.enabled', False))


"""
Logging Configuration for SquadRelay

Provides centralized logging setup with structured logging,
file rotation, and plugin-specific log levels.
"""

import logging
import logging.handlers
import sys
import json
from pathlib import Path
from typing import Dict, Optional, Any
import structlog
from datetime import datetime, timezone


LOGGER_PREFIX = 'squadrelay'


class SquadRelayLogger:
    """
    Centralized logging configuration for SquadRelay
    """

    def __init__(self, config: Dict):
        self.config = config
        self.loggers: Dict[str, logging.Logger] = {}
        self.plugin_log_levels: Dict[str, str] = {}
        self._setup_logging()

    def _setup_logging(self):
        """Set up logging configuration"""
        # Get logging configuration
        log_config = self.config.get('logging', {})
        log_level = log_config.get('level', 'INFO').upper()
        log_file = log_config.get('file', 'logs/squadrelay.log')
        max_size = log_config.get('max_size', '10MB')
        backup_count = log_config.get('backup_count', 5)
        console_enabled = log_config.get('console', True)
        console_level = log_config.get('console_level', 'INFO').upper()

        # Configure structlog
        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.stdlib.PositionalArgumentsFormatter(),
                structlog.processors.TimeStamper(fmt="ISO"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.UnicodeDecoder(),
                structlog.processors.JSONRenderer()
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

        # Root logger configuration
        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, log_level))

        # Clear existing handlers
        root_logger.handlers.clear()

        # File handler with rotation
        if log_file:
            # Ensure log directory exists
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=self._parse_size(max_size),
                backupCount=backup_count,
                encoding='utf-8'
            )
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            file_handler.setLevel(getattr(logging, log_level))
            root_logger.addHandler(file_handler)

        # Console handler
        if console_enabled:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%H:%M:%S'
            ))
            console_handler.setLevel(getattr(logging, console_level))
            root_logger.addHandler(console_handler)

        # Configure plugin-specific log levels
        plugin_levels = log_config.get('plugins', {})
        for plugin_name, level in plugin_levels.items():
            self.set_plugin_log_level(plugin_name, level)

        # Suppress noisy third-party loggers
        self._configure_third_party_loggers()

    def _parse_size(self, size_str: str) -> int:
        """Parse size string like '10MB' to bytes"""
        size_str = str(size_str).upper()
        if size_str.endswith('KB'):
            return int(size_str[:-2]) * 1024
        elif size_str.endswith('MB'):
            return int(size_str[:-2]) * 1024 * 1024
        elif size_str.endswith('GB'):
            return int(size_str[:-2]) * 1024 * 1024 * 1024
        else:
            return int(size_str)

    def _configure_third_party_loggers(self):
        """Configure third-party library loggers to reduce noise"""
        noisy_loggers = [
            'asyncio',
            'aiohttp.access',
            'asyncssh',
            'discord.client',
            'discord.gateway',
            'discord.http',
        ]

        for logger_name in noisy_loggers:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    def get_logger(self, name: str) -> logging.Logger:
        """Get a logger for a specific component"""
        if name not in self.loggers:
            # Create logger with SquadRelay prefix
            full_name = f'{LOGGER_PREFIX}.{name}' if not name.startswith(LOGGER_PREFIX) else name
            logger = logging.getLogger(full_name)

            # Apply plugin-specific log level if configured
            if name.startswith('plugin_'):
                plugin_name = name[len('plugin_'):]
                if plugin_name in self.plugin_log_levels:
                    logger.setLevel(getattr(logging, self.plugin_log_levels[plugin_name]))

            self.loggers[name] = logger

        return self.loggers[name]

    def set_plugin_log_level(self, plugin_name: str, level: str):
        """
        Set log level for a specific plugin.

        Args:
            plugin_name: Name of the plugin
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        """
        level = level.upper()
        self.plugin_log_levels[plugin_name] = level
        logging.getLogger(f'{LOGGER_PREFIX}.plugin_{plugin_name}').setLevel(getattr(logging, level))


# Global logger instance
_logger_instance: Optional[SquadRelayLogger] = None


def initialize_logging(config: Dict) -> SquadRelayLogger:
    """Initialize the global logging system"""
    global _logger_instance
    _logger_instance = SquadRelayLogger(config)
    return _logger_instance


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance"""
    if _logger_instance is None:
        # Fallback to basic logging if not initialized
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        return logging.getLogger(f'{LOGGER_PREFIX}.{name}')

    return _logger_instance.get_logger(name)


def get_structured_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance"""
    if _logger_instance is None:
        # Initialize with minimal config
        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="ISO"),
                structlog.processors.JSONRenderer()
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

    return structlog.get_logger(f'{LOGGER_PREFIX}.{name}')


def log_plugin_error(logger: logging.Logger, plugin_name: str, error_type: str,
                     error_message: str, context: Optional[Dict[str, Any]] = None,
                     stack_trace: Optional[str] = None):
    """
    Log a structured plugin error with context.

    Args:
        logger: Logger instance
        plugin_name: Name of the plugin
        error_type: Type of error (e.g., 'HTTPRequestError', 'SFTPError')
        error_message: Error message
        context: Additional context information
        stack_trace: Stack trace string

    Example:
        log_plugin_error(
            logger,
            "competification_link",
            "HTTPRequestError",
            "Failed to send link to API",
            context={"status": 500},
            stack_trace=traceback.format_exc()
        )
    """
    error_data = {
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'plugin': plugin_name,
        'error_type': error_type,
        'error_message': error_message,
    }

    if context:
        error_data['context'] = context

    if stack_trace:
        error_data['stack_trace'] = stack_trace

    # Log as JSON for structured logging
    logger.error(json.dumps(error_data, default=str))

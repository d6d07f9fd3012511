"""
Configuration Validator
Validates the settings file and values before a pass uses them
"""

import json
import logging
from pathlib import Path
from typing import Any, List, Tuple

logger = logging.getLogger(__name__)


class ConfigValidator:
    """Validates tool settings and the configuration file structure"""

    VALID_RANGES = {
        'command_timeout_seconds': (5, 600),
    }

    VALID_VALUES = {
        'log_level': ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        'report_format': ['csv', 'json', 'txt'],
    }

    BOOL_FIELDS = [
        'apply_power_plans', 'unhide_power_setting', 'apply_services', 'apply_wmi',
    ]

    @staticmethod
    def validate_settings(settings: Any) -> Tuple[bool, List[str]]:
        """
        Validate a ToolSettings instance.

        Args:
            settings: ToolSettings instance to validate

        Returns:
            Tuple of (is_valid: bool, errors: List[str])
        """
        errors = []

        for field_name, (min_val, max_val) in ConfigValidator.VALID_RANGES.items():
            value = getattr(settings, field_name, None)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                errors.append(f"{field_name} must be numeric, got {type(value).__name__}")
            elif not (min_val <= value <= max_val):
                errors.append(f"{field_name} must be between {min_val} and {max_val}, got {value}")

        for field_name, valid_values in ConfigValidator.VALID_VALUES.items():
            value = getattr(settings, field_name, None)
            if not isinstance(value, str) or value.lower() not in [v.lower() for v in valid_values]:
                errors.append(f"{field_name} must be one of {valid_values}, got '{value}'")

        for field_name in ConfigValidator.BOOL_FIELDS:
            value = getattr(settings, field_name, None)
            if value is not None and not isinstance(value, bool):
                errors.append(f"{field_name} must be boolean (true/false), got {type(value).__name__}")

        if not getattr(settings, 'report_dir', None):
            errors.append("report_dir cannot be empty")

        is_valid = len(errors) == 0
        if not is_valid:
            logger.warning(f"Settings validation failed: {len(errors)} errors")
            for error in errors:
                logger.warning(f"  - {error}")

        return is_valid, errors

    @staticmethod
    def sanitize_settings(settings: Any) -> Any:
        """Normalize case and replace unusable values with defaults"""
        from config_loader import ToolSettings
        defaults = ToolSettings()

        if isinstance(settings.log_level, str) and settings.log_level.upper() in ConfigValidator.VALID_VALUES['log_level']:
            settings.log_level = settings.log_level.upper()
        else:
            logger.warning(f"Invalid log_level '{settings.log_level}', using {defaults.log_level}")
            settings.log_level = defaults.log_level

        if isinstance(settings.report_format, str) and settings.report_format.lower() in ConfigValidator.VALID_VALUES['report_format']:
            settings.report_format = settings.report_format.lower()
        else:
            logger.warning(f"Invalid report_format '{settings.report_format}', using {defaults.report_format}")
            settings.report_format = defaults.report_format

        min_val, max_val = ConfigValidator.VALID_RANGES['command_timeout_seconds']
        timeout = settings.command_timeout_seconds
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
            settings.command_timeout_seconds = defaults.command_timeout_seconds
        else:
            settings.command_timeout_seconds = max(min_val, min(max_val, timeout))

        return settings

    @staticmethod
    def validate_config_file(config_path: Path) -> Tuple[bool, List[str]]:
        """
        Validate configuration file exists and is readable.

        Args:
            config_path: Path to configuration file

        Returns:
            Tuple of (is_valid: bool, errors: List[str])
        """
        errors = []

        if not config_path.exists():
            errors.append(f"Configuration file does not exist: {config_path}")
            return False, errors

        if not config_path.is_file():
            errors.append(f"Configuration path is not a file: {config_path}")
            return False, errors

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = json.load(f)

            if not isinstance(data, dict):
                errors.append("Configuration file must contain a JSON object")
            else:
                if 'version' not in data:
                    errors.append("Configuration file missing 'version' field")

                if 'settings' in data and not isinstance(data['settings'], dict):
                    errors.append("'settings' section must be a dictionary")

        except json.JSONDecodeError as e:
            errors.append(f"Invalid JSON in configuration file: {e}")
        except OSError as e:
            errors.append(f"Cannot read configuration file: {e}")

        return len(errors) == 0, errors

"""
Configuration management
JSON settings file with version migration and validation on load
"""

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

APP_DIR = Path.home() / '.usb_suspend_guard'


@dataclass
class ToolSettings:
    log_level: str = 'INFO'

    # Power plans
    apply_power_plans: bool = True
    unhide_power_setting: bool = False

    # Driver services
    apply_services: bool = True

    # WMI device power management (optional step)
    apply_wmi: bool = False

    # Reporting
    report_format: str = 'csv'
    report_dir: str = str(APP_DIR / 'reports')

    # External utilities (powercfg, powershell)
    command_timeout_seconds: int = 30


class ConfigurationManager:
    CONFIG_VERSION = "1.1"

    def __init__(self, config_file: Optional[str] = None, validate: bool = True):
        self.config_file = Path(config_file) if config_file else APP_DIR / 'config.json'
        self.config_dir = self.config_file.parent
        self.config_dir.mkdir(parents=True, exist_ok=True)

        self.settings = ToolSettings()
        self.validate_on_load = validate

        self._load_configuration()

    def _load_configuration(self):
        try:
            if self.config_file.exists():
                if self.validate_on_load:
                    from config_validator import ConfigValidator
                    is_valid, errors = ConfigValidator.validate_config_file(self.config_file)
                    if not is_valid:
                        logger.warning(f"Configuration file has validation errors: {errors}")

                with open(self.config_file, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    raise ValueError("configuration root is not a JSON object")
                if not isinstance(data.get('settings', {}), dict):
                    logger.warning("'settings' section is not an object, using defaults")
                    data['settings'] = {}

                config_version = data.get('version', '1.0')
                if config_version != self.CONFIG_VERSION:
                    data = self._migrate_config(data, config_version)
                    self._save_data(data)

                self.settings = self._settings_from_dict(data.get('settings', {}))

                if self.validate_on_load:
                    from config_validator import ConfigValidator
                    self.settings = ConfigValidator.sanitize_settings(self.settings)
                    is_valid, errors = ConfigValidator.validate_settings(self.settings)
                    if not is_valid:
                        logger.warning(f"Settings validation errors: {errors}")
            else:
                self.settings = ToolSettings()
                self.save_configuration()

        except (OSError, ValueError) as e:
            logger.error(f"Config load error: {e}")
            self.settings = ToolSettings()

    @staticmethod
    def _settings_from_dict(data: Dict[str, Any]) -> ToolSettings:
        known = {f.name for f in fields(ToolSettings)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown settings: {sorted(unknown)}")
        return ToolSettings(**{k: v for k, v in data.items() if k in known})

    def _migrate_config(self, data: Dict, from_version: str) -> Dict:
        """Migrate an older config file to the current version"""
        settings = data.setdefault('settings', {})

        # 1.0 kept everything under 'global' and called the WMI switch 'include_wmi'
        legacy = data.pop('global', None)
        if isinstance(legacy, dict):
            for key, value in legacy.items():
                settings.setdefault(key, value)
        if 'include_wmi' in settings:
            settings['apply_wmi'] = settings.pop('include_wmi')

        for key, value in asdict(ToolSettings()).items():
            settings.setdefault(key, value)

        data['version'] = self.CONFIG_VERSION
        logger.info(f"Migrated config from {from_version} to {self.CONFIG_VERSION}")
        return data

    def save_configuration(self):
        self._save_data({'version': self.CONFIG_VERSION, 'settings': asdict(self.settings)})

    def _save_data(self, data: Dict):
        try:
            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.error(f"Config save error: {e}")

    def get_setting(self, key: str, default: Any = None) -> Any:
        return getattr(self.settings, key, default)

    def set_setting(self, key: str, value: Any):
        if not hasattr(self.settings, key):
            raise KeyError(f"Unknown setting: {key}")
        setattr(self.settings, key, value)
        self.save_configuration()

    def remember_report_location(self, path: Path, fmt: str):
        """Make the last export location and format the defaults for the next export"""
        self.set_setting('report_dir', str(Path(path).parent))
        self.set_setting('report_format', fmt.lower())

"""
test_config_loader.py - settings file loading, migration and validation tests
"""

import json
import logging

import pytest

from config_loader import ConfigurationManager, ToolSettings
from config_validator import ConfigValidator

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def _write(path, data):
    path.write_text(json.dumps(data), encoding='utf-8')


def test_missing_file_created_with_defaults(tmp_path):
    config_file = tmp_path / "cfg" / "config.json"
    manager = ConfigurationManager(str(config_file))

    assert manager.settings == ToolSettings()
    saved = json.loads(config_file.read_text(encoding='utf-8'))
    assert saved['version'] == ConfigurationManager.CONFIG_VERSION
    assert saved['settings']['apply_power_plans'] is True


def test_loads_current_version(tmp_path):
    config_file = tmp_path / "config.json"
    _write(config_file, {'version': '1.1', 'settings': {'apply_wmi': True, 'report_format': 'json'}})
    settings = ConfigurationManager(str(config_file)).settings
    assert settings.apply_wmi is True
    assert settings.report_format == 'json'
    assert settings.apply_services is True


def test_migrates_legacy_layout(tmp_path):
    logger.info("=" * 80)
    logger.info("Config: 1.0 'global' section migrates to 'settings'")
    config_file = tmp_path / "config.json"
    _write(config_file, {'version': '1.0', 'global': {'include_wmi': True, 'log_level': 'debug'}})

    settings = ConfigurationManager(str(config_file)).settings

    assert settings.apply_wmi is True
    assert settings.log_level == 'DEBUG'
    saved = json.loads(config_file.read_text(encoding='utf-8'))
    assert saved['version'] == '1.1'
    assert 'global' not in saved
    assert 'include_wmi' not in saved['settings']


def test_sanitizes_bad_values(tmp_path):
    config_file = tmp_path / "config.json"
    _write(config_file, {'version': '1.1', 'settings': {
        'log_level': 'verbose', 'report_format': 'XML', 'command_timeout_seconds': 9999}})
    settings = ConfigurationManager(str(config_file)).settings
    assert settings.log_level == 'INFO'
    assert settings.report_format == 'csv'
    assert settings.command_timeout_seconds == 600


def test_unknown_keys_ignored(tmp_path, caplog):
    config_file = tmp_path / "config.json"
    _write(config_file, {'version': '1.1', 'settings': {'turbo_mode': True}})
    with caplog.at_level(logging.WARNING):
        settings = ConfigurationManager(str(config_file)).settings
    assert settings == ToolSettings()
    assert "turbo_mode" in caplog.text


@pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]"])
def test_unreadable_file_falls_back_to_defaults(tmp_path, content):
    config_file = tmp_path / "config.json"
    config_file.write_text(content, encoding='utf-8')
    assert ConfigurationManager(str(config_file)).settings == ToolSettings()


def test_set_setting_persists(tmp_path):
    config_file = tmp_path / "config.json"
    manager = ConfigurationManager(str(config_file))
    manager.set_setting('apply_services', False)

    assert ConfigurationManager(str(config_file)).get_setting('apply_services') is False
    with pytest.raises(KeyError):
        manager.set_setting('no_such_setting', 1)


def test_remember_report_location(tmp_path):
    config_file = tmp_path / "config.json"
    manager = ConfigurationManager(str(config_file))
    manager.remember_report_location(tmp_path / "exports" / "usb.JSON", "JSON")

    reloaded = ConfigurationManager(str(config_file))
    assert reloaded.get_setting('report_dir') == str(tmp_path / "exports")
    assert reloaded.get_setting('report_format') == 'json'
    assert reloaded.get_setting('no_such_setting', 'fallback') == 'fallback'


def test_validator_reports_type_errors():
    settings = ToolSettings()
    settings.apply_wmi = "yes"
    settings.command_timeout_seconds = True
    is_valid, errors = ConfigValidator.validate_settings(settings)
    assert not is_valid
    assert len(errors) == 2


def test_validate_config_file(tmp_path):
    config_file = tmp_path / "config.json"
    _write(config_file, {'settings': []})
    is_valid, errors = ConfigValidator.validate_config_file(config_file)
    assert not is_valid
    assert len(errors) == 2
    assert not ConfigValidator.validate_config_file(tmp_path / "missing.json")[0]


if __name__ == "__main__":
    raise SystemExit(pytest.main([__file__, "-v"]))

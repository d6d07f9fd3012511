"""
USB Suspend Guard - pass orchestration and command line entry point
Runs one pass (disable, restore or report) across power plans, per-device
registry parameters, USB driver services and, optionally, WMI device power.
"""

import argparse
import logging
import sys
from dataclasses import dataclass, field
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

from config_loader import APP_DIR, ConfigurationManager, ToolSettings
from device_classifier import is_usb_device
from device_enumerator import Device, DeviceEnumerator, filter_devices
from device_settings import AggregateOutcome, DeviceResult, DeviceSettingsApplier, Mode
from power_plans import PowerPlanManager, PowerPlanResult
from registry_store import RegistryStore
from service_configurator import ServiceConfigurator, ServicePassResult
from status_report import StatusReport, build_report, default_report_path, export_report
from utils import PerformanceTimer, error_handler, is_admin, relaunch_elevated
from wmi_power import WmiPowerManager, WmiPowerResult

logger = logging.getLogger(__name__)


@dataclass
class PassResult:
    mode: Mode
    devices: List[Device] = field(default_factory=list)
    outcome: AggregateOutcome = field(default_factory=AggregateOutcome)
    device_results: List[DeviceResult] = field(default_factory=list)
    power_plans: Optional[PowerPlanResult] = None
    services: Optional[ServicePassResult] = None
    wmi: Optional[WmiPowerResult] = None


class UsbPowerManager:
    """Borrows its collaborators for one pass at a time and keeps no pass state"""

    def __init__(self, store: RegistryStore, settings: Optional[ToolSettings] = None,
                 enumerator: Optional[DeviceEnumerator] = None,
                 power_plans: Optional[PowerPlanManager] = None,
                 services: Optional[ServiceConfigurator] = None,
                 wmi_power: Optional[WmiPowerManager] = None):
        self.settings = settings or ToolSettings()
        timeout = self.settings.command_timeout_seconds
        self.store = store
        self.enumerator = enumerator or DeviceEnumerator(timeout=timeout)
        self.applier = DeviceSettingsApplier(store)
        self.power_plans = power_plans or PowerPlanManager(timeout=timeout)
        self.services = services or ServiceConfigurator(store)
        self.wmi_power = wmi_power or WmiPowerManager()

    def find_usb_devices(self) -> List[Device]:
        devices = filter_devices(self.enumerator.enumerate(), is_usb_device)
        logger.info(f"Found {len(devices)} USB-related devices")
        return devices

    def run_pass(self, mode: Mode) -> PassResult:
        if mode == Mode.REPORT:
            raise ValueError("Use build_status_report() for report passes")

        logger.info("=" * 80)
        logger.info(f"USB SELECTIVE SUSPEND - {mode.value.upper()} PASS")
        logger.info("=" * 80)

        result = PassResult(mode=mode)
        with PerformanceTimer(f"{mode.value} pass", log_level=logging.INFO):
            if self.settings.apply_power_plans:
                with error_handler("power plan update"):
                    if self.settings.unhide_power_setting and mode == Mode.DISABLE:
                        self.power_plans.unhide_setting()
                    result.power_plans = self.power_plans.apply(mode)

            result.devices = self.find_usb_devices()
            result.outcome, result.device_results = self.applier.apply_to_devices(result.devices, mode)

            if self.settings.apply_services:
                with error_handler("driver service update"):
                    result.services = self.services.apply(mode)

            if self.settings.apply_wmi:
                with error_handler("WMI power update"):
                    result.wmi = self.wmi_power.apply(result.devices, mode)

        self._log_summary(result)
        return result

    def _log_summary(self, result: PassResult):
        logger.info("=" * 80)
        logger.info(f"Devices modified: {result.outcome.modified}")
        logger.info(f"Devices failed:   {result.outcome.reported_failed}")
        if result.outcome.not_applicable:
            logger.info(f"  ({result.outcome.not_applicable} of them have no Device Parameters key)")
        if result.power_plans is not None:
            logger.info(f"Power plans updated: {len(result.power_plans.updated)}/{len(result.power_plans.plans)}")
        if result.services is not None:
            logger.info(f"Driver services configured: {result.services.configured}")
        if result.wmi is not None:
            logger.info(f"WMI power entries updated: {result.wmi.updated}/{result.wmi.candidates}")
        logger.info("Restart the computer to make sure every change takes effect.")
        logger.info("=" * 80)

    def build_status_report(self, devices: Optional[List[Device]] = None) -> StatusReport:
        if devices is None:
            devices = self.find_usb_devices()
        wmi_states = {}
        with error_handler("WMI power query", log_level=logging.DEBUG):
            wmi_states = self.wmi_power.query_states()
        report = build_report(devices, self.applier, wmi_states)
        if self.settings.apply_services:
            with error_handler("driver service query", log_level=logging.DEBUG):
                report.services = self.services.status_rows()
        if self.settings.apply_power_plans:
            with error_handler("power plan query", log_level=logging.DEBUG):
                active = self.power_plans.get_active_plan()
                if active:
                    report.metadata['active_power_plan'] = active
                    report.metadata['active_plan_usb_suspend'] = self.power_plans.read_plan_value(active)
        return report


def setup_logging(level: str = 'INFO', log_dir: Optional[Path] = None):
    """Configure logging with file rotation"""
    log_dir = log_dir or APP_DIR / 'logs'
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / 'usb_suspend_guard.log'

    file_handler = RotatingFileHandler(
        log_file, maxBytes=5*1024*1024, backupCount=5, encoding='utf-8')
    console_handler = logging.StreamHandler(sys.stdout)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S')

    file_handler.setFormatter(formatter)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='usb-suspend-guard',
        description='Disable Windows USB selective suspend and report USB device power status')
    parser.add_argument('--config', help='Path to config.json')
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Override the configured log level')
    parser.add_argument('--wmi', dest='apply_wmi', action='store_true', default=None,
                        help='Also change WMI device power settings')
    parser.add_argument('--no-wmi', dest='apply_wmi', action='store_false', default=None)
    parser.add_argument('--no-power-plans', action='store_true', help='Skip power plan changes')
    parser.add_argument('--no-services', action='store_true', help='Skip driver service changes')
    parser.add_argument('--elevate', action='store_true',
                        help='Relaunch through UAC when not running as Administrator')

    sub = parser.add_subparsers(dest='command', required=True)
    sub.add_parser('disable', help='Disable USB selective suspend everywhere')
    sub.add_parser('restore', help='Remove the overrides and return to Windows defaults')
    report = sub.add_parser('report', help='Export USB device power status')
    report.add_argument('--format', choices=['csv', 'json', 'txt'], help='Report format')
    report.add_argument('--output', help='Report file path')
    sub.add_parser('gui', help='Open the graphical interface')
    return parser


def apply_overrides(settings: ToolSettings, args: argparse.Namespace) -> ToolSettings:
    if args.log_level:
        settings.log_level = args.log_level
    if args.apply_wmi is not None:
        settings.apply_wmi = args.apply_wmi
    if args.no_power_plans:
        settings.apply_power_plans = False
    if args.no_services:
        settings.apply_services = False
    return settings


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config_manager = ConfigurationManager(args.config)
    settings = apply_overrides(config_manager.settings, args)
    setup_logging(settings.log_level)

    if args.command == 'gui':
        from gui_pyqt6 import main as gui_main
        return gui_main(config_manager, configure_logging=False)

    mode = Mode(args.command)
    if mode != Mode.REPORT and not is_admin():
        if args.elevate:
            forwarded = list(sys.argv[1:] if argv is None else argv)
            if relaunch_elevated(['-m', 'core_manager', *forwarded]):
                logger.info("Continuing in the elevated window")
                return 0
        logger.critical("❌ Administrator privileges are required to change power settings")
        logger.critical("Please run as Administrator (or pass --elevate)")
        return 1

    try:
        from registry_store import WinRegistryStore
        manager = UsbPowerManager(WinRegistryStore(), settings)

        if mode == Mode.REPORT:
            report = manager.build_status_report()
            fmt = args.format or settings.report_format
            output = Path(args.output) if args.output else default_report_path(Path(settings.report_dir), fmt)
            export_report(report, fmt, output)
        else:
            manager.run_pass(mode)

    except KeyboardInterrupt:
        logger.info("Interrupted (Ctrl+C); settings already written are kept")
        return 1

    except Exception as e:
        logger.critical(f"❌ CRITICAL ERROR: {e}", exc_info=True)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())

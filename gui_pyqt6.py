"""
PyQt6 GUI - dark themed front-end for USB Suspend Guard
Lists USB devices with their power status and runs disable/restore passes
on a worker thread.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Callable, Optional

from PyQt6.QtCore import QThread, pyqtSignal
from PyQt6.QtGui import QAction, QColor, QFont, QPalette
from PyQt6.QtWidgets import (
    QApplication, QFileDialog, QGroupBox, QHBoxLayout, QLabel, QMainWindow,
    QMessageBox, QPushButton, QStatusBar, QTableWidget, QTableWidgetItem,
    QVBoxLayout, QWidget, QHeaderView
)

from config_loader import ConfigurationManager
from core_manager import PassResult, UsbPowerManager, setup_logging
from device_settings import Mode
from status_report import REPORT_FORMATS, StatusReport, export_report
from utils import is_admin, relaunch_elevated

logger = logging.getLogger(__name__)


class DarkTheme:
    """Dark theme color palette"""

    BACKGROUND = "#1e1e1e"
    SURFACE = "#252525"
    SURFACE_VARIANT = "#2d2d2d"

    TEXT_PRIMARY = "#e0e0e0"
    TEXT_SECONDARY = "#a0a0a0"
    TEXT_DISABLED = "#606060"

    PRIMARY = "#3794ff"
    PRIMARY_VARIANT = "#2962ff"

    SUCCESS = "#4caf50"
    WARNING = "#ff9800"
    ERROR = "#f44336"

    BORDER = "#383838"


class TaskThread(QThread):
    """Runs one manager call off the UI thread"""

    succeeded = pyqtSignal(object)
    failed = pyqtSignal(str)

    def __init__(self, task: Callable[[], Any]):
        super().__init__()
        self.task = task

    def run(self):
        try:
            self.succeeded.emit(self.task())
        except Exception as e:
            logger.error(f"Background task failed: {e}", exc_info=True)
            self.failed.emit(str(e))


class DeviceTableWidget(QWidget):
    COLUMNS = ["Device", "Instance ID", "Status", "Suspend Disabled", "WMI Power Saving"]

    def __init__(self, parent=None):
        super().__init__(parent)
        layout = QVBoxLayout(self)

        self.table = QTableWidget()
        self.table.setColumnCount(len(self.COLUMNS))
        self.table.setHorizontalHeaderLabels(self.COLUMNS)
        self.table.setAlternatingRowColors(True)
        self.table.setEditTriggers(QTableWidget.EditTrigger.NoEditTriggers)
        self.table.setSelectionBehavior(QTableWidget.SelectionBehavior.SelectRows)
        header = self.table.horizontalHeader()
        header.setSectionResizeMode(0, QHeaderView.ResizeMode.ResizeToContents)
        header.setSectionResizeMode(1, QHeaderView.ResizeMode.Stretch)
        layout.addWidget(self.table)

    @staticmethod
    def _flag_item(value: Optional[bool], good_when: bool) -> QTableWidgetItem:
        if value is None:
            item = QTableWidgetItem("Unknown")
            item.setForeground(QColor(DarkTheme.TEXT_SECONDARY))
        else:
            item = QTableWidgetItem("Yes" if value else "No")
            item.setForeground(QColor(DarkTheme.SUCCESS if value == good_when else DarkTheme.WARNING))
        return item

    def show_report(self, report: StatusReport):
        self.table.setRowCount(0)
        for row in report.rows:
            index = self.table.rowCount()
            self.table.insertRow(index)
            self.table.setItem(index, 0, QTableWidgetItem(row.name))
            self.table.setItem(index, 1, QTableWidgetItem(row.instance_id))
            status = QTableWidgetItem(row.status)
            if row.status.upper() != "OK":
                status.setForeground(QColor(DarkTheme.TEXT_SECONDARY))
            self.table.setItem(index, 2, status)
            self.table.setItem(index, 3, self._flag_item(row.suspend_override, good_when=True))
            self.table.setItem(index, 4, self._flag_item(row.wmi_power_saving, good_when=False))


class UsbSuspendGuardGUI(QMainWindow):
    def __init__(self, config_manager: ConfigurationManager, manager: UsbPowerManager):
        super().__init__()
        self.config_manager = config_manager
        self.manager = manager
        self.report: Optional[StatusReport] = None
        self.worker: Optional[TaskThread] = None
        self.elevated = is_admin()

        self.setWindowTitle("USB Suspend Guard")
        self.setGeometry(100, 100, 1200, 720)

        self.apply_dark_theme()
        self.init_ui()
        self.refresh_devices()

    def apply_dark_theme(self):
        app = QApplication.instance()

        palette = QPalette()
        palette.setColor(QPalette.ColorRole.Window, QColor(DarkTheme.BACKGROUND))
        palette.setColor(QPalette.ColorRole.WindowText, QColor(DarkTheme.TEXT_PRIMARY))
        palette.setColor(QPalette.ColorRole.Base, QColor(DarkTheme.SURFACE))
        palette.setColor(QPalette.ColorRole.AlternateBase, QColor(DarkTheme.SURFACE_VARIANT))
        palette.setColor(QPalette.ColorRole.Text, QColor(DarkTheme.TEXT_PRIMARY))
        palette.setColor(QPalette.ColorRole.Button, QColor(DarkTheme.SURFACE_VARIANT))
        palette.setColor(QPalette.ColorRole.ButtonText, QColor(DarkTheme.TEXT_PRIMARY))
        palette.setColor(QPalette.ColorRole.Highlight, QColor(DarkTheme.PRIMARY))
        palette.setColor(QPalette.ColorRole.HighlightedText, QColor(DarkTheme.TEXT_PRIMARY))
        app.setPalette(palette)

        app.setStyleSheet(f"""
            QMainWindow {{
                background-color: {DarkTheme.BACKGROUND};
            }}
            QGroupBox {{
                border: 1px solid {DarkTheme.BORDER};
                border-radius: 5px;
                margin-top: 10px;
                padding: 10px;
                font-weight: bold;
            }}
            QPushButton {{
                background-color: {DarkTheme.PRIMARY};
                border: none;
                border-radius: 4px;
                padding: 8px 16px;
                color: {DarkTheme.TEXT_PRIMARY};
                font-weight: bold;
            }}
            QPushButton:hover {{
                background-color: {DarkTheme.PRIMARY_VARIANT};
            }}
            QPushButton:disabled {{
                background-color: {DarkTheme.SURFACE_VARIANT};
                color: {DarkTheme.TEXT_DISABLED};
            }}
            QTableWidget {{
                background-color: {DarkTheme.SURFACE};
                alternate-background-color: {DarkTheme.SURFACE_VARIANT};
                gridline-color: {DarkTheme.BORDER};
                border: 1px solid {DarkTheme.BORDER};
            }}
            QHeaderView::section {{
                background-color: {DarkTheme.SURFACE_VARIANT};
                border: 1px solid {DarkTheme.BORDER};
                padding: 5px;
                font-weight: bold;
            }}
        """)

    def init_ui(self):
        central_widget = QWidget()
        self.setCentralWidget(central_widget)
        main_layout = QVBoxLayout(central_widget)

        header = QGroupBox("USB Selective Suspend")
        header_layout = QHBoxLayout(header)

        title = QLabel("Keep USB devices powered: mice, audio interfaces, drives")
        title.setFont(QFont("Segoe UI", 11, QFont.Weight.Bold))
        header_layout.addWidget(title, 1)

        self.btn_disable = QPushButton("Disable Suspend")
        self.btn_disable.clicked.connect(lambda: self.run_pass(Mode.DISABLE))
        header_layout.addWidget(self.btn_disable)

        self.btn_restore = QPushButton("Restore Defaults")
        self.btn_restore.clicked.connect(lambda: self.run_pass(Mode.RESTORE))
        header_layout.addWidget(self.btn_restore)

        self.btn_refresh = QPushButton("Refresh")
        self.btn_refresh.clicked.connect(self.refresh_devices)
        header_layout.addWidget(self.btn_refresh)

        self.btn_export = QPushButton("Export Report")
        self.btn_export.clicked.connect(self.export_current_report)
        header_layout.addWidget(self.btn_export)

        if not self.elevated:
            self.btn_elevate = QPushButton("Run as Administrator")
            self.btn_elevate.clicked.connect(self.restart_elevated)
            header_layout.addWidget(self.btn_elevate)

        main_layout.addWidget(header)

        self.device_table = DeviceTableWidget()
        main_layout.addWidget(self.device_table, 1)

        self.status_bar = QStatusBar()
        self.setStatusBar(self.status_bar)
        if self.elevated:
            self.status_bar.showMessage("Ready")
        else:
            self.status_bar.showMessage("Read-only: Administrator privileges are required to change settings")

        self.create_menu_bar()
        self._set_busy(False)

    def create_menu_bar(self):
        menubar = self.menuBar()

        file_menu = menubar.addMenu("&File")
        export_action = QAction("Export Report...", self)
        export_action.triggered.connect(self.export_current_report)
        file_menu.addAction(export_action)
        file_menu.addSeparator()
        exit_action = QAction("Exit", self)
        exit_action.triggered.connect(self.close)
        file_menu.addAction(exit_action)

        help_menu = menubar.addMenu("&Help")
        about_action = QAction("About", self)
        about_action.triggered.connect(self.show_about)
        help_menu.addAction(about_action)

    def _set_busy(self, busy: bool):
        can_modify = self.elevated and not busy
        self.btn_disable.setEnabled(can_modify)
        self.btn_restore.setEnabled(can_modify)
        self.btn_refresh.setEnabled(not busy)
        self.btn_export.setEnabled(not busy and self.report is not None)

    def _start(self, task: Callable[[], Any], on_success: Callable[[Any], None], message: str):
        if self.worker is not None and self.worker.isRunning():
            QMessageBox.warning(self, "Operation in progress", "Wait for the current operation to finish.")
            return
        self._set_busy(True)
        self.status_bar.showMessage(message)
        self.worker = TaskThread(task)
        self.worker.succeeded.connect(on_success)
        self.worker.failed.connect(self._on_failed)
        self.worker.start()

    def refresh_devices(self):
        self._start(self.manager.build_status_report, self._on_report, "Scanning USB devices...")

    def _on_report(self, report: StatusReport):
        self.report = report
        self.device_table.show_report(report)
        overridden = sum(1 for r in report.rows if r.suspend_override)
        self.status_bar.showMessage(f"{len(report.rows)} USB devices, {overridden} with selective suspend disabled")
        self._set_busy(False)

    def run_pass(self, mode: Mode):
        self._start(lambda: self.manager.run_pass(mode), self._on_pass_finished,
                    f"Running {mode.value} pass...")

    def _on_pass_finished(self, result: PassResult):
        self._set_busy(False)
        outcome = result.outcome
        QMessageBox.information(
            self,
            f"{result.mode.value.title()} complete",
            f"Devices modified: {outcome.modified}\n"
            f"Devices failed: {outcome.reported_failed}\n\n"
            "Restart the computer to make sure every change takes effect."
        )
        # succeeded is emitted from inside run(); let the thread return before reusing it
        self.worker.wait()
        self.refresh_devices()

    def _on_failed(self, message: str):
        self._set_busy(False)
        self.status_bar.showMessage("Operation failed")
        QMessageBox.critical(self, "Error", message)

    def export_current_report(self):
        if self.report is None:
            return
        default_fmt = self.config_manager.get_setting('report_format', 'csv')
        filters = ";;".join(f"{fmt.upper()} Files (*.{fmt})" for fmt in REPORT_FORMATS)
        default_dir = Path(self.config_manager.get_setting('report_dir', ''))
        filename, selected = QFileDialog.getSaveFileName(
            self, "Export Report", str(default_dir / f"usb_power_report.{default_fmt}"), filters)
        if not filename:
            return
        fmt = Path(filename).suffix.lstrip('.').lower()
        if fmt not in REPORT_FORMATS:
            fmt = selected.split()[0].lower() if selected else default_fmt
        try:
            path = export_report(self.report, fmt, Path(filename))
        except (OSError, ValueError) as e:
            QMessageBox.critical(self, "Export failed", str(e))
            return
        self.config_manager.remember_report_location(path, fmt)
        self.status_bar.showMessage(f"Report exported to {path}")

    def restart_elevated(self):
        if relaunch_elevated(['-m', 'gui_pyqt6']):
            self.close()
        else:
            QMessageBox.warning(self, "Elevation", "Administrator permission was not granted.")

    def show_about(self):
        QMessageBox.about(
            self, "About USB Suspend Guard",
            "<h2>USB Suspend Guard</h2>"
            "<p>Disables Windows USB selective suspend across power plans, "
            "device parameters and USB driver services.</p>"
            "<p>Restore removes every override and returns devices to their driver defaults.</p>"
        )

    def closeEvent(self, event):
        if self.worker is not None and self.worker.isRunning():
            self.worker.wait()
        event.accept()


def main(config_manager: Optional[ConfigurationManager] = None, configure_logging: bool = True) -> int:
    config_manager = config_manager or ConfigurationManager()
    if configure_logging:
        setup_logging(config_manager.settings.log_level)

    from registry_store import WinRegistryStore

    app = QApplication.instance() or QApplication(sys.argv)
    app.setApplicationName("USB Suspend Guard")

    manager = UsbPowerManager(WinRegistryStore(), config_manager.settings)
    window = UsbSuspendGuardGUI(config_manager, manager)
    window.show()

    return app.exec()


if __name__ == "__main__":
    sys.exit(main())

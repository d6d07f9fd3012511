"""
USB driver service configuration
Sets or clears DisableSelectiveSuspend on the known USB controller, hub and
storage driver services. Services not installed on this machine are skipped.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from device_settings import Mode
from registry_store import SERVICES_ROOT, RegistryStore, join_path

logger = logging.getLogger(__name__)

DISABLE_FLAG = "DisableSelectiveSuspend"
PARAMETERS_KEY = "Parameters"


@dataclass(frozen=True)
class ServiceConfigEntry:
    name: str
    label: str


USB_SERVICES: Tuple[ServiceConfigEntry, ...] = (
    ServiceConfigEntry("USB", "USB global settings"),
    ServiceConfigEntry("USBXHCI", "USB xHCI Compliant Host Controller"),
    ServiceConfigEntry("USBHUB3", "USB 3.0 Hub"),
    ServiceConfigEntry("usbhub", "USB 2.0 Hub"),
    ServiceConfigEntry("usbehci", "USB EHCI Host Controller"),
    ServiceConfigEntry("usbohci", "USB OHCI Host Controller"),
    ServiceConfigEntry("usbuhci", "USB UHCI Host Controller"),
    ServiceConfigEntry("usbccgp", "USB Generic Parent Driver"),
    ServiceConfigEntry("USBSTOR", "USB Mass Storage"),
    ServiceConfigEntry("UASPStor", "USB Attached SCSI (UAS)"),
    ServiceConfigEntry("iusb3xhc", "Intel USB 3.0 eXtensible Host Controller"),
    ServiceConfigEntry("iusb3hub", "Intel USB 3.0 Root Hub"),
    ServiceConfigEntry("amdxhc", "AMD USB 3.0 eXtensible Host Controller"),
    ServiceConfigEntry("nusb3xhc", "Renesas USB 3.0 eXtensible Host Controller"),
)


class ServiceOutcome(Enum):
    CONFIGURED = "configured"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class ServicePassResult:
    outcomes: Dict[str, ServiceOutcome] = field(default_factory=dict)

    def count(self, outcome: ServiceOutcome) -> int:
        return sum(1 for o in self.outcomes.values() if o == outcome)

    @property
    def configured(self) -> int:
        return self.count(ServiceOutcome.CONFIGURED)


@dataclass
class ServiceStatusRow:
    name: str
    label: str
    flag_set: bool
    state: str = "Unknown"


class ServiceConfigurator:
    def __init__(self, store: RegistryStore, services: Tuple[ServiceConfigEntry, ...] = USB_SERVICES,
                 services_root: str = SERVICES_ROOT):
        self.store = store
        self.services = services
        self.services_root = services_root

    def configure_service(self, entry: ServiceConfigEntry, mode: Mode) -> ServiceOutcome:
        """
        Set or clear DisableSelectiveSuspend for one driver service.

        Args:
            entry: Service from the fixed list
            mode: Mode.DISABLE (set to 1) or Mode.RESTORE (remove)

        Returns:
            SKIPPED if the service is not installed, FAILED on a registry error,
            CONFIGURED otherwise
        """
        root = join_path(self.services_root, entry.name)
        try:
            if not self.store.key_exists(root):
                logger.debug(f"{entry.label} ({entry.name}) not installed, skipping")
                return ServiceOutcome.SKIPPED
        except OSError as e:
            logger.warning(f"Cannot check service {entry.name}: {e}")
            return ServiceOutcome.FAILED

        parameters = join_path(root, PARAMETERS_KEY)
        try:
            if mode == Mode.DISABLE:
                self.store.create_key(parameters)
                self.store.set_value(parameters, DISABLE_FLAG, 1)
                # Some drivers read the flag from the service root
                self.store.set_value(root, DISABLE_FLAG, 1)
            elif mode == Mode.RESTORE:
                self.store.remove_value(parameters, DISABLE_FLAG)
                self.store.remove_value(root, DISABLE_FLAG)
            else:
                raise ValueError(f"Mode {mode.value} does not modify services")
        except OSError as e:
            logger.warning(f"Failed to configure {entry.label} ({entry.name}): {e}")
            return ServiceOutcome.FAILED

        logger.info(f"✓ {entry.label} ({entry.name}) {mode.value}d")
        return ServiceOutcome.CONFIGURED

    def apply(self, mode: Mode) -> ServicePassResult:
        """Configure every listed service independently of the device list"""
        result = ServicePassResult()
        for entry in self.services:
            result.outcomes[entry.name] = self.configure_service(entry, mode)
        logger.info(
            f"Services: {result.configured} configured, "
            f"{result.count(ServiceOutcome.SKIPPED)} not installed, "
            f"{result.count(ServiceOutcome.FAILED)} failed"
        )
        return result

    def status_rows(self, state_query: Optional[Callable[[str], str]] = None) -> List[ServiceStatusRow]:
        """Installed services only, with their flag and SCM state"""
        state_query = state_query or query_service_state
        rows = []
        for entry in self.services:
            flag = self.flag_state(entry)
            if flag is None:
                continue
            rows.append(ServiceStatusRow(name=entry.name, label=entry.label,
                                         flag_set=flag, state=state_query(entry.name)))
        return rows

    def flag_state(self, entry: ServiceConfigEntry) -> Optional[bool]:
        """Whether the service carries DisableSelectiveSuspend=1; None if not installed"""
        root = join_path(self.services_root, entry.name)
        try:
            if not self.store.key_exists(root):
                return None
            for path in (join_path(root, PARAMETERS_KEY), root):
                if self.store.get_value(path, DISABLE_FLAG) == 1:
                    return True
        except OSError:
            return None
        return False


def query_service_state(service_name: str) -> str:
    """Running state of a driver service via the Service Control Manager"""
    try:
        import win32service
        import win32serviceutil
        status = win32serviceutil.QueryServiceStatus(service_name)
    except Exception as e:
        logger.debug(f"Service state query for {service_name} failed: {e}")
        return "Unknown"

    states = {
        win32service.SERVICE_STOPPED: "Stopped",
        win32service.SERVICE_START_PENDING: "Starting",
        win32service.SERVICE_STOP_PENDING: "Stopping",
        win32service.SERVICE_RUNNING: "Running",
        win32service.SERVICE_PAUSED: "Paused",
    }
    return states.get(status[1], "Unknown")

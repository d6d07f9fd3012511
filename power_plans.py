"""
Power plan configuration through powercfg
Writes the "USB selective suspend" AC/DC index on every power plan and
reactivates the active plan so the change applies without a reboot.
"""

import logging
import re
import subprocess
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from device_enumerator import run_command
from device_settings import Mode

logger = logging.getLogger(__name__)

SUB_USB = "2a737441-1930-4402-8d77-b2bebba308a3"
USB_SELECTIVE_SUSPEND = "48e6b7a6-50f5-4782-a5d4-53bb8f07e226"

SUSPEND_DISABLED = 0
SUSPEND_ENABLED = 1  # Windows default

GUID_PATTERN = re.compile(r'[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}', re.IGNORECASE)

CommandRunner = Callable[[List[str]], subprocess.CompletedProcess]


def parse_guids(text: str) -> List[str]:
    """GUID-shaped substrings in order of appearance, lowercased and deduplicated"""
    seen: List[str] = []
    for match in GUID_PATTERN.findall(text or ""):
        guid = match.lower()
        if guid not in seen:
            seen.append(guid)
    return seen


@dataclass
class PowerPlanResult:
    plans: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    active_plan: Optional[str] = None
    reactivated: bool = False


class PowerPlanManager:
    def __init__(self, runner: Optional[CommandRunner] = None, timeout: float = 30):
        self.timeout = timeout
        self.runner = runner or (lambda cmd: run_command(cmd, timeout=self.timeout))

    def _powercfg(self, *args: str) -> subprocess.CompletedProcess:
        return self.runner(['powercfg', *args])

    def list_plans(self) -> List[str]:
        result = self._powercfg('/list')
        plans = parse_guids(result.stdout)
        if not plans:
            logger.warning("No power plan GUIDs found in 'powercfg /list' output")
        return plans

    def get_active_plan(self) -> Optional[str]:
        result = self._powercfg('/getactivescheme')
        guids = parse_guids(result.stdout)
        return guids[0] if guids else None

    def unhide_setting(self) -> bool:
        r = self._powercfg('-attributes', SUB_USB, USB_SELECTIVE_SUSPEND, '-ATTRIB_HIDE')
        if r.returncode == 0:
            logger.info("✓ USB selective suspend setting visible in Power Options")
            return True
        logger.warning(f"Could not unhide USB selective suspend setting: {(r.stderr or '').strip()}")
        return False

    def set_plan_value(self, plan: str, value: int) -> bool:
        ok = True
        for switch in ('/setacvalueindex', '/setdcvalueindex'):
            r = self._powercfg(switch, plan, SUB_USB, USB_SELECTIVE_SUSPEND, str(value))
            if r.returncode != 0:
                logger.warning(f"powercfg {switch} failed for plan {plan}: {(r.stderr or r.stdout or '').strip()}")
                ok = False
        return ok

    def apply(self, mode: Mode) -> PowerPlanResult:
        """
        Write the USB selective suspend index on every power plan.

        Both AC and DC indexes are set, then the active plan is re-applied so
        the new value takes effect immediately.

        Args:
            mode: Mode.DISABLE (index 0) or Mode.RESTORE (index 1, the Windows default)

        Returns:
            PowerPlanResult with the plans found, the plans updated and the active plan
        """
        if mode == Mode.DISABLE:
            value = SUSPEND_DISABLED
        elif mode == Mode.RESTORE:
            value = SUSPEND_ENABLED
        else:
            raise ValueError(f"Mode {mode.value} does not modify power plans")

        result = PowerPlanResult(plans=self.list_plans())
        for plan in result.plans:
            if self.set_plan_value(plan, value):
                result.updated.append(plan)

        result.active_plan = self.get_active_plan()
        if result.active_plan:
            r = self._powercfg('/setactive', result.active_plan)
            result.reactivated = r.returncode == 0
        else:
            logger.warning("Active power plan not found; changes apply after the next plan switch")

        logger.info(f"✓ USB selective suspend set to {value} on {len(result.updated)}/{len(result.plans)} power plans")
        return result

    def read_plan_value(self, plan: str) -> Optional[int]:
        """Current AC index for a plan, parsed from 'powercfg /query'"""
        r = self._powercfg('/query', plan, SUB_USB, USB_SELECTIVE_SUSPEND)
        if r.returncode != 0:
            return None
        m = re.search(r'Current AC Power Setting Index:\s*0x([0-9a-f]+)', r.stdout or "", re.IGNORECASE)
        return int(m.group(1), 16) if m else None

"""
Battery status via psutil, with capacity read from sysfs on Linux.
"""

import glob
import os
from dataclasses import dataclass
from typing import Optional

import psutil

from ..core.errors import CollaboratorUnavailable

POWER_SUPPLY_ROOT = "/sys/class/power_supply"


@dataclass(frozen=True)
class BatteryFacts:
    """Battery presence, charge and design capacity."""

    has_battery: bool
    charge_percent: Optional[float] = None
    is_charging: Optional[bool] = None
    wh_capacity: Optional[float] = None


def _read_number(path: str) -> Optional[float]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return float(f.read().strip())
    except (OSError, ValueError):
        return None


def read_wh_capacity(root: str = POWER_SUPPLY_ROOT) -> Optional[float]:
    """Full-charge capacity in Wh of the first battery exposed under ``root``.

    sysfs reports either ``energy_full`` in µWh or ``charge_full`` in µAh,
    which is converted with ``voltage_min_design`` in µV.
    """
    for battery_dir in sorted(glob.glob(os.path.join(root, "BAT*"))):
        energy = _read_number(os.path.join(battery_dir, "energy_full"))
        if energy is not None:
            return round(energy / 1e6, 2)

        charge = _read_number(os.path.join(battery_dir, "charge_full"))
        voltage = _read_number(os.path.join(battery_dir, "voltage_min_design"))
        if charge is not None and voltage is not None:
            return round(charge * voltage / 1e12, 2)
    return None


def collect_battery_facts() -> BatteryFacts:
    """Collect battery facts for this host.

    Raises:
        CollaboratorUnavailable: The OS power API failed
    """
    sensors_battery = getattr(psutil, "sensors_battery", None)
    if sensors_battery is None:
        raise CollaboratorUnavailable("battery", "not supported on this platform")

    try:
        battery = sensors_battery()
    except (psutil.Error, OSError, RuntimeError) as e:
        raise CollaboratorUnavailable("battery", str(e)) from e

    if battery is None:
        return BatteryFacts(has_battery=False)

    capacity = None
    if os.path.isdir(POWER_SUPPLY_ROOT):
        capacity = read_wh_capacity()

    percent = battery.percent
    return BatteryFacts(
        has_battery=True,
        charge_percent=round(float(percent), 1) if percent is not None else None,
        is_charging=battery.power_plugged,
        wh_capacity=capacity,
    )

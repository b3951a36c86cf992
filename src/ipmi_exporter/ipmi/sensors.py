"""
Sensor Classification Module

This module decodes the value column of ipmitool sensor listings and maps
sensor units and states onto the small set of categories the exporter
publishes.
"""

import logging
import math
import re
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional, Union

from .commander import ConversionError

logger = logging.getLogger(__name__)

# Literal ipmitool prints when a reading is not currently obtainable
NOT_AVAILABLE = "na"

@dataclass(frozen=True)
class SensorRecord:
    """One row of `ipmitool sensor list` output.

    Attributes:
        name: Sensor name with all whitespace removed (e.g., "CPU1Temp")
        value: Reading, NaN when ipmitool reported "na"
        unit: Unit column (e.g., "degrees C", "RPM", "discrete")
        raw_state: State column as printed (e.g., "ok", "cr", "0x0100")

    Examples:
        >>> record = SensorRecord("CPU1Temp", 31.0, "degrees C", "ok")
        >>> record.is_available
        True
    """
    name: str
    value: float
    unit: str
    raw_state: str

    @property
    def is_available(self) -> bool:
        """Check if the sensor returned a reading"""
        return not math.isnan(self.value)

@dataclass(frozen=True)
class KeyValueRecord:
    """Name/value pair from fwum, fru, bmc or lan listings"""
    name: str
    value: Union[str, float]

@dataclass(frozen=True)
class DcmiPowerRecord:
    """DCMI power reading in Watts"""
    name: str
    value: float

class PowerState(IntEnum):
    """Chassis power state"""
    OFF = 0
    ON = 1

class SensorType(Enum):
    """Physical quantity measured by a sensor"""
    FAN_SPEED = "fan_speed"
    TEMPERATURE = "temperature"
    VOLTAGE = "voltage"
    CURRENT = "current"
    POWER = "power"
    CHASSIS_INTRUSION = "chassis_intrusion"
    CHASSIS_POWER_DEVICE = "chassis_power_device"
    GENERIC = "generic"

class SensorState(IntEnum):
    """Sensor severity as published in the *_state metrics"""
    OK = 0
    CRITICAL = 1
    NON_RECOVERABLE = 2
    NON_CRITICAL = 3
    UNSPECIFIED = 4

UNIT_TYPES = {
    "RPM": SensorType.FAN_SPEED,
    "degrees C": SensorType.TEMPERATURE,
    "Volts": SensorType.VOLTAGE,
    "Amps": SensorType.CURRENT,
    "Ampers": SensorType.CURRENT,
    "Watts": SensorType.POWER,
}

DISCRETE_UNIT = "discrete"

# Name patterns that split "discrete" sensors, tested in order
DISCRETE_TYPES = (
    (re.compile(r"ChassisIntru"), SensorType.CHASSIS_INTRUSION),
    (re.compile(r"PS\dStatus"), SensorType.CHASSIS_POWER_DEVICE),
)

STATE_CODES = {
    "ok": SensorState.OK,
    "cr": SensorState.CRITICAL,
    "nr": SensorState.NON_RECOVERABLE,
    "nc": SensorState.NON_CRITICAL,
    "ns": SensorState.UNSPECIFIED,
    "0x0000": SensorState.OK,
    "0x0100": SensorState.CRITICAL,
}

@dataclass(frozen=True)
class StateReading:
    """Result of classifying a raw sensor state.

    `state` is None both when ipmitool reported "na" (recognized, no severity)
    and when the code is unknown (not recognized). Both publish NaN.
    """
    raw: str
    state: Optional[SensorState]
    recognized: bool = True

    @property
    def value(self) -> float:
        return float(self.state) if self.state is not None else math.nan

@dataclass(frozen=True)
class ClassifiedSensor:
    """A sensor record together with its type and severity"""
    record: SensorRecord
    sensor_type: SensorType
    state: StateReading

def parse_sensor_value(text: str) -> float:
    """Decode the value column of a sensor row.

    Precedence:
    1. "na" becomes NaN
    2. Unsigned integer with an optional base prefix ("0x0000", "0b1", "42")
    3. Decimal float ("31.000")

    Args:
        text: Value column, already stripped

    Returns:
        The reading as float

    Raises:
        ConversionError: If the text is none of the above

    Examples:
        >>> parse_sensor_value("0x0100")
        256.0
        >>> parse_sensor_value("12.120")
        12.12
    """
    if text == NOT_AVAILABLE:
        return math.nan

    # Digit separators and signs are not part of ipmitool's output format.
    # Unlike Go's ParseUint(s, 0, 64), "010" is decimal 10 here, not octal 8,
    # and "1_000" is rejected.
    if "_" not in text and not text.startswith(("-", "+")):
        try:
            return float(int(text, 0))
        except ValueError:
            pass

    if "_" not in text:
        try:
            return float(text)
        except ValueError:
            pass

    raise ConversionError(f"Cannot convert sensor value '{text}'", line=text)

def classify_sensor_type(unit: str, name: str) -> SensorType:
    """Map a sensor unit (and for discrete sensors its name) to a SensorType.

    Examples:
        >>> classify_sensor_type("degrees C", "CPU1Temp")
        <SensorType.TEMPERATURE: 'temperature'>
        >>> classify_sensor_type("discrete", "ChassisIntru")
        <SensorType.CHASSIS_INTRUSION: 'chassis_intrusion'>
    """
    if unit == DISCRETE_UNIT:
        for pattern, sensor_type in DISCRETE_TYPES:
            if pattern.search(name):
                return sensor_type
        return SensorType.GENERIC
    return UNIT_TYPES.get(unit, SensorType.GENERIC)

def classify_state(raw_state: str) -> StateReading:
    """Map a raw sensor state code to a severity.

    Unknown codes are logged and publish NaN, same as "na".
    """
    if raw_state == NOT_AVAILABLE:
        return StateReading(raw_state, None)

    state = STATE_CODES.get(raw_state)
    if state is None:
        logger.error(f"Unknown sensor state: '{raw_state}'")
        return StateReading(raw_state, None, recognized=False)
    return StateReading(raw_state, state)

def classify(record: SensorRecord) -> ClassifiedSensor:
    """Attach type and severity to a parsed sensor record"""
    return ClassifiedSensor(
        record=record,
        sensor_type=classify_sensor_type(record.unit, record.name),
        state=classify_state(record.raw_state)
    )

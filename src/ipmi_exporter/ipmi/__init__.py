"""
IPMI Package for the IPMI exporter

This package turns ipmitool output into typed records.

Key Components:
- IPMICommander: Runs ipmitool for one target and returns its raw output
- parsers: One parse function per ipmitool output dialect
- sensors: Record types, value decoding and sensor type/state classification

Example Usage:
    >>> from ipmi_exporter.ipmi import IPMICommander, parse_sensor_output, classify
    >>>
    >>> commander = IPMICommander("10.0.0.5", config)
    >>> records = parse_sensor_output(commander.execute("sensor").output)
    >>> for sensor in map(classify, records):
    ...     print(sensor.record.name, sensor.sensor_type, sensor.state.value)

Note:
    This package requires ipmitool to be installed for command execution.
    Parsing and classification never run external commands.
"""

from .commander import (
    IPMICommander,
    CommandResult,
    IPMIError,
    IPMIConnectionError,
    IPMICommandError,
    ParseError,
    MalformedLine,
    ConversionError,
)
from .sensors import (
    SensorRecord,
    KeyValueRecord,
    DcmiPowerRecord,
    PowerState,
    SensorType,
    SensorState,
    StateReading,
    ClassifiedSensor,
    parse_sensor_value,
    classify_sensor_type,
    classify_state,
    classify,
)
from .parsers import (
    parse_sensor_output,
    parse_fwum_output,
    parse_fru_output,
    parse_bmc_output,
    parse_lan_output,
    parse_power_state,
    parse_dcmi_power_output,
)

__all__ = [
    'IPMICommander',
    'CommandResult',
    'IPMIError',
    'IPMIConnectionError',
    'IPMICommandError',
    'ParseError',
    'MalformedLine',
    'ConversionError',
    'SensorRecord',
    'KeyValueRecord',
    'DcmiPowerRecord',
    'PowerState',
    'SensorType',
    'SensorState',
    'StateReading',
    'ClassifiedSensor',
    'parse_sensor_value',
    'classify_sensor_type',
    'classify_state',
    'classify',
    'parse_sensor_output',
    'parse_fwum_output',
    'parse_fru_output',
    'parse_bmc_output',
    'parse_lan_output',
    'parse_power_state',
    'parse_dcmi_power_output',
]

"""
ipmitool Output Parsers

One parser per ipmitool output dialect. Each takes the raw text of one
command invocation and returns a fresh list of records in source line order.
Blank lines are skipped everywhere.

Dialects:
- sensor:     pipe-delimited table
- fwum:       colon-delimited key/value, numeric values
- fru:        colon-delimited key/value, string values
- bmc, lan:   ordered tables of anchored regexes
- power:      single anchored pattern
- dcmi-power: four anchored patterns, accumulated
"""

import logging
import re
from typing import Callable, List, Optional, Pattern, Tuple

from .commander import ConversionError, MalformedLine
from .sensors import (
    DcmiPowerRecord,
    KeyValueRecord,
    PowerState,
    SensorRecord,
    parse_sensor_value,
)

logger = logging.getLogger(__name__)

# (label, pattern, extractor) rows; the extractor gets the "value" capture
FieldTable = Tuple[Tuple[str, Pattern, Callable[[str], str]], ...]

_WHITESPACE = re.compile(r"\s+")

def _strip_all(text: str) -> str:
    return _WHITESPACE.sub("", text)

def _no_spaces(text: str) -> str:
    return text.replace(" ", "")

def _trimmed(text: str) -> str:
    return text.strip()

BOARD_MFG_DATE_REGEX = re.compile(r"^\s*Board\sMfg\sDate\s*:\s*(?P<value>.*)")

BMC_FIELDS: FieldTable = (
    ("FirmwareRevision", re.compile(r"^Firmware\sRevision\s*:\s*(?P<value>.*)"), _trimmed),
    ("IPMIVersion", re.compile(r"^IPMI\sVersion\s*:\s*(?P<value>.*)"), _trimmed),
    ("Manufacturer", re.compile(r"^Manufacturer\sName\s*:\s*(?P<value>.*)"), _trimmed),
)

LAN_FIELDS: FieldTable = (
    ("IPSource", re.compile(r"^IP\sAddress\sSource\s*:\s*(?P<value>.*)"), _no_spaces),
    ("IPAddress", re.compile(r"^IP\sAddress\s*:\s*(?P<value>.*)"), _trimmed),
    ("SubnetMask", re.compile(r"^Subnet\sMask\s*:\s*(?P<value>.*)"), _trimmed),
    ("MACAddress", re.compile(r"^MAC\sAddress\s*:\s*(?P<value>.*)"), _trimmed),
    ("DefaultGateway", re.compile(r"^Default\sGateway\sIP\s*:\s*(?P<value>.*)"), _trimmed),
    ("VLANID", re.compile(r"^802\.1q\sVLAN\sID\s*:\s*(?P<value>.*)"), _trimmed),
    ("VLANPriority", re.compile(r"^802\.1q\sVLAN\sPriority\s*:\s*(?P<value>.*)"), _trimmed),
)

CHASSIS_POWER_REGEX = re.compile(r"^Chassis\s*Power\s*is\s*(?P<value>on|off)")

DCMI_POWER_FIELDS = (
    ("Avg power consumption",
     re.compile(r"^\s*Average\spower\sreading\sover\ssample\speriod:\s*(?P<value>.*) Watts")),
    ("Min power consumption",
     re.compile(r"^\s*Minimum\sduring\ssampling\speriod:\s*(?P<value>.*) Watts")),
    ("Max power consumption",
     re.compile(r"^\s*Maximum\sduring\ssampling\speriod:\s*(?P<value>.*) Watts")),
    ("Instantaneous power consumption",
     re.compile(r"^\s*Instantaneous\spower\sreading:\s*(?P<value>.*) Watts")),
)

def _lines(output: str):
    """Yield the non-blank lines of a text blob"""
    for line in output.splitlines():
        if line.strip():
            yield line

def _split_key_value(line: str) -> Optional[Tuple[str, str]]:
    """Remove whitespace and split on the first colon, None without a colon"""
    trimmed = _strip_all(line)
    if ":" not in trimmed:
        return None
    name, value = trimmed.split(":", 1)
    return name, value

def _match_field(line: str, table: FieldTable) -> Optional[KeyValueRecord]:
    """Return a record for the first table row matching the line"""
    for label, pattern, extract in table:
        match = pattern.match(line)
        if match:
            return KeyValueRecord(label, extract(match.group("value")))
    return None

def parse_sensor_output(output: str) -> List[SensorRecord]:
    """Parse `ipmitool sensor list` output.

    Each row looks like:
        CPU1 Temp        | 31.000     | degrees C  | ok    | 0.000 | ...

    Name and state have all whitespace removed, the unit is trimmed. A row
    whose value cannot be decoded is skipped, and so is a row with fewer
    than 4 columns (ipmitool diagnostics share the stream with the table).

    Args:
        output: Raw command output

    Returns:
        List of SensorRecord in table order

    Raises:
        MalformedLine: If the output has short rows and no usable row at all.
            The first short row is reported.

    Examples:
        >>> parse_sensor_output("CPU1 Temp | 31.000 | degrees C | ok")
        [SensorRecord(name='CPU1Temp', value=31.0, unit='degrees C', raw_state='ok')]
    """
    records = []
    malformed: Optional[str] = None
    for line in _lines(output):
        fields = line.split("|")
        if len(fields) < 4:
            logger.debug(f"Skipping sensor row with fewer than 4 columns: {line!r}")
            if malformed is None:
                malformed = line
            continue

        name = _strip_all(fields[0])
        try:
            value = parse_sensor_value(_strip_all(fields[1]))
        except ConversionError as e:
            logger.debug(f"Skipping sensor {name}: {e}")
            continue

        records.append(SensorRecord(
            name=name,
            value=value,
            unit=fields[2].strip(),
            raw_state=_strip_all(fields[3])
        ))

    if malformed is not None and not records:
        raise MalformedLine(f"Expected at least 4 columns in sensor row: {malformed!r}",
                            line=malformed, records=records)
    return records

def parse_fwum_output(output: str) -> List[KeyValueRecord]:
    """Parse `ipmitool fwum info` output.

    Lines without a colon (banners, underlines) are ignored. Every other line
    must carry a decimal value.

    Raises:
        ConversionError: On the first non-numeric value; no further lines are
            parsed.

    Examples:
        >>> parse_fwum_output("Manufacturer Id           : 10876")
        [KeyValueRecord(name='ManufacturerId', value=10876.0)]
    """
    records = []
    for line in _lines(output):
        pair = _split_key_value(line)
        if pair is None:
            continue
        name, value = pair
        try:
            records.append(KeyValueRecord(name, float(value)))
        except ValueError:
            raise ConversionError(f"Non-numeric fwum value for {name}: {value!r}",
                                  line=line, records=records)
    return records

def parse_fru_output(output: str) -> List[KeyValueRecord]:
    """Parse `ipmitool fru list` output.

    The board manufacturing date keeps its spaces and colons; every other
    field is whitespace-stripped and split on its first colon.

    Raises:
        MalformedLine: If a line has no colon
    """
    records = []
    for line in _lines(output):
        match = BOARD_MFG_DATE_REGEX.match(line)
        if match:
            records.append(KeyValueRecord("BoardMfgDate", match.group("value").strip()))
            continue

        pair = _split_key_value(line)
        if pair is None:
            raise MalformedLine(f"Missing ':' in fru line: {line!r}",
                                line=line, records=records)
        records.append(KeyValueRecord(*pair))
    return records

def parse_bmc_output(output: str) -> List[KeyValueRecord]:
    """Parse `ipmitool bmc info` output. Unknown lines are ignored."""
    return [r for r in (_match_field(line, BMC_FIELDS) for line in _lines(output)) if r]

def parse_lan_output(output: str) -> List[KeyValueRecord]:
    """Parse `ipmitool lan print` output. Unknown lines are ignored."""
    return [r for r in (_match_field(line, LAN_FIELDS) for line in _lines(output)) if r]

def parse_power_state(output: str) -> PowerState:
    """Parse `ipmitool power status` output.

    The first "Chassis Power is on|off" line decides. Output without such a
    line reports OFF.

    Examples:
        >>> parse_power_state("Chassis Power is on")
        <PowerState.ON: 1>
    """
    for line in _lines(output):
        match = CHASSIS_POWER_REGEX.match(line)
        if match:
            return PowerState.ON if match.group("value") == "on" else PowerState.OFF
    return PowerState.OFF

def parse_dcmi_power_output(output: str) -> List[DcmiPowerRecord]:
    """Parse `ipmitool dcmi power reading` output.

    Example output:
        Instantaneous power reading:                   220 Watts
        Minimum during sampling period:                 12 Watts
        Maximum during sampling period:                450 Watts
        Average power reading over sample period:      198 Watts
    """
    records = []
    for line in _lines(output):
        for label, pattern in DCMI_POWER_FIELDS:
            match = pattern.match(line)
            if not match:
                continue
            try:
                records.append(DcmiPowerRecord(label, float(match.group("value"))))
            except ValueError:
                logger.debug(f"Skipping {label}: {match.group('value')!r}")
            break
    return records

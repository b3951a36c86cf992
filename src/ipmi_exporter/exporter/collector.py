"""
Prometheus Collector Module

Runs the configured ipmitool commands for one target on every scrape and
turns the parsed records into Prometheus gauge families.
"""

import logging
import time
from types import MappingProxyType
from typing import Callable, Dict, Iterator, List, Mapping, NamedTuple, Tuple

from prometheus_client.core import GaugeMetricFamily
from prometheus_client.registry import Collector

from ..config import DEFAULT_MODULE, ModuleConfig, SafeConfig
from ..ipmi import (
    IPMICommander,
    IPMIError,
    ParseError,
    SensorType,
    classify,
    parse_bmc_output,
    parse_dcmi_power_output,
    parse_fru_output,
    parse_fwum_output,
    parse_lan_output,
    parse_power_state,
    parse_sensor_output,
)

logger = logging.getLogger(__name__)

NAMESPACE = "ipmi"

STATE_HELP = "(0=ok, 1=critical, 2=non-recoverable, 3=non-critical, 4=not-specified)"

class MetricDescriptor(NamedTuple):
    """Name, help text and label names of one exported metric"""
    name: str
    documentation: str
    labels: Tuple[str, ...]

def _desc(subsystem: str, name: str, documentation: str, *labels: str) -> MetricDescriptor:
    parts = [p for p in (NAMESPACE, subsystem, name) if p]
    return MetricDescriptor("_".join(parts), documentation, labels)

DESCRIPTORS: Mapping[str, MetricDescriptor] = MappingProxyType({
    "sensor_state": _desc("sensor", "state",
                          f"Indicates the severity of the state reported by an IPMI sensor {STATE_HELP}.",
                          "name", "type"),
    "sensor_value": _desc("sensor", "value",
                          "Generic data read from an IPMI sensor of unknown type, relying on labels for context.",
                          "name", "type"),
    "chassis_intrusion": _desc("chassis_int", "value", "State of Chassis Intrusion.", "name"),
    "chassis_intrusion_state": _desc("chassis_int", "state",
                                     "Reported state of a Chassis Intrusion (0=ok, 1=intrusion).", "name"),
    "chassis_power_device": _desc("chassis_power_dev", "value",
                                  "Chassis Power Supply device status (0=missing, 1=present).", "name"),
    "chassis_power_device_state": _desc("chassis_power_dev", "state",
                                        "Reported state of a Power Supply (0=missing, 1=present).", "name"),
    "power_state": _desc("power", "state", "Reported Chassis Power State (0=off, 1=on).", "name"),
    "fan_speed": _desc("fan_speed", "rpm", "Fan speed in rotations per minute.", "name"),
    "fan_speed_state": _desc("fan_speed", "state",
                             f"Reported state of a fan speed sensor {STATE_HELP}.", "name"),
    "temperature": _desc("temperature", "celsius", "Temperature reading in degree Celsius.", "name"),
    "temperature_state": _desc("temperature", "state",
                               f"Reported state of a temperature sensor {STATE_HELP}.", "name"),
    "voltage": _desc("voltage", "volts", "Voltage reading in Volts.", "name"),
    "voltage_state": _desc("voltage", "state",
                           f"Reported state of a voltage sensor {STATE_HELP}.", "name"),
    "current": _desc("current", "amperes", "Current reading in Amperes.", "name"),
    "current_state": _desc("current", "state",
                           f"Reported state of a current sensor {STATE_HELP}.", "name"),
    "power": _desc("power", "watts", "Power reading in Watts.", "name"),
    "power_sensor_state": _desc("sensor_power", "state",
                                f"Reported state of a power sensor {STATE_HELP}.", "name"),
    "dcmi_power": _desc("dcmi", "power_consumption_watts", "Current power consumption in Watts.", "name"),
    "fwum_info": _desc("fwum", "info",
                       "Constant metric with value '1' providing details about the BMC firmware.",
                       "firmware_revision", "manufacturer_id"),
    "bmc_info": _desc("bmc", "info",
                      "Constant metric with value '1' providing details about the BMC.", "name", "value"),
    "fru_info": _desc("fru", "info",
                      "Constant metric with value '1' providing details from FRU.", "name", "value"),
    "lan_info": _desc("lan", "info",
                      "Constant metric with value '1' providing details from LAN.", "name", "value"),
    "up": _desc("", "up", "'1' if a scrape of the IPMI device was successful, '0' otherwise.", "collector"),
    "scrape_duration": _desc("scrape_duration", "seconds",
                             "Returns how long the scrape took to complete in seconds."),
})

# SensorType -> (value descriptor key, state descriptor key)
TYPED_SENSORS: Mapping[SensorType, Tuple[str, str]] = MappingProxyType({
    SensorType.FAN_SPEED: ("fan_speed", "fan_speed_state"),
    SensorType.TEMPERATURE: ("temperature", "temperature_state"),
    SensorType.VOLTAGE: ("voltage", "voltage_state"),
    SensorType.CURRENT: ("current", "current_state"),
    SensorType.POWER: ("power", "power_sensor_state"),
    SensorType.CHASSIS_INTRUSION: ("chassis_intrusion", "chassis_intrusion_state"),
    SensorType.CHASSIS_POWER_DEVICE: ("chassis_power_device", "chassis_power_device_state"),
})

Families = Dict[str, GaugeMetricFamily]

def _emit_parsed(parse: Callable, output: str, emit: Callable) -> None:
    """Parse output and emit the records, including partial ones on failure"""
    try:
        records = parse(output)
    except ParseError as e:
        emit(e.records)
        raise
    emit(records)

class IPMICollector(Collector):
    """Collects IPMI metrics for one target/module pair on every scrape"""

    def __init__(self, config: SafeConfig, target: str = "", module: str = DEFAULT_MODULE,
                 ipmitool_path: str = "ipmitool", command_timeout: float = 30.0,
                 descriptors: Mapping[str, MetricDescriptor] = DESCRIPTORS):
        """Initialize collector

        Args:
            config: Module configuration holder
            target: BMC host address, empty for the local host
            module: Configuration module used to resolve connection options
            ipmitool_path: ipmitool binary to execute
            command_timeout: Maximum run time of one ipmitool process in seconds
            descriptors: Metric names, help texts and labels
        """
        self.config = config
        self.target = target
        self.module = module
        self.ipmitool_path = ipmitool_path
        self.command_timeout = command_timeout
        self.descriptors = descriptors

        self._collectors: Dict[str, Callable[[IPMICommander, Families], None]] = {
            "sensor": self._collect_sensors,
            "fru": self._collect_fru,
            "bmc": self._collect_bmc,
            "lan": self._collect_lan,
            "fwum": self._collect_fwum,
            "dcmi-power": self._collect_dcmi_power,
        }

    def describe(self) -> List:
        # Unchecked collector: metrics depend on what the BMC reports
        return []

    def collect(self) -> Iterator[GaugeMetricFamily]:
        start = time.perf_counter()
        module_config: ModuleConfig = self.config.config_for_target(self.target, self.module)
        commander = IPMICommander(self.target, module_config,
                                  ipmitool_path=self.ipmitool_path,
                                  command_timeout=self.command_timeout)
        families: Families = {
            key: GaugeMetricFamily(desc.name, desc.documentation, labels=list(desc.labels))
            for key, desc in self.descriptors.items()
        }

        for name in module_config.collectors:
            logger.debug(f"Running collector: {name}")
            up = self._run_collector(name, commander, families)
            families["up"].add_metric([name], up)

        self._collect_power_state(commander, families)

        duration = time.perf_counter() - start
        logger.debug(f"Scrape of target {commander.target_name} took {duration:f} seconds.")
        families["scrape_duration"].add_metric([], duration)

        for family in families.values():
            if family.samples:
                yield family

    def _run_collector(self, name: str, commander: IPMICommander, families: Families) -> int:
        """Run one collector, returning 1 on success and 0 on failure"""
        collect = self._collectors.get(name)
        if collect is None:
            logger.error(f"Unknown collector: '{name}'")
            return 0

        try:
            collect(commander, families)
        except IPMIError as e:
            log = logger.error if name == "sensor" else logger.debug
            log(f"Failed to collect ipmitool {name} data from {commander.target_name}: {e}")
            return 0
        return 1

    def _collect_sensors(self, commander: IPMICommander, families: Families) -> None:
        output = commander.execute("sensor").output
        _emit_parsed(parse_sensor_output, output, lambda records: self._add_sensors(records, families))

    def _add_sensors(self, records, families: Families) -> None:
        for sensor in map(classify, records):
            record = sensor.record
            keys = TYPED_SENSORS.get(sensor.sensor_type)
            if keys is None:
                families["sensor_value"].add_metric([record.name, record.unit], record.value)
                families["sensor_state"].add_metric([record.name, record.unit], sensor.state.value)
                continue

            value_key, state_key = keys
            families[value_key].add_metric([record.name], record.value)
            families[state_key].add_metric([record.name], sensor.state.value)

    def _collect_info(self, commander: IPMICommander, families: Families,
                      command: str, family: str, parse) -> None:
        def add_info(records) -> None:
            for record in records:
                families[family].add_metric([record.name, str(record.value)], 1)

        _emit_parsed(parse, commander.execute(command).output, add_info)

    def _collect_fru(self, commander: IPMICommander, families: Families) -> None:
        self._collect_info(commander, families, "fru", "fru_info", parse_fru_output)

    def _collect_bmc(self, commander: IPMICommander, families: Families) -> None:
        self._collect_info(commander, families, "bmc", "bmc_info", parse_bmc_output)

    def _collect_lan(self, commander: IPMICommander, families: Families) -> None:
        self._collect_info(commander, families, "lan", "lan_info", parse_lan_output)

    def _collect_fwum(self, commander: IPMICommander, families: Families) -> None:
        records = parse_fwum_output(commander.execute("fwum").output)

        firmware_revision = manufacturer_id = ""
        for record in records:
            if record.name == "FirmwareRevision":
                firmware_revision = f"{record.value:f}"
            elif record.name == "ManufacturerId":
                manufacturer_id = f"{record.value:f}"
        families["fwum_info"].add_metric([firmware_revision, manufacturer_id], 1)

    def _collect_dcmi_power(self, commander: IPMICommander, families: Families) -> None:
        for record in parse_dcmi_power_output(commander.execute("dcmi-power").output):
            families["dcmi_power"].add_metric([record.name], record.value)

    def _collect_power_state(self, commander: IPMICommander, families: Families) -> None:
        try:
            state = parse_power_state(commander.execute("power").output)
        except IPMIError as e:
            logger.debug(f"Failed to collect ipmitool power data from {commander.target_name}: {e}")
            return
        families["power_state"].add_metric(["PowerState"], float(state))

"""
IPMI Command Execution Module

This module provides a wrapper around ipmitool for fetching the raw text
output that the parsers turn into records. It also defines the exception
hierarchy shared by the whole ipmi package.
"""

import subprocess
import logging
from typing import Optional, List, NamedTuple

from ..config import ModuleConfig, ipmitool_args

logger = logging.getLogger(__name__)

class IPMIError(Exception):
    """Base exception for IPMI-related errors"""
    pass

class IPMIConnectionError(IPMIError):
    """Raised when ipmitool cannot be started or reach the BMC"""
    pass

class IPMICommandError(IPMIError):
    """Raised when an IPMI command fails"""
    pass

class ParseError(IPMIError):
    """Raised when ipmitool output cannot be turned into records

    Attributes:
        line: The offending source line
        records: Records parsed before the failure
    """

    def __init__(self, message: str, line: str = "", records: Optional[list] = None):
        super().__init__(message)
        self.line = line
        self.records = records if records is not None else []

class MalformedLine(ParseError):
    """A line is structurally too short or lacks its delimiter"""
    pass

class ConversionError(ParseError):
    """A field is present but not parseable as the expected number"""
    pass

class CommandResult(NamedTuple):
    """Combined stdout/stderr capture of one ipmitool invocation"""
    output: str
    returncode: int

class IPMICommander:
    """Runs ipmitool against the local BMC or a remote target"""

    # Dialect name -> ipmitool sub-command
    COMMANDS = {
        "sensor": ["sensor", "list"],
        "fru": ["fru", "list"],
        "power": ["power", "status"],
        "fwum": ["fwum", "info"],
        "bmc": ["bmc", "info"],
        "lan": ["lan", "print"],
        "dcmi-power": ["dcmi", "power", "reading", "1_min"],
    }

    # fwum exits 1 even when the output is fine
    IGNORE_EXIT_STATUS = {"fwum"}

    def __init__(self, target: str = "", config: Optional[ModuleConfig] = None,
                 ipmitool_path: str = "ipmitool", command_timeout: float = 30.0):
        """Initialize IPMI commander with connection details

        Args:
            target: BMC host address, empty for the local host
            config: Resolved module options (credentials, interface, timeout)
            ipmitool_path: ipmitool binary to execute
            command_timeout: Maximum run time of one ipmitool process in seconds
        """
        self.target = target
        self.config = config if config is not None else ModuleConfig()
        self.ipmitool_path = ipmitool_path
        self.command_timeout = command_timeout

    @property
    def is_local(self) -> bool:
        return not self.target

    @property
    def target_name(self) -> str:
        """Printable target name for log messages"""
        return "[local]" if self.is_local else self.target

    def build_command(self, command: str) -> List[str]:
        """Build the full ipmitool argument vector for a dialect

        Args:
            command: Dialect name, one of COMMANDS

        Returns:
            Argument list starting with the ipmitool binary

        Raises:
            IPMIError: If the dialect is unknown

        Examples:
            >>> IPMICommander("10.0.0.5").build_command("power")
            ['ipmitool', '-H', '10.0.0.5', 'power', 'status']
        """
        if command not in self.COMMANDS:
            raise IPMIError(f"Unknown ipmitool command: '{command}'")

        args = [self.ipmitool_path] + ipmitool_args(self.config)
        if not self.is_local:
            args += ["-H", self.target]
        return args + self.COMMANDS[command]

    def execute(self, command: str) -> CommandResult:
        """Execute an ipmitool command and return its combined output

        Args:
            command: Dialect name, one of COMMANDS

        Returns:
            CommandResult with the stdout+stderr text and exit status

        Raises:
            IPMIConnectionError: If ipmitool cannot be started
            IPMICommandError: If the command fails or times out
            IPMIError: If the dialect is unknown
        """
        full_cmd = self.build_command(command)
        try:
            result = subprocess.run(
                full_cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.command_timeout
            )
        except FileNotFoundError as e:
            raise IPMIConnectionError(f"Failed to run {self.ipmitool_path}: {e}")
        except subprocess.TimeoutExpired:
            raise IPMICommandError(
                f"Command {command} for {self.target_name} timed out after {self.command_timeout}s")

        output = result.stdout or ""
        if result.returncode != 0:
            if command in self.IGNORE_EXIT_STATUS:
                logger.debug(f"Exit status of {command} is {result.returncode}, but it was suppressed")
            else:
                logger.error(f"Error while calling {command} for {self.target_name}: exit status {result.returncode}")
                raise IPMICommandError(f"Command {command} failed: {output.strip()}")

        return CommandResult(output=output, returncode=result.returncode)

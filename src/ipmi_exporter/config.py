"""
Configuration Module

Loads the YAML module definitions that map a scrape `module` parameter to
ipmitool connection options (credentials, privilege, interface, timeout) and
the list of collectors to run.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_MODULE = "default"

KNOWN_COLLECTORS = ("sensor", "fru", "bmc", "lan", "fwum", "dcmi-power")

DEFAULT_COLLECTORS = list(KNOWN_COLLECTORS)

# YAML key -> ModuleConfig attribute
MODULE_KEYS = {
    "user": "user",
    "pass": "password",
    "privilege": "privilege",
    "interface": "interface",
    "timeout": "timeout",
    "collectors": "collectors",
}

class ConfigError(Exception):
    """Raised when a configuration file cannot be loaded"""
    pass

@dataclass(frozen=True)
class ModuleConfig:
    """Connection options for one module

    Attributes:
        user: BMC user name (-U)
        password: BMC password (-P)
        privilege: Session privilege level (-L), e.g. "user", "administrator"
        interface: ipmitool interface (-I), e.g. "lanplus"
        timeout: ipmitool network timeout in seconds (-N), 0 for default
        collectors: Collector names to run on each scrape
    """
    user: str = ""
    password: str = ""
    privilege: str = ""
    interface: str = ""
    timeout: int = 0
    collectors: List[str] = field(default_factory=lambda: list(DEFAULT_COLLECTORS))

def ipmitool_args(config: ModuleConfig) -> List[str]:
    """Render module options as ipmitool arguments

    Examples:
        >>> ipmitool_args(ModuleConfig(user="admin", privilege="user", timeout=5))
        ['-L', 'user', '-U', 'admin', '-N', '5']
    """
    args = []
    if config.interface:
        args += ["-I", config.interface]
    if config.privilege:
        args += ["-L", config.privilege]
    if config.user:
        args += ["-U", config.user]
    if config.password:
        args += ["-P", config.password]
    if config.timeout:
        args += ["-N", str(config.timeout)]
    return args

def _parse_module(name: str, raw: Any) -> ModuleConfig:
    """Validate one module section and build its ModuleConfig"""
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Module '{name}' must be a mapping")

    unknown = set(raw) - set(MODULE_KEYS)
    if unknown:
        raise ConfigError(f"Unknown fields in module '{name}': {', '.join(sorted(unknown))}")

    options = {MODULE_KEYS[key]: value for key, value in raw.items()}

    collectors = options.get("collectors", DEFAULT_COLLECTORS)
    if not isinstance(collectors, list):
        raise ConfigError(f"Collectors of module '{name}' must be a list")
    for collector in collectors:
        if collector not in KNOWN_COLLECTORS:
            raise ConfigError(f"Unknown collector '{collector}' in module '{name}'")
    options["collectors"] = list(collectors)

    try:
        options["timeout"] = int(options.get("timeout") or 0)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid timeout in module '{name}': {options.get('timeout')!r}")

    for key in ("user", "password", "privilege", "interface"):
        if key in options:
            options[key] = "" if options[key] is None else str(options[key])

    return ModuleConfig(**options)

def load_config(config_path: str) -> Dict[str, ModuleConfig]:
    """Load and validate a configuration file

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Mapping of module name to ModuleConfig

    Raises:
        ConfigError: If the file cannot be read or is invalid
    """
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Error loading config file {config_path}: {e}")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")

    unknown = set(data) - {"modules"}
    if unknown:
        raise ConfigError(f"Unknown top-level fields: {', '.join(sorted(unknown))}")

    modules = data.get("modules") or {}
    if not isinstance(modules, dict):
        raise ConfigError("'modules' must be a mapping")

    return {str(name): _parse_module(str(name), raw) for name, raw in modules.items()}

class SafeConfig:
    """Holds the current module configuration, safe to reload while serving"""

    def __init__(self, modules: Optional[Dict[str, ModuleConfig]] = None):
        self._modules: Dict[str, ModuleConfig] = dict(modules or {})
        self._lock = threading.Lock()

    def reload_config(self, config_path: str) -> None:
        """Replace the configuration with the contents of config_path

        The previous configuration stays active if loading fails.

        Raises:
            ConfigError: If the file cannot be loaded
        """
        modules = load_config(config_path)
        with self._lock:
            self._modules = modules
        logger.info(f"Loaded config file {config_path} with modules: {', '.join(sorted(modules))}")

    def has_module(self, module: str) -> bool:
        with self._lock:
            return module in self._modules

    def config_for_target(self, target: str, module: str) -> ModuleConfig:
        """Resolve the options for a scrape of target with module

        Falls back to the "default" module, then to built-in defaults.
        """
        with self._lock:
            config = self._modules.get(module)
            if config is not None:
                return config

            logger.debug(f"Module '{module}' not found for target {target or '[local]'}, using default")
            config = self._modules.get(DEFAULT_MODULE)
            if config is not None:
                return config
        return ModuleConfig()

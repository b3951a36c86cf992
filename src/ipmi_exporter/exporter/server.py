"""
HTTP Server Module

Flask application serving the exporter endpoints:
- /metrics:  metrics of the local host, using the "default" module
- /ipmi:     metrics of a remote BMC (?target=HOST&module=NAME)
- /-/reload: reload the configuration file (POST)
"""

import logging
from typing import Optional, Tuple

from flask import Flask, Response, current_app, request
from prometheus_client import CollectorRegistry, PlatformCollector, ProcessCollector
from prometheus_client.exposition import choose_encoder
from werkzeug.serving import BaseWSGIServer, make_server

from ..config import DEFAULT_MODULE, ConfigError, SafeConfig
from .collector import IPMICollector

logger = logging.getLogger(__name__)

LANDING_PAGE = """<html>
<head><title>IPMI Exporter</title></head>
<body>
<h1>IPMI Exporter</h1>
<p><a href="/metrics">Local metrics</a></p>
<p>Remote metrics: <a href="/ipmi?target=">/ipmi?target=HOST&amp;module=NAME</a></p>
</body>
</html>
"""

def _plain(body: str, status: int) -> Tuple[Response, int]:
    return Response(body, mimetype="text/plain"), status

def _metrics_response(target: str, module: str, include_process: bool = False) -> Response:
    """Scrape one target and encode the result for the requesting client"""
    registry = CollectorRegistry()
    registry.register(IPMICollector(
        current_app.config["IPMI_CONFIG"],
        target=target,
        module=module,
        ipmitool_path=current_app.config["IPMITOOL_PATH"],
        command_timeout=current_app.config["COMMAND_TIMEOUT"]
    ))
    if include_process:
        ProcessCollector(registry=registry)
        PlatformCollector(registry=registry)

    encoder, content_type = choose_encoder(request.headers.get("Accept"))
    return Response(encoder(registry), content_type=content_type)

def create_app(config: SafeConfig, config_path: Optional[str] = None,
               ipmitool_path: str = "ipmitool", command_timeout: float = 30.0) -> Flask:
    """Create the exporter application

    Args:
        config: Module configuration holder
        config_path: File reloaded by POST /-/reload, None disables reloads
        ipmitool_path: ipmitool binary to execute
        command_timeout: Maximum run time of one ipmitool process in seconds

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)
    app.config.update(
        IPMI_CONFIG=config,
        CONFIG_PATH=config_path,
        IPMITOOL_PATH=ipmitool_path,
        COMMAND_TIMEOUT=command_timeout
    )

    @app.route('/')
    def index():
        return LANDING_PAGE

    @app.route('/metrics')
    def local_metrics():
        """Metrics of the host running the exporter"""
        return _metrics_response(target="", module=DEFAULT_MODULE, include_process=True)

    @app.route('/ipmi')
    def remote_metrics():
        """Metrics of a remote BMC"""
        target = request.args.get('target', '')
        if not target:
            return _plain("'target' parameter must be specified\n", 400)
        module = request.args.get('module') or DEFAULT_MODULE
        if not config.has_module(module):
            logger.debug(f"Unknown module '{module}' requested for {target}")
        return _metrics_response(target=target, module=module)

    @app.route('/-/reload', methods=['POST'])
    def reload():
        path = app.config["CONFIG_PATH"]
        if not path:
            return _plain("No config file to reload\n", 500)
        try:
            config.reload_config(path)
        except ConfigError as e:
            logger.error(f"Error reloading config: {e}")
            return _plain(f"failed to reload config: {e}\n", 500)
        return _plain("", 200)

    return app

def parse_listen_address(address: str) -> Tuple[str, int]:
    """Split a "[host]:port" listen address, an empty host means all interfaces

    Examples:
        >>> parse_listen_address(":9290")
        ('0.0.0.0', 9290)
        >>> parse_listen_address("[::1]:8080")
        ('::1', 8080)
    """
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"Invalid listen address: {address!r}")
    try:
        return host.strip("[]") or "0.0.0.0", int(port)
    except ValueError:
        raise ValueError(f"Invalid port in listen address: {address!r}")

def create_server(app: Flask, listen_address: str) -> BaseWSGIServer:
    """Bind a threaded server; IPv6 hosts get an AF_INET6 socket"""
    host, port = parse_listen_address(listen_address)
    return make_server(host, port, app, threaded=True)

"""
Command Line Interface Module

This module provides the command-line entry point that loads the
configuration and serves the exporter over HTTP.
"""

import argparse
import logging
import signal
import sys
from typing import List, Optional

from flask import Flask

from ..config import ConfigError, SafeConfig
from ..exporter import create_app, create_server

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

LOG_LEVELS = ["debug", "info", "warning", "error"]

class CLI:
    """Command-line interface handler"""

    def __init__(self):
        """Initialize CLI handler"""
        self.parser = self._create_parser()
        self.config = SafeConfig()
        self.app: Optional[Flask] = None

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create command-line argument parser

        Returns:
            Configured argument parser
        """
        parser = argparse.ArgumentParser(
            description="IPMI Exporter - Prometheus metrics from ipmitool"
        )

        parser.add_argument(
            "--config.file",
            dest="config_file",
            help="Path to configuration file",
            default=None
        )

        parser.add_argument(
            "--web.listen-address",
            dest="listen_address",
            help="Address to listen on for web interface and telemetry",
            default=":9290"
        )

        parser.add_argument(
            "--ipmitool.path",
            dest="ipmitool_path",
            help="Path to the ipmitool binary",
            default="ipmitool"
        )

        parser.add_argument(
            "--ipmitool.timeout",
            dest="command_timeout",
            type=float,
            help="Seconds to wait for one ipmitool invocation",
            default=30.0
        )

        parser.add_argument(
            "--log.level",
            dest="log_level",
            choices=LOG_LEVELS,
            help="Only log messages with the given severity or above",
            default="info"
        )

        return parser

    def _reload_config(self, config_file: str) -> bool:
        """Reload the configuration file, keeping the old one on failure

        Returns:
            True if the file was loaded
        """
        try:
            self.config.reload_config(config_file)
            return True
        except ConfigError as e:
            logger.error(f"Error reloading config: {e}")
            return False

    def run(self, argv: Optional[List[str]] = None) -> None:
        """Run the exporter until interrupted"""
        args = self.parser.parse_args(argv)

        logging.getLogger("ipmi_exporter").setLevel(args.log_level.upper())

        if args.config_file:
            if not self._reload_config(args.config_file):
                sys.exit(1)

            def signal_handler(signum, frame):
                logger.info("Received SIGHUP, reloading config")
                self._reload_config(args.config_file)
            signal.signal(signal.SIGHUP, signal_handler)
        else:
            logger.info("No config file given, using built-in defaults for all modules")

        self.app = create_app(
            self.config,
            config_path=args.config_file,
            ipmitool_path=args.ipmitool_path,
            command_timeout=args.command_timeout
        )

        try:
            httpd = create_server(self.app, args.listen_address)
        except (OSError, ValueError) as e:
            logger.error(f"Error starting HTTP server: {e}")
            sys.exit(1)

        logger.info(f"Listening on {args.listen_address}")
        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            print("\nExiting...")
        finally:
            httpd.server_close()

def main() -> None:
    """Main entry point"""
    cli = CLI()
    cli.run()

if __name__ == "__main__":
    main()

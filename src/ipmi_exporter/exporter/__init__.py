"""
Exporter package for the IPMI exporter

This package publishes parsed IPMI records as Prometheus metrics and
serves them over HTTP.
"""

from .collector import IPMICollector, MetricDescriptor, DESCRIPTORS
from .server import create_app, create_server

__all__ = [
    'IPMICollector',
    'MetricDescriptor',
    'DESCRIPTORS',
    'create_app',
    'create_server'
]

"""
Prometheus exporter for IPMI sensor, power and BMC data

Runs ipmitool against the local host or remote BMCs and publishes the
parsed readings as Prometheus metrics.
"""

__version__ = "1.0.0"

"""
CLI package for the IPMI exporter

This package provides the command-line interface that
starts the HTTP server.
"""

from .interface import main

__all__ = ['main']

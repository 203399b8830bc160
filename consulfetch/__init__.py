"""
Consul config fetch tools

Fetch a single key from Consul over mutual TLS and materialize it as a
config.properties file on disk.
"""

__version__ = "0.0.1"
__author__ = "consul-config-fetch Team"

from .utils.kv_fetch import fetch_and_materialize

__all__ = ['fetch_and_materialize']

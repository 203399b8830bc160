"""
Command line interface for consul-config-fetch
"""

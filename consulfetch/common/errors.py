"""
Exceptions raised by consul-config-fetch
"""


class ConsulFetchError(Exception):
    """Base class for all fatal errors"""


class CredentialError(ConsulFetchError):
    """A certificate, key or CA file could not be read or parsed"""


class FetchError(ConsulFetchError):
    """The request to the Consul KV API failed"""


class KeyNotFoundError(FetchError):
    """The requested key does not exist in the store"""

    def __init__(self, key):
        super().__init__(f"Key '{key}' not found in Consul")
        self.key = key


class MaterializeError(ConsulFetchError):
    """The output directory or file could not be written"""

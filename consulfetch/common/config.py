"""
Resolved run configuration
"""

from dataclasses import dataclass
from typing import Optional

DEFAULT_PERMISSIONS = "0744"

PATH_FROM_STORE = "store"
PATH_FROM_REQUEST = "request"


@dataclass(frozen=True)
class FetchConfig:
    ca_file: str
    cert_file: str
    key_file: str
    host: str
    key: str
    base_dir: str
    permissions: int
    path_from: str = PATH_FROM_STORE
    token: Optional[str] = None
    datacenter: Optional[str] = None
    verbose: bool = False

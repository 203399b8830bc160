"""
Fetch a key from Consul and write it to disk
"""

import logging

from ..common import consul_utils
from ..common.config import PATH_FROM_REQUEST
from ..common.errors import KeyNotFoundError
from .materialize import OutputTarget, materialize

logger = logging.getLogger(__name__)


def fetch_and_materialize(config, session=None):
    """Fetch config.key and write it to {base_dir}/{key}/config.properties

    Returns the path of the written file. Credentials are loaded before any
    request is made and nothing is written unless the key exists.
    """
    credentials = consul_utils.load_credentials(config.ca_file, config.cert_file, config.key_file)

    print(f"Trying to fetch: {config.key}")
    with consul_utils.ConsulClient(
        config.host,
        credentials,
        token=config.token,
        datacenter=config.datacenter,
        session=session,
    ) as client:
        pair = client.get(config.key)

    if pair is None:
        raise KeyNotFoundError(config.key)

    if pair.key != config.key.lstrip('/'):
        logger.warning(f"Store returned key '{pair.key}' for requested key '{config.key}'")

    name = config.key if config.path_from == PATH_FROM_REQUEST else pair.key
    target = OutputTarget(base_dir=config.base_dir, key=name, mode=config.permissions)
    path = materialize(target, pair.value)
    print(f"Wrote {len(pair.value)} bytes to {path}")
    return path

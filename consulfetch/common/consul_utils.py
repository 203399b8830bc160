import base64
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import quote

import requests
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization

from .errors import CredentialError, FetchError

logger = logging.getLogger(__name__)

# Applied to the single KV request, not exposed on the command line
REQUEST_TIMEOUT = 30

_PEM_CERT_RE = re.compile(
    rb"-----BEGIN CERTIFICATE-----\r?\n.+?\r?\n-----END CERTIFICATE-----",
    re.DOTALL,
)


@dataclass
class ClientCredentials:
    ca_file: str
    cert_file: str
    key_file: str
    certificate: x509.Certificate
    ca_certificates: List[x509.Certificate] = field(default_factory=list)


@dataclass
class KVPair:
    key: str
    value: bytes
    flags: int = 0
    modify_index: int = 0


def _read_file(path, what):
    try:
        with open(path, 'rb') as f:
            return f.read()
    except OSError as e:
        raise CredentialError(f"Unable to load {what} '{path}' with error '{e}'") from e


def _public_key_der(public_key):
    return public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def _load_ca_certificates(pem):
    """Parse every CERTIFICATE block, skipping anything that does not parse"""
    certificates = []
    for block in _PEM_CERT_RE.findall(pem):
        try:
            certificates.append(x509.load_pem_x509_certificate(block))
        except ValueError as e:
            logger.debug(f"Skipping unparsable CA certificate block: {e}")
    return certificates


def load_credentials(ca_file, cert_file, key_file):
    """Load and validate the client cert/key pair and the CA bundle.

    The client certificate and key must parse and belong together. The CA
    file only has to be readable: a bundle without any PEM certificate
    leaves the trust pool empty, so server verification fails when the
    request is made.
    """
    cert_pem = _read_file(cert_file, 'cert')
    key_pem = _read_file(key_file, 'key')

    try:
        certificate = x509.load_pem_x509_certificate(cert_pem)
    except ValueError as e:
        raise CredentialError(f"Unable to parse cert '{cert_file}' with error '{e}'") from e

    try:
        private_key = serialization.load_pem_private_key(key_pem, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise CredentialError(f"Unable to parse key '{key_file}' with error '{e}'") from e

    if _public_key_der(private_key.public_key()) != _public_key_der(certificate.public_key()):
        raise CredentialError(f"Key '{key_file}' does not match cert '{cert_file}'")

    ca_pem = _read_file(ca_file, 'cacert')
    ca_certificates = _load_ca_certificates(ca_pem)
    if not ca_certificates:
        logger.warning(f"No certificates found in cacert '{ca_file}', server verification will fail")
    else:
        logger.debug(f"Loaded {len(ca_certificates)} CA certificate(s) from {ca_file}")

    return ClientCredentials(
        ca_file=ca_file,
        cert_file=cert_file,
        key_file=key_file,
        certificate=certificate,
        ca_certificates=ca_certificates,
    )


def build_session(credentials, token=None):
    """Return a requests session set up for mutual TLS"""
    session = requests.Session()
    session.cert = (credentials.cert_file, credentials.key_file)
    session.verify = credentials.ca_file
    # REQUESTS_CA_BUNDLE and proxy variables must not override the CA file
    session.trust_env = False
    if token:
        session.headers['X-Consul-Token'] = token
    return session


class ConsulClient:
    """Minimal client for the Consul KV HTTP API"""

    def __init__(self, host, credentials, token=None, datacenter=None, session=None):
        self.host = host
        self.base_url = f"https://{host}"
        self.datacenter = datacenter
        self.session = session or build_session(credentials, token=token)

    def close(self):
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def kv_url(self, key):
        return f"{self.base_url}/v1/kv/{quote(key.lstrip('/'), safe='/')}"

    def get(self, key) -> Optional[KVPair]:
        """Fetch one key, returning None when it does not exist"""
        url = self.kv_url(key)
        params = {'dc': self.datacenter} if self.datacenter else None
        logger.debug(f"GET {url}")

        try:
            response = self.session.get(url, params=params, timeout=REQUEST_TIMEOUT)
        except requests.exceptions.SSLError as e:
            raise FetchError(f"TLS error talking to {self.host}: {e}") from e
        except requests.exceptions.Timeout as e:
            raise FetchError(f"Timeout fetching '{key}' from {self.host}: {e}") from e
        except requests.exceptions.RequestException as e:
            raise FetchError(f"Failed to fetch '{key}' from {self.host}: {e}") from e

        if response.status_code == 404:
            return None

        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise FetchError(f"Unexpected response from {self.host}: {e}") from e

        try:
            entries = response.json()
        except ValueError as e:
            raise FetchError(f"Invalid KV response from {self.host}: {e}") from e

        if not entries:
            return None

        entry = entries[0]
        try:
            raw_value = entry.get('Value')
            value = base64.b64decode(raw_value) if raw_value is not None else b''
            return KVPair(
                key=entry['Key'],
                value=value,
                flags=entry.get('Flags', 0),
                modify_index=entry.get('ModifyIndex', 0),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise FetchError(f"Malformed KV entry from {self.host}: {e}") from e

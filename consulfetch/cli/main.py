#!/usr/bin/env python3
"""
Main CLI entry point for consul-config-fetch
"""

import argparse
import logging
import sys

from .. import __version__
from ..common.config import (
    DEFAULT_PERMISSIONS,
    PATH_FROM_REQUEST,
    PATH_FROM_STORE,
    FetchConfig,
)
from ..common.errors import ConsulFetchError
from ..utils.kv_fetch import fetch_and_materialize
from ..utils.materialize import parse_permissions


def _permissions(value):
    try:
        return parse_permissions(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def _key(value):
    if not value.strip('/'):
        raise argparse.ArgumentTypeError("key must not be empty")
    return value


def create_parser():
    """Create the argument parser"""
    parser = argparse.ArgumentParser(
        prog='consul-config-fetch',
        description='Fetch a key from Consul over mutual TLS and write it to '
                    '{baseDir}/{key}/config.properties',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'consul-config-fetch {__version__}'
    )

    parser.add_argument('--caFile', dest='ca_file', required=True,
                        help='the file holding the CA certificate.')
    parser.add_argument('--certFile', dest='cert_file', required=True,
                        help='the file holding the client certificate.')
    parser.add_argument('--keyFile', dest='key_file', required=True,
                        help='the file holding the client key.')

    parser.add_argument('--token', help='Consul ACL token')
    parser.add_argument('--datacenter', help='Consul datacenter to query')
    parser.add_argument(
        '--path-from',
        choices=[PATH_FROM_STORE, PATH_FROM_REQUEST],
        default=PATH_FROM_STORE,
        help='name the output directory after the key returned by the store '
             '(default) or the key as requested'
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')

    parser.add_argument('host', help='consul host to talk to without the protocol (https)')
    parser.add_argument('key', type=_key, help='Name of the key that contains the config')
    parser.add_argument('base_dir', metavar='baseDir',
                        help='Directory where config files should be written')
    parser.add_argument('permissions', nargs='?', type=_permissions, default=DEFAULT_PERMISSIONS,
                        help=f'File permissions (default: {DEFAULT_PERMISSIONS})')

    return parser


def resolve_config(argv=None):
    """Turn an argument list into a FetchConfig, exiting on bad arguments"""
    args = create_parser().parse_args(argv)
    return FetchConfig(
        ca_file=args.ca_file,
        cert_file=args.cert_file,
        key_file=args.key_file,
        host=args.host,
        key=args.key,
        base_dir=args.base_dir,
        permissions=args.permissions,
        path_from=args.path_from,
        token=args.token,
        datacenter=args.datacenter,
        verbose=args.verbose,
    )


def main(argv=None):
    """Main CLI entry point"""
    config = resolve_config(argv)

    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.WARNING,
        format='%(levelname)s: %(message)s',
        stream=sys.stderr,
    )
    # requests logs every connection at debug level
    logging.getLogger('urllib3').setLevel(logging.WARNING)

    try:
        fetch_and_materialize(config)
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        sys.exit(130)
    except ConsulFetchError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error: Unexpected error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()

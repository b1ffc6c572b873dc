"""
Entry point for RelayChat application.
This module provides a command-line interface to start the relay server.
"""

import argparse

from RelayChat.config import config
from RelayChat.start import server


def parse(argv=None):
    # Initialize argument parser for command line interface
    parser = argparse.ArgumentParser(prog='RelayChat', description='RelayChat starter')
    subparsers = parser.add_subparsers(dest='command', required=True, help='Available commands')

    # Setup server command line arguments
    server_parser = subparsers.add_parser('server', help='Startup SERVER')
    server_parser.add_argument('--host', default=config.DEFAULT_HOST,
                               help=f'SERVER listening address (default: {config.DEFAULT_HOST})')
    server_parser.add_argument('--port', type=int, default=config.DEFAULT_SERVER_PORT,
                               help=f'SERVER port (default: {config.DEFAULT_SERVER_PORT})')
    server_parser.add_argument('--srv-only', action='store_true',
                               help='Serve websockets only, without the HTTP status endpoints')
    server_parser.add_argument('--env', choices=['development', 'production', 'testing'],
                               default=None, help='Logging preset (default: $RELAYCHAT_ENV)')

    return parser.parse_args(argv)


def main(argv=None):
    args = parse(argv)

    if args.command == 'server':
        server.server(host=args.host, port=args.port, srv_only=args.srv_only, env=args.env)
    else:
        raise Exception('Unknown command')


if __name__ == '__main__':
    main()

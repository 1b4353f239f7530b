"""
fplsp – FHIRPath Language Server CLI entry point.

Usage
-----
    fplsp                       # stdio mode (default, for use with editors)
    fplsp --stdio               # explicit stdio mode
    fplsp --tcp 2087            # listen on TCP port (useful for debugging)
    fplsp --ws 3000             # WebSocket endpoint, one JSON message per frame
    fplsp --provider pkg.mod:Provider
"""
from __future__ import annotations

import argparse
import sys


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog='fplsp',
        description='FHIRPath Language Server (LSP) over stdio, TCP or WebSocket.',
    )
    mode = p.add_mutually_exclusive_group()
    mode.add_argument(
        '--stdio',
        action='store_true',
        default=False,
        help='Communicate over stdin/stdout (default when no flag given)',
    )
    mode.add_argument(
        '--tcp',
        metavar='PORT',
        type=int,
        default=None,
        help='Listen for connections on the given TCP port instead of stdio',
    )
    mode.add_argument(
        '--ws',
        metavar='PORT',
        type=int,
        default=None,
        help='Serve LSP over WebSocket on the given port',
    )
    p.add_argument(
        '--host',
        default='127.0.0.1',
        help='Interface to bind for --tcp/--ws (default: 127.0.0.1)',
    )
    p.add_argument(
        '--provider',
        metavar='MODULE:ATTR',
        default=None,
        help='Analysis provider to load, e.g. mypkg.fhirpath:Provider',
    )
    p.add_argument(
        '--version',
        action='store_true',
        default=False,
        help='Print the fplsp version and exit',
    )
    p.add_argument(
        '--log-level',
        metavar='LEVEL',
        default='WARNING',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Logging level written to stderr (default: WARNING)',
    )
    return p


def fplsp(argv: list[str] | None = None) -> None:
    """Entry point for the ``fplsp`` command."""
    import logging
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(levelname)s %(name)s: %(message)s',
        stream=sys.stderr,
    )

    from fplsp import __version__

    if args.version:
        print(f'fplsp {__version__}')
        sys.exit(0)

    from fplsp.provider import ProviderLoadError, load_provider
    from fplsp.server import server

    try:
        server.provider = load_provider(args.provider)
    except ProviderLoadError as e:
        parser.error(str(e))

    if args.tcp is not None:
        server.start_tcp(args.host, args.tcp)
    elif args.ws is not None:
        server.start_ws(args.host, args.ws)
    else:
        # Default (and --stdio): communicate via stdin/stdout
        server.start_io()


if __name__ == '__main__':
    fplsp()

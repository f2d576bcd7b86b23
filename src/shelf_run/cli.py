"""
Command line entry point: ``shelf-run`` / ``python -m shelf_run``.

Flags set the *defaults*; ``SHELF_*`` environment variables still override
them, exactly as for :func:`shelf_run.bootstrap.shelf_run`.
"""

import argparse
import logging
import ssl
import sys
from functools import partial

from . import __version__
from .bootstrap import run
from .config import RunDefaults
from .hotreload import with_hot_reload

logger = logging.getLogger(__name__)

DEFAULT_TARGET = "shelf_run.demo:create_app"


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def build_ssl_context(certfile, keyfile=None, password=None):
    """Create a server-side TLS context from a certificate chain."""
    context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    context.load_cert_chain(certfile, keyfile=keyfile, password=password)
    return context


def build_parser():
    defaults = RunDefaults()
    parser = argparse.ArgumentParser(
        description="Run an ASGI application with environment-driven defaults",
        prog="shelf-run"
    )
    parser.add_argument(
        "target",
        nargs="?",
        default=DEFAULT_TARGET,
        help=f"Handler factory as 'module:attribute' (default: {DEFAULT_TARGET})"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=defaults.port,
        help=f"Default port, overridden by SHELF_PORT (default: {defaults.port})"
    )
    parser.add_argument(
        "--address",
        default=defaults.address,
        help=f"Default bind address, overridden by SHELF_ADDRESS (default: {defaults.address})"
    )
    parser.add_argument(
        "--no-reload",
        dest="reload",
        action="store_false",
        help="Disable hot reload by default"
    )
    parser.add_argument(
        "--reload-dir",
        dest="reload_dirs",
        action="append",
        metavar="DIR",
        help="Directory to watch for hot reload (repeatable, default: current directory)"
    )
    parser.add_argument(
        "--shared",
        action="store_true",
        help="Share the listening port with other processes by default"
    )
    parser.add_argument(
        "--certfile",
        help="PEM certificate chain; enables TLS"
    )
    parser.add_argument(
        "--keyfile",
        help="PEM private key for --certfile"
    )
    parser.add_argument(
        "--app-dir",
        default=".",
        help="Directory prepended to sys.path before importing the target (default: .)"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )
    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.keyfile and not args.certfile:
        parser.error("--keyfile requires --certfile")

    setup_logging(args.verbose)
    sys.path.insert(0, args.app_dir)

    options = {
        "default_bind_port": args.port,
        "default_bind_address": args.address,
        "default_enable_hot_reload": args.reload,
        "default_shared": args.shared,
    }
    if args.reload_dirs:
        options["supervisor"] = partial(with_hot_reload, watch_dirs=args.reload_dirs)

    try:
        if args.certfile:
            options["ssl_context"] = build_ssl_context(args.certfile, args.keyfile)
        run(args.target, **options)
    except Exception as e:
        logger.error(f"Failed to start server: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

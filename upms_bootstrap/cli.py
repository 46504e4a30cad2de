"""Command line entry point for the container bootstrap."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from pydantic import ValidationError

from upms_bootstrap.config import Settings, get_settings
from upms_bootstrap.console import configure_logging, print_banner, print_ready_banner
from upms_bootstrap.exceptions import BootstrapError, PreconditionError
from upms_bootstrap.lock import ProcessLock
from upms_bootstrap.sequencer import Bootstrapper

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        description='UPMS container bootstrap',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  upms-bootstrap                         # Full bootstrap, then serve on 0.0.0.0:80
  upms-bootstrap --no-serve              # Bootstrap only
  upms-bootstrap --skip-restore          # Keep the current database contents
  upms-bootstrap --project-path /srv/upms --port 8080

Every option can also be set through BOOTSTRAP_* environment variables.
        """
    )
    parser.add_argument('--project-path', type=str, default=None, help='Project directory (default: /upms)')
    parser.add_argument('--host', type=str, default=None, help='Host the server binds to (default: 0.0.0.0)')
    parser.add_argument('--port', type=int, default=None, help='Port the server listens on (default: 80)')
    parser.add_argument(
        '--db-timeout',
        type=float,
        default=None,
        help='Seconds to wait for the database server (default: 60)'
    )
    parser.add_argument('--skip-install', action='store_true', help='Do not install Composer or apt packages')
    parser.add_argument('--skip-restore', action='store_true', help='Do not restore the latest backup')
    parser.add_argument(
        '--skip-password-reset',
        action='store_true',
        help='Do not reset user passwords'
    )
    parser.add_argument('--no-serve', action='store_true', help='Exit after bootstrapping instead of serving')
    parser.add_argument('--no-color', action='store_true', help='Disable colored output')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose output')
    return parser


def build_settings(args: argparse.Namespace) -> Settings:
    return get_settings(
        project_path=args.project_path,
        server_host=args.host,
        server_port=args.port,
        db_ready_timeout=args.db_timeout,
        skip_install=args.skip_install or None,
        skip_restore=args.skip_restore or None,
        skip_password_reset=args.skip_password_reset or None,
    )


async def run(settings: Settings, serve: bool = True, color_enabled: bool = True) -> int:
    """Bootstrap the project, then serve it. Returns the process exit code."""
    print_banner(settings, color_enabled)
    bootstrapper = Bootstrapper(settings, color_enabled=color_enabled)

    try:
        report = await bootstrapper.run()
    except PreconditionError as e:
        logger.error("%s", e)
        return EXIT_FAILURE

    if report.unreachable:
        logger.warning("    Fix: check that the database service is running and reachable")
    failed = [r.name for r in report.provisioned if r.status == 'failed']
    if failed:
        logger.warning("Databases that could not be provisioned: %s", ', '.join(failed))

    if not serve:
        logger.info("✓ Bootstrap complete")
        return EXIT_OK

    return await bootstrapper.serve(on_ready=lambda: print_ready_banner(settings, color_enabled))


async def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        settings = build_settings(args)
    except ValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return EXIT_FAILURE

    color_enabled = not args.no_color and sys.stdout.isatty()
    configure_logging(settings, color_enabled=color_enabled, verbose=args.verbose)

    project_path = Path(settings.project_path)
    if not project_path.is_dir():
        logger.error("%s directory does not exist.", project_path)
        return EXIT_FAILURE

    # One bootstrap per project directory
    lock = ProcessLock(project_path / settings.lock_file)
    if not lock.acquire():
        return EXIT_FAILURE

    try:
        return await run(settings, serve=not args.no_serve, color_enabled=color_enabled)
    except BootstrapError as e:
        logger.error("Fatal error: %s", e)
        return EXIT_FAILURE
    finally:
        lock.release()


def entrypoint() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        # Graceful exit on Ctrl+C
        sys.exit(0)

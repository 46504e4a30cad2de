"""The startup sequence: every bootstrap step, strictly in order."""

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from upms_bootstrap.artisan import Artisan
from upms_bootstrap.config import Settings
from upms_bootstrap.console import print_step
from upms_bootstrap.envfile import load_env_file, materialize_env_file
from upms_bootstrap.exceptions import ProjectDirectoryNotFoundError
from upms_bootstrap.installer import PackageInstaller
from upms_bootstrap.profiles import discover_databases, endpoints, global_defaults
from upms_bootstrap.provisioner import DatabaseProvisioner, ProvisionResult
from upms_bootstrap.readiness import HealthMonitor, wait_for_databases
from upms_bootstrap.restore import BackupRestorer
from upms_bootstrap.server import ServerProcess, SignalHandler

logger = logging.getLogger(__name__)

WILDCARD_HOSTS = {"", "0.0.0.0", "::"}


def health_host(server_host: str) -> str:
    """Address the health check connects to for a server bound to *server_host*."""
    if server_host in WILDCARD_HOSTS:
        return "127.0.0.1"
    if ":" in server_host:
        return f"[{server_host}]"
    return server_host


@dataclass
class BootstrapReport:
    env_created: bool = False
    dependencies_installed: bool = False
    client_available: bool = False
    unreachable: List[str] = field(default_factory=list)
    provisioned: List[ProvisionResult] = field(default_factory=list)
    migrated: bool = False
    restored: bool = False
    key_generated: bool = False
    passwords_reset: bool = False


class Bootstrapper:
    """Runs the bootstrap steps against one project directory.

    Precondition failures (missing project directory or configuration file)
    raise. Every later failure, an unreachable database server included, is
    logged and the sequence moves on.
    """

    def __init__(
        self,
        settings: Settings,
        installer: Optional[PackageInstaller] = None,
        provisioner: Optional[DatabaseProvisioner] = None,
        restorer: Optional[BackupRestorer] = None,
        artisan: Optional[Artisan] = None,
        color_enabled: bool = True,
    ):
        self.settings = settings
        self.project_path = Path(settings.project_path)
        self.color_enabled = color_enabled
        self.installer = installer or PackageInstaller(settings.php_binary, settings.composer_binary)
        self.provisioner = provisioner or DatabaseProvisioner()
        self.restorer = restorer or BackupRestorer(
            self.project_path / settings.backup_dir,
            settings.target_database,
            pattern=settings.backup_pattern,
            container_host=settings.container_db_host,
        )
        self.artisan = artisan or Artisan(settings.php_binary, cwd=str(self.project_path))
        self.env: Dict[str, str] = {}

    def _step(self, number: int, title: str):
        print_step(number, title, self.color_enabled)

    async def run(self) -> BootstrapReport:
        report = BootstrapReport()
        settings = self.settings

        self._step(1, "Checking project directory")
        if not self.project_path.is_dir():
            raise ProjectDirectoryNotFoundError(f"{self.project_path} directory does not exist.")

        self._step(2, "Checking configuration file")
        env_path = self.project_path / settings.env_file
        report.env_created = materialize_env_file(env_path, self.project_path / settings.env_template)

        if settings.skip_install:
            logger.info("Skipping dependency installation")
        else:
            self._step(3, "Checking PHP dependencies")
            report.dependencies_installed = self.installer.install_php_dependencies(
                self.project_path / settings.vendor_dir, cwd=str(self.project_path)
            )
            self._step(4, "Checking database client")
            report.client_available = self.installer.ensure_database_client()

        self._step(5, "Loading configuration")
        self.env = load_env_file(env_path)
        profiles = discover_databases(self.env)

        self._step(6, "Waiting for the database server")
        targets = endpoints(profiles)
        if not targets:
            defaults = global_defaults(self.env)
            try:
                targets = [(defaults["host"], int(defaults["port"]))]
            except ValueError:
                logger.warning("DB_PORT %r is not a port number, not waiting", defaults["port"])
        report.unreachable = await wait_for_databases(
            targets,
            timeout=settings.db_ready_timeout,
            max_interval=settings.db_ready_max_interval,
            connect_timeout=settings.db_connect_timeout,
        )
        if report.unreachable:
            logger.warning(
                "Continuing without %s; provisioning and migrations may fail",
                ", ".join(report.unreachable),
            )

        self._step(7, "Checking and creating databases")
        report.provisioned = await self.provisioner.provision(profiles.values())

        self._step(8, "Running migrations")
        report.migrated = self.artisan.migrate()

        if settings.skip_restore:
            logger.info("Skipping backup restore")
        else:
            self._step(9, "Restoring from latest backup")
            report.restored = self._restore()

        self._step(10, "Resetting secrets")
        report.key_generated = self.artisan.generate_key()
        if settings.skip_password_reset:
            logger.info("Skipping password reset")
        else:
            report.passwords_reset = self.artisan.reset_passwords(settings.default_user_password)

        return report

    def _restore(self) -> bool:
        try:
            return self.restorer.restore(self.env)
        except (OSError, subprocess.SubprocessError) as e:
            logger.error("Restore failed: %s", e)
            return False

    async def serve(self, on_ready=None) -> int:
        """Start the HTTP server and block until it exits or we are signalled."""
        self._step(11, "Starting server")
        settings = self.settings
        server = ServerProcess(
            self.artisan.serve_command(settings.server_host, settings.server_port),
            cwd=str(self.project_path),
        )
        signal_handler = SignalHandler()
        signal_handler.setup()
        await server.start()
        try:
            healthy = await HealthMonitor().wait_for_service(
                "server",
                f"http://{health_host(settings.server_host)}:{settings.server_port}/",
                settings.server_health_timeout,
            )
            if healthy and on_ready is not None:
                on_ready()
            return await server.run_until_shutdown(signal_handler)
        finally:
            await server.stop()

"""Conditional installation of PHP dependencies and database client tools."""

import logging
import os
import subprocess
import time
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

# Inside the container we usually are root and sudo may
# not even be installed.
IS_ROOT = (os.getuid() == 0) if hasattr(os, 'getuid') else False

CLIENT_PACKAGES = ['postgresql-client', 'xz-utils']


def _sudo() -> List[str]:
    """Return ['sudo'] prefix, or [] if already running as root."""
    return [] if IS_ROOT else ['sudo']


class PackageInstaller:
    """Installs what the project needs before it can boot.

    * Composer dependencies when ``vendor/`` is missing, picking the PHP
      version first.
    * ``psql`` and ``xz`` through apt when either is missing.
    """

    def __init__(self, php_binary: str = 'php', composer_binary: str = 'composer'):
        self.php_binary = php_binary
        self.composer_binary = composer_binary

    # ------------------------------------------------------------------
    # Command helpers
    # ------------------------------------------------------------------

    def _run_command(
        self,
        cmd: List[str],
        timeout: int = 600,
        capture: bool = False,
        cwd: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        """Run a command with timeout and error handling."""
        return subprocess.run(
            cmd,
            capture_output=capture,
            text=True,
            timeout=timeout,
            cwd=cwd,
        )

    def _retry_command(
        self,
        cmd: List[str],
        description: str,
        max_retries: int = 3,
        timeout: int = 600,
        cwd: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        """Run a command with retry and exponential backoff for network operations.

        Retries on non-zero exit code. Does NOT retry on timeout.
        """
        last_result = None
        for attempt in range(1, max_retries + 1):
            result = self._run_command(cmd, timeout=timeout, cwd=cwd)
            if result.returncode == 0:
                return result
            last_result = result
            if attempt < max_retries:
                delay = 2 ** attempt  # 2s, 4s, 8s
                logger.warning(
                    "Attempt %d/%d failed (%s). Retrying in %ds...",
                    attempt, max_retries, description, delay,
                )
                time.sleep(delay)
        return last_result  # type: ignore[return-value]

    def _is_command_available(self, cmd: str) -> bool:
        """Check if a command is available on PATH."""
        try:
            result = subprocess.run(['which', cmd], capture_output=True, timeout=5)
            return result.returncode == 0
        except (OSError, subprocess.SubprocessError):
            return False

    # ------------------------------------------------------------------
    # PHP / Composer
    # ------------------------------------------------------------------

    def detect_php_version(self) -> Optional[str]:
        """Return the version token of `php -v` (e.g. '8.4.1'), or None."""
        try:
            result = self._run_command([self.php_binary, '-v'], timeout=30, capture=True)
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("Could not run %s -v: %s", self.php_binary, e)
            return None
        if result.returncode != 0 or not result.stdout:
            return None
        first_line = result.stdout.splitlines()[0]
        parts = first_line.split()
        return parts[1] if len(parts) > 1 else None

    def install_php_dependencies(self, vendor_dir: Path, cwd: Optional[str] = None) -> bool:
        """Run composer install when vendor/ is missing.

        Returns True when Composer ran successfully, False when nothing was
        done or the install failed.
        """
        if Path(vendor_dir).is_dir():
            logger.debug("Vendor folder present, skipping composer install")
            return False

        logger.info("Vendor folder not found. Checking PHP version...")
        version = self.detect_php_version()

        if version and version.startswith('8.4'):
            logger.info("PHP 8.4 detected. Running composer install...")
        elif version and version.startswith('8.2'):
            logger.info("PHP 8.2 detected. Switching to PHP 8.2 and running composer install...")
            try:
                switch = self._run_command(['phpswitch', '8.2'], timeout=120, cwd=cwd)
            except (OSError, subprocess.SubprocessError) as e:
                logger.error("phpswitch 8.2 failed: %s", e)
            else:
                if switch.returncode != 0:
                    logger.error("phpswitch 8.2 failed with exit code %d", switch.returncode)
        else:
            logger.warning("PHP version %s detected. No specific action defined for this version.", version)
            return False

        try:
            result = self._retry_command(
                [self.composer_binary, 'install', '--no-interaction'],
                'composer install',
                cwd=cwd,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.error("composer install failed: %s", e)
            return False
        if result.returncode != 0:
            logger.error("composer install failed with exit code %d", result.returncode)
            return False
        logger.info("✓ Composer dependencies installed")
        return True

    # ------------------------------------------------------------------
    # PostgreSQL client + xz
    # ------------------------------------------------------------------

    def ensure_database_client(self) -> bool:
        """Install postgresql-client and xz-utils if psql or xz is missing.

        Returns True when both tools are available afterwards.
        """
        missing = [cmd for cmd in ('psql', 'xz') if not self._is_command_available(cmd)]
        if not missing:
            return True

        logger.info("%s not found. Installing %s...", ', '.join(missing), ' '.join(CLIENT_PACKAGES))
        try:
            update = self._retry_command([*_sudo(), 'apt-get', 'update'], 'apt-get update')
            if update.returncode != 0:
                logger.error("apt-get update failed with exit code %d", update.returncode)
                return False
            install = self._retry_command(
                [*_sudo(), 'apt-get', 'install', '-y', *CLIENT_PACKAGES],
                'apt-get install',
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.error("Could not install %s: %s", ' '.join(CLIENT_PACKAGES), e)
            return False
        if install.returncode != 0:
            logger.error("apt-get install failed with exit code %d", install.returncode)
            return False
        logger.info("✓ Database client tools installed")
        return True

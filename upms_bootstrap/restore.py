"""Restore the target database from the newest compressed SQL dump."""

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from upms_bootstrap.profiles import DEFAULT_PASSWORD, DEFAULT_PORT, DEFAULT_USER

logger = logging.getLogger(__name__)

LOOPBACK_HOSTS = {'', '127.0.0.1', 'localhost'}
RESET_SCHEMA_SQL = 'DROP SCHEMA public CASCADE; CREATE SCHEMA public;'


def find_latest_backup(directory: Path, pattern: str = '*.sql.xz') -> Optional[Path]:
    """Return the most recently modified file matching *pattern*.

    Candidates are taken in name order, so when two files share the same
    mtime the first by name wins.
    """
    candidates = sorted(p for p in Path(directory).glob(pattern) if p.is_file())
    if not candidates:
        return None
    return max(candidates, key=lambda p: p.stat().st_mtime)


@dataclass
class RestoreTarget:
    host: str
    port: str
    user: str
    password: str
    database: str

    def psql_args(self) -> List[str]:
        return ['psql', '-h', self.host, '-p', self.port, '-U', self.user]

    def child_env(self) -> Dict[str, str]:
        env = os.environ.copy()
        env['PGPASSWORD'] = self.password
        return env


def _first_set(env: Mapping[str, str], *keys: str, default: str = '') -> str:
    for key in keys:
        value = env.get(key)
        if value:
            return value
    return default


def resolve_restore_target(env: Mapping[str, str], database: str, container_host: str = 'db') -> RestoreTarget:
    """Resolve restore-time connection values.

    Values come from the process environment overlaid with *env*, so .env
    entries win over variables the container was started with. READ_DB_*
    values win over DB_* ones. A loopback (or empty) host is replaced by
    *container_host*, the database service name on the container network.
    """
    env = {**os.environ, **env}
    host = _first_set(env, 'READ_DB_HOST', 'DB_HOST')
    if host in LOOPBACK_HOSTS:
        host = container_host
    return RestoreTarget(
        host=host,
        port=_first_set(env, 'READ_DB_PORT', 'DB_PORT', default=DEFAULT_PORT),
        user=_first_set(env, 'READ_DB_USERNAME', 'DB_USERNAME', default=DEFAULT_USER),
        password=_first_set(env, 'READ_DB_PASSWORD', 'DB_PASSWORD', default=DEFAULT_PASSWORD),
        database=database,
    )


class BackupRestorer:
    """Replays the newest backup into the target database.

    The public schema is dropped unconditionally before the replay and
    nothing wraps the replay in a transaction: an interrupted stream leaves
    the database partially restored.
    """

    def __init__(
        self,
        backup_dir: Path,
        database: str,
        pattern: str = '*.sql.xz',
        container_host: str = 'db',
    ):
        self.backup_dir = Path(backup_dir)
        self.database = database
        self.pattern = pattern
        self.container_host = container_host

    def restore(self, env: Mapping[str, str]) -> bool:
        """Run the restore. Returns True only when the replay completed cleanly."""
        logger.info("Checking for backups in %s...", self.backup_dir)
        if not self.backup_dir.is_dir():
            logger.warning("Backup directory %s not found.", self.backup_dir)
            return False

        backup = find_latest_backup(self.backup_dir, self.pattern)
        if backup is None:
            logger.warning("No %s backup files found in %s.", self.pattern, self.backup_dir)
            return False

        logger.info("Found backup: %s", backup)
        target = resolve_restore_target(env, self.database, self.container_host)
        logger.info("Connecting to %s:%s as %s...", target.host, target.port, target.user)

        self.reset_public_schema(target)

        if shutil.which('xz') is None:
            logger.error("'xz' command not found. Cannot decompress backup.")
            return False
        return self.replay(backup, target)

    def reset_public_schema(self, target: RestoreTarget) -> bool:
        logger.info("Dropping public schema in %s...", target.database)
        result = subprocess.run(
            [*target.psql_args(), '-d', target.database, '-c', RESET_SCHEMA_SQL],
            env=target.child_env(),
        )
        if result.returncode != 0:
            logger.error("Resetting public schema failed with exit code %d", result.returncode)
            return False
        return True

    def replay(self, backup: Path, target: RestoreTarget) -> bool:
        """Stream `xz -dc backup` into psql's stdin."""
        logger.info("Restoring '%s' database from %s...", target.database, backup.name)
        decompress = subprocess.Popen(['xz', '-dc', str(backup)], stdout=subprocess.PIPE)
        try:
            psql = subprocess.Popen(
                [*target.psql_args(), target.database],
                stdin=decompress.stdout,
                env=target.child_env(),
            )
        except OSError:
            decompress.kill()
            decompress.wait()
            raise
        finally:
            # Let xz receive SIGPIPE if psql exits early.
            if decompress.stdout is not None:
                decompress.stdout.close()
        psql_rc = psql.wait()
        xz_rc = decompress.wait()

        if xz_rc != 0:
            logger.error("xz exited with code %d while decompressing %s", xz_rc, backup)
        if psql_rc != 0:
            logger.error("psql exited with code %d during restore", psql_rc)
        if xz_rc == 0 and psql_rc == 0:
            logger.info("✓ Restore complete.")
            return True
        return False

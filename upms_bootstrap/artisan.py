"""Thin wrapper over `php artisan`."""

import logging
import subprocess
from typing import List, Optional

logger = logging.getLogger(__name__)


def php_quote(value: str) -> str:
    """Single-quoted PHP string literal."""
    return "'" + value.replace('\\', '\\\\').replace("'", "\\'") + "'"


class Artisan:
    def __init__(self, php_binary: str = 'php', cwd: Optional[str] = None):
        self.php_binary = php_binary
        self.cwd = cwd

    def command(self, *args: str) -> List[str]:
        return [self.php_binary, 'artisan', *args]

    def _run(self, description: str, *args: str) -> bool:
        cmd = self.command(*args)
        logger.info("%s...", description)
        try:
            result = subprocess.run(cmd, cwd=self.cwd)
        except OSError as e:
            logger.error("%s failed: %s", description, e)
            return False
        if result.returncode != 0:
            logger.error("%s failed with exit code %d", description, result.returncode)
            return False
        return True

    def migrate(self) -> bool:
        return self._run("Running migrations", 'migrate', '--force')

    def generate_key(self) -> bool:
        return self._run("Generating application key", 'key:generate', '--force')

    def reset_passwords(self, password: str) -> bool:
        """Set every user's password to *password* and clear its expiry."""
        script = (
            "echo \\App\\Models\\User::query()->update(["
            f"'password' => bcrypt({php_quote(password)}), "
            "'password_expires_at' => null"
            "]) . ' Users updated.' . PHP_EOL;"
        )
        return self._run("Setting user password", 'tinker', f'--execute={script}')

    def serve_command(self, host: str, port: int) -> List[str]:
        return self.command('serve', '--host', host, '--port', str(port))

"""Loading and materializing the application's .env file."""

import logging
from pathlib import Path
from typing import Dict

from upms_bootstrap.exceptions import ConfigFileNotFoundError

logger = logging.getLogger(__name__)


def atomic_write(target: Path, content: str):
    """Write content to a file atomically via a temp file + rename.

    On POSIX, Path.replace() is atomic within the same filesystem.
    This prevents partial writes if the process is interrupted.
    """
    tmp_path = target.with_suffix(target.suffix + '.tmp')
    tmp_path.write_text(content, encoding='utf-8')
    tmp_path.replace(target)


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return value[1:-1]
    return value


def load_env_file(path: Path) -> Dict[str, str]:
    """Parse a KEY=VALUE file into a dict.

    Blank lines and ``#`` comments are skipped, each line is split on its
    first ``=`` and both sides are trimmed. A later duplicate key overwrites
    an earlier one.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigFileNotFoundError(f"Configuration file not found: {path}")

    env: Dict[str, str] = {}
    with open(path, encoding='utf-8') as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith('#'):
                continue
            if '=' not in line:
                continue
            key, value = line.split('=', 1)
            key = key.strip()
            if not key:
                continue
            env[key] = _unquote(value.strip())
    logger.debug("Loaded %d entries from %s", len(env), path)
    return env


def materialize_env_file(env_path: Path, template_path: Path) -> bool:
    """Create .env from its template if missing. Returns True if a copy was made."""
    env_path = Path(env_path)
    template_path = Path(template_path)
    if env_path.exists():
        return False
    if not template_path.is_file():
        raise ConfigFileNotFoundError(
            f"{env_path} not found and no template at {template_path} to create it from"
        )
    logger.info("%s not found. Copying %s to %s...", env_path, template_path, env_path)
    atomic_write(env_path, template_path.read_text(encoding='utf-8'))
    return True
